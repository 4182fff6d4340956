import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.models.user import User, Collaborator
from app.services.locks import entity_locks

logger = logging.getLogger(__name__)


def is_collaborator(sender: User, receiver: User) -> bool:
    """
    True when `receiver` already lists `sender` as a collaborator, which lets
    the sender skip the request/accept handshake. The graph is directed:
    accepting only adds the receiver to the sender's list.
    """
    return sender.username in receiver.collaborator_usernames


def collaborator_lock(username: str):
    """Serializes mutations of one user's collaborator set; hold it until commit."""
    return entity_locks.hold("user", username)


async def add_collaborator(db: AsyncSession, owner: User, username: str) -> bool:
    """
    Idempotently stage `username` into `owner`'s collaborator set inside the
    caller's transaction. Callers hold `collaborator_lock(owner.username)`;
    the unique constraint backs it up across processes.
    Returns True when a new edge was staged.
    """
    result = await db.execute(
        select(Collaborator.id).filter(
            Collaborator.owner_id == owner.user_id,
            Collaborator.username == username,
        )
    )
    if result.scalars().first() is not None:
        return False
    owner.collaborators.append(Collaborator(username=username))
    await db.flush()
    logger.info("[GRAPH] '%s' added to collaborators of '%s'", username, owner.username)
    return True
