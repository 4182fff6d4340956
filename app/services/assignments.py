"""
Assignment workflow: creation, accept/reject handshake, edit and soft-delete
of tasks sent from one user to another.

Every transition reads, validates and writes one AssignedTask inside a single
transaction while holding that task's lock. Only the work up to the commit is
bounded by the store timeout; the reload and the notification happen after
it, and a notification never undoes the commit.
"""
import logging
from contextlib import nullcontext

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.exceptions import NotFoundError, InvalidOperationError
from app.models.tasks import AssignedTask, AssignedTaskLog, AssignStatus, LogAction
from app.models.user import User
from app.schemas.task import AssignedTask as AssignedTaskSchema, AssignedTaskCreate, AssignedTaskUpdate
from app.services import notifications
from app.services.collaborators import is_collaborator, add_collaborator, collaborator_lock
from app.services.locks import entity_locks, run_transaction
from app.services.notifications import ChannelRegistry
from app.services.state_machine import AssignAction, check_transition, initial_status
from app.services.users import get_user_by_username

logger = logging.getLogger(__name__)

LOCK_KIND = "assigned_task"

# Columns that cannot be cleared by an edit
REQUIRED_FIELDS = {"title", "priority", "status", "frequency", "assign_status"}


def serialize_assigned_task(task: AssignedTask) -> dict:
    return AssignedTaskSchema.model_validate(task).model_dump(mode="json")


async def get_assigned_task(db: AsyncSession, task_id: int) -> AssignedTask | None:
    result = await db.execute(
        select(AssignedTask)
        .filter(AssignedTask.task_id == task_id)
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


def _counterpart(task: AssignedTask, actor: User) -> User:
    if actor.user_id == task.sent_by_id:
        return task.receiver
    if actor.user_id == task.send_to_id:
        return task.sender
    raise InvalidOperationError("Only the sender or the receiver can modify this task")


def _log(action: LogAction, by_id: int, to_id: int | None = None) -> AssignedTaskLog:
    return AssignedTaskLog(action=action.value, by_id=by_id, to_id=to_id)


# ── Queries ─────────────────────────────────────────────

async def list_assignments(db: AsyncSession, user_id: int):
    """Tasks the user sent, and tasks the user received that were not rejected."""
    result = await db.execute(
        select(AssignedTask)
        .filter(AssignedTask.sent_by_id == user_id)
        .order_by(AssignedTask.task_id)
    )
    sent = result.scalars().all()

    result = await db.execute(
        select(AssignedTask)
        .filter(
            AssignedTask.send_to_id == user_id,
            AssignedTask.assign_status != AssignStatus.REJECTED.value,
        )
        .order_by(AssignedTask.task_id)
    )
    received = result.scalars().all()
    return sent, received


# ── Transitions ─────────────────────────────────────────

async def create_assignment(
    db: AsyncSession,
    sender: User,
    data: AssignedTaskCreate,
    channels: ChannelRegistry,
) -> AssignedTask:
    async def work():
        receiver = await get_user_by_username(db, data.send_to)
        if not receiver:
            raise NotFoundError("Recipient user not found")
        if receiver.user_id == sender.user_id:
            raise InvalidOperationError("Cannot assign task to yourself")

        collaborators = is_collaborator(sender, receiver)
        status = initial_status(collaborators)
        action = LogAction.ASSIGNED if collaborators else LogAction.REQUEST_SENT

        task = AssignedTask(
            **data.model_dump(exclude={"send_to"}),
            sent_by_id=sender.user_id,
            send_to_id=receiver.user_id,
            assign_status=status.value,
            logs=[_log(action, sender.user_id, receiver.user_id)],
        )
        db.add(task)
        return task

    staged = await run_transaction(db, work)
    task = await get_assigned_task(db, staged.task_id)
    logger.info(
        "[ASSIGN] task %s created by '%s' for '%s' -> %s",
        task.task_id, sender.username, task.receiver.username, task.assign_status,
    )
    await notifications.notify(channels, task.receiver.username, notifications.TASK_ASSIGN, {
        "from": sender.username,
        "to": task.receiver.username,
        "status": task.assign_status,
        "id": task.task_id,
    })
    return task


async def _decide(
    db: AsyncSession,
    action: AssignAction,
    task_id: int,
    from_username: str,
    to_username: str,
    channels: ChannelRegistry,
    actor_id: int | None = None,
) -> AssignedTask:
    accepting = action is AssignAction.ACCEPT

    async def work():
        task = await get_assigned_task(db, task_id)
        if not task:
            raise NotFoundError("Task not found")
        target = check_transition(action, task.assign_status)

        sender = await get_user_by_username(db, from_username)
        receiver = await get_user_by_username(db, to_username)
        if not sender or not receiver:
            raise NotFoundError("Sender or receiver not found")
        if task.sent_by_id != sender.user_id or task.send_to_id != receiver.user_id:
            raise InvalidOperationError(f"Task {task_id} was not sent from '{from_username}' to '{to_username}'")
        if actor_id is not None and actor_id != receiver.user_id:
            raise InvalidOperationError("Only the receiver can respond to a task request")

        if accepting:
            await add_collaborator(db, sender, receiver.username)

        task.assign_status = target.value
        task.logs.append(_log(LogAction.ACCEPTED if accepting else LogAction.REJECTED, receiver.user_id))

    async with entity_locks.hold(LOCK_KIND, task_id):
        # Lock order is always task, then user
        async with collaborator_lock(from_username) if accepting else nullcontext():
            await run_transaction(db, work)
        task = await get_assigned_task(db, task_id)

    verb = "accepted" if accepting else "rejected"
    logger.info("[ASSIGN] task %s %s by '%s'", task_id, verb, to_username)
    await notifications.notify(
        channels,
        from_username,
        notifications.TASK_REQUEST_SUCCESS if accepting else notifications.TASK_REQUEST_REJECT,
        {
            "accepted": accepting,
            "message": f"{to_username} {verb} your task request",
            "task": serialize_assigned_task(task),
        },
    )
    return task


async def accept_assignment(db, task_id, from_username, to_username, channels, actor_id=None):
    return await _decide(db, AssignAction.ACCEPT, task_id, from_username, to_username, channels, actor_id)


async def reject_assignment(db, task_id, from_username, to_username, channels, actor_id=None):
    return await _decide(db, AssignAction.REJECT, task_id, from_username, to_username, channels, actor_id)


async def edit_assignment(
    db: AsyncSession,
    task_id: int,
    actor: User,
    patch: AssignedTaskUpdate,
    channels: ChannelRegistry,
) -> AssignedTask:
    updates = patch.model_dump(exclude_unset=True)
    cleared = sorted(k for k, v in updates.items() if v is None and k in REQUIRED_FIELDS)
    if cleared:
        raise InvalidOperationError(f"Fields cannot be cleared: {', '.join(cleared)}")

    async def work():
        task = await get_assigned_task(db, task_id)
        if not task:
            raise NotFoundError("Assigned task not found")
        check_transition(AssignAction.EDIT, task.assign_status)
        counterpart = _counterpart(task, actor)

        for key, value in updates.items():
            setattr(task, key, value)
        task.logs.append(_log(LogAction.EDITED, actor.user_id))
        return counterpart.username

    async with entity_locks.hold(LOCK_KIND, task_id):
        to = await run_transaction(db, work)
        task = await get_assigned_task(db, task_id)

    logger.info("[ASSIGN] task %s edited by '%s' (%s)", task_id, actor.username, ", ".join(updates) or "no fields")
    await notifications.notify(channels, to, notifications.UPDATE_TASK, {
        "task": serialize_assigned_task(task),
        "doneBy": actor.username,
        "to": to,
        "act": updates.get("assign_status"),
    })
    return task


async def delete_assignment(
    db: AsyncSession,
    task_id: int,
    actor: User,
    channels: ChannelRegistry,
) -> AssignedTask:
    async def work():
        task = await get_assigned_task(db, task_id)
        if not task:
            raise NotFoundError("Assigned task not found")
        target = check_transition(AssignAction.DELETE, task.assign_status)
        counterpart = _counterpart(task, actor)

        task.assign_status = target.value
        task.logs.append(_log(LogAction.DELETED, actor.user_id))
        return counterpart.username

    async with entity_locks.hold(LOCK_KIND, task_id):
        to = await run_transaction(db, work)
        task = await get_assigned_task(db, task_id)

    logger.info("[ASSIGN] task %s soft-deleted by '%s'", task_id, actor.username)
    await notifications.notify(channels, to, notifications.DELETE_TASK, {
        "deletedTask": serialize_assigned_task(task),
        "doneBy": actor.username,
        "to": to,
    })
    return task
