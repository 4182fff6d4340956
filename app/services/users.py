import logging

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.exceptions import ConflictError
from app.models.user import User
from app.schemas.user import UserCreate
from app.utils.security import get_password_hash, verify_password

logger = logging.getLogger(__name__)


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).filter(User.user_id == user_id))
    return result.scalars().first()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).filter(User.username == username))
    return result.scalars().first()


async def create_user(db: AsyncSession, user: UserCreate) -> User:
    result = await db.execute(
        select(User).filter(or_(User.email == user.email, User.username == user.username))
    )
    existing = result.scalars().all()
    if existing:
        email_taken = any(u.email == user.email for u in existing)
        username_taken = any(u.username == user.username for u in existing)
        if email_taken and username_taken:
            raise ConflictError("Both email and username are already in use", conflict="both")
        if email_taken:
            raise ConflictError("User with this email already exists", conflict="email")
        raise ConflictError("This username is already taken", conflict="username")

    new_user = User(
        username=user.username,
        email=user.email,
        hashed_password=get_password_hash(user.password),
    )
    db.add(new_user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same name/email
        await db.rollback()
        raise ConflictError("Username or Email already registered")

    result = await db.execute(
        select(User).filter(User.user_id == new_user.user_id).execution_options(populate_existing=True)
    )
    logger.info("[USERS] signed up '%s' (id=%s)", new_user.username, new_user.user_id)
    return result.scalars().first()


async def authenticate(db: AsyncSession, username: str, password: str) -> User | None:
    user = await get_user_by_username(db, username)
    if not user or not verify_password(password, user.hashed_password):
        return None
    return user
