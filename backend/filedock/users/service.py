"""User service: lookups, create/update/delete with last-admin protection."""

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from filedock.auth.jwt import hash_password
from filedock.config import get_settings
from filedock.users.models import User, UserUpdate

log = logging.getLogger(__name__)


async def get_user_by_username(session: AsyncSession, username: str) -> Optional[User]:
    """Return user by username or None."""
    result = await session.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: str) -> Optional[User]:
    """Return user by id or None."""
    return await session.get(User, user_id)


async def count_admins(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(User.id)).where(User.is_admin.is_(True)))
    return int(result.scalar_one())


async def create_user(
    session: AsyncSession,
    username: str,
    password: str,
    is_admin: bool = False,
) -> User:
    """
    Create a new user with a hashed password.
    Raises ValueError if the username is taken. Caller must commit session.
    """
    existing = await get_user_by_username(session, username)
    if existing:
        raise ValueError(f"Username already exists: {username}")
    user = User(
        username=username,
        password_hash=hash_password(password),
        is_admin=is_admin,
    )
    session.add(user)
    await session.flush()
    log.info("Created user username=%s is_admin=%s", username, is_admin)
    return user


async def update_user(session: AsyncSession, user: User, changes: UserUpdate) -> User:
    """
    Apply username / is_admin changes. Raises ValueError for a taken username and
    PermissionError when demoting the last admin. Caller must commit session.
    """
    if changes.username is not None and changes.username != user.username:
        if await get_user_by_username(session, changes.username):
            raise ValueError(f"Username already exists: {changes.username}")
        user.username = changes.username
    if changes.is_admin is not None and user.is_admin and not changes.is_admin:
        if await count_admins(session) <= 1:
            raise PermissionError("Cannot remove the last admin")
    if changes.is_admin is not None:
        user.is_admin = changes.is_admin
    await session.flush()
    return user


async def delete_user(session: AsyncSession, user: User) -> None:
    """Delete a user; refuses to delete the last admin (PermissionError)."""
    if user.is_admin and await count_admins(session) <= 1:
        raise PermissionError("Cannot delete the last admin")
    await session.delete(user)
    await session.flush()
    log.info("Deleted user username=%s", user.username)


async def user_stats(session: AsyncSession) -> dict:
    """Total users and how many are admins."""
    result = await session.execute(select(func.count(User.id)))
    total = int(result.scalar_one())
    return {"total_users": total, "admin_count": await count_admins(session)}


async def ensure_admin_exists(session: AsyncSession) -> None:
    """
    If FILEDOCK_ADMIN_USERNAME and FILEDOCK_ADMIN_INITIAL_PASSWORD are set
    and no user exists with that username, create the first admin user.
    """
    settings = get_settings()
    if not settings.admin_username or not settings.admin_initial_password:
        return
    existing = await get_user_by_username(session, settings.admin_username)
    if existing:
        return
    log.info("Creating bootstrap admin user username=%s", settings.admin_username)
    user = User(
        username=settings.admin_username,
        password_hash=hash_password(settings.admin_initial_password),
        is_admin=True,
    )
    session.add(user)
