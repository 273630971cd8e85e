"""Profile, password and account-status changes."""

from datetime import UTC
from datetime import datetime

from sqlalchemy import func
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.auth import get_password_hash
from app.auth.auth import verify_password
from app.core.custom_logging import logger
from app.core.errors import AuthError
from app.core.errors import PermissionDeniedError
from app.core.errors import UserNotFoundError
from app.models.users import User
from user.user import PasswordChange
from user.user import UserAdminUpdate
from user.user import UserProfileUpdate


async def record_login(db: AsyncSession, user: User) -> User:
    user.last_login = datetime.now(UTC)
    await db.commit()
    await db.refresh(user)
    return user


async def update_profile(db: AsyncSession, user: User, changes: UserProfileUpdate) -> User:
    """Apply the profile fields present in ``changes``; absent fields stay untouched."""
    for key, value in changes.model_dump(exclude_unset=True, mode="json").items():
        if key in ("default_mood", "auto_playlist") and value is None:
            continue
        if key == "favorite_genres":
            value = list(dict.fromkeys(value or []))
        setattr(user, key, value)

    await db.commit()
    await db.refresh(user)
    logger.info(f"User {user.id} updated profile")
    return user


async def change_password(db: AsyncSession, user: User, change: PasswordChange) -> None:
    """
    Replace the password after checking the current one.

    Raises:
        AuthError: ``current_password`` does not match.
    """
    if not verify_password(change.current_password, user.hashed_password):
        raise AuthError("Current password is incorrect")
    user.hashed_password = get_password_hash(change.new_password)
    await db.commit()
    logger.info(f"User {user.id} changed password")


async def deactivate_user(db: AsyncSession, user: User, password: str) -> None:
    """Self-service deactivation; the account's audio is left in place."""
    if not verify_password(password, user.hashed_password):
        raise AuthError("Password is incorrect")
    user.is_active = False
    await db.commit()
    logger.info(f"User {user.id} deactivated their account")


async def list_users(db: AsyncSession, limit: int = 10, offset: int = 0) -> list[User]:
    result = await db.execute(select(User).order_by(User.id).limit(limit).offset(offset))
    return list(result.scalars().all())


async def count_users(db: AsyncSession) -> int:
    return await db.scalar(select(func.count(User.id))) or 0


async def admin_update_user(
    db: AsyncSession, admin: User, user_id: int, changes: UserAdminUpdate
) -> User:
    """
    Change another account's status or role.

    Raises:
        UserNotFoundError: No user with ``user_id``.
        PermissionDeniedError: An admin tried to demote or deactivate themselves.
    """
    user = await db.get(User, user_id)
    if user is None:
        raise UserNotFoundError(f"User with ID {user_id} not found.")

    values = changes.model_dump(exclude_unset=True, exclude_none=True)
    if user.id == admin.id and values:
        raise PermissionDeniedError("Admins cannot change their own status or role")

    for key, value in values.items():
        setattr(user, key, value)

    await db.commit()
    await db.refresh(user)
    logger.info(f"Admin {admin.id} updated user {user.id}: {values}")
    return user
