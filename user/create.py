"""Create a new user module."""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.auth import get_password_hash
from app.core.custom_logging import logger
from app.core.errors import ConflictError
from app.models.users import User
from user.get import username_or_email_taken
from user.user import UserCreate


def _conflict(field: str) -> ConflictError:
    if field == "email":
        return ConflictError("Email already registered")
    return ConflictError("Username already taken")


async def create_user(db: AsyncSession, user: UserCreate) -> User:
    """
    Create a new user in the database.

    Ensures that the username and email are unique before adding the user.
    Handles race conditions gracefully by catching database-level integrity
    errors and mapping the violated constraint back to the field.

    Args:
        db (AsyncSession): The SQLAlchemy async database session.
        user (UserCreate): The input data for creating a user.

    Returns:
        User: The newly created user object.

    Raises:
        ConflictError: If the username or the email is already registered.
        IntegrityError: For any other integrity violation.

    Example:
        ```python
        new_user = await create_user(
            db,
            UserCreate(
                username="new_user",
                email="new_user@example.com",
                password="securepassword123",
            ),
        )
        ```
    """
    taken = await username_or_email_taken(db, user.username, user.email)
    if taken:
        raise _conflict(taken)

    db_user = User(
        username=user.username,
        email=user.email,
        hashed_password=get_password_hash(user.password),
        first_name=user.first_name or None,
        last_name=user.last_name or None,
    )

    try:
        db.add(db_user)
        await db.commit()
        await db.refresh(db_user)

    except IntegrityError as e:
        await db.rollback()
        logger.warning(
            "Database IntegrityError",
            extra={"constraint": str(e.orig), "username": user.username},
        )

        if "users_username_key" in str(e.orig) or "users.username" in str(e.orig):
            raise _conflict("username") from e
        if "users_email_key" in str(e.orig) or "users.email" in str(e.orig):
            raise _conflict("email") from e
        raise

    logger.info(f"Registered user {db_user.id} ({db_user.username})")
    return db_user
