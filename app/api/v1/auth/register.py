from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.auth import create_access_token
from app.core.config import settings
from app.db.session import get_db
from user.create import create_user
from user.update import record_login
from user.user import AuthResponse
from user.user import UserCreate
from user.user import UserPublic

user_register_router = APIRouter()


@user_register_router.post(
    "/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED
)
async def register_user(
    user: UserCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Register a new user in the system.

    This endpoint creates a new user by first ensuring that the username and email
    are unique. Then, it proceeds with hashing the password and storing the user's
    data in the database. The response carries an access token, so a client is
    signed in right after registering.

    Args:
        user (UserCreate): username, email, password and optional names.
        db (AsyncSession): The database session used to interact with the database.

    Returns:
        AuthResponse: Access token plus the public profile of the new user.

    Raises:
        ConflictError: If the username or email is already taken.
    """
    db_user = await create_user(db, user)
    db_user = await record_login(db, db_user)
    return AuthResponse(
        message="User registered successfully.",
        token=create_access_token(db_user.id),
        token_type=settings.TOKEN_TYPE,
        user=UserPublic.model_validate(db_user),
    )
