from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.auth import create_access_token
from app.auth.token_schema import Token
from app.core.config import settings
from app.core.custom_logging import logger
from app.db.session import get_db
from app.models.users import User
from user.get import authenticate_user
from user.get import get_current_active_user
from user.update import record_login
from user.user import AuthResponse
from user.user import MessageResponse
from user.user import TokenResponse
from user.user import UserLogin
from user.user import UserPublic

user_token_router = APIRouter()


@user_token_router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    db: Annotated[AsyncSession, Depends(get_db)],
):
    """
    Sign in with a username or email plus password.

    Raises:
        AuthError: 401 if the credentials are wrong or the account is deactivated.
    """
    user = await authenticate_user(db, credentials.credential, credentials.password)
    user = await record_login(db, user)

    logger.info(f"Successful login for user: {user.username}")
    return AuthResponse(
        message="Login successful.",
        token=create_access_token(user.id),
        token_type=settings.TOKEN_TYPE,
        user=UserPublic.model_validate(user),
    )


@user_token_router.post("/token")
async def login_for_access_token(
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> Token:
    """
    OAuth2 password flow used by the interactive docs.

    Args:
        form_data: ``username`` holds the username or email.
        db: Database session

    Returns:
        Token: JWT access token

    Raises:
        AuthError: 401 if authentication fails
    """
    user = await authenticate_user(db, form_data.username, form_data.password)
    await record_login(db, user)
    return Token(access_token=create_access_token(user.id), token_type=settings.TOKEN_TYPE)


@user_token_router.post("/refresh", response_model=TokenResponse)
async def refresh_token(
    current_user: Annotated[User, Depends(get_current_active_user)],
):
    return TokenResponse(
        message="Token refreshed successfully.",
        token=create_access_token(current_user.id),
        token_type=settings.TOKEN_TYPE,
    )


@user_token_router.post("/logout", response_model=MessageResponse)
async def logout(
    current_user: Annotated[User, Depends(get_current_active_user)],
):
    """Tokens are stateless; the client discards its copy."""
    logger.info(f"User {current_user.id} logged out")
    return MessageResponse(message="Logged out successfully.")
