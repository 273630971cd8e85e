"""Get current authorized user module."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi import Security
from fastapi.security import SecurityScopes
from sqlalchemy import func
from sqlalchemy import or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from app.auth.auth import decode_access_token
from app.auth.auth import verify_password
from app.auth.token_schema import oauth2_scheme
from app.core.errors import AuthError
from app.core.errors import PermissionDeniedError
from app.db.session import get_db
from app.models.users import User
from user.user import Role


def scopes_for(user: User) -> set[str]:
    """Scopes follow the user's current role, not the role at token issue time."""
    scopes = {"me"}
    if user.role == Role.ADMIN:
        scopes.add("admin")
    return scopes


async def get_user(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_credential(db: AsyncSession, credential: str) -> User | None:
    """
    Retrieve a user by username or (case-insensitively) by email.

    Args:
        db (AsyncSession): The database session to use for queries.
        credential (str): Username or email address.

    Returns:
        User | None: The user object if found, otherwise None.
    """
    credential = credential.strip()
    stmt = select(User).where(
        or_(User.username == credential, User.email == credential.lower())
    )
    result = await db.execute(stmt)
    return result.scalars().first()


async def authenticate_user(db: AsyncSession, credential: str, password: str) -> User:
    """
    Resolve a username-or-email plus password to an active user.

    Raises:
        AuthError: Unknown credential, wrong password, or deactivated account.
    """
    user = await get_user_by_credential(db, credential)
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthError("Invalid credentials.")
    if not user.is_active:
        raise AuthError("Account is deactivated. Please contact support.")
    return user


async def verify_token(db: AsyncSession, token: str | None) -> User:
    """
    Map a bearer token to its user.

    Raises:
        AuthError: No token, an invalid or expired token, or an unknown user.
    """
    if not token:
        raise AuthError("Authorization token required")
    token_data = decode_access_token(token)
    user = await get_user(db, token_data.user_id)
    if user is None:
        raise AuthError("User not found")
    return user


async def get_current_user(
    security_scopes: SecurityScopes,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Retrieve the user behind the bearer token and check the requested scopes.

    Raises:
        AuthError: Missing or invalid credentials.
        PermissionDeniedError: A requested scope is not granted to the user.
    """
    user = await verify_token(db, token)

    granted = scopes_for(user)
    for scope in security_scopes.scopes:
        if scope not in granted:
            raise PermissionDeniedError("Not enough permissions")

    return user


async def get_current_active_user(
    current_user: Annotated[User, Security(get_current_user, scopes=["me"])],
) -> User:
    """
    Retrieve the current user, ensuring the account has not been deactivated.

    Raises:
        AuthError: The account is deactivated.
    """
    if not current_user.is_active:
        raise AuthError("Account is deactivated.")
    return current_user


async def get_current_admin(
    current_user: Annotated[User, Security(get_current_user, scopes=["admin"])],
) -> User:
    if not current_user.is_active:
        raise AuthError("Account is deactivated.")
    return current_user


async def get_optional_user(
    token: Annotated[str | None, Depends(oauth2_scheme)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User | None:
    """The active user when a valid token is sent; None when no token is sent."""
    if not token:
        return None
    user = await verify_token(db, token)
    if not user.is_active:
        raise AuthError("Account is deactivated.")
    return user


async def username_or_email_taken(db: AsyncSession, username: str, email: str) -> str | None:
    """Return which of the two is already registered, if any."""
    result = await db.execute(
        select(User.username, User.email).where(
            or_(func.lower(User.username) == username.lower(), User.email == email)
        )
    )
    row = result.first()
    if row is None:
        return None
    return "email" if row.email == email else "username"
