from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.users import User
from user.get import get_current_active_user
from user.update import change_password
from user.update import deactivate_user
from user.update import update_profile
from user.user import DeactivateRequest
from user.user import MessageResponse
from user.user import PasswordChange
from user.user import UserProfileUpdate
from user.user import UserPublic

user_me_router = APIRouter()


@user_me_router.get("/profile", response_model=UserPublic)
async def read_profile(
    current_user: Annotated[User, Depends(get_current_active_user)],
):
    return current_user


@user_me_router.put("/profile", response_model=UserPublic)
async def update_own_profile(
    changes: UserProfileUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_active_user)],
):
    """
    Allow a user to update their own profile: names, bio, favourite genres,
    default mood and the auto playlist flag.

    Args:
        changes (UserProfileUpdate): Fields to change; omitted fields are kept.
        db (AsyncSession): Database session.
        current_user (User): Current authenticated user.

    Returns:
        UserPublic: The updated profile.
    """
    return await update_profile(db, current_user, changes)


@user_me_router.post("/change-password", response_model=MessageResponse)
async def change_own_password(
    change: PasswordChange,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_active_user)],
):
    await change_password(db, current_user, change)
    return MessageResponse(message="Password changed successfully.")


@user_me_router.post("/deactivate", response_model=MessageResponse)
async def deactivate_account(
    request: DeactivateRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_active_user)],
):
    """Deactivate the caller's account; later requests with its tokens get 401."""
    await deactivate_user(db, current_user, request.password)
    return MessageResponse(message="Account deactivated successfully.")
