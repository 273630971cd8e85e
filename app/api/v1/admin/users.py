from typing import Annotated

from fastapi import APIRouter
from fastapi import Depends
from fastapi import Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.session import get_db
from app.models.users import User
from audio.storage import StorageBackend
from audio.storage import get_storage
from audio.update import purge_inactive
from user.get import get_current_admin
from user.update import admin_update_user
from user.update import count_users
from user.update import list_users
from user.user import UserAdminUpdate
from user.user import UserAdminView

admin_router = APIRouter()


class UserList(BaseModel):
    items: list[UserAdminView]
    total: int


class PurgeResult(BaseModel):
    purged: int


@admin_router.get("/users", response_model=UserList)
async def read_users(
    db: Annotated[AsyncSession, Depends(get_db)],
    _: Annotated[User, Depends(get_current_admin)],
    limit: Annotated[int, Query(ge=1, le=100)] = 10,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """
    List all users with pagination. Accessible by admins only.

    Args:
        db: AsyncSession.
        _: Grants access only to admins.
        limit (int): Maximum number of users to return. Default is 10.
        offset (int): Number of users to skip before starting to collect the result.
        Default is 0.
    """
    users = await list_users(db, limit=limit, offset=offset)
    return UserList(
        items=[UserAdminView.model_validate(u) for u in users],
        total=await count_users(db),
    )


@admin_router.patch("/users/{user_id}", response_model=UserAdminView)
async def update_user(
    user_id: int,
    user_update: UserAdminUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    admin: Annotated[User, Depends(get_current_admin)],
):
    """
    Activate/deactivate a user or change their role. Only accessible by admins.
    """
    return await admin_update_user(db, admin, user_id, user_update)


@admin_router.post("/audio/purge", response_model=PurgeResult)
async def purge_deleted_audio(
    db: Annotated[AsyncSession, Depends(get_db)],
    storage: Annotated[StorageBackend, Depends(get_storage)],
    _: Annotated[User, Depends(get_current_admin)],
):
    """Remove the stored objects and rows of every soft-deleted clip."""
    return PurgeResult(purged=await purge_inactive(db, storage))
