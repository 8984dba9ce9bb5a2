import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from chatline.api.dependencies import CurrentUser
from chatline.core.database import get_db
from chatline.core.messages import REG_USERNAME_TAKEN, USER_NOT_FOUND, USER_STATUS_FAILED
from chatline.models.user import UserStatus
from chatline.realtime import PresenceUpdateError, gateway
from chatline.users.schemas import ProfileUpdate, StatusOut, StatusUpdate, UserPublic
from chatline.users.service import UserService


router = APIRouter(prefix="/users", tags=["users"])


@router.get("")
def list_users(
    current_user: CurrentUser,
    status: Optional[UserStatus] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
):
    users = UserService.list_users(db, status=status, search=search)
    return [UserPublic.model_validate(user).to_wire() for user in users]


@router.patch("/profile")
def update_profile(
    payload: ProfileUpdate,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    if payload.username and UserService.username_taken(db, payload.username, exclude_user_id=current_user.id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=REG_USERNAME_TAKEN)

    updates = payload.model_dump(exclude_unset=True)
    if updates.get("avatar_url") is not None:
        updates["avatar_url"] = str(updates["avatar_url"])

    user = UserService.update_profile(db, current_user, **updates)
    return UserPublic.model_validate(user).to_wire()


@router.patch("/status")
async def update_status(payload: StatusUpdate, current_user: CurrentUser):
    """Change presence; every live connection is told, same as ``status:update``."""
    try:
        presence = await gateway.presence.set_status(
            current_user.id, payload.status, require_persisted=True
        )
    except PresenceUpdateError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=USER_STATUS_FAILED,
        )
    return StatusOut(
        id=current_user.id,
        status=payload.status,
        last_seen=presence["lastSeen"],
    ).to_wire()


@router.get("/{user_id}")
def get_user(
    user_id: uuid.UUID,
    current_user: CurrentUser,
    db: Session = Depends(get_db),
):
    user = UserService.get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=USER_NOT_FOUND)
    return UserPublic.model_validate(user).to_wire()
