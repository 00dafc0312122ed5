"""Profile of the logged-in user.

GET  /profile            Current user
POST /profile/password   Change own password
"""

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from dashboard.api.deps import get_current_user, get_session, get_users_service
from dashboard.auth.sessions import SessionData
from dashboard.db.models import User
from dashboard.services.users import UsersService

router = APIRouter()


class ProfileResponse(BaseModel):
    public_id: str
    username: str
    display_name: Optional[str]
    role: str
    oidc_user: bool
    created_at: datetime


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str
    repeat_password: str


@router.get("", response_model=ProfileResponse)
async def get_profile(user: User = Depends(get_current_user)):
    return ProfileResponse(
        public_id=user.public_id,
        username=user.username,
        display_name=user.display_name,
        role=user.role.value,
        oidc_user=user.oidc_subject is not None,
        created_at=user.created_at,
    )


@router.post("/password", status_code=204)
async def change_password(
    body: PasswordChangeRequest,
    session: SessionData = Depends(get_session),
    users: UsersService = Depends(get_users_service),
):
    await users.edit_user_password(session.public_id, body.model_dump())
