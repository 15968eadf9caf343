"""User profile endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from virtual_mentor.api.schemas import CamelModel
from virtual_mentor.core.dependencies import get_user_service
from virtual_mentor.core.errors import NotFound
from virtual_mentor.services.persistence.serializers import user_to_dict
from virtual_mentor.services.persistence.users import UserPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)


class UserProfileRequest(CamelModel):
    """Profile fields; omitted fields are left unchanged."""
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    timezone: Optional[str] = None
    schedule_time: Optional[str] = None


@router.get("/api/users/{uid}")
async def get_user(
    uid: str,
    users: UserPersistenceService = Depends(get_user_service),
):
    user = await users.get_user(uid)
    if user is None:
        raise NotFound("User not found", details=f"uid={uid}")
    return {"user": user_to_dict(user)}


@router.put("/api/users/{uid}")
async def put_user(
    uid: str,
    body: UserProfileRequest,
    users: UserPersistenceService = Depends(get_user_service),
):
    fields = body.model_dump(exclude_unset=True)
    user = await users.upsert_user(uid, **fields)
    logger.info(f"[USERS] Profile saved for {uid} - fields: {sorted(fields)}")
    return {"user": user_to_dict(user)}
