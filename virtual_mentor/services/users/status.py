"""User call status for the admin view."""
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from virtual_mentor.db.models import Conversation, User
from virtual_mentor.services.persistence.conversations import ConversationPersistenceService
from virtual_mentor.services.persistence.serializers import user_to_dict
from virtual_mentor.services.persistence.users import UserPersistenceService


def derive_user_status(user: User, latest: Optional[Conversation]) -> str:
    """inactive | in-call | active, from the user's latest conversation."""
    if not user.phone or latest is None:
        return "inactive"
    if latest.status == "active":
        return "in-call"
    if latest.status == "completed":
        return "active"
    return "inactive"


async def list_users_with_status(db: AsyncSession) -> List[Dict[str, Any]]:
    users = UserPersistenceService(db)
    conversations = ConversationPersistenceService(db)
    result = []
    for user in await users.list_users():
        latest = None
        if user.phone:
            latest = await conversations.get_latest_for_phone(user.phone)
        result.append({**user_to_dict(user), "status": derive_user_status(user, latest)})
    return result
