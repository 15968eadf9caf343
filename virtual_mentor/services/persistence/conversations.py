"""Conversation persistence service."""
import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.core.errors import NotFound
from virtual_mentor.db.models import Conversation, ConversationMessage
from virtual_mentor.services.persistence.serializers import (
    conversation_message_to_dict,
    conversation_to_dict,
)
from virtual_mentor.services.realtime.feed import (
    ChangeFeed,
    conversation_messages_topic,
    phone_conversations_topic,
)

logger = logging.getLogger(__name__)


class ConversationPersistenceService:
    """Service for the transcript records written by the voice agent."""

    def __init__(
        self,
        db: AsyncSession,
        feed: Optional[ChangeFeed] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.feed = feed
        self.clock = clock

    async def create_conversation(
        self,
        phone_number: str,
        room_name: Optional[str] = None,
        job_id: Optional[str] = None,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> Conversation:
        now = self.clock()
        conversation = Conversation(
            phone_number=phone_number,
            room_name=room_name,
            job_id=job_id,
            user_id=user_id,
            user_name=user_name,
            status="active",
            started_at=now,
            updated_at=now,
        )
        self.db.add(conversation)
        await self.db.commit()
        await self.db.refresh(conversation)
        await self._publish_conversation(conversation)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Conversation]:
        return await self.db.get(Conversation, conversation_id, populate_existing=True)

    async def require_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFound(
                "Conversation not found", details=f"conversationId={conversation_id}"
            )
        return conversation

    async def get_latest_for_phone(self, phone_number: str) -> Optional[Conversation]:
        """Most recently started conversation for a phone number."""
        result = await self.db.execute(
            select(Conversation)
            .where(Conversation.phone_number == phone_number)
            .order_by(Conversation.started_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def add_message(
        self,
        conversation_id: str,
        message: str,
        role: str,
        user_id: Optional[str] = None,
    ) -> ConversationMessage:
        """Append a message and roll the conversation's last_message fields forward."""
        conversation = await self.require_conversation(conversation_id)
        now = self.clock()
        record = ConversationMessage(
            conversation_id=conversation_id,
            message=message,
            role=role,
            user_id=user_id,
            timestamp=now,
        )
        self.db.add(record)
        await self.db.flush()

        conversation.last_message = message
        conversation.last_message_at = now
        conversation.last_message_role = role
        conversation.last_message_id = record.id
        conversation.updated_at = now
        await self.db.commit()
        await self.db.refresh(record)
        await self.db.refresh(conversation)

        if self.feed is not None:
            await self.feed.publish(
                conversation_messages_topic(conversation_id),
                {
                    "type": "message",
                    "conversationId": conversation_id,
                    "message": conversation_message_to_dict(record),
                },
            )
        await self._publish_conversation(conversation)
        return record

    async def end_conversation(self, conversation_id: str) -> Conversation:
        conversation = await self.require_conversation(conversation_id)
        if conversation.status != "completed":
            now = self.clock()
            conversation.status = "completed"
            conversation.ended_at = now
            conversation.updated_at = now
            await self.db.commit()
            await self.db.refresh(conversation)
            await self._publish_conversation(conversation)
        return conversation

    async def list_messages(
        self, conversation_id: str, limit: Optional[int] = None
    ) -> List[ConversationMessage]:
        """Messages of a conversation, oldest first."""
        query = (
            select(ConversationMessage)
            .where(ConversationMessage.conversation_id == conversation_id)
            .order_by(ConversationMessage.timestamp.asc(), ConversationMessage.seq.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _publish_conversation(self, conversation: Conversation) -> None:
        if self.feed is None:
            return
        await self.feed.publish(
            phone_conversations_topic(conversation.phone_number),
            {"type": "conversation", "conversation": conversation_to_dict(conversation)},
        )
