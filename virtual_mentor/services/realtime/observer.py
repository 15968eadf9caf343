"""Live observers that mirror stored records to a connected client.

Each observer owns its feed subscriptions. Selecting a new target always
unsubscribes first and bumps a generation counter; callbacks registered
under an older generation return without touching the view, so a client
never receives messages from a conversation it is no longer looking at.
"""
import logging
from dataclasses import asdict, dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from virtual_mentor.services.persistence.conversations import ConversationPersistenceService
from virtual_mentor.services.persistence.serializers import (
    conversation_message_to_dict,
    conversation_to_dict,
    session_message_to_dict,
    session_to_dict,
)
from virtual_mentor.services.persistence.sessions import SessionPersistenceService
from virtual_mentor.services.persistence.users import UserPersistenceService
from virtual_mentor.services.realtime.feed import (
    ChangeFeed,
    Unsubscribe,
    conversation_messages_topic,
    phone_conversations_topic,
    session_topic,
)

logger = logging.getLogger(__name__)

ViewCallback = Callable[[Dict[str, Any]], Awaitable[None]]


@dataclass
class ConversationView:
    conversation: Optional[Dict[str, Any]] = None
    messages: List[Dict[str, Any]] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class SessionView:
    session: Optional[Dict[str, Any]] = None
    messages: List[Dict[str, Any]] = field(default_factory=list)
    loading: bool = False
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ConversationObserver:
    """Follows the latest conversation of a user.

    user id -> users.phone -> latest conversation for that phone -> its
    messages, oldest first.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker,
        feed: ChangeFeed,
        on_change: Optional[ViewCallback] = None,
    ):
        self.session_factory = session_factory
        self.feed = feed
        self.on_change = on_change
        self.view = ConversationView()
        self.user_id: Optional[str] = None
        self.phone_number: Optional[str] = None
        self.conversation_id: Optional[str] = None
        self._generation = 0
        self._unsubscribe_conversations: Optional[Unsubscribe] = None
        self._unsubscribe_messages: Optional[Unsubscribe] = None

    async def select(self, user_id: Optional[str]) -> ConversationView:
        """Switch to a user. Existing subscriptions are cancelled first."""
        self._teardown()
        self._generation += 1
        generation = self._generation
        self.user_id = user_id.strip() if user_id and user_id.strip() else None

        if self.user_id is None:
            logger.info("[OBSERVER] No user selected")
            self.view = ConversationView()
            await self._emit(generation)
            return self.view

        logger.info(f"[OBSERVER] Selecting user {self.user_id}")
        self.view = ConversationView(loading=True)
        await self._emit(generation)

        try:
            async with self.session_factory() as db:
                user = await UserPersistenceService(db).get_user(self.user_id)
        except Exception as e:
            await self._fail(generation, e)
            return self.view

        if not self._is_current(generation):
            return self.view

        if user is None or not user.phone:
            logger.info(f"[OBSERVER] User {self.user_id} has no phone number on file")
            self.view = ConversationView()
            await self._emit(generation)
            return self.view

        self.phone_number = user.phone
        self._unsubscribe_conversations = self.feed.subscribe(
            phone_conversations_topic(self.phone_number),
            partial(self._on_conversation_change, generation),
        )
        await self._refresh_conversation(generation)
        return self.view

    async def close(self) -> None:
        """Tear down all subscriptions; later callbacks are dropped."""
        self._teardown()
        self._generation += 1
        logger.info(f"[OBSERVER] Closed observer for user {self.user_id}")

    def _teardown(self) -> None:
        if self._unsubscribe_messages is not None:
            self._unsubscribe_messages()
            self._unsubscribe_messages = None
        if self._unsubscribe_conversations is not None:
            self._unsubscribe_conversations()
            self._unsubscribe_conversations = None
        self.phone_number = None
        self.conversation_id = None

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def _on_conversation_change(self, generation: int, change: Dict[str, Any]) -> None:
        if not self._is_current(generation):
            return
        await self._refresh_conversation(generation)

    async def _on_messages_change(
        self, generation: int, conversation_id: str, change: Dict[str, Any]
    ) -> None:
        if not self._is_current(generation) or conversation_id != self.conversation_id:
            return
        try:
            async with self.session_factory() as db:
                messages = await ConversationPersistenceService(db).list_messages(conversation_id)
        except Exception as e:
            await self._fail(generation, e)
            return
        if not self._is_current(generation) or conversation_id != self.conversation_id:
            return
        self.view.messages = [conversation_message_to_dict(m) for m in messages]
        self.view.error = None
        await self._emit(generation)

    async def _refresh_conversation(self, generation: int) -> None:
        phone_number = self.phone_number
        try:
            async with self.session_factory() as db:
                conversations = ConversationPersistenceService(db)
                conversation = await conversations.get_latest_for_phone(phone_number)
                messages = []
                if conversation is not None:
                    messages = await conversations.list_messages(conversation.id)
                conversation_data = conversation_to_dict(conversation) if conversation else None
                message_data = [conversation_message_to_dict(m) for m in messages]
        except Exception as e:
            await self._fail(generation, e)
            return

        if not self._is_current(generation):
            return

        new_id = conversation_data["id"] if conversation_data else None
        if new_id != self.conversation_id:
            if self._unsubscribe_messages is not None:
                self._unsubscribe_messages()
                self._unsubscribe_messages = None
            self.conversation_id = new_id
            if new_id is not None:
                logger.info(f"[OBSERVER] Following conversation {new_id} for user {self.user_id}")
                self._unsubscribe_messages = self.feed.subscribe(
                    conversation_messages_topic(new_id),
                    partial(self._on_messages_change, generation, new_id),
                )

        self.view = ConversationView(conversation=conversation_data, messages=message_data)
        await self._emit(generation)

    async def _fail(self, generation: int, error: Exception) -> None:
        logger.error(
            f"[OBSERVER] Listener error for user {self.user_id} - "
            f"Error: {type(error).__name__}: {str(error)}",
            exc_info=True,
        )
        if not self._is_current(generation):
            return
        self.view = ConversationView(
            conversation=self.view.conversation,
            messages=self.view.messages,
            loading=False,
            error=str(error),
        )
        await self._emit(generation)

    async def _emit(self, generation: int) -> None:
        if self.on_change is not None and self._is_current(generation):
            await self.on_change(self.view.to_dict())


class SessionWatcher:
    """Mirrors one session record and its chat messages."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        feed: ChangeFeed,
        on_change: Optional[ViewCallback] = None,
    ):
        self.session_factory = session_factory
        self.feed = feed
        self.on_change = on_change
        self.view = SessionView()
        self.session_id: Optional[str] = None
        self._generation = 0
        self._unsubscribe: Optional[Unsubscribe] = None

    async def watch(self, session_id: str) -> SessionView:
        await self.close()
        generation = self._generation
        self.session_id = session_id
        self.view = SessionView(loading=True)
        await self._emit(generation)
        self._unsubscribe = self.feed.subscribe(
            session_topic(session_id), partial(self._on_change, generation)
        )
        await self._refresh(generation)
        return self.view

    async def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._generation += 1

    async def _on_change(self, generation: int, change: Dict[str, Any]) -> None:
        if generation == self._generation:
            await self._refresh(generation)

    async def _refresh(self, generation: int) -> None:
        try:
            async with self.session_factory() as db:
                sessions = SessionPersistenceService(db)
                session = await sessions.get_session(self.session_id)
                messages = await sessions.list_messages(self.session_id) if session else []
                view = SessionView(
                    session=session_to_dict(session) if session else None,
                    messages=[session_message_to_dict(m) for m in messages],
                    error=None if session else "Session not found",
                )
        except Exception as e:
            logger.error(
                f"[OBSERVER] Session refresh failed - session: {self.session_id}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            view = SessionView(session=self.view.session, messages=self.view.messages, error=str(e))

        if generation != self._generation:
            return
        self.view = view
        await self._emit(generation)

    async def _emit(self, generation: int) -> None:
        if self.on_change is not None and generation == self._generation:
            await self.on_change(self.view.to_dict())
