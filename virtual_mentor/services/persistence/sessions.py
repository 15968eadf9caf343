"""Session persistence service."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.core.errors import ConflictError, NotFound
from virtual_mentor.db.models import CallSession, SessionMessage
from virtual_mentor.services.calls.models import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    CallStatus,
    SessionStatus,
)
from virtual_mentor.services.persistence.serializers import (
    session_message_to_dict,
    session_to_dict,
)
from virtual_mentor.services.realtime.feed import ChangeFeed, session_topic

logger = logging.getLogger(__name__)


class SessionPersistenceService:
    """Service for persisting call sessions and their chat messages.

    Every committed change is published on the change feed under
    ``session:{id}`` so live observers can mirror it.
    """

    def __init__(
        self,
        db: AsyncSession,
        feed: Optional[ChangeFeed] = None,
        clock: Clock = utcnow,
    ):
        self.db = db
        self.feed = feed
        self.clock = clock

    async def create_session(
        self,
        user_id: str,
        room_name: str,
        phone_number: str,
        notes: Optional[str] = None,
    ) -> CallSession:
        """Create a session in ``in-progress``/``initiating``.

        Raises ConflictError if another session already owns the room name.
        """
        now = self.clock()
        session = CallSession(
            user_id=user_id,
            room_name=room_name,
            phone_number=phone_number,
            status=SessionStatus.IN_PROGRESS.value,
            call_status=CallStatus.INITIATING.value,
            timestamp=now,
            updated_at=now,
            notes=notes,
        )
        self.db.add(session)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictError(
                "Room name already in use", details=f"roomName={room_name}"
            ) from e
        await self.db.refresh(session)
        await self._publish(session)
        return session

    async def get_session(self, session_id: str) -> Optional[CallSession]:
        """Get session by id."""
        return await self.db.get(CallSession, session_id, populate_existing=True)

    async def require_session(self, session_id: str) -> CallSession:
        session = await self.get_session(session_id)
        if session is None:
            raise NotFound("Session not found", details=f"sessionId={session_id}")
        return session

    async def get_session_by_room(self, room_name: str) -> Optional[CallSession]:
        """Get the most recent session for a room name."""
        result = await self.db.execute(
            select(CallSession)
            .where(CallSession.room_name == room_name)
            .order_by(CallSession.timestamp.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def list_open_sessions(self, started_before: datetime) -> List[CallSession]:
        """Sessions still waiting on a terminal event, created before a cutoff."""
        result = await self.db.execute(
            select(CallSession)
            .where(
                CallSession.status.in_(sorted(OPEN_STATUSES)),
                CallSession.timestamp < started_before,
            )
            .order_by(CallSession.timestamp)
        )
        return list(result.scalars().all())

    async def apply_transition(
        self,
        session_id: str,
        values: Dict[str, Any],
        *,
        require_unconnected: bool = False,
        require_call_status: Optional[str] = None,
    ) -> Optional[CallSession]:
        """Conditionally update a session that is not yet terminal.

        The guard is part of the UPDATE statement, so a duplicate or late
        event racing another writer can never overwrite a terminal status.
        Returns the refreshed session, or None when the guard rejected it.
        """
        conditions = [
            CallSession.id == session_id,
            CallSession.status.not_in(sorted(TERMINAL_STATUSES)),
        ]
        if require_unconnected:
            conditions.append(CallSession.connected_at.is_(None))
        if require_call_status is not None:
            conditions.append(CallSession.call_status == require_call_status)

        result = await self.db.execute(
            update(CallSession)
            .where(*conditions)
            .values(**values, updated_at=self.clock())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        if result.rowcount == 0:
            logger.debug(f"[SESSIONS] Guard rejected update - session: {session_id}, values: {sorted(values)}")
            return None

        session = await self.get_session(session_id)
        await self._publish(session)
        return session

    async def update_session(self, session_id: str, **values: Any) -> CallSession:
        """Unconditional field update for non-lifecycle fields (transcript, notes)."""
        session = await self.require_session(session_id)
        for key, value in values.items():
            setattr(session, key, value)
        session.updated_at = self.clock()
        await self.db.commit()
        await self.db.refresh(session)
        await self._publish(session)
        return session

    async def save_transcript(self, session_id: str, transcript: str) -> CallSession:
        return await self.update_session(session_id, transcript=transcript)

    async def add_message(
        self,
        session_id: str,
        text: str,
        sender: str,
        is_transcribing: bool = False,
    ) -> SessionMessage:
        """Append a chat turn to a session."""
        await self.require_session(session_id)
        message = SessionMessage(
            session_id=session_id,
            text=text,
            sender=sender,
            is_transcribing=is_transcribing,
            timestamp=self.clock(),
        )
        self.db.add(message)
        await self.db.commit()
        await self.db.refresh(message)
        if self.feed is not None:
            await self.feed.publish(
                session_topic(session_id),
                {"type": "message", "sessionId": session_id, "message": session_message_to_dict(message)},
            )
        return message

    async def list_messages(self, session_id: str) -> List[SessionMessage]:
        """Messages of a session, oldest first."""
        result = await self.db.execute(
            select(SessionMessage)
            .where(SessionMessage.session_id == session_id)
            .order_by(SessionMessage.timestamp.asc(), SessionMessage.seq.asc())
        )
        return list(result.scalars().all())

    async def _publish(self, session: CallSession) -> None:
        if self.feed is None:
            return
        await self.feed.publish(
            session_topic(session.id),
            {"type": "session", "session": session_to_dict(session)},
        )
