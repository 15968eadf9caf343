"""Session projector.

Maps verified webhook events onto session state transitions. Events for a
room are correlated to a session by room name only. Delivery is
at-least-once and unordered, so every transition is guarded:

    participant_joined (phone leg)  -> connected      once, from a non-connected, non-terminal state
    participant_left   (phone leg)  -> ended          from any non-terminal state
    room_finished                   -> completed      from any non-terminal state
    room_started                    -> informational

Terminal states (ended, missed, completed) are never overwritten.
"""
import logging
from datetime import datetime
from typing import Optional

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.db.models import CallSession
from virtual_mentor.services.calls.models import (
    CallStatus,
    ProjectionOutcome,
    SessionStatus,
    append_note,
    format_duration,
    is_terminal,
)
from virtual_mentor.services.persistence.sessions import SessionPersistenceService
from virtual_mentor.services.webhooks.events import (
    ParticipantJoinedEvent,
    ParticipantLeftEvent,
    RoomFinishedEvent,
    RoomStartedEvent,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    return max(0, int((end - start).total_seconds()))


class SessionProjector:
    """Applies webhook events to session records."""

    def __init__(
        self,
        sessions: SessionPersistenceService,
        phone_identity_prefix: str = "phone-",
        clock: Clock = utcnow,
    ):
        self.sessions = sessions
        self.phone_identity_prefix = phone_identity_prefix
        self.clock = clock

    async def apply(self, event: WebhookEvent) -> ProjectionOutcome:
        """Apply one event. Persistence errors propagate to the caller."""
        if isinstance(event, RoomStartedEvent):
            return await self._room_started(event)
        elif isinstance(event, RoomFinishedEvent):
            return await self._room_finished(event)
        elif isinstance(event, ParticipantJoinedEvent):
            return await self._participant_joined(event)
        elif isinstance(event, ParticipantLeftEvent):
            return await self._participant_left(event)

        logger.info(f"[PROJECTOR] Unhandled event type: {event.event}")
        return ProjectionOutcome.INFORMATIONAL

    def is_phone_leg(self, identity: str) -> bool:
        return identity.startswith(self.phone_identity_prefix)

    async def _find_session(self, room_name: str) -> Optional[CallSession]:
        session = await self.sessions.get_session_by_room(room_name)
        if session is None:
            logger.warning(f"[PROJECTOR] No session found for room: {room_name}")
        return session

    async def _room_started(self, event: RoomStartedEvent) -> ProjectionOutcome:
        session = await self._find_session(event.room.name)
        if session is None:
            return ProjectionOutcome.UNKNOWN_ROOM
        logger.info(
            f"[PROJECTOR] Room started - room: {event.room.name}, "
            f"session: {session.id}, status: {session.status}"
        )
        return ProjectionOutcome.INFORMATIONAL

    async def _participant_joined(self, event: ParticipantJoinedEvent) -> ProjectionOutcome:
        identity = event.participant.identity
        if not self.is_phone_leg(identity):
            logger.info(f"[PROJECTOR] Participant joined (not a phone leg) - identity: {identity}, room: {event.room.name}")
            return ProjectionOutcome.INFORMATIONAL

        session = await self._find_session(event.room.name)
        if session is None:
            return ProjectionOutcome.UNKNOWN_ROOM

        if is_terminal(session.status) or session.connected_at is not None:
            logger.info(
                f"[PROJECTOR] Ignoring duplicate/late join - session: {session.id}, "
                f"status: {session.status}, connected_at: {session.connected_at}"
            )
            return ProjectionOutcome.IGNORED

        now = self.clock()
        updated = await self.sessions.apply_transition(
            session.id,
            {
                "status": SessionStatus.CONNECTED.value,
                "call_status": CallStatus.CONNECTED.value,
                "connected_at": now,
                "notes": append_note(
                    session.notes, f"User answered the call at {now.strftime('%H:%M:%S')}"
                ),
            },
            require_unconnected=True,
        )
        if updated is None:
            return ProjectionOutcome.IGNORED

        logger.info(f"[PROJECTOR] Session connected - session: {session.id}, identity: {identity}")
        return ProjectionOutcome.APPLIED

    async def _participant_left(self, event: ParticipantLeftEvent) -> ProjectionOutcome:
        identity = event.participant.identity
        if not self.is_phone_leg(identity):
            logger.info(f"[PROJECTOR] Participant left (not a phone leg) - identity: {identity}, room: {event.room.name}")
            return ProjectionOutcome.INFORMATIONAL

        session = await self._find_session(event.room.name)
        if session is None:
            return ProjectionOutcome.UNKNOWN_ROOM

        if is_terminal(session.status):
            logger.info(f"[PROJECTOR] Ignoring late leave - session: {session.id}, status: {session.status}")
            return ProjectionOutcome.IGNORED

        now = self.clock()
        duration = None
        if session.connected_at is not None:
            duration = elapsed_seconds(session.connected_at, now)

        if duration is not None:
            notes = f"Call ended - Duration: {format_duration(duration)}"
        else:
            notes = "Call ended without connection"

        updated = await self.sessions.apply_transition(
            session.id,
            {
                "status": SessionStatus.ENDED.value,
                "call_status": CallStatus.DISCONNECTED.value,
                "ended_at": now,
                "duration": duration,
                "notes": notes,
            },
        )
        if updated is None:
            return ProjectionOutcome.IGNORED

        logger.info(f"[PROJECTOR] Session ended - session: {session.id}, duration: {duration}")
        return ProjectionOutcome.APPLIED

    async def _room_finished(self, event: RoomFinishedEvent) -> ProjectionOutcome:
        session = await self._find_session(event.room.name)
        if session is None:
            return ProjectionOutcome.UNKNOWN_ROOM

        # The phone leg usually ends the session first; the room closing later
        # must not turn "ended" or "missed" into "completed".
        if is_terminal(session.status):
            logger.info(f"[PROJECTOR] Room finished after terminal state - session: {session.id}, status: {session.status}")
            return ProjectionOutcome.IGNORED

        now = self.clock()
        values = {
            "status": SessionStatus.COMPLETED.value,
            "call_status": CallStatus.DISCONNECTED.value,
            "ended_at": now,
            "notes": append_note(session.notes, f"Room closed at {now.isoformat()}"),
        }
        if session.connected_at is not None:
            values["duration"] = elapsed_seconds(session.connected_at, now)
        elif event.room.duration is not None:
            values["duration"] = max(0, event.room.duration)

        updated = await self.sessions.apply_transition(session.id, values)
        if updated is None:
            return ProjectionOutcome.IGNORED

        logger.info(f"[PROJECTOR] Session completed - session: {session.id}")
        return ProjectionOutcome.APPLIED
