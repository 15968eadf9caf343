"""Outbound call initiation."""
import logging
import re
from dataclasses import dataclass
from datetime import timedelta, timezone
from typing import Optional

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.core.config import Settings
from virtual_mentor.core.errors import InvalidRequest, ProviderError
from virtual_mentor.services.calls.models import (
    CallStatus,
    SessionStatus,
    SipParticipant,
    append_note,
)
from virtual_mentor.services.persistence.sessions import SessionPersistenceService
from virtual_mentor.services.telephony.base import TelephonyFactory, TelephonyProvider

logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


@dataclass
class InitiatedCall:
    session_id: str
    room_name: str
    phone_number: str
    room_url: str
    sip_participant: SipParticipant
    agent_token: str


def build_room_name(user_id: str, created_at_ms: int) -> str:
    return f"call-{user_id}-{created_at_ms}"


class CallInitiator:
    """Creates the room and session, then dials the phone leg.

    Not safe to retry blindly: a successful dial rings a real phone, so a
    caller that timed out must check for an existing session first.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionPersistenceService,
        telephony_factory: TelephonyFactory,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.sessions = sessions
        self.telephony_factory = telephony_factory
        self.clock = clock

    async def initiate(
        self,
        phone_number: Optional[str],
        user_id: Optional[str],
        user_name: Optional[str] = None,
    ) -> InitiatedCall:
        phone_number = (phone_number or "").strip()
        if not phone_number:
            raise InvalidRequest("Phone number is required")
        if not E164_PATTERN.match(phone_number):
            raise InvalidRequest(
                "Phone number must be in E.164 format", details="Expected e.g. +15551234567"
            )
        if not user_id:
            raise InvalidRequest("User ID is required")

        config = self.settings.livekit_config()
        telephony = self.telephony_factory(config)

        now = self.clock()
        room_name = build_room_name(user_id, int(now.replace(tzinfo=timezone.utc).timestamp() * 1000))
        logger.info(f"[CALL INITIATE] Creating room {room_name} for user {user_id}")

        try:
            await telephony.create_room(
                room_name,
                empty_timeout=self.settings.room_empty_timeout_seconds,
                max_participants=self.settings.room_max_participants,
            )
        except Exception as e:
            logger.error(
                f"[CALL INITIATE] Room creation failed - room: {room_name}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            raise ProviderError("Failed to initiate call", details=str(e)) from e

        try:
            session = await self.sessions.create_session(
                user_id=user_id,
                room_name=room_name,
                phone_number=phone_number,
                notes=f"Call initiated to {phone_number}",
            )
        except Exception as e:
            logger.error(
                f"[CALL INITIATE] Session creation failed - room: {room_name}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            await self._discard_room(telephony, room_name)
            raise
        logger.info(f"[CALL INITIATE] Session {session.id} created for room {room_name}")

        participant_identity = f"{self.settings.phone_identity_prefix}{user_id}"
        try:
            sip_participant = await telephony.dial(
                room_name,
                phone_number,
                participant_identity=participant_identity,
                participant_name=user_name or "User",
            )
        except Exception as e:
            logger.error(
                f"[CALL INITIATE] Dial failed - session: {session.id}, room: {room_name}, "
                f"Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
            await self._mark_dial_failed(session.id, session.notes, str(e))
            raise ProviderError("Failed to initiate call", details=str(e)) from e

        # A fast answer may already have moved the leg to connected
        await self.sessions.apply_transition(
            session.id,
            {"call_status": CallStatus.RINGING.value},
            require_call_status=CallStatus.INITIATING.value,
        )

        agent_token = telephony.mint_agent_token(
            room_name,
            identity=f"agent-{room_name}",
            name=self.settings.agent_name,
            ttl=timedelta(minutes=self.settings.agent_token_ttl_minutes),
        )
        logger.info(f"[CALL INITIATE] Calling {phone_number} - session: {session.id}, room: {room_name}")

        return InitiatedCall(
            session_id=session.id,
            room_name=room_name,
            phone_number=phone_number,
            room_url=telephony.room_url(room_name),
            sip_participant=sip_participant,
            agent_token=agent_token,
        )

    async def _mark_dial_failed(
        self, session_id: str, notes: Optional[str], error_message: str
    ) -> None:
        """Compensating update so a failed dial never leaves a live-looking session."""
        await self.sessions.apply_transition(
            session_id,
            {
                "status": SessionStatus.MISSED.value,
                "call_status": CallStatus.FAILED.value,
                "ended_at": self.clock(),
                "notes": append_note(notes, f"Call failed: {error_message}"),
            },
        )
        logger.info(f"[CALL INITIATE] Session {session_id} marked missed after dial failure")

    async def _discard_room(self, telephony: TelephonyProvider, room_name: str) -> None:
        """Delete a room no session refers to; the empty timeout reclaims it otherwise."""
        try:
            await telephony.delete_room(room_name)
            logger.info(f"[CALL INITIATE] Deleted orphaned room {room_name}")
        except Exception as e:
            logger.warning(
                f"[CALL INITIATE] Could not delete orphaned room {room_name} - "
                f"Error: {type(e).__name__}: {str(e)}"
            )
