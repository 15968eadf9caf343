"""Call session statuses and helpers."""
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class SessionStatus(str, Enum):
    """Session lifecycle status."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    RINGING = "ringing"
    CONNECTED = "connected"
    COMPLETED = "completed"
    MISSED = "missed"
    ENDED = "ended"


class CallStatus(str, Enum):
    """Telephony leg status."""

    INITIATING = "initiating"
    RINGING = "ringing"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.ENDED.value, SessionStatus.MISSED.value, SessionStatus.COMPLETED.value}
)

# Sessions still waiting on a terminal webhook
OPEN_STATUSES = frozenset(
    {
        SessionStatus.IN_PROGRESS.value,
        SessionStatus.RINGING.value,
        SessionStatus.CONNECTED.value,
    }
)


def is_terminal(status: Optional[str]) -> bool:
    return status in TERMINAL_STATUSES


class ProjectionOutcome(str, Enum):
    """What the projector did with one webhook event."""

    APPLIED = "applied"
    IGNORED = "ignored"
    UNKNOWN_ROOM = "unknown_room"
    INFORMATIONAL = "informational"


@dataclass
class SipParticipant:
    """Phone leg as reported by the provider."""

    participant_id: str
    participant_identity: str
    room_name: str


def format_duration(seconds: int) -> str:
    """125 -> '2m 5s'."""
    return f"{seconds // 60}m {seconds % 60}s"


def append_note(existing: Optional[str], line: str) -> str:
    if existing:
        return f"{existing}\n\n{line}"
    return line
