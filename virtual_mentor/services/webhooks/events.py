"""Typed LiveKit webhook events.

Four lifecycle kinds carry a required-fields contract; any other kind is
kept as an ``UnhandledEvent`` so new provider event types are acknowledged
rather than rejected.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from virtual_mentor.core.errors import InvalidRequest


class RoomInfo(BaseModel):
    """Room fields the projector relies on."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(min_length=1)
    sid: Optional[str] = None
    num_participants: Optional[int] = Field(default=None, alias="numParticipants")
    # Seconds, when the provider reports it
    duration: Optional[int] = None


class ParticipantInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    identity: str = Field(min_length=1)
    sid: Optional[str] = None
    name: Optional[str] = None


class BaseEvent(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    created_at: Optional[int] = Field(default=None, alias="createdAt")


class RoomStartedEvent(BaseEvent):
    event: Literal["room_started"]
    room: RoomInfo


class RoomFinishedEvent(BaseEvent):
    event: Literal["room_finished"]
    room: RoomInfo


class ParticipantJoinedEvent(BaseEvent):
    event: Literal["participant_joined"]
    room: RoomInfo
    participant: ParticipantInfo


class ParticipantLeftEvent(BaseEvent):
    event: Literal["participant_left"]
    room: RoomInfo
    participant: ParticipantInfo


class UnhandledEvent(BaseModel):
    """Any event kind the projector does not act on (track_published, egress_*, ...)."""

    event: str
    payload: Dict[str, Any] = Field(default_factory=dict)


LifecycleEvent = Annotated[
    Union[RoomStartedEvent, RoomFinishedEvent, ParticipantJoinedEvent, ParticipantLeftEvent],
    Field(discriminator="event"),
]
WebhookEvent = Union[
    RoomStartedEvent,
    RoomFinishedEvent,
    ParticipantJoinedEvent,
    ParticipantLeftEvent,
    UnhandledEvent,
]

LIFECYCLE_EVENT_KINDS = frozenset(
    {"room_started", "room_finished", "participant_joined", "participant_left"}
)

_lifecycle_adapter = TypeAdapter(LifecycleEvent)


def parse_event(payload: Any) -> WebhookEvent:
    """Turn a decoded webhook body into a typed event.

    Raises InvalidRequest when the body has no event kind, or when a
    lifecycle kind is missing one of its required fields.
    """
    if not isinstance(payload, dict):
        raise InvalidRequest("Webhook body must be a JSON object")

    kind = payload.get("event")
    if not isinstance(kind, str) or not kind:
        raise InvalidRequest("Webhook event kind is missing")

    if kind not in LIFECYCLE_EVENT_KINDS:
        return UnhandledEvent(event=kind, payload=payload)

    try:
        return _lifecycle_adapter.validate_python(payload)
    except ValidationError as e:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        raise InvalidRequest(
            f"Malformed {kind} event", details=f"Invalid or missing fields: {fields}"
        ) from e
