"""Test doubles and helpers shared by the test modules."""
import base64
import hashlib
import json
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from livekit import api

from virtual_mentor.core.config import Settings
from virtual_mentor.services.calls.models import SipParticipant
from virtual_mentor.services.telephony.base import TelephonyProvider


TEST_API_KEY = "APItestkey"
TEST_API_SECRET = "test-secret-for-webhook-signatures-0123456789"
TEST_LIVEKIT_URL = "wss://mentor-test.livekit.cloud"
TEST_SIP_TRUNK_ID = "ST_testtrunk"
TEST_ADMIN_KEY = "admin-test-key"


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: datetime = datetime(2026, 1, 5, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += timedelta(seconds=seconds)


class FakeTelephony(TelephonyProvider):
    """In-memory telephony provider recording every call it receives."""

    def __init__(self):
        self.rooms: Dict[str, Dict[str, int]] = {}
        self.dials: List[Dict[str, str]] = []
        self.tokens: List[Dict[str, object]] = []
        self.configs = []
        self.deleted_rooms: List[str] = []

    async def create_room(self, room_name, empty_timeout, max_participants):
        self.rooms[room_name] = {
            "empty_timeout": empty_timeout,
            "max_participants": max_participants,
        }

    async def delete_room(self, room_name):
        self.rooms.pop(room_name, None)
        self.deleted_rooms.append(room_name)

    async def dial(self, room_name, phone_number, participant_identity, participant_name):
        self.dials.append(
            {
                "room_name": room_name,
                "phone_number": phone_number,
                "participant_identity": participant_identity,
                "participant_name": participant_name,
            }
        )
        return SipParticipant(
            participant_id=f"PA_{len(self.dials)}",
            participant_identity=participant_identity,
            room_name=room_name,
        )

    def mint_agent_token(self, room_name, identity, name, ttl):
        self.tokens.append({"room_name": room_name, "identity": identity, "name": name, "ttl": ttl})
        return f"token-for-{identity}"

    async def room_exists(self, room_name):
        return room_name in self.rooms

    def room_url(self, room_name):
        return f"{TEST_LIVEKIT_URL}/{room_name}"


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite+aiosqlite:///:memory:",
        livekit_api_key=TEST_API_KEY,
        livekit_api_secret=TEST_API_SECRET,
        livekit_url=TEST_LIVEKIT_URL,
        livekit_sip_trunk_id=TEST_SIP_TRUNK_ID,
        admin_api_key=TEST_ADMIN_KEY,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


def sign_webhook(body: bytes, api_key: str = TEST_API_KEY, api_secret: str = TEST_API_SECRET) -> str:
    """Authorization header value the way LiveKit signs deliveries."""
    digest = base64.b64encode(hashlib.sha256(body).digest()).decode()
    return api.AccessToken(api_key, api_secret).with_sha256(digest).to_jwt()


def webhook_body(
    event: str,
    room_name: str,
    identity: Optional[str] = None,
    room_duration: Optional[int] = None,
) -> bytes:
    payload = {
        "event": event,
        "id": f"EV_{event}",
        "createdAt": 1767603600,
        "room": {"sid": "RM_test", "name": room_name},
    }
    if identity is not None:
        payload["participant"] = {"sid": "PA_test", "identity": identity, "name": identity}
    if room_duration is not None:
        payload["room"]["duration"] = room_duration
    return json.dumps(payload).encode()


