"""API tests for outbound call initiation."""
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from tests.support import TEST_SIP_TRUNK_ID, make_settings
from virtual_mentor.core.errors import ConflictError
from virtual_mentor.core.dependencies import get_settings
from virtual_mentor.main import app
from virtual_mentor.services.calls.initiator import build_room_name
from virtual_mentor.services.persistence.sessions import SessionPersistenceService

EXPECTED_ROOM = "call-user-1-1767603600000"


def initiate(api_client, **overrides):
    body = {"phoneNumber": "+15551234567", "userId": "user-1", "userName": "Jane"}
    body.update(overrides)
    return api_client.post("/api/call/initiate", json=body)


class TestInitiateValidation:
    """Test request validation."""

    @pytest.mark.asyncio
    async def test_missing_phone_number(self, api_client, fake_telephony):
        response = await initiate(api_client, phoneNumber=None)

        assert response.status_code == 400
        assert response.json() == {"error": "Phone number is required"}
        assert fake_telephony.rooms == {}

    @pytest.mark.asyncio
    async def test_phone_number_not_e164(self, api_client, fake_telephony):
        response = await initiate(api_client, phoneNumber="555-1234")

        assert response.status_code == 400
        assert response.json()["error"] == "Phone number must be in E.164 format"
        assert fake_telephony.rooms == {}

    @pytest.mark.asyncio
    async def test_missing_user_id(self, api_client):
        response = await initiate(api_client, userId=None)

        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}

    @pytest.mark.asyncio
    async def test_missing_configuration_lists_names(self, api_client, fake_telephony):
        """Test that missing variables are named and their values never leak."""
        app.dependency_overrides[get_settings] = lambda: make_settings(
            livekit_url=None, livekit_sip_trunk_id=None
        )

        response = await initiate(api_client)

        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "Server configuration error"
        assert body["details"] == "Missing environment variables: LIVEKIT_URL, LIVEKIT_SIP_TRUNK_ID"
        assert "test-secret" not in response.text
        assert fake_telephony.rooms == {}


class TestInitiateCall:
    """Test the happy path and provider failures."""

    @pytest.mark.asyncio
    async def test_initiate_success(self, api_client, fake_telephony, session_service, clock):
        """Test room, session, dial and agent token are produced in order."""
        response = await initiate(api_client)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["roomName"] == EXPECTED_ROOM
        assert body["phoneNumber"] == "+15551234567"
        assert body["roomUrl"] == f"wss://mentor-test.livekit.cloud/{EXPECTED_ROOM}"
        assert body["sipParticipant"] == {
            "participantId": "PA_1",
            "participantIdentity": "phone-user-1",
            "roomName": EXPECTED_ROOM,
        }
        assert body["agentToken"] == f"token-for-agent-{EXPECTED_ROOM}"
        assert body["message"] == "Calling +15551234567..."

        assert fake_telephony.rooms[EXPECTED_ROOM] == {"empty_timeout": 600, "max_participants": 10}
        assert fake_telephony.dials == [
            {
                "room_name": EXPECTED_ROOM,
                "phone_number": "+15551234567",
                "participant_identity": "phone-user-1",
                "participant_name": "Jane",
            }
        ]
        assert fake_telephony.tokens[0]["ttl"] == timedelta(minutes=60)
        assert fake_telephony.configs[0].sip_trunk_id == TEST_SIP_TRUNK_ID

        session = await session_service.get_session(body["sessionId"])
        assert session.status == "in-progress"
        assert session.call_status == "ringing"
        assert session.room_name == EXPECTED_ROOM
        assert session.user_id == "user-1"
        assert session.timestamp == clock.now
        assert session.notes == "Call initiated to +15551234567"

    @pytest.mark.asyncio
    async def test_default_participant_name(self, api_client, fake_telephony):
        response = await initiate(api_client, userName=None)

        assert response.status_code == 200
        assert fake_telephony.dials[0]["participant_name"] == "User"

    @pytest.mark.asyncio
    async def test_dial_failure_marks_session_missed(self, api_client, fake_telephony, session_service, clock):
        """Test the compensating update when the provider rejects the dial."""
        fake_telephony.dial = AsyncMock(side_effect=RuntimeError("SIP trunk rejected the call"))

        response = await initiate(api_client)

        assert response.status_code == 500
        assert response.json() == {
            "error": "Failed to initiate call",
            "details": "SIP trunk rejected the call",
        }
        session = await session_service.get_session_by_room(EXPECTED_ROOM)
        assert session.status == "missed"
        assert session.call_status == "failed"
        assert session.ended_at == clock.now
        assert session.notes == (
            "Call initiated to +15551234567\n\nCall failed: SIP trunk rejected the call"
        )

    @pytest.mark.asyncio
    async def test_room_failure_creates_no_session(self, api_client, fake_telephony, session_service):
        fake_telephony.create_room = AsyncMock(side_effect=RuntimeError("room service down"))

        response = await initiate(api_client)

        assert response.status_code == 500
        assert response.json()["error"] == "Failed to initiate call"
        assert await session_service.get_session_by_room(EXPECTED_ROOM) is None
        assert fake_telephony.dials == []

    @pytest.mark.asyncio
    async def test_session_failure_deletes_room(self, api_client, fake_telephony, monkeypatch):
        """Test that a room is not left behind when the session cannot be recorded."""
        monkeypatch.setattr(
            SessionPersistenceService,
            "create_session",
            AsyncMock(side_effect=ConflictError("Room name already in use")),
        )

        response = await initiate(api_client)

        assert response.status_code == 409
        assert fake_telephony.deleted_rooms == [EXPECTED_ROOM]
        assert fake_telephony.rooms == {}
        assert fake_telephony.dials == []

    @pytest.mark.asyncio
    async def test_room_cleanup_failure_keeps_original_error(self, api_client, fake_telephony, monkeypatch):
        monkeypatch.setattr(
            SessionPersistenceService,
            "create_session",
            AsyncMock(side_effect=ConflictError("Room name already in use")),
        )
        fake_telephony.delete_room = AsyncMock(side_effect=RuntimeError("room service down"))

        response = await initiate(api_client)

        assert response.status_code == 409
        assert response.json()["error"] == "Room name already in use"
        assert fake_telephony.dials == []

    @pytest.mark.asyncio
    async def test_answered_call_end_to_end(self, api_client, post_webhook, session_service, clock):
        """Test initiate, answer, hang up and room close through the HTTP surface."""
        response = await initiate(api_client)
        session_id = response.json()["sessionId"]

        clock.advance(5)
        await post_webhook("participant_joined", EXPECTED_ROOM, identity="phone-user-1")
        connected = await session_service.get_session(session_id)
        assert connected.status == "connected"
        assert connected.call_status == "connected"

        clock.advance(60)
        await post_webhook("participant_left", EXPECTED_ROOM, identity="phone-user-1")
        clock.advance(2)
        await post_webhook("room_finished", EXPECTED_ROOM)

        final = await session_service.get_session(session_id)
        assert final.status == "ended"
        assert final.call_status == "disconnected"
        assert final.duration == 60


def test_build_room_name():
    assert build_room_name("user-1", 1767603600000) == "call-user-1-1767603600000"
