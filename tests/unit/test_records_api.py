"""API tests for session, conversation and user record endpoints."""
import pytest


@pytest.fixture
async def session(session_service):
    return await session_service.create_session(
        user_id="user-1", room_name="call-user-1-1", phone_number="+15551234567"
    )


class TestSessionsApi:
    """Test session record endpoints."""

    @pytest.mark.asyncio
    async def test_get_session(self, api_client, session):
        response = await api_client.get(f"/api/sessions/{session.id}")

        assert response.status_code == 200
        data = response.json()["session"]
        assert data["id"] == session.id
        assert data["userId"] == "user-1"
        assert data["roomName"] == "call-user-1-1"
        assert data["status"] == "in-progress"
        assert data["callStatus"] == "initiating"
        assert data["connectedAt"] is None

    @pytest.mark.asyncio
    async def test_get_missing_session(self, api_client):
        response = await api_client.get("/api/sessions/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Session not found"

    @pytest.mark.asyncio
    async def test_add_and_list_messages(self, api_client, session, clock):
        first = await api_client.post(
            f"/api/sessions/{session.id}/messages", json={"text": "Hello Jane", "sender": "ai"}
        )
        clock.advance(1)
        await api_client.post(
            f"/api/sessions/{session.id}/messages",
            json={"text": "Hi", "sender": "user", "isTranscribing": True},
        )

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert first.json()["sessionId"] == session.id

        response = await api_client.get(f"/api/sessions/{session.id}/messages")
        body = response.json()
        assert body["count"] == 2
        assert [m["text"] for m in body["messages"]] == ["Hello Jane", "Hi"]
        assert body["messages"][0]["id"] == first.json()["messageId"]
        assert body["messages"][1]["isTranscribing"] is True

    @pytest.mark.asyncio
    async def test_add_message_validation(self, api_client, session):
        missing = await api_client.post(f"/api/sessions/{session.id}/messages", json={"text": "Hi"})
        bad_sender = await api_client.post(
            f"/api/sessions/{session.id}/messages", json={"text": "Hi", "sender": "bot"}
        )

        assert missing.status_code == 400
        assert missing.json()["error"] == "Text and sender are required"
        assert bad_sender.status_code == 400
        assert bad_sender.json()["error"] == 'Sender must be either "ai" or "user"'

    @pytest.mark.asyncio
    async def test_add_message_to_missing_session(self, api_client):
        response = await api_client.post(
            "/api/sessions/missing/messages", json={"text": "Hi", "sender": "ai"}
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_transcript_round_trip(self, api_client, session):
        empty = await api_client.get(f"/api/sessions/{session.id}/transcript")
        assert empty.json()["hasTranscript"] is False
        assert empty.json()["transcript"] is None

        saved = await api_client.post(
            f"/api/sessions/{session.id}/transcript", json={"transcript": "AI: Hello\nUser: Hi"}
        )
        assert saved.json() == {
            "success": True,
            "sessionId": session.id,
            "message": "Transcript saved successfully",
        }

        response = await api_client.get(f"/api/sessions/{session.id}/transcript")
        assert response.json()["transcript"] == "AI: Hello\nUser: Hi"
        assert response.json()["hasTranscript"] is True

    @pytest.mark.asyncio
    async def test_transcript_required(self, api_client, session):
        response = await api_client.post(f"/api/sessions/{session.id}/transcript", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "Transcript is required"


class TestConversationsApi:
    """Test conversation ingestion and read endpoints."""

    @pytest.mark.asyncio
    async def test_conversation_lifecycle(self, api_client, clock):
        created = await api_client.post(
            "/api/conversations",
            json={"phone_number": "+15551234567", "room_name": "call-user-1-1", "user_id": "user-1"},
        )
        assert created.status_code == 201
        conversation_id = created.json()["conversation"]["id"]
        assert created.json()["conversation"]["status"] == "active"

        clock.advance(1)
        added = await api_client.post(
            f"/api/conversations/{conversation_id}/messages",
            json={"message": "How did the interview go?", "role": "assistant"},
        )
        assert added.status_code == 201

        ended = await api_client.post(f"/api/conversations/{conversation_id}/end")
        assert ended.json()["conversation"]["status"] == "completed"

        fetched = await api_client.get(f"/api/conversations/{conversation_id}")
        assert fetched.json()["conversation"]["last_message"] == "How did the interview go?"
        assert fetched.json()["conversation"]["last_message_role"] == "assistant"

        messages = await api_client.get(f"/api/conversations/{conversation_id}/messages")
        assert [m["message"] for m in messages.json()["messages"]] == ["How did the interview go?"]

    @pytest.mark.asyncio
    async def test_conversation_validation(self, api_client):
        missing_phone = await api_client.post("/api/conversations", json={})
        assert missing_phone.status_code == 400

        created = await api_client.post("/api/conversations", json={"phone_number": "+15551234567"})
        conversation_id = created.json()["conversation"]["id"]
        bad_role = await api_client.post(
            f"/api/conversations/{conversation_id}/messages",
            json={"message": "Hi", "role": "system"},
        )
        assert bad_role.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_conversation(self, api_client):
        response = await api_client.get("/api/conversations/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "Conversation not found"


class TestUsersApi:
    """Test user profile endpoints."""

    @pytest.mark.asyncio
    async def test_put_and_get_user(self, api_client):
        saved = await api_client.put(
            "/api/users/user-1",
            json={"name": "Jane", "phone": "+15551234567", "scheduleTime": "09:00"},
        )
        assert saved.status_code == 200

        response = await api_client.get("/api/users/user-1")
        user = response.json()["user"]
        assert user["uid"] == "user-1"
        assert user["name"] == "Jane"
        assert user["scheduleTime"] == "09:00"

    @pytest.mark.asyncio
    async def test_partial_update_keeps_fields(self, api_client):
        await api_client.put("/api/users/user-1", json={"name": "Jane", "phone": "+15551234567"})
        await api_client.put("/api/users/user-1", json={"timezone": "America/New_York"})

        user = (await api_client.get("/api/users/user-1")).json()["user"]
        assert user["name"] == "Jane"
        assert user["timezone"] == "America/New_York"

    @pytest.mark.asyncio
    async def test_missing_user(self, api_client):
        response = await api_client.get("/api/users/nobody")
        assert response.status_code == 404
