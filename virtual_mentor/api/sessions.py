"""Session record endpoints: chat messages and transcripts."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends

from virtual_mentor.api.schemas import CamelModel
from virtual_mentor.core.dependencies import get_session_service
from virtual_mentor.core.errors import AppError, InvalidRequest
from virtual_mentor.services.persistence.serializers import (
    session_message_to_dict,
    session_to_dict,
)
from virtual_mentor.services.persistence.sessions import SessionPersistenceService

router = APIRouter()
logger = logging.getLogger(__name__)

SENDERS = ("ai", "user")


class AddMessageRequest(CamelModel):
    """Add message request model."""
    text: Optional[str] = None
    sender: Optional[str] = None
    is_transcribing: bool = False


class SaveTranscriptRequest(CamelModel):
    transcript: Optional[str] = None


@router.get("/api/sessions/{session_id}")
async def get_session(
    session_id: str,
    sessions: SessionPersistenceService = Depends(get_session_service),
):
    """Get one session record."""
    session = await sessions.require_session(session_id)
    return {"session": session_to_dict(session)}


@router.post("/api/sessions/{session_id}/messages")
async def add_message(
    session_id: str,
    body: AddMessageRequest,
    sessions: SessionPersistenceService = Depends(get_session_service),
):
    """Append a chat turn to a session."""
    if not body.text or not body.sender:
        raise InvalidRequest("Text and sender are required")
    if body.sender not in SENDERS:
        raise InvalidRequest('Sender must be either "ai" or "user"')

    try:
        message = await sessions.add_message(
            session_id, body.text, body.sender, is_transcribing=body.is_transcribing
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(
            f"[SESSIONS] Error adding message - session: {session_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise AppError("Failed to add message", details=str(e)) from e

    logger.info(f"[SESSIONS] Message {message.id} added to session {session_id}")
    return {"success": True, "messageId": message.id, "sessionId": session_id}


@router.get("/api/sessions/{session_id}/messages")
async def list_messages(
    session_id: str,
    sessions: SessionPersistenceService = Depends(get_session_service),
):
    """Get all messages of a session, oldest first."""
    await sessions.require_session(session_id)
    try:
        messages = await sessions.list_messages(session_id)
    except Exception as e:
        logger.error(
            f"[SESSIONS] Error fetching messages - session: {session_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise AppError("Failed to fetch messages", details=str(e)) from e

    return {
        "success": True,
        "sessionId": session_id,
        "messages": [session_message_to_dict(m) for m in messages],
        "count": len(messages),
    }


@router.post("/api/sessions/{session_id}/transcript")
async def save_transcript(
    session_id: str,
    body: SaveTranscriptRequest,
    sessions: SessionPersistenceService = Depends(get_session_service),
):
    """Save the complete transcript of a session."""
    if not body.transcript:
        raise InvalidRequest("Transcript is required")

    await sessions.save_transcript(session_id, body.transcript)
    logger.info(f"[SESSIONS] Transcript saved for session {session_id}")
    return {
        "success": True,
        "sessionId": session_id,
        "message": "Transcript saved successfully",
    }


@router.get("/api/sessions/{session_id}/transcript")
async def get_transcript(
    session_id: str,
    sessions: SessionPersistenceService = Depends(get_session_service),
):
    """Get the transcript of a session."""
    session = await sessions.require_session(session_id)
    return {
        "success": True,
        "sessionId": session_id,
        "transcript": session.transcript or None,
        "hasTranscript": bool(session.transcript),
    }
