"""Record -> JSON-ready dict conversion (camelCase wire keys)."""
from datetime import datetime
from typing import Any, Dict, Optional

from virtual_mentor.db.models import (
    CallSession,
    Conversation,
    ConversationMessage,
    SessionMessage,
    User,
)


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def session_to_dict(session: CallSession) -> Dict[str, Any]:
    return {
        "id": session.id,
        "userId": session.user_id,
        "status": session.status,
        "callStatus": session.call_status,
        "roomName": session.room_name,
        "phoneNumber": session.phone_number,
        "timestamp": iso(session.timestamp),
        "connectedAt": iso(session.connected_at),
        "endedAt": iso(session.ended_at),
        "duration": session.duration,
        "transcript": session.transcript,
        "notes": session.notes,
        "updatedAt": iso(session.updated_at),
    }


def session_message_to_dict(message: SessionMessage) -> Dict[str, Any]:
    return {
        "id": message.id,
        "text": message.text,
        "sender": message.sender,
        "timestamp": iso(message.timestamp),
        "isTranscribing": bool(message.is_transcribing),
    }


def conversation_to_dict(conversation: Conversation) -> Dict[str, Any]:
    return {
        "id": conversation.id,
        "phone_number": conversation.phone_number,
        "room_name": conversation.room_name,
        "job_id": conversation.job_id,
        "status": conversation.status,
        "started_at": iso(conversation.started_at),
        "ended_at": iso(conversation.ended_at),
        "last_message": conversation.last_message,
        "last_message_at": iso(conversation.last_message_at),
        "last_message_id": conversation.last_message_id,
        "last_message_role": conversation.last_message_role,
        "user_id": conversation.user_id,
        "user_name": conversation.user_name,
        "updatedAt": iso(conversation.updated_at),
    }


def conversation_message_to_dict(message: ConversationMessage) -> Dict[str, Any]:
    return {
        "id": message.id,
        "message": message.message,
        "role": message.role,
        "timestamp": iso(message.timestamp),
        "user_id": message.user_id,
    }


def user_to_dict(user: User) -> Dict[str, Any]:
    return {
        "uid": user.uid,
        "name": user.name,
        "email": user.email,
        "phone": user.phone,
        "timezone": user.timezone,
        "scheduleTime": user.schedule_time,
        "createdAt": iso(user.created_at),
        "updatedAt": iso(user.updated_at),
    }
