"""Conversation endpoints.

The GET routes back the transcript views. The POST routes are the ingestion
surface for the voice agent that produces conversations; each write is
published on the change feed for live observers.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from virtual_mentor.core.dependencies import get_conversation_service
from virtual_mentor.core.errors import InvalidRequest
from virtual_mentor.services.persistence.conversations import ConversationPersistenceService
from virtual_mentor.services.persistence.serializers import (
    conversation_message_to_dict,
    conversation_to_dict,
)

router = APIRouter()
logger = logging.getLogger(__name__)

ROLES = ("assistant", "user")


class StartConversationRequest(BaseModel):
    """Field names follow the agent's snake_case record contract."""
    phone_number: Optional[str] = None
    room_name: Optional[str] = None
    job_id: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None


class ConversationMessageRequest(BaseModel):
    message: Optional[str] = None
    role: Optional[str] = None
    user_id: Optional[str] = None


@router.get("/api/conversations/{conversation_id}")
async def get_conversation(
    conversation_id: str,
    conversations: ConversationPersistenceService = Depends(get_conversation_service),
):
    conversation = await conversations.require_conversation(conversation_id)
    return {"conversation": conversation_to_dict(conversation)}


@router.get("/api/conversations/{conversation_id}/messages")
async def get_conversation_messages(
    conversation_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    conversations: ConversationPersistenceService = Depends(get_conversation_service),
):
    messages = await conversations.list_messages(conversation_id, limit=limit)
    return {"messages": [conversation_message_to_dict(m) for m in messages]}


@router.post("/api/conversations", status_code=201)
async def start_conversation(
    body: StartConversationRequest,
    conversations: ConversationPersistenceService = Depends(get_conversation_service),
):
    if not body.phone_number:
        raise InvalidRequest("phone_number is required")

    conversation = await conversations.create_conversation(
        body.phone_number,
        room_name=body.room_name,
        job_id=body.job_id,
        user_id=body.user_id,
        user_name=body.user_name,
    )
    logger.info(f"[CONVERSATIONS] Conversation {conversation.id} started for room {body.room_name}")
    return {"conversation": conversation_to_dict(conversation)}


@router.post("/api/conversations/{conversation_id}/messages", status_code=201)
async def add_conversation_message(
    conversation_id: str,
    body: ConversationMessageRequest,
    conversations: ConversationPersistenceService = Depends(get_conversation_service),
):
    if not body.message or not body.role:
        raise InvalidRequest("message and role are required")
    if body.role not in ROLES:
        raise InvalidRequest('role must be either "assistant" or "user"')

    message = await conversations.add_message(
        conversation_id, body.message, body.role, user_id=body.user_id
    )
    return {"message": conversation_message_to_dict(message)}


@router.post("/api/conversations/{conversation_id}/end")
async def end_conversation(
    conversation_id: str,
    conversations: ConversationPersistenceService = Depends(get_conversation_service),
):
    conversation = await conversations.end_conversation(conversation_id)
    logger.info(f"[CONVERSATIONS] Conversation {conversation_id} completed")
    return {"conversation": conversation_to_dict(conversation)}
