"""Outbound call endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request

from virtual_mentor.api.schemas import CamelModel
from virtual_mentor.core.dependencies import get_call_initiator
from virtual_mentor.core.errors import AppError
from virtual_mentor.services.calls.initiator import CallInitiator

router = APIRouter()
logger = logging.getLogger(__name__)


class InitiateCallRequest(CamelModel):
    """Initiate call request model."""
    phone_number: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None


class SipParticipantResponse(CamelModel):
    participant_id: str
    participant_identity: str
    room_name: str


class InitiateCallResponse(CamelModel):
    """Initiate call response model."""
    success: bool
    session_id: str
    room_name: str
    phone_number: str
    room_url: str
    sip_participant: SipParticipantResponse
    agent_token: str
    message: str


@router.post("/api/call/initiate", response_model=InitiateCallResponse)
async def initiate_call(
    request: Request,
    body: InitiateCallRequest,
    initiator: CallInitiator = Depends(get_call_initiator),
):
    """
    Create a room and session, then dial the user's phone.

    Not idempotent: a retry after a timeout can ring the phone twice.
    Check the user's latest session before retrying.
    """
    logger.info(
        f"[CALL INITIATE] Request received - userId: {body.user_id}, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        call = await initiator.initiate(body.phone_number, body.user_id, body.user_name)
    except AppError:
        raise
    except Exception as e:
        logger.error(
            f"[CALL INITIATE] Error initiating call - userId: {body.user_id}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise AppError("Failed to initiate call", details=str(e)) from e

    return InitiateCallResponse(
        success=True,
        session_id=call.session_id,
        room_name=call.room_name,
        phone_number=call.phone_number,
        room_url=call.room_url,
        sip_participant=SipParticipantResponse(
            participant_id=call.sip_participant.participant_id,
            participant_identity=call.sip_participant.participant_identity,
            room_name=call.sip_participant.room_name,
        ),
        agent_token=call.agent_token,
        message=f"Calling {call.phone_number}...",
    )
