"""LiveKit webhook endpoint."""
import logging

from fastapi import APIRouter, Depends, Request

from virtual_mentor.core.dependencies import get_webhook_receiver
from virtual_mentor.core.errors import AppError
from virtual_mentor.services.webhooks.receiver import WebhookReceiver

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/livekit")
async def handle_livekit_webhook(
    request: Request,
    receiver: WebhookReceiver = Depends(get_webhook_receiver),
):
    """
    Handle room and participant lifecycle events from LiveKit.

    Every verified, well-formed event is acknowledged with 200, including
    kinds that cause no state change. Processing failures return 500 so
    the sender re-delivers.
    """
    body = await request.body()
    authorization = request.headers.get("Authorization")
    logger.debug(
        f"[WEBHOOK] Delivery received - {len(body)} bytes, "
        f"Client: {request.client.host if request.client else 'unknown'}"
    )

    try:
        await receiver.receive(body, authorization)
    except AppError as e:
        logger.warning(f"[WEBHOOK] Rejected delivery - {e.status_code} {e.message} ({e.details})")
        raise
    except Exception as e:
        logger.error(
            f"[WEBHOOK] Error processing webhook - Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        raise AppError("Webhook processing failed", details=str(e)) from e

    return {"received": True}
