"""LiveKit webhook verification and dispatch."""
import json
import logging
from typing import Optional

from google.protobuf.json_format import ParseError
from livekit import api

from virtual_mentor.core.errors import AuthenticationError, InvalidRequest
from virtual_mentor.services.calls.models import ProjectionOutcome
from virtual_mentor.services.calls.projector import SessionProjector
from virtual_mentor.services.webhooks.events import WebhookEvent, parse_event

logger = logging.getLogger(__name__)


class WebhookSignatureVerifier:
    """Checks the provider's signed JWT against the raw request body.

    ``api.WebhookReceiver`` validates the token against the configured API
    key/secret and its ``sha256`` claim against the body digest.
    """

    def __init__(self, api_key: str, api_secret: str):
        self._receiver = api.WebhookReceiver(api.TokenVerifier(api_key, api_secret))

    def verify(self, body: bytes, authorization: Optional[str]) -> str:
        """Return the verified body text."""
        if not authorization:
            raise AuthenticationError("Missing authorization")

        token = authorization.strip()
        if token.lower().startswith("bearer "):
            token = token[len("bearer "):].strip()

        try:
            text = body.decode("utf-8")
            self._receiver.receive(text, token)
        except ParseError as e:
            # Signature and hash matched; only the payload failed to parse
            raise InvalidRequest("Webhook body is not valid JSON", details=str(e)) from e
        except Exception as e:
            raise AuthenticationError(
                "Invalid webhook signature", details=type(e).__name__
            ) from e
        return text


class WebhookReceiver:
    """Verifies, decodes and dispatches webhook deliveries to the projector."""

    def __init__(self, verifier: WebhookSignatureVerifier, projector: SessionProjector):
        self.verifier = verifier
        self.projector = projector

    def decode(self, body: bytes, authorization: Optional[str]) -> WebhookEvent:
        """Verify the signature first, then parse. Nothing is read from the
        store until both succeed."""
        text = self.verifier.verify(body, authorization)
        try:
            payload = json.loads(text)
        except ValueError as e:
            raise InvalidRequest("Webhook body is not valid JSON") from e
        return parse_event(payload)

    async def receive(self, body: bytes, authorization: Optional[str]) -> ProjectionOutcome:
        event = self.decode(body, authorization)
        room = getattr(getattr(event, "room", None), "name", None)
        logger.info(f"[WEBHOOK] Event received: {event.event} - room: {room}, id: {getattr(event, 'id', None)}")
        outcome = await self.projector.apply(event)
        logger.info(f"[WEBHOOK] Event {event.event} processed - outcome: {outcome.value}")
        return outcome
