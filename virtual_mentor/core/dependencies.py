"""FastAPI dependencies."""
import hmac
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.core.config import Settings, settings
from virtual_mentor.core.errors import AuthenticationError
from virtual_mentor.db.database import get_db
from virtual_mentor.services.calls.initiator import CallInitiator
from virtual_mentor.services.calls.projector import SessionProjector
from virtual_mentor.services.calls.reconciler import SessionReconciler
from virtual_mentor.services.persistence.conversations import ConversationPersistenceService
from virtual_mentor.services.persistence.sessions import SessionPersistenceService
from virtual_mentor.services.persistence.users import UserPersistenceService
from virtual_mentor.services.realtime.feed import ChangeFeed, get_change_feed
from virtual_mentor.services.telephony.base import TelephonyFactory
from virtual_mentor.services.telephony.livekit_provider import livekit_telephony_factory
from virtual_mentor.services.webhooks.receiver import WebhookReceiver, WebhookSignatureVerifier


def get_settings() -> Settings:
    """Get application settings."""
    return settings


def get_clock() -> Clock:
    """Get the time source used for lifecycle timestamps."""
    return utcnow


def get_telephony_factory() -> TelephonyFactory:
    """Get the factory that builds a telephony client from resolved credentials."""
    return livekit_telephony_factory


def get_session_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
    clock: Clock = Depends(get_clock),
) -> SessionPersistenceService:
    return SessionPersistenceService(db, feed, clock)


def get_conversation_service(
    db: AsyncSession = Depends(get_db),
    feed: ChangeFeed = Depends(get_change_feed),
    clock: Clock = Depends(get_clock),
) -> ConversationPersistenceService:
    return ConversationPersistenceService(db, feed, clock)


def get_user_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> UserPersistenceService:
    return UserPersistenceService(db, clock)


def get_call_initiator(
    app_settings: Settings = Depends(get_settings),
    sessions: SessionPersistenceService = Depends(get_session_service),
    telephony_factory: TelephonyFactory = Depends(get_telephony_factory),
    clock: Clock = Depends(get_clock),
) -> CallInitiator:
    return CallInitiator(app_settings, sessions, telephony_factory, clock)


def get_webhook_receiver(
    app_settings: Settings = Depends(get_settings),
    sessions: SessionPersistenceService = Depends(get_session_service),
    clock: Clock = Depends(get_clock),
) -> WebhookReceiver:
    """Raises ConfigurationError before anything else when credentials are absent."""
    api_key, api_secret = app_settings.webhook_credentials()
    projector = SessionProjector(sessions, app_settings.phone_identity_prefix, clock)
    return WebhookReceiver(WebhookSignatureVerifier(api_key, api_secret), projector)


def get_reconciler(
    app_settings: Settings = Depends(get_settings),
    sessions: SessionPersistenceService = Depends(get_session_service),
    telephony_factory: TelephonyFactory = Depends(get_telephony_factory),
    clock: Clock = Depends(get_clock),
) -> SessionReconciler:
    return SessionReconciler(app_settings, sessions, telephony_factory, clock)


async def require_admin(
    x_admin_key: Optional[str] = Header(default=None),
    app_settings: Settings = Depends(get_settings),
) -> bool:
    """Dependency guarding admin routes with the X-Admin-Key header."""
    if not app_settings.admin_api_key:
        raise AuthenticationError("Admin access is not configured")
    if not x_admin_key or not hmac.compare_digest(x_admin_key, app_settings.admin_api_key):
        raise AuthenticationError("Invalid or missing admin key")
    return True
