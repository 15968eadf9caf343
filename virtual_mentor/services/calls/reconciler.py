"""Sweep for sessions whose terminal webhook never arrived."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List

from virtual_mentor.core.clock import Clock, utcnow
from virtual_mentor.core.config import Settings
from virtual_mentor.core.errors import ConfigurationError
from virtual_mentor.services.calls.models import (
    CallStatus,
    SessionStatus,
    append_note,
)
from virtual_mentor.services.calls.projector import elapsed_seconds
from virtual_mentor.services.persistence.sessions import SessionPersistenceService
from virtual_mentor.services.realtime.feed import ChangeFeed
from virtual_mentor.services.telephony.base import TelephonyFactory

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    checked: int = 0
    closed: List[str] = field(default_factory=list)
    still_active: List[str] = field(default_factory=list)


class SessionReconciler:
    """Closes stale open sessions whose provider room no longer exists.

    A session is stale when it is still in-progress, ringing or connected
    longer than ``session_stale_after_seconds`` after creation. Sessions
    whose room is still alive are left alone; the webhook path stays the
    primary writer.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: SessionPersistenceService,
        telephony_factory: TelephonyFactory,
        clock: Clock = utcnow,
    ):
        self.settings = settings
        self.sessions = sessions
        self.telephony_factory = telephony_factory
        self.clock = clock

    async def reconcile(self) -> ReconcileReport:
        telephony = self.telephony_factory(self.settings.livekit_config())
        now = self.clock()
        cutoff = now - timedelta(seconds=self.settings.session_stale_after_seconds)
        report = ReconcileReport()

        for session in await self.sessions.list_open_sessions(started_before=cutoff):
            report.checked += 1
            if session.room_name and await telephony.room_exists(session.room_name):
                report.still_active.append(session.id)
                continue

            now = self.clock()
            if session.connected_at is not None:
                values = {
                    "status": SessionStatus.ENDED.value,
                    "call_status": CallStatus.DISCONNECTED.value,
                    "ended_at": now,
                    "duration": elapsed_seconds(session.connected_at, now),
                }
            else:
                values = {
                    "status": SessionStatus.MISSED.value,
                    "call_status": CallStatus.FAILED.value,
                    "ended_at": now,
                }
            values["notes"] = append_note(
                session.notes, "Closed by reconciliation: room no longer active"
            )

            if await self.sessions.apply_transition(session.id, values) is not None:
                report.closed.append(session.id)
                logger.info(f"[RECONCILER] Closed stale session {session.id} as {values['status']}")

        logger.info(
            f"[RECONCILER] Sweep done - checked: {report.checked}, "
            f"closed: {len(report.closed)}, still active: {len(report.still_active)}"
        )
        return report


async def run_reconcile_loop(
    settings: Settings,
    session_factory,
    telephony_factory: TelephonyFactory,
    feed: ChangeFeed,
) -> None:
    """Background sweep started from the application lifespan."""
    interval = settings.reconcile_interval_seconds
    logger.info(f"[RECONCILER] Background sweep every {interval}s")
    while True:
        await asyncio.sleep(interval)
        try:
            async with session_factory() as db:
                reconciler = SessionReconciler(
                    settings,
                    SessionPersistenceService(db, feed),
                    telephony_factory,
                )
                await reconciler.reconcile()
        except ConfigurationError as e:
            logger.error(f"[RECONCILER] Stopping sweep - {e.details}")
            return
        except Exception as e:
            logger.error(
                f"[RECONCILER] Sweep failed - Error: {type(e).__name__}: {str(e)}",
                exc_info=True,
            )
