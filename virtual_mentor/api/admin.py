"""Admin endpoints (X-Admin-Key protected)."""
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from virtual_mentor.core.dependencies import get_reconciler, require_admin
from virtual_mentor.db.database import get_db
from virtual_mentor.services.calls.reconciler import SessionReconciler
from virtual_mentor.services.users.status import list_users_with_status

router = APIRouter(dependencies=[Depends(require_admin)])
logger = logging.getLogger(__name__)


@router.get("/api/admin/users")
async def list_users(db: AsyncSession = Depends(get_db)):
    """All users with their derived call status (inactive, in-call, active)."""
    users = await list_users_with_status(db)
    logger.info(f"[ADMIN] Listed {len(users)} users")
    return {"users": users}


@router.post("/api/admin/sessions/reconcile")
async def reconcile_sessions(reconciler: SessionReconciler = Depends(get_reconciler)):
    """Close stale sessions whose LiveKit room is gone."""
    report = await reconciler.reconcile()
    return {
        "checked": report.checked,
        "closed": report.closed,
        "stillActive": report.still_active,
    }
