import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from app.config import ADMIN_TOKEN
from app.models import ReconcileRequest
from app.routers.common import error_response, get_reconciliation_sweep
from app.services.reconciliation import ReconciliationSweep

logger = logging.getLogger(__name__)

router = APIRouter()


def require_admin(x_admin_token: Optional[str] = Header(None)):
    if not ADMIN_TOKEN:
        raise HTTPException(status_code=503, detail="Admin access not configured")
    if not x_admin_token or not hmac.compare_digest(x_admin_token, ADMIN_TOKEN):
        raise HTTPException(status_code=401, detail="Unauthorized")


@router.post("/admin/reconcile", dependencies=[Depends(require_admin)])
async def reconcile_orphaned_images(
    payload: ReconcileRequest,
    sweep: ReconciliationSweep = Depends(get_reconciliation_sweep),
):
    """
    Find (and unless ``dry_run``, remove) images no diagnosis row references.
    Body: {"owner_id": "...", "dry_run": true}
    """
    report = await sweep.sweep(payload.owner_id, dry_run=payload.dry_run)
    if report.error:
        return error_response(report.error)

    logger.info(
        f"Reconcile for user {payload.owner_id[:8]}...: "
        f"{len(report.orphaned_keys)} orphaned, {len(report.removed_keys)} removed"
    )
    return {
        "status": "success",
        "dry_run": report.dry_run,
        "orphaned_keys": report.orphaned_keys,
        "removed_keys": report.removed_keys,
        "failed_keys": report.failed_keys,
    }
