"""Shared router plumbing: caller identity, service providers, error responses"""
import logging
from typing import Optional

from fastapi import Header, HTTPException
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address

from app.errors import (
    ConfigurationError,
    FarmAdvisoryError,
    GenerationServiceError,
    MalformedResponse,
)
from app.services.deletion import DeletionCoordinator, DeletionOutcome
from app.services.pipeline import GenerationPipeline
from app.services.records import RecordStore
from app.services.reconciliation import ReconciliationSweep

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

_STATUS_BY_ERROR = {
    ConfigurationError: 503,
    GenerationServiceError: 502,
    MalformedResponse: 502,
}


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """
    The session gateway in front of this service puts the signed-in user's id
    in ``X-User-Id``. Without it nothing is available.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Sign in required")
    return x_user_id.strip()


# Providers (overridden in tests through app.dependency_overrides)
def get_record_store() -> RecordStore:
    return RecordStore()


def get_pipeline() -> GenerationPipeline:
    return GenerationPipeline()


def get_deletion_coordinator() -> DeletionCoordinator:
    return DeletionCoordinator()


def get_reconciliation_sweep() -> ReconciliationSweep:
    return ReconciliationSweep()


def status_for(error: FarmAdvisoryError) -> int:
    for error_type, status in _STATUS_BY_ERROR.items():
        if isinstance(error, error_type):
            return status
    return 500


def error_response(error: FarmAdvisoryError, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_for(error),
        content={
            "status": "error",
            "code": error.code,
            "message": error.user_message,
            **extra,
        },
    )


def deletion_response(outcome: DeletionOutcome):
    if not outcome.ok:
        return error_response(outcome.error)
    return {
        "status": "partial" if outcome.partial else "success",
        "message": outcome.message,
        "rows_deleted": outcome.rows_deleted,
        "warning": outcome.warning,
        "failed_blob_keys": outcome.failed_blob_keys,
    }
