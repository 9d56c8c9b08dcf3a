import logging

from fastapi import APIRouter, Depends, Request

from app.config import GENERATION_RATE_LIMIT
from app.errors import FarmAdvisoryError
from app.models import AdvisoryRecord, AdvisoryRequest, RecordKind
from app.routers.common import (
    deletion_response,
    error_response,
    get_current_user_id,
    get_deletion_coordinator,
    get_pipeline,
    get_record_store,
    limiter,
)
from app.services.deletion import DeletionCoordinator
from app.services.pipeline import GenerationPipeline
from app.services.records import RecordStore
from app.services.renderer import render_stored_advice

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/advisories", tags=["advisories"])


def serialize_advisory(record: AdvisoryRecord) -> dict:
    data = record.model_dump(mode="json", by_alias=True)
    data["advice_view"] = render_stored_advice(record.advice)
    return data


@router.post("")
@limiter.limit(GENERATION_RATE_LIMIT)
async def request_advisory(
    request: Request,
    payload: AdvisoryRequest,
    owner_id: str = Depends(get_current_user_id),
    pipeline: GenerationPipeline = Depends(get_pipeline),
):
    run = await pipeline.run_advisory(
        owner_id,
        crop=payload.crop,
        location=payload.location,
        season=payload.season,
        language=payload.language,
    )
    if not run.succeeded:
        return error_response(run.error, state=run.transitions[-1]["from"])
    return {
        "status": "success",
        "message": run.message,
        "record": serialize_advisory(run.record),
    }


@router.get("")
async def list_advisories(
    owner_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
):
    try:
        records = await store.list_by_owner(RecordKind.ADVISORY, owner_id)
    except FarmAdvisoryError as e:
        return error_response(e)
    return {"status": "success", "records": [serialize_advisory(r) for r in records]}


@router.delete("/{record_id}")
async def delete_advisory(
    record_id: str,
    owner_id: str = Depends(get_current_user_id),
    coordinator: DeletionCoordinator = Depends(get_deletion_coordinator),
):
    outcome = await coordinator.delete_one(RecordKind.ADVISORY, owner_id, record_id)
    return deletion_response(outcome)


@router.delete("")
async def delete_all_advisories(
    owner_id: str = Depends(get_current_user_id),
    coordinator: DeletionCoordinator = Depends(get_deletion_coordinator),
):
    outcome = await coordinator.delete_all(RecordKind.ADVISORY, owner_id)
    return deletion_response(outcome)
