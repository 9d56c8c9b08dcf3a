import io
import logging
from typing import Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from PIL import Image, UnidentifiedImageError

from app.config import DEFAULT_LANGUAGE, GENERATION_RATE_LIMIT, MAX_IMAGE_BYTES
from app.errors import FarmAdvisoryError
from app.models import DiagnosticRecord, RecordKind
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
from app.utils.text_processing import split_emphasis

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/diagnoses", tags=["diagnoses"])

# Pillow format -> file extension used in the storage key
_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "WEBP": "webp", "GIF": "gif", "BMP": "bmp"}


def inspect_image(data: bytes) -> Tuple[str, str]:
    """Return (content type, extension) for an uploaded image or raise 400"""
    if not data:
        raise HTTPException(status_code=400, detail="No image uploaded")
    if len(data) > MAX_IMAGE_BYTES:
        raise HTTPException(status_code=400, detail=f"Image is larger than {MAX_IMAGE_BYTES // (1024 * 1024)} MB")

    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
            image_format = img.format
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.warning(f"Rejected upload that is not an image: {e}")
        raise HTTPException(status_code=400, detail="File is not a supported image")

    if image_format not in _EXTENSIONS:
        raise HTTPException(status_code=400, detail=f"Unsupported image format: {image_format}")
    return Image.MIME[image_format], _EXTENSIONS[image_format]


def serialize_diagnostic(record: DiagnosticRecord) -> dict:
    data = record.model_dump(mode="json", by_alias=True)
    data["diagnosis_segments"] = split_emphasis(record.diagnosis)
    data["advice_segments"] = split_emphasis(record.advice)
    # older rows may have no confidence at all
    data["confidence_label"] = f"{record.confidence}%" if record.confidence is not None else None
    return data


@router.post("")
@limiter.limit(GENERATION_RATE_LIMIT)
async def request_diagnosis(
    request: Request,
    file: UploadFile = File(...),
    language: str = Form(DEFAULT_LANGUAGE),
    owner_id: str = Depends(get_current_user_id),
    pipeline: GenerationPipeline = Depends(get_pipeline),
):
    data = await file.read()
    content_type, extension = inspect_image(data)

    run = await pipeline.run_diagnosis(owner_id, data, content_type, extension, language=language)
    if not run.succeeded:
        return error_response(run.error, state=run.transitions[-1]["from"])
    return {
        "status": "success",
        "message": run.message,
        "record": serialize_diagnostic(run.record),
    }


@router.get("")
async def list_diagnoses(
    owner_id: str = Depends(get_current_user_id),
    store: RecordStore = Depends(get_record_store),
):
    try:
        records = await store.list_by_owner(RecordKind.DIAGNOSTIC, owner_id)
    except FarmAdvisoryError as e:
        return error_response(e)
    return {"status": "success", "records": [serialize_diagnostic(r) for r in records]}


@router.delete("/{record_id}")
async def delete_diagnosis(
    record_id: str,
    owner_id: str = Depends(get_current_user_id),
    coordinator: DeletionCoordinator = Depends(get_deletion_coordinator),
):
    outcome = await coordinator.delete_one(RecordKind.DIAGNOSTIC, owner_id, record_id)
    return deletion_response(outcome)


@router.delete("")
async def delete_all_diagnoses(
    owner_id: str = Depends(get_current_user_id),
    coordinator: DeletionCoordinator = Depends(get_deletion_coordinator),
):
    outcome = await coordinator.delete_all(RecordKind.DIAGNOSTIC, owner_id)
    return deletion_response(outcome)
