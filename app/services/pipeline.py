"""
Generation Pipeline

One run per user request:

    IDLE -> REQUESTING -> EXTRACTING -> PERSISTING -> SUCCEEDED
    any step before SUCCEEDED -> FAILED(reason)

Persistence is a two-step saga for diagnoses: the image is uploaded first and
the row inserted second, so a row never points at a missing blob. If the
insert fails the uploaded blob is left where it is (see
``app/services/reconciliation.py`` for the manual sweep). Nothing is retried.

Every failure ends up on ``PipelineRun.error`` with a user-facing message;
``run_*`` never raise.
"""
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from app.errors import FarmAdvisoryError
from app.models import AdvisoryRecord, AdvisoryResult, DiagnosisResult, DiagnosticRecord, RecordKind
from app.prompts import build_advisory_prompt, build_diagnosis_prompt
from app.services.extractor import extract_advisory, extract_diagnosis
from app.services.generation import GenerationService
from app.services.records import RecordStore
from app.services.storage import BlobStore, make_image_key
from app.utils.text_processing import truncate

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    EXTRACTING = "extracting"
    PERSISTING = "persisting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


_NEXT = {
    PipelineState.IDLE: {PipelineState.REQUESTING, PipelineState.FAILED},
    PipelineState.REQUESTING: {PipelineState.EXTRACTING, PipelineState.FAILED},
    PipelineState.EXTRACTING: {PipelineState.PERSISTING, PipelineState.FAILED},
    PipelineState.PERSISTING: {PipelineState.SUCCEEDED, PipelineState.FAILED},
    PipelineState.SUCCEEDED: set(),
    PipelineState.FAILED: set(),
}


@dataclass
class PipelineRun:
    """Auditable record of one generation request"""
    kind: RecordKind
    owner_id: str
    state: PipelineState = PipelineState.IDLE
    transitions: List[Dict[str, Any]] = field(default_factory=list)
    record: Optional[Union[AdvisoryRecord, DiagnosticRecord]] = None
    error: Optional[FarmAdvisoryError] = None
    # side effects already committed (kept on failure, never rolled back)
    blob_key: Optional[str] = None
    image_url: Optional[str] = None

    def advance(self, state: PipelineState, note: str = ""):
        if state not in _NEXT[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {state.value}")
        self.transitions.append({
            "from": self.state.value,
            "to": state.value,
            "at": time.time(),
            "note": note,
        })
        self.state = state

    def fail(self, error: FarmAdvisoryError):
        self.error = error
        self.advance(PipelineState.FAILED, error.code)

    @property
    def succeeded(self) -> bool:
        return self.state is PipelineState.SUCCEEDED

    @property
    def failure_reason(self) -> Optional[str]:
        return self.error.code if self.error else None

    @property
    def message(self) -> str:
        if self.error:
            return self.error.user_message
        if self.succeeded:
            return self.record.diagnosis
        return ""


class GenerationPipeline:
    """Build prompt -> generate -> extract -> persist"""

    def __init__(
        self,
        generator: Optional[GenerationService] = None,
        record_store: Optional[RecordStore] = None,
        blob_store: Optional[BlobStore] = None,
    ):
        self.generator = generator or GenerationService()
        self.record_store = record_store or RecordStore()
        self.blob_store = blob_store or BlobStore()

    async def run_advisory(
        self,
        owner_id: str,
        crop: str = "",
        location: str = "",
        season: str = "",
        language: str = "en",
    ) -> PipelineRun:
        run = PipelineRun(kind=RecordKind.ADVISORY, owner_id=owner_id)
        logger.info(f"Advisory request for user {owner_id[:8]}... (crop={crop or '-'}, lang={language})")

        try:
            self.generator.ensure_configured()
            self.record_store.ensure_configured()

            run.advance(PipelineState.REQUESTING)
            prompt = build_advisory_prompt(crop, location, season, language)
            raw_text = await self.generator.generate(prompt)

            run.advance(PipelineState.EXTRACTING)
            extraction = extract_advisory(raw_text)
            if not extraction.ok:
                raise extraction.error
            result: AdvisoryResult = extraction.result

            run.advance(PipelineState.PERSISTING)
            run.record = await self.record_store.create_advisory(owner_id, result.diagnosis, result.advice)

            run.advance(PipelineState.SUCCEEDED)
            logger.info(f"✓ Advisory saved: {truncate(result.diagnosis)}")
        except FarmAdvisoryError as e:
            run.fail(e)
            logger.warning(f"Advisory run failed at {run.transitions[-1]['from']}: {e.code} {e}")

        return run

    async def run_diagnosis(
        self,
        owner_id: str,
        image_bytes: bytes,
        content_type: str,
        extension: str,
        language: str = "en",
    ) -> PipelineRun:
        run = PipelineRun(kind=RecordKind.DIAGNOSTIC, owner_id=owner_id)
        logger.info(f"Diagnosis request for user {owner_id[:8]}... ({len(image_bytes)} bytes, lang={language})")

        try:
            self.generator.ensure_configured()
            self.blob_store.ensure_configured()
            self.record_store.ensure_configured()

            run.advance(PipelineState.REQUESTING)
            prompt = build_diagnosis_prompt(language)
            raw_text = await self.generator.generate(prompt, image=(image_bytes, content_type))

            run.advance(PipelineState.EXTRACTING)
            extraction = extract_diagnosis(raw_text)
            if not extraction.ok:
                raise extraction.error
            result: DiagnosisResult = extraction.result

            run.advance(PipelineState.PERSISTING)
            # step 1: blob (a row must never reference a missing image)
            key = make_image_key(owner_id, extension)
            run.image_url = await self.blob_store.upload(key, image_bytes, content_type)
            run.blob_key = key

            # step 2: row; on failure the blob above stays (accepted leak)
            run.record = await self.record_store.create_diagnostic(
                owner_id,
                run.image_url,
                result.diagnosis,
                result.advice,
                int(round(result.confidence)),
            )

            run.advance(PipelineState.SUCCEEDED)
            logger.info(f"✓ Diagnosis saved: {truncate(result.diagnosis)} ({run.record.confidence}%)")
        except FarmAdvisoryError as e:
            run.fail(e)
            if run.blob_key and not run.record:
                logger.warning(f"Diagnosis row not saved; blob {run.blob_key} left orphaned")
            logger.warning(f"Diagnosis run failed at {run.transitions[-1]['from']}: {e.code} {e}")

        return run
