"""
Deletion Coordinator

Removes advisory/diagnostic records and, for diagnoses, the images they own.

Ordering:
    single  : look up row -> remove blob -> delete row
    all     : collect blob keys -> delete rows (one statement) -> remove blobs

A blob that cannot be removed never keeps its row alive: the row is deleted
anyway and the leftover blob is reported as a warning. A failed lookup
aborts before any blob is touched.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from app.errors import BlobDeleteError, FarmAdvisoryError
from app.models import RecordKind
from app.services.records import RecordStore
from app.services.storage import BlobStore

logger = logging.getLogger(__name__)


@dataclass
class DeletionOutcome:
    kind: RecordKind
    rows_deleted: int = 0
    blob_keys_attempted: List[str] = field(default_factory=list)
    failed_blob_keys: List[str] = field(default_factory=list)
    error: Optional[FarmAdvisoryError] = None
    success_message: str = ""
    # bulk deletes treat leftover blobs as a plain warning
    bulk: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def partial(self) -> bool:
        """Single delete: row gone but its image is still in storage"""
        return self.ok and not self.bulk and bool(self.failed_blob_keys)

    @property
    def warning(self) -> Optional[str]:
        if not self.failed_blob_keys:
            return None
        return f"{len(self.failed_blob_keys)} image(s) could not be removed from storage."

    @property
    def message(self) -> str:
        if self.error:
            return self.error.user_message
        return self.success_message


def _label(kind: RecordKind) -> str:
    return "Advisory" if kind is RecordKind.ADVISORY else "Diagnosis"


def _history_label(kind: RecordKind) -> str:
    return "advisory" if kind is RecordKind.ADVISORY else "diagnosis"


class DeletionCoordinator:

    def __init__(self, record_store: Optional[RecordStore] = None, blob_store: Optional[BlobStore] = None):
        self.record_store = record_store or RecordStore()
        self.blob_store = blob_store or BlobStore()

    async def _remove_blobs(self, outcome: DeletionOutcome, keys: List[str]):
        outcome.blob_keys_attempted = sorted(set(keys))
        if not outcome.blob_keys_attempted:
            return
        try:
            await self.blob_store.remove(outcome.blob_keys_attempted)
        except BlobDeleteError as e:
            outcome.failed_blob_keys = e.failed_keys
            logger.warning(f"Blob cleanup incomplete, orphaned: {e.failed_keys}")

    async def delete_one(self, kind: RecordKind, owner_id: str, record_id: str) -> DeletionOutcome:
        outcome = DeletionOutcome(kind=kind, success_message=f"{_label(kind)} has been deleted.")

        try:
            if kind.has_blob:
                self.blob_store.ensure_configured()

            record = await self.record_store.get_by_id(kind, owner_id, record_id)
            if record is None:
                # already gone
                logger.info(f"{kind.value} {record_id} not found for user {owner_id[:8]}..., nothing to delete")
                return outcome

            if kind.has_blob:
                key = self.blob_store.key_from_ref(record.image_url)
                await self._remove_blobs(outcome, [key] if key else [])

            outcome.rows_deleted = await self.record_store.delete_by_id(kind, owner_id, record_id)
        except FarmAdvisoryError as e:
            outcome.error = e
            logger.error(f"Failed to delete {kind.value} {record_id}: {e.code} {e}")

        return outcome

    async def delete_all(self, kind: RecordKind, owner_id: str) -> DeletionOutcome:
        outcome = DeletionOutcome(
            kind=kind,
            bulk=True,
            success_message=f"All {_history_label(kind)} history has been deleted.",
        )

        try:
            keys = []
            if kind.has_blob:
                self.blob_store.ensure_configured()
                urls = await self.record_store.list_image_urls(owner_id)
                keys = [k for k in (self.blob_store.key_from_ref(u) for u in urls) if k]

            outcome.rows_deleted = await self.record_store.delete_all_by_owner(kind, owner_id)
            await self._remove_blobs(outcome, keys)
        except FarmAdvisoryError as e:
            outcome.error = e
            logger.error(f"Failed to delete all {kind.value} records for user {owner_id[:8]}...: {e.code} {e}")

        return outcome
