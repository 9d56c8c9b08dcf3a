"""
Orphaned image sweep.

A diagnosis whose row insert fails after the upload, or whose image delete
fails after the row is gone, leaves a blob nothing references. This sweep
finds those blobs for one owner and removes them. It only runs on demand.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from app.errors import BlobDeleteError, FarmAdvisoryError
from app.services.records import RecordStore
from app.services.storage import BlobStore, key_timestamp_ms

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    owner_id: str
    dry_run: bool
    orphaned_keys: List[str] = field(default_factory=list)
    removed_keys: List[str] = field(default_factory=list)
    failed_keys: List[str] = field(default_factory=list)
    error: Optional[FarmAdvisoryError] = None


class ReconciliationSweep:

    def __init__(self, record_store: Optional[RecordStore] = None, blob_store: Optional[BlobStore] = None):
        self.record_store = record_store or RecordStore()
        self.blob_store = blob_store or BlobStore()

    async def sweep(self, owner_id: str, dry_run: bool = False, min_age_seconds: int = 300) -> SweepReport:
        report = SweepReport(owner_id=owner_id, dry_run=dry_run)
        try:
            stored = set(await self.blob_store.list_keys(owner_id))
            referenced = {
                self.blob_store.key_from_ref(url)
                for url in await self.record_store.list_image_urls(owner_id)
            }
            cutoff_ms = int((time.time() - min_age_seconds) * 1000)
            # skip recent uploads whose row insert may still be in flight
            report.orphaned_keys = sorted(
                k for k in stored - referenced
                if (key_timestamp_ms(k) or 0) <= cutoff_ms
            )
            logger.info(f"Sweep for user {owner_id[:8]}...: {len(stored)} blob(s), {len(report.orphaned_keys)} orphaned")

            if dry_run or not report.orphaned_keys:
                return report

            try:
                report.removed_keys = await self.blob_store.remove(report.orphaned_keys)
            except BlobDeleteError as e:
                report.failed_keys = e.failed_keys
                report.removed_keys = [k for k in report.orphaned_keys if k not in set(e.failed_keys)]
        except FarmAdvisoryError as e:
            report.error = e
            logger.error(f"Sweep failed for user {owner_id[:8]}...: {e.code} {e}")

        return report
