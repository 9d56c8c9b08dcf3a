"""
Record Store Adapter

CRUD over the two result tables in Supabase:
    advisory_logs     (id, user_id, diagnosis, advice, created_at)
    crop_diagnostics  (id, user_id, image_url, diagnosis, advice, confidence, created_at)

Rows are insert-only; there is no update path. Every query is scoped to one
owner.
"""
import json
import logging
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from app.dependencies import supabase_client
from app.errors import ConfigurationError, StoreReadError, StoreWriteError
from app.models import AdvisoryRecord, DiagnosticRecord, RecordKind

logger = logging.getLogger(__name__)

Record = Union[AdvisoryRecord, DiagnosticRecord]


def _model_for(kind: RecordKind):
    return AdvisoryRecord if kind is RecordKind.ADVISORY else DiagnosticRecord


class RecordStore:
    """Insert, list and delete advisory/diagnostic rows"""

    def __init__(self, supabase_client_instance=None):
        self.supabase_client = supabase_client_instance or supabase_client

    def ensure_configured(self):
        if not self.supabase_client:
            raise ConfigurationError("Supabase is not configured")

    def _table(self, kind: RecordKind):
        self.ensure_configured()
        return self.supabase_client.table(kind.table)

    async def _insert(self, kind: RecordKind, row: dict) -> Record:
        table = self._table(kind)
        try:
            result = table.insert(row).execute()
        except Exception as e:
            logger.error(f"Failed to insert into {kind.table}: {e}")
            raise StoreWriteError(str(e)) from e

        if not result.data:
            raise StoreWriteError(f"Insert into {kind.table} returned no row")

        try:
            record = _model_for(kind).model_validate(result.data[0])
        except ValidationError as e:
            raise StoreWriteError(f"Unexpected row from {kind.table}: {e}") from e
        logger.info(f"✓ Saved {kind.value} {record.id} for user {record.owner_id[:8]}...")
        return record

    async def create_advisory(self, owner_id: str, diagnosis: str, advice: Any) -> AdvisoryRecord:
        """Store an advisory; ``advice`` is kept as JSON text"""
        return await self._insert(RecordKind.ADVISORY, {
            "user_id": owner_id,
            "diagnosis": diagnosis,
            "advice": json.dumps(advice, ensure_ascii=False),
        })

    async def create_diagnostic(
        self,
        owner_id: str,
        image_url: str,
        diagnosis: str,
        advice: str,
        confidence: Optional[int],
    ) -> DiagnosticRecord:
        """Store a diagnosis whose image has already been uploaded"""
        return await self._insert(RecordKind.DIAGNOSTIC, {
            "user_id": owner_id,
            "image_url": image_url,
            "diagnosis": diagnosis,
            "advice": advice,
            "confidence": confidence,
        })

    async def list_by_owner(self, kind: RecordKind, owner_id: str) -> List[Record]:
        """Owner's records, most recent first"""
        table = self._table(kind)
        try:
            result = table.select("*")\
                .eq("user_id", owner_id)\
                .order("created_at", desc=True)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to list {kind.table} for user {owner_id[:8]}...: {e}")
            raise StoreReadError(str(e)) from e

        model = _model_for(kind)
        try:
            return [model.model_validate(row) for row in result.data or []]
        except ValidationError as e:
            raise StoreReadError(f"Unexpected row in {kind.table}: {e}") from e

    async def get_by_id(self, kind: RecordKind, owner_id: str, record_id: str) -> Optional[Record]:
        table = self._table(kind)
        try:
            result = table.select("*")\
                .eq("id", record_id)\
                .eq("user_id", owner_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to fetch {kind.table} {record_id}: {e}")
            raise StoreReadError(str(e)) from e

        if not result.data:
            return None
        try:
            return _model_for(kind).model_validate(result.data[0])
        except ValidationError as e:
            raise StoreReadError(f"Unexpected row in {kind.table}: {e}") from e

    async def list_image_urls(self, owner_id: str) -> List[str]:
        """``image_url`` of every diagnostic row the owner has"""
        table = self._table(RecordKind.DIAGNOSTIC)
        try:
            result = table.select("image_url").eq("user_id", owner_id).execute()
        except Exception as e:
            logger.error(f"Failed to list image urls for user {owner_id[:8]}...: {e}")
            raise StoreReadError(str(e)) from e
        return [row["image_url"] for row in result.data or [] if row.get("image_url")]

    async def delete_by_id(self, kind: RecordKind, owner_id: str, record_id: str) -> int:
        """Delete one row; a missing row is not an error. Returns rows deleted."""
        table = self._table(kind)
        try:
            result = table.delete()\
                .eq("id", record_id)\
                .eq("user_id", owner_id)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to delete {kind.table} {record_id}: {e}")
            raise StoreWriteError(str(e)) from e
        return len(result.data or [])

    async def delete_all_by_owner(self, kind: RecordKind, owner_id: str) -> int:
        """Delete every row of ``kind`` for the owner in one statement"""
        table = self._table(kind)
        try:
            result = table.delete().eq("user_id", owner_id).execute()
        except Exception as e:
            logger.error(f"Failed to clear {kind.table} for user {owner_id[:8]}...: {e}")
            raise StoreWriteError(str(e)) from e

        deleted = len(result.data or [])
        logger.info(f"✓ Deleted {deleted} {kind.value} row(s) for user {owner_id[:8]}...")
        return deleted
