"""
Shared fixtures: in-memory stand-ins for the Supabase table/storage clients
and a mocked generation service.
"""
import os
import sys
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.deletion import DeletionCoordinator
from app.services.pipeline import GenerationPipeline
from app.services.records import RecordStore
from app.services.storage import BlobStore

SUPABASE_TEST_URL = "https://test-project.supabase.co"


class BackendDown(Exception):
    pass


# =============================================================================
# Fake PostgREST table client
# =============================================================================
class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = None
        self.columns = "*"
        self.payload = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    def select(self, columns="*", **kwargs):
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, row):
        self.op = "insert"
        self.payload = row
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(row.get(col) == val for col, val in self.filters)

    def execute(self):
        self.db.calls.append((self.op, self.table))
        if (self.op, self.table) in self.db.fail_on:
            raise BackendDown(f"{self.op} on {self.table} failed")

        rows = self.db.tables.setdefault(self.table, [])

        if self.op == "insert":
            self.db.clock += timedelta(seconds=1)
            row = dict(self.payload)
            row["id"] = str(uuid.uuid4())
            row["created_at"] = self.db.clock.isoformat()
            rows.append(row)
            return SimpleNamespace(data=[dict(row)], count=None)

        if self.op == "delete":
            deleted = [r for r in rows if self._matches(r)]
            self.db.tables[self.table] = [r for r in rows if not self._matches(r)]
            return SimpleNamespace(data=[dict(r) for r in deleted], count=None)

        found = [r for r in rows if self._matches(r)]
        if self.order_by:
            column, desc = self.order_by
            found.sort(key=lambda r: r[column], reverse=desc)
        if self.limit_n is not None:
            found = found[:self.limit_n]
        if self.columns == "*":
            data = [dict(r) for r in found]
        else:
            wanted = [c.strip() for c in self.columns.split(",")]
            data = [{c: r.get(c) for c in wanted} for r in found]
        return SimpleNamespace(data=data, count=len(data))


# =============================================================================
# Fake Storage bucket
# =============================================================================
class FakeBucket:
    def __init__(self, storage, name):
        self.storage = storage
        self.name = name

    @property
    def objects(self):
        return self.storage.objects.setdefault(self.name, {})

    def upload(self, path, file, file_options=None):
        self.storage.calls.append(("upload", path))
        if self.storage.fail_upload:
            raise BackendDown("upload rejected")
        if path in self.objects:
            raise BackendDown("The resource already exists")
        self.objects[path] = (file, (file_options or {}).get("content-type"))
        return SimpleNamespace(path=path)

    def get_public_url(self, path):
        if self.storage.fail_public_url:
            raise BackendDown("cannot build public url")
        return f"{SUPABASE_TEST_URL}/storage/v1/object/public/{self.name}/{path}"

    def remove(self, paths):
        self.storage.calls.append(("remove", tuple(paths)))
        for path in paths:
            if path in self.storage.fail_remove:
                raise BackendDown(f"cannot remove {path}")
        removed = []
        for path in paths:
            if self.objects.pop(path, None) is not None:
                removed.append({"name": path})
        return removed

    def list(self, path=None, options=None):
        options = options or {}
        prefix = f"{path}/" if path else ""
        names = sorted(k[len(prefix):] for k in self.objects if k.startswith(prefix))
        offset = options.get("offset", 0)
        limit = options.get("limit", 100)
        return [{"name": n, "id": n} for n in names[offset:offset + limit]]


class FakeStorage:
    def __init__(self):
        self.objects = {}
        self.calls = []
        self.fail_upload = False
        self.fail_public_url = False
        self.fail_remove = set()

    def from_(self, name):
        return FakeBucket(self, name)


class FakeSupabase:
    def __init__(self):
        self.tables = {}
        self.calls = []
        self.fail_on = set()
        self.clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.storage = FakeStorage()

    def table(self, name):
        return FakeQuery(self, name)

    # helpers for assertions
    def rows(self, table):
        return list(self.tables.get(table, []))

    def blobs(self, bucket="crop-images"):
        return dict(self.storage.objects.get(bucket, {}))


# =============================================================================
# Fixtures
# =============================================================================
@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def record_store(fake_supabase):
    return RecordStore(supabase_client_instance=fake_supabase)


@pytest.fixture
def blob_store(fake_supabase):
    return BlobStore(supabase_client_instance=fake_supabase)


@pytest.fixture
def generator():
    """Generation service double; set ``generator.generate.return_value``"""
    service = MagicMock()
    service.ensure_configured = MagicMock(return_value=None)
    service.generate = AsyncMock(return_value="")
    return service


@pytest.fixture
def pipeline(generator, record_store, blob_store):
    return GenerationPipeline(generator=generator, record_store=record_store, blob_store=blob_store)


@pytest.fixture
def coordinator(record_store, blob_store):
    return DeletionCoordinator(record_store=record_store, blob_store=blob_store)
