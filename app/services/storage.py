"""
Blob Store Adapter over the Supabase Storage ``crop-images`` bucket.

Keys look like ``<owner_id>/<epoch millis>.<ext>`` so two uploads by the same
owner never collide, and the owner's images can be listed by prefix.
"""
import logging
import time
from typing import Iterable, List, Optional

from app.config import CROP_IMAGES_BUCKET
from app.dependencies import supabase_client
from app.errors import BlobDeleteError, BlobWriteError, ConfigurationError, StoreReadError

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 100


def make_image_key(owner_id: str, extension: str, timestamp_ms: Optional[int] = None) -> str:
    """Build a collision-free key inside the owner's namespace"""
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    extension = (extension or "jpg").lstrip(".").lower()
    return f"{owner_id}/{timestamp_ms}.{extension}"


def key_timestamp_ms(key: str) -> Optional[int]:
    """Upload time encoded in a key built by ``make_image_key``"""
    stem = key.rsplit("/", 1)[-1].split(".", 1)[0]
    return int(stem) if stem.isdigit() else None


class BlobStore:
    """Upload, address and delete image blobs"""

    def __init__(self, supabase_client_instance=None, bucket: str = CROP_IMAGES_BUCKET):
        self.supabase_client = supabase_client_instance or supabase_client
        self.bucket_name = bucket

    def ensure_configured(self):
        if not self.supabase_client:
            raise ConfigurationError("Supabase storage is not configured")

    def _bucket(self):
        self.ensure_configured()
        return self.supabase_client.storage.from_(self.bucket_name)

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` under ``key`` (never overwrites) and return its public URL"""
        bucket = self._bucket()
        try:
            bucket.upload(
                key,
                data,
                file_options={"content-type": content_type, "upsert": "false"},
            )
        except Exception as e:
            logger.error(f"Blob upload failed for {key}: {e}")
            raise BlobWriteError(str(e)) from e

        logger.info(f"✓ Uploaded blob {key} ({len(data)} bytes)")
        try:
            return self.public_ref(key)
        except Exception as e:
            # the blob is stored but nothing will reference it
            logger.error(f"No public URL for uploaded blob {key}, left orphaned: {e}")
            raise BlobWriteError(str(e)) from e

    def public_ref(self, key: str) -> str:
        """Permanent public URL for ``key``; string building only"""
        url = self._bucket().get_public_url(key)
        # some storage client versions append an empty query string
        return url.rstrip("?")

    def key_from_ref(self, url: str) -> Optional[str]:
        """Recover the storage key from a public URL, or None if it is not ours"""
        if not url:
            return None
        marker = f"/{self.bucket_name}/"
        if marker not in url:
            return None
        key = url.split(marker, 1)[1].split("?", 1)[0]
        return key or None

    async def remove(self, keys: Iterable[str]) -> List[str]:
        """
        Best-effort delete. Each key gets one delete attempt; keys that are
        already gone count as removed.

        Returns the removed keys, or raises ``BlobDeleteError`` listing the
        keys that could not be removed.
        """
        keys = sorted(set(k for k in keys if k))
        if not keys:
            return []

        bucket = self._bucket()
        removed, failed = [], []
        for key in keys:
            try:
                bucket.remove([key])
                removed.append(key)
            except Exception as e:
                logger.warning(f"Failed to remove blob {key}: {e}")
                failed.append(key)

        logger.info(f"✓ Removed {len(removed)}/{len(keys)} blob(s)")
        if failed:
            raise BlobDeleteError(failed)
        return removed

    async def list_keys(self, owner_id: str) -> List[str]:
        """All keys stored under the owner's prefix"""
        bucket = self._bucket()
        keys = []
        offset = 0
        while True:
            try:
                page = bucket.list(owner_id, {"limit": LIST_PAGE_SIZE, "offset": offset})
            except Exception as e:
                logger.error(f"Failed to list blobs for {owner_id[:8]}...: {e}")
                raise StoreReadError(str(e)) from e
            for item in page or []:
                name = item.get("name")
                # folders come back without an id
                if name and item.get("id") is not None:
                    keys.append(f"{owner_id}/{name}")
            if not page or len(page) < LIST_PAGE_SIZE:
                break
            offset += LIST_PAGE_SIZE
        return keys
