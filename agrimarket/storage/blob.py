"""Blob storage for product images.

A store takes the object key chosen by the caller, persists the bytes and
returns a public URL. ``delete`` exists so that callers can compensate when a
later step fails.
"""
import logging
from pathlib import Path
from typing import Optional, Protocol

from agrimarket.core.config import settings

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    pass


class BlobStore(Protocol):
    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        ...

    def delete(self, key: str) -> None:
        ...


class LocalBlobStore:
    """Stores blobs on the local filesystem, served by the app under ``url_prefix``."""

    def __init__(self, root, url_prefix: str):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def _path(self, key: str) -> Path:
        if not key or key.startswith("/") or ".." in Path(key).parts:
            raise BlobStoreError(f"Invalid object key: {key!r}")
        return self.root / key

    def put(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "xb") as buffer:
                buffer.write(data)
        except OSError as exc:
            raise BlobStoreError(f"Could not store {key}: {exc}") from exc
        logger.info("Stored blob %s (%d bytes)", key, len(data))
        return f"{self.url_prefix}/{key}"

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise BlobStoreError(f"Could not delete {key}: {exc}") from exc


_default_store: Optional[LocalBlobStore] = None


def get_blob_store() -> BlobStore:
    global _default_store
    if _default_store is None:
        _default_store = LocalBlobStore(settings.UPLOAD_DIR, settings.UPLOAD_URL_PREFIX)
    return _default_store
