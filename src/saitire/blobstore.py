from __future__ import annotations

import hashlib
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

from .config import Config
from .utils import log_event

logger = logging.getLogger("saitire.blobstore")

DEFAULT_PAGE_SIZE = 1000


class StorageBindingError(RuntimeError):
    def __init__(self, binding: str) -> None:
        super().__init__(f"{binding} binding missing")
        self.binding = binding


class RevisionConflict(ValueError):
    pass


@dataclass(frozen=True)
class BlobObject:
    key: str
    size: int


@dataclass(frozen=True)
class ListResult:
    objects: list[BlobObject]
    truncated: bool
    cursor: str | None


class BlobStore(ABC):
    """Key to bytes object store with prefix listing.

    ``put`` accepts ``if_revision`` for compare-and-swap writes: ``None``
    writes unconditionally, ``""`` requires the key to be absent, any other
    value must equal the current revision tag or ``RevisionConflict`` is
    raised.
    """

    name = "abstract"

    @abstractmethod
    def get(self, key: str) -> bytes | None:
        raise NotImplementedError

    @abstractmethod
    def get_with_revision(self, key: str) -> tuple[bytes | None, str]:
        """Return the bytes and the revision tag of that same read; ``""`` when absent."""
        raise NotImplementedError

    @abstractmethod
    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        if_revision: str | None = None,
    ) -> str:
        raise NotImplementedError

    @abstractmethod
    def list(
        self, prefix: str = "", cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> ListResult:
        raise NotImplementedError

    @abstractmethod
    def delete(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def revision(self, key: str) -> str | None:
        raise NotImplementedError


def list_all(store: BlobStore, prefix: str, max_pages: int = 50) -> list[BlobObject]:
    objects: list[BlobObject] = []
    cursor: str | None = None
    for _ in range(max_pages):
        page = store.list(prefix, cursor=cursor)
        objects.extend(page.objects)
        if not page.truncated or not page.cursor:
            break
        cursor = page.cursor
    return objects


class LocalBlobStore(BlobStore):
    name = "local"

    def __init__(self, base_path: str) -> None:
        self._base_path = Path(base_path)
        self._base_path.mkdir(parents=True, exist_ok=True)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def _path(self, key: str) -> Path:
        if not key or key.endswith("/"):
            raise ValueError(f"invalid_key: {key!r}")
        resolved = (self._base_path / key).resolve()
        if not resolved.is_relative_to(self._base_path.resolve()):
            raise ValueError("path_traversal_detected")
        return resolved

    def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.is_file():
            return None
        return path.read_bytes()

    def get_with_revision(self, key: str) -> tuple[bytes | None, str]:
        data = self.get(key)
        return data, (_revision_of(data) if data is not None else "")

    def put(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        if_revision: str | None = None,
    ) -> str:
        path = self._path(key)
        if if_revision is not None:
            current = self.revision(key) or ""
            if current != if_revision:
                raise RevisionConflict(f"revision_conflict: {key}")
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(f".{path.name}.tmp")
        tmp_path.write_bytes(data)
        os.replace(tmp_path, path)
        log_event(logger, logging.DEBUG, "blob_put", store=self.name, key=key, size=len(data))
        return _revision_of(data)

    def list(
        self, prefix: str = "", cursor: str | None = None, limit: int = DEFAULT_PAGE_SIZE
    ) -> ListResult:
        keys = sorted(self._iter_keys())
        matched = [
            key for key in keys if key.startswith(prefix) and (cursor is None or key > cursor)
        ]
        page = matched[:limit]
        objects = [BlobObject(key=key, size=(self._base_path / key).stat().st_size) for key in page]
        truncated = len(matched) > limit
        return ListResult(
            objects=objects, truncated=truncated, cursor=page[-1] if truncated else None
        )

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def revision(self, key: str) -> str | None:
        data = self.get(key)
        return _revision_of(data) if data is not None else None

    def _iter_keys(self):
        for path in self._base_path.rglob("*"):
            if not path.is_file() or path.name.startswith("."):
                continue
            yield path.relative_to(self._base_path).as_posix()


def _revision_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


_blob_store: BlobStore | None = None


def get_blob_store(config: Config | None = None) -> BlobStore:
    global _blob_store

    if _blob_store is not None:
        return _blob_store
    if config is None:
        raise StorageBindingError("BLOB_STORE")

    backend = config.storage.backend
    if backend == "local":
        _blob_store = LocalBlobStore(os.path.join(config.paths.data_dir, "store"))
    elif backend == "s3":
        from .s3store import S3BlobStore

        _blob_store = S3BlobStore(
            bucket=config.storage.s3_bucket,
            prefix=config.storage.s3_prefix,
            region=config.storage.s3_region or None,
            endpoint_url=config.storage.s3_endpoint_url or None,
        )
    else:
        raise ValueError(f"unknown_storage_backend: {backend}")

    log_event(logger, logging.INFO, "blob_store_initialized", backend=_blob_store.name)
    return _blob_store


def set_blob_store(store: BlobStore) -> None:
    global _blob_store
    _blob_store = store


def reset_blob_store() -> None:
    global _blob_store
    _blob_store = None
