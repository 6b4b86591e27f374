from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass

from .errors import StorageError

log = logging.getLogger(__name__)

_BUCKET_RE = re.compile(r"^[a-z0-9][a-z0-9._-]{1,62}$")


@dataclass(frozen=True)
class Bucket:
    name: str


class StorageService:
    """Bucketed blob storage on the local filesystem.

    Objects live at ``<root>/<bucket>/<path>`` and are served by the web app
    under ``<url_prefix>/<bucket>/<path>``.
    """

    def __init__(self, root: str, url_prefix: str = "/storage"):
        self.root = os.path.abspath(root)
        self.url_prefix = url_prefix.rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def _bucket_dir(self, bucket: str) -> str:
        if not _BUCKET_RE.match(bucket or ""):
            raise StorageError(f"Invalid bucket name: {bucket!r}")
        return os.path.join(self.root, bucket)

    def _object_path(self, bucket: str, path: str) -> str:
        bucket_dir = self._bucket_dir(bucket)
        if not path or path.startswith(("/", "\\")) or "\\" in path:
            raise StorageError(f"Invalid object path: {path!r}")
        full = os.path.normpath(os.path.join(bucket_dir, path))
        if os.path.commonpath([bucket_dir, full]) != bucket_dir or full == bucket_dir:
            raise StorageError(f"Invalid object path: {path!r}")
        return full

    def list_buckets(self) -> list[Bucket]:
        return [
            Bucket(name=entry)
            for entry in sorted(os.listdir(self.root))
            if os.path.isdir(os.path.join(self.root, entry))
        ]

    def create_bucket(self, name: str, public: bool = True) -> Bucket:
        """Create a bucket. Every bucket is served under ``url_prefix``, so only public ones exist."""
        if not public:
            raise StorageError(f"Private buckets are not supported: {name}")
        bucket_dir = self._bucket_dir(name)
        if os.path.isdir(bucket_dir):
            raise StorageError(f"Bucket already exists: {name}")
        os.makedirs(bucket_dir)
        log.info("Created storage bucket %s", name)
        return Bucket(name=name)

    def ensure_bucket(self, name: str, public: bool = True) -> Bucket:
        if not os.path.isdir(self._bucket_dir(name)):
            return self.create_bucket(name, public=public)
        return Bucket(name=name)

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        """Store ``data`` at ``path``; existing objects are never overwritten."""
        if not os.path.isdir(self._bucket_dir(bucket)):
            raise StorageError(f"Bucket not found: {bucket}")
        full = self._object_path(bucket, path)
        if os.path.exists(full):
            raise StorageError(f"The resource already exists: {bucket}/{path}")
        os.makedirs(os.path.dirname(full), exist_ok=True)
        try:
            with open(full, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Upload failed: {e.strerror or type(e).__name__}") from e
        log.debug("Stored %d bytes at %s/%s", len(data), bucket, path)
        return path

    def download(self, bucket: str, path: str) -> bytes:
        full = self._object_path(bucket, path)
        try:
            with open(full, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise StorageError(f"Object not found: {bucket}/{path}") from None

    def get_public_url(self, bucket: str, path: str) -> str:
        self._object_path(bucket, path)
        return f"{self.url_prefix}/{bucket}/{path}"

    def remove(self, bucket: str, paths: list[str]) -> int:
        removed = 0
        for path in paths:
            full = self._object_path(bucket, path)
            if os.path.exists(full):
                os.remove(full)
                removed += 1
        return removed

    def path_from_public_url(self, url: str | None) -> tuple[str, str] | None:
        """Split a URL produced by ``get_public_url`` back into (bucket, path)."""
        prefix = f"{self.url_prefix}/"
        if not url or not url.startswith(prefix):
            return None
        bucket, _, path = url[len(prefix):].partition("/")
        if not bucket or not path:
            return None
        return bucket, path
