"""Local object storage for uploaded documents.

Objects live under ``<root>/<bucket>/<key>``. Download links are signed with
an HMAC over the key and expiry so they can be handed to a browser.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import time
from pathlib import Path

from cardiva.config import get_config

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object cannot be written, read or removed."""


class LocalFileStorage:
    def __init__(self, root: Path, bucket: str, signing_key: str = "cardiva-dev"):
        self.root = Path(root)
        self.bucket = bucket
        self._signing_key = signing_key.encode()

    @property
    def bucket_path(self) -> Path:
        return self.root / self.bucket

    def _resolve(self, key: str) -> Path:
        path = (self.bucket_path / key).resolve()
        if not path.is_relative_to(self.bucket_path.resolve()):
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def upload(self, key: str, content: bytes) -> str:
        try:
            path = self._resolve(key)
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)
        except OSError as e:
            raise StorageError(str(e)) from e
        logger.debug(f"Stored {len(content)} bytes at {self.bucket}/{key}")
        return key

    def download(self, key: str) -> bytes:
        try:
            return self._resolve(key).read_bytes()
        except OSError as e:
            raise StorageError(str(e)) from e

    def remove(self, key: str) -> None:
        try:
            self._resolve(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(str(e)) from e

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()

    def signed_url(self, key: str, expires_in: int = 3600, base_url: str = "/files") -> str:
        expires = int(time.time()) + expires_in
        signature = self._sign(key, expires)
        return f"{base_url}/{self.bucket}/{key}?expires={expires}&signature={signature}"

    def verify_signature(self, key: str, expires: int, signature: str) -> bool:
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._sign(key, expires), signature)

    def _sign(self, key: str, expires: int) -> str:
        message = f"{self.bucket}/{key}:{expires}".encode()
        return hmac.new(self._signing_key, message, hashlib.sha256).hexdigest()


_storage: LocalFileStorage | None = None


def get_storage() -> LocalFileStorage:
    """Get the configured document storage (singleton)."""
    global _storage
    if _storage is None:
        config = get_config().storage
        _storage = LocalFileStorage(
            config.root,
            config.rfp_bucket,
            signing_key=os.getenv("SECRET_KEY", "cardiva-dev"),
        )
    return _storage
