"""
SoundCheck Storage Service
Blob storage abstraction for uploaded audio
"""

import asyncio
import logging
import secrets
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.config import get_settings

logger = logging.getLogger(__name__)

UPLOADS_PREFIX = "/uploads/"


def generate_upload_name(extension: str) -> str:
    """Storage name in the accepted <timestamp>-<random>.<ext> shape"""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(3)}.{extension.lower()}"


class StorageBackend(ABC):
    """Where uploaded audio lives; URLs returned here are what tracks reference"""

    @abstractmethod
    async def upload(self, filename: str, data: bytes) -> str:
        """Store bytes under filename and return the public URL"""

    @abstractmethod
    async def delete(self, urls: Iterable[str]) -> None:
        """Delete stored objects by URL; missing objects are not an error"""


class LocalStorageBackend(StorageBackend):
    """Filesystem storage under a public root directory"""

    def __init__(self, root: str, public_base_url: Optional[str] = None):
        self.root = Path(root).resolve()
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    def _safe_path(self, relative: str) -> Path:
        resolved = (self.root / relative.lstrip("/\\")).resolve()
        if resolved == self.root or self.root not in resolved.parents:
            raise ValueError(f"Path traversal blocked: {relative}")
        return resolved

    def _relative_from_url(self, url: str) -> str:
        if self.public_base_url and url.startswith(self.public_base_url + "/"):
            return url[len(self.public_base_url):]
        return url

    def url_for(self, filename: str) -> str:
        """Public URL of a stored upload"""
        path = f"{UPLOADS_PREFIX}{filename}"
        if self.public_base_url:
            return f"{self.public_base_url}{path}"
        return path

    async def upload(self, filename: str, data: bytes) -> str:
        target = self._safe_path(f"{UPLOADS_PREFIX}{filename}")

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info(f"Stored upload {filename} ({len(data)} bytes)")
        return self.url_for(filename)

    async def delete(self, urls: Iterable[str]) -> None:
        paths: List[Path] = [self._safe_path(self._relative_from_url(url)) for url in urls]

        def _unlink() -> None:
            for path in paths:
                path.unlink(missing_ok=True)

        await asyncio.to_thread(_unlink)
        logger.info(f"Deleted {len(paths)} stored file(s)")


_storage_backend: Optional[StorageBackend] = None


def get_storage_backend() -> StorageBackend:
    """Get the configured storage backend (singleton)"""
    global _storage_backend
    if _storage_backend is None:
        settings = get_settings()
        _storage_backend = LocalStorageBackend(
            settings.STORAGE_PATH,
            settings.PUBLIC_STORAGE_BASE_URL
        )
    return _storage_backend


def set_storage_backend(backend: Optional[StorageBackend]) -> None:
    """Replace the storage backend (tests, alternative deployments)"""
    global _storage_backend
    _storage_backend = backend
