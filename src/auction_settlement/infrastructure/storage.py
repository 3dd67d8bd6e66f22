"""Object storage adapters for uploaded documents and photos.

Three implementations of the ObjectStorage protocol:
    - InMemoryObjectStorage: keeps payloads in a dict (tests, simulation)
    - LocalObjectStorage:    writes files under a directory served at a public URL
    - HttpObjectStorage:     POSTs payloads to a remote upload endpoint via httpx

Every adapter reports failure as StorageUnavailableError; what a failure
means for the command in flight is decided by the orchestrator.

Usage:
    storage = ObjectStorageFactory.create(get_settings())
    url = await storage.store(pdf_bytes, "application/pdf")
"""

from __future__ import annotations

import asyncio
import mimetypes
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from auction_settlement.domain.exceptions import StorageUnavailableError
from auction_settlement.logging_config import get_logger

if TYPE_CHECKING:
    from auction_settlement.config import Settings
    from auction_settlement.domain.collaborators import ObjectStorage

logger = get_logger(__name__)


def _object_name(content_type: str) -> str:
    """Unguessable, date-prefixed object name with an extension matching the content type."""
    extension = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ".bin"
    stamp = datetime.now(UTC).strftime("%Y%m%d")
    return f"{stamp}_{uuid4().hex}{extension}"


class InMemoryObjectStorage:
    """Dict-backed storage. Set `available = False` to simulate an outage."""

    def __init__(self, url_base: str = "memory://uploads") -> None:
        self.url_base = url_base.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.available = True

    async def store(self, data: bytes, content_type: str) -> str:
        if not self.available:
            raise StorageUnavailableError("In-memory storage is unavailable", content_type)
        url = f"{self.url_base}/{_object_name(content_type)}"
        self.objects[url] = (data, content_type)
        return url


class LocalObjectStorage:
    """Writes uploads to a local directory and returns their public URL.

    Files are expected to be served from {public_url_base}/uploads/.
    """

    def __init__(self, storage_path: str | Path, public_url_base: str) -> None:
        self.storage_path = Path(storage_path)
        self.public_url_base = public_url_base.rstrip("/")

    def _write(self, filename: str, data: bytes) -> Path:
        self.storage_path.mkdir(parents=True, exist_ok=True)
        file_path = self.storage_path / filename
        file_path.write_bytes(data)
        return file_path

    async def store(self, data: bytes, content_type: str) -> str:
        filename = _object_name(content_type)
        try:
            file_path = await asyncio.to_thread(self._write, filename, data)
        except OSError as exc:
            logger.warning(
                "storage.local.write_failed",
                path=str(self.storage_path),
                error=str(exc),
            )
            raise StorageUnavailableError(f"Could not write upload: {exc}", content_type) from exc

        logger.info("storage.local.stored", path=str(file_path), size_bytes=len(data))
        return f"{self.public_url_base}/uploads/{filename}"

    def get_file_path(self, filename: str) -> Path | None:
        file_path = self.storage_path / filename
        return file_path if file_path.exists() else None


class HttpObjectStorage:
    """Uploads to a remote storage service.

    The endpoint receives the raw body with its Content-Type and must answer
    with JSON carrying the public reference: {"url": "https://..."}.
    """

    def __init__(self, endpoint: str, token: str = "", timeout: float = 10.0) -> None:
        if not endpoint:
            raise ValueError("storage_http_endpoint must be set for the http storage backend")
        self.endpoint = endpoint
        self.timeout = timeout
        self.headers = {"Authorization": f"Bearer {token}"} if token else {}

    @retry(
        retry=retry_if_exception_type(httpx.TransportError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        reraise=True,
    )
    async def _upload(self, data: bytes, content_type: str) -> str:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                self.endpoint,
                content=data,
                headers={**self.headers, "Content-Type": content_type},
            )
            response.raise_for_status()
            url = response.json().get("url")
        if not url:
            raise StorageUnavailableError("Storage service returned no URL", content_type)
        return url

    async def store(self, data: bytes, content_type: str) -> str:
        try:
            url = await self._upload(data, content_type)
        except StorageUnavailableError:
            raise
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "storage.http.upload_failed",
                endpoint=self.endpoint,
                error=str(exc),
            )
            raise StorageUnavailableError(f"Upload failed: {exc}", content_type) from exc

        logger.info("storage.http.stored", url=url, size_bytes=len(data))
        return url


class ObjectStorageFactory:
    """Build the configured storage adapter.

    Usage:
        storage = ObjectStorageFactory.create(settings)
    """

    @classmethod
    def create(cls, settings: Settings) -> ObjectStorage:
        backend = settings.storage_backend
        if backend == "memory":
            return InMemoryObjectStorage()
        if backend == "local":
            return LocalObjectStorage(settings.storage_local_path, settings.storage_public_url_base)
        if backend == "http":
            return HttpObjectStorage(
                settings.storage_http_endpoint,
                token=settings.storage_http_token,
                timeout=settings.storage_timeout_seconds,
            )
        raise ValueError(
            f"Unknown storage backend: '{backend}'. Valid backends: {cls.get_supported_backends()}"
        )

    @classmethod
    def get_supported_backends(cls) -> list[str]:
        return ["memory", "local", "http"]
