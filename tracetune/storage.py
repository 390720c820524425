"""Artifact persistence.

Datasets are written through a ``PersistenceGateway``: anything with an
async ``put(filename, content, content_type)`` returning the stored URL.
Two gateways ship here, a local directory and a blob store spoken to over
HTTP. Stored artifacts are never deleted or expired by this package;
filenames carry a timestamp so old ones can be cleaned up by hand.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import httpx

from tracetune.types import PersistenceError

logger = logging.getLogger(__name__)

NDJSON_CONTENT_TYPE = "application/x-ndjson"
DEFAULT_BLOB_BASE_URL = "https://blob.vercel-storage.com"


@dataclass(frozen=True)
class StoredBlob:
    """Where an artifact ended up."""

    url: str
    pathname: str
    content_type: str


class PersistenceGateway(Protocol):
    """Durable object storage for dataset artifacts."""

    async def put(self, filename: str, content: str, content_type: str) -> StoredBlob: ...


def generate_timestamp_prefix(now: datetime | None = None) -> str:
    """UTC timestamp safe for filenames, e.g. ``2025-01-31-12-00-05-123``."""
    now = now or datetime.now(timezone.utc)
    now = now.astimezone(timezone.utc)
    return f"{now:%Y-%m-%d-%H-%M-%S}-{now.microsecond // 1000:03d}"


def add_random_suffix(filename: str) -> str:
    """Insert a short random token before the extension."""
    path = Path(filename)
    return f"{path.stem}-{uuid.uuid4().hex[:8]}{path.suffix}"


# ---------------------------------------------------------------------------
# Local directory
# ---------------------------------------------------------------------------


class LocalDirectoryGateway:
    """Writes artifacts as files under a directory."""

    def __init__(self, root: Path, random_suffix: bool = True) -> None:
        """Initialize with the target directory.

        Args:
            root: Directory to write into. Created on first write.
            random_suffix: Whether to add a random token to each filename.
        """
        self.root = Path(root)
        self.random_suffix = random_suffix

    async def put(self, filename: str, content: str, content_type: str) -> StoredBlob:
        pathname = add_random_suffix(filename) if self.random_suffix else filename
        path = self.root / pathname
        try:
            await asyncio.to_thread(self._write, path, content)
        except OSError as exc:
            raise PersistenceError(filename, str(exc)) from exc

        logger.info("Stored %s (%d chars)", path, len(content))
        return StoredBlob(
            url=path.resolve().as_uri(),
            pathname=pathname,
            content_type=content_type,
        )

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)


# ---------------------------------------------------------------------------
# HTTP blob store
# ---------------------------------------------------------------------------


class HttpBlobGateway:
    """Uploads artifacts to a Vercel-Blob-style store.

    Each artifact is a ``PUT <base_url>/<filename>`` with a bearer token;
    the store answers with JSON carrying the public ``url``.
    """

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_BLOB_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def put(self, filename: str, content: str, content_type: str) -> StoredBlob:
        headers = {
            "authorization": f"Bearer {self.token}",
            "x-content-type": content_type,
            "x-add-random-suffix": "1",
        }
        url = f"{self.base_url}/{filename}"
        body = content.encode("utf-8")

        try:
            if self._client is not None:
                response = await self._client.put(url, content=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.put(url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            raise PersistenceError(filename, str(exc)) from exc

        if response.is_error:
            raise PersistenceError(filename, f"{response.status_code} {response.text}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise PersistenceError(filename, f"invalid response body: {exc}") from exc

        blob_url = payload.get("url") if isinstance(payload, dict) else None
        if not blob_url:
            raise PersistenceError(filename, "response did not include a url")

        logger.info("Uploaded %s -> %s", filename, blob_url)
        return StoredBlob(
            url=blob_url,
            pathname=payload.get("pathname", filename),
            content_type=content_type,
        )
