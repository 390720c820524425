"""Shared fixtures for tracetune tests."""

from __future__ import annotations

import pytest

from tracetune.storage import StoredBlob


class RecordingGateway:
    """In-memory PersistenceGateway that keeps every write."""

    def __init__(self) -> None:
        self.writes: dict[str, tuple[str, str]] = {}

    async def put(self, filename: str, content: str, content_type: str) -> StoredBlob:
        self.writes[filename] = (content, content_type)
        return StoredBlob(
            url=f"memory://{filename}",
            pathname=filename,
            content_type=content_type,
        )


@pytest.fixture
def gateway() -> RecordingGateway:
    return RecordingGateway()
