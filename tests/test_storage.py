"""Tests for artifact storage gateways."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
import pytest

from tracetune.storage import (
    NDJSON_CONTENT_TYPE,
    HttpBlobGateway,
    LocalDirectoryGateway,
    add_random_suffix,
    generate_timestamp_prefix,
)
from tracetune.types import PersistenceError

# ---------------------------------------------------------------------------
# Filenames
# ---------------------------------------------------------------------------


class TestTimestampPrefix:
    def test_format(self) -> None:
        now = datetime(2025, 1, 31, 12, 0, 5, 123456, tzinfo=timezone.utc)
        assert generate_timestamp_prefix(now) == "2025-01-31-12-00-05-123"

    def test_converted_to_utc(self) -> None:
        now = datetime(2025, 1, 31, 14, 0, 5, 7000, tzinfo=timezone(timedelta(hours=2)))
        assert generate_timestamp_prefix(now) == "2025-01-31-12-00-05-007"

    def test_default_is_now(self) -> None:
        prefix = generate_timestamp_prefix()
        assert len(prefix) == len("2025-01-31-12-00-05-123")


class TestRandomSuffix:
    def test_keeps_extension(self) -> None:
        name = add_random_suffix("finetune-combined-supervised-ts.jsonl")
        assert name.startswith("finetune-combined-supervised-ts-")
        assert name.endswith(".jsonl")
        assert name != add_random_suffix("finetune-combined-supervised-ts.jsonl")


# ---------------------------------------------------------------------------
# Local directory
# ---------------------------------------------------------------------------


class TestLocalDirectoryGateway:
    """Writes under a directory."""

    @pytest.mark.asyncio
    async def test_writes_file(self, tmp_path: Path) -> None:
        gateway = LocalDirectoryGateway(tmp_path / "out", random_suffix=False)
        blob = await gateway.put("a.jsonl", '{"x":1}\n{"x":2}', NDJSON_CONTENT_TYPE)

        path = tmp_path / "out" / "a.jsonl"
        assert path.read_text(encoding="utf-8") == '{"x":1}\n{"x":2}'
        assert blob.url == path.resolve().as_uri()
        assert blob.pathname == "a.jsonl"
        assert blob.content_type == NDJSON_CONTENT_TYPE

    @pytest.mark.asyncio
    async def test_random_suffix_avoids_collisions(self, tmp_path: Path) -> None:
        gateway = LocalDirectoryGateway(tmp_path)
        first = await gateway.put("a.jsonl", "1", NDJSON_CONTENT_TYPE)
        second = await gateway.put("a.jsonl", "2", NDJSON_CONTENT_TYPE)
        assert first.pathname != second.pathname
        assert len(list(tmp_path.iterdir())) == 2

    @pytest.mark.asyncio
    async def test_os_error_wrapped(self, tmp_path: Path) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        gateway = LocalDirectoryGateway(blocker, random_suffix=False)

        with pytest.raises(PersistenceError) as exc_info:
            await gateway.put("a.jsonl", "x", NDJSON_CONTENT_TYPE)
        assert exc_info.value.filename == "a.jsonl"


# ---------------------------------------------------------------------------
# HTTP blob store
# ---------------------------------------------------------------------------


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpBlobGateway:
    """Uploads against a mocked blob store."""

    @pytest.mark.asyncio
    async def test_put(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={"url": "https://blob.example/a-x1y2.jsonl", "pathname": "a-x1y2.jsonl"},
            )

        async with _client(handler) as client:
            gateway = HttpBlobGateway("tok", base_url="https://blob.example/", client=client)
            blob = await gateway.put("a.jsonl", '{"x":1}', NDJSON_CONTENT_TYPE)

        assert blob.url == "https://blob.example/a-x1y2.jsonl"
        assert blob.pathname == "a-x1y2.jsonl"

        request = seen[0]
        assert request.method == "PUT"
        assert str(request.url) == "https://blob.example/a.jsonl"
        assert request.headers["authorization"] == "Bearer tok"
        assert request.headers["x-content-type"] == NDJSON_CONTENT_TYPE
        assert request.headers["x-add-random-suffix"] == "1"
        assert request.content == b'{"x":1}'

    @pytest.mark.asyncio
    async def test_pathname_defaults_to_filename(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"url": "https://blob.example/a.jsonl"})

        async with _client(handler) as client:
            blob = await HttpBlobGateway("tok", client=client).put("a.jsonl", "", NDJSON_CONTENT_TYPE)
        assert blob.pathname == "a.jsonl"

    @pytest.mark.asyncio
    async def test_error_status(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, text="forbidden")

        async with _client(handler) as client:
            gateway = HttpBlobGateway("tok", client=client)
            with pytest.raises(PersistenceError, match="403 forbidden"):
                await gateway.put("a.jsonl", "x", NDJSON_CONTENT_TYPE)

    @pytest.mark.asyncio
    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            gateway = HttpBlobGateway("tok", client=client)
            with pytest.raises(PersistenceError, match="connection refused"):
                await gateway.put("a.jsonl", "x", NDJSON_CONTENT_TYPE)

    @pytest.mark.asyncio
    async def test_invalid_body(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>")

        async with _client(handler) as client:
            gateway = HttpBlobGateway("tok", client=client)
            with pytest.raises(PersistenceError, match="invalid response body"):
                await gateway.put("a.jsonl", "x", NDJSON_CONTENT_TYPE)

    @pytest.mark.asyncio
    async def test_missing_url(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=json.dumps({"pathname": "a.jsonl"}))

        async with _client(handler) as client:
            gateway = HttpBlobGateway("tok", client=client)
            with pytest.raises(PersistenceError, match="did not include a url"):
                await gateway.put("a.jsonl", "x", NDJSON_CONTENT_TYPE)
