"""Observation sources.

Observations are read either from the Langfuse public API or from a local
JSONL export of the same records.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from tracetune.pipeline.content import reject_constant
from tracetune.pipeline.schemas import GENERATION_TYPE, RawObservation
from tracetune.types import UpstreamFetchError

logger = logging.getLogger(__name__)

DEFAULT_LANGFUSE_BASE_URL = "https://us.cloud.langfuse.com"
OBSERVATIONS_PATH = "/api/public/observations"


class ObservationSource(Protocol):
    """Anything that can page through the observations of one prompt."""

    async def fetch_observations(
        self,
        prompt_name: str,
        version: int | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RawObservation]: ...


def build_observation_filters(prompt_name: str, version: int | None = None) -> list[dict[str, Any]]:
    """Filter expression selecting the generations recorded for a prompt.

    A version of 0 or None means every version.
    """
    filters: list[dict[str, Any]] = [
        {"type": "string", "column": "type", "operator": "=", "value": GENERATION_TYPE},
        {"type": "string", "column": "promptName", "operator": "=", "value": prompt_name},
    ]
    if version:
        filters.append(
            {"type": "number", "column": "promptVersion", "operator": "=", "value": int(version)}
        )
    return filters


class LangfuseObservationSource:
    """Reads generation observations from the Langfuse public API."""

    def __init__(
        self,
        public_key: str,
        secret_key: str,
        base_url: str = DEFAULT_LANGFUSE_BASE_URL,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.auth = httpx.BasicAuth(public_key, secret_key)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    async def fetch_observations(
        self,
        prompt_name: str,
        version: int | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[RawObservation]:
        """Fetch one page of generations for a prompt.

        Args:
            prompt_name: Prompt the generations were recorded for.
            version: Optional prompt version filter.
            limit: Page size.
            offset: Number of records to skip, rounded down to a page boundary.

        Returns:
            Observations in the order the API returned them.

        Raises:
            UpstreamFetchError: On transport errors, non-2xx responses or
                malformed payloads.
        """
        params = {
            "limit": str(limit),
            "page": str(offset // limit + 1),
            "filter": json.dumps(build_observation_filters(prompt_name, version)),
        }
        url = self.base_url + OBSERVATIONS_PATH

        try:
            if self._client is not None:
                response = await self._client.get(url, params=params, auth=self.auth)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params, auth=self.auth)
        except httpx.HTTPError as exc:
            raise UpstreamFetchError(0, str(exc)) from exc

        if response.is_error:
            raise UpstreamFetchError(response.status_code, response.text)

        try:
            payload = response.json(parse_constant=reject_constant)
            items = payload.get("data") or []
            observations = [RawObservation.model_validate(item) for item in items]
        except (ValueError, AttributeError, ValidationError) as exc:
            raise UpstreamFetchError(response.status_code, f"malformed response: {exc}") from exc

        logger.info(
            "Fetched %d observations for prompt %s (page %s)",
            len(observations),
            prompt_name,
            params["page"],
        )
        return observations


def load_observations(path: Path) -> list[RawObservation]:
    """Load observations from a JSONL export.

    Args:
        path: File with one observation object per line.

    Returns:
        List of RawObservation objects. Undecodable lines are skipped.
    """
    if not path.exists():
        logger.warning("Observations file not found: %s", path)
        return []

    records: list[RawObservation] = []
    skipped = 0
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                records.append(
                    RawObservation.model_validate(json.loads(line, parse_constant=reject_constant))
                )
            except (ValueError, ValidationError):
                skipped += 1
                continue

    if skipped:
        logger.warning("Skipped %d undecodable lines in %s", skipped, path.name)
    logger.info("Loaded %d observations from %s", len(records), path.name)
    return records
