"""Request handlers for trace conversion and dataset saving.

Two calls make up the public surface:

- convert: fetch a page of observations for a prompt and turn them into
  training examples, reporting every record that could not be converted
- save: re-ingest (possibly hand-edited) example text, split it into
  training and validation sets and store the artifacts

Requests and responses use camelCase keys on the wire.
"""

from __future__ import annotations

import json
import logging
import random
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from tracetune.pipeline.assembler import MAX_LOGGED_FAILURES, assemble_examples
from tracetune.pipeline.content import reject_constant
from tracetune.pipeline.repair import repair_blocks
from tracetune.pipeline.schemas import ConversionFailure
from tracetune.pipeline.splitter import DEFAULT_TRAIN_SPLIT_RATIO, persist_dataset, split_dataset
from tracetune.sources import ObservationSource
from tracetune.storage import NDJSON_CONTENT_TYPE, PersistenceGateway, generate_timestamp_prefix
from tracetune.types import RequestValidationError, TrainingMethod

logger = logging.getLogger(__name__)

METHOD_ERROR = "method must be one of: " + ", ".join(m.value for m in TrainingMethod)


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)


# ---------------------------------------------------------------------------
# Convert
# ---------------------------------------------------------------------------


class ConvertTracesRequest(_WireModel):
    """Which observations to convert and into what."""

    prompt_name: str = Field(min_length=1)
    version: int | None = None
    method: TrainingMethod
    limit: int = Field(default=100, gt=0)
    offset: int = Field(default=0, ge=0)


class ConvertTracesResponse(_WireModel):
    """Converted examples plus the per-record failure report."""

    success: bool = True
    examples: list[dict[str, Any]]
    jsonl: str
    count: int
    total_observations: int
    invalid_traces: list[ConversionFailure] | None = None
    invalid_count: int
    blob_url: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Wire form; optional keys are omitted rather than sent as null."""
        payload = self.model_dump(by_alias=True)
        for key in ("invalidTraces", "blobUrl"):
            if payload[key] is None:
                del payload[key]
        return payload


def parse_convert_request(body: Mapping[str, Any]) -> ConvertTracesRequest:
    """Validate a raw convert request body.

    Raises:
        RequestValidationError: If a required field is missing or malformed.
    """
    prompt_name = body.get("promptName")
    if not prompt_name or not isinstance(prompt_name, str):
        raise RequestValidationError("promptName is required")
    _check_method(body.get("method"))

    try:
        return ConvertTracesRequest.model_validate(dict(body))
    except ValidationError as exc:
        raise RequestValidationError(_describe(exc)) from exc


async def convert_traces(
    request: ConvertTracesRequest,
    source: ObservationSource,
    gateway: PersistenceGateway | None = None,
    max_logged_failures: int = MAX_LOGGED_FAILURES,
) -> ConvertTracesResponse:
    """Fetch observations for a prompt and convert them to training examples.

    Bad records never fail the call; they are listed in ``invalid_traces``.
    When a gateway is given the compact JSONL is stored as well.

    Raises:
        UpstreamFetchError: If the observations cannot be fetched.
        PersistenceError: If storing the compact JSONL fails.
    """
    observations = await source.fetch_observations(
        request.prompt_name,
        version=request.version,
        limit=request.limit,
        offset=request.offset,
    )
    result = assemble_examples(
        observations,
        request.method,
        prompt_name=request.prompt_name,
        prompt_version=request.version,
        max_logged_failures=max_logged_failures,
    )

    blob_url = None
    if gateway is not None:
        filename = f"finetune-convert-traces-{generate_timestamp_prefix()}.jsonl"
        stored = await gateway.put(filename, result.to_compact_jsonl(), NDJSON_CONTENT_TYPE)
        blob_url = stored.url

    return ConvertTracesResponse(
        examples=result.records(),
        jsonl=result.to_pretty_jsonl(),
        count=result.count,
        total_observations=result.total_observations,
        invalid_traces=list(result.invalid_traces) or None,
        invalid_count=result.invalid_count,
        blob_url=blob_url,
    )


# ---------------------------------------------------------------------------
# Save
# ---------------------------------------------------------------------------


class SaveTrainingDataRequest(_WireModel):
    """Example text to re-ingest and how to split it."""

    data: str
    method: TrainingMethod
    example_count: int | None = None
    train_split_ratio: float = Field(default=DEFAULT_TRAIN_SPLIT_RATIO, allow_inf_nan=False)


class SaveTrainingDataResponse(_WireModel):
    """URLs and counts of the stored artifacts."""

    success: bool = True
    blob_url: str
    training_blob_url: str
    validation_blob_url: str
    training_count: int
    validation_count: int
    example_count: int
    method: TrainingMethod
    train_split_ratio: float

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


def parse_save_request(body: str | Mapping[str, Any]) -> SaveTrainingDataRequest:
    """Validate a raw save request, given as JSON text or a decoded mapping.

    Raises:
        RequestValidationError: If the body is not JSON or a field is invalid.
    """
    if isinstance(body, str):
        try:
            body = json.loads(body, parse_constant=reject_constant)
        except ValueError as exc:
            raise RequestValidationError(f"Failed to parse request body: {exc}") from exc
    if not isinstance(body, Mapping):
        raise RequestValidationError("Failed to parse request body: expected a JSON object")

    if not isinstance(body.get("data"), str):
        raise RequestValidationError("Training data is required")
    _check_method(body.get("method"))

    try:
        return SaveTrainingDataRequest.model_validate(dict(body))
    except ValidationError as exc:
        raise RequestValidationError(_describe(exc)) from exc


async def save_training_data(
    request: SaveTrainingDataRequest,
    gateway: PersistenceGateway,
    rng: random.Random | None = None,
    timestamp: str | None = None,
) -> SaveTrainingDataResponse:
    """Re-ingest example text, split it and store the three artifacts.

    Any unrecoverable block rejects the whole request before anything is
    written.

    Raises:
        RequestValidationError: If the text holds no examples.
        JSONRepairError: If a block cannot be recovered.
        PersistenceError: If an artifact write fails.
    """
    lines = repair_blocks(request.data)
    dataset = split_dataset(lines, request.train_split_ratio, rng=rng)
    persisted = await persist_dataset(dataset, request.method, gateway, timestamp=timestamp)

    return SaveTrainingDataResponse(
        blob_url=persisted.combined_url,
        training_blob_url=persisted.training_url,
        validation_blob_url=persisted.validation_url,
        training_count=dataset.training_count,
        validation_count=dataset.validation_count,
        example_count=request.example_count or len(dataset.combined_lines),
        method=request.method,
        train_split_ratio=request.train_split_ratio,
    )


def _check_method(method: Any) -> None:
    if method not in [m.value for m in TrainingMethod]:
        raise RequestValidationError(METHOD_ERROR)


def _describe(exc: ValidationError) -> str:
    """First validation problem as ``field: message``."""
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error["loc"])
    return f"{location}: {error['msg']}" if location else error["msg"]
