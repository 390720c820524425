"""Batch conversion of observations into training examples.

Each observation is converted and validated on its own. A bad record is
logged and reported, never fatal: the batch result always carries whatever
could be converted plus the full list of rejections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from tracetune.pipeline.content import compact_json, pretty_json
from tracetune.pipeline.normalize import convert_trace
from tracetune.pipeline.schemas import (
    REASON_NO_EXAMPLE,
    ConversionFailure,
    RawObservation,
    TraceRecord,
    TrainingExample,
)
from tracetune.pipeline.validate import validate_example
from tracetune.types import TraceConversionError, TrainingMethod

logger = logging.getLogger(__name__)

# Separator between indented examples in the human-readable form
PRETTY_SEPARATOR = "\n\n---\n\n"

# Rejections beyond this many are counted but not logged individually
MAX_LOGGED_FAILURES = 20

# Trace ids are shortened to this many characters in log lines
LOGGED_TRACE_ID_CHARS = 8


@dataclass
class ConversionResult:
    """Accepted examples and rejections for one batch.

    Attributes:
        examples: Examples that passed conversion and validation, in batch order.
        invalid_traces: One entry per rejected record, in batch order.
        total_observations: Number of records in the batch.
    """

    examples: list[TrainingExample] = field(default_factory=list)
    invalid_traces: list[ConversionFailure] = field(default_factory=list)
    total_observations: int = 0

    @property
    def count(self) -> int:
        return len(self.examples)

    @property
    def invalid_count(self) -> int:
        return len(self.invalid_traces)

    def records(self) -> list[dict[str, Any]]:
        """Accepted examples as plain dicts."""
        return [example.to_record() for example in self.examples]

    def to_pretty_jsonl(self) -> str:
        """Indented examples separated by a marker line, for review and editing."""
        return PRETTY_SEPARATOR.join(pretty_json(record) for record in self.records())

    def to_compact_jsonl(self) -> str:
        """One example per line, for storage and fine-tuning uploads."""
        return "\n".join(compact_json(record) for record in self.records())

    def summary(self) -> dict[str, int]:
        return {
            "count": self.count,
            "total_observations": self.total_observations,
            "invalid_count": self.invalid_count,
        }


def assemble_examples(
    observations: list[RawObservation],
    method: TrainingMethod | str,
    prompt_name: str | None = None,
    prompt_version: int | str | None = None,
    max_logged_failures: int = MAX_LOGGED_FAILURES,
) -> ConversionResult:
    """Convert a batch of observations into validated training examples.

    Args:
        observations: Raw observations fetched for one prompt.
        method: Target fine-tuning method.
        prompt_name: Prompt the observations were recorded for (logging only).
        prompt_version: Prompt version, if the batch was filtered by one.
        max_logged_failures: Cap on individually logged rejections.

    Returns:
        ConversionResult with accepted examples and every rejection.
    """
    method = TrainingMethod(method)
    result = ConversionResult(total_observations=len(observations))

    for position, observation in enumerate(observations, start=1):
        trace = TraceRecord.from_observation(observation)
        reason = _convert_one(trace, method, result)
        if reason is not None:
            result.invalid_traces.append(
                ConversionFailure(index=position, trace_id=trace.id, reason=reason)
            )

    _log_outcome(result, method, prompt_name, prompt_version, max_logged_failures)
    return result


def _convert_one(
    trace: TraceRecord,
    method: TrainingMethod,
    result: ConversionResult,
) -> str | None:
    """Convert and validate one trace, returning the rejection reason if any."""
    try:
        example = convert_trace(trace, method)
    except TraceConversionError as exc:
        return exc.reason

    if example is None:
        return REASON_NO_EXAMPLE

    reason = validate_example(example)
    if reason is not None:
        return reason

    result.examples.append(example)
    return None


def _log_outcome(
    result: ConversionResult,
    method: TrainingMethod,
    prompt_name: str | None,
    prompt_version: int | str | None,
    max_logged_failures: int,
) -> None:
    label = prompt_name or "<unnamed>"
    if prompt_version is not None:
        label = f"{label}@{prompt_version}"

    if not result.invalid_traces:
        logger.info(
            "All %d traces for %s converted successfully (%s)",
            result.total_observations,
            label,
            method.value,
        )
        return

    logger.warning(
        "%d invalid traces out of %d total for %s (%s)",
        result.invalid_count,
        result.total_observations,
        label,
        method.value,
    )
    for failure in result.invalid_traces[:max_logged_failures]:
        logger.warning(
            "  Example %d (traceId: %s...): %s",
            failure.index,
            failure.trace_id[:LOGGED_TRACE_ID_CHARS],
            failure.reason,
        )
    if result.invalid_count > max_logged_failures:
        logger.warning("  ... and %d more", result.invalid_count - max_logged_failures)
