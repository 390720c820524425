"""Pydantic models for the trace conversion pipeline.

Covers all data formats from fetch through training output:
- Source records (observations, the traces built from them)
- Output formats (supervised, preference and reinforcement examples)
- Diagnostics (per-record conversion failures)
"""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

# A chat message is kept as the raw mapping so provider-specific keys
# (name, tool_calls, tool_call_id, ...) survive untouched.
ChatMessage = dict[str, Any]

GENERATION_TYPE = "GENERATION"

# ---------------------------------------------------------------------------
# Failure reasons
# ---------------------------------------------------------------------------

REASON_NO_INPUT_OR_OUTPUT = "no input or output found"
REASON_NO_INPUT = "no input found"
REASON_NO_OUTPUT = "no output found"
REASON_EXTRACTION_FAILED = "failed to extract messages"
REASON_NO_EXAMPLE = "conversion returned no example"
REASON_MISSING_MESSAGES = "missing messages array"
REASON_EMPTY_MESSAGES = "messages array is empty"
REASON_NOT_AN_OBJECT = "message {index} is not an object"
REASON_INVALID_ROLE = "message {index} missing or invalid role"
REASON_MISSING_CONTENT = "message {index} missing content"


# ---------------------------------------------------------------------------
# Source Records
# ---------------------------------------------------------------------------


class RawObservation(BaseModel):
    """One recorded model invocation as returned by the observations API."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = ""
    trace_id: str | None = Field(default=None, alias="traceId")
    type: str | None = None
    input: Any = None
    output: Any = None
    metadata: Any = None
    model: str | None = None
    start_time: str | None = Field(default=None, alias="startTime")
    prompt_name: str | None = Field(default=None, alias="promptName")
    prompt_version: int | None = Field(default=None, alias="promptVersion")
    usage: Any = None

    def metadata_value(self, key: str) -> Any:
        """Read a metadata key, tolerating non-mapping metadata."""
        if isinstance(self.metadata, dict):
            return self.metadata.get(key)
        return None


class TraceRecord(BaseModel):
    """A trace assembled for conversion.

    The observations endpoint already carries input and output, so each
    observation becomes its own trace with itself as the only observation.
    """

    id: str = "unknown"
    input: Any = None
    output: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    observations: list[RawObservation] = Field(default_factory=list)

    @classmethod
    def from_observation(cls, observation: RawObservation) -> TraceRecord:
        metadata = observation.metadata if isinstance(observation.metadata, dict) else {}
        return cls(
            id=observation.trace_id or observation.id or "unknown",
            input=observation.input,
            output=observation.output,
            metadata=metadata,
            observations=[observation],
        )


# ---------------------------------------------------------------------------
# Output Formats
# ---------------------------------------------------------------------------


class SupervisedExample(BaseModel):
    """A chat transcript for supervised fine-tuning."""

    messages: list[Any]
    tools: list[Any] | None = None
    parallel_tool_calls: Any = None

    def to_record(self) -> dict[str, Any]:
        """Plain dict with only the fields that were actually set."""
        return self.model_dump(exclude_unset=True)


class PreferenceExample(BaseModel):
    """A preferred / non-preferred output pair for preference tuning."""

    input: Any
    preferred_output: Any
    non_preferred_output: Any

    def to_record(self) -> dict[str, Any]:
        return self.model_dump()


class ReinforcementExample(BaseModel):
    """A prompt transcript with an optional reference answer for grading."""

    messages: list[Any]
    reference_answer: Any = None
    tools: Any = None

    def to_record(self) -> dict[str, Any]:
        """Plain dict with only the fields that were actually set."""
        return self.model_dump(exclude_unset=True)


TrainingExample = Union[SupervisedExample, PreferenceExample, ReinforcementExample]


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------


class ConversionFailure(BaseModel):
    """Why one record of a batch was rejected."""

    model_config = ConfigDict(populate_by_name=True)

    index: int  # 1-based position in the batch
    trace_id: str = Field(alias="traceId")
    reason: str
