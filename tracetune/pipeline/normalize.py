"""Trace to training-example conversion.

Applies the per-method assembly rules:

- supervised: transcript from the trace input plus an assistant turn from
  its output, overridden by the first generation observation when present
- preference: not derivable from a single trace, always ``None``
- reinforcement: transcript from the trace input, with the reference answer
  and tools taken from trace metadata
"""

from __future__ import annotations

import logging
from typing import Any

from tracetune.pipeline.content import extract_output_content, is_present
from tracetune.pipeline.inputs import to_content_messages, to_messages
from tracetune.pipeline.schemas import (
    GENERATION_TYPE,
    REASON_EXTRACTION_FAILED,
    REASON_NO_INPUT,
    REASON_NO_INPUT_OR_OUTPUT,
    REASON_NO_OUTPUT,
    ChatMessage,
    RawObservation,
    ReinforcementExample,
    SupervisedExample,
    TraceRecord,
    TrainingExample,
)
from tracetune.types import TraceConversionError, TrainingMethod

logger = logging.getLogger(__name__)


def convert_trace(
    trace: TraceRecord,
    method: TrainingMethod | str,
) -> TrainingExample | None:
    """Convert one trace into a training example for the given method.

    Args:
        trace: The trace to convert.
        method: Target fine-tuning method.

    Returns:
        The assembled example, or None for methods that cannot be built
        from a single trace (preference).

    Raises:
        TraceConversionError: If no usable transcript could be assembled.
    """
    method = TrainingMethod(method)
    if method == TrainingMethod.SUPERVISED:
        return _convert_supervised(trace)
    if method == TrainingMethod.REINFORCEMENT:
        return _convert_reinforcement(trace)
    # Pairing preferred and non-preferred outputs needs two traces
    return None


def first_generation(observations: list[RawObservation]) -> RawObservation | None:
    """Return the first observation that is a generation or has no type."""
    for observation in observations:
        if observation.type == GENERATION_TYPE or not observation.type:
            return observation
    return None


def _assistant(content: str) -> ChatMessage:
    return {"role": "assistant", "content": content}


def _convert_supervised(trace: TraceRecord) -> SupervisedExample:
    messages: list[ChatMessage] = []

    if is_present(trace.input):
        messages.extend(to_content_messages(trace.input))

    if is_present(trace.output):
        content = extract_output_content(trace.output)
        if content:
            messages.append(_assistant(content))

    # Only the first generation is used, later ones are ignored.
    observation = first_generation(trace.observations)
    if observation is not None:
        if is_present(observation.input):
            messages = to_content_messages(observation.input)
        if is_present(observation.output):
            content = extract_output_content(observation.output)
            if content:
                messages.append(_assistant(content))

    if not messages:
        reason = _missing_data_reason(trace)
        logger.debug("No messages extracted from trace %s: %s", trace.id, reason)
        raise TraceConversionError(reason)

    fields: dict[str, Any] = {"messages": messages}

    tools = _supervised_tools(trace)
    if isinstance(tools, list) and tools:
        fields["tools"] = tools

    if "parallel_tool_calls" in trace.metadata:
        fields["parallel_tool_calls"] = trace.metadata["parallel_tool_calls"]

    return SupervisedExample(**fields)


def _convert_reinforcement(trace: TraceRecord) -> ReinforcementExample:
    messages: list[ChatMessage] = []
    if is_present(trace.input):
        messages = to_messages(trace.input)

    if not messages:
        reason = REASON_EXTRACTION_FAILED if is_present(trace.input) else REASON_NO_INPUT
        logger.debug("No messages extracted from trace %s: %s", trace.id, reason)
        raise TraceConversionError(reason)

    fields: dict[str, Any] = {"messages": messages}

    reference_answer = trace.metadata.get("reference_answer")
    if is_present(reference_answer):
        fields["reference_answer"] = reference_answer

    tools = trace.metadata.get("tools")
    if is_present(tools):
        fields["tools"] = tools

    return ReinforcementExample(**fields)


def _supervised_tools(trace: TraceRecord) -> Any:
    """Trace-level tools, falling back to the first observation's."""
    tools = trace.metadata.get("tools")
    if is_present(tools):
        return tools
    if trace.observations:
        return trace.observations[0].metadata_value("tools")
    return None


def _missing_data_reason(trace: TraceRecord) -> str:
    """Classify an empty transcript by which payload fields were provided."""
    first = trace.observations[0] if trace.observations else None
    has_input = is_present(trace.input) or (first is not None and is_present(first.input))
    has_output = is_present(trace.output) or (first is not None and is_present(first.output))

    if not has_input and not has_output:
        return REASON_NO_INPUT_OR_OUTPUT
    if not has_input:
        return REASON_NO_INPUT
    if not has_output:
        return REASON_NO_OUTPUT
    return REASON_EXTRACTION_FAILED
