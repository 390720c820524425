"""Output payload normalization.

Observation outputs arrive as plain strings, OpenAI-style message objects
(``{"role": "assistant", "content": ...}``) or arbitrary structured output.
Everything is reduced to text the assistant turn can carry.
"""

from __future__ import annotations

import json
from typing import Any


def is_present(value: Any) -> bool:
    """Whether a payload field counts as provided.

    ``None``, ``""``, ``0`` and ``False`` are treated as absent. Empty lists
    and dicts are present: they are structure, not a missing value.
    """
    if value is None or value is False:
        return False
    if isinstance(value, str):
        return value != ""
    if isinstance(value, (int, float)):
        return value != 0
    return True


def reject_constant(name: str) -> Any:
    """``parse_constant`` hook refusing NaN and Infinity, which JSON does not allow."""
    raise ValueError(f"invalid JSON constant: {name}")


def compact_json(value: Any) -> str:
    """Serialize to single-line JSON with no padding between tokens."""
    return json.dumps(
        value, ensure_ascii=False, separators=(",", ":"), allow_nan=False, default=str
    )


def pretty_json(value: Any) -> str:
    """Serialize to two-space indented JSON for human review."""
    return json.dumps(value, ensure_ascii=False, indent=2, allow_nan=False, default=str)


def extract_output_content(output: Any) -> str | None:
    """Extract the assistant text from an observation output.

    Args:
        output: Raw output payload (string, message object, structured data).

    Returns:
        The text content, or None when the output is absent.
    """
    if not is_present(output):
        return None

    if isinstance(output, str):
        return output

    if isinstance(output, dict):
        content = output.get("content")
        if content is not None:
            return content if isinstance(content, str) else compact_json(content)
        # Already-structured output with no message wrapper
        if "role" not in output:
            return compact_json(output)

    return compact_json(output)
