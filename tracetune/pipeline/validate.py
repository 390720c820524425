"""Structural gate for assembled message transcripts."""

from __future__ import annotations

from typing import Any

from tracetune.pipeline.schemas import (
    REASON_EMPTY_MESSAGES,
    REASON_INVALID_ROLE,
    REASON_MISSING_CONTENT,
    REASON_MISSING_MESSAGES,
    REASON_NOT_AN_OBJECT,
    PreferenceExample,
    TrainingExample,
)


def validate_messages(messages: list[Any]) -> str | None:
    """Check a transcript, stopping at the first violation.

    Args:
        messages: Assembled chat messages.

    Returns:
        The failure reason, or None if every message is well-formed.
    """
    for index, message in enumerate(messages):
        if not isinstance(message, dict):
            return REASON_NOT_AN_OBJECT.format(index=index)
        role = message.get("role")
        if not isinstance(role, str) or not role:
            return REASON_INVALID_ROLE.format(index=index)
        if message.get("content") is None:
            return REASON_MISSING_CONTENT.format(index=index)

    if not messages:
        return REASON_EMPTY_MESSAGES
    return None


def validate_example(example: TrainingExample) -> str | None:
    """Validate the transcript of a supervised or reinforcement example.

    Preference examples carry no transcript and always pass.
    """
    if isinstance(example, PreferenceExample):
        return None
    messages = getattr(example, "messages", None)
    if not isinstance(messages, list):
        return REASON_MISSING_MESSAGES
    return validate_messages(messages)
