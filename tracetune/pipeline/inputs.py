"""Input payload classification.

Trace and observation inputs come in three recognised shapes: a bare prompt
string, a list of chat messages, or an object wrapping the list under
``messages``. ``classify_input`` tags the payload once; ``to_messages`` has
one handler per tag.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from tracetune.pipeline.schemas import ChatMessage


@dataclass(frozen=True)
class StringInput:
    """A bare prompt string, treated as one user turn."""

    text: str


@dataclass(frozen=True)
class MessageListInput:
    """A list used as the message transcript directly."""

    items: list[Any]


@dataclass(frozen=True)
class MessagesWrapperInput:
    """An object carrying the transcript under ``messages``."""

    items: list[Any]


@dataclass(frozen=True)
class UnrecognizedInput:
    """Anything else. Contributes no messages."""

    raw: Any


InputShape = Union[StringInput, MessageListInput, MessagesWrapperInput, UnrecognizedInput]


def classify_input(value: Any) -> InputShape:
    """Tag a raw input payload with its shape."""
    if isinstance(value, list):
        return MessageListInput(items=value)
    if isinstance(value, dict) and isinstance(value.get("messages"), list):
        return MessagesWrapperInput(items=value["messages"])
    if isinstance(value, str):
        return StringInput(text=value)
    return UnrecognizedInput(raw=value)


def to_messages(value: Any) -> list[ChatMessage]:
    """Convert a raw input payload into an ordered list of chat messages.

    Items of list inputs are passed through unchecked; filtering and
    validation happen downstream.
    """
    shape = classify_input(value)
    if isinstance(shape, MessageListInput):
        return list(shape.items)
    if isinstance(shape, MessagesWrapperInput):
        return list(shape.items)
    if isinstance(shape, StringInput):
        return [{"role": "user", "content": shape.text}]
    return []


def has_content(message: Any) -> bool:
    """Whether an item is a message object with non-null content.

    Empty string content is allowed.
    """
    return isinstance(message, dict) and message.get("content") is not None


def to_content_messages(value: Any) -> list[ChatMessage]:
    """``to_messages`` with items lacking usable content dropped."""
    return [msg for msg in to_messages(value) if has_content(msg)]
