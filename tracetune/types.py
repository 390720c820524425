"""Core type definitions for tracetune."""

from __future__ import annotations

from enum import Enum


class TrainingMethod(str, Enum):
    """Fine-tuning data formats the pipeline can target."""

    SUPERVISED = "supervised"
    PREFERENCE = "preference"
    REINFORCEMENT = "reinforcement"


class TracetuneError(Exception):
    """Base class for all pipeline errors."""


class RequestValidationError(TracetuneError):
    """Raised when a request is missing or has malformed required fields."""


class UpstreamFetchError(TracetuneError):
    """Raised when the observation source cannot be read."""

    def __init__(self, status: int, details: str) -> None:
        self.status = status
        self.details = details
        super().__init__(f"Failed to fetch traces: {status} {details}")


class TraceConversionError(TracetuneError):
    """Raised when a single trace cannot be turned into a training example."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class JSONRepairError(TracetuneError):
    """Raised when an ingested block cannot be recovered as JSON."""

    def __init__(self, block_index: int, preview: str, cause: str) -> None:
        self.block_index = block_index
        self.preview = preview
        self.cause = cause
        super().__init__(f"Invalid JSON on example {block_index}: {cause}")


class PersistenceError(TracetuneError):
    """Raised when an artifact write fails."""

    def __init__(self, filename: str, details: str) -> None:
        self.filename = filename
        self.details = details
        super().__init__(f"Failed to store {filename}: {details}")


class ConfigurationError(TracetuneError):
    """Raised when a required setting (credentials, tokens) is missing."""
