"""tracetune: turn LLM observability traces into fine-tuning datasets."""

from tracetune.service import (
    ConvertTracesRequest,
    ConvertTracesResponse,
    SaveTrainingDataRequest,
    SaveTrainingDataResponse,
    convert_traces,
    save_training_data,
)
from tracetune.types import (
    ConfigurationError,
    JSONRepairError,
    PersistenceError,
    RequestValidationError,
    TraceConversionError,
    TracetuneError,
    TrainingMethod,
    UpstreamFetchError,
)

__all__ = [
    "ConfigurationError",
    "ConvertTracesRequest",
    "ConvertTracesResponse",
    "JSONRepairError",
    "PersistenceError",
    "RequestValidationError",
    "SaveTrainingDataRequest",
    "SaveTrainingDataResponse",
    "TraceConversionError",
    "TracetuneError",
    "TrainingMethod",
    "UpstreamFetchError",
    "convert_traces",
    "save_training_data",
]

__version__ = "0.1.0"
