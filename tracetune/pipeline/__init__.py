"""Trace-to-dataset pipeline.

Stages:
  1. content   : output payloads to assistant text
  2. inputs    : input payloads to chat transcripts
  3. normalize : per-method example assembly
  4. validate  : structural message checks
  5. assembler : batch conversion with per-record diagnostics
  6. repair    : JSON recovery for re-ingested text
  7. splitter  : train/validation split and persistence
"""

from tracetune.pipeline.assembler import ConversionResult, assemble_examples
from tracetune.pipeline.content import extract_output_content
from tracetune.pipeline.inputs import classify_input, to_messages
from tracetune.pipeline.normalize import convert_trace
from tracetune.pipeline.repair import repair_blocks, split_blocks
from tracetune.pipeline.schemas import (
    ConversionFailure,
    PreferenceExample,
    RawObservation,
    ReinforcementExample,
    SupervisedExample,
    TraceRecord,
)
from tracetune.pipeline.splitter import Dataset, persist_dataset, split_dataset
from tracetune.pipeline.validate import validate_example, validate_messages

__all__ = [
    "ConversionFailure",
    "ConversionResult",
    "Dataset",
    "PreferenceExample",
    "RawObservation",
    "ReinforcementExample",
    "SupervisedExample",
    "TraceRecord",
    "assemble_examples",
    "classify_input",
    "convert_trace",
    "extract_output_content",
    "persist_dataset",
    "repair_blocks",
    "split_blocks",
    "split_dataset",
    "to_messages",
    "validate_example",
    "validate_messages",
]
