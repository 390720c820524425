"""Train/validation partitioning and artifact persistence."""

from __future__ import annotations

import asyncio
import logging
import math
import random
from dataclasses import dataclass

from tracetune.storage import NDJSON_CONTENT_TYPE, PersistenceGateway, generate_timestamp_prefix
from tracetune.types import TrainingMethod

logger = logging.getLogger(__name__)

DEFAULT_TRAIN_SPLIT_RATIO = 0.8
FILENAME_PREFIX = "finetune"


@dataclass(frozen=True)
class Dataset:
    """One split of validated JSONL lines.

    Attributes:
        training_lines: Shuffled lines before the split index.
        validation_lines: Shuffled lines from the split index on.
        combined_lines: All lines in their original order.
        ratio: Requested training share.
    """

    training_lines: tuple[str, ...]
    validation_lines: tuple[str, ...]
    combined_lines: tuple[str, ...]
    ratio: float

    @property
    def training_count(self) -> int:
        return len(self.training_lines)

    @property
    def validation_count(self) -> int:
        return len(self.validation_lines)


@dataclass(frozen=True)
class PersistedDataset:
    """URLs of the three stored artifacts."""

    training_url: str
    validation_url: str
    combined_url: str


def compute_split_index(total: int, ratio: float) -> int:
    """``total * ratio`` rounded half up."""
    return math.floor(total * ratio + 0.5)


def split_dataset(
    lines: list[str],
    ratio: float = DEFAULT_TRAIN_SPLIT_RATIO,
    rng: random.Random | None = None,
) -> Dataset:
    """Shuffle lines and split them into training and validation sets.

    The ratio is used as given. Values outside [0, 1] follow slice
    semantics: above 1 everything goes to training, below 0 the split
    index counts back from the end.

    Args:
        lines: Compact JSON lines.
        ratio: Share of lines that go to training.
        rng: Random source. Defaults to a fresh unseeded generator.

    Returns:
        Dataset with shuffled splits and the unshuffled combined lines.
    """
    rng = rng or random.Random()
    permuted = list(lines)
    rng.shuffle(permuted)

    split_index = compute_split_index(len(permuted), ratio)
    dataset = Dataset(
        training_lines=tuple(permuted[:split_index]),
        validation_lines=tuple(permuted[split_index:]),
        combined_lines=tuple(lines),
        ratio=ratio,
    )
    logger.info(
        "Splitting %d examples: %d training, %d validation (ratio: %s)",
        len(permuted),
        dataset.training_count,
        dataset.validation_count,
        ratio,
    )
    return dataset


def artifact_filename(kind: str, method: TrainingMethod | str, timestamp: str) -> str:
    """Name of a stored artifact, e.g. ``finetune-training-supervised-<ts>.jsonl``."""
    method_name = method.value if isinstance(method, TrainingMethod) else method
    return f"{FILENAME_PREFIX}-{kind}-{method_name}-{timestamp}.jsonl"


async def persist_dataset(
    dataset: Dataset,
    method: TrainingMethod | str,
    gateway: PersistenceGateway,
    timestamp: str | None = None,
) -> PersistedDataset:
    """Store the training, validation and combined artifacts.

    The three writes are independent and issued concurrently, and every one
    runs to completion even when another fails. Writes that succeeded are
    not undone. If any write failed, the first failure in artifact order is
    raised once all three have finished; later ones are logged.
    """
    timestamp = timestamp or generate_timestamp_prefix()
    artifacts = (
        ("training", dataset.training_lines),
        ("validation", dataset.validation_lines),
        ("combined", dataset.combined_lines),
    )
    results = await asyncio.gather(
        *(
            gateway.put(
                artifact_filename(kind, method, timestamp),
                "\n".join(lines),
                NDJSON_CONTENT_TYPE,
            )
            for kind, lines in artifacts
        ),
        return_exceptions=True,
    )

    failures = [result for result in results if isinstance(result, BaseException)]
    if failures:
        for extra in failures[1:]:
            logger.error("Additional artifact write failed: %s", extra)
        raise failures[0]

    training, validation, combined = results
    return PersistedDataset(
        training_url=training.url,
        validation_url=validation.url,
        combined_url=combined.url,
    )
