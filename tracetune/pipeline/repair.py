"""Recovery of JSON examples from re-ingested text.

Text comes back either as compact JSONL (one value per line) or as the
pretty form produced by the assembler: indented values separated by a
``---`` marker line, often hand-edited in between. Each block is tried
against an ordered list of repair strategies. Unlike batch conversion,
ingestion is fail-closed: one unrecoverable block rejects the whole text,
since silently dropping it would leave a dataset the caller believes is
complete.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any

from tracetune.pipeline.assembler import PRETTY_SEPARATOR
from tracetune.pipeline.content import compact_json, reject_constant
from tracetune.types import JSONRepairError, RequestValidationError

logger = logging.getLogger(__name__)

# Characters of a failing block included in the error
PREVIEW_CHARS = 200

RepairStrategy = Callable[[str], Any]


class UnrecoverableBlock(Exception):
    """Raised by a strategy that located a value but could not parse it."""


# ---------------------------------------------------------------------------
# Block splitting
# ---------------------------------------------------------------------------


def split_blocks(text: str) -> list[str]:
    """Split ingested text into candidate JSON blocks.

    Pretty mode is detected by the presence of the separator; otherwise each
    line is a candidate. Blank candidates and leftover separator lines are
    dropped.
    """
    stripped = text.strip()
    if PRETTY_SEPARATOR in text:
        parts = stripped.split(PRETTY_SEPARATOR)
    else:
        parts = stripped.split("\n")

    blocks: list[str] = []
    for part in parts:
        candidate = part.strip()
        if candidate and not candidate.startswith("---"):
            blocks.append(candidate)
    return blocks


# ---------------------------------------------------------------------------
# Repair strategies
# ---------------------------------------------------------------------------


def _loads(text: str) -> Any:
    return json.loads(text, parse_constant=reject_constant)


def parse_direct(block: str) -> Any:
    """Parse the block as a single JSON value."""
    try:
        return _loads(block)
    except ValueError:
        return None


def find_balanced_region(block: str) -> str | None:
    """Locate the first complete JSON object or array in the block.

    Scans once, tracking whether the cursor is inside a string literal and
    whether the previous character was an escaping backslash. Brackets
    inside strings are ignored; depth counting starts at the first opening
    bracket and the region ends where depth returns to zero.

    Returns:
        The substring spanning the balanced region, or None if the block
        never closes its first opening bracket.
    """
    start = -1
    depth = 0
    in_string = False
    escape_pending = False

    for position, char in enumerate(block):
        if escape_pending:
            escape_pending = False
            continue
        if char == "\\":
            escape_pending = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char in "{[":
            if start == -1:
                start = position
            depth += 1
        elif char in "}]" and start != -1:
            depth -= 1
            if depth == 0:
                return block[start : position + 1]

    return None


def parse_balanced_region(block: str) -> Any:
    """Parse the first balanced region, discarding any trailing text.

    Once a region is found it decides the block: a region that does not
    parse rejects the block instead of falling through to later strategies.

    Raises:
        UnrecoverableBlock: If the region is not valid JSON.
    """
    region = find_balanced_region(block)
    if region is None:
        return None
    try:
        return _loads(region)
    except ValueError as exc:
        raise UnrecoverableBlock(str(exc)) from exc


def join_lines(block: str) -> str:
    """Collapse a block onto one line, joining trimmed lines with spaces."""
    return " ".join(line.strip() for line in block.split("\n") if line.strip())


def parse_joined_lines(block: str) -> Any:
    """Parse the block after removing embedded line breaks.

    Recovers values whose string literals were broken across lines by
    hand editing.
    """
    return parse_direct(join_lines(block))


REPAIR_STRATEGIES: tuple[RepairStrategy, ...] = (
    parse_direct,
    parse_balanced_region,
    parse_joined_lines,
)


# ---------------------------------------------------------------------------
# Block repair
# ---------------------------------------------------------------------------


def repair_block(block: str, block_index: int) -> Any:
    """Recover one JSON value from a block.

    Args:
        block: Candidate block text.
        block_index: 1-based position of the block, for diagnostics.

    Returns:
        The parsed value.

    Strategies run in order. A strategy returning None passes the block on
    to the next one; one raising UnrecoverableBlock ends the attempt.

    Raises:
        JSONRepairError: If no strategy yields a value.
    """
    try:
        for strategy in REPAIR_STRATEGIES:
            value = strategy(block)
            if value is not None:
                if strategy is not parse_direct:
                    logger.debug("Block %d recovered by %s", block_index, strategy.__name__)
                return value
    except UnrecoverableBlock as exc:
        cause = str(exc)
    else:
        cause = (
            f"Failed to parse JSON block {block_index} after all attempts. "
            f"Block length: {len(block)} chars. Error: {_parse_error(block)}"
        )

    logger.error("Failed to parse JSON block %d (%d chars): %s", block_index, len(block), cause)
    raise JSONRepairError(block_index=block_index, preview=block[:PREVIEW_CHARS], cause=cause)


def repair_blocks(text: str) -> list[str]:
    """Recover every block of ingested text as compact JSON lines.

    Args:
        text: Compact JSONL or pretty separator-delimited text.

    Returns:
        One compact JSON string per block, in input order.

    Raises:
        RequestValidationError: If the text contains no blocks.
        JSONRepairError: On the first block that cannot be recovered.
    """
    blocks = split_blocks(text)
    if not blocks:
        raise RequestValidationError("No training examples found")

    return [compact_json(repair_block(block, index)) for index, block in enumerate(blocks, start=1)]


def _parse_error(block: str) -> str:
    """Describe why the final fallback could not parse the block."""
    try:
        _loads(join_lines(block))
    except ValueError as exc:
        return str(exc)
    return "block does not contain a JSON value"
