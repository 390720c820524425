"""CLI for tracetune.

Usage:
    python -m tracetune.cli convert --observations obs.jsonl   # Convert a local export
    python -m tracetune.cli convert --prompt-name my-prompt    # Convert from Langfuse
    python -m tracetune.cli repair examples.txt                # Re-ingest to compact JSONL
    python -m tracetune.cli save examples.txt --ratio 0.8      # Split and store a dataset
"""

from __future__ import annotations

import asyncio
import logging
import random
from pathlib import Path
from typing import Annotated

import typer

from tracetune.config import PipelineConfig, load_config
from tracetune.pipeline.assembler import assemble_examples
from tracetune.pipeline.content import compact_json
from tracetune.pipeline.repair import repair_blocks
from tracetune.service import (
    ConvertTracesRequest,
    convert_traces,
    parse_save_request,
    save_training_data,
)
from tracetune.sources import load_observations
from tracetune.storage import PersistenceGateway
from tracetune.types import TracetuneError, TrainingMethod

app = typer.Typer(
    name="tracetune",
    help="Convert observability traces into fine-tuning datasets.",
    add_completion=False,
)

logger = logging.getLogger("tracetune.cli")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _fail(exc: Exception) -> typer.Exit:
    typer.echo(f"Error: {exc}", err=True)
    return typer.Exit(code=1)


def _write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


@app.command()
def convert(
    method: Annotated[
        TrainingMethod, typer.Option(help="Fine-tuning method to build examples for.")
    ] = TrainingMethod.SUPERVISED,
    observations: Annotated[
        Path | None, typer.Option(help="Local JSONL export of observations.")
    ] = None,
    prompt_name: Annotated[
        str | None, typer.Option(help="Fetch generations for this prompt from Langfuse.")
    ] = None,
    version: Annotated[int | None, typer.Option(help="Prompt version filter.")] = None,
    limit: Annotated[int | None, typer.Option(help="Page size when fetching.")] = None,
    offset: Annotated[int, typer.Option(help="Records to skip when fetching.")] = 0,
    output: Annotated[
        Path | None, typer.Option(help="Write the pretty, reviewable form here.")
    ] = None,
    compact_output: Annotated[
        Path | None, typer.Option(help="Write compact JSONL here.")
    ] = None,
    config_path: Annotated[
        Path | None, typer.Option("--config", help="YAML config file.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Convert observations into training examples."""
    _setup_logging(verbose)
    if (observations is None) == (prompt_name is None):
        raise typer.BadParameter("Pass exactly one of --observations or --prompt-name")

    try:
        config = load_config(config_path)
        if observations is not None:
            result = assemble_examples(
                load_observations(observations),
                method,
                max_logged_failures=config.max_logged_failures,
            )
            pretty = result.to_pretty_jsonl()
            compact = result.to_compact_jsonl()
            summary = result.summary()
            failures = [(f.index, f.trace_id, f.reason) for f in result.invalid_traces]
        else:
            request = ConvertTracesRequest(
                prompt_name=prompt_name,
                version=version,
                method=method,
                limit=limit or config.default_limit,
                offset=offset,
            )
            response = asyncio.run(
                convert_traces(
                    request,
                    config.observation_source(),
                    max_logged_failures=config.max_logged_failures,
                )
            )
            pretty = response.jsonl
            compact = "\n".join(compact_json(example) for example in response.examples)
            summary = {
                "count": response.count,
                "total_observations": response.total_observations,
                "invalid_count": response.invalid_count,
            }
            failures = [(f.index, f.trace_id, f.reason) for f in response.invalid_traces or []]
    except TracetuneError as exc:
        raise _fail(exc) from exc

    if output is not None:
        _write_text(output, pretty)
    if compact_output is not None:
        _write_text(compact_output, compact)
    if output is None and compact_output is None:
        typer.echo(pretty)

    typer.echo(
        f"Converted {summary['count']}/{summary['total_observations']} observations "
        f"({summary['invalid_count']} invalid)",
        err=True,
    )
    for index, trace_id, reason in failures:
        typer.echo(f"  #{index} {trace_id}: {reason}", err=True)


@app.command()
def repair(
    source: Annotated[Path, typer.Argument(help="Compact or pretty example text.")],
    output: Annotated[
        Path | None, typer.Option(help="Write compact JSONL here instead of stdout.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Re-ingest example text and emit compact JSONL."""
    _setup_logging(verbose)
    try:
        lines = repair_blocks(source.read_text(encoding="utf-8"))
    except TracetuneError as exc:
        raise _fail(exc) from exc

    text = "\n".join(lines)
    if output is None:
        typer.echo(text)
    else:
        _write_text(output, text)
        logger.info("Wrote %d examples to %s", len(lines), output)


@app.command()
def save(
    source: Annotated[Path, typer.Argument(help="Compact or pretty example text.")],
    method: Annotated[
        TrainingMethod, typer.Option(help="Fine-tuning method the examples are for.")
    ] = TrainingMethod.SUPERVISED,
    ratio: Annotated[
        float | None, typer.Option(help="Training share of the split.")
    ] = None,
    seed: Annotated[
        int | None, typer.Option(help="Seed for a reproducible shuffle.")
    ] = None,
    output_dir: Annotated[
        Path | None, typer.Option(help="Directory for stored artifacts.")
    ] = None,
    blob: Annotated[
        bool, typer.Option("--blob", help="Upload to the blob store instead of disk.")
    ] = False,
    config_path: Annotated[
        Path | None, typer.Option("--config", help="YAML config file.")
    ] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v")] = False,
) -> None:
    """Split example text into training/validation sets and store them."""
    _setup_logging(verbose)
    try:
        config = load_config(config_path)
        gateway = _gateway(config, blob, output_dir)
        request = parse_save_request({
            "data": source.read_text(encoding="utf-8"),
            "method": method.value,
            "trainSplitRatio": config.train_split_ratio if ratio is None else ratio,
        })
        rng = random.Random(seed) if seed is not None else None
        response = asyncio.run(save_training_data(request, gateway, rng=rng))
    except TracetuneError as exc:
        raise _fail(exc) from exc

    typer.echo(f"Method:      {response.method.value}")
    typer.echo(f"Examples:    {response.example_count}")
    typer.echo(f"Training:    {response.training_count} -> {response.training_blob_url}")
    typer.echo(f"Validation:  {response.validation_count} -> {response.validation_blob_url}")
    typer.echo(f"Combined:    {response.blob_url}")


def _gateway(config: PipelineConfig, blob: bool, output_dir: Path | None) -> PersistenceGateway:
    if blob:
        return config.blob_gateway()
    return config.local_gateway(output_dir)


if __name__ == "__main__":
    app()
