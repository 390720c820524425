"""Tests for the tracetune CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from tracetune.cli import app
from tracetune.config import ENV_OVERRIDES
from tracetune.pipeline.assembler import PRETTY_SEPARATOR

runner = CliRunner()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def observations_file(tmp_path: Path) -> Path:
    path = tmp_path / "obs.jsonl"
    rows = [
        {"id": "o1", "traceId": "t1", "type": "GENERATION", "input": "Hello", "output": "Hi"},
        {"id": "o2", "traceId": "t2", "type": "GENERATION", "input": "Bye", "output": "Ciao"},
        {"id": "o3", "traceId": "t3", "type": "GENERATION"},
    ]
    path.write_text("\n".join(json.dumps(r) for r in rows) + "\n", encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------


class TestConvertCommand:
    def test_local_export_to_stdout(self, observations_file: Path) -> None:
        result = runner.invoke(app, ["convert", "--observations", str(observations_file)])
        assert result.exit_code == 0
        assert '"content": "Hello"' in result.output
        assert "Converted 2/3 observations (1 invalid)" in result.output
        assert "#3 t3: no input or output found" in result.output

    def test_writes_both_forms(self, observations_file: Path, tmp_path: Path) -> None:
        pretty = tmp_path / "out" / "examples.txt"
        compact = tmp_path / "out" / "examples.jsonl"
        result = runner.invoke(
            app,
            [
                "convert",
                "--observations",
                str(observations_file),
                "--output",
                str(pretty),
                "--compact-output",
                str(compact),
            ],
        )
        assert result.exit_code == 0
        assert len(pretty.read_text(encoding="utf-8").split(PRETTY_SEPARATOR)) == 2
        lines = compact.read_text(encoding="utf-8").split("\n")
        assert json.loads(lines[1])["messages"][0]["content"] == "Bye"

    def test_requires_one_source(self, observations_file: Path) -> None:
        assert runner.invoke(app, ["convert"]).exit_code != 0
        both = runner.invoke(
            app, ["convert", "--observations", str(observations_file), "--prompt-name", "p"]
        )
        assert both.exit_code != 0

    def test_langfuse_without_credentials(self) -> None:
        result = runner.invoke(app, ["convert", "--prompt-name", "greeter"])
        assert result.exit_code == 1
        assert "Langfuse credentials not configured" in result.output


# ---------------------------------------------------------------------------
# repair / save
# ---------------------------------------------------------------------------


class TestRepairCommand:
    def test_repair(self, tmp_path: Path) -> None:
        source = tmp_path / "examples.txt"
        source.write_text('{\n  "a": 1\n}\ntrailing' + PRETTY_SEPARATOR + '{\n  "b": 2\n}', encoding="utf-8")
        result = runner.invoke(app, ["repair", str(source)])
        assert result.exit_code == 0
        assert '{"a":1}\n{"b":2}' in result.output

    def test_unrecoverable_block(self, tmp_path: Path) -> None:
        source = tmp_path / "examples.jsonl"
        source.write_text('{"a": 1}\n{"b": \n', encoding="utf-8")
        result = runner.invoke(app, ["repair", str(source)])
        assert result.exit_code == 1
        assert "Invalid JSON on example 2" in result.output


class TestSaveCommand:
    def test_save_local(self, tmp_path: Path) -> None:
        source = tmp_path / "examples.jsonl"
        source.write_text("\n".join(f'{{"i":{i}}}' for i in range(10)), encoding="utf-8")
        out_dir = tmp_path / "artifacts"

        result = runner.invoke(
            app,
            ["save", str(source), "--method", "reinforcement", "--seed", "3", "--output-dir", str(out_dir)],
        )
        assert result.exit_code == 0
        assert "Method:      reinforcement" in result.output
        assert "Training:    8 -> file://" in result.output
        assert "Validation:  2 -> file://" in result.output

        names = sorted(p.name for p in out_dir.iterdir())
        assert len(names) == 3
        assert [n.split("-")[1] for n in names] == ["combined", "training", "validation"]

    def test_blob_requires_token(self, tmp_path: Path) -> None:
        source = tmp_path / "examples.jsonl"
        source.write_text('{"i":1}', encoding="utf-8")
        result = runner.invoke(app, ["save", str(source), "--blob"])
        assert result.exit_code == 1
        assert "Blob storage token not configured" in result.output
