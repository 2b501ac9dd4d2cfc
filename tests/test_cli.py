from __future__ import annotations

from pathlib import Path

from typer.testing import CliRunner

from chunkweave.ui.cli import app
from chunkweave.ui.cli.diagnostics import CliEmitter
from chunkweave.ui.cli.state import CLIState
from chunkweave.ui.cli.utils import determine_output_target


DOCUMENT = "Intro\n\n```{python a}\nx = 6 * 7\nprint(x)\n```\n"


def _document(tmp_path: Path, text: str = DOCUMENT, name: str = "doc.md") -> Path:
    path = tmp_path / name
    path.write_text(text, encoding="utf-8")
    return path


def test_weave_writes_output_file(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path)
    output = tmp_path / "out.md"

    result = runner.invoke(app, ["weave", str(source), "-o", str(output), "--quiet"])

    assert result.exit_code == 0, result.stdout
    text = output.read_text(encoding="utf-8")
    assert text.startswith("Intro\n")
    assert "## 42" in text


def test_weave_to_stdout(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path)

    result = runner.invoke(app, ["weave", str(source), "-o", "-", "--quiet"])

    assert result.exit_code == 0, result.stdout
    assert "## 42" in result.stdout
    assert not (tmp_path / "doc.txt").exists()


def test_tangle_to_stdout(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path)

    result = runner.invoke(app, ["tangle", str(source), "-o", "-", "-d", "0", "--quiet"])

    assert result.exit_code == 0, result.stdout
    assert result.stdout == "x = 6 * 7\nprint(x)\n"


def test_tangle_writes_script_next_to_input(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path, name="analysis.pmd")

    result = runner.invoke(app, ["tangle", str(source), "--quiet"])

    assert result.exit_code == 0, result.stdout
    assert (tmp_path / "analysis.py").read_text(encoding="utf-8").startswith("# ---- a ----")


def test_chunk_errors_exit_with_status_one(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path, "```{python boom}\nraise ValueError('bad')\n```\n")

    result = runner.invoke(app, ["weave", str(source), "--quiet"])

    assert result.exit_code == 1
    assert (tmp_path / "doc.txt").read_text(encoding="utf-8") == ""


def test_config_file_sets_chunk_defaults(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path)
    config = tmp_path / "chunkweave.yml"
    config.write_text("chunk:\n  echo: false\n  comment: '#>'\n", encoding="utf-8")

    result = runner.invoke(
        app, ["weave", str(source), "-o", "-", "--config", str(config), "--quiet"]
    )

    assert result.exit_code == 0, result.stdout
    assert "x = 6 * 7" not in result.stdout
    assert "#> 42" in result.stdout


def test_invalid_config_is_a_usage_error(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path)
    config = tmp_path / "chunkweave.yml"
    config.write_text("chunk:\n  colour: red\n", encoding="utf-8")

    result = runner.invoke(app, ["weave", str(source), "--config", str(config)])

    assert result.exit_code == 2


def test_format_override(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path)

    result = runner.invoke(
        app, ["weave", str(source), "-o", "-", "--format", "html", "--quiet"]
    )

    assert result.exit_code == 0, result.stdout
    assert '<div class="chunk" id="chunk-a">' in result.stdout


def test_determine_output_target() -> None:
    assert determine_output_target(None) == ("auto", None)
    assert determine_output_target(Path("-")) == ("stdout", None)
    assert determine_output_target(Path("out.md")) == ("file", Path("out.md"))


def test_verbose_errors_name_the_failing_chunk(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path, "```{python boom}\nraise ValueError('bad')\n```\n")

    result = runner.invoke(app, ["weave", str(source), "-v", "--quiet"])

    assert result.exit_code == 1
    assert "chunk: boom" in result.output
    assert "lines: 1-3" in result.output


def test_unrecognised_input_fails_on_stdout_as_well(tmp_path: Path) -> None:
    runner = CliRunner()
    source = _document(tmp_path, "Nothing to run here.\n", name="notes.data")

    to_file = runner.invoke(app, ["weave", str(source), "--quiet"])
    to_stdout = runner.invoke(app, ["weave", str(source), "-o", "-", "--quiet"])

    assert to_file.exit_code == 1
    assert to_stdout.exit_code == 1
    assert "Nothing to run here." not in to_stdout.stdout
    assert "Cannot determine the chunk syntax" in to_stdout.output


def test_cli_emitter_reports_weaving_events(capsys) -> None:
    state = CLIState()
    emitter = CliEmitter(state)

    emitter.event("cache_hit", {"label": "fit"})
    emitter.event("quitting", {"lines": (3, 5), "input": "doc.md", "label": "boom"})
    emitter.event("output_file", {"output": Path("doc.txt")})

    err = capsys.readouterr().err
    assert "cached" not in err
    assert "Quitting from lines 3-5 (doc.md), chunk 'boom'" in err
    assert "output file: doc.txt" in err
    assert state.events["cache_hit"] == [{"label": "fit"}]
    assert emitter.outputs == [Path("doc.txt")]
