from __future__ import annotations

import json
from pathlib import Path

import pytest

from chunkweave.core import driver
from chunkweave.core.exceptions import DuplicateLabelError, EvaluationError
from chunkweave.core.pipeline import (
    auto_out_name,
    knit,
    knit_document,
    knit_exit,
    knit_meta,
    set_chunk_defaults,
)
from chunkweave.core.results import asis_output
from chunkweave.core.state import Session


def test_segments_are_written_in_document_order() -> None:
    source = "Intro\n\n```{python}\nx = 1 + 1\nx\n```\n\nEnd"

    result = knit(text=source, quiet=True)

    assert result == (
        "Intro\n\n"
        "```python\nx = 1 + 1\n```\n"
        "```python\nx\n```\n"
        "```\n## 2\n```\n"
        "\nEnd"
    )


def test_collapsed_chunks_share_one_block() -> None:
    source = "Intro\n\n```{python collapse=True}\nx = 1 + 1\nx\n```\n\nEnd"

    result = knit(text=source, quiet=True)

    assert result == "Intro\n\n```python\nx = 1 + 1\nx\n## 2\n```\n\nEnd"


def test_text_without_chunks_is_returned_verbatim() -> None:
    assert knit(text="Just prose.\n", quiet=True) == "Just prose.\n"


def test_document_without_chunks_is_copied(tmp_path: Path) -> None:
    source = tmp_path / "notes.md"
    source.write_text("# Notes\n\nNothing to run.\n", encoding="utf-8")

    output = knit(source, quiet=True)

    assert output.name == "notes.txt"
    assert output.read_text(encoding="utf-8") == "# Notes\n\nNothing to run.\n"


def test_unevaluated_chunks_are_echoed() -> None:
    source = "```{python eval=False}\nundefined_name\n```"

    assert knit(text=source, quiet=True) == "```python\nundefined_name\n```"


def test_figures_are_numbered_across_the_document(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.chdir(tmp_path)
    source = (
        "```{python a}\nrecord_plot(b'1')\n```\n\n"
        "```{python b}\nrecord_plot(b'2')\nrecord_plot(b'3')\n```"
    )

    result = knit(text=source, quiet=True)

    assert "![](figure/a-1.png)" in result
    assert "![](figure/b-2.png)" in result
    assert "![](figure/b-3.png)" in result
    assert (tmp_path / "figure" / "b-3.png").read_bytes() == b"3"


def test_duplicate_labels_fail_before_any_chunk_runs() -> None:
    namespace = {"ran": []}
    source = "```{python a}\nran.append(1)\n```\n\n```{python a}\n1\n```"

    with pytest.raises(DuplicateLabelError) as excinfo:
        knit(text=source, quiet=True, namespace=namespace)

    assert excinfo.value.label == "a"
    assert namespace["ran"] == []


def test_errors_stop_the_run_and_flush_partial_output(
    tmp_path: Path, default_session: Session, emitter
) -> None:
    default_session.emitter = emitter
    source = tmp_path / "doc.md"
    source.write_text(
        "Before\n\n```{python boom}\nraise ValueError('bad')\n```\n\nAfter\n",
        encoding="utf-8",
    )

    with pytest.raises(EvaluationError) as excinfo:
        knit(source)

    assert "ValueError: bad" in str(excinfo.value)
    assert excinfo.value.label == "boom"
    assert excinfo.value.lines == (3, 5)
    assert (tmp_path / "doc.txt").read_text(encoding="utf-8") == "Before\n"
    assert emitter.named("quitting")[0]["label"] == "boom"


def test_tolerated_errors_are_rendered() -> None:
    source = "```{python error=True}\nraise ValueError('bad')\n1 + 1\n```"

    result = knit(text=source, quiet=True)

    assert "## Error: bad" in result
    assert "## 2" in result


def test_cached_chunks_are_not_evaluated_again(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, default_session: Session, emitter
) -> None:
    calls: list[str] = []
    original = driver.evaluate

    def counting(code, namespace, **kwargs):
        calls.append(code)
        return original(code, namespace, **kwargs)

    monkeypatch.setattr(driver, "evaluate", counting)
    default_session.emitter = emitter
    source = tmp_path / "cached.md"
    source.write_text(
        "```{python slow, cache=True}\nx = 41 + 1\nprint(x)\n```\n", encoding="utf-8"
    )

    first = knit_document(source).text
    namespace: dict = {}
    second = knit_document(source, namespace=namespace).text

    assert first == second
    assert len(calls) == 1
    assert namespace["x"] == 42
    assert emitter.named("cache_hit")[0]["label"] == "slow"
    assert (tmp_path / "cache" / "metadata.json").exists()


def test_repeated_runs_are_identical_and_do_not_leak_defaults(
    default_session: Session,
) -> None:
    source = (
        "```{python}\nset_chunk_defaults(echo=False)\n```\n\n"
        "```{python}\nprint(1)\n```"
    )

    first = knit(text=source, quiet=True, namespace={"set_chunk_defaults": set_chunk_defaults})
    second = knit(text=source, quiet=True, namespace={"set_chunk_defaults": set_chunk_defaults})

    assert first == second
    assert "print(1)" not in first
    assert "## 1" in first
    assert default_session.chunk_defaults == {}


def test_knit_exit_stops_processing() -> None:
    source = "A\n\n```{python echo=False}\nknit_exit()\n```\n\nB"

    result = knit(text=source, quiet=True, namespace={"knit_exit": knit_exit})

    assert result == "A\n\n"


def test_knit_exit_closes_latex_documents() -> None:
    source = (
        "\\documentclass{article}\n\\begin{document}\n"
        "<<echo=False>>=\nknit_exit()\n@\nignored\n\\end{document}"
    )

    result = knit(text=source, quiet=True, namespace={"knit_exit": knit_exit})

    assert "ignored" not in result
    assert result.endswith("\\begin{document}\n\n\\end{document}")
    assert "% chunkweave preamble" in result


def test_inline_expressions_are_replaced() -> None:
    source = "```{python}\nn = 3\n```\n\nTwice is `py n * 2`, a third is `py 1 / 3`."

    result = knit(text=source, quiet=True)

    assert result.endswith("Twice is 6, a third is 0.333333.")


def test_inline_errors_raise() -> None:
    source = "```{python}\nn = 3\n```\n\nValue: `py missing`"

    with pytest.raises(EvaluationError, match="missing"):
        knit(text=source, quiet=True)


def test_front_matter_sets_document_defaults(default_session: Session) -> None:
    source = (
        "---\nchunkweave:\n  chunk:\n    echo: false\n---\n\n"
        "```{python}\nprint('hi')\n```"
    )

    result = knit(text=source, quiet=True)

    assert "print('hi')" not in result
    assert "## hi" in result
    assert default_session.chunk_defaults == {}


def test_concordance_maps_output_to_input_lines(
    tmp_path: Path, default_session: Session
) -> None:
    default_session.knit_options.concordance = True
    source = tmp_path / "doc.md"
    source.write_text("a\nb\n```{python}\n1\n```", encoding="utf-8")

    result = knit_document(source, quiet=True)

    assert result.concordance.mapping() == [1, 2, 3, 3, 3, 3, 3, 3]
    payload = json.loads((tmp_path / "doc-concordance.json").read_text(encoding="utf-8"))
    assert payload["lines"] == [1, 2, 3, 3, 3, 3, 3, 3]


def test_asis_metadata_is_collected() -> None:
    source = "```{python}\nasis_output('<b>x</b>', meta=['dep'])\n```"

    result = knit(text=source, quiet=True, namespace={"asis_output": asis_output})

    assert "<b>x</b>" in result
    assert knit_meta() == ["dep"]
    assert knit_meta() == []


@pytest.mark.parametrize(
    ("name", "tangle", "expected"),
    [
        ("report.pnw", False, "report.tex"),
        ("report.Rnw", False, "report.tex"),
        ("report.pmd", False, "report.md"),
        ("report.phtml", False, "report.html"),
        ("my_knit_.md", False, "my.md"),
        ("report.md", False, "report.txt"),
        ("report.txt", False, "report-out.txt"),
        ("report.pmd", True, "report.py"),
    ],
)
def test_auto_out_name(name: str, tangle: bool, expected: str) -> None:
    assert auto_out_name(Path("docs") / name, tangle) == Path("docs") / expected


def test_latex_document_without_chunks_is_copied(tmp_path: Path) -> None:
    text = "\\documentclass{article}\n\\begin{document}\nHi\n\\end{document}\n"
    source = tmp_path / "doc.tex"
    source.write_text(text, encoding="utf-8")

    output = knit(source, tmp_path / "woven.tex", quiet=True)

    assert output.read_text(encoding="utf-8") == text


def test_html_document_without_chunks_is_copied(tmp_path: Path) -> None:
    text = "<html><head><title>t</title></head>\n<body><p>Hi</p></body></html>\n"
    source = tmp_path / "doc.html"
    source.write_text(text, encoding="utf-8")

    output = knit(source, tmp_path / "woven.html", quiet=True)

    assert output.read_text(encoding="utf-8") == text


def test_later_chunks_do_not_run_after_an_error(tmp_path: Path) -> None:
    source = tmp_path / "doc.md"
    source.write_text(
        "```{python one}\nprint('first')\n```\n\n"
        "```{python two}\nprint('second')\n```\n\n"
        "```{python three}\nprint('third')\n```\n\n"
        "```{python boom}\nraise ValueError('bad')\n```\n\n"
        "```{python four}\nprint('fourth')\n```\n",
        encoding="utf-8",
    )

    with pytest.raises(EvaluationError):
        knit(source, quiet=True)

    partial = (tmp_path / "doc.txt").read_text(encoding="utf-8")
    assert "## first" in partial
    assert "## second" in partial
    assert "## third" in partial
    assert "bad" not in partial
    assert "fourth" not in partial
