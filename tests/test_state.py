from __future__ import annotations

import pytest

from chunkweave.core.state import (
    Concordance,
    KnitLog,
    KnitOptions,
    Session,
    active_state,
    line_count,
)


def test_knit_log_formats_entries() -> None:
    log = KnitLog()
    assert not log

    log.add("warning", "setup", "Warning: careful")

    assert log
    assert log.entries("warning") == ["Chunk setup:\n  Warning: careful"]
    log.clear()
    assert not log


def test_line_count() -> None:
    assert line_count("") == 1
    assert line_count("a\nb") == 2
    assert line_count("a\n") == 2


def test_concordance_mapping() -> None:
    concordance = Concordance()
    concordance.add((1, 2), "a\nb")
    concordance.add((3, 5), "x\ny\nz\nw")

    assert concordance.mapping() == [1, 2, 3, 3, 3, 3]


def test_knit_meta_filters_and_clears() -> None:
    session = Session(meta=["css", 1, "js"])

    assert session.knit_meta(int) == [1]
    assert session.meta == ["css", "js"]
    assert session.knit_meta(clean=False) == ["css", "js"]
    assert session.knit_meta() == ["css", "js"]
    assert session.meta == []


def test_session_chunk_defaults_accept_both_spellings() -> None:
    session = Session()

    session.set_chunk_defaults(fig_width=4, **{"out.width": "50%"})

    assert session.chunk_defaults == {"fig.width": 4, "out.width": "50%"}


def test_knit_options_are_validated() -> None:
    options = KnitOptions()

    with pytest.raises(ValueError):
        options.documentation = 3


def test_active_state_outside_a_run() -> None:
    assert active_state(required=False) is None
    with pytest.raises(RuntimeError):
        active_state()
