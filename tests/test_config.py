from __future__ import annotations

from pathlib import Path

import pytest

from chunkweave.core.config import ConfigError, WeaveConfig, import_hook, load_config
from chunkweave.core.hooks import format_inline_value
from chunkweave.core.state import Session


def _config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "chunkweave.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_normalises_chunk_options(tmp_path: Path) -> None:
    config = load_config(
        _config(tmp_path, "knit:\n  width: 60\nchunk:\n  fig_width: 5\n  echo: false\n")
    )

    assert config.knit.width == 60
    assert config.chunk == {"fig.width": 5, "echo": False}


def test_apply_copies_settings_onto_session(tmp_path: Path) -> None:
    session = Session()
    config = load_config(
        _config(
            tmp_path,
            "knit:\n  documentation: 2\nchunk:\n  dpi: 150\n"
            "hooks:\n  inline: chunkweave.core.hooks:format_inline_value\n",
        )
    )

    config.apply(session)

    assert session.knit_options.documentation == 2
    assert session.chunk_defaults == {"dpi": 150}
    assert session.hooks == {"inline": format_inline_value}


def test_unknown_chunk_options_are_rejected() -> None:
    config = WeaveConfig.model_validate({"chunk": {"colour": "red"}})

    with pytest.raises(ConfigError, match="colour"):
        config.apply(Session())


def test_unknown_chunk_options_can_be_tolerated() -> None:
    session = Session()
    config = WeaveConfig.model_validate(
        {"knit": {"tolerate_unknown_options": True}, "chunk": {"colour": "red", "dpi": 90}}
    )

    config.apply(session)

    assert session.chunk_defaults == {"dpi": 90}


@pytest.mark.parametrize(
    "text",
    [
        "knit: [1, 2",
        "- just\n- a list\n",
        "knit:\n  documentation: 5\n",
        "unknown: 1\n",
        "hooks:\n  footer: os:getcwd\n",
    ],
)
def test_invalid_configuration(tmp_path: Path, text: str) -> None:
    with pytest.raises(ConfigError):
        load_config(_config(tmp_path, text))


def test_missing_configuration_file(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="Cannot read"):
        load_config(tmp_path / "absent.yml")


def test_empty_configuration_uses_defaults(tmp_path: Path) -> None:
    config = load_config(_config(tmp_path, ""))

    assert config == WeaveConfig()


@pytest.mark.parametrize("path", ["no_colon", "chunkweave.missing:hook", "os:sep"])
def test_import_hook_errors(path: str) -> None:
    with pytest.raises(ConfigError):
        import_hook(path)
