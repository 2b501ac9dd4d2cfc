from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any

import pytest

from chunkweave.core.state import Session, set_session


class RecordingEmitter:
    debug_enabled = False

    def __init__(self) -> None:
        self.warnings: list[str] = []
        self.errors: list[str] = []
        self.events: list[tuple[str, dict[str, Any]]] = []

    def warning(self, message: str, exc: BaseException | None = None) -> None:
        self.warnings.append(message)

    def error(self, message: str, exc: BaseException | None = None) -> None:
        self.errors.append(message)

    def event(self, name: str, payload: Mapping[str, Any]) -> None:
        self.events.append((name, dict(payload)))

    def named(self, name: str) -> list[dict[str, Any]]:
        return [payload for event, payload in self.events if event == name]


@pytest.fixture(autouse=True)
def default_session() -> Iterator[Session]:
    session = Session()
    previous = set_session(session)
    yield session
    set_session(previous)


@pytest.fixture
def emitter() -> RecordingEmitter:
    return RecordingEmitter()
