from __future__ import annotations

import pytest

from typealpha.config import Config, GeneratorSettings
from typealpha.session import TypingSession


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: float = 0.0):
        self.t = start

    def now(self) -> float:
        return self.t

    def advance(self, ms: float) -> None:
        self.t += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config() -> Config:
    return Config()


@pytest.fixture
def two_finger_config() -> Config:
    """Two letters on different fingers, no patterns."""
    return Config(
        generator=GeneratorSettings(
            letter_weights={"a": 1.0, "s": 1.0},
            same_finger_penalty=1e-9,
            pattern_insert_rate=0.0,
            patterns=(),
        ),
        finger_map={"a": 0, "s": 1},
    )


@pytest.fixture
def session(config, clock) -> TypingSession:
    return TypingSession(config, clock=clock)

