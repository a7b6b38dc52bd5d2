from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Protocol, Tuple

from .config import Config
from .generator import CharacterGenerator
from .statistics import (
    GameMode,
    GameResult,
    KeyStroke,
    build_result,
    calculate_accuracy,
    calculate_wpm,
)

logger = logging.getLogger(__name__)

CANCEL_KEY = "Escape"


class SessionState(str, Enum):
    IDLE = "idle"
    COUNTDOWN = "countdown"
    RUNNING = "running"
    ENDED = "ended"


class InputOutcome(str, Enum):
    CORRECT = "correct"
    MISS = "miss"
    REJECTED = "rejected"    # not a single lowercase letter
    IGNORED = "ignored"      # session is not running
    CANCELLED = "cancelled"


class Clock(Protocol):
    def now(self) -> float:
        """Current time in milliseconds."""
        ...


class MonotonicClock:
    def now(self) -> float:
        return time.monotonic() * 1000.0


@dataclass(frozen=True)
class LiveStats:
    wpm: float = 0.0
    accuracy: float = 100.0
    correct_count: int = 0
    total_count: int = 0


def is_accepted_key(symbol: str) -> bool:
    """Single lowercase a-z only.

    Uppercase is rejected rather than folded to lowercase, so "A" never
    counts as "a". Callers wanting case-insensitive play must lowercase
    key events themselves before submitting them.
    """
    return len(symbol) == 1 and "a" <= symbol <= "z"


class TypingSession:
    """One timed attempt: countdown, typing, then a final GameResult.

    The session owns no timers. Callers drive it with `tick()` once per
    second and `submit_input()` once per key event, in arrival order.
    Anything delivered after the session has ended is a no-op.
    """

    def __init__(self, config: Config, clock: Optional[Clock] = None):
        self.config = config
        self.clock: Clock = clock or MonotonicClock()

        self.state = SessionState.IDLE
        self.mode: Optional[GameMode] = None
        self.seed: Optional[int] = None
        self.generator: Optional[CharacterGenerator] = None
        self.text = ""
        self.cursor = 0
        self.countdown_value = config.game.countdown_seconds
        self.time_remaining = config.game.duration
        self.started_at: Optional[float] = None
        self.stats = LiveStats()
        self.result: Optional[GameResult] = None

        self._strokes: List[KeyStroke] = []
        self._correct = 0
        self._ended_callbacks: List[Callable[[GameResult], None]] = []

    @property
    def strokes(self) -> Tuple[KeyStroke, ...]:
        return tuple(self._strokes)

    @property
    def expected(self) -> str:
        return self.text[self.cursor] if self.cursor < len(self.text) else ""

    def start(self, mode: GameMode, seed: int) -> bool:
        """Idle -> Countdown. Returns False if the session was already started."""
        if self.state is not SessionState.IDLE:
            return False

        self.mode = mode
        self.seed = seed
        self.generator = CharacterGenerator(seed, self.config)
        self.text = self.generator.generate(self.config.game.initial_buffer)
        self.cursor = 0
        self._strokes = []
        self._correct = 0
        self.countdown_value = self.config.game.countdown_seconds
        self._top_up()
        self.state = SessionState.COUNTDOWN
        logger.debug("Session started (mode=%s, seed=%s)", mode, seed)

        if self.countdown_value <= 0:
            self._begin_running()
        return True

    def tick(self) -> None:
        if self.state is SessionState.COUNTDOWN:
            self.countdown_value -= 1
            if self.countdown_value <= 0:
                self._begin_running()
        elif self.state is SessionState.RUNNING:
            self.time_remaining -= 1
            if self.time_remaining <= 0:
                self._end(cancelled=False)

    def submit_input(self, symbol: str) -> InputOutcome:
        if symbol == CANCEL_KEY:
            if self.state in (SessionState.COUNTDOWN, SessionState.RUNNING):
                self.cancel()
                return InputOutcome.CANCELLED
            return InputOutcome.IGNORED

        if self.state is not SessionState.RUNNING:
            return InputOutcome.IGNORED
        if not is_accepted_key(symbol):
            return InputOutcome.REJECTED

        self._top_up()
        expected = self.expected
        correct = symbol == expected
        self._strokes.append(
            KeyStroke(
                key=symbol,
                expected=expected,
                correct=correct,
                timestamp=self.clock.now() - self.started_at,
            )
        )
        if correct:
            self._correct += 1
        self.cursor += 1

        self._top_up()
        self.stats = self.live_stats()
        return InputOutcome.CORRECT if correct else InputOutcome.MISS

    def cancel(self) -> None:
        if self.state in (SessionState.COUNTDOWN, SessionState.RUNNING):
            self._end(cancelled=True)

    def on_ended(self, callback: Callable[[GameResult], None]) -> None:
        """Register a result listener; fires immediately if already ended."""
        if self.result is not None:
            callback(self.result)
            return
        self._ended_callbacks.append(callback)

    def live_stats(self) -> LiveStats:
        total = len(self._strokes)
        if self.started_at is None:
            minutes = 0.0
        else:
            minutes = (self.clock.now() - self.started_at) / 60000.0
        return LiveStats(
            wpm=calculate_wpm(self._correct, minutes),
            accuracy=calculate_accuracy(self._correct, total, empty=100.0),
            correct_count=self._correct,
            total_count=total,
        )

    def _begin_running(self) -> None:
        self.countdown_value = 0
        self.state = SessionState.RUNNING
        self.started_at = self.clock.now()
        self.time_remaining = self.config.game.duration
        logger.debug("Session running (duration=%ss)", self.time_remaining)

    def _top_up(self) -> None:
        game = self.config.game
        while len(self.text) <= self.cursor + game.lookahead:
            self.text += self.generator.generate(game.refill_size)

    def _end(self, cancelled: bool) -> None:
        if self.state is SessionState.ENDED:
            return

        elapsed = 0.0 if self.started_at is None else self.clock.now() - self.started_at
        self.state = SessionState.ENDED
        self.result = build_result(
            mode=self.mode,
            seed=self.seed,
            strokes=self._strokes,
            duration=self.config.game.duration,
            cancelled=cancelled,
            elapsed_ms=elapsed,
        )
        logger.info(
            "Session ended (mode=%s, seed=%s, cancelled=%s): %.1f WPM, %.1f%% accuracy",
            self.mode, self.seed, cancelled, self.result.wpm, self.result.accuracy,
        )

        callbacks, self._ended_callbacks = self._ended_callbacks, []
        for callback in callbacks:
            callback(self.result)


def play_transcript(session: TypingSession, typed: str, elapsed_ms: float) -> GameResult:
    """Finish a running session from a complete transcript.

    Used where input only arrives as a whole, e.g. a submitted form. Every
    character is fed in order, then one tick per whole second elapsed. If
    the duration has not run out by then the session is cancelled.
    """
    if session.state is not SessionState.RUNNING:
        raise ValueError(f"session must be running (state={session.state.value})")

    for symbol in typed:
        session.submit_input(symbol)
    for _ in range(min(int(elapsed_ms // 1000), session.config.game.duration)):
        session.tick()
    session.cancel()
    return session.result
