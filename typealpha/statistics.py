from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Mapping, Sequence, Tuple

GameMode = Literal["daily", "practice"]

CHARS_PER_WORD = 5


@dataclass(frozen=True)
class KeyStroke:
    key: str
    expected: str
    correct: bool
    timestamp: float  # ms since the session started running


@dataclass(frozen=True)
class KeyStat:
    correct: int = 0
    miss: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.miss

    @property
    def accuracy(self) -> float:
        return self.correct / self.total if self.total else 0.0


@dataclass(frozen=True)
class WeakKey:
    key: str
    accuracy: float
    misses: int


@dataclass(frozen=True)
class GameResult:
    mode: GameMode
    seed: int
    wpm: float
    accuracy: float
    correct_count: int
    miss_count: int
    key_stats: Dict[str, KeyStat] = field(default_factory=dict)
    strokes: Tuple[KeyStroke, ...] = ()
    cancelled: bool = False
    elapsed_ms: float = 0.0

    @property
    def total_count(self) -> int:
        return self.correct_count + self.miss_count


def calculate_wpm(correct_count: int, minutes: float) -> float:
    """(correct / 5) / minutes; 0 when no time has passed."""
    if minutes <= 0:
        return 0.0
    return (correct_count / CHARS_PER_WORD) / minutes


def calculate_accuracy(correct_count: int, total_count: int, empty: float = 0.0) -> float:
    """Percentage of correct keystrokes; `empty` is returned when nothing was typed."""
    if total_count <= 0:
        return empty
    return correct_count / total_count * 100


def tally_key_stats(strokes: Sequence[KeyStroke]) -> Dict[str, KeyStat]:
    """Correct/miss counts grouped by the expected symbol."""
    counts: Dict[str, List[int]] = {}
    for stroke in strokes:
        bucket = counts.setdefault(stroke.expected, [0, 0])
        bucket[0 if stroke.correct else 1] += 1
    return {key: KeyStat(correct=c, miss=m) for key, (c, m) in counts.items()}


def build_result(
    mode: GameMode,
    seed: int,
    strokes: Sequence[KeyStroke],
    duration: int,
    cancelled: bool = False,
    elapsed_ms: float = 0.0,
) -> GameResult:
    """Final snapshot of a session.

    WPM is normalised to the configured `duration` (seconds), even when the
    session was cancelled early; `cancelled` and `elapsed_ms` let callers
    tell the two apart.
    """
    strokes = tuple(strokes)
    correct_count = sum(1 for s in strokes if s.correct)
    miss_count = len(strokes) - correct_count

    return GameResult(
        mode=mode,
        seed=seed,
        wpm=calculate_wpm(correct_count, duration / 60),
        accuracy=calculate_accuracy(correct_count, len(strokes)),
        correct_count=correct_count,
        miss_count=miss_count,
        key_stats=tally_key_stats(strokes),
        strokes=strokes,
        cancelled=cancelled,
        elapsed_ms=elapsed_ms,
    )


def calculate_rank(wpm: float, thresholds: Mapping[str, float]) -> str:
    """First tier (highest first) whose threshold is <= wpm, else the last tier."""
    if not thresholds:
        raise ValueError("thresholds must define at least one tier")
    tier = None
    for tier, minimum in thresholds.items():
        if wpm >= minimum:
            return tier
    return tier


def weak_keys(result: GameResult, limit: int = 3) -> List[WeakKey]:
    """Keys missed at least once, worst accuracy first."""
    out = [
        WeakKey(key=key, accuracy=stat.accuracy, misses=stat.miss)
        for key, stat in result.key_stats.items()
        if stat.miss > 0
    ]
    out.sort(key=lambda w: w.accuracy)
    return out[:limit]
