from __future__ import annotations

import math
import random
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence, TypeVar, Union

T = TypeVar("T")

UINT32_MASK = 0xFFFFFFFF
UINT32_SCALE = 4294967296.0
MAX_RANDOM_SEED = 2147483647


def _imul(a: int, b: int) -> int:
    return (a * b) & UINT32_MASK


@dataclass
class SeededRandom:
    """A tiny seeded RNG producing the same stream on every platform.

    Mulberry32:
      state = state + 0x6D2B79F5                      (mod 2^32)
      t = imul(state ^ (state >> 15), state | 1)
      t = (t + imul(t ^ (t >> 7), t | 61)) ^ t
      next = (t ^ (t >> 14)) / 2^32

    This is not cryptographically secure; it exists so that every player
    gets the same daily text for a given calendar date.
    """

    seed: int

    def __post_init__(self) -> None:
        self.state = self.seed & UINT32_MASK

    def next(self) -> float:
        self.state = (self.state + 0x6D2B79F5) & UINT32_MASK
        t = _imul(self.state ^ (self.state >> 15), self.state | 1)
        t = ((t + _imul(t ^ (t >> 7), t | 61)) & UINT32_MASK) ^ t
        return ((t ^ (t >> 14)) & UINT32_MASK) / UINT32_SCALE

    def next_int(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi). Slightly biased for tiny ranges."""
        return math.floor(self.next() * (hi - lo)) + lo

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("cannot pick from an empty sequence")
        return items[self.next_int(0, len(items))]

    def weighted_pick(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Cumulative-weight draw.

        Falls back to the last item when float error leaves a positive
        residual after every weight has been subtracted.
        """
        if not items:
            raise ValueError("cannot pick from an empty sequence")
        if len(items) != len(weights):
            raise ValueError("items and weights must have the same length")

        remaining = self.next() * sum(weights)
        for item, weight in zip(items, weights):
            remaining -= weight
            if remaining <= 0:
                return item
        return items[-1]


def date_to_seed(day: Optional[Union[date, datetime]] = None) -> int:
    """Stable seed for a calendar date (YYYYMMDD); time of day is ignored."""
    if day is None:
        day = datetime.now()
    return day.year * 10000 + day.month * 100 + day.day


def random_seed() -> int:
    return int(random.random() * MAX_RANDOM_SEED)


def seed_for_mode(mode: str, today: Optional[Union[date, datetime]] = None) -> int:
    """Seed for a new attempt: the date seed for daily, a fresh one otherwise."""
    if mode == "daily":
        return date_to_seed(today)
    if mode == "practice":
        return random_seed()
    raise ValueError(f"unknown game mode: {mode!r}")
