from __future__ import annotations

from typing import Iterator, List, Optional

from .config import Config
from .random_utils import SeededRandom

NO_FINGER = -1


class CharacterGenerator:
    """Seeded practice-text generator.

    - Letters are drawn by frequency weight, with candidates on the same
      finger as the previous letter down-weighted by `same_finger_penalty`.
    - With probability `pattern_insert_rate` a whole n-gram from `patterns`
      is spliced in instead, as long as it fits in the requested length.

    The same seed and config always produce the same text.
    """

    def __init__(self, seed: int, config: Config):
        self.seed = seed
        self.config = config
        self.random = SeededRandom(seed)
        self.last_finger: Optional[int] = None

        settings = config.generator
        self._letters: List[str] = list(settings.letter_weights)
        self._weights: List[float] = [settings.letter_weights[c] for c in self._letters]
        self._fingers: List[int] = [self.finger_for(c) for c in self._letters]

    def finger_for(self, key: str) -> int:
        return self.config.finger_map.get(key, NO_FINGER)

    def generate(self, length: int) -> str:
        """Return exactly `length` characters (empty for length <= 0)."""
        settings = self.config.generator
        parts: List[str] = []
        size = 0

        while size < length:
            if self.random.next() < settings.pattern_insert_rate:
                pattern = self.random.pick(settings.patterns)
                if size + len(pattern) <= length:
                    parts.append(pattern)
                    size += len(pattern)
                    self.last_finger = self.finger_for(pattern[-1])
                    continue

            parts.append(self._next_char())
            size += 1

        return "".join(parts)

    def stream(self) -> Iterator[str]:
        """Endless single-letter draws; never inserts patterns."""
        while True:
            yield self._next_char()

    def _next_char(self) -> str:
        penalty = self.config.generator.same_finger_penalty
        last = self.last_finger

        if last is None or last == NO_FINGER:
            weights = self._weights
        else:
            weights = [
                w * penalty if finger == last else w
                for w, finger in zip(self._weights, self._fingers)
            ]

        index = self.random.weighted_pick(range(len(self._letters)), weights)
        self.last_finger = self._fingers[index]
        return self._letters[index]


def create_generator(seed: int, config: Config) -> CharacterGenerator:
    return CharacterGenerator(seed, config)
