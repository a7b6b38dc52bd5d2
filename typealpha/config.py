from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .errors import ConfigurationError

logger = logging.getLogger(__name__)


DEFAULT_LETTER_WEIGHTS: Dict[str, float] = {
    "a": 8.2, "b": 1.5, "c": 2.8, "d": 4.3, "e": 12.7, "f": 2.2,
    "g": 2.0, "h": 6.1, "i": 7.0, "j": 0.15, "k": 0.77, "l": 4.0,
    "m": 2.4, "n": 6.7, "o": 7.5, "p": 1.9, "q": 0.095, "r": 6.0,
    "s": 6.3, "t": 9.1, "u": 2.8, "v": 0.98, "w": 2.4, "x": 0.15,
    "y": 2.0, "z": 0.074,
}

DEFAULT_PATTERNS: Tuple[str, ...] = (
    "ing", "the", "tion", "and", "ent", "ion", "ere",
    "her", "ate", "ter", "hat", "all", "ith",
)

# QWERTY home-row touch typing, left pinky (0) to right pinky (7).
DEFAULT_FINGER_MAP: Dict[str, int] = {
    "a": 0, "q": 0, "z": 0,
    "s": 1, "w": 1, "x": 1,
    "d": 2, "e": 2, "c": 2,
    "f": 3, "r": 3, "v": 3, "t": 3, "g": 3, "b": 3,
    "j": 4, "u": 4, "m": 4, "y": 4, "h": 4, "n": 4,
    "k": 5, "i": 5,
    "l": 6, "o": 6,
    "p": 7,
}

DEFAULT_RANKING: Dict[str, float] = {"S": 120, "A": 90, "B": 60, "C": 40, "D": 0}


@dataclass(frozen=True)
class GameSettings:
    duration: int = 60
    countdown_seconds: int = 3
    initial_buffer: int = 200
    lookahead: int = 120
    refill_size: int = 100

    def __post_init__(self) -> None:
        if self.duration <= 0:
            raise ConfigurationError("game.duration must be > 0")
        if self.countdown_seconds < 0:
            raise ConfigurationError("game.countdown_seconds must be >= 0")
        if self.initial_buffer < 0 or self.lookahead < 0:
            raise ConfigurationError("game.initial_buffer and game.lookahead must be >= 0")
        if self.refill_size <= 0:
            raise ConfigurationError("game.refill_size must be > 0")


@dataclass(frozen=True)
class GeneratorSettings:
    letter_weights: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_LETTER_WEIGHTS))
    same_finger_penalty: float = 0.3
    pattern_insert_rate: float = 0.15
    patterns: Tuple[str, ...] = DEFAULT_PATTERNS

    def __post_init__(self) -> None:
        if not self.letter_weights:
            raise ConfigurationError("generator.letter_weights must not be empty")
        for letter, weight in self.letter_weights.items():
            if len(letter) != 1:
                raise ConfigurationError(f"letter weight key {letter!r} must be a single character")
            if not weight > 0:
                raise ConfigurationError(f"weight for {letter!r} must be > 0 (got {weight})")
        if not (0 < self.same_finger_penalty <= 1):
            raise ConfigurationError("generator.same_finger_penalty must be in (0, 1]")
        if not (0 <= self.pattern_insert_rate <= 1):
            raise ConfigurationError("generator.pattern_insert_rate must be in [0, 1]")
        object.__setattr__(self, "patterns", tuple(self.patterns))
        if any(not p for p in self.patterns):
            raise ConfigurationError("generator.patterns must not contain empty strings")
        if self.pattern_insert_rate > 0 and not self.patterns:
            raise ConfigurationError("generator.patterns is empty but pattern_insert_rate > 0")


@dataclass(frozen=True)
class Config:
    """Everything the generator and session need, validated once up front."""

    game: GameSettings = field(default_factory=GameSettings)
    generator: GeneratorSettings = field(default_factory=GeneratorSettings)
    finger_map: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_FINGER_MAP))
    ranking: Mapping[str, float] = field(default_factory=lambda: dict(DEFAULT_RANKING))

    def __post_init__(self) -> None:
        for key, finger in self.finger_map.items():
            if not isinstance(finger, int) or isinstance(finger, bool):
                raise ConfigurationError(f"finger for {key!r} must be an integer")
        if not self.ranking:
            raise ConfigurationError("ranking must define at least one tier")
        thresholds = list(self.ranking.values())
        if any(lower > upper for upper, lower in zip(thresholds, thresholds[1:])):
            raise ConfigurationError("ranking thresholds must be non-increasing from the top tier")
        if thresholds[-1] > 0:
            raise ConfigurationError("the lowest ranking tier must have a threshold of 0 or lower")


def config_from_dict(data: Optional[Mapping[str, Any]]) -> Config:
    """Build a Config from a (possibly partial) mapping; missing parts use defaults."""
    data = dict(data or {})
    game = dict(data.get("game") or {})
    gen = dict(data.get("generator") or {})

    try:
        game_kwargs = {
            "duration": int(game.get("duration", 60)),
            "countdown_seconds": int(game.get("countdown_seconds", 3)),
            "initial_buffer": int(game.get("initial_buffer", 200)),
            "lookahead": int(game.get("lookahead", 120)),
            "refill_size": int(game.get("refill_size", 100)),
        }
        weights = gen.get("letter_weights", DEFAULT_LETTER_WEIGHTS)
        gen_kwargs = {
            "letter_weights": {str(k): float(v) for k, v in weights.items()},
            "same_finger_penalty": float(gen.get("same_finger_penalty", 0.3)),
            "pattern_insert_rate": float(gen.get("pattern_insert_rate", 0.15)),
            "patterns": tuple(str(p) for p in gen.get("patterns", DEFAULT_PATTERNS)),
        }
        finger_map = {str(k): int(v) for k, v in data.get("finger_map", DEFAULT_FINGER_MAP).items()}
        ranking = {str(k): float(v) for k, v in data.get("ranking", DEFAULT_RANKING).items()}
    except (TypeError, ValueError, AttributeError) as exc:
        raise ConfigurationError(f"invalid configuration value: {exc}") from exc

    return Config(
        game=GameSettings(**game_kwargs),
        generator=GeneratorSettings(**gen_kwargs),
        finger_map=finger_map,
        ranking=ranking,
    )


def load_config(path: Optional[Union[str, Path]] = None) -> Config:
    """Load a YAML (or JSON) configuration file; no path means the defaults.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ConfigurationError: If the file can't be parsed or holds invalid values
    """
    if path is None:
        return Config()

    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Error parsing configuration {config_path}: {exc}") from exc

    if data is not None and not isinstance(data, Mapping):
        raise ConfigurationError(f"Configuration {config_path} must be a mapping at the top level")

    config = config_from_dict(data)
    logger.debug("Loaded configuration from %s", config_path)
    return config
