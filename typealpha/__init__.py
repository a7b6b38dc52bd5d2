"""Core of the Type Alpha typing game: seeded text generation and session scoring."""

from .config import Config, GameSettings, GeneratorSettings, config_from_dict, load_config
from .errors import ConfigurationError, StorageError
from .generator import CharacterGenerator, create_generator
from .random_utils import SeededRandom, date_to_seed, random_seed, seed_for_mode
from .session import (
    InputOutcome,
    LiveStats,
    MonotonicClock,
    SessionState,
    TypingSession,
    play_transcript,
)
from .statistics import (
    GameResult,
    KeyStat,
    KeyStroke,
    build_result,
    calculate_rank,
    weak_keys,
)
from .storage import GameRecord, SQLiteHistoryRepository, record_result
