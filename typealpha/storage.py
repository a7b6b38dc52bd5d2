from __future__ import annotations

import logging
import sqlite3
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Tuple

import pandas as pd

from .errors import StorageError
from .statistics import GameMode, GameResult, KeyStat, KeyStroke

logger = logging.getLogger(__name__)

DEFAULT_DB = Path(__file__).resolve().parent.parent / "typealpha.db"
MAX_RECORDS = 100


def generate_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:7]}"


@dataclass(frozen=True)
class GameRecord:
    id: str
    mode: GameMode
    seed: int
    played_at: datetime
    wpm: float
    accuracy: float
    correct_count: int
    miss_count: int
    key_stats: Dict[str, KeyStat] = field(default_factory=dict)
    strokes: Tuple[KeyStroke, ...] = ()

    @classmethod
    def from_result(
        cls,
        result: GameResult,
        played_at: Optional[datetime] = None,
        record_id: Optional[str] = None,
    ) -> "GameRecord":
        return cls(
            id=record_id or generate_id(),
            mode=result.mode,
            seed=result.seed,
            played_at=played_at or datetime.now(),
            wpm=result.wpm,
            accuracy=result.accuracy,
            correct_count=result.correct_count,
            miss_count=result.miss_count,
            key_stats=dict(result.key_stats),
            strokes=tuple(result.strokes),
        )


@dataclass(frozen=True)
class HistoryFilter:
    mode: Optional[GameMode] = None
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    limit: Optional[int] = None  # most recent N


class HistoryRepository(Protocol):
    def append(self, record: GameRecord) -> None: ...

    def query(self, filter: Optional[HistoryFilter] = None) -> List[GameRecord]: ...


class SQLiteHistoryRepository:
    """Game history kept in a local SQLite file, newest `max_records` only."""

    def __init__(self, db_path: Path = DEFAULT_DB, max_records: int = MAX_RECORDS):
        if max_records <= 0:
            raise ValueError("max_records must be > 0")
        self.db_path = Path(db_path)
        self.max_records = max_records
        self.init_db()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def init_db(self) -> None:
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._get_conn() as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS games (
                      row_id INTEGER PRIMARY KEY AUTOINCREMENT,
                      id TEXT NOT NULL UNIQUE,
                      mode TEXT NOT NULL,
                      seed INTEGER NOT NULL,
                      played_at TEXT NOT NULL,
                      wpm REAL NOT NULL,
                      accuracy REAL NOT NULL,
                      correct_count INTEGER NOT NULL,
                      miss_count INTEGER NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS key_stats (
                      game_id TEXT NOT NULL,
                      symbol TEXT NOT NULL,
                      correct INTEGER NOT NULL,
                      miss INTEGER NOT NULL,
                      PRIMARY KEY (game_id, symbol),
                      FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
                    );

                    CREATE TABLE IF NOT EXISTS strokes (
                      game_id TEXT NOT NULL,
                      seq INTEGER NOT NULL,
                      symbol TEXT NOT NULL,
                      expected TEXT NOT NULL,
                      correct INTEGER NOT NULL,
                      timestamp_ms REAL NOT NULL,
                      PRIMARY KEY (game_id, seq),
                      FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
                    );
                    """
                )
        except (sqlite3.Error, OSError) as exc:
            raise StorageError(f"could not initialise history at {self.db_path}: {exc}") from exc

    def append(self, record: GameRecord) -> None:
        try:
            with self._get_conn() as conn:
                conn.execute(
                    """
                    INSERT INTO games (
                      id, mode, seed, played_at, wpm, accuracy, correct_count, miss_count
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.mode,
                        int(record.seed),
                        record.played_at.isoformat(),
                        float(record.wpm),
                        float(record.accuracy),
                        int(record.correct_count),
                        int(record.miss_count),
                    ),
                )
                conn.executemany(
                    "INSERT INTO key_stats (game_id, symbol, correct, miss) VALUES (?, ?, ?, ?)",
                    [(record.id, k, s.correct, s.miss) for k, s in record.key_stats.items()],
                )
                conn.executemany(
                    """
                    INSERT INTO strokes (game_id, seq, symbol, expected, correct, timestamp_ms)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    [
                        (record.id, i, s.key, s.expected, int(s.correct), float(s.timestamp))
                        for i, s in enumerate(record.strokes)
                    ],
                )
                conn.execute(
                    """
                    DELETE FROM games WHERE row_id NOT IN (
                      SELECT row_id FROM games ORDER BY row_id DESC LIMIT ?
                    )
                    """,
                    (self.max_records,),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"could not save game {record.id}: {exc}") from exc
        logger.debug("Saved game %s (%s, %.1f WPM)", record.id, record.mode, record.wpm)

    def query(self, filter: Optional[HistoryFilter] = None) -> List[GameRecord]:
        """Matching games, oldest first."""
        filter = filter or HistoryFilter()
        clauses, params = [], []
        if filter.mode is not None:
            clauses.append("mode = ?")
            params.append(filter.mode)
        if filter.since is not None:
            clauses.append("played_at >= ?")
            params.append(filter.since.isoformat())
        if filter.until is not None:
            clauses.append("played_at < ?")
            params.append(filter.until.isoformat())

        sql = "SELECT * FROM games"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY row_id DESC"
        if filter.limit is not None:
            sql += " LIMIT ?"
            params.append(int(filter.limit))

        try:
            with self._get_conn() as conn:
                rows = conn.execute(sql, params).fetchall()
                records = [self._to_record(conn, r) for r in reversed(rows)]
        except sqlite3.Error as exc:
            raise StorageError(f"could not read history: {exc}") from exc
        return records

    def get_strokes_frame(self, record_id: str) -> pd.DataFrame:
        """Keystrokes of one game as a DataFrame (seq, key, expected, correct, timestamp_ms)."""
        columns = ["seq", "key", "expected", "correct", "timestamp_ms"]
        try:
            with self._get_conn() as conn:
                rows = conn.execute(
                    "SELECT seq, symbol, expected, correct, timestamp_ms FROM strokes WHERE game_id = ? ORDER BY seq",
                    (record_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StorageError(f"could not read strokes for {record_id}: {exc}") from exc

        if not rows:
            return pd.DataFrame(columns=columns)

        df = pd.DataFrame([dict(r) for r in rows]).rename(columns={"symbol": "key"})[columns]
        df["correct"] = df["correct"].astype(bool)
        return df

    @staticmethod
    def _to_record(conn: sqlite3.Connection, row: sqlite3.Row) -> GameRecord:
        key_rows = conn.execute(
            "SELECT symbol, correct, miss FROM key_stats WHERE game_id = ? ORDER BY rowid", (row["id"],)
        ).fetchall()
        stroke_rows = conn.execute(
            "SELECT symbol, expected, correct, timestamp_ms FROM strokes WHERE game_id = ? ORDER BY seq",
            (row["id"],),
        ).fetchall()
        return GameRecord(
            id=row["id"],
            mode=row["mode"],
            seed=int(row["seed"]),
            played_at=datetime.fromisoformat(row["played_at"]),
            wpm=float(row["wpm"]),
            accuracy=float(row["accuracy"]),
            correct_count=int(row["correct_count"]),
            miss_count=int(row["miss_count"]),
            key_stats={k["symbol"]: KeyStat(correct=int(k["correct"]), miss=int(k["miss"])) for k in key_rows},
            strokes=tuple(
                KeyStroke(
                    key=s["symbol"],
                    expected=s["expected"],
                    correct=bool(s["correct"]),
                    timestamp=float(s["timestamp_ms"]),
                )
                for s in stroke_rows
            ),
        )


def record_result(repo: HistoryRepository, skip_cancelled: bool = False) -> Callable[[GameResult], None]:
    """Build an `on_ended` callback that saves each finished game to `repo`."""

    def _save(result: GameResult) -> None:
        if skip_cancelled and result.cancelled:
            logger.info("Cancelled %s game not saved (seed=%s)", result.mode, result.seed)
            return
        record = GameRecord.from_result(result)
        repo.append(record)
        logger.info("Saved %s game %s: %.1f WPM", record.mode, record.id, record.wpm)

    return _save
