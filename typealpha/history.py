"""History analysis over saved games (high scores, weak keys, trends)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional, Sequence, Union

import pandas as pd

from .statistics import GameMode
from .storage import GameRecord

RECORD_COLUMNS = ["id", "mode", "seed", "played_at", "wpm", "accuracy", "correct_count", "miss_count"]


@dataclass(frozen=True)
class HistorySummary:
    total: int
    daily: int
    practice: int
    average_wpm: float
    average_accuracy: float


@dataclass(frozen=True)
class KeyAccuracy:
    key: str
    accuracy: float
    count: int


def records_to_frame(records: Sequence[GameRecord]) -> pd.DataFrame:
    """One row per game, in the order given."""
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)

    df = pd.DataFrame(
        [
            {
                "id": r.id,
                "mode": r.mode,
                "seed": r.seed,
                "played_at": r.played_at,
                "wpm": r.wpm,
                "accuracy": r.accuracy,
                "correct_count": r.correct_count,
                "miss_count": r.miss_count,
            }
            for r in records
        ],
        columns=RECORD_COLUMNS,
    )
    df["played_at"] = pd.to_datetime(df["played_at"])
    return df


def high_score(records: Sequence[GameRecord], mode: GameMode) -> Optional[GameRecord]:
    """Best WPM for a mode; the earliest game wins ties."""
    best = None
    for record in records:
        if record.mode == mode and (best is None or record.wpm > best.wpm):
            best = record
    return best


def today_daily_record(
    records: Sequence[GameRecord], today: Optional[Union[date, datetime]] = None
) -> Optional[GameRecord]:
    """Best daily game played on `today` (local date)."""
    if today is None:
        today = date.today()
    if isinstance(today, datetime):
        today = today.date()
    return high_score([r for r in records if r.played_at.date() == today], "daily")


def recent_scores(records: Sequence[GameRecord], count: int = 10) -> List[GameRecord]:
    return list(records[-count:]) if count > 0 else []


def summarize(records: Sequence[GameRecord]) -> HistorySummary:
    df = records_to_frame(records)
    if df.empty:
        return HistorySummary(total=0, daily=0, practice=0, average_wpm=0.0, average_accuracy=0.0)

    return HistorySummary(
        total=len(df),
        daily=int((df["mode"] == "daily").sum()),
        practice=int((df["mode"] == "practice").sum()),
        average_wpm=float(df["wpm"].mean()),
        average_accuracy=float(df["accuracy"].mean()),
    )


def weak_keys_across(
    records: Sequence[GameRecord], limit: int = 5, min_samples: int = 10
) -> List[KeyAccuracy]:
    """Least accurate keys over all games, ignoring keys seen fewer than `min_samples` times."""
    rows = [
        {"key": key, "correct": stat.correct, "total": stat.correct + stat.miss}
        for r in records
        for key, stat in r.key_stats.items()
    ]
    if not rows:
        return []

    per_key = pd.DataFrame(rows).groupby("key", sort=False)[["correct", "total"]].sum()
    per_key = per_key[per_key["total"] >= min_samples].copy()
    if per_key.empty:
        return []

    per_key["accuracy"] = per_key["correct"] / per_key["total"]
    per_key = per_key.sort_values("accuracy", kind="stable").head(limit)

    return [
        KeyAccuracy(key=str(key), accuracy=float(row["accuracy"]), count=int(row["total"]))
        for key, row in per_key.iterrows()
    ]


def export_to_csv(records: Sequence[GameRecord]) -> str:
    """Export the game list to a CSV string."""
    out = records_to_frame(records)
    if not out.empty:
        out["played_at"] = out["played_at"].dt.strftime("%Y-%m-%dT%H:%M:%S")
        out["wpm"] = out["wpm"].round(2)
        out["accuracy"] = out["accuracy"].round(2)
    return out[RECORD_COLUMNS].to_csv(index=False)
