from __future__ import annotations

import logging
import sys
from datetime import date
from pathlib import Path

import pandas as pd
import plotly.express as px
import streamlit as st

from typealpha import (
    SessionState,
    TypingSession,
    calculate_rank,
    create_generator,
    date_to_seed,
    load_config,
    play_transcript,
    record_result,
    seed_for_mode,
    weak_keys,
)
from typealpha.history import (
    export_to_csv,
    high_score,
    recent_scores,
    records_to_frame,
    summarize,
    today_daily_record,
    weak_keys_across,
)
from typealpha.storage import SQLiteHistoryRepository

CONFIG_PATH = Path(__file__).resolve().parent / "config.yaml"

RANK_COLORS = {"S": "#ffd700", "A": "#c0c0c0", "B": "#cd7f32", "C": "#6366f1", "D": "#6b7280"}


def setup_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


setup_logging()
config = load_config(CONFIG_PATH if CONFIG_PATH.exists() else None)
repo = SQLiteHistoryRepository()

st.set_page_config(page_title="Type Alpha", layout="wide")

st.title("Type Alpha")
st.caption("60 seconds of pure focus. Play, preview the daily challenge, review history.")


with st.sidebar:
    st.header("View")
    mode = st.radio("Mode", ["Play", "Today's challenge", "View history"], index=0)
    if mode == "Play":
        game_mode = st.selectbox("Game", ["daily", "practice"])
    elif mode == "Today's challenge":
        day = st.date_input("Date", value=date.today())
        preview_len = st.slider("Preview length", min_value=50, max_value=600, value=200, step=50)
    else:
        history_limit = st.slider("How many games", 10, 100, 20, 10)


def render_play(game_mode: str) -> None:
    session = st.session_state.get("session")

    if st.button("Start new game", type="primary"):
        session = TypingSession(config)
        session.on_ended(record_result(repo))
        session.start(game_mode, seed_for_mode(game_mode))
        # The form has no live countdown.
        for _ in range(config.game.countdown_seconds):
            session.tick()
        st.session_state["session"] = session

    if session is None:
        st.info("Press Start to begin. The timer starts as soon as the text appears.")
        return

    st.subheader(f"{session.mode.title()} game (seed {session.seed})")

    if session.state is SessionState.RUNNING:
        st.code(session.text, language=None)
        with st.form("typing"):
            typed = st.text_area(
                f"Type the text above, then submit within {config.game.duration} s",
                height=160,
            )
            done = st.form_submit_button("Submit")
        if done:
            elapsed_ms = session.clock.now() - session.started_at
            play_transcript(session, typed.strip(), elapsed_ms)

    result = session.result
    if result is None:
        return

    rank = calculate_rank(result.wpm, config.ranking)
    st.markdown(
        f"<h2 style='color:{RANK_COLORS[rank]}'>Rank {rank}</h2>", unsafe_allow_html=True
    )
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("WPM", f"{result.wpm:.0f}")
    c2.metric("Accuracy", f"{result.accuracy:.1f}%")
    c3.metric("Correct", result.correct_count)
    c4.metric("Miss", result.miss_count)
    if result.cancelled:
        st.info("Submitted before the time ran out; scored over the full duration.")

    weak = weak_keys(result)
    if weak:
        st.write("**Weak keys:**", ", ".join(f"{k.key} ({k.accuracy * 100:.0f}%)" for k in weak))
    st.success("Saved to history.")


def render_challenge(day: date, preview_len: int) -> None:
    seed = date_to_seed(day)
    text = create_generator(seed, config).generate(preview_len)

    st.subheader(f"Daily challenge for {day.isoformat()}")
    st.write("**Seed:**", seed)
    st.code(text, language=None)

    records = repo.query()
    today = today_daily_record(records, day)
    daily_best = high_score(records, "daily")
    practice_best = high_score(records, "practice")

    c1, c2, c3 = st.columns(3)
    c1.metric("Best on this date", f"{today.wpm:.0f} WPM" if today else "---")
    c2.metric("Daily best", f"{daily_best.wpm:.0f} WPM" if daily_best else "---")
    c3.metric("Practice best", f"{practice_best.wpm:.0f} WPM" if practice_best else "---")

    st.markdown("#### Rank thresholds")
    st.dataframe(
        pd.DataFrame({"rank": list(config.ranking), "min WPM": list(config.ranking.values())}),
        use_container_width=True,
        hide_index=True,
    )


def render_history(limit: int) -> None:
    records = repo.query()
    if not records:
        st.warning("No games found yet. Finish a game first.")
        return

    summary = summarize(records)
    c1, c2, c3, c4, c5 = st.columns(5)
    c1.metric("Total games", summary.total)
    c2.metric("Daily", summary.daily)
    c3.metric("Practice", summary.practice)
    c4.metric("Avg WPM", f"{summary.average_wpm:.0f}")
    c5.metric("Avg ACC", f"{summary.average_accuracy:.1f}%")

    st.markdown("#### WPM progress")
    chart = records_to_frame(recent_scores(records, limit))
    chart["rank"] = chart["wpm"].map(lambda w: calculate_rank(w, config.ranking))
    fig = px.bar(
        chart,
        x=chart.index,
        y="wpm",
        color="rank",
        color_discrete_map=RANK_COLORS,
        hover_data=["mode", "played_at", "accuracy"],
        text=chart["wpm"].map(lambda v: f"{v:.0f}"),
    )
    fig.update_layout(xaxis_title="game", height=360)
    st.plotly_chart(fig, use_container_width=True)

    weak = weak_keys_across(records)
    if weak:
        st.markdown("#### Weak keys")
        weak_df = pd.DataFrame(
            {
                "key": [k.key for k in weak],
                "accuracy": [f"{k.accuracy * 100:.1f}%" for k in weak],
                "times": [k.count for k in weak],
            }
        )
        st.dataframe(weak_df, use_container_width=True, hide_index=True)

    st.markdown("#### Recent games")
    recent = records_to_frame(recent_scores(records, 10)).iloc[::-1]
    show = recent[["mode", "played_at", "wpm", "accuracy"]].copy()
    show["wpm"] = show["wpm"].map(lambda v: f"{v:.0f}")
    show["accuracy"] = show["accuracy"].map(lambda v: f"{v:.1f}%")
    st.dataframe(show, use_container_width=True, hide_index=True)

    st.download_button(
        label="Download CSV",
        data=export_to_csv(records).encode("utf-8"),
        file_name="typealpha_history.csv",
        mime="text/csv",
    )


if mode == "Play":
    render_play(game_mode)
elif mode == "Today's challenge":
    render_challenge(day, int(preview_len))
else:
    render_history(int(history_limit))
