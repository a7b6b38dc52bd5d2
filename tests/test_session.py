"""Tests for typealpha.session – the typing session state machine."""

from __future__ import annotations

import pytest

from typealpha.config import Config, GameSettings
from typealpha.generator import create_generator
from typealpha.session import (
    CANCEL_KEY,
    InputOutcome,
    LiveStats,
    SessionState,
    TypingSession,
    is_accepted_key,
    play_transcript,
)


def wrong_key(expected: str) -> str:
    return "b" if expected == "a" else "a"


def make_running(session: TypingSession, mode: str = "practice", seed: int = 42) -> TypingSession:
    session.start(mode, seed)
    for _ in range(session.config.game.countdown_seconds):
        session.tick()
    return session


def short_game_config(duration: int = 10, countdown: int = 3) -> Config:
    return Config(game=GameSettings(duration=duration, countdown_seconds=countdown))


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class TestLifecycle:
    def test_starts_idle(self, session):
        assert session.state is SessionState.IDLE
        assert session.text == ""
        assert session.strokes == ()
        assert session.result is None

    def test_start_enters_countdown(self, session, config):
        assert session.start("daily", 20240615) is True
        assert session.state is SessionState.COUNTDOWN
        assert session.countdown_value == config.game.countdown_seconds
        assert session.cursor == 0
        assert len(session.text) == config.game.initial_buffer

    def test_start_twice_is_noop(self, session):
        session.start("daily", 1)
        text = session.text
        assert session.start("practice", 2) is False
        assert session.mode == "daily"
        assert session.text == text

    def test_text_matches_generator_for_seed(self, session, config):
        session.start("daily", 20240615)
        assert session.text == create_generator(20240615, config).generate(config.game.initial_buffer)

    def test_countdown_ticks_down_to_running(self, session, clock):
        session.start("practice", 5)
        session.tick()
        assert session.countdown_value == 2
        session.tick()
        assert session.state is SessionState.COUNTDOWN
        clock.advance(3000)
        session.tick()
        assert session.state is SessionState.RUNNING
        assert session.started_at == 3000
        assert session.time_remaining == session.config.game.duration

    def test_zero_countdown_runs_immediately(self, clock):
        s = TypingSession(short_game_config(countdown=0), clock=clock)
        s.start("practice", 1)
        assert s.state is SessionState.RUNNING

    def test_duration_timer_ends_session(self, clock):
        s = make_running(TypingSession(short_game_config(duration=5), clock=clock))
        for _ in range(4):
            s.tick()
        assert s.state is SessionState.RUNNING
        assert s.time_remaining == 1
        s.tick()
        assert s.state is SessionState.ENDED
        assert s.result is not None
        assert s.result.cancelled is False

    def test_ticks_ignored_when_idle(self, session):
        session.tick()
        assert session.state is SessionState.IDLE

    def test_ticks_after_end_are_noops(self, clock):
        s = make_running(TypingSession(short_game_config(duration=2), clock=clock))
        s.tick()
        s.tick()
        result = s.result
        for _ in range(5):
            s.tick()
        assert s.state is SessionState.ENDED
        assert s.time_remaining == 0
        assert s.result is result


# ---------------------------------------------------------------------------
# Input handling
# ---------------------------------------------------------------------------

class TestInput:
    def test_input_ignored_while_idle(self, session):
        assert session.submit_input("a") is InputOutcome.IGNORED
        assert session.strokes == ()

    def test_input_ignored_during_countdown(self, session):
        session.start("daily", 20240615)
        assert session.submit_input(session.expected) is InputOutcome.IGNORED
        assert session.strokes == ()
        assert session.cursor == 0

    def test_correct_and_miss_both_advance(self, session, clock):
        make_running(session)
        first = session.expected
        clock.advance(150)
        assert session.submit_input(first) is InputOutcome.CORRECT
        second = session.expected
        clock.advance(100)
        assert session.submit_input(wrong_key(second)) is InputOutcome.MISS

        assert session.cursor == 2
        s1, s2 = session.strokes
        assert (s1.key, s1.expected, s1.correct, s1.timestamp) == (first, first, True, 150)
        assert (s2.expected, s2.correct, s2.timestamp) == (second, False, 250)

    @pytest.mark.parametrize("symbol", ["A", "Shift", "1", " ", ".", "ab", "", "é", "Backspace"])
    def test_rejected_symbols_not_recorded(self, session, symbol):
        make_running(session)
        assert session.submit_input(symbol) is InputOutcome.REJECTED
        assert session.strokes == ()
        assert session.cursor == 0

    def test_input_ignored_after_end(self, session):
        make_running(session)
        session.cancel()
        assert session.submit_input("a") is InputOutcome.IGNORED
        assert session.strokes == ()

    def test_is_accepted_key(self):
        assert is_accepted_key("a")
        assert is_accepted_key("z")
        assert not is_accepted_key("Z")
        assert not is_accepted_key("aa")

    def test_buffer_stays_ahead_of_cursor(self, clock):
        cfg = Config(game=GameSettings(duration=600))
        s = make_running(TypingSession(cfg, clock=clock))
        for _ in range(700):
            clock.advance(50)
            s.submit_input(s.expected)
            assert len(s.text) >= s.cursor + cfg.game.lookahead
        assert s.cursor == 700
        assert all(stroke.correct for stroke in s.strokes)

    def test_extended_text_is_deterministic(self, clock):
        cfg = Config(game=GameSettings(duration=600))
        a = make_running(TypingSession(cfg, clock=clock), seed=9)
        b = make_running(TypingSession(cfg, clock=clock), seed=9)
        for _ in range(300):
            a.submit_input(a.expected)
            b.submit_input("q")
        assert a.text[:400] == b.text[:400]

    @pytest.mark.parametrize(
        "game",
        [
            GameSettings(initial_buffer=5, lookahead=0, refill_size=5),
            GameSettings(initial_buffer=0, lookahead=0, refill_size=1),
            GameSettings(initial_buffer=0, lookahead=10, refill_size=3),
        ],
    )
    def test_every_stroke_has_an_expected_symbol(self, clock, game):
        s = make_running(TypingSession(Config(game=game), clock=clock))
        for _ in range(30):
            assert s.expected != ""
            assert s.submit_input(s.expected) is InputOutcome.CORRECT
        s.cancel()
        assert all(len(stroke.expected) == 1 for stroke in s.result.strokes)
        assert "" not in s.result.key_stats
        assert s.result.correct_count == 30

    def test_empty_initial_buffer_is_filled_at_start(self, clock):
        s = TypingSession(Config(game=GameSettings(initial_buffer=0, lookahead=0)), clock=clock)
        s.start("daily", 20240615)
        assert len(s.text) >= 1
        assert s.text == create_generator(20240615, s.config).generate(len(s.text))

    def test_uppercase_is_not_folded(self, session):
        make_running(session)
        assert session.submit_input(session.expected.upper()) is InputOutcome.REJECTED
        assert session.cursor == 0



# ---------------------------------------------------------------------------
# Cancel
# ---------------------------------------------------------------------------

class TestCancel:
    def test_cancel_key_during_countdown(self, session):
        session.start("daily", 1)
        assert session.submit_input(CANCEL_KEY) is InputOutcome.CANCELLED
        assert session.state is SessionState.ENDED
        assert session.result.cancelled is True
        assert session.result.wpm == 0

    def test_cancel_key_while_idle_is_ignored(self, session):
        assert session.submit_input(CANCEL_KEY) is InputOutcome.IGNORED
        assert session.state is SessionState.IDLE

    def test_cancel_running_without_strokes(self, session):
        make_running(session)
        session.cancel()
        assert session.result.wpm == 0
        assert session.result.accuracy == 0

    def test_cancel_running_with_only_misses(self, session, clock):
        make_running(session)
        for _ in range(4):
            clock.advance(100)
            session.submit_input(wrong_key(session.expected))
        session.cancel()
        r = session.result
        assert r.wpm == 0
        assert r.accuracy == 0
        assert r.miss_count == 4
        assert r.elapsed_ms == 400

    def test_cancel_is_idempotent(self, session):
        calls = []
        session.on_ended(calls.append)
        make_running(session)
        session.cancel()
        first = session.result
        session.cancel()
        session.submit_input(CANCEL_KEY)
        assert session.result is first
        assert calls == [first]

    def test_cancel_idle_is_noop(self, session):
        session.cancel()
        assert session.state is SessionState.IDLE
        assert session.result is None

    def test_cancel_uses_configured_duration_for_wpm(self, session, clock):
        make_running(session)
        for _ in range(50):
            clock.advance(100)
            session.submit_input(session.expected)
        session.cancel()
        # 50 correct over the full 60 s duration: (50 / 5) / 1
        assert session.result.wpm == pytest.approx(10.0)
        assert session.result.elapsed_ms == 5000


# ---------------------------------------------------------------------------
# on_ended
# ---------------------------------------------------------------------------

class TestOnEnded:
    def test_callbacks_fire_once_with_result(self, clock):
        s = make_running(TypingSession(short_game_config(duration=1), clock=clock))
        got = []
        s.on_ended(got.append)
        s.on_ended(lambda r: got.append(r.seed))
        s.tick()
        s.tick()
        assert got == [s.result, 42]

    def test_late_registration_fires_immediately(self, session):
        make_running(session)
        session.cancel()
        got = []
        session.on_ended(got.append)
        assert got == [session.result]


# ---------------------------------------------------------------------------
# Live stats
# ---------------------------------------------------------------------------

class TestLiveStats:
    def test_defaults_before_typing(self, session):
        make_running(session)
        assert session.stats == LiveStats(wpm=0.0, accuracy=100.0, correct_count=0, total_count=0)

    def test_zero_elapsed_gives_zero_wpm(self, session):
        make_running(session)
        session.submit_input(session.expected)
        assert session.stats.wpm == 0.0
        assert session.stats.accuracy == 100.0

    def test_recomputed_after_each_keystroke(self, session, clock):
        make_running(session)
        for _ in range(10):
            clock.advance(600)
            session.submit_input(session.expected)
        # 10 correct in 6 s = 0.1 min -> (10 / 5) / 0.1
        assert session.stats.wpm == pytest.approx(20.0)
        clock.advance(600)
        session.submit_input(wrong_key(session.expected))
        assert session.stats.total_count == 11
        assert session.stats.accuracy == pytest.approx(10 / 11 * 100)


# ---------------------------------------------------------------------------
# Transcript play
# ---------------------------------------------------------------------------

class TestPlayTranscript:
    def test_full_duration_is_not_cancelled(self, clock):
        s = make_running(TypingSession(short_game_config(duration=10), clock=clock))
        typed = s.text[:40]
        result = play_transcript(s, typed, elapsed_ms=12_500)
        assert s.state is SessionState.ENDED
        assert result.cancelled is False
        assert result.correct_count == 40
        assert result.wpm == pytest.approx(40 / 5 / (10 / 60))

    def test_early_submit_is_cancelled(self, clock):
        s = make_running(TypingSession(short_game_config(duration=10), clock=clock))
        typed = s.text[:3] + "Q" + wrong_key(s.text[3])
        result = play_transcript(s, typed, elapsed_ms=4_000)
        assert result.cancelled is True
        assert result.correct_count == 3
        assert result.miss_count == 1
        assert s.time_remaining == 6

    def test_requires_running_session(self, session):
        with pytest.raises(ValueError):
            play_transcript(session, "abc", elapsed_ms=1000)


# ---------------------------------------------------------------------------
# End to end
# ---------------------------------------------------------------------------

class TestEndToEnd:
    def test_perfect_daily_run(self, clock):
        s = TypingSession(Config(), clock=clock)
        s.start("daily", 20240615)
        for _ in range(3):
            clock.advance(1000)
            s.tick()
        assert s.state is SessionState.RUNNING

        for _ in range(60):
            for _ in range(5):
                clock.advance(200)
                s.submit_input(s.expected)
            s.tick()

        r = s.result
        assert s.state is SessionState.ENDED
        assert r.mode == "daily"
        assert r.seed == 20240615
        assert r.correct_count == 300
        assert r.miss_count == 0
        assert r.accuracy == 100
        assert r.wpm == round(300 / 5 / 1)
        assert sum(stat.correct for stat in r.key_stats.values()) == 300
        assert "".join(stroke.key for stroke in r.strokes) == s.text[:300]
