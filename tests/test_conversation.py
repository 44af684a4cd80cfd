"""Tests for the ConversationScheduler: cadence, filler mode and cancellation."""

import os
import random
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from callsim.clock import ManualClock
from callsim.conversation import (
    FILLER_LINES,
    ConversationCursor,
    ConversationScheduler,
    DeliveryMode,
    estimate_display_seconds,
)
from callsim.scenarios.schema import CallScript, ScenarioId


# ── Helpers ─────────────────────────────────────────────────────

class Recorder:
    """Collects everything the scheduler hands to its callbacks."""

    def __init__(self):
        self.lines = []
        self.spoken = []
        self.clears = 0

    def on_line(self, text):
        self.lines.append(text)

    def speak(self, text):
        self.spoken.append(text)

    def on_clear(self):
        self.clears += 1


def _start(scheduler, script):
    rec = Recorder()
    scheduler.start(script, rec.on_line, rec.speak, rec.on_clear)
    return rec


def _script(*lines):
    return CallScript(scenario=ScenarioId.GENERAL, lines=lines)


# ── Delivery cadence ────────────────────────────────────────────

class TestScriptedDelivery:
    def test_first_line_delivered_immediately(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(1))
        script = catalog.get_script(ScenarioId.WALKING_SAFETY)
        rec = _start(scheduler, script)

        assert rec.lines == [script.lines[0]]
        assert rec.spoken == [script.lines[0]]
        assert scheduler.cursor.next_index == 1
        assert scheduler.mode is DeliveryMode.SCRIPTED

    def test_next_line_scheduled_within_scripted_range(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(2))
        _start(scheduler, catalog.get_script(ScenarioId.GENERAL))

        # Earliest pending timer is the delivery (the caption clear is later)
        delivery = min(
            when for when, _, call in clock._queue
            if not call.cancelled() and call.callback == scheduler._tick
        )
        assert 8.0 <= delivery <= 15.0

    def test_nothing_delivered_before_minimum_delay(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(3))
        rec = _start(scheduler, catalog.get_script(ScenarioId.GENERAL))
        clock.advance(7.99)
        assert len(rec.lines) == 1

    def test_walking_safety_end_to_end(self, clock, catalog):
        """Five 15s steps deliver the whole script; the sixth brings filler."""
        scheduler = ConversationScheduler(
            clock, rng=random.Random(4), scripted_delay=(15.0, 15.0),
        )
        script = catalog.get_script(ScenarioId.WALKING_SAFETY)
        rec = _start(scheduler, script)
        assert rec.lines[0] == script.lines[0]

        for _ in range(5):
            clock.advance(15)

        assert rec.lines == list(script.lines)
        assert scheduler.cursor.next_index == 5
        assert scheduler.mode is DeliveryMode.FILLER

        # Filler follows the last scripted line (t=60) by 20-30s
        assert 80.0 <= clock.next_deadline() <= 90.0
        clock.advance(15)
        assert len(rec.lines) == 6
        assert rec.lines[5] in FILLER_LINES
        assert scheduler.cursor.next_index == 5

    def test_filler_delay_within_range(self, clock):
        scheduler = ConversationScheduler(
            clock, rng=random.Random(5), display_floor_seconds=0.0,
            display_seconds_per_char=0.0,
        )
        delivered_at = []
        scheduler.start(
            _script("Only line"), lambda text: delivered_at.append(clock.now()), lambda t: None,
        )
        assert scheduler.mode is DeliveryMode.FILLER

        clock.advance(30 * 20)
        gaps = [b - a for a, b in zip(delivered_at, delivered_at[1:])]
        assert len(gaps) >= 19
        assert all(20.0 <= gap <= 30.0 for gap in gaps)

    def test_filler_repeats_indefinitely(self, clock):
        scheduler = ConversationScheduler(clock, rng=random.Random(6))
        rec = _start(scheduler, _script("Hi"))
        clock.advance(30 * 50)
        assert len(rec.lines) >= 51
        assert all(line in FILLER_LINES for line in rec.lines[1:])
        assert scheduler.is_running

    def test_speech_gets_every_line(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(8))
        rec = _start(scheduler, catalog.get_script(ScenarioId.LATE_NIGHT))
        clock.advance(200)
        assert rec.spoken == rec.lines


class TestDelaySampling:
    def test_scripted_delays_in_range(self):
        scheduler = ConversationScheduler(ManualClock(), rng=random.Random(10))
        samples = [scheduler.sample_scripted_delay() for _ in range(10_000)]
        assert all(8.0 <= s <= 15.0 for s in samples)

    def test_filler_delays_in_range(self):
        scheduler = ConversationScheduler(ManualClock(), rng=random.Random(11))
        samples = [scheduler.sample_filler_delay() for _ in range(10_000)]
        assert all(20.0 <= s <= 30.0 for s in samples)

    def test_custom_ranges(self):
        scheduler = ConversationScheduler(
            ManualClock(), rng=random.Random(12),
            scripted_delay=(1.0, 2.0), filler_delay=(3.0, 4.0),
        )
        assert 1.0 <= scheduler.sample_scripted_delay() <= 2.0
        assert 3.0 <= scheduler.sample_filler_delay() <= 4.0


class TestFillerMode:
    def test_enters_filler_exactly_once(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(13))
        modes = []

        def on_line(text):
            modes.append(scheduler.last_mode)

        scheduler.start(catalog.get_script(ScenarioId.PUBLIC_TRANSPORT), on_line, lambda t: None)
        clock.advance(600)

        assert modes[:5] == [DeliveryMode.SCRIPTED] * 5
        assert all(m is DeliveryMode.FILLER for m in modes[5:])
        assert len(modes) > 6

    def test_single_line_script_goes_straight_to_filler(self, clock):
        scheduler = ConversationScheduler(clock, rng=random.Random(14))
        rec = _start(scheduler, _script("Hey, where are you?"))
        assert rec.lines == ["Hey, where are you?"]
        assert scheduler.mode is DeliveryMode.FILLER
        clock.advance(19.9)
        assert len(rec.lines) == 1

    def test_cursor_never_rewinds(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(15))
        _start(scheduler, catalog.get_script(ScenarioId.GENERAL))
        seen = []
        for _ in range(40):
            clock.advance(10)
            seen.append(scheduler.cursor.next_index)
        assert seen == sorted(seen)
        assert seen[-1] == 5


class TestCursor:
    def test_take_advances(self):
        cursor = ConversationCursor(script=_script("a", "b"))
        assert cursor.take() == "a"
        assert cursor.next_index == 1
        assert cursor.mode is DeliveryMode.SCRIPTED
        assert cursor.take() == "b"
        assert cursor.exhausted

    def test_take_when_exhausted(self):
        cursor = ConversationCursor(script=_script("a"), next_index=1)
        with pytest.raises(IndexError):
            cursor.take()


# ── Stopping ────────────────────────────────────────────────────

class TestStop:
    def test_no_delivery_after_stop(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(16))
        rec = _start(scheduler, catalog.get_script(ScenarioId.GENERAL))
        clock.advance(20)
        delivered = list(rec.lines)
        clears = rec.clears

        scheduler.stop()
        assert clock.pending == 0

        clock.advance(10_000)
        assert rec.lines == delivered
        assert rec.spoken == delivered
        assert rec.clears == clears
        assert not scheduler.is_running
        assert scheduler.mode is None

    def test_stop_in_filler_mode(self, clock):
        scheduler = ConversationScheduler(clock, rng=random.Random(17))
        rec = _start(scheduler, _script("Hi"))
        clock.advance(100)
        count = len(rec.lines)
        scheduler.stop()
        clock.advance(1000)
        assert len(rec.lines) == count

    def test_stop_is_idempotent(self, clock, catalog):
        scheduler = ConversationScheduler(clock)
        scheduler.stop()  # never started
        _start(scheduler, catalog.get_script(ScenarioId.GENERAL))
        scheduler.stop()
        scheduler.stop()
        assert not scheduler.is_running

    def test_start_while_running_raises(self, clock, catalog):
        scheduler = ConversationScheduler(clock)
        script = catalog.get_script(ScenarioId.GENERAL)
        _start(scheduler, script)
        with pytest.raises(RuntimeError):
            _start(scheduler, script)

    def test_restart_after_stop(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(18))
        script = catalog.get_script(ScenarioId.GENERAL)
        _start(scheduler, script)
        clock.advance(40)
        scheduler.stop()

        rec = _start(scheduler, script)
        assert rec.lines == [script.lines[0]]
        assert scheduler.cursor.next_index == 1
        assert scheduler.lines_delivered == 1

    def test_callback_can_stop_scheduler(self, clock, catalog):
        scheduler = ConversationScheduler(clock)
        lines = []

        def on_line(text):
            lines.append(text)
            scheduler.stop()

        scheduler.start(catalog.get_script(ScenarioId.GENERAL), on_line, lambda t: None)
        assert clock.pending == 0
        clock.advance(100)
        assert len(lines) == 1


# ── Failure isolation ───────────────────────────────────────────

class TestCallbackFailures:
    def test_speech_failure_does_not_break_schedule(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(19))
        lines = []

        def speak(text):
            raise RuntimeError("synthesizer crashed")

        scheduler.start(catalog.get_script(ScenarioId.GENERAL), lines.append, speak)
        clock.advance(100)
        assert scheduler.is_running
        assert lines[:5] == list(catalog.get_script(ScenarioId.GENERAL).lines)

    def test_display_failure_still_speaks(self, clock, catalog):
        scheduler = ConversationScheduler(clock, rng=random.Random(20))
        spoken = []

        def on_line(text):
            raise RuntimeError("view gone")

        scheduler.start(catalog.get_script(ScenarioId.GENERAL), on_line, spoken.append)
        clock.advance(100)
        assert spoken[:5] == list(catalog.get_script(ScenarioId.GENERAL).lines)

    def test_clear_failure_is_swallowed(self, clock):
        scheduler = ConversationScheduler(clock, rng=random.Random(21))

        def on_clear():
            raise RuntimeError("clear failed")

        lines = []
        scheduler.start(_script("a", "b"), lines.append, lambda t: None, on_clear)
        clock.advance(60)
        assert lines[:2] == ["a", "b"]


# ── Caption clearing ────────────────────────────────────────────

class TestCaptionClearing:
    def test_estimate_grows_with_length(self):
        assert estimate_display_seconds("") == 2.0
        assert estimate_display_seconds("x" * 10) == pytest.approx(3.0)
        short = estimate_display_seconds("Hi")
        long = estimate_display_seconds("I'm still here with you, keep walking.")
        assert long > short

    def test_line_cleared_after_display_time(self, clock):
        scheduler = ConversationScheduler(
            clock, rng=random.Random(22), filler_delay=(100.0, 100.0),
        )
        rec = _start(scheduler, _script("x" * 10))  # 3.0s on screen
        clock.advance(2.9)
        assert rec.clears == 0
        clock.advance(0.2)
        assert rec.clears == 1

    def test_stale_clear_never_erases_newer_line(self, clock):
        """Lines arrive faster than captions expire: only the last one clears."""
        scheduler = ConversationScheduler(
            clock,
            rng=random.Random(23),
            scripted_delay=(1.0, 1.0),
            filler_delay=(100.0, 100.0),
            display_seconds_per_char=0.0,
            display_floor_seconds=5.0,
        )
        rec = _start(scheduler, _script("a", "b", "c", "d", "e"))

        clock.advance(8.9)  # "e" shown at t=4, clears at t=9
        assert rec.lines == ["a", "b", "c", "d", "e"]
        assert rec.clears == 0

        clock.advance(0.2)
        assert rec.clears == 1

    def test_clear_keyed_to_sequence(self, clock):
        scheduler = ConversationScheduler(clock, rng=random.Random(24))
        rec = _start(scheduler, _script("a", "b"))
        clock.advance(15)  # "b" delivered
        assert rec.lines == ["a", "b"]
        clears = rec.clears
        scheduler._clear_line(1)  # a late timer for "a"
        assert rec.clears == clears
