"""Conversation scheduler: plays a scenario script at a human pace.

Lifecycle::

    scheduler = ConversationScheduler(clock)
    scheduler.start(script, on_line=display.show_line, speak=speech_fn,
                    on_clear=display.clear_line)
    # ... clock advances, lines arrive every 8-15s, then filler every 20-30s
    scheduler.stop()

The first scripted line is delivered synchronously inside ``start()``.
After the last scripted line the scheduler switches permanently to
filler mode and keeps delivering a random reassurance phrase until
stopped.  Failures raised by any of the callbacks are logged and the
schedule carries on.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from callsim.clock import Clock, TimerHandle
from callsim.config import settings
from callsim.scenarios.schema import CallScript

log = logging.getLogger("callsim.conversation")

FILLER_LINES: tuple[str, ...] = (
    "Are you doing okay?",
    "I'm still here with you.",
    "How much further do you have to go?",
    "Let me know if you need anything.",
    "I'll stay on the line.",
)


def estimate_display_seconds(
    text: str,
    per_char: float = 0.1,
    floor: float = 2.0,
) -> float:
    """How long a caption stays on screen: grows with the line's length."""
    return len(text) * per_char + floor


class DeliveryMode(str, Enum):
    SCRIPTED = "scripted"
    FILLER = "filler"


@dataclass
class ConversationCursor:
    """Position within a script.  Owned by exactly one scheduler."""

    script: CallScript
    next_index: int = 0

    @property
    def mode(self) -> DeliveryMode:
        if self.next_index >= len(self.script.lines):
            return DeliveryMode.FILLER
        return DeliveryMode.SCRIPTED

    @property
    def exhausted(self) -> bool:
        return self.mode is DeliveryMode.FILLER

    def take(self) -> str:
        """Return the next scripted line and move past it."""
        if self.exhausted:
            raise IndexError("script exhausted")
        line = self.script.lines[self.next_index]
        self.next_index += 1
        return line


class ConversationScheduler:
    """Delivers script lines, then filler lines, on randomized timers."""

    def __init__(
        self,
        clock: Clock,
        *,
        rng: random.Random | None = None,
        scripted_delay: tuple[float, float] | None = None,
        filler_delay: tuple[float, float] | None = None,
        filler_lines: tuple[str, ...] = FILLER_LINES,
        display_seconds_per_char: float | None = None,
        display_floor_seconds: float | None = None,
    ) -> None:
        if not filler_lines:
            raise ValueError("filler_lines cannot be empty")

        self._clock = clock
        self._rng = rng or random.Random()
        self._scripted_delay = scripted_delay or (
            settings.scripted_delay_min, settings.scripted_delay_max,
        )
        self._filler_delay = filler_delay or (
            settings.filler_delay_min, settings.filler_delay_max,
        )
        self._filler_lines = tuple(filler_lines)
        self._per_char = (
            settings.display_seconds_per_char
            if display_seconds_per_char is None else display_seconds_per_char
        )
        self._display_floor = (
            settings.display_floor_seconds
            if display_floor_seconds is None else display_floor_seconds
        )

        self._cursor: Optional[ConversationCursor] = None
        self._on_line: Optional[Callable[[str], None]] = None
        self._speak: Optional[Callable[[str], None]] = None
        self._on_clear: Optional[Callable[[], None]] = None

        self._delivery_handle: Optional[TimerHandle] = None
        self._clear_handle: Optional[TimerHandle] = None

        # Sequence number of the most recently shown line
        self._line_seq = 0
        self._delivered = 0
        self._last_mode: Optional[DeliveryMode] = None

    # ── Public API ────────────────────────────────────────────

    @property
    def is_running(self) -> bool:
        return self._cursor is not None

    @property
    def mode(self) -> DeliveryMode | None:
        """Current delivery mode, or None while idle."""
        return self._cursor.mode if self._cursor else None

    @property
    def cursor(self) -> ConversationCursor | None:
        return self._cursor

    @property
    def last_mode(self) -> DeliveryMode | None:
        """Mode of the most recently delivered line."""
        return self._last_mode

    @property
    def lines_delivered(self) -> int:
        """Scripted plus filler lines delivered since the last start()."""
        return self._delivered

    def sample_scripted_delay(self) -> float:
        return self._rng.uniform(*self._scripted_delay)

    def sample_filler_delay(self) -> float:
        return self._rng.uniform(*self._filler_delay)

    def display_seconds(self, text: str) -> float:
        return estimate_display_seconds(text, self._per_char, self._display_floor)

    def start(
        self,
        script: CallScript,
        on_line: Callable[[str], None],
        speak: Callable[[str], None],
        on_clear: Callable[[], None] | None = None,
    ) -> None:
        """Begin delivery: the first line goes out immediately."""
        if self._cursor is not None:
            raise RuntimeError("conversation already running; stop() it first")

        self._cursor = ConversationCursor(script=script)
        self._on_line = on_line
        self._speak = speak
        self._on_clear = on_clear
        self._delivered = 0
        self._last_mode = None

        log.info(
            "Conversation started: scenario=%s lines=%d",
            script.scenario.value, len(script.lines),
        )
        self._deliver_scripted()

    def stop(self) -> None:
        """Cancel every pending timer and forget the cursor.  Safe to repeat."""
        if self._delivery_handle is not None:
            self._delivery_handle.cancel()
            self._delivery_handle = None
        if self._clear_handle is not None:
            self._clear_handle.cancel()
            self._clear_handle = None

        if self._cursor is not None:
            log.info(
                "Conversation stopped after %d lines (mode=%s)",
                self._delivered, self._cursor.mode.value,
            )
        self._cursor = None
        self._on_line = None
        self._speak = None
        self._on_clear = None

    # ── Internal: ticks ───────────────────────────────────────

    def _tick(self) -> None:
        self._delivery_handle = None
        if self._cursor is None:
            return

        if self._cursor.exhausted:
            self._deliver_filler()
        else:
            self._deliver_scripted()

    def _deliver_scripted(self) -> None:
        cursor = self._cursor
        self._deliver(cursor.take(), DeliveryMode.SCRIPTED)

        # The cursor may have been dropped by a callback that stopped us
        if self._cursor is not cursor:
            return

        if cursor.exhausted:
            log.info("Script exhausted at line %d, switching to filler", cursor.next_index)
            self._schedule(self.sample_filler_delay())
        else:
            self._schedule(self.sample_scripted_delay())

    def _deliver_filler(self) -> None:
        cursor = self._cursor
        self._deliver(self._rng.choice(self._filler_lines), DeliveryMode.FILLER)
        if self._cursor is cursor:
            self._schedule(self.sample_filler_delay())

    def _schedule(self, delay: float) -> None:
        log.debug("Next line in %.1fs", delay)
        self._delivery_handle = self._clock.call_later(delay, self._tick)

    # ── Internal: delivery and caption clearing ───────────────

    def _deliver(self, text: str, mode: DeliveryMode) -> None:
        self._line_seq += 1
        self._last_mode = mode
        self._delivered += 1
        seq = self._line_seq

        on_line, speak = self._on_line, self._speak
        try:
            on_line(text)
        except Exception as e:
            log.warning("Display failed for line %d: %s", seq, e)
        try:
            speak(text)
        except Exception as e:
            log.warning("Speech failed for line %d: %s", seq, e)

        if self._cursor is None:
            return

        # A newer line supersedes the previous caption's clear timer
        if self._clear_handle is not None:
            self._clear_handle.cancel()
        self._clear_handle = self._clock.call_later(
            self.display_seconds(text), lambda: self._clear_line(seq),
        )

    def _clear_line(self, seq: int) -> None:
        if seq != self._line_seq or self._cursor is None:
            return  # stale
        self._clear_handle = None
        if self._on_clear is None:
            return
        try:
            self._on_clear()
        except Exception as e:
            log.warning("Clearing line %d failed: %s", seq, e)
