"""Shared fakes and fixtures for call engine tests."""

import os
import random
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from callsim.clock import ManualClock
from callsim.conversation import ConversationScheduler
from callsim.errors import RecordingFailure, SpeechFailure
from callsim.models.voice import VoicePersona
from callsim.scenarios.catalog import default_catalog
from callsim.services.display import DisplaySink
from callsim.services.recording import RecordingResult, RecordingService
from callsim.services.speech import SpeechOutput
from callsim.session import CallSessionController


# ---------------------------------------------------------------------------
# Collaborator fakes
# ---------------------------------------------------------------------------

class FakeSpeech(SpeechOutput):
    def __init__(self, fail: bool = False):
        self.spoken: list[tuple[str, VoicePersona]] = []
        self.stop_calls = 0
        self.fail = fail

    def speak(self, text, persona):
        if self.fail:
            raise SpeechFailure("synthesizer unavailable")
        self.spoken.append((text, persona))

    def stop(self):
        self.stop_calls += 1

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.spoken]


class FakeRecorder(RecordingService):
    def __init__(self, fail_on_start: bool = False, fail_on_stop: bool = False):
        self.start_calls = 0
        self.stop_calls = 0
        self.fail_on_start = fail_on_start
        self.fail_on_stop = fail_on_stop
        self._recording = False

    @property
    def is_recording(self):
        return self._recording

    def start_recording(self):
        self.start_calls += 1
        if self.fail_on_start:
            raise RecordingFailure("capture session could not start")
        self._recording = True

    def stop_recording(self):
        self.stop_calls += 1
        self._recording = False
        if self.fail_on_stop:
            raise RecordingFailure("writer failed to finish")
        return RecordingResult(
            front_path="/tmp/front_1.mp4",
            back_path="/tmp/back_1.mp4",
            started_at=0.0,
            stopped_at=10.0,
        )


class FakeDisplay(DisplaySink):
    def __init__(self):
        self.shown: list[str] = []
        self.clears = 0
        self.current = None

    def show_line(self, text):
        self.shown.append(text)
        self.current = text

    def clear_line(self):
        self.clears += 1
        self.current = None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def display():
    return FakeDisplay()


@pytest.fixture
def catalog():
    return default_catalog()


@pytest.fixture
def make_controller(clock, speech, recorder, display, catalog):
    """Build a controller on the manual clock with production timings."""

    def _make(**overrides):
        kwargs = {
            "catalog": catalog,
            "display": display,
            "scheduler": ConversationScheduler(clock, rng=random.Random(7)),
            "connect_delay": 2.0,
            "dismiss_delay": 1.5,
            "tick_interval": 1.0,
            "max_call_seconds": 0,
        }
        kwargs.update(overrides)
        return CallSessionController(clock, speech, recorder, **kwargs)

    return _make
