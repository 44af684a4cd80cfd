"""Exception types raised by the call engine.

Only ``ScenarioConfigError`` is meant to be fatal, and only while loading
or looking up scenario scripts.  Everything that happens during a live
call (speech, recording, permissions) is logged and absorbed so the call
itself keeps going.
"""

from __future__ import annotations


class CallSimError(Exception):
    """Base class for all call engine errors."""


class ScenarioConfigError(CallSimError):
    """A scenario id has no script, or a script file is malformed."""


class CallStateError(CallSimError):
    """A lifecycle operation was attempted from the wrong call state."""


class PermissionUnavailable(CallSimError):
    """A device permission the caller asked for is not granted."""

    def __init__(self, kind: str, status: str) -> None:
        super().__init__(f"{kind} permission unavailable (status: {status})")
        self.kind = kind
        self.status = status


class RecordingFailure(CallSimError):
    """The recording collaborator could not start, stop or persist a capture."""


class SpeechFailure(CallSimError):
    """The speech synthesis collaborator failed to speak a line."""
