"""RecordingService ABC: dual-camera evidence capture.

Both camera feeds (front and back) plus the microphone are captured for
the whole call.  Which feed the call screen shows, and whether the
preview is visible at all, is presentation state owned by the session
controller and never reaches this interface: hiding the camera does not
pause capture.
"""

from __future__ import annotations

import json
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Callable

from callsim.errors import RecordingFailure

log = logging.getLogger("callsim.recording")


@dataclass
class RecordingResult:
    """Where a finished dual-camera recording was persisted."""

    front_path: str
    back_path: str
    started_at: float
    stopped_at: float

    @property
    def duration(self) -> float:
        return max(0.0, self.stopped_at - self.started_at)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["duration"] = round(self.duration, 3)
        return d


class RecordingService(ABC):
    """Abstract dual-camera recorder.  Only the session controller drives it."""

    @property
    @abstractmethod
    def is_recording(self) -> bool:
        """True between start_recording() and stop_recording()."""

    @abstractmethod
    def start_recording(self) -> None:
        """Begin capturing both cameras and the microphone.

        Raises ``RecordingFailure`` if capture cannot start.
        """

    @abstractmethod
    def stop_recording(self) -> RecordingResult:
        """Finish both files and return their locations.

        Raises ``RecordingFailure`` if nothing is recording or the files
        cannot be finalized.
        """


class ManifestRecordingService(RecordingService):
    """Allocates the dual-camera output files and writes a JSON manifest.

    The platform capture pipeline writes media into ``front_<ts>.mp4`` and
    ``back_<ts>.mp4``; this service owns naming, lifecycle and the
    ``recording_<ts>.json`` manifest that ties the two files to a call.
    """

    def __init__(
        self,
        directory: str | Path,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        self._directory = Path(directory)
        self._time = time_fn
        self._recording = False
        self._started_at = 0.0
        self._front: Path | None = None
        self._back: Path | None = None

    @property
    def directory(self) -> Path:
        return self._directory

    @property
    def is_recording(self) -> bool:
        return self._recording

    def start_recording(self) -> None:
        if self._recording:
            log.warning("start_recording called while already recording")
            return

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise RecordingFailure(f"Cannot create {self._directory}: {e}") from e

        self._started_at = self._time()
        stamp = self._stamp(self._started_at)
        self._front = self._directory / f"front_{stamp}.mp4"
        self._back = self._directory / f"back_{stamp}.mp4"
        self._recording = True
        log.info("Recording started: %s, %s", self._front.name, self._back.name)

    def stop_recording(self) -> RecordingResult:
        if not self._recording:
            raise RecordingFailure("stop_recording called with no recording in progress")

        self._recording = False
        result = RecordingResult(
            front_path=str(self._front),
            back_path=str(self._back),
            started_at=self._started_at,
            stopped_at=self._time(),
        )

        manifest = self._directory / f"recording_{self._stamp(self._started_at)}.json"
        try:
            manifest.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            raise RecordingFailure(f"Cannot write manifest {manifest}: {e}") from e

        log.info("Recording stopped after %.1fs, manifest %s", result.duration, manifest.name)
        return result

    @staticmethod
    def _stamp(ts: float) -> str:
        return str(int(ts * 1000))
