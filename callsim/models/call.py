"""Pydantic model tracking one simulated call from connect to end."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel

from callsim.models.voice import VoicePersona
from callsim.scenarios.schema import ScenarioId


class CallState(str, Enum):
    CONNECTING = "connecting"
    ACTIVE = "active"
    ENDED = "ended"


class CallSession(BaseModel):
    """Mutable state for a single simulated call.

    Owned and written only by the CallSessionController.  Everything the
    presentation layer sees is a copy of this model, delivered through
    session events or ``CallSessionController.session``.
    """

    scenario: ScenarioId
    persona: VoicePersona = VoicePersona.MAYA
    state: CallState = CallState.CONNECTING

    # Wall-clock time (epoch seconds) when the call became active
    started_at: Optional[float] = None
    duration_seconds: int = 0

    # Presentation toggles
    is_muted: bool = False
    is_speaker_on: bool = False
    is_camera_on: bool = True
    is_front_camera_primary: bool = True

    # Degraded modes when permissions are missing
    camera_available: bool = True
    microphone_available: bool = True

    # Evidence capture; independent of is_camera_on
    is_recording: bool = False
    recording: Optional[dict[str, Any]] = None

    # Conversation caption
    current_line: Optional[str] = None
    lines_delivered: int = 0

    end_reason: Optional[str] = None

    @property
    def formatted_duration(self) -> str:
        """Call timer as shown on the call screen, e.g. ``02:07``."""
        minutes, seconds = divmod(self.duration_seconds, 60)
        return f"{minutes:02d}:{seconds:02d}"
