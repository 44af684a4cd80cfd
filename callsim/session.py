"""Per-call session controller: drives one simulated call through its lifecycle.

Each call gets a CallSessionController that:
  1. Holds the CallSession (state, toggles, duration, caption)
  2. Moves the call connecting → active → ended on clock timers
  3. Starts the ConversationScheduler and feeds its lines to the display
     and the speech output
  4. Starts and stops dual-camera recording in lockstep with the call
  5. Publishes every change to an attached SessionEventBroadcaster

Recording starts before the call shows as active and keeps running until
the call ends, whatever the camera toggle says: hiding the preview or
swapping the primary camera only changes what the screen shows.  Users
must be told about this wherever they grant camera and microphone access.

Side-effect failures (speech, recording, display) are logged and never
stop the call: it always reaches ``active``.
"""

from __future__ import annotations

import logging
import secrets
import time
from typing import Any, Callable, Optional

from callsim.clock import Clock, TimerHandle
from callsim.config import settings
from callsim.conversation import ConversationScheduler
from callsim.errors import CallStateError, PermissionUnavailable
from callsim.events import SessionEventBroadcaster
from callsim.models.call import CallSession, CallState
from callsim.models.voice import VoicePersona
from callsim.scenarios.catalog import ScenarioCatalog, default_catalog
from callsim.scenarios.schema import ScenarioId
from callsim.services.display import DisplaySink, LoggingDisplaySink
from callsim.services.permissions import PermissionKind, PermissionService, ensure_granted
from callsim.services.recording import RecordingService
from callsim.services.speech import SpeechOutput

log = logging.getLogger("callsim.session")


# ── Session registry ─────────────────────────────────────────────

_active_sessions: dict[str, "CallSessionController"] = {}


def register_session(controller: "CallSessionController") -> str:
    """Register a controller and return its unique ID."""
    session_id = secrets.token_urlsafe(18)
    controller._session_id = session_id
    _active_sessions[session_id] = controller
    log.info("Session registered: %s", session_id)
    return session_id


def unregister_session(session_id: str) -> None:
    """Remove a controller from the registry."""
    if _active_sessions.pop(session_id, None) is not None:
        log.info("Session unregistered: %s", session_id)


def get_active_sessions() -> dict[str, "CallSessionController"]:
    return _active_sessions


def get_session(session_id: str) -> "CallSessionController | None":
    return _active_sessions.get(session_id)


class CallSessionController:
    """One simulated call.

    Typical lifecycle::

        controller = CallSessionController(clock, speech, recorder)
        controller.start_call(ScenarioId.WALKING_SAFETY)   # connecting
        # ... 2s later the clock flips it to active, duration ticks begin
        controller.toggle_camera()                         # preview off, still recording
        controller.end_call()                              # ended, dismissed 1.5s later

    A controller runs exactly one call; create a new one for the next call.
    """

    def __init__(
        self,
        clock: Clock,
        speech: SpeechOutput,
        recorder: RecordingService,
        *,
        catalog: ScenarioCatalog | None = None,
        display: DisplaySink | None = None,
        permissions: PermissionService | None = None,
        scheduler: ConversationScheduler | None = None,
        persona: VoicePersona | str | None = None,
        connect_delay: float | None = None,
        dismiss_delay: float | None = None,
        tick_interval: float | None = None,
        max_call_seconds: int | None = None,
        recording_enabled: bool = True,
        on_dismiss: Callable[["CallSessionController"], None] | None = None,
        time_fn: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._speech = speech
        self._recorder = recorder
        self._catalog = catalog or default_catalog()
        self._display = display or LoggingDisplaySink()
        self._permissions = permissions
        self._scheduler = scheduler or ConversationScheduler(clock)
        self._persona = VoicePersona(persona or settings.default_voice)

        self._connect_delay = (
            settings.connect_delay_seconds if connect_delay is None else connect_delay
        )
        self._dismiss_delay = (
            settings.dismiss_delay_seconds if dismiss_delay is None else dismiss_delay
        )
        self._tick_interval = tick_interval or settings.duration_tick_seconds
        self._max_call_seconds = (
            settings.max_call_duration_seconds if max_call_seconds is None else max_call_seconds
        )
        self._recording_enabled = recording_enabled
        self._on_dismiss = on_dismiss
        self._time = time_fn

        # Registry metadata (set by register_session)
        self._session_id: str = ""
        self._created_at: float = time_fn()

        self._session: Optional[CallSession] = None
        self._recording_started = False
        self._dismissed = False

        self._connect_handle: Optional[TimerHandle] = None
        self._tick_handle: Optional[TimerHandle] = None
        self._dismiss_handle: Optional[TimerHandle] = None

        self._broadcaster: SessionEventBroadcaster | None = None

    # ── Public API ────────────────────────────────────────────

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def session(self) -> CallSession | None:
        """A copy of the current CallSession; callers cannot mutate the live one."""
        return self._session.model_copy() if self._session else None

    @property
    def state(self) -> CallState | None:
        return self._session.state if self._session else None

    @property
    def is_done(self) -> bool:
        return self.state is CallState.ENDED

    @property
    def is_dismissed(self) -> bool:
        return self._dismissed

    @property
    def scheduler(self) -> ConversationScheduler:
        return self._scheduler

    def attach_broadcaster(self, broadcaster: SessionEventBroadcaster) -> None:
        """Attach a broadcaster for change notifications."""
        self._broadcaster = broadcaster

    def _emit_event(self, event_type: str, data: dict) -> None:
        if self._broadcaster and self._session:
            self._broadcaster.emit(event_type, self._session.state.value, data)

    def start_call(self, scenario: ScenarioId | str | None = None) -> CallSession:
        """Place the simulated call.

        Resolves the script first, so an unknown scenario raises
        ScenarioConfigError before anything starts.
        """
        if self._session is not None:
            raise CallStateError("this controller has already started a call")

        script = self._catalog.get_script(scenario or settings.default_scenario)

        self._session = CallSession(
            scenario=script.scenario,
            persona=self._persona,
            camera_available=self._has_permission(PermissionKind.CAMERA),
            microphone_available=self._has_permission(PermissionKind.MICROPHONE),
        )
        log.info(
            "Call started: session=%s scenario=%s persona=%s",
            self._session_id or "-", script.scenario.value, self._persona.value,
        )
        self._emit_event("state", {
            "from": None, "to": CallState.CONNECTING.value,
            "scenario": script.scenario.value,
        })

        # Capture begins before the call shows as active
        self._start_recording()

        self._scheduler.start(
            script,
            on_line=self._show_line,
            speak=self._speak_line,
            on_clear=self._clear_line,
        )

        if self._connect_delay <= 0:
            self._connect()
        elif self.state is CallState.CONNECTING:
            self._connect_handle = self._clock.call_later(self._connect_delay, self._connect)

        return self.session

    def decline(self) -> CallSession:
        """Hang up before the call connects.  Only valid while connecting."""
        session = self._require_session()
        if session.state is not CallState.CONNECTING:
            raise CallStateError(f"cannot decline a call that is {session.state.value}")
        self._finish("declined")
        return self.session

    def end_call(self, reason: str = "user") -> CallSession:
        """End the call from any state.  Ending an ended call does nothing."""
        session = self._require_session()
        if session.state is not CallState.ENDED:
            self._finish(reason)
        return self.session

    def dismiss(self) -> None:
        """The call screen went away: end the call if needed and tear down now."""
        if self._session is not None and self._session.state is not CallState.ENDED:
            self._finish("dismissed")
        self._teardown()

    def toggle_mute(self) -> bool:
        return self._toggle("is_muted")

    def toggle_speaker(self) -> bool:
        return self._toggle("is_speaker_on")

    def toggle_camera(self) -> bool:
        """Show or hide the camera preview.  Recording is not affected."""
        return self._toggle("is_camera_on")

    def switch_camera(self) -> bool:
        """Swap which feed is primary on screen.  Returns True if the front camera is primary.

        Both feeds keep recording either way.
        """
        return self._toggle("is_front_camera_primary")

    def to_dict(self, detail: bool = False) -> dict[str, Any]:
        """Serialize session state for the API.

        With detail=False: summary suitable for listing.
        With detail=True: adds conversation progress and event history.
        """
        d: dict[str, Any] = {
            "session_id": self._session_id,
            "created_at": self._created_at,
            "dismissed": self._dismissed,
        }
        if self._session:
            d.update(self._session.model_dump(mode="json"))
            d["formatted_duration"] = self._session.formatted_duration
        if detail:
            cursor = self._scheduler.cursor
            d["conversation"] = {
                "running": self._scheduler.is_running,
                "mode": self._scheduler.mode.value if self._scheduler.mode else None,
                "next_index": cursor.next_index if cursor else None,
                "script_length": len(cursor.script.lines) if cursor else None,
                "lines_delivered": self._scheduler.lines_delivered,
            }
            if self._broadcaster:
                d["events"] = self._broadcaster.history
        return d

    # ── Internal: lifecycle ──────────────────────────────────

    def _require_session(self) -> CallSession:
        if self._session is None:
            raise CallStateError("no call has been started")
        return self._session

    def _connect(self) -> None:
        self._connect_handle = None
        session = self._session
        if session is None or session.state is not CallState.CONNECTING:
            return

        session.state = CallState.ACTIVE
        session.started_at = self._time()
        log.info("Call active: session=%s", self._session_id or "-")
        self._emit_event("state", {
            "from": CallState.CONNECTING.value, "to": CallState.ACTIVE.value,
        })
        self._tick_handle = self._clock.call_later(self._tick_interval, self._tick)

    def _tick(self) -> None:
        self._tick_handle = None
        session = self._session
        if session is None or session.state is not CallState.ACTIVE:
            return

        session.duration_seconds += 1
        self._emit_event("tick", {
            "duration_seconds": session.duration_seconds,
            "formatted": session.formatted_duration,
        })

        if self._max_call_seconds and session.duration_seconds >= self._max_call_seconds:
            log.info("Call reached max duration (%ds)", self._max_call_seconds)
            self._finish("max_duration")
            return

        self._tick_handle = self._clock.call_later(self._tick_interval, self._tick)

    def _finish(self, reason: str) -> None:
        session = self._session
        previous = session.state

        session.state = CallState.ENDED
        session.end_reason = reason

        for handle in (self._connect_handle, self._tick_handle):
            if handle is not None:
                handle.cancel()
        self._connect_handle = None
        self._tick_handle = None

        self._scheduler.stop()
        try:
            self._speech.stop()
        except Exception as e:
            log.warning("Speech stop failed: %s", e)

        self._stop_recording()

        session.current_line = None
        try:
            self._display.clear_line()
        except Exception as e:
            log.warning("Display clear failed: %s", e)

        log.info(
            "Call ended: session=%s reason=%s duration=%s",
            self._session_id or "-", reason, session.formatted_duration,
        )
        self._emit_event("state", {
            "from": previous.value, "to": CallState.ENDED.value,
            "reason": reason, "duration_seconds": session.duration_seconds,
        })

        # Leave the "ended" screen up briefly before teardown
        if self._dismiss_delay <= 0:
            self._teardown()
        else:
            self._dismiss_handle = self._clock.call_later(self._dismiss_delay, self._teardown)

    def _teardown(self) -> None:
        if self._dismissed:
            return
        if self._dismiss_handle is not None:
            self._dismiss_handle.cancel()
            self._dismiss_handle = None
        self._dismissed = True
        self._emit_event("dismissed", {})
        log.info("Session dismissed: %s", self._session_id or "-")

        if self._on_dismiss:
            try:
                self._on_dismiss(self)
            except Exception as e:
                log.error("on_dismiss hook failed: %s", e)

    # ── Internal: recording ──────────────────────────────────

    def _has_permission(self, kind: PermissionKind) -> bool:
        if self._permissions is None:
            return True
        try:
            ensure_granted(self._permissions, kind)
        except PermissionUnavailable as e:
            log.warning("%s; continuing without it", e)
            return False
        except Exception as e:
            log.warning("Could not read %s permission: %s", kind.value, e)
            return False
        return True

    def _start_recording(self) -> None:
        session = self._session
        if not self._recording_enabled:
            log.info("Recording disabled; speech-only call")
            return
        if not (session.camera_available or session.microphone_available):
            log.warning("Recording skipped: no camera or microphone permission")
            return

        try:
            self._recorder.start_recording()
        except Exception as e:
            log.error("Recording failed to start: %s", e)
            self._emit_event("error", {"source": "recording", "error": str(e)})
            return

        self._recording_started = True
        session.is_recording = True
        self._emit_event("recording", {"recording": True})

    def _stop_recording(self) -> None:
        if not self._recording_started:
            return
        self._recording_started = False
        session = self._session

        try:
            result = self._recorder.stop_recording()
        except Exception as e:
            log.error("Recording failed to stop cleanly: %s", e)
            self._emit_event("error", {"source": "recording", "error": str(e)})
        else:
            session.recording = result.to_dict()
            self._emit_event("recording", {"recording": False, **session.recording})
        session.is_recording = False

    # ── Internal: conversation callbacks ─────────────────────

    def _show_line(self, text: str) -> None:
        session = self._session
        session.current_line = text
        session.lines_delivered += 1
        mode = self._scheduler.last_mode
        self._emit_event("line", {
            "text": text,
            "index": session.lines_delivered,
            "mode": mode.value if mode else None,
        })
        self._display.show_line(text)

    def _speak_line(self, text: str) -> None:
        self._speech.speak(text, self._session.persona)

    def _clear_line(self) -> None:
        self._session.current_line = None
        self._emit_event("line_cleared", {})
        self._display.clear_line()

    def _toggle(self, field: str) -> bool:
        session = self._require_session()
        if session.state is CallState.ENDED:
            raise CallStateError("call has ended")
        value = not getattr(session, field)
        setattr(session, field, value)
        log.debug("Toggle %s -> %s", field, value)
        self._emit_event("toggle", {"field": field, "value": value})
        return value
