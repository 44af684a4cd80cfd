"""FastAPI application: HTTP + WebSocket control surface for simulated calls.

Endpoints:

  GET  /health                              Health check
  GET  /api/scenarios                       Scenario list
  GET  /api/scenarios/{scenario_id}         One scenario's script
  GET  /api/personas                        Companion voices
  GET  /api/permissions                     Device permission statuses
  POST /api/permissions/{kind}/request      Ask for a permission
  POST /api/calls                           Start a call
  GET  /api/calls                           Active calls
  GET  /api/calls/{session_id}              One call in detail
  POST /api/calls/{session_id}/decline      Hang up while connecting
  POST /api/calls/{session_id}/end          End the call
  POST /api/calls/{session_id}/mute         Toggle mute
  POST /api/calls/{session_id}/speaker      Toggle speaker
  POST /api/calls/{session_id}/camera       Toggle camera preview
  POST /api/calls/{session_id}/switch-camera  Swap primary camera
  WS   /api/calls/{session_id}/events       Live session events
  GET  /api/config, POST /api/config        Runtime defaults (admin)

The call flow:
  1. Client optionally requests camera/microphone via /api/permissions
  2. POST /api/calls → session in "connecting", first line already spoken
  3. Client subscribes to /api/calls/{id}/events for captions and state
  4. Two seconds later the call is "active" and the timer starts
  5. POST /api/calls/{id}/end → "ended", session torn down 1.5s later
"""

from __future__ import annotations

from dotenv import load_dotenv
load_dotenv()

import logging
import time
from typing import Optional

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)-20s %(levelname)-7s %(message)s",
)

from fastapi import Depends, FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from callsim.auth import require_admin_token
from callsim.clock import LoopClock
from callsim.config import runtime_settings, settings
from callsim.errors import CallStateError, ScenarioConfigError
from callsim.events import EventType, broadcaster_for, discard_broadcaster
from callsim.models.voice import VoicePersona
from callsim.scenarios.catalog import ScenarioCatalog, default_catalog
from callsim.scenarios.schema import ScenarioId
from callsim.services.display import LoggingDisplaySink
from callsim.services.permissions import (
    PermissionKind,
    PermissionService,
    StaticPermissionService,
)
from callsim.services.recording import ManifestRecordingService
from callsim.services.speech import LoggingSpeechOutput
from callsim.session import (
    CallSessionController,
    get_active_sessions,
    get_session,
    register_session,
    unregister_session,
)

log = logging.getLogger("callsim.app")

_START_TIME = time.time()


class StartCallRequest(BaseModel):
    scenario: Optional[ScenarioId] = None
    persona: Optional[VoicePersona] = None


def create_app(
    permissions: PermissionService | None = None,
    catalog: ScenarioCatalog | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    for warning in settings.validate_startup():
        log.warning(warning)

    app = FastAPI(
        title="Call Simulator",
        description="Simulated safety calls with scripted speech and dual-camera recording",
        version="0.1.0",
    )
    app.state.permissions = permissions or StaticPermissionService()
    app.state.catalog = catalog or default_catalog()

    @app.exception_handler(CallStateError)
    async def call_state_error(request: Request, exc: CallStateError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=409)

    # ── Health check ───────────────────────────────────────────

    @app.get("/health")
    async def health() -> JSONResponse:
        uptime = round(time.time() - _START_TIME, 1)
        return JSONResponse({
            "status": "ok",
            "uptime": uptime,
            "active_calls": len(get_active_sessions()),
        })

    # ── Scenarios & personas ───────────────────────────────────

    @app.get("/api/scenarios")
    async def list_scenarios():
        return JSONResponse({
            "scenarios": [
                {
                    "id": script.scenario.value,
                    "title": script.title,
                    "line_count": len(script.lines),
                }
                for script in app.state.catalog
            ],
        })

    @app.get("/api/scenarios/{scenario_id}")
    async def get_scenario(scenario_id: str):
        try:
            script = app.state.catalog.get_script(scenario_id)
        except ScenarioConfigError:
            return JSONResponse({"error": "Scenario not found"}, status_code=404)
        return JSONResponse(script.model_dump(mode="json"))

    @app.get("/api/personas")
    async def list_personas():
        return JSONResponse({"personas": [p.to_dict() for p in VoicePersona]})

    # ── Permissions ────────────────────────────────────────────

    @app.get("/api/permissions")
    async def get_permissions():
        return JSONResponse(app.state.permissions.snapshot())

    @app.post("/api/permissions/{kind}/request")
    async def request_permission(kind: PermissionKind):
        result = await app.state.permissions.request(kind)
        return JSONResponse({"kind": kind.value, "status": result.value})

    # ── Calls ──────────────────────────────────────────────────

    @app.post("/api/calls")
    async def start_call(body: StartCallRequest):
        scenario = body.scenario or runtime_settings["default_scenario"]
        persona = body.persona or runtime_settings["default_voice"]

        controller = _create_controller(app, persona)
        sid = register_session(controller)
        controller.attach_broadcaster(broadcaster_for(sid))

        try:
            controller.start_call(scenario)
        except ScenarioConfigError as e:
            log.error("Cannot start call: %s", e)
            discard_broadcaster(sid)
            unregister_session(sid)
            return JSONResponse({"error": str(e)}, status_code=500)

        return JSONResponse(controller.to_dict(), status_code=201)

    @app.get("/api/calls")
    async def list_calls():
        sessions = get_active_sessions()
        return JSONResponse({
            "calls": [c.to_dict() for c in sessions.values()],
            "count": len(sessions),
        })

    @app.get("/api/calls/{session_id}")
    async def get_call(session_id: str):
        controller = get_session(session_id)
        if not controller:
            return JSONResponse({"error": "Call not found"}, status_code=404)
        return JSONResponse(controller.to_dict(detail=True))

    @app.post("/api/calls/{session_id}/decline")
    async def decline_call(session_id: str):
        controller = get_session(session_id)
        if not controller:
            return JSONResponse({"error": "Call not found"}, status_code=404)
        controller.decline()
        return JSONResponse(controller.to_dict())

    @app.post("/api/calls/{session_id}/end")
    async def end_call(session_id: str):
        controller = get_session(session_id)
        if not controller:
            return JSONResponse({"error": "Call not found"}, status_code=404)
        controller.end_call()
        return JSONResponse(controller.to_dict())

    toggles = {
        "mute": ("is_muted", CallSessionController.toggle_mute),
        "speaker": ("is_speaker_on", CallSessionController.toggle_speaker),
        "camera": ("is_camera_on", CallSessionController.toggle_camera),
        "switch-camera": ("is_front_camera_primary", CallSessionController.switch_camera),
    }

    @app.post("/api/calls/{session_id}/{action}")
    async def toggle(session_id: str, action: str):
        if action not in toggles:
            return JSONResponse({"error": f"Unknown action: {action}"}, status_code=404)
        controller = get_session(session_id)
        if not controller:
            return JSONResponse({"error": "Call not found"}, status_code=404)
        field, method = toggles[action]
        value = method(controller)
        return JSONResponse({field: value})

    # ── Session event stream ───────────────────────────────────

    @app.websocket("/api/calls/{session_id}/events")
    async def call_events(websocket: WebSocket, session_id: str, replay: bool = False) -> None:
        """Stream session events (captions, state changes, ticks) to the client."""
        # Resolve before accept(): the call may be torn down while we yield
        broadcaster = broadcaster_for(session_id, create=False)
        if get_session(session_id) is None or broadcaster is None:
            await websocket.close(code=4004, reason="Call not found")
            return

        await websocket.accept()
        # A call dismissed meanwhile hands us its final event right away
        sub = broadcaster.subscribe(replay=replay)

        try:
            while True:
                event = await sub.next_event()
                await websocket.send_json(event)
                if event["type"] == EventType.DISMISSED.value:
                    await websocket.close()
                    break
        except WebSocketDisconnect:
            pass
        except Exception as e:
            log.warning("Event stream error for %s: %s", session_id, e)
        finally:
            broadcaster.unsubscribe(sub)

    # ── Runtime config (admin) ─────────────────────────────────

    @app.get("/api/config", dependencies=[Depends(require_admin_token)])
    async def get_config():
        return JSONResponse(runtime_settings)

    @app.post("/api/config")
    async def update_config(request: Request, caller: str = Depends(require_admin_token)):
        body = await request.json()
        if not isinstance(body, dict):
            return JSONResponse({"error": "Expected a JSON object"}, status_code=400)

        validators = {
            "default_scenario": lambda v: ScenarioId(v).value,
            "default_voice": lambda v: VoicePersona(v).value,
            "recording_enabled": _as_bool,
        }
        updates = {}
        for key, value in body.items():
            if key not in validators:
                continue
            try:
                updates[key] = validators[key](value)
            except (ValueError, TypeError):
                return JSONResponse({"error": f"Invalid value for {key}: {value!r}"}, status_code=400)

        runtime_settings.update(updates)
        log.info("Call defaults updated by %s: %s", caller, updates)
        return JSONResponse(runtime_settings)

    return app


# ── Helper functions ──────────────────────────────────────────────

def _create_controller(app: FastAPI, persona: VoicePersona | str) -> CallSessionController:
    """Create a controller wired to the running event loop and default services."""

    def _on_dismiss(controller: CallSessionController) -> None:
        discard_broadcaster(controller.session_id)
        unregister_session(controller.session_id)

    return CallSessionController(
        LoopClock(),
        LoggingSpeechOutput(),
        ManifestRecordingService(settings.recordings_dir),
        catalog=app.state.catalog,
        display=LoggingDisplaySink(),
        permissions=app.state.permissions,
        persona=persona,
        recording_enabled=bool(runtime_settings["recording_enabled"]),
        on_dismiss=_on_dismiss,
    )


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    raise TypeError("expected a boolean")


# ── Module-level app instance for uvicorn ──────────────────────

app = create_app()


if __name__ == "__main__":
    import uvicorn

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = (
        "%(asctime)s %(name)-12s %(levelname)-8s %(message)s"
    )

    uvicorn.run(
        "callsim.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_config=log_config,
    )
