"""Application configuration via environment variables."""

from __future__ import annotations

import logging

from pydantic_settings import BaseSettings

log = logging.getLogger("callsim.config")


class Settings(BaseSettings):
    # Conversation cadence (seconds)
    scripted_delay_min: float = 8.0
    scripted_delay_max: float = 15.0
    filler_delay_min: float = 20.0
    filler_delay_max: float = 30.0

    # Caption display estimate: len(text) * per_char + floor
    display_seconds_per_char: float = 0.1
    display_floor_seconds: float = 2.0

    # Call lifecycle (seconds)
    connect_delay_seconds: float = 2.0
    dismiss_delay_seconds: float = 1.5
    duration_tick_seconds: float = 1.0
    max_call_duration_seconds: int = 3600  # 0 disables the cap

    # Defaults for new calls
    default_scenario: str = "walking_safety"
    default_voice: str = "maya"

    # Evidence capture
    recordings_dir: str = "recordings"

    # Admin auth
    admin_api_key: str = ""

    # Server
    host: str = "127.0.0.1"
    port: int = 8080
    debug: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def validate_startup(self) -> list[str]:
        """Validate configuration at startup. Returns warnings, raises on errors."""
        from callsim.models.voice import VoicePersona
        from callsim.scenarios.schema import ScenarioId

        warnings: list[str] = []

        ranges = {
            "SCRIPTED_DELAY": (self.scripted_delay_min, self.scripted_delay_max),
            "FILLER_DELAY": (self.filler_delay_min, self.filler_delay_max),
        }
        for name, (low, high) in ranges.items():
            if low <= 0 or high < low:
                raise ValueError(
                    f"{name}_MIN/{name}_MAX must satisfy 0 < min <= max "
                    f"(got {low}..{high})."
                )

        for name in ("connect_delay_seconds", "dismiss_delay_seconds"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name.upper()} cannot be negative.")
        if self.duration_tick_seconds <= 0:
            raise ValueError("DURATION_TICK_SECONDS must be positive.")

        if self.default_scenario not in {s.value for s in ScenarioId}:
            raise ValueError(f"DEFAULT_SCENARIO '{self.default_scenario}' is not a known scenario.")
        if self.default_voice not in {v.value for v in VoicePersona}:
            raise ValueError(f"DEFAULT_VOICE '{self.default_voice}' is not a known voice persona.")

        if self.max_call_duration_seconds <= 0:
            warnings.append("MAX_CALL_DURATION_SECONDS is 0; calls never end on their own.")

        # Admin API key: warn if unset
        if not self.admin_api_key:
            if self.debug:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are open (DEBUG=true)."
                )
            else:
                warnings.append(
                    "ADMIN_API_KEY not set. Admin APIs are locked in production. "
                    "Set ADMIN_API_KEY in .env to enable admin access."
                )

        return warnings


settings = Settings()

# Runtime-mutable settings (admin API can change these)
runtime_settings = {
    "default_scenario": settings.default_scenario,
    "default_voice": settings.default_voice,
    # Set false to run speech-only calls even when capture permissions exist
    "recording_enabled": True,
}
