"""Companion voice personas used for speech synthesis."""

from __future__ import annotations

from enum import Enum


class VoicePersona(str, Enum):
    MAYA = "maya"
    FRIEND = "friend"
    FAMILY = "family"
    PROFESSIONAL = "professional"

    @property
    def display_name(self) -> str:
        return _PROFILES[self]["display_name"]

    @property
    def description(self) -> str:
        return _PROFILES[self]["description"]

    @property
    def language(self) -> str:
        """BCP-47 language tag the synthesizer should pick a voice for."""
        return _PROFILES[self]["language"]

    @property
    def speech_rate(self) -> float:
        return _PROFILES[self]["speech_rate"]

    @property
    def pitch_multiplier(self) -> float:
        return _PROFILES[self]["pitch_multiplier"]

    def to_dict(self) -> dict:
        return {"id": self.value, **_PROFILES[self]}


# Synthesizer volume shared by every persona
DEFAULT_VOLUME = 0.8

_PROFILES: dict[VoicePersona, dict] = {
    VoicePersona.MAYA: {
        "display_name": "Maya",
        "description": "Warm, supportive AI companion",
        "language": "en-US",
        "speech_rate": 0.5,
        "pitch_multiplier": 1.1,
    },
    VoicePersona.FRIEND: {
        "display_name": "Friend",
        "description": "Casual, friendly conversation partner",
        "language": "en-GB",
        "speech_rate": 0.52,
        "pitch_multiplier": 1.0,
    },
    VoicePersona.FAMILY: {
        "display_name": "Family",
        "description": "Caring, familiar voice",
        "language": "en-AU",
        "speech_rate": 0.48,
        "pitch_multiplier": 0.9,
    },
    VoicePersona.PROFESSIONAL: {
        "display_name": "Professional",
        "description": "Clear, professional tone",
        "language": "en-US",
        "speech_rate": 0.5,
        "pitch_multiplier": 0.95,
    },
}
