"""Data models for the call engine."""

from .call import CallSession, CallState
from .voice import VoicePersona

__all__ = ["CallSession", "CallState", "VoicePersona"]
