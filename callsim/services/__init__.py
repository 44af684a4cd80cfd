"""Collaborator interfaces the call engine drives: speech, recording, display, permissions."""

from .display import DisplaySink, LoggingDisplaySink
from .permissions import (
    PermissionKind,
    PermissionService,
    PermissionStatus,
    StaticPermissionService,
    ensure_granted,
)
from .recording import ManifestRecordingService, RecordingResult, RecordingService
from .speech import LoggingSpeechOutput, SpeechOutput

__all__ = [
    "DisplaySink",
    "LoggingDisplaySink",
    "LoggingSpeechOutput",
    "ManifestRecordingService",
    "PermissionKind",
    "PermissionService",
    "PermissionStatus",
    "RecordingResult",
    "RecordingService",
    "SpeechOutput",
    "StaticPermissionService",
    "ensure_granted",
]
