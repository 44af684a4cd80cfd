"""SpeechOutput ABC: the text-to-speech collaborator.

The call engine treats speech as fire-and-forget: ``speak()`` returns
immediately and nothing in the call lifecycle waits for an utterance to
finish.  Platform engines (a device synthesizer, a cloud TTS stream)
implement this interface outside the engine.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from callsim.models.voice import DEFAULT_VOLUME, VoicePersona

log = logging.getLogger("callsim.speech")


class SpeechOutput(ABC):
    """Abstract speech synthesizer."""

    @abstractmethod
    def speak(self, text: str, persona: VoicePersona) -> None:
        """Queue ``text`` to be spoken in the persona's voice.

        May raise ``SpeechFailure``; callers log it and move on.
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop speaking immediately and drop anything queued.

        Safe to call when nothing is being spoken.
        """


class LoggingSpeechOutput(SpeechOutput):
    """Speech output for headless runs: logs each utterance with its voice settings."""

    def __init__(self) -> None:
        self._speaking = False
        self._utterances = 0

    @property
    def is_speaking(self) -> bool:
        return self._speaking

    @property
    def utterance_count(self) -> int:
        return self._utterances

    def speak(self, text: str, persona: VoicePersona) -> None:
        if not text:
            return
        self._speaking = True
        self._utterances += 1
        log.info(
            "speak [%s %s rate=%.2f pitch=%.2f vol=%.1f]: %s",
            persona.display_name, persona.language, persona.speech_rate,
            persona.pitch_multiplier, DEFAULT_VOLUME, text,
        )

    def stop(self) -> None:
        if self._speaking:
            log.info("Speech stopped")
        self._speaking = False
