"""DisplaySink ABC: where the current conversation line is shown."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

log = logging.getLogger("callsim.display")


class DisplaySink(ABC):
    @abstractmethod
    def show_line(self, text: str) -> None:
        """Replace whatever caption is on screen with ``text``."""

    @abstractmethod
    def clear_line(self) -> None:
        """Remove the caption.  A no-op when nothing is shown."""


class LoggingDisplaySink(DisplaySink):
    """Keeps the current caption in memory and logs changes at debug level."""

    def __init__(self) -> None:
        self.current: str | None = None

    def show_line(self, text: str) -> None:
        self.current = text
        log.debug("caption: %s", text)

    def clear_line(self) -> None:
        if self.current is not None:
            log.debug("caption cleared")
        self.current = None
