"""Call events for the presentation layer.

A CallSessionController publishes every change to its CallSession
through the call's SessionEventBroadcaster.  Each client that follows
the call holds a Subscription.  A call's event stream ends with a
``dismissed`` event; once that has been published the broadcaster is
``finished``, and a late subscriber is handed the final event straight
away instead of waiting on a call that will never speak again.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Optional, TypedDict

log = logging.getLogger("callsim.events")


class EventType(str, Enum):
    STATE = "state"                # connecting / active / ended transitions
    LINE = "line"                  # caption shown and spoken
    LINE_CLEARED = "line_cleared"
    TICK = "tick"                  # call timer
    TOGGLE = "toggle"
    RECORDING = "recording"        # capture started, or stopped with its files
    ERROR = "error"                # absorbed side-effect failure
    DISMISSED = "dismissed"        # last event of every call


class SessionEvent(TypedDict):
    type: str
    timestamp: float
    session_id: str
    call_state: str
    data: dict


class Subscription:
    """A bounded queue of call events for one client.

    A client that falls behind loses its oldest events; ``dropped``
    counts how many.
    """

    def __init__(self, maxsize: int = 200) -> None:
        self.queue: asyncio.Queue[SessionEvent] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: SessionEvent) -> None:
        if self.queue.full():
            self.queue.get_nowait()
            self.dropped += 1
        self.queue.put_nowait(event)

    async def next_event(self) -> SessionEvent:
        return await self.queue.get()


class SessionEventBroadcaster:
    """Publishes one call's events to its subscriptions and keeps recent history."""

    def __init__(
        self,
        session_id: str,
        history_limit: int = 500,
        queue_size: int = 200,
    ) -> None:
        self._session_id = session_id
        self._history: deque[SessionEvent] = deque(maxlen=history_limit)
        self._queue_size = queue_size
        self._subscriptions: list[Subscription] = []
        self._final_event: Optional[SessionEvent] = None

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def finished(self) -> bool:
        """True once the call's ``dismissed`` event has been published."""
        return self._final_event is not None

    def subscribe(self, replay: bool = False) -> Subscription:
        """Follow the call.  With ``replay`` the recent history comes first."""
        sub = Subscription(self._queue_size)
        if replay:
            for event in list(self._history)[-self._queue_size:]:
                sub.offer(event)
        elif self._final_event is not None:
            sub.offer(self._final_event)
        self._subscriptions.append(sub)
        log.info("Client following call %s (%d following)",
                 self._session_id, len(self._subscriptions))
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        if sub not in self._subscriptions:
            return
        self._subscriptions.remove(sub)
        if sub.dropped:
            log.warning("Client on call %s missed %d events", self._session_id, sub.dropped)

    def emit(self, event_type: EventType | str, call_state: str, data: dict) -> SessionEvent:
        """Publish a call event.  Unknown event types raise ValueError."""
        kind = EventType(event_type)
        event: SessionEvent = {
            "type": kind.value,
            "timestamp": time.time(),
            "session_id": self._session_id,
            "call_state": call_state,
            "data": data,
        }
        self._history.append(event)
        if kind is EventType.DISMISSED:
            self._final_event = event

        for sub in self._subscriptions:
            sub.offer(event)
        return event

    @property
    def history(self) -> list[SessionEvent]:
        return list(self._history)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)


# ── Broadcasters of live calls, by session id ─────────────────────

_broadcasters: dict[str, SessionEventBroadcaster] = {}


def broadcaster_for(session_id: str, create: bool = True) -> SessionEventBroadcaster | None:
    """The broadcaster of a call, created on first use unless ``create`` is False."""
    broadcaster = _broadcasters.get(session_id)
    if broadcaster is None and create:
        broadcaster = _broadcasters[session_id] = SessionEventBroadcaster(session_id)
    return broadcaster


def discard_broadcaster(session_id: str) -> None:
    """Forget a call's broadcaster once the call is torn down."""
    if _broadcasters.pop(session_id, None) is not None:
        log.info("Event stream closed for call %s", session_id)
