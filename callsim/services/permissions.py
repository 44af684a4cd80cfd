"""PermissionService ABC: device permission status and requests.

Mirrors the platform's tri-state model (not yet asked, granted,
denied/restricted).  The call engine only ever asks "is this granted?"
to decide whether camera or microphone dependent features run; a
missing permission degrades the call, it never stops it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Mapping

from callsim.errors import PermissionUnavailable

log = logging.getLogger("callsim.permissions")


class PermissionKind(str, Enum):
    CAMERA = "camera"
    MICROPHONE = "microphone"
    LOCATION = "location"
    NOTIFICATIONS = "notifications"
    CONTACTS = "contacts"
    PHOTO_LIBRARY = "photo_library"


class PermissionStatus(str, Enum):
    NOT_DETERMINED = "not_determined"
    GRANTED = "granted"
    DENIED = "denied"
    RESTRICTED = "restricted"

    @property
    def is_granted(self) -> bool:
        return self is PermissionStatus.GRANTED


class PermissionService(ABC):
    @abstractmethod
    def status(self, kind: PermissionKind) -> PermissionStatus:
        """Current status without prompting the user."""

    @abstractmethod
    async def request(self, kind: PermissionKind) -> PermissionStatus:
        """Prompt for a permission if it has not been decided yet.

        Returns the resulting status.  Already-decided permissions are
        returned unchanged.
        """

    def is_granted(self, kind: PermissionKind) -> bool:
        return self.status(kind).is_granted

    def snapshot(self) -> dict[str, str]:
        """Status of every permission kind, keyed by kind value."""
        return {kind.value: self.status(kind).value for kind in PermissionKind}


class StaticPermissionService(PermissionService):
    """Permission statuses held in memory.

    Kinds not listed start as ``not_determined``.  Requesting an
    undecided permission resolves it to ``grant_on_request`` (the
    answer the user gives on the setup screen).
    """

    def __init__(
        self,
        statuses: Mapping[PermissionKind, PermissionStatus] | None = None,
        grant_on_request: PermissionStatus = PermissionStatus.GRANTED,
    ) -> None:
        self._statuses = {kind: PermissionStatus.NOT_DETERMINED for kind in PermissionKind}
        if statuses:
            self._statuses.update(statuses)
        self._grant_on_request = grant_on_request

    @classmethod
    def all_granted(cls) -> "StaticPermissionService":
        return cls({kind: PermissionStatus.GRANTED for kind in PermissionKind})

    def status(self, kind: PermissionKind) -> PermissionStatus:
        return self._statuses[kind]

    def set_status(self, kind: PermissionKind, status: PermissionStatus) -> None:
        self._statuses[kind] = status

    async def request(self, kind: PermissionKind) -> PermissionStatus:
        current = self._statuses[kind]
        if current is not PermissionStatus.NOT_DETERMINED:
            return current
        self._statuses[kind] = self._grant_on_request
        log.info("Permission %s requested: %s", kind.value, self._grant_on_request.value)
        return self._grant_on_request


def ensure_granted(service: PermissionService, kind: PermissionKind) -> None:
    """Raise PermissionUnavailable unless ``kind`` is granted."""
    status = service.status(kind)
    if not status.is_granted:
        raise PermissionUnavailable(kind.value, status.value)
