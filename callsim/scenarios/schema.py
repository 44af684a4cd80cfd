"""Pydantic models for scenario scripts."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator


class ScenarioId(str, Enum):
    WALKING_SAFETY = "walking_safety"
    PUBLIC_TRANSPORT = "public_transport"
    LATE_NIGHT = "late_night"
    GENERAL = "general"


class CallScript(BaseModel):
    """Ordered lines the companion voice speaks for one scenario."""

    model_config = ConfigDict(frozen=True)

    scenario: ScenarioId
    title: str = ""
    lines: tuple[str, ...]

    @field_validator("lines")
    @classmethod
    def _lines_not_empty(cls, lines: tuple[str, ...]) -> tuple[str, ...]:
        if not lines:
            raise ValueError("a script needs at least one line")
        if any(not line.strip() for line in lines):
            raise ValueError("script lines cannot be blank")
        return lines

    def __len__(self) -> int:
        return len(self.lines)
