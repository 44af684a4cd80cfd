"""Scenario catalog: read-only lookup from scenario id to script.

The canonical scripts live in ``data/scenarios.jsonl`` next to this
module.  A catalog refuses to exist unless every ``ScenarioId`` has a
script, so a missing script fails at import/test time rather than in
the middle of a call.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Iterator, Mapping

from callsim.errors import ScenarioConfigError
from callsim.scenarios.loader import load_scripts_jsonl
from callsim.scenarios.schema import CallScript, ScenarioId

log = logging.getLogger("callsim.scenarios")

DEFAULT_SCRIPTS_PATH = Path(__file__).resolve().parent / "data" / "scenarios.jsonl"


class ScenarioCatalog:
    """Immutable mapping of scenario id to CallScript."""

    def __init__(self, scripts: Mapping[ScenarioId, CallScript]) -> None:
        missing = [s.value for s in ScenarioId if s not in scripts]
        if missing:
            raise ScenarioConfigError(f"No script defined for: {', '.join(missing)}")

        for scenario, script in scripts.items():
            if script.scenario != scenario:
                raise ScenarioConfigError(
                    f"Script for '{scenario.value}' is labelled '{script.scenario.value}'"
                )

        self._scripts = MappingProxyType(dict(scripts))

    def get_script(self, scenario: ScenarioId | str) -> CallScript:
        """Return the script for a scenario id (enum member or its value)."""
        try:
            key = ScenarioId(scenario)
        except ValueError:
            raise ScenarioConfigError(f"Unknown scenario: {scenario!r}") from None
        return self._scripts[key]

    def scenarios(self) -> list[ScenarioId]:
        return list(self._scripts)

    def __contains__(self, scenario: object) -> bool:
        try:
            return ScenarioId(scenario) in self._scripts
        except ValueError:
            return False

    def __iter__(self) -> Iterator[CallScript]:
        return iter(self._scripts.values())

    def __len__(self) -> int:
        return len(self._scripts)


def load_catalog(path: str | Path = DEFAULT_SCRIPTS_PATH) -> ScenarioCatalog:
    """Load and validate a catalog from a JSONL scripts file."""
    catalog = ScenarioCatalog(load_scripts_jsonl(path))
    log.info("Loaded %d scenario scripts from %s", len(catalog), path)
    return catalog


@lru_cache(maxsize=1)
def default_catalog() -> ScenarioCatalog:
    """The packaged catalog, loaded once per process."""
    return load_catalog(DEFAULT_SCRIPTS_PATH)
