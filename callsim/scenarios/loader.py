"""Load JSONL scenario scripts into CallScript objects."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from callsim.errors import ScenarioConfigError
from callsim.scenarios.schema import CallScript, ScenarioId


def load_scripts_jsonl(path: str | Path) -> dict[ScenarioId, CallScript]:
    """Load every script in a JSONL file (one script per line).

    Returns a dict keyed by scenario id.  Malformed lines, unknown
    scenario ids, empty scripts and duplicate ids all raise
    ``ScenarioConfigError`` naming the file and line.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ScenarioConfigError(f"Cannot read scenario file {path}: {e}") from e

    scripts: dict[ScenarioId, CallScript] = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            script = CallScript.model_validate(json.loads(line))
        except (json.JSONDecodeError, ValidationError) as e:
            raise ScenarioConfigError(f"{path}:{lineno}: invalid script: {e}") from e

        if script.scenario in scripts:
            raise ScenarioConfigError(
                f"{path}:{lineno}: duplicate script for '{script.scenario.value}'"
            )
        scripts[script.scenario] = script

    return scripts

