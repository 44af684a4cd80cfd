"""Scenario scripts for simulated calls."""

from .catalog import ScenarioCatalog, default_catalog, load_catalog
from .schema import CallScript, ScenarioId

__all__ = ["CallScript", "ScenarioCatalog", "ScenarioId", "default_catalog", "load_catalog"]
