"""Simulated safety-call engine: scenario scripts, conversation timing and call lifecycle."""
