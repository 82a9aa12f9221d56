"""Core orchestration, configuration, and shared helpers."""
