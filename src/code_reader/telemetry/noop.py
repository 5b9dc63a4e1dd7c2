from __future__ import annotations


class NoOpTelemetry:
    def event(self, name: str, payload: dict):  # noqa: ARG002
        return None

    def error(self, run_id: str | None, exc: Exception):  # noqa: ARG002
        return None
