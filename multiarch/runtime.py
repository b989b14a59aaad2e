from __future__ import annotations

from datetime import datetime
from threading import Lock


def utc_now() -> str:
    return datetime.utcnow().strftime("%Y-%m-%dT%H:%M:%SZ")


class RuntimeState:
    """In-memory state shared by the watcher and the status API."""

    def __init__(self) -> None:
        self.lock = Lock()
        self.counts: dict[str, int] = {}  # outcome state -> pods
        self.last_error: str | None = None
        self.last_error_at: str | None = None
        self.resource_version: str | None = None
        self.watching = False
        self.started_at = utc_now()

    def count(self, state: str, error: str | None = None) -> None:
        with self.lock:
            self.counts[state] = self.counts.get(state, 0) + 1
            if error is not None:
                self.last_error = error
                self.last_error_at = utc_now()

    def set_resource_version(self, rv: str | None) -> None:
        with self.lock:
            if rv:
                self.resource_version = rv

    def reset_resource_version(self) -> None:
        with self.lock:
            self.resource_version = None

    def set_watching(self, watching: bool) -> None:
        with self.lock:
            self.watching = watching

    def snapshot(self) -> dict:
        with self.lock:
            return {
                "started_at": self.started_at,
                "watching": self.watching,
                "resource_version": self.resource_version,
                "counts": dict(self.counts),
                "last_error": self.last_error,
                "last_error_at": self.last_error_at,
            }
