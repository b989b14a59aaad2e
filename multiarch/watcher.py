from __future__ import annotations

from threading import Event, Thread
from typing import Any, Callable, Iterable

from kubernetes import watch

from . import db
from .errors import InitializerError
from .kube_ops import stream_pod_events
from .reconciler import Reconciler

PodStream = Callable[..., Iterable[tuple[str, dict[str, Any]]]]


class Watcher:
    """Feeds newly added pods to the reconciler until stopped.

    The watch is re-established after it times out or fails, resuming from
    the last resourceVersion seen.
    """

    def __init__(self, reconciler: Reconciler, stream: PodStream = stream_pod_events):
        self.reconciler = reconciler
        self.runtime = reconciler.runtime
        self.settings = reconciler.settings
        self.stream = stream
        self._stop = Event()
        self._thr: Thread | None = None
        self._watch: watch.Watch | None = None

    def start(self) -> None:
        if self._thr and self._thr.is_alive():
            return
        self._stop.clear()
        self._thr = Thread(target=self._loop, daemon=True)
        self._thr.start()

    def stop(self) -> None:
        self._stop.set()
        if self._watch is not None:
            self._watch.stop()

    def join(self, timeout: float | None = None) -> None:
        if self._thr:
            self._thr.join(timeout)

    def is_alive(self) -> bool:
        return bool(self._thr and self._thr.is_alive())

    def _loop(self) -> None:
        db.log_event("INFO", f"Watcher started; initializer name set to: {self.settings.initializer_name}")
        self.runtime.set_watching(True)
        try:
            while not self._stop.is_set():
                try:
                    self.run_once()
                except Exception as e:
                    self.runtime.reset_resource_version()
                    db.log_event("WARN", f"Pod watch failed: {type(e).__name__}: {e}")
                    self._stop.wait(max(1, self.settings.watch_backoff_s))
        finally:
            self.runtime.set_watching(False)
            db.log_event("INFO", "Watcher stopped")

    def run_once(self) -> None:
        """Consume one watch session."""
        self._watch = watch.Watch()
        events = self.stream(
            namespace=self.settings.namespace,
            resource_version=self.runtime.resource_version,
            w=self._watch,
        )
        for event_type, pod in events:
            if self._stop.is_set():
                return
            if event_type == "ERROR":
                # Usually 410 Gone: the resourceVersion is too old, relist.
                self.runtime.reset_resource_version()
                db.log_event("WARN", f"Watch error: {pod.get('message', pod)}")
                return
            self.runtime.set_resource_version((pod.get("metadata") or {}).get("resourceVersion"))
            if event_type != "ADDED":
                continue
            self.handle(pod)

    def handle(self, pod: dict[str, Any]) -> None:
        meta = pod.get("metadata") or {}
        try:
            self.reconciler.initialize_pod(pod)
        except InitializerError:
            # Already logged and recorded; redelivery is the only retry.
            pass
        except Exception as e:
            db.log_event(
                "ERROR",
                f"Unexpected failure initializing pod: {type(e).__name__}: {e}",
                namespace=meta.get("namespace"),
                pod=meta.get("name"),
            )
