from __future__ import annotations

from typing import Any


def pending_initializers(pod: dict[str, Any]) -> list[dict[str, Any]]:
    initializers = (pod.get("metadata") or {}).get("initializers")
    if not initializers:
        return []
    return list(initializers.get("pending") or [])


def is_head_initializer(pod: dict[str, Any], my_name: str) -> bool:
    """True iff `my_name` is first in the pod's pending-initializer queue."""
    pending = pending_initializers(pod)
    return bool(pending) and pending[0].get("name") == my_name


def dequeue(queue: list[dict[str, Any]], my_name: str) -> list[dict[str, Any]] | None:
    """Return a copy of `queue` without its head.

    None means "no initializers pending" and must be written back as a removed
    field, not as an empty list.
    """
    if not queue or queue[0].get("name") != my_name:
        raise ValueError(f"'{my_name}' is not the head of the pending initializer queue.")
    rest = [dict(entry) for entry in queue[1:]]
    return rest or None


def set_pending(pod: dict[str, Any], queue: list[dict[str, Any]] | None) -> None:
    metadata = pod.setdefault("metadata", {})
    if queue is None:
        metadata.pop("initializers", None)
        return
    initializers = metadata.get("initializers") or {}
    initializers["pending"] = queue
    metadata["initializers"] = initializers
