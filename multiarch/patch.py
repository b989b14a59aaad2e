"""Two-way strategic merge patch between pod snapshots.

Only the pieces the initializer touches need list-merge semantics: container
lists and the pending-initializer queue are merged by `name`, so entries are
matched by identity rather than position.
"""
from __future__ import annotations

import json
from typing import Any

MERGE_KEYS: dict[tuple[str, ...], str] = {
    ("spec", "containers"): "name",
    ("spec", "initContainers"): "name",
    ("metadata", "initializers", "pending"): "name",
}


def plan(before: dict[str, Any], after: dict[str, Any]) -> dict[str, Any]:
    """Return the patch that turns `before` into `after`.

    Keys missing from `after` are emitted as null (field removal).
    """
    return _diff_maps(before, after, ())


def plan_bytes(before: dict[str, Any], after: dict[str, Any]) -> bytes:
    return json.dumps(plan(before, after), separators=(",", ":")).encode()


def _diff_maps(before: dict[str, Any], after: dict[str, Any], path: tuple[str, ...]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in before:
        if key not in after:
            out[key] = None
    for key, new in after.items():
        old = before.get(key)
        if key in before and old == new:
            continue
        sub = path + (key,)
        if isinstance(old, dict) and isinstance(new, dict):
            d = _diff_maps(old, new, sub)
            if d:
                out[key] = d
        elif sub in MERGE_KEYS and isinstance(old, list) and isinstance(new, list):
            d_list = _diff_keyed_list(old, new, MERGE_KEYS[sub])
            if d_list:
                out[key] = d_list
                out[f"$setElementOrder/{key}"] = [{MERGE_KEYS[sub]: e.get(MERGE_KEYS[sub])} for e in new]
        else:
            out[key] = new
    return out


def _diff_keyed_list(old: list[dict[str, Any]], new: list[dict[str, Any]], merge_key: str) -> list[dict[str, Any]]:
    old_by_key = {e.get(merge_key): e for e in old}
    new_keys = {e.get(merge_key) for e in new}
    out: list[dict[str, Any]] = []
    for e in new:
        k = e.get(merge_key)
        prev = old_by_key.get(k)
        if prev is None:
            out.append(e)
            continue
        d = _diff_maps(prev, e, ())
        if d:
            out.append({merge_key: k, **d})
    for e in old:
        k = e.get(merge_key)
        if k not in new_keys:
            out.append({merge_key: k, "$patch": "delete"})
    return out
