import copy
import json
import sys

import pytest

# Ensure project root is importable (so `import main` / `import cli` work without installing)
import os as _os
_project_root = _os.path.dirname(_os.path.dirname(__file__))
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from multiarch import db  # noqa: E402
from multiarch.patch import MERGE_KEYS  # noqa: E402
from multiarch.settings import DEFAULT_ANNOTATION, DEFAULT_INITIALIZER_NAME, Settings  # noqa: E402


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the sqlite store at a throwaway file for every test."""
    monkeypatch.setattr(db, "settings", Settings(db_path=str(tmp_path / "multiarch.db")))
    db.init_db()
    yield


@pytest.fixture
def make_pod():
    def _make(containers, images=None, node="foo", pending=(DEFAULT_INITIALIZER_NAME,), raw_annotation=None):
        """Pod with the same containers in both sequences, like a typical sidecar setup."""
        pod = {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {"namespace": "default", "name": "mock-pod", "resourceVersion": "1"},
            "spec": {
                "nodeName": node,
                "containers": [{"name": n, "image": i} for n, i in containers.items()],
                "initContainers": [{"name": n, "image": i} for n, i in containers.items()],
            },
        }
        if pending:
            pod["metadata"]["initializers"] = {"pending": [{"name": n} for n in pending]}
        if images is not None:
            pod["metadata"]["annotations"] = {DEFAULT_ANNOTATION: json.dumps(images)}
        if raw_annotation is not None:
            pod["metadata"]["annotations"] = {DEFAULT_ANNOTATION: raw_annotation}
        return pod

    return _make


def apply_strategic_patch(doc, patch, path=()):
    """Minimal strategic merge applier, enough to check planned patches."""
    out = copy.deepcopy(doc)
    for key, value in patch.items():
        if key.startswith("$setElementOrder/"):
            continue
        sub = path + (key,)
        if value is None:
            out.pop(key, None)
        elif sub in MERGE_KEYS and isinstance(value, list):
            order = patch.get(f"$setElementOrder/{key}")
            out[key] = _apply_keyed(out.get(key) or [], value, MERGE_KEYS[sub], order)
        elif isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = apply_strategic_patch(out[key], value, sub)
        else:
            out[key] = copy.deepcopy(value)
    return out


def _apply_keyed(items, patch_items, merge_key, order):
    by_key = {i[merge_key]: i for i in items}
    keys = [i[merge_key] for i in items]
    for p in patch_items:
        k = p[merge_key]
        if p.get("$patch") == "delete":
            by_key.pop(k, None)
        elif k in by_key:
            by_key[k] = apply_strategic_patch(by_key[k], p)
        else:
            by_key[k] = dict(p)
            keys.append(k)
    if order:
        keys = [o[merge_key] for o in order]
    return [by_key[k] for k in keys if k in by_key]


class FakeNodes:
    def __init__(self, nodes=None, error=None):
        self.nodes = dict(nodes or {})
        self.error = error
        self.calls = []

    def get_node(self, name):
        self.calls.append(name)
        if self.error is not None:
            raise self.error
        arch = self.nodes.get(name)
        if arch is None:
            return None
        return {"metadata": {"name": name}, "status": {"nodeInfo": {"architecture": arch}}}


class FakeGateway:
    """In-memory stand-in for the pod API: stores pods, applies updates and patches."""

    def __init__(self, pods=(), error=None):
        self.pods = {}
        for p in pods:
            self.pods[self._key(p)] = copy.deepcopy(p)
        self.error = error
        self.updates = []
        self.patches = []

    @staticmethod
    def _key(pod):
        return pod["metadata"].get("namespace", "default"), pod["metadata"]["name"]

    def update(self, pod):
        if self.error is not None:
            raise self.error
        self.updates.append(copy.deepcopy(pod))
        self.pods[self._key(pod)] = copy.deepcopy(pod)
        return copy.deepcopy(pod)

    def apply_patch(self, namespace, name, patch):
        if self.error is not None:
            raise self.error
        self.patches.append((namespace, name, copy.deepcopy(patch)))
        merged = apply_strategic_patch(self.pods[(namespace, name)], patch)
        self.pods[(namespace, name)] = merged
        return copy.deepcopy(merged)


@pytest.fixture
def make_reconciler():
    from multiarch.reconciler import Reconciler
    from multiarch.runtime import RuntimeState

    def _make(pod, nodes=None, gateway_error=None, node_error=None, **overrides):
        nodes = FakeNodes(nodes if nodes is not None else {"foo": "arm"}, error=node_error)
        gateway = FakeGateway([pod], error=gateway_error)
        reconciler = Reconciler(Settings(**overrides), nodes, gateway, RuntimeState())
        return reconciler, nodes, gateway

    return _make
