from __future__ import annotations

import copy
import json
from dataclasses import dataclass, field
from typing import Any, Callable

from . import db
from .annotations import AnnotationTable, decode
from .errors import InitializerError
from .gate import dequeue, is_head_initializer, pending_initializers, set_pending
from .kube_ops import ObjectGateway
from .nodes import ArchitectureResolver, NodeRegistry
from .patch import plan
from .rewrite import rewrite
from .runtime import RuntimeState
from .settings import Settings

GATED_OUT = "gated_out"
COMMITTED_PASSTHROUGH = "committed_passthrough"
COMMITTED_REWRITTEN = "committed_rewritten"
FAILED = "failed"


@dataclass
class InitializationResult:
    state: str
    pod: dict[str, Any] | None = None  # after snapshot; the committed object once committed
    architecture: str | None = None
    patch: dict[str, Any] | None = None
    unresolved: set[str] = field(default_factory=set)
    reason: str = ""


def _ref(pod: dict[str, Any]) -> tuple[str, str]:
    meta = pod.get("metadata") or {}
    return meta.get("namespace", "default"), meta.get("name", "")


def rewrite_pod(pod: dict[str, Any], architecture: str, table: AnnotationTable) -> tuple[dict[str, Any], set[str]]:
    """Return a copy of `pod` with both container sequences rewritten.

    Unresolved names are prefixed with "init:" for init containers, since the
    two sequences are looked up independently.
    """
    out = copy.deepcopy(pod)
    spec = out.setdefault("spec", {})
    containers, unresolved = rewrite(spec.get("containers"), architecture, table)
    spec["containers"] = containers
    unresolved_all = set(unresolved)
    if "initContainers" in spec:
        init_containers, init_unresolved = rewrite(spec.get("initContainers"), architecture, table)
        spec["initContainers"] = init_containers
        unresolved_all |= {f"init:{n}" for n in init_unresolved}
    return out, unresolved_all


def plan_initialization(
    pod: dict[str, Any],
    settings: Settings,
    architecture: Callable[[], str],
) -> InitializationResult:
    """Decide what to commit for `pod` without touching the cluster.

    `architecture` is only called once the annotation has been accepted, so a
    malformed annotation fails before any node lookup. The returned result
    carries the "after" snapshot in `pod` and the patch from the original.
    """
    if not is_head_initializer(pod, settings.initializer_name):
        return InitializationResult(state=GATED_OUT)

    initialized = copy.deepcopy(pod)
    set_pending(initialized, dequeue(pending_initializers(pod), settings.initializer_name))

    annotations = (pod.get("metadata") or {}).get("annotations") or {}
    key = settings.annotation
    if key not in annotations:
        if settings.require_annotation:
            return InitializationResult(
                state=COMMITTED_PASSTHROUGH,
                pod=initialized,
                patch=plan(pod, initialized),
                reason=f"Required '{key}' annotation missing; skipping multiarch image rewrite",
            )
        table: AnnotationTable = {}
    else:
        table = decode(annotations[key])

    arch = architecture()
    if arch == settings.baseline_architecture:
        return InitializationResult(
            state=COMMITTED_PASSTHROUGH,
            pod=initialized,
            architecture=arch,
            patch=plan(pod, initialized),
            reason=f"Node architecture is {arch}; keeping manifest images",
        )

    rewritten, unresolved = rewrite_pod(initialized, arch, table)
    if arch not in table:
        reason = f"Architecture '{arch}' not set in pod annotation"
    elif unresolved:
        reason = f"Image not set in annotation for {arch}/{', '.join(sorted(unresolved))}"
    else:
        reason = f"Images rewritten for {arch}"
    return InitializationResult(
        state=COMMITTED_REWRITTEN,
        pod=rewritten,
        architecture=arch,
        patch=plan(pod, rewritten),
        unresolved=unresolved,
        reason=reason,
    )


class Reconciler:
    """Initializes one pod at a time: gate, decode, resolve, rewrite, commit.

    All configuration arrives through `settings`; nothing is kept between pods
    except the shared counters in `runtime`.
    """

    def __init__(
        self,
        settings: Settings,
        nodes: NodeRegistry,
        gateway: ObjectGateway,
        runtime: RuntimeState | None = None,
    ):
        self.settings = settings
        self.resolver = ArchitectureResolver(nodes)
        self.gateway = gateway
        self.runtime = runtime or RuntimeState()

    def initialize_pod(self, pod: dict[str, Any]) -> InitializationResult:
        """Run one pod through the pipeline and commit the outcome.

        Raises DecodeError, NodeLookupError or CommitError after logging and
        recording the failure; nothing is committed in that case.
        """
        namespace, name = _ref(pod)
        node_name = (pod.get("spec") or {}).get("nodeName", "")
        try:
            result = plan_initialization(pod, self.settings, lambda: self.resolver.resolve(node_name))
            if result.state == GATED_OUT:
                self.runtime.count(GATED_OUT)
                return result
            db.log_event("INFO", result.reason, namespace=namespace, pod=name)
            if result.state == COMMITTED_REWRITTEN:
                result.pod = self.gateway.apply_patch(namespace, name, result.patch or {})
            else:
                result.pod = self.gateway.update(result.pod or {})
        except InitializerError as e:
            self.runtime.count(FAILED, error=str(e))
            db.log_event("ERROR", str(e), namespace=namespace, pod=name)
            db.record_initialization(namespace, name, FAILED, node=node_name or None, error=str(e))
            raise

        self.runtime.count(result.state)
        db.log_event("INFO", f"Pod initialized ({result.state})", namespace=namespace, pod=name)
        db.record_initialization(
            namespace,
            name,
            result.state,
            node=node_name or None,
            architecture=result.architecture,
            patch=json.dumps(result.patch, sort_keys=True) if result.patch is not None else None,
        )
        return result
