from __future__ import annotations

from typing import Any, Protocol

from .errors import NodeLookupError


class NodeRegistry(Protocol):
    def get_node(self, name: str) -> dict[str, Any] | None:
        """Return the raw node object, or None if it does not exist."""


def node_architecture(node: dict[str, Any]) -> str | None:
    return ((node.get("status") or {}).get("nodeInfo") or {}).get("architecture")


class ArchitectureResolver:
    """Looks up the instruction-set architecture of the node a pod landed on."""

    def __init__(self, registry: NodeRegistry):
        self.registry = registry

    def resolve(self, node_name: str) -> str:
        if not node_name:
            raise NodeLookupError(node_name, "pod has no node assigned")
        try:
            node = self.registry.get_node(node_name)
        except NodeLookupError:
            raise
        except Exception as e:
            raise NodeLookupError(node_name, f"{type(e).__name__}: {e}") from e
        if node is None:
            raise NodeLookupError(node_name, "node not found")
        arch = node_architecture(node)
        if not arch:
            raise NodeLookupError(node_name, "node reports no architecture")
        return arch
