from __future__ import annotations


class InitializerError(Exception):
    """Base class for failures that drop a single pod event."""


class DecodeError(InitializerError):
    def __init__(self, raw: str, reason: str):
        super().__init__(f"Invalid multiarch annotation ({reason}): {raw!r}")
        self.raw = raw
        self.reason = reason


class NodeLookupError(InitializerError):
    def __init__(self, node_name: str, reason: str):
        super().__init__(f"Node lookup failed for '{node_name}': {reason}")
        self.node_name = node_name
        self.reason = reason


class CommitError(InitializerError):
    def __init__(self, namespace: str, name: str, reason: str):
        super().__init__(f"Commit rejected for pod {namespace}/{name}: {reason}")
        self.namespace = namespace
        self.name = name
        self.reason = reason
