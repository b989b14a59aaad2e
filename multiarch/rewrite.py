from __future__ import annotations

from typing import Any

from .annotations import AnnotationTable


def rewrite(
    containers: list[dict[str, Any]] | None,
    architecture: str,
    table: AnnotationTable,
) -> tuple[list[dict[str, Any]], set[str]]:
    """Swap container images for their `architecture` variant.

    Containers are matched by name. A container with no entry (or an
    architecture with no entry at all) keeps its image and is reported in the
    returned unresolved set.
    """
    images = table.get(architecture, {})
    out: list[dict[str, Any]] = []
    unresolved: set[str] = set()
    for c in containers or []:
        c = dict(c)
        name = c.get("name", "")
        if name in images:
            c["image"] = images[name]
        else:
            unresolved.add(name)
        out.append(c)
    return out, unresolved
