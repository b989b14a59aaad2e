"""Decoding of the per-architecture image annotation.

Wire format is a JSON object of objects: architecture -> container name -> image.

    {"arm": {"worker": "myrepo/worker:arm"}, "aarch64": {"worker": "myrepo/worker:aarch64"}}
"""
from __future__ import annotations

import json

from pydantic import StrictStr, TypeAdapter, ValidationError

from .errors import DecodeError

AnnotationTable = dict[str, dict[str, str]]

_TABLE = TypeAdapter(dict[StrictStr, dict[StrictStr, StrictStr]])


def decode(raw: str) -> AnnotationTable:
    try:
        table = _TABLE.validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0]
        loc = "/".join(str(x) for x in first.get("loc", ()))
        reason = f"{first.get('msg')} at '{loc}'" if loc else str(first.get("msg"))
        raise DecodeError(raw, reason) from e
    return {arch: dict(images) for arch, images in table.items()}


def encode(table: AnnotationTable) -> str:
    return json.dumps(table, sort_keys=True, separators=(",", ":"))
