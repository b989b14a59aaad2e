from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class PlanRequest(BaseModel):
    pod: dict[str, Any] = Field(..., description="Raw pod object as served by the API server")
    architecture: str = Field(..., min_length=1, description="Architecture of the node the pod is assigned to")


class PlanResponse(BaseModel):
    state: str = Field(..., description="gated_out|committed_passthrough|committed_rewritten")
    architecture: str | None = None
    reason: str = ""
    unresolved: list[str] = Field(default_factory=list, description="Containers left on their manifest image")
    patch: dict[str, Any] | None = None
    pod: dict[str, Any] | None = None


class InitializationOut(BaseModel):
    id: int
    namespace: str
    pod: str
    node: str | None = None
    architecture: str | None = None
    state: str
    patch: dict[str, Any] | None = None
    error: str | None = None
    created_at: str


class StatusResponse(BaseModel):
    initializer_name: str
    annotation: str
    require_annotation: bool
    baseline_architecture: str
    namespace: str
    started_at: str
    watching: bool
    resource_version: str | None = None
    counts: dict[str, int] = Field(default_factory=dict)
    last_error: str | None = None
    last_error_at: str | None = None
