"""Status API for the multiarch initializer.

Run with `uvicorn main:app`; the pod watcher starts with the app and stops
with it.
"""
from __future__ import annotations

import json

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse

from multiarch import db
from multiarch.api_models import InitializationOut, PlanRequest, PlanResponse, StatusResponse
from multiarch.errors import DecodeError
from multiarch.kube_ops import KubeNodeRegistry, KubeObjectGateway, load_config
from multiarch.reconciler import Reconciler, plan_initialization
from multiarch.runtime import RuntimeState
from multiarch.settings import settings
from multiarch.watcher import Watcher

app = FastAPI(title="Multiarch Pod Initializer")

runtime = RuntimeState()
watcher: Watcher | None = None


def start_watcher() -> None:
    global watcher
    load_config()
    reconciler = Reconciler(settings, KubeNodeRegistry(), KubeObjectGateway(), runtime)
    watcher = Watcher(reconciler)
    watcher.start()


@app.on_event("startup")
def startup() -> None:
    db.init_db()
    db.log_event("INFO", f"Starting the multiarch initializer ({settings.initializer_name})")
    try:
        start_watcher()
    except Exception as e:
        db.log_event("ERROR", f"Watcher not started: {type(e).__name__}: {e}")


@app.on_event("shutdown")
def shutdown() -> None:
    if watcher is not None:
        db.log_event("INFO", "Shutdown signal received, exiting...")
        watcher.stop()


@app.get("/health")
def health():
    if watcher is not None and watcher.is_alive():
        return {"status": "healthy"}
    return JSONResponse(status_code=503, content={"status": "degraded"})


@app.get("/status", response_model=StatusResponse)
def status() -> StatusResponse:
    return StatusResponse(
        initializer_name=settings.initializer_name,
        annotation=settings.annotation,
        require_annotation=settings.require_annotation,
        baseline_architecture=settings.baseline_architecture,
        namespace=settings.namespace,
        **runtime.snapshot(),
    )


@app.get("/events")
def events(limit: int = Query(100, ge=1, le=1000)):
    return db.latest_events(limit)


@app.get("/initializations", response_model=list[InitializationOut])
def initializations(limit: int = Query(100, ge=1, le=1000), state: str | None = None) -> list[InitializationOut]:
    out: list[InitializationOut] = []
    for row in db.list_initializations(limit, state=state):
        data = row.__dict__.copy()
        data["patch"] = json.loads(row.patch) if row.patch else None
        out.append(InitializationOut(**data))
    return out


@app.post("/plan", response_model=PlanResponse)
def plan(req: PlanRequest) -> PlanResponse:
    """Dry run: show what would be committed for a pod on a given architecture."""
    try:
        result = plan_initialization(req.pod, settings, lambda: req.architecture)
    except DecodeError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return PlanResponse(
        state=result.state,
        architecture=result.architecture,
        reason=result.reason,
        unresolved=sorted(result.unresolved),
        patch=result.patch,
        pod=result.pod,
    )
