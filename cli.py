from __future__ import annotations

import argparse
import dataclasses
import json
import signal
import sys
import threading

import requests

from multiarch.settings import settings


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False))


def _run(args: argparse.Namespace) -> int:
    from multiarch import db
    from multiarch.kube_ops import KubeNodeRegistry, KubeObjectGateway, load_config
    from multiarch.reconciler import Reconciler
    from multiarch.watcher import Watcher

    cfg = dataclasses.replace(
        settings,
        annotation=args.annotation,
        initializer_name=args.initializer_name,
        namespace=args.namespace,
        require_annotation=args.require_annotation,
        baseline_architecture=args.baseline_arch,
        db_path=args.db_path,
    )
    db.set_db_path(cfg.db_path)
    db.init_db()
    db.log_event("INFO", "Starting the Kubernetes initializer...")
    db.log_event("INFO", f"Initializer name set to: {cfg.initializer_name}")
    print(f"Initializer name set to: {cfg.initializer_name}", file=sys.stderr)

    try:
        load_config(args.kubeconfig)
    except Exception as e:
        db.log_event("ERROR", f"Could not load Kubernetes config: {type(e).__name__}: {e}")
        print(f"Could not load Kubernetes config: {e}", file=sys.stderr)
        return 1
    watcher = Watcher(Reconciler(cfg, KubeNodeRegistry(), KubeObjectGateway()))

    stop = threading.Event()

    def _on_signal(signum, frame) -> None:
        stop.set()

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    watcher.start()
    while not stop.wait(1.0):
        if not watcher.is_alive():
            db.log_event("ERROR", "Watcher exited unexpectedly")
            return 1

    db.log_event("INFO", "Shutdown signal received, exiting...")
    print("Shutdown signal received, exiting...", file=sys.stderr)
    watcher.stop()
    watcher.join(timeout=5)
    return 0


def _plan(args: argparse.Namespace) -> int:
    from multiarch.errors import DecodeError
    from multiarch.reconciler import plan_initialization

    with open(args.pod, encoding="utf-8") as f:
        pod = json.load(f)
    cfg = dataclasses.replace(
        settings,
        annotation=args.annotation,
        initializer_name=args.initializer_name,
        require_annotation=args.require_annotation,
        baseline_architecture=args.baseline_arch,
    )
    try:
        result = plan_initialization(pod, cfg, lambda: args.arch)
    except DecodeError as e:
        print(str(e), file=sys.stderr)
        return 1
    _print(
        {
            "state": result.state,
            "architecture": result.architecture,
            "reason": result.reason,
            "unresolved": sorted(result.unresolved),
            "patch": result.patch,
        }
    )
    return 0


def _add_initializer_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--annotation", default=settings.annotation, help="The annotation to trigger initialization")
    p.add_argument("--initializer-name", default=settings.initializer_name, help="The initializer name")
    p.add_argument(
        "--require-annotation",
        action=argparse.BooleanOptionalAction,
        default=settings.require_annotation,
        help="Require annotation for initialization",
    )
    p.add_argument(
        "--baseline-arch",
        default=settings.baseline_architecture,
        help="Architecture whose nodes keep the manifest images",
    )


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Multiarch pod initializer")
    p.add_argument("--api", default="http://localhost:8000", help="Status API base URL")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_run = sub.add_parser("run", help="Watch pods and initialize them until interrupted")
    _add_initializer_flags(s_run)
    s_run.add_argument("--namespace", default=settings.namespace, help="Namespace to watch (default: all)")
    s_run.add_argument("--kubeconfig", default=settings.kubeconfig, help="Kubeconfig path (default: in-cluster)")
    s_run.add_argument("--db-path", default=settings.db_path, help="SQLite file for events and initialization history")

    s_plan = sub.add_parser("plan", help="Show the patch for a pod JSON file without touching the cluster")
    _add_initializer_flags(s_plan)
    s_plan.add_argument("pod", help="Path to a pod JSON document")
    s_plan.add_argument("--arch", required=True, help="Architecture of the node the pod runs on")

    sub.add_parser("status", help="Show watcher status")

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_init = sub.add_parser("initializations", help="Show initialized pods")
    s_init.add_argument("--limit", type=int, default=20)
    s_init.add_argument("--state", default=None)

    args = p.parse_args(argv)

    base = args.api.rstrip("/")

    if args.cmd == "run":
        return _run(args)

    if args.cmd == "plan":
        return _plan(args)

    if args.cmd == "status":
        _print(requests.get(f"{base}/status", timeout=10).json())
        return 0

    if args.cmd == "events":
        _print(requests.get(f"{base}/events", params={"limit": args.limit}, timeout=10).json())
        return 0

    if args.cmd == "initializations":
        params = {"limit": args.limit}
        if args.state:
            params["state"] = args.state
        r = requests.get(f"{base}/initializations", params=params, timeout=10)
        _print(r.json())
        return 0 if r.ok else 1

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
