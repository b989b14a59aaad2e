from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


DEFAULT_INITIALIZER_NAME = "multiarch.initializer.jeefy.net"
DEFAULT_ANNOTATION = "initializer.jeefy.net/multiarch"
DEFAULT_BASELINE_ARCH = "amd64"


@dataclass(frozen=True)
class Settings:
    # Initializer
    initializer_name: str = os.getenv("MULTIARCH_INITIALIZER_NAME", DEFAULT_INITIALIZER_NAME)
    annotation: str = os.getenv("MULTIARCH_ANNOTATION", DEFAULT_ANNOTATION)
    require_annotation: bool = _env_bool("MULTIARCH_REQUIRE_ANNOTATION", False)
    # Nodes of this architecture already run the images named in the manifest.
    baseline_architecture: str = os.getenv("MULTIARCH_BASELINE_ARCH", DEFAULT_BASELINE_ARCH)

    # Watch
    namespace: str = os.getenv("MULTIARCH_NAMESPACE", "")  # empty = all namespaces
    # Pause before re-establishing a failed watch.
    watch_backoff_s: int = _env_int("MULTIARCH_WATCH_BACKOFF_S", 30)
    kubeconfig: str | None = os.getenv("MULTIARCH_KUBECONFIG")

    # Store
    db_path: str = os.getenv("MULTIARCH_DB_PATH", "multiarch.db")


settings = Settings()
