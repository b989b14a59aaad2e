from __future__ import annotations

from typing import Any, Callable, Iterator, Protocol

from kubernetes import client, config, watch
from kubernetes.client.exceptions import ApiException

from .db import log_event
from .errors import CommitError, NodeLookupError
from .settings import settings

STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"


class ObjectGateway(Protocol):
    def update(self, pod: dict[str, Any]) -> dict[str, Any]:
        """Replace the whole pod object."""

    def apply_patch(self, namespace: str, name: str, patch: dict[str, Any]) -> dict[str, Any]:
        """Apply a strategic merge patch to a pod."""


def load_config(kubeconfig: str | None = None) -> None:
    """Load in-cluster config, falling back to a kubeconfig file for local runs."""
    path = kubeconfig or settings.kubeconfig
    if path:
        config.load_kube_config(config_file=path)
        log_event("INFO", f"Loaded kubeconfig from {path}")
        return
    try:
        config.load_incluster_config()
        log_event("INFO", "Loaded in-cluster Kubernetes config")
    except config.ConfigException:
        config.load_kube_config()
        log_event("INFO", "Loaded default kubeconfig")


def _core() -> client.CoreV1Api:
    return client.CoreV1Api()


# Only used to turn client models into plain dicts; holds no cluster state.
_serializer = client.ApiClient()


def _to_dict(obj: Any) -> dict[str, Any]:
    # Keep camelCase field names so results compare with watch payloads.
    return _serializer.sanitize_for_serialization(obj)


class KubeNodeRegistry:
    def __init__(self, api: client.CoreV1Api | None = None):
        self.api = api or _core()

    def get_node(self, name: str) -> dict[str, Any] | None:
        try:
            node = self.api.read_node(name)
        except ApiException as e:
            if e.status == 404:
                return None
            raise NodeLookupError(name, f"HTTP {e.status}: {e.reason}") from e
        return _to_dict(node)


class KubeObjectGateway:
    def __init__(self, api: client.CoreV1Api | None = None):
        self.api = api or _core()

    def update(self, pod: dict[str, Any]) -> dict[str, Any]:
        meta = pod.get("metadata") or {}
        namespace, name = meta.get("namespace", "default"), meta.get("name", "")
        try:
            result = self.api.replace_namespaced_pod(name, namespace, pod)
        except ApiException as e:
            raise CommitError(namespace, name, f"HTTP {e.status}: {e.reason}") from e
        except Exception as e:
            raise CommitError(namespace, name, f"{type(e).__name__}: {e}") from e
        return _to_dict(result)

    def apply_patch(self, namespace: str, name: str, patch: dict[str, Any]) -> dict[str, Any]:
        try:
            result = self.api.patch_namespaced_pod(name, namespace, patch, _content_type=STRATEGIC_MERGE_PATCH)
        except ApiException as e:
            raise CommitError(namespace, name, f"HTTP {e.status}: {e.reason}") from e
        except Exception as e:
            raise CommitError(namespace, name, f"{type(e).__name__}: {e}") from e
        return _to_dict(result)


# list/watch kwargs passed by kubernetes.watch.Watch -> query parameter names
_LIST_QUERY_PARAMS = {
    "watch": "watch",
    "resource_version": "resourceVersion",
    "timeout_seconds": "timeoutSeconds",
    "label_selector": "labelSelector",
    "field_selector": "fieldSelector",
    "allow_watch_bookmarks": "allowWatchBookmarks",
}


def uninitialized_pod_lister(api: client.CoreV1Api, namespace: str = "") -> Callable[..., Any]:
    """Build a pod list/watch call that also returns uninitialized pods.

    The API server hides pods with pending initializers unless the request
    carries includeUninitialized=true, and the generated client methods no
    longer accept that parameter, so the request is issued through the
    client's ApiClient directly.
    """
    path = f"/api/v1/namespaces/{namespace}/pods" if namespace else "/api/v1/pods"

    def list_pods(**kwargs: Any) -> Any:
        """List or watch pods, including uninitialized ones.

        :return: V1PodList
        """
        query: list[tuple[str, Any]] = [("includeUninitialized", "true")]
        for key, param in _LIST_QUERY_PARAMS.items():
            if kwargs.get(key) is not None:
                query.append((param, kwargs[key]))
        return api.api_client.call_api(
            path,
            "GET",
            path_params={},
            query_params=query,
            header_params={"Accept": "application/json;stream=watch"},
            response_type="V1PodList",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
            _preload_content=kwargs.get("_preload_content", True),
            _request_timeout=kwargs.get("_request_timeout"),
        )

    return list_pods


def stream_pod_events(
    namespace: str = "",
    resource_version: str | None = None,
    timeout_s: int = 300,
    w: watch.Watch | None = None,
    api: client.CoreV1Api | None = None,
) -> Iterator[tuple[str, dict[str, Any]]]:
    """Yield (event type, raw pod) pairs from a pod watch.

    The raw JSON is used instead of the deserialized model so fields the client
    models do not know about (metadata.initializers) survive.
    """
    w = w or watch.Watch()
    kwargs: dict[str, Any] = {"timeout_seconds": timeout_s}
    if resource_version:
        kwargs["resource_version"] = resource_version
    for event in w.stream(uninitialized_pod_lister(api or _core(), namespace), **kwargs):
        yield event["type"], event["raw_object"]
