"""Helpers for interacting with Kubernetes APIs."""

__all__ = (
    "NamespaceLister",
    "NamespaceWatchStream",
    "create_k8sclient",
    "namespace_event_from_watch",
)

from collections.abc import Iterator
from typing import Any

import kubernetes
import structlog

from namespacegroupoperator.reconciler import EventKind, NamespaceEvent


def create_k8sclient() -> kubernetes.client:
    """Get a Kubernetes client configured with available cluster
    authentication.

    If in-cluster authentication is available, that is used. Otherwise
    this function falls-back to using a kubectl config file, which is
    appropriate for development.
    """
    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        kubernetes.config.load_kube_config()
    return kubernetes.client


class NamespaceLister:
    """List the names of the namespaces in the cluster.

    Parameters
    ----------
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    """

    def __init__(self, k8s_client: Any) -> None:
        self._api = k8s_client.CoreV1Api()
        self.resource_version: str | None = None
        """The ``resourceVersion`` of the most recent listing."""

    def list(self) -> list[str]:
        response = self._api.list_namespace()
        self.resource_version = response.metadata.resource_version
        return [item.metadata.name for item in response.items]


class NamespaceWatchStream:
    """Iterate over namespace lifecycle events from a Kubernetes watch.

    Without ``timeout_seconds`` the `kubernetes.watch.Watch` reconnects on
    its own from the last seen ``resourceVersion``, so iteration only ends
    when the watch is stopped or the server refuses to resume it. With
    ``timeout_seconds`` iteration ends once the server closes the watch at
    that timeout; reconnecting is then left to whoever runs the process.

    Parameters
    ----------
    k8s_client
        A Kubernetes client (see `create_k8sclient`).
    timeout_seconds : `int`, optional
        Server-side timeout of the watch request.
    lister : `NamespaceLister`, optional
        If given, the watch starts from the ``resourceVersion`` of the
        lister's latest listing, so namespaces already seen by the bulk
        sync are not replayed as ``ADDED`` events.
    """

    def __init__(
        self,
        k8s_client: Any,
        *,
        timeout_seconds: int | None = None,
        lister: NamespaceLister | None = None,
    ) -> None:
        self._api = k8s_client.CoreV1Api()
        self._timeout_seconds = timeout_seconds
        self._lister = lister
        self._watch = kubernetes.watch.Watch()
        self._logger = structlog.get_logger(__name__)

    def __iter__(self) -> Iterator[NamespaceEvent]:
        kwargs = {}
        if self._timeout_seconds is not None:
            kwargs["timeout_seconds"] = self._timeout_seconds
        resource_version = getattr(self._lister, "resource_version", None)
        if resource_version:
            kwargs["resource_version"] = resource_version
        for raw_event in self._watch.stream(
            self._api.list_namespace, **kwargs
        ):
            event = namespace_event_from_watch(raw_event)
            if event is None:
                self._logger.debug(
                    "Skipping watch event", type=raw_event.get("type")
                )
                continue
            yield event

    def stop(self) -> None:
        """Stop the underlying watch."""
        self._watch.stop()


def namespace_event_from_watch(
    raw_event: dict[str, Any],
) -> NamespaceEvent | None:
    """Convert an event from `kubernetes.watch.Watch.stream`.

    Parameters
    ----------
    raw_event : `dict`
        The watch event. Its ``object`` is either a ``V1Namespace`` or, for
        raw streams, the namespace manifest as a `dict`.

    Returns
    -------
    `~namespacegroupoperator.reconciler.NamespaceEvent` or `None`
        `None` for ``ERROR``, ``BOOKMARK`` and unknown event types.
    """
    try:
        kind = EventKind(raw_event.get("type"))
    except ValueError:
        return None

    obj = raw_event.get("object")
    if isinstance(obj, dict):
        name = obj.get("metadata", {}).get("name")
    else:
        name = getattr(getattr(obj, "metadata", None), "name", None)
    if not name:
        return None
    return NamespaceEvent(kind=kind, name=name)
