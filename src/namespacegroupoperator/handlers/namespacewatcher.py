"""Kopf handlers that sync Keycloak groups at startup and then as
namespaces are created and deleted.
"""

__all__ = (
    "handle_namespace_event",
    "start_operator",
)

from typing import Any

import kopf
from kubernetes.client.exceptions import ApiException
from kubernetes.config import ConfigException

from ..config import Config
from ..exceptions import OperatorError
from ..k8s import create_k8sclient
from ..reconciler import EventKind, NamespaceEvent
from ..startup import build_reconciler


@kopf.on.startup()
def start_operator(
    *,
    settings: kopf.OperatorSettings,
    memo: kopf.Memo,
    logger: Any,
    **kwargs: Any,
) -> None:
    """Build the reconciler and run the initial bulk sync.

    The reconciler is kept in ``memo.reconciler`` for the event handler.
    Any failure here is permanent and stops the operator, since no event can
    be handled without a baseline sync.

    Parameters
    ----------
    settings : `kopf.OperatorSettings`
        The operator settings, adjusted to watch namespaces cluster-wide
        and to run one handler at a time.
    memo : `kopf.Memo`
        The operator-wide memo.
    logger : `Any`
        The kopf logger.
    kwargs : `Any`
        Additional keyword arguments provided by kopf.
    """
    settings.watching.clusterwide = True
    settings.posting.enabled = False
    # One executor thread: events are handled one at a time and the
    # Keycloak session is never shared between threads.
    settings.execution.max_workers = 1

    try:
        config = Config.from_environ()
        reconciler = build_reconciler(config, k8s_client=create_k8sclient())
        namespaces = reconciler.filter_namespaces()
        result = reconciler.bulk_sync(namespaces)
    except (OperatorError, ApiException, ConfigException) as exc:
        raise kopf.PermanentError(f"Startup sync failed: {exc}") from exc

    logger.info(
        f"Synced groups for {len(namespaces)} namespaces: "
        f"{len(result.created)} created, {len(result.deleted)} deleted, "
        f"{len(result.failed)} failed."
    )
    memo.reconciler = reconciler


@kopf.on.event("", "v1", "namespaces")  # type: ignore[arg-type]
def handle_namespace_event(
    *,
    name: str,
    event: dict[str, Any],
    memo: kopf.Memo,
    logger: Any,
    **kwargs: Any,
) -> None:
    """Create or delete the groups of a namespace as it is added or
    deleted.

    Parameters
    ----------
    name : `str`
        The name of the Namespace.
    event : `dict`
        The raw watch event. Its type is "ADDED", "MODIFIED", "DELETED", or
        `None` for the initial listing, which the startup sync already
        covered.
    memo : `kopf.Memo`
        The operator-wide memo holding the reconciler.
    logger : `Any`
        The kopf logger.
    kwargs : `Any`
        Additional keyword arguments provided by kopf.
    """
    try:
        kind = EventKind(event["type"])
    except ValueError:
        return

    reconciler = memo.reconciler
    result = reconciler.handle_event(NamespaceEvent(kind=kind, name=name))
    for item in result.failed:
        logger.warning(
            f"Failed to {item.action} group {item.group}: {item.error}"
        )
