"""Reconcile Keycloak groups against the namespaces of the cluster."""

from __future__ import annotations

__all__ = (
    "EventKind",
    "GroupDirectory",
    "ItemResult",
    "NamespaceEvent",
    "NamespaceLister",
    "Reconciler",
    "SyncResult",
    "SyncState",
)

import enum
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Protocol

import structlog

from namespacegroupoperator.config import Config
from namespacegroupoperator.exceptions import GroupDirectoryError
from namespacegroupoperator.policy import (
    compile_filter,
    compute_diff,
    derive_group_names,
    filter_namespaces,
)


class EventKind(enum.Enum):
    """Kinds of namespace lifecycle events."""

    ADDED = "ADDED"
    DELETED = "DELETED"
    MODIFIED = "MODIFIED"


@dataclass(frozen=True)
class NamespaceEvent:
    """A namespace lifecycle event delivered by the watch stream."""

    kind: EventKind
    name: str


class SyncState(enum.Enum):
    """Lifecycle of `Reconciler.run`."""

    STARTING = "starting"
    SYNCING = "syncing"
    WATCHING = "watching"
    TERMINATED = "terminated"


class NamespaceLister(Protocol):
    """Lists the names of the namespaces in the cluster."""

    def list(self) -> list[str]:
        ...


class GroupDirectory(Protocol):
    """Lists, creates and deletes groups in the identity provider."""

    def list(self) -> set[str]:
        ...

    def create(self, name: str) -> None:
        ...

    def delete(self, name: str) -> None:
        ...


@dataclass(frozen=True)
class ItemResult:
    """Outcome of a single group creation or deletion."""

    action: str
    group: str
    ok: bool = True
    error: str | None = None


@dataclass
class SyncResult:
    """Outcomes of every group change attempted by one operation."""

    items: list[ItemResult] = field(default_factory=list)

    @property
    def created(self) -> list[str]:
        return [
            item.group
            for item in self.items
            if item.ok and item.action == "create"
        ]

    @property
    def deleted(self) -> list[str]:
        return [
            item.group
            for item in self.items
            if item.ok and item.action == "delete"
        ]

    @property
    def failed(self) -> list[ItemResult]:
        return [item for item in self.items if not item.ok]

    @property
    def ok(self) -> bool:
        """`True` if no attempted change failed."""
        return not self.failed


class Reconciler:
    """Converge the groups of a Keycloak realm on the cluster namespaces.

    Parameters
    ----------
    config : `~namespacegroupoperator.config.Config`
        The operator configuration.
    namespaces
        Namespace lister (see `NamespaceLister`).
    groups
        Group directory of the identity provider (see `GroupDirectory`).
    logger : optional
        A structlog logger. One is created if not set.

    Raises
    ------
    namespacegroupoperator.exceptions.InvalidFilterError
        Raised if the configured namespace filter does not compile. No
        namespace has been read at that point.
    """

    def __init__(
        self,
        config: Config,
        *,
        namespaces: NamespaceLister,
        groups: GroupDirectory,
        logger: Any | None = None,
    ) -> None:
        self.config = config
        self.namespaces = namespaces
        self.groups = groups
        self.state = SyncState.STARTING
        self._filter = compile_filter(config.namespace_filter)
        self._logger = logger or structlog.get_logger(__name__)

    def filter_namespaces(
        self, all_namespaces: Iterable[str] | None = None
    ) -> list[str]:
        """Select the namespaces matching the configured filter.

        The names are read from the namespace lister unless
        ``all_namespaces`` is given.
        """
        if all_namespaces is None:
            all_namespaces = self.namespaces.list()
        return filter_namespaces(all_namespaces, self._filter)

    def matches(self, namespace: str) -> bool:
        """Check a namespace name against the configured filter."""
        return self._filter.search(namespace) is not None

    def bulk_sync(self, namespaces: Iterable[str]) -> SyncResult:
        """Create and delete groups so the realm matches ``namespaces``.

        Failing to list the existing groups is fatal and the exception
        propagates. A failure to create or delete one group is logged and
        recorded in the result, and the remaining changes are still
        attempted.
        """
        existing = self.groups.list()
        desired = derive_group_names(namespaces, self.config.group_postfixes)
        diff = compute_diff(desired, existing, self.config.groups_prefix)
        self._logger.info(
            "Computed group diff",
            desired=len(desired),
            existing=len(existing),
            to_create=len(diff.to_create),
            to_delete=len(diff.to_delete),
        )

        result = SyncResult()
        for name in sorted(diff.to_create):
            result.items.append(self._create(name))
        for name in sorted(diff.to_delete):
            result.items.append(self._delete(name))
        return result

    def on_namespace_added(self, namespace: str) -> SyncResult:
        """Create the groups of a new namespace that do not exist yet."""
        result = SyncResult()
        try:
            existing = self.groups.list()
        except GroupDirectoryError as exc:
            self._logger.error(
                "Failed to fetch groups", namespace=namespace, error=str(exc)
            )
            return result

        for name in sorted(
            derive_group_names([namespace], self.config.group_postfixes)
        ):
            if name in existing:
                self._logger.debug("Group already exists", group=name)
                continue
            result.items.append(self._create(name))
        return result

    def on_namespace_deleted(self, namespace: str) -> SyncResult:
        """Delete every group derived from a deleted namespace."""
        result = SyncResult()
        for name in sorted(
            derive_group_names([namespace], self.config.group_postfixes)
        ):
            result.items.append(self._delete(name))
        return result

    def on_namespace_modified(self, namespace: str) -> SyncResult:
        # Renames cannot be linked to the old group names.
        self._logger.info("Namespace modified", namespace=namespace)
        return SyncResult()

    def handle_event(self, event: NamespaceEvent) -> SyncResult:
        """Dispatch a namespace event to its handler."""
        if not self.matches(event.name):
            self._logger.debug(
                "Ignoring event for filtered namespace",
                namespace=event.name,
                kind=event.kind.value,
            )
            return SyncResult()

        if event.kind is EventKind.ADDED:
            self._logger.info("Namespace added", namespace=event.name)
            return self.on_namespace_added(event.name)
        elif event.kind is EventKind.DELETED:
            self._logger.info("Namespace deleted", namespace=event.name)
            return self.on_namespace_deleted(event.name)
        else:
            return self.on_namespace_modified(event.name)

    def run(self, events: Iterable[NamespaceEvent]) -> int:
        """Run the bulk sync, then handle ``events`` until they run out.

        Each event is handled to completion before the next one is pulled
        from ``events``.

        Returns
        -------
        int
            The number of events handled.
        """
        self.state = SyncState.SYNCING
        namespaces = self.filter_namespaces()
        self._logger.info("Starting bulk sync", namespaces=len(namespaces))
        result = self.bulk_sync(namespaces)
        self._logger.info(
            "Bulk sync complete",
            created=len(result.created),
            deleted=len(result.deleted),
            failed=len(result.failed),
        )

        self.state = SyncState.WATCHING
        self._logger.info("Watching for namespace changes")
        count = 0
        for event in events:
            self.handle_event(event)
            count += 1

        self.state = SyncState.TERMINATED
        self._logger.info("Namespace watch stream closed", events=count)
        return count

    def _create(self, name: str) -> ItemResult:
        try:
            self.groups.create(name)
        except GroupDirectoryError as exc:
            self._logger.error(
                "Failed to create group", group=name, error=str(exc)
            )
            return ItemResult(
                action="create", group=name, ok=False, error=str(exc)
            )
        self._logger.info("Created group", group=name)
        return ItemResult(action="create", group=name)

    def _delete(self, name: str) -> ItemResult:
        try:
            self.groups.delete(name)
        except GroupDirectoryError as exc:
            self._logger.error(
                "Failed to delete group", group=name, error=str(exc)
            )
            return ItemResult(
                action="delete", group=name, ok=False, error=str(exc)
            )
        self._logger.info("Deleted group", group=name)
        return ItemResult(action="delete", group=name)
