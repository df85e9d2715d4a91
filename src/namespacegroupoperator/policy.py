"""Naming and filtering policy that maps namespaces to Keycloak groups.

Everything in this module is free of I/O so that it can be reused by the
bulk sync and the per-event handlers alike.
"""

from __future__ import annotations

__all__ = (
    "GroupDiff",
    "compile_filter",
    "compute_diff",
    "derive_group_names",
    "filter_namespaces",
    "format_group_name",
)

import re
from collections.abc import Iterable
from dataclasses import dataclass

from namespacegroupoperator.exceptions import InvalidFilterError


@dataclass(frozen=True)
class GroupDiff:
    """Changes needed to converge the existing groups on the desired ones."""

    to_create: frozenset[str]
    """Desired groups missing from the identity provider."""

    to_delete: frozenset[str]
    """Existing groups within the prefix that are no longer desired."""

    @property
    def empty(self) -> bool:
        """`True` if the existing groups already match."""
        return not (self.to_create or self.to_delete)


def format_group_name(namespace: str, postfix: str) -> str:
    """Format the name of the group for a namespace and a postfix."""
    return f"{namespace}-{postfix}"


def derive_group_names(
    namespaces: Iterable[str], postfixes: Iterable[str]
) -> set[str]:
    """Derive the desired group names for a set of namespaces.

    Parameters
    ----------
    namespaces : iterable of `str`
        Names of the namespaces, already filtered.
    postfixes : iterable of `str`
        The configured group postfixes.

    Returns
    -------
    set of `str`
        One ``{namespace}-{postfix}`` name for every combination.
    """
    postfixes = tuple(postfixes)
    return {
        format_group_name(namespace, postfix)
        for namespace in namespaces
        for postfix in postfixes
    }


def compute_diff(
    desired: Iterable[str], existing: Iterable[str], prefix: str
) -> GroupDiff:
    """Compute the groups to create and delete.

    Existing groups that do not start with ``prefix`` are never scheduled for
    deletion, whether or not they are desired.
    """
    desired = frozenset(desired)
    existing = frozenset(existing)
    return GroupDiff(
        to_create=desired - existing,
        to_delete=frozenset(
            name
            for name in existing
            if name.startswith(prefix) and name not in desired
        ),
    )


def compile_filter(pattern: str) -> re.Pattern[str]:
    """Compile the namespace filter expression.

    Raises
    ------
    namespacegroupoperator.exceptions.InvalidFilterError
        Raised if ``pattern`` is not a valid regular expression.
    """
    try:
        return re.compile(pattern)
    except re.error as err:
        raise InvalidFilterError(pattern, str(err)) from err


def filter_namespaces(
    all_namespaces: Iterable[str], pattern: str | re.Pattern[str]
) -> list[str]:
    """Select the namespaces whose name matches the filter.

    The filter matches anywhere in the name, so an empty pattern selects every
    namespace. The order of ``all_namespaces`` is kept.
    """
    if isinstance(pattern, str):
        pattern = compile_filter(pattern)
    return [name for name in all_namespaces if pattern.search(name)]
