"""Kopf handlers for the namespace-group-operator."""

__all__ = (
    "handle_namespace_event",
    "start_operator",
)

from namespacegroupoperator.handlers.namespacewatcher import (
    handle_namespace_event,
    start_operator,
)
