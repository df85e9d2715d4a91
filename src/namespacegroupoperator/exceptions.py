"""Exceptions raised by the namespace-group-operator."""

__all__ = (
    "ConfigurationError",
    "GroupDirectoryError",
    "GroupNotFoundError",
    "InvalidFilterError",
    "KeycloakAuthError",
    "OperatorError",
)


class OperatorError(Exception):
    """Base class for the operator's errors."""


class ConfigurationError(OperatorError):
    """The process environment does not describe a usable configuration."""


class InvalidFilterError(OperatorError):
    """The namespace filter is not a valid regular expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        super().__init__(f"invalid namespace filter {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class GroupDirectoryError(OperatorError):
    """A call to the identity provider's group API failed."""


class KeycloakAuthError(GroupDirectoryError):
    """Authentication against Keycloak failed."""


class GroupNotFoundError(GroupDirectoryError):
    """The named group does not exist in the realm."""

    def __init__(self, name: str) -> None:
        super().__init__(f"group {name} not found")
        self.name = name
