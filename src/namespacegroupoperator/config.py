"""Operator configuration, read once from the process environment."""

from __future__ import annotations

__all__ = ("Config",)

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from namespacegroupoperator.exceptions import ConfigurationError

_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class Config:
    """Immutable configuration of the operator.

    Build it with `Config.from_environ` at startup and hand it to the
    `~namespacegroupoperator.reconciler.Reconciler`; nothing else reads the
    environment.
    """

    group_postfixes: tuple[str, ...]
    """Postfixes appended to each namespace name to form group names."""

    keycloak_url: str
    """Base URL of the Keycloak server."""

    keycloak_user: str
    """Admin user used to authenticate against Keycloak."""

    keycloak_password: str = field(repr=False)
    """Password of ``keycloak_user``."""

    realm: str
    """Realm where the groups are listed, created and deleted."""

    namespace_filter: str = ""
    """Regular expression a namespace name must match to get groups."""

    groups_prefix: str = ""
    """Only groups starting with this prefix are deleted by a bulk sync."""

    login_realm: str = "master"
    """Realm the admin user authenticates against."""

    client_id: str = "admin-cli"
    """OpenID Connect client used for the admin login."""

    verify_tls: bool = True
    """Whether to verify the TLS certificate of the Keycloak server."""

    request_timeout: float = 30.0
    """Timeout, in seconds, of each Keycloak request."""

    watch_timeout: int | None = None
    """Server-side timeout, in seconds, of the namespace watch."""

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> Config:
        """Create the configuration from environment variables.

        Parameters
        ----------
        environ : `~collections.abc.Mapping`, optional
            The environment to read. Defaults to `os.environ`.

        Raises
        ------
        namespacegroupoperator.exceptions.ConfigurationError
            Raised if a required variable is missing or a value cannot be
            parsed.
        """
        if environ is None:
            environ = os.environ

        postfixes = tuple(
            postfix.strip()
            for postfix in environ.get("GROUP_POSTFIXES", "").split(",")
            if postfix.strip()
        )
        if not postfixes:
            raise ConfigurationError(
                "GROUP_POSTFIXES must list at least one group postfix"
            )

        watch_timeout = environ.get("WATCH_TIMEOUT_SECONDS", "").strip()

        return cls(
            group_postfixes=postfixes,
            keycloak_url=_require(environ, "KEYCLOAK_URL").rstrip("/"),
            keycloak_user=_require(environ, "KEYCLOAK_USER"),
            keycloak_password=_require(environ, "KEYCLOAK_PASS"),
            realm=_require(environ, "KEYCLOAK_REALM"),
            namespace_filter=environ.get("NAMESPACE_FILTER", ""),
            groups_prefix=environ.get("GROUPS_PREFIX", ""),
            login_realm=environ.get("KEYCLOAK_LOGIN_REALM") or "master",
            client_id=environ.get("KEYCLOAK_CLIENT_ID") or "admin-cli",
            verify_tls=_parse_bool(environ, "KEYCLOAK_VERIFY_TLS", True),
            request_timeout=_parse_number(
                environ, "KEYCLOAK_TIMEOUT", "30", float
            ),
            watch_timeout=(
                _parse_number(environ, "WATCH_TIMEOUT_SECONDS", "0", int)
                if watch_timeout
                else None
            ),
        )


def _require(environ: Mapping[str, str], name: str) -> str:
    value = environ.get(name, "").strip()
    if not value:
        raise ConfigurationError(f"{name} is not set")
    return value


def _parse_bool(environ: Mapping[str, str], name: str, default: bool) -> bool:
    value = environ.get(name, "").strip().lower()
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_number(environ, name, default, kind):
    value = environ.get(name, "").strip() or default
    try:
        number = kind(value)
    except ValueError as err:
        raise ConfigurationError(
            f"{name} must be a number, got {value!r}"
        ) from err
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number
