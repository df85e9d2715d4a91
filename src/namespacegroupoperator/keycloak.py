"""Client for the group endpoints of the Keycloak admin REST API."""

from __future__ import annotations

__all__ = ("KeycloakGroupDirectory",)

from typing import Any

import requests
import structlog

from namespacegroupoperator.exceptions import (
    GroupDirectoryError,
    GroupNotFoundError,
    KeycloakAuthError,
)

PAGE_SIZE = 100
"""Number of groups requested per page when listing a realm's groups."""


class KeycloakGroupDirectory:
    """Group directory backed by a Keycloak realm.

    Parameters
    ----------
    url : `str`
        Base URL of the Keycloak server, such as
        ``https://keycloak.example.com``.
    realm : `str`
        The realm whose groups are managed.
    username : `str`
        Admin user name.
    password : `str`
        Admin password.
    login_realm : `str`
        The realm the admin user belongs to.
    client_id : `str`
        The OpenID Connect client used for the password grant.
    verify : `bool`
        Whether to verify the server's TLS certificate.
    timeout : `float`
        Timeout of each request, in seconds.
    session : `requests.Session`, optional
        The HTTP session to use. A new one is created if not set.
    """

    def __init__(
        self,
        url: str,
        realm: str,
        *,
        username: str,
        password: str,
        login_realm: str = "master",
        client_id: str = "admin-cli",
        verify: bool = True,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url.rstrip("/")
        self.realm = realm
        self.login_realm = login_realm
        self.client_id = client_id
        self.timeout = timeout
        self._username = username
        self._password = password
        self._session = session or requests.Session()
        self._session.verify = verify
        self._token: str | None = None
        self._logger = structlog.get_logger(__name__)

    @classmethod
    def from_config(cls, config: Any) -> KeycloakGroupDirectory:
        """Create the client from a `~namespacegroupoperator.config.Config`."""
        return cls(
            config.keycloak_url,
            config.realm,
            username=config.keycloak_user,
            password=config.keycloak_password,
            login_realm=config.login_realm,
            client_id=config.client_id,
            verify=config.verify_tls,
            timeout=config.request_timeout,
        )

    @property
    def groups_url(self) -> str:
        return f"{self.url}/admin/realms/{self.realm}/groups"

    def login(self) -> None:
        """Obtain an admin access token.

        Raises
        ------
        namespacegroupoperator.exceptions.KeycloakAuthError
            Raised if Keycloak is unreachable or rejects the credentials.
        """
        token_url = (
            f"{self.url}/realms/{self.login_realm}"
            "/protocol/openid-connect/token"
        )
        try:
            response = self._session.post(
                token_url,
                data={
                    "grant_type": "password",
                    "client_id": self.client_id,
                    "username": self._username,
                    "password": self._password,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise KeycloakAuthError(
                f"failed to reach Keycloak at {token_url}: {exc}"
            ) from exc
        if response.status_code != 200:
            raise KeycloakAuthError(
                f"failed to login to Keycloak as {self._username}: "
                f"{response.status_code} {response.text}"
            )
        try:
            self._token = response.json()["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise KeycloakAuthError(
                f"unexpected token response from Keycloak: {exc!r}"
            ) from exc
        self._logger.debug("Logged in to Keycloak", realm=self.login_realm)

    def list(self) -> set[str]:
        """Get the names of the realm's top-level groups."""
        names: set[str] = set()
        first = 0
        while True:
            response = self._request(
                "GET",
                self.groups_url,
                params={
                    "first": first,
                    "max": PAGE_SIZE,
                    "briefRepresentation": "true",
                },
            )
            self._raise_for_status(response, "failed to fetch groups")
            page = self._parse_groups(response, "failed to fetch groups")
            names.update(group["name"] for group in page)
            if len(page) < PAGE_SIZE:
                return names
            first += PAGE_SIZE

    def create(self, name: str) -> None:
        """Create a top-level group.

        Creating a group that already exists is not an error.
        """
        response = self._request("POST", self.groups_url, json={"name": name})
        if response.status_code == 409:
            self._logger.debug("Group already exists", group=name)
            return
        self._raise_for_status(response, f"failed to create group {name}")

    def delete(self, name: str) -> None:
        """Delete a top-level group by name.

        Raises
        ------
        namespacegroupoperator.exceptions.GroupNotFoundError
            Raised if the realm has no group with this name.
        """
        group_id = self._find_group_id(name)
        response = self._request("DELETE", f"{self.groups_url}/{group_id}")
        if response.status_code == 404:
            raise GroupNotFoundError(name)
        self._raise_for_status(response, f"failed to delete group {name}")

    def _find_group_id(self, name: str) -> str:
        response = self._request(
            "GET",
            self.groups_url,
            params={"search": name, "exact": "true"},
        )
        self._raise_for_status(response, f"failed to look up group {name}")
        groups = self._parse_groups(
            response, f"failed to look up group {name}"
        )
        for group in groups:
            if group["name"] == name:
                return group["id"]
        raise GroupNotFoundError(name)

    def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        if self._token is None:
            self.login()
        response = self._send(method, url, **kwargs)
        if response.status_code == 401:
            # The access token expired; log in again and retry once.
            self._logger.debug("Refreshing Keycloak access token")
            self.login()
            response = self._send(method, url, **kwargs)
        return response

    def _send(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            return self._session.request(
                method,
                url,
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise GroupDirectoryError(
                f"{method} {url} failed: {exc}"
            ) from exc

    @staticmethod
    def _parse_groups(response: Any, message: str) -> list[dict[str, str]]:
        # Proxies in front of Keycloak may answer 200 with an HTML page.
        try:
            groups = response.json()
            return [
                {"id": str(group["id"]), "name": str(group["name"])}
                for group in groups
            ]
        except (ValueError, KeyError, TypeError) as exc:
            raise GroupDirectoryError(
                f"{message}: unexpected response body: {exc!r}"
            ) from exc

    @staticmethod
    def _raise_for_status(response: Any, message: str) -> None:
        if response.status_code >= 400:
            raise GroupDirectoryError(
                f"{message}: {response.status_code} {response.text}"
            )
