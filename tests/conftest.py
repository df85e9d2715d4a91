"""Shared fixtures: in-memory stand-ins for the cluster and Keycloak."""

from __future__ import annotations

import pytest

from namespacegroupoperator.config import Config
from namespacegroupoperator.exceptions import (
    GroupDirectoryError,
    GroupNotFoundError,
)


class FakeNamespaceLister:
    def __init__(self, names: list[str]) -> None:
        self.names = names
        self.calls = 0

    def list(self) -> list[str]:
        self.calls += 1
        return list(self.names)


class FakeGroupDirectory:
    """Records every call and keeps groups in a set."""

    def __init__(self, groups: set[str] | None = None) -> None:
        self.groups = set(groups or ())
        self.calls: list[tuple[str, str | None]] = []
        self.fail_on: set[str] = set()
        self.fail_list = False

    def list(self) -> set[str]:
        self.calls.append(("list", None))
        if self.fail_list:
            raise GroupDirectoryError("failed to fetch groups: 503")
        return set(self.groups)

    def create(self, name: str) -> None:
        self.calls.append(("create", name))
        if name in self.fail_on:
            raise GroupDirectoryError(f"failed to create group {name}: 500")
        self.groups.add(name)

    def delete(self, name: str) -> None:
        self.calls.append(("delete", name))
        if name in self.fail_on:
            raise GroupDirectoryError(f"failed to delete group {name}: 500")
        if name not in self.groups:
            raise GroupNotFoundError(name)
        self.groups.remove(name)

    def calls_of(self, action: str) -> list[str | None]:
        return [name for kind, name in self.calls if kind == action]


def make_config(**overrides: object) -> Config:
    values: dict = {
        "group_postfixes": ("admins", "viewers"),
        "keycloak_url": "https://keycloak.example.com",
        "keycloak_user": "admin",
        "keycloak_password": "secret",
        "realm": "cluster",
    }
    values.update(overrides)
    return Config(**values)


@pytest.fixture
def config() -> Config:
    return make_config()


@pytest.fixture
def group_directory() -> FakeGroupDirectory:
    return FakeGroupDirectory()
