"""Tests for the kopf handlers in namespacegroupoperator.handlers."""

from __future__ import annotations

from unittest import mock

import kopf
import pytest
from conftest import FakeGroupDirectory, FakeNamespaceLister, make_config

from namespacegroupoperator.exceptions import KeycloakAuthError
from namespacegroupoperator.handlers import (
    handle_namespace_event,
    start_operator,
)
from namespacegroupoperator.reconciler import Reconciler

HANDLERS = "namespacegroupoperator.handlers.namespacewatcher"

ENVIRON = {
    "GROUP_POSTFIXES": "admins,viewers",
    "KEYCLOAK_URL": "https://keycloak.example.com",
    "KEYCLOAK_USER": "admin",
    "KEYCLOAK_PASS": "secret",
    "KEYCLOAK_REALM": "cluster",
}


@pytest.fixture
def groups() -> FakeGroupDirectory:
    return FakeGroupDirectory({"stale"})


@pytest.fixture
def memo(groups: FakeGroupDirectory) -> kopf.Memo:
    memo = kopf.Memo()
    memo.reconciler = Reconciler(
        make_config(namespace_filter="^team-"),
        namespaces=FakeNamespaceLister(["team-a", "kube-system"]),
        groups=groups,
    )
    return memo


def test_start_operator(
    monkeypatch: pytest.MonkeyPatch,
    memo: kopf.Memo,
    groups: FakeGroupDirectory,
) -> None:
    for name, value in ENVIRON.items():
        monkeypatch.setenv(name, value)
    reconciler = memo.reconciler
    settings = kopf.OperatorSettings()
    new_memo = kopf.Memo()

    with mock.patch(f"{HANDLERS}.create_k8sclient"), mock.patch(
        f"{HANDLERS}.build_reconciler", return_value=reconciler
    ):
        start_operator(settings=settings, memo=new_memo, logger=mock.Mock())

    assert new_memo.reconciler is reconciler
    assert settings.watching.clusterwide is True
    assert settings.execution.max_workers == 1
    assert groups.groups == {"team-a-admins", "team-a-viewers"}


def test_start_operator_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in ENVIRON.items():
        monkeypatch.setenv(name, value)

    with mock.patch(f"{HANDLERS}.create_k8sclient"), mock.patch(
        f"{HANDLERS}.build_reconciler",
        side_effect=KeycloakAuthError("invalid credentials"),
    ):
        with pytest.raises(kopf.PermanentError):
            start_operator(
                settings=kopf.OperatorSettings(),
                memo=kopf.Memo(),
                logger=mock.Mock(),
            )


def test_handle_namespace_added(
    memo: kopf.Memo, groups: FakeGroupDirectory
) -> None:
    handle_namespace_event(
        name="team-b",
        event={"type": "ADDED", "object": {}},
        memo=memo,
        logger=mock.Mock(),
    )
    assert groups.calls_of("create") == ["team-b-admins", "team-b-viewers"]


def test_handle_namespace_deleted(
    memo: kopf.Memo, groups: FakeGroupDirectory
) -> None:
    logger = mock.Mock()
    handle_namespace_event(
        name="team-b",
        event={"type": "DELETED", "object": {}},
        memo=memo,
        logger=logger,
    )
    assert groups.calls_of("delete") == ["team-b-admins", "team-b-viewers"]
    # Neither group existed, so both deletions are reported.
    assert logger.warning.call_count == 2


def test_handle_initial_listing_is_ignored(
    memo: kopf.Memo, groups: FakeGroupDirectory
) -> None:
    handle_namespace_event(
        name="team-b",
        event={"type": None, "object": {}},
        memo=memo,
        logger=mock.Mock(),
    )
    assert groups.calls == []
