"""Code intended to run on start-up: wiring the reconciler to its
collaborators and running it.
"""

__all__ = ("build_reconciler", "configure_logging", "main")

import argparse
import logging
import sys
from typing import Any

import structlog
from kubernetes.client.exceptions import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError

from namespacegroupoperator.config import Config
from namespacegroupoperator.exceptions import OperatorError
from namespacegroupoperator.k8s import (
    NamespaceLister,
    NamespaceWatchStream,
    create_k8sclient,
)
from namespacegroupoperator.keycloak import KeycloakGroupDirectory
from namespacegroupoperator.reconciler import Reconciler


def configure_logging(*, verbose: bool = False, json: bool = False) -> None:
    """Configure structlog and the standard library logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)
    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def build_reconciler(
    config: Config, *, k8s_client: Any, logger: Any | None = None
) -> Reconciler:
    """Create a reconciler wired to the cluster and to Keycloak.

    The Keycloak client logs in immediately so that bad credentials are
    reported before anything is synced.
    """
    groups = KeycloakGroupDirectory.from_config(config)
    groups.login()
    return Reconciler(
        config,
        namespaces=NamespaceLister(k8s_client),
        groups=groups,
        logger=logger,
    )


def main(argv: list[str] | None = None) -> int:
    """Run the bulk sync and then watch namespaces until the watch closes.

    Returns
    -------
    int
        The process exit code: 0 once the watch stream closes, 1 on a fatal
        startup error.
    """
    parser = argparse.ArgumentParser(
        description="Sync Keycloak groups with Kubernetes namespaces."
    )
    parser.add_argument(
        "--verbose", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--json", action="store_true", help="Log in JSON format"
    )
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, json=args.json)
    logger = structlog.get_logger(__name__)

    try:
        config = Config.from_environ()
        k8s_client = create_k8sclient()
        reconciler = build_reconciler(
            config, k8s_client=k8s_client, logger=logger
        )
        events = NamespaceWatchStream(
            k8s_client,
            timeout_seconds=config.watch_timeout,
            lister=reconciler.namespaces,
        )
        reconciler.run(events)
    except (OperatorError, ApiException, ConfigException, HTTPError) as exc:
        logger.error("Fatal error", error=str(exc))
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
