"""Keep Keycloak groups in sync with the namespaces of a Kubernetes
cluster.
"""

from namespacegroupoperator.version import __version__

__all__ = ("__version__",)
