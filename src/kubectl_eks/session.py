"""EksSession: one command invocation's worth of state.

Wires the profile inventory, cluster cache, AWS client, resolver and
context switcher together.  The cache is loaded on entry and saved exactly
once on exit, whether the command succeeded or not.

Usage::

    with EksSession(load_config()) as session:
        clusters = session.resolve(FilterCriteria(name_contains="prod"))
        stats = session.run_across_clusters(clusters, get_stats)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from types import TracebackType
from typing import TypeVar

from kubectl_eks.aws.eks import AwsClusterClient
from kubectl_eks.cache.store import ClusterCache
from kubectl_eks.config import KubectlEksConfig
from kubectl_eks.kube.client import KubeClients
from kubectl_eks.kube.kubeconfig import KubeconfigFile
from kubectl_eks.kube.switcher import AwsCliSwitcher, ClusterSwitch, ContextSwitcher
from kubectl_eks.models import ClusterRecord, FilterCriteria
from kubectl_eks.profiles.loader import ProfileInventory
from kubectl_eks.resolver.clusters import ClusterResolver

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EksSession:
    """Owns every collaborator a multi-cluster command needs."""

    def __init__(
        self,
        config: KubectlEksConfig,
        source: AwsClusterClient | None = None,
        switch: ClusterSwitch | None = None,
        clients_factory: Callable[[], KubeClients] | None = None,
    ) -> None:
        self.config = config
        self.profiles = ProfileInventory(config.aws_config, config.hint_marker)
        self.cache = ClusterCache(config.cache_file)
        self.kubeconfig = KubeconfigFile(config.kubeconfig)
        self.source = source or AwsClusterClient()
        self.resolver = ClusterResolver(self.profiles, self.cache, self.source, self.kubeconfig)
        self.switcher = ContextSwitcher(
            self.kubeconfig,
            switch or AwsCliSwitcher(config.aws_cli, config.kubeconfig),
        )
        self._clients_factory = clients_factory or (lambda: KubeClients(config.kubeconfig))
        self._loaded = False

    def __enter__(self) -> EksSession:
        self.cache.load()
        self._loaded = True
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if self._loaded:
            self._loaded = False
            self.cache.save()
            logger.debug("Saved cluster cache to %s", self.cache.path)

    def resolve(
        self,
        filters: FilterCriteria,
        arn: str | None = None,
        refresh: bool = False,
    ) -> list[ClusterRecord]:
        return self.resolver.resolve(filters, arn=arn, refresh=refresh)

    def clients(self) -> KubeClients:
        """API clients for whatever cluster the ambient context points at now."""
        return self._clients_factory()

    def run_across_clusters(
        self,
        clusters: Sequence[ClusterRecord],
        visit: Callable[[KubeClients, ClusterRecord], T],
    ) -> list[T]:
        """Visit each cluster with fresh API clients, restoring the context after."""
        return self.switcher.run_across_clusters(
            clusters, lambda cluster: visit(self.clients(), cluster),
        )
