"""Cross-cluster context switching.

The current kubeconfig context is one process-wide mutable resource: every
unqualified Kubernetes API call targets it.  ``ContextSwitcher`` is the only
code that moves it, and always puts it back:

    switcher = ContextSwitcher(kubeconfig, AwsCliSwitcher())
    rows = switcher.run_across_clusters(clusters, visit)

Visits are strictly sequential.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, TypeVar

from kubectl_eks.errors import ConfigLoadError, ContextSwitchError, KubectlEksError
from kubectl_eks.kube.kubeconfig import KubeconfigFile
from kubectl_eks.models import ClusterRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ClusterSwitch(Protocol):
    """Points the current kubeconfig context at a cluster."""

    def switch(self, cluster: ClusterRecord) -> None: ...


class AwsCliSwitcher:
    """Switch clusters with ``aws eks update-kubeconfig``.

    The AWS CLI writes (or refreshes) a context named after the cluster ARN
    and makes it current.
    """

    def __init__(
        self,
        aws_cli: str = "aws",
        kubeconfig: str | Path | None = None,
        timeout: float | None = None,
    ) -> None:
        self._aws_cli = aws_cli
        self._kubeconfig = Path(kubeconfig) if kubeconfig is not None else None
        self._timeout = timeout

    def build_command(self, cluster: ClusterRecord) -> list[str]:
        cmd = [
            self._aws_cli, "eks", "update-kubeconfig",
            "--name", cluster.cluster_name,
            "--region", cluster.region,
        ]
        if cluster.profile_name:
            cmd += ["--profile", cluster.profile_name]
        if self._kubeconfig is not None:
            cmd += ["--kubeconfig", str(self._kubeconfig)]
        return cmd

    def switch(self, cluster: ClusterRecord) -> None:
        cmd = self.build_command(cluster)
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise ContextSwitchError(f"AWS CLI not found: {self._aws_cli}") from e
        except subprocess.TimeoutExpired as e:
            raise ContextSwitchError(
                f"Timed out updating kubeconfig for {cluster.cluster_name}"
            ) from e

        if result.returncode != 0:
            raise ContextSwitchError(
                f"aws eks update-kubeconfig failed for {cluster.cluster_name} "
                f"(exit {result.returncode}): {result.stderr.strip()}"
            )
        logger.debug("Switched kubeconfig to %s", cluster.arn or cluster.cluster_name)


class ContextSwitcher:
    """Save, mutate and restore the current kubeconfig context."""

    def __init__(self, kubeconfig: KubeconfigFile, switch: ClusterSwitch) -> None:
        self._kubeconfig = kubeconfig
        self._switch = switch

    def switch_to(self, cluster: ClusterRecord) -> None:
        """Point the current context at *cluster* without restoring it later."""
        self._switch.switch(cluster)

    @contextmanager
    def preserved(self) -> Iterator[str]:
        """Restore the current context on every exit path.

        Yields the captured context name.
        """
        previous = self._capture()
        try:
            yield previous
        finally:
            self._restore(previous)

    def run_across_clusters(
        self,
        clusters: Sequence[ClusterRecord],
        visit: Callable[[ClusterRecord], T],
    ) -> list[T]:
        """Switch to each cluster in turn and call *visit*.

        A failed switch or a failed visit is logged and that cluster is
        skipped.  Returns the results of the successful visits, in order.
        When the only target is already the current cluster no switching
        happens at all.
        """
        if self._is_current_only(clusters):
            return self._visit_all(clusters, visit, switch=False)

        with self.preserved():
            return self._visit_all(clusters, visit, switch=True)

    # --- Private ---

    def _visit_all(
        self,
        clusters: Sequence[ClusterRecord],
        visit: Callable[[ClusterRecord], T],
        switch: bool,
    ) -> list[T]:
        results: list[T] = []
        for cluster in clusters:
            if switch:
                try:
                    self._switch.switch(cluster)
                except KubectlEksError as e:
                    logger.warning(
                        "Failed to update kubeconfig for cluster %s: %s",
                        cluster.cluster_name, e,
                    )
                    continue
            try:
                results.append(visit(cluster))
            except Exception as e:
                logger.warning(
                    "Failed to query cluster %s: %s", cluster.cluster_name, e,
                )
        return results

    def _is_current_only(self, clusters: Sequence[ClusterRecord]) -> bool:
        if len(clusters) != 1 or not clusters[0].arn:
            return False
        try:
            return self._kubeconfig.current_cluster() == clusters[0].arn
        except ConfigLoadError:
            return False

    def _capture(self) -> str:
        try:
            return self._kubeconfig.current_context()
        except ConfigLoadError as e:
            logger.debug("No context to restore: %s", e)
            return ""

    def _restore(self, previous: str) -> None:
        if not previous:
            return
        try:
            self._kubeconfig.use_context(previous)
        except (ConfigLoadError, OSError) as e:
            logger.error("Failed to restore kubeconfig context %s: %s", previous, e)
