"""Cluster-wide object counts."""

from __future__ import annotations

from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import ClusterRecord, ClusterStats


def get_stats(clients: KubeClients, cluster: ClusterRecord) -> ClusterStats:
    core = clients.core()
    stats = ClusterStats(cluster=cluster)

    for pod in core.list_pod_for_all_namespaces().items:
        stats.pod_count += 1
        if pod.status.phase != "Running":
            stats.pods_not_running += 1
        if any(cs.restart_count for cs in pod.status.container_statuses or []):
            stats.pods_with_restarts += 1

    nodes = core.list_node().items
    stats.node_count = len(nodes)
    for node in nodes:
        for cond in node.status.conditions or []:
            if cond.type == "Ready" and cond.status != "True":
                stats.nodes_not_ready += 1

    stats.namespace_count = len(core.list_namespace().items)
    return stats
