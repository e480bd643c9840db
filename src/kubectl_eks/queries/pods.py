"""Pod listing for one cluster."""

from __future__ import annotations

from kubectl_eks.kube.client import DEFAULT_NAMESPACE, KubeClients
from kubectl_eks.models import ClusterPodList, ClusterRecord, PodInfo


def get_pods(
    clients: KubeClients,
    cluster: ClusterRecord,
    namespace: str = "",
    all_namespaces: bool = False,
) -> ClusterPodList:
    """List pods in *namespace* (``default`` when empty), or in every namespace."""
    core = clients.core()
    if all_namespaces:
        pods = core.list_pod_for_all_namespaces()
    else:
        pods = core.list_namespaced_pod(namespace or DEFAULT_NAMESPACE)

    return ClusterPodList(
        cluster=cluster,
        pods=[pod_info(pod) for pod in pods.items],
    )


def pod_info(pod) -> PodInfo:
    statuses = pod.status.container_statuses or []
    ready = sum(1 for cs in statuses if cs.ready)
    restarts = 0
    for cs in statuses:
        if cs.restart_count:
            restarts = cs.restart_count

    return PodInfo(
        name=pod.metadata.name,
        namespace=pod.metadata.namespace or "",
        ready=f"{ready}/{len(statuses)}",
        status=pod.status.phase or "",
        restarts=restarts,
        created_at=pod.metadata.creation_timestamp,
    )
