"""Workload health checks for one cluster.

Rules per kind:

- Pod: ``Succeeded`` is healthy ("Completed"); ``Running`` is healthy when
  every container is ready.  Pending and failed pods report why.
- Deployment: ready, available and updated replicas all equal desired.
- StatefulSet: ready replicas equal desired.
- DaemonSet: ready and available nodes equal desired.
- ReplicaSet: ready replicas equal desired; scaled-to-zero sets are skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import ClusterHealthSummary, ClusterRecord, HealthCheckResult
from kubectl_eks.resources.status import ResourceKind

logger = logging.getLogger(__name__)

HEALTH_KINDS: tuple[ResourceKind, ...] = (
    ResourceKind.POD,
    ResourceKind.DEPLOYMENT,
    ResourceKind.STATEFULSET,
    ResourceKind.DAEMONSET,
    ResourceKind.REPLICASET,
)


def check_cluster(
    clients: KubeClients,
    cluster: ClusterRecord,
    namespace: str = "",
    kinds: Iterable[ResourceKind] = HEALTH_KINDS,
) -> list[HealthCheckResult]:
    """Check every workload of *kinds* in *namespace*, or in all namespaces."""
    wanted = set(kinds)
    kinds = [k for k in HEALTH_KINDS if k in wanted]
    if namespace:
        namespaces = [namespace]
    else:
        try:
            namespaces = clients.list_namespaces()
        except Exception as exc:
            logger.warning("Failed to list namespaces in %s: %s", cluster.cluster_name, exc)
            namespaces = []

    results: list[HealthCheckResult] = []
    for ns in namespaces:
        for kind in kinds:
            results.extend(_check_kind(clients, cluster, ns, kind))
    return results


def summarize(cluster: ClusterRecord, results: Iterable[HealthCheckResult]) -> ClusterHealthSummary:
    summary = ClusterHealthSummary(
        profile=cluster.profile_name,
        region=cluster.region,
        cluster_name=cluster.cluster_name,
        totals={str(k): 0 for k in HEALTH_KINDS},
        healthy={str(k): 0 for k in HEALTH_KINDS},
    )
    unhealthy = 0
    for result in results:
        summary.totals[result.kind] = summary.totals.get(result.kind, 0) + 1
        if result.is_healthy:
            summary.healthy[result.kind] = summary.healthy.get(result.kind, 0) + 1
        else:
            unhealthy += 1

    summary.overall_status = "Healthy" if unhealthy == 0 else f"{unhealthy} Unhealthy"
    return summary


# --- Per-kind checks ---


def _check_kind(
    clients: KubeClients,
    cluster: ClusterRecord,
    namespace: str,
    kind: ResourceKind,
) -> list[HealthCheckResult]:
    match kind:
        case ResourceKind.POD:
            list_items = clients.core().list_namespaced_pod
            check: Callable[[Any], tuple[str, str, str, bool] | None] = _pod_health
        case ResourceKind.DEPLOYMENT:
            list_items = clients.apps().list_namespaced_deployment
            check = _deployment_health
        case ResourceKind.STATEFULSET:
            list_items = clients.apps().list_namespaced_stateful_set
            check = _statefulset_health
        case ResourceKind.DAEMONSET:
            list_items = clients.apps().list_namespaced_daemon_set
            check = _daemonset_health
        case ResourceKind.REPLICASET:
            list_items = clients.apps().list_namespaced_replica_set
            check = _replicaset_health
        case _:
            return []

    try:
        items = list_items(namespace).items
    except Exception as exc:
        logger.warning(
            "Failed to list %s in %s/%s: %s", kind, cluster.cluster_name, namespace, exc,
        )
        return []

    results = []
    for item in items:
        verdict = check(item)
        if verdict is None:
            continue
        ready, status, message, healthy = verdict
        results.append(HealthCheckResult(
            profile=cluster.profile_name,
            region=cluster.region,
            cluster_name=cluster.cluster_name,
            namespace=item.metadata.namespace or namespace,
            kind=str(kind),
            name=item.metadata.name,
            ready=ready,
            status=status,
            message=message,
            is_healthy=healthy,
        ))
    return results


def _pod_health(pod) -> tuple[str, str, str, bool]:
    phase = pod.status.phase or ""
    total = len(pod.spec.containers or [])
    ready = sum(1 for cs in pod.status.container_statuses or [] if cs.ready)
    ready_str = f"{ready}/{total}"

    if phase == "Succeeded":
        return ready_str, phase, "Completed", True
    if phase == "Running":
        if ready == total and total > 0:
            return ready_str, phase, "All containers ready", True
        return ready_str, phase, f"Containers not ready: {ready}/{total}", False
    if phase == "Pending":
        return ready_str, phase, _pending_reason(pod), False
    if phase == "Failed":
        return ready_str, phase, _failed_reason(pod), False
    return ready_str, phase, f"Unknown phase: {phase}", False


def _pending_reason(pod) -> str:
    for cond in pod.status.conditions or []:
        if cond.type == "PodScheduled" and cond.status == "False":
            return f"Unschedulable: {cond.message or ''}"
    for cs in pod.status.container_statuses or []:
        if cs.state is not None and cs.state.waiting is not None:
            return f"Waiting: {cs.state.waiting.reason or ''}"
    return "Pending"


def _failed_reason(pod) -> str:
    if pod.status.reason:
        return pod.status.reason
    for cs in pod.status.container_statuses or []:
        terminated = cs.state.terminated if cs.state is not None else None
        if terminated is not None and terminated.reason:
            return terminated.reason
    return "Failed"


def _deployment_health(deploy) -> tuple[str, str, str, bool]:
    desired = deploy.spec.replicas if deploy.spec.replicas is not None else 1
    ready = deploy.status.ready_replicas or 0
    available = deploy.status.available_replicas or 0
    updated = deploy.status.updated_replicas or 0

    ready_str = f"{ready}/{desired}"
    status = f"Available:{available} UpToDate:{updated}"
    if ready == desired and available == desired and updated == desired:
        return ready_str, status, "All replicas ready", True

    for cond in deploy.status.conditions or []:
        if cond.type in ("Available", "Progressing") and cond.status == "False":
            return ready_str, status, cond.message or "", False
    return ready_str, status, f"Ready {ready}/{desired}", False


def _statefulset_health(sts) -> tuple[str, str, str, bool]:
    desired = sts.spec.replicas if sts.spec.replicas is not None else 1
    ready = sts.status.ready_replicas or 0
    status = f"CurrentRevision:{sts.status.current_revision or ''}"
    if ready == desired:
        return f"{ready}/{desired}", status, "All replicas ready", True
    return f"{ready}/{desired}", status, f"Ready {ready}/{desired}", False


def _daemonset_health(ds) -> tuple[str, str, str, bool]:
    desired = ds.status.desired_number_scheduled or 0
    ready = ds.status.number_ready or 0
    available = ds.status.number_available or 0
    unavailable = ds.status.number_unavailable or 0

    status = f"Available:{available} Unavailable:{unavailable}"
    if ready == desired and available == desired:
        return f"{ready}/{desired}", status, "All nodes ready", True
    message = f"Ready {ready}/{desired}, Unavailable {unavailable}"
    return f"{ready}/{desired}", status, message, False


def _replicaset_health(rs) -> tuple[str, str, str, bool] | None:
    desired = rs.spec.replicas or 0
    if desired == 0:
        return None
    ready = rs.status.ready_replicas or 0
    status = f"Replicas:{rs.status.replicas or 0}"
    if ready == desired:
        return f"{ready}/{desired}", status, "All replicas ready", True
    return f"{ready}/{desired}", status, f"Ready {ready}/{desired}", False
