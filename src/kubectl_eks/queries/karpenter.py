"""Karpenter NodePools and NodeClaims for one cluster.

Both are cluster-scoped ``karpenter.sh/v1`` custom resources, read as raw
JSON.  Drift and AMI usage are derived from the NodeClaims.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any

from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import (
    ClusterRecord,
    KarpenterAmiUsage,
    KarpenterNodeClaim,
    KarpenterNodePool,
)

logger = logging.getLogger(__name__)

KARPENTER_API = "/apis/karpenter.sh/v1"

REQUIREMENT_FIELDS = {
    "node.kubernetes.io/instance-type": "instance_types",
    "karpenter.sh/capacity-type": "capacity_types",
    "topology.kubernetes.io/zone": "zones",
}


def get_nodepools(clients: KubeClients, cluster: ClusterRecord) -> list[KarpenterNodePool]:
    """NodePools of *cluster*.  Objects without a ``spec`` are skipped."""
    pools: list[KarpenterNodePool] = []
    for obj in _list(clients, "nodepools"):
        spec = obj.get("spec")
        if not isinstance(spec, dict):
            continue
        pools.append(nodepool_from_object(cluster, obj["metadata"]["name"], spec))
    return pools


def nodepool_from_object(
    cluster: ClusterRecord, name: str, spec: dict[str, Any],
) -> KarpenterNodePool:
    template_spec = (spec.get("template") or {}).get("spec") or {}
    limits = spec.get("limits") or {}
    disruption = spec.get("disruption") or {}

    requirements: dict[str, list[str]] = {field: [] for field in REQUIREMENT_FIELDS.values()}
    for req in template_spec.get("requirements") or []:
        field = REQUIREMENT_FIELDS.get(req.get("key", ""))
        if field:
            requirements[field].extend(str(v) for v in req.get("values") or [])

    weight = spec.get("weight")
    return KarpenterNodePool(
        profile=cluster.profile_name,
        region=cluster.region,
        cluster_name=cluster.cluster_name,
        name=name,
        node_class=(template_spec.get("nodeClassRef") or {}).get("name", ""),
        cpu_limit=str(limits.get("cpu") or ""),
        memory_limit=str(limits.get("memory") or ""),
        consolidation_policy=disruption.get("consolidationPolicy", ""),
        expire_after=str(disruption.get("expireAfter") or template_spec.get("expireAfter") or ""),
        weight=weight if isinstance(weight, int) else 0,
        **requirements,
    )


def get_nodeclaims(clients: KubeClients, cluster: ClusterRecord) -> list[KarpenterNodeClaim]:
    """NodeClaims of *cluster*.  Objects without a ``spec`` are skipped."""
    claims: list[KarpenterNodeClaim] = []
    for obj in _list(clients, "nodeclaims"):
        if not isinstance(obj.get("spec"), dict):
            continue
        claims.append(nodeclaim_from_object(cluster, obj))
    return claims


def nodeclaim_from_object(cluster: ClusterRecord, obj: dict[str, Any]) -> KarpenterNodeClaim:
    """Build a NodeClaim row.

    Status is ``Ready``/``NotReady`` from the Ready condition, ``Pending``
    while that condition is absent, and ``Unknown`` with no status at all.
    """
    metadata = obj.get("metadata") or {}
    labels = metadata.get("labels") or {}
    status = obj.get("status")

    claim = KarpenterNodeClaim(
        profile=cluster.profile_name,
        region=cluster.region,
        cluster_name=cluster.cluster_name,
        name=metadata.get("name", ""),
        node_pool=labels.get("karpenter.sh/nodepool", ""),
        created_at=_parse_time(metadata.get("creationTimestamp")),
    )
    if not isinstance(status, dict):
        claim.status = "Unknown"
        return claim

    claim.node_name = status.get("nodeName", "")
    claim.image_id = status.get("imageID", "")
    claim.instance_type = labels.get("node.kubernetes.io/instance-type", "")
    claim.zone = labels.get("topology.kubernetes.io/zone", "")
    claim.capacity_type = labels.get("karpenter.sh/capacity-type", "")

    for cond in status.get("conditions") or []:
        if cond.get("type") == "Ready":
            claim.status = "Ready" if cond.get("status") == "True" else "NotReady"
        elif cond.get("type") == "Drifted" and cond.get("status") == "True":
            claim.drifted = True
    if not claim.status:
        claim.status = "Pending"
    return claim


def get_drifted(clients: KubeClients, cluster: ClusterRecord) -> list[KarpenterNodeClaim]:
    return [c for c in get_nodeclaims(clients, cluster) if c.drifted]


def get_ami_usage(clients: KubeClients, cluster: ClusterRecord) -> list[KarpenterAmiUsage]:
    """Count NodeClaims per (NodePool, image)."""
    counts = Counter(
        (c.node_pool, c.image_id)
        for c in get_nodeclaims(clients, cluster)
        if c.node_pool and c.image_id
    )
    return [
        KarpenterAmiUsage(
            profile=cluster.profile_name,
            region=cluster.region,
            cluster_name=cluster.cluster_name,
            node_pool=pool,
            image_id=image,
            node_count=count,
        )
        for (pool, image), count in sorted(counts.items())
    ]


# --- Private ---


def _list(clients: KubeClients, plural: str) -> list[dict[str, Any]]:
    return clients.get_raw(f"{KARPENTER_API}/{plural}").get("items") or []


def _parse_time(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
