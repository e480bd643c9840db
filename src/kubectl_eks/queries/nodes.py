"""Node inventory for one cluster.

Each node is classified by the labels EKS and Karpenter put on it: compute
type (EC2 or Fargate) and what manages it (a managed nodegroup, a Fargate
profile, a Karpenter NodePool or legacy provisioner, or AWS itself).
"""

from __future__ import annotations

from typing import Any

from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import ClusterNodeList, ClusterRecord, NodeInfo

INSTANCE_TYPE_LABELS = ("node.kubernetes.io/instance-type", "beta.kubernetes.io/instance-type")

MANAGER_LABELS = (
    ("eks.amazonaws.com/nodegroup", "Nodegroup"),
    ("eks.amazonaws.com/fargate-profile", "Fargate"),
    ("karpenter.sh/nodepool", "Karpenter"),
    ("karpenter.sh/provisioner-name", "Karpenter"),
)


def get_nodes(clients: KubeClients, cluster: ClusterRecord) -> ClusterNodeList:
    nodes = clients.core().list_node().items
    return ClusterNodeList(cluster=cluster, nodes=[node_info(n) for n in nodes])


def node_info(node: Any) -> NodeInfo:
    labels = node.metadata.labels or {}
    instance_type = next((labels[k] for k in INSTANCE_TYPE_LABELS if labels.get(k)), "")
    compute = "Fargate" if labels.get("eks.amazonaws.com/compute-type") == "fargate" else "EC2"

    return NodeInfo(
        name=node.metadata.name,
        instance_type=instance_type,
        compute=compute,
        managed_by=managed_by(labels),
        status=_ready_status(node),
        created_at=node.metadata.creation_timestamp,
    )


def managed_by(labels: dict[str, str]) -> str:
    for key, manager in MANAGER_LABELS:
        if labels.get(key):
            return f"{manager}: {labels[key]}"
    return "AWS"


def _ready_status(node: Any) -> str:
    for cond in (node.status.conditions if node.status else None) or []:
        if cond.type == "Ready":
            return "Ready" if cond.status == "True" else "NotReady"
    return "Unknown"
