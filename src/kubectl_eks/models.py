"""Core data models for kubectl-eks.

Defines the schemas for:
- AWS profiles and the EKS regions hinted for them
- Cluster records (what the cache stores)
- Filter criteria (which clusters a command targets)
- Per-cluster query results (pods, stats, health, generic resources,
  nodes, Karpenter objects)
- EKS control-plane details (nodegroups, Fargate profiles, insights, updates)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Inventory ---


class AWSProfile(BaseModel):
    """A profile section from the AWS config file.

    Only profiles with at least one hint region take part in
    multi-cluster commands.
    """

    name: str
    default_region: str = ""
    hint_regions: list[str] = Field(default_factory=list)


class ClusterRecord(BaseModel):
    """An EKS cluster as seen through one AWS profile.

    ``arn`` is the canonical identity.  Field aliases match the keys of the
    on-disk cache file.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    cluster_name: str = Field(alias="ClusterName")
    region: str = Field(alias="Region")
    profile_name: str = Field(default="", alias="AWSProfile")
    account_id: str = Field(default="", alias="AWSAccountID")
    status: str = Field(default="", alias="Status")
    version: str = Field(default="", alias="Version")
    arn: str = Field(default="", alias="Arn")
    created_at: str = Field(default="", alias="CreatedAt")


class ClusterCacheDocument(BaseModel):
    """Serialized form of the two-index cluster cache."""

    model_config = ConfigDict(populate_by_name=True)

    cluster_by_arn: dict[str, ClusterRecord] = Field(
        default_factory=dict, alias="ClusterByARN",
    )
    cluster_list: dict[str, dict[str, list[ClusterRecord]]] = Field(
        default_factory=dict, alias="ClusterList",
    )

    @field_validator("cluster_by_arn", "cluster_list", mode="before")
    @classmethod
    def _null_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


# --- Filtering ---


class FilterCriteria(BaseModel):
    """Cluster selection filters shared by every multi-cluster command.

    Empty strings mean "unconstrained".  A cluster matches when every
    non-empty criterion holds.  ``profile``, ``region`` and ``version`` are
    exact matches; the ``*_contains`` fields are case-sensitive substring
    tests.
    """

    profile: str = ""
    profile_contains: str = ""
    name_contains: str = ""
    name_not_contains: str = ""
    region: str = ""
    version: str = ""

    def is_empty(self) -> bool:
        return not any((
            self.profile,
            self.profile_contains,
            self.name_contains,
            self.name_not_contains,
            self.region,
            self.version,
        ))

    def matches_profile(self, profile_name: str) -> bool:
        if self.profile and self.profile != profile_name:
            return False
        if self.profile_contains and self.profile_contains not in profile_name:
            return False
        return True

    def matches_region(self, region: str) -> bool:
        return not self.region or self.region == region

    def matches_cluster(self, record: ClusterRecord) -> bool:
        """Check the per-record criteria (version and name filters)."""
        if self.version and record.version != self.version:
            return False
        if self.name_contains and self.name_contains not in record.cluster_name:
            return False
        if self.name_not_contains and self.name_not_contains in record.cluster_name:
            return False
        return True

    def matches(self, record: ClusterRecord) -> bool:
        """Check every criterion against a record."""
        return (
            self.matches_profile(record.profile_name)
            and self.matches_region(record.region)
            and self.matches_cluster(record)
        )


# --- Query results ---


class PodInfo(BaseModel):
    name: str
    namespace: str
    ready: str
    status: str
    restarts: int = 0
    created_at: datetime | None = None


class ClusterPodList(BaseModel):
    cluster: ClusterRecord
    pods: list[PodInfo] = Field(default_factory=list)


class ClusterStats(BaseModel):
    cluster: ClusterRecord
    namespace_count: int = 0
    pod_count: int = 0
    node_count: int = 0
    nodes_not_ready: int = 0
    pods_not_running: int = 0
    pods_with_restarts: int = 0


class HealthCheckResult(BaseModel):
    """Health of a single workload resource."""

    profile: str
    region: str
    cluster_name: str
    namespace: str
    kind: str
    name: str
    ready: str = ""
    status: str = ""
    message: str = ""
    is_healthy: bool = False


class ClusterHealthSummary(BaseModel):
    """Aggregated health counts for one cluster."""

    profile: str
    region: str
    cluster_name: str
    totals: dict[str, int] = Field(default_factory=dict)
    healthy: dict[str, int] = Field(default_factory=dict)
    overall_status: str = "Healthy"


class ResourceResult(BaseModel):
    """One row of a generic multi-cluster ``get``."""

    profile: str
    region: str
    cluster_name: str
    namespace: str = ""
    name: str = ""
    kind: str = ""
    status: str = ""
    data: dict[str, Any] | None = None
    error: str = ""


class JsonPathResult(BaseModel):
    """One row of a multi-cluster JSONPath extraction."""

    profile: str
    region: str
    cluster_name: str
    namespace: str = ""
    resource: str = ""
    value: str = ""
    error: str = ""


# --- Nodes ---


class NodeInfo(BaseModel):
    """A Kubernetes node and what provisioned it."""

    name: str
    instance_type: str = ""
    compute: str = "EC2"
    managed_by: str = ""
    status: str = "Unknown"
    created_at: datetime | None = None


class ClusterNodeList(BaseModel):
    cluster: ClusterRecord
    nodes: list[NodeInfo] = Field(default_factory=list)


# --- Karpenter ---


class KarpenterNodePool(BaseModel):
    profile: str
    region: str
    cluster_name: str
    name: str
    node_class: str = ""
    instance_types: list[str] = Field(default_factory=list)
    capacity_types: list[str] = Field(default_factory=list)
    zones: list[str] = Field(default_factory=list)
    cpu_limit: str = ""
    memory_limit: str = ""
    consolidation_policy: str = ""
    expire_after: str = ""
    weight: int = 0


class KarpenterNodeClaim(BaseModel):
    profile: str
    region: str
    cluster_name: str
    name: str
    node_name: str = ""
    node_pool: str = ""
    instance_type: str = ""
    zone: str = ""
    capacity_type: str = ""
    image_id: str = ""
    status: str = ""
    drifted: bool = False
    created_at: datetime | None = None


class KarpenterAmiUsage(BaseModel):
    profile: str
    region: str
    cluster_name: str
    node_pool: str
    image_id: str
    node_count: int = 0


# --- EKS cluster details ---


class CallerIdentity(BaseModel):
    """STS ``GetCallerIdentity`` for one profile."""

    arn: str = ""
    account: str = ""
    user_id: str = ""


class KubernetesIdentity(BaseModel):
    """What the API server thinks the caller is (``SelfSubjectReview``)."""

    username: str = ""
    uid: str = ""
    groups: list[str] = Field(default_factory=list)
    error: str = ""


class NodegroupInfo(BaseModel):
    name: str
    capacity_type: str = ""
    release_version: str = ""
    launch_template: str = ""
    instance_type: str = ""
    desired_size: int = 0
    max_size: int = 0
    min_size: int = 0
    version: str = ""
    status: str = ""


class FargateSelector(BaseModel):
    namespace: str = ""
    labels: dict[str, str] = Field(default_factory=dict)


class FargateProfileInfo(BaseModel):
    name: str
    status: str = ""
    pod_execution_role_arn: str = ""
    subnets: list[str] = Field(default_factory=list)
    selectors: list[FargateSelector] = Field(default_factory=list)


class ClientStat(BaseModel):
    user_agent: str = ""
    requests_last_30_days: int = 0
    last_request_time: datetime | None = None


class DeprecationDetail(BaseModel):
    usage: str = ""
    replaced_with: str = ""
    start_serving_replacement_version: str = ""
    stop_serving_version: str = ""
    client_stats: list[ClientStat] = Field(default_factory=list)


class InsightInfo(BaseModel):
    """An EKS upgrade insight.

    List calls only fill the summary fields; ``describe_insight`` adds the
    description, recommendation and deprecation details.
    """

    id: str
    category: str = ""
    status: str = ""
    reason: str = ""
    description: str = ""
    recommendation: str = ""
    additional_info: dict[str, str] = Field(default_factory=dict)
    deprecation_details: list[DeprecationDetail] = Field(default_factory=list)


class UpdateInfo(BaseModel):
    id: str = ""
    type: str = ""
    status: str = ""
    errors: list[str] = Field(default_factory=list)
