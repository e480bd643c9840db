"""AwsClusterClient: EKS and STS lookups via boto3.

Every call builds a boto3 Session for the requested profile and region.
botocore's automatic retries are disabled: each external call is attempted
exactly once, and a failure surfaces as ``ProfileLookupError`` so callers
can skip that profile/region.  That includes credential resolution, which
botocore performs when the client is created.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from kubectl_eks.errors import ProfileLookupError
from kubectl_eks.models import (
    CallerIdentity,
    ClientStat,
    ClusterRecord,
    DeprecationDetail,
    FargateProfileInfo,
    FargateSelector,
    InsightInfo,
    NodegroupInfo,
    UpdateInfo,
)

logger = logging.getLogger(__name__)

CREATED_AT_FORMAT = "%Y-%m-%d %H:%M:%S"

_SINGLE_ATTEMPT = Config(retries={"total_max_attempts": 1})


class AwsClusterClient:
    """Lists and describes EKS clusters and resolves account IDs."""

    def __init__(self, endpoint_url: str | None = None) -> None:
        self._endpoint_url = endpoint_url

    # --- Cluster discovery ---

    def list_clusters(self, profile: str, region: str) -> list[str]:
        """Return every cluster name visible to *profile* in *region*."""
        client = self._get_client("eks", profile, region)
        try:
            return _paginate(client, "list_clusters", "clusters")
        except (ClientError, BotoCoreError) as e:
            msg = f"failed to list clusters for profile {profile} in region {region}: {e}"
            raise ProfileLookupError(msg) from e

    def describe_cluster(
        self,
        profile: str,
        region: str,
        name: str,
        account_id: str = "",
    ) -> ClusterRecord:
        client = self._get_client("eks", profile, region)
        try:
            response = client.describe_cluster(name=name)
        except (ClientError, BotoCoreError) as e:
            msg = (
                f"failed to describe cluster {name} for profile {profile} "
                f"in region {region}: {e}"
            )
            raise ProfileLookupError(msg) from e
        return cluster_record_from_response(
            response.get("cluster", {}), profile, region, account_id,
        )

    def get_account_id(self, profile: str, region: str) -> str:
        """Return the account ID *profile* authenticates to (STS caller identity)."""
        return self.get_caller_identity(profile, region).account

    def get_caller_identity(self, profile: str, region: str) -> CallerIdentity:
        client = self._get_client("sts", profile, region)
        try:
            response = client.get_caller_identity()
        except (ClientError, BotoCoreError) as e:
            msg = f"failed to get caller identity for profile {profile}: {e}"
            raise ProfileLookupError(msg) from e
        return CallerIdentity(
            arn=response.get("Arn", ""),
            account=response.get("Account", ""),
            user_id=response.get("UserId", ""),
        )

    # --- Cluster details ---

    def list_nodegroups(self, cluster: ClusterRecord) -> list[NodegroupInfo]:
        """Describe every managed nodegroup of *cluster*.

        The instance type comes from the launch template when the nodegroup
        has one.  A nodegroup that cannot be described is left out.
        """
        eks = self._get_client("eks", cluster.profile_name, cluster.region)
        try:
            names = _paginate(eks, "list_nodegroups", "nodegroups", clusterName=cluster.cluster_name)
        except (ClientError, BotoCoreError) as e:
            raise _detail_error("list nodegroups", cluster, e) from e

        ec2: Any = None
        nodegroups: list[NodegroupInfo] = []
        for name in names:
            try:
                ng = eks.describe_nodegroup(
                    clusterName=cluster.cluster_name, nodegroupName=name,
                ).get("nodegroup")
            except (ClientError, BotoCoreError) as e:
                logger.warning("Error describing nodegroup %s: %s", name, e)
                continue
            if not ng:
                continue

            template = ng.get("launchTemplate") or {}
            instance_type = ""
            if template.get("id"):
                if ec2 is None:
                    ec2 = self._get_client("ec2", cluster.profile_name, cluster.region)
                instance_type = _launch_template_instance_type(ec2, template)
            elif ng.get("instanceTypes"):
                instance_type = ",".join(ng["instanceTypes"])

            scaling = ng.get("scalingConfig") or {}
            nodegroups.append(NodegroupInfo(
                name=name,
                capacity_type=ng.get("capacityType", ""),
                release_version=ng.get("releaseVersion", ""),
                launch_template=template.get("id", ""),
                instance_type=instance_type,
                desired_size=scaling.get("desiredSize", 0),
                max_size=scaling.get("maxSize", 0),
                min_size=scaling.get("minSize", 0),
                version=ng.get("version", ""),
                status=ng.get("status", ""),
            ))
        return nodegroups

    def list_fargate_profiles(self, cluster: ClusterRecord) -> list[FargateProfileInfo]:
        eks = self._get_client("eks", cluster.profile_name, cluster.region)
        try:
            names = _paginate(
                eks, "list_fargate_profiles", "fargateProfileNames",
                clusterName=cluster.cluster_name,
            )
            described = [
                eks.describe_fargate_profile(
                    clusterName=cluster.cluster_name, fargateProfileName=name,
                )["fargateProfile"]
                for name in names
            ]
        except (ClientError, BotoCoreError) as e:
            raise _detail_error("list Fargate profiles", cluster, e) from e

        return [
            FargateProfileInfo(
                name=fp.get("fargateProfileName", ""),
                status=fp.get("status", ""),
                pod_execution_role_arn=fp.get("podExecutionRoleArn", ""),
                subnets=fp.get("subnets") or [],
                selectors=[
                    FargateSelector(
                        namespace=sel.get("namespace", ""),
                        labels=sel.get("labels") or {},
                    )
                    for sel in fp.get("selectors") or []
                ],
            )
            for fp in described
        ]

    def list_insights(self, cluster: ClusterRecord) -> list[InsightInfo]:
        eks = self._get_client("eks", cluster.profile_name, cluster.region)
        try:
            summaries = _paginate(eks, "list_insights", "insights", clusterName=cluster.cluster_name)
        except (ClientError, BotoCoreError) as e:
            raise _detail_error("list insights", cluster, e) from e

        insights: list[InsightInfo] = []
        for item in summaries:
            status = item.get("insightStatus")
            if not item.get("id") or status is None:
                continue
            insights.append(InsightInfo(
                id=item["id"],
                category=item.get("category", ""),
                status=status.get("status", ""),
                reason=status.get("reason", ""),
            ))
        return insights

    def describe_insight(self, cluster: ClusterRecord, insight_id: str) -> InsightInfo:
        eks = self._get_client("eks", cluster.profile_name, cluster.region)
        try:
            insight = eks.describe_insight(
                clusterName=cluster.cluster_name, id=insight_id,
            ).get("insight")
        except (ClientError, BotoCoreError) as e:
            raise _detail_error(f"describe insight {insight_id}", cluster, e) from e
        if not insight:
            raise ProfileLookupError(
                f"insight {insight_id} not found for cluster {cluster.cluster_name} "
                f"in region {cluster.region}"
            )
        return insight_from_response(insight)

    def list_updates(self, cluster: ClusterRecord) -> list[UpdateInfo]:
        """Describe every control-plane update of *cluster*.

        Updates that cannot be described, or carry neither a type nor a
        status, are left out.
        """
        eks = self._get_client("eks", cluster.profile_name, cluster.region)
        try:
            update_ids = _paginate(eks, "list_updates", "updateIds", name=cluster.cluster_name)
        except (ClientError, BotoCoreError) as e:
            raise _detail_error("list updates", cluster, e) from e

        updates: list[UpdateInfo] = []
        for update_id in update_ids:
            try:
                update = eks.describe_update(
                    name=cluster.cluster_name, updateId=update_id,
                ).get("update")
            except (ClientError, BotoCoreError) as e:
                logger.warning("Error describing update %s: %s", update_id, e)
                continue
            if not update or not (update.get("type") or update.get("status")):
                continue
            updates.append(UpdateInfo(
                id=update.get("id", update_id),
                type=update.get("type", ""),
                status=update.get("status", ""),
                errors=[
                    err["errorMessage"]
                    for err in update.get("errors") or []
                    if err.get("errorMessage")
                ],
            ))
        return updates

    # --- Private: session/client setup ---

    def _get_boto3_session(self, profile: str, region: str) -> Any:
        """Build a boto3 Session for a named profile."""
        import boto3

        kwargs: dict[str, Any] = {}
        if profile:
            kwargs["profile_name"] = profile
        if region:
            kwargs["region_name"] = region
        try:
            return boto3.Session(**kwargs)
        except BotoCoreError as e:
            raise ProfileLookupError(f"failed to load AWS profile {profile}: {e}") from e

    def _get_client(self, service: str, profile: str, region: str) -> Any:
        session = self._get_boto3_session(profile, region)
        kwargs: dict[str, Any] = {"config": _SINGLE_ATTEMPT}
        if self._endpoint_url:
            kwargs["endpoint_url"] = self._endpoint_url
        try:
            return session.client(service, **kwargs)
        except BotoCoreError as e:
            msg = f"failed to load credentials for profile {profile} in region {region}: {e}"
            raise ProfileLookupError(msg) from e


def _paginate(client: Any, operation: str, key: str, **kwargs: Any) -> list[Any]:
    items: list[Any] = []
    for page in client.get_paginator(operation).paginate(**kwargs):
        items.extend(page.get(key, []))
    return items


def _detail_error(action: str, cluster: ClusterRecord, error: Exception) -> ProfileLookupError:
    return ProfileLookupError(
        f"failed to {action} for cluster {cluster.cluster_name} "
        f"in region {cluster.region}: {error}"
    )


def _launch_template_instance_type(ec2: Any, template: dict[str, Any]) -> str:
    kwargs: dict[str, Any] = {"LaunchTemplateId": template["id"]}
    if template.get("version"):
        kwargs["Versions"] = [template["version"]]
    try:
        versions = ec2.describe_launch_template_versions(**kwargs).get("LaunchTemplateVersions")
    except (ClientError, BotoCoreError) as e:
        logger.debug("Launch template %s not readable: %s", template["id"], e)
        return ""
    if not versions:
        return ""
    return (versions[0].get("LaunchTemplateData") or {}).get("InstanceType", "")


def cluster_record_from_response(
    cluster: dict[str, Any],
    profile: str,
    region: str,
    account_id: str = "",
) -> ClusterRecord:
    """Build a ClusterRecord from an EKS ``DescribeCluster`` cluster dict."""
    created = cluster.get("createdAt")
    if isinstance(created, datetime):
        created_at = created.strftime(CREATED_AT_FORMAT)
    else:
        created_at = str(created or "")

    return ClusterRecord(
        cluster_name=cluster.get("name", ""),
        region=region,
        profile_name=profile,
        account_id=account_id,
        status=cluster.get("status", ""),
        version=cluster.get("version", ""),
        arn=cluster.get("arn", ""),
        created_at=created_at,
    )


def insight_from_response(insight: dict[str, Any]) -> InsightInfo:
    """Build an InsightInfo from an EKS ``DescribeInsight`` insight dict."""
    status = insight.get("insightStatus") or {}
    summary = insight.get("categorySpecificSummary") or {}
    details = [
        DeprecationDetail(
            usage=d.get("usage", ""),
            replaced_with=d.get("replacedWith", ""),
            start_serving_replacement_version=d.get("startServingReplacementVersion", ""),
            stop_serving_version=d.get("stopServingVersion", ""),
            client_stats=[
                ClientStat(
                    user_agent=s.get("userAgent", ""),
                    requests_last_30_days=s.get("numberOfRequestsLast30Days", 0),
                    last_request_time=s.get("lastRequestTime"),
                )
                for s in d.get("clientStats") or []
            ],
        )
        for d in summary.get("deprecationDetails") or []
    ]
    return InsightInfo(
        id=insight.get("id", ""),
        category=insight.get("category", ""),
        status=status.get("status", ""),
        reason=status.get("reason", ""),
        description=insight.get("description", ""),
        recommendation=insight.get("recommendation", ""),
        additional_info=insight.get("additionalInfo") or {},
        deprecation_details=details,
    )
