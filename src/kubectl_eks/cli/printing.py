"""kubectl-style output for the CLI commands.

Tables have upper-case headers and columns separated by three spaces.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any

import click
import yaml

from kubectl_eks.models import (
    CallerIdentity,
    ClusterHealthSummary,
    ClusterNodeList,
    ClusterPodList,
    ClusterRecord,
    ClusterStats,
    FargateProfileInfo,
    HealthCheckResult,
    InsightInfo,
    JsonPathResult,
    KarpenterAmiUsage,
    KarpenterNodeClaim,
    KarpenterNodePool,
    KubernetesIdentity,
    NodegroupInfo,
    ResourceResult,
    UpdateInfo,
)
from kubectl_eks.queries.health import HEALTH_KINDS
from kubectl_eks.resources.status import age_for, format_age, wide_info_for

COLUMN_GAP = "   "


def format_table(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    no_headers: bool = False,
) -> str:
    """Render rows as left-aligned columns."""
    cells = [[str(c) for c in row] for row in rows]
    if not no_headers:
        cells.insert(0, [h.upper() for h in headers])
    if not cells:
        return ""

    widths = [0] * len(headers)
    for row in cells:
        for i, cell in enumerate(row):
            widths[i] = max(widths[i], len(cell))

    lines = [
        COLUMN_GAP.join(cell.ljust(widths[i]) for i, cell in enumerate(row)).rstrip()
        for row in cells
    ]
    return "\n".join(lines)


def echo_table(headers: Sequence[str], rows: Iterable[Sequence[Any]], no_headers: bool = False) -> None:
    text = format_table(headers, rows, no_headers)
    if text:
        click.echo(text)


# --- Clusters ---


def print_clusters(clusters: Sequence[ClusterRecord], no_headers: bool = False) -> None:
    ordered = sorted(clusters, key=lambda c: c.profile_name)
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "STATUS", "VERSION", "CREATED", "ARN"],
        (
            [c.profile_name, c.region, c.cluster_name, c.status, c.version, c.created_at, c.arn]
            for c in ordered
        ),
        no_headers,
    )


def print_pods(pod_lists: Sequence[ClusterPodList], no_headers: bool = False) -> None:
    rows = []
    for pod_list in pod_lists:
        c = pod_list.cluster
        for pod in pod_list.pods:
            age = format_age(pod.created_at) if pod.created_at else "-"
            rows.append([
                c.profile_name, c.region, c.cluster_name, c.arn, c.version,
                pod.namespace, pod.name, pod.ready, pod.status, pod.restarts, age,
            ])
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "ARN", "VERSION",
         "NAMESPACE", "POD NAME", "READY", "STATUS", "RESTARTS", "AGE"],
        rows,
        no_headers,
    )


def print_stats(stats: Sequence[ClusterStats], no_headers: bool = False) -> None:
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "ARN", "VERSION", "NAMESPACES",
         "POD COUNT", "NODE COUNT", "NODES NOT READY", "PODS NOT RUNNING",
         "PODS WITH RESTARTS"],
        (
            [
                s.cluster.profile_name, s.cluster.region, s.cluster.cluster_name,
                s.cluster.arn, s.cluster.version, s.namespace_count, s.pod_count,
                s.node_count, s.nodes_not_ready, s.pods_not_running,
                s.pods_with_restarts,
            ]
            for s in stats
        ),
        no_headers,
    )


# --- Generic resources ---


def print_resources(
    results: Sequence[ResourceResult],
    output: str = "",
    no_headers: bool = False,
) -> None:
    if not results:
        return

    if output == "json":
        click.echo(json.dumps([r.model_dump(mode="json") for r in results], indent=2))
        return

    if output == "yaml":
        docs = []
        for r in results:
            if r.error:
                docs.append(f"# Error for {r.namespace}/{r.name} in {r.cluster_name}: {r.error}")
                continue
            docs.append("---\n" + yaml.safe_dump(r.data, default_flow_style=False).rstrip())
        click.echo("\n".join(docs))
        return

    wide = output == "wide"
    headers = ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "NAMESPACE", "KIND", "NAME", "STATUS"]
    if wide:
        headers += ["AGE", "ADDITIONAL INFO"]

    rows = []
    for r in results:
        row = [r.profile, r.region, r.cluster_name, r.namespace or "-", r.kind, r.name]
        if r.error:
            rows.append(row + [f"ERROR: {r.error}"] + (["", ""] if wide else []))
            continue
        row.append(r.status or "-")
        if wide:
            data = r.data or {}
            row += [age_for(data), wide_info_for(data, r.kind)]
        rows.append(row)
    echo_table(headers, rows, no_headers)


def print_jsonpath(results: Sequence[JsonPathResult], no_headers: bool = False) -> None:
    echo_table(
        ["PROFILE", "REGION", "CLUSTER", "NAMESPACE", "NAME", "VALUE"],
        (
            [
                r.profile, r.region, r.cluster_name, r.namespace, r.resource,
                f"ERROR: {r.error}" if r.error else r.value,
            ]
            for r in results
        ),
        no_headers,
    )


# --- Health ---


def print_health_details(results: Sequence[HealthCheckResult], no_headers: bool = False) -> None:
    if not results:
        click.echo("All resources are healthy!")
        return
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "KIND", "NAMESPACE", "NAME",
         "READY", "STATUS", "MESSAGE"],
        (
            [
                r.profile, r.region, r.cluster_name, r.kind, r.namespace or "-",
                r.name, r.ready, r.status, r.message,
            ]
            for r in results
        ),
        no_headers,
    )


def print_health_summary(summaries: Sequence[ClusterHealthSummary], no_headers: bool = False) -> None:
    if not summaries:
        return
    kinds = [str(k) for k in HEALTH_KINDS]
    rows = []
    for s in summaries:
        counts = [f"{s.healthy.get(k, 0)}/{s.totals.get(k, 0)}" for k in kinds]
        rows.append([s.profile, s.region, s.cluster_name, *counts, s.overall_status])
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "PODS", "DEPLOYMENTS",
         "STATEFULSETS", "DAEMONSETS", "REPLICASETS", "STATUS"],
        rows,
        no_headers,
    )


# --- Nodes ---


def _age(created: datetime | None) -> str:
    return format_age(created) if created else "-"


def print_nodes(node_lists: Sequence[ClusterNodeList], no_headers: bool = False) -> None:
    rows = []
    for node_list in node_lists:
        c = node_list.cluster
        for node in sorted(node_list.nodes, key=lambda n: n.name):
            rows.append([
                c.profile_name, c.region, c.cluster_name, node.name, node.instance_type,
                node.compute, node.managed_by, _age(node.created_at), node.status,
            ])
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "NODE NAME", "INSTANCE TYPE",
         "COMPUTE", "MANAGED BY", "AGE", "STATUS"],
        rows,
        no_headers,
    )


# --- Karpenter ---


def _by_cluster(item: Any, name: str) -> tuple[str, str, str, str]:
    return (item.profile, item.region, item.cluster_name, name)


def print_nodepools(
    pools: Sequence[KarpenterNodePool], wide: bool = False, no_headers: bool = False,
) -> None:
    headers = ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "NODEPOOL", "NODECLASS",
               "INSTANCE TYPES", "CAPACITY TYPES"]
    if wide:
        headers += ["ZONES", "CPU LIMIT", "MEMORY LIMIT", "CONSOLIDATION", "EXPIRE AFTER", "WEIGHT"]

    rows = []
    for p in sorted(pools, key=lambda p: _by_cluster(p, p.name)):
        instance_types = ",".join(p.instance_types)
        if len(instance_types) > 30 and not wide:
            instance_types = instance_types[:27] + "..."
        row = [p.profile, p.region, p.cluster_name, p.name, p.node_class,
               instance_types, ",".join(p.capacity_types)]
        if wide:
            row += [",".join(p.zones), p.cpu_limit or "-", p.memory_limit or "-",
                    p.consolidation_policy or "-", p.expire_after or "-", p.weight]
        rows.append(row)
    echo_table(headers, rows, no_headers)


def print_nodeclaims(
    claims: Sequence[KarpenterNodeClaim], wide: bool = False, no_headers: bool = False,
) -> None:
    if wide:
        headers = ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "NODECLAIM", "NODE", "NODEPOOL",
                   "INSTANCE TYPE", "ZONE", "CAPACITY TYPE", "AMI", "STATUS", "DRIFTED", "AGE"]
    else:
        headers = ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "NODECLAIM", "NODE", "NODEPOOL",
                   "INSTANCE TYPE", "STATUS", "AGE"]

    rows = []
    for c in sorted(claims, key=lambda c: _by_cluster(c, c.name)):
        row = [c.profile, c.region, c.cluster_name, c.name, c.node_name, c.node_pool, c.instance_type]
        if wide:
            row += [c.zone, c.capacity_type, c.image_id, c.status,
                    "Yes" if c.drifted else "No", _age(c.created_at)]
        else:
            row += [c.status, _age(c.created_at)]
        rows.append(row)
    echo_table(headers, rows, no_headers)


def print_drift(claims: Sequence[KarpenterNodeClaim], no_headers: bool = False) -> None:
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "TYPE", "NAME", "NODE", "NODEPOOL",
         "AGE", "REASON"],
        (
            [c.profile, c.region, c.cluster_name, "NodeClaim", c.name, c.node_name,
             c.node_pool, _age(c.created_at), "Drifted"]
            for c in sorted(claims, key=lambda c: _by_cluster(c, c.name))
        ),
        no_headers,
    )


def print_ami_usage(usage: Sequence[KarpenterAmiUsage], no_headers: bool = False) -> None:
    echo_table(
        ["AWS PROFILE", "AWS REGION", "CLUSTER NAME", "NODEPOOL", "CURRENT AMI", "NODE COUNT"],
        (
            [u.profile, u.region, u.cluster_name, u.node_pool, u.image_id, u.node_count]
            for u in sorted(usage, key=lambda u: _by_cluster(u, u.node_pool))
        ),
        no_headers,
    )


# --- Single-cluster details ---


def print_whoami(
    cluster: ClusterRecord,
    aws: CallerIdentity,
    kube: KubernetesIdentity,
    no_headers: bool = False,
) -> None:
    rows = [
        ["Cluster", "Profile", cluster.profile_name],
        ["Cluster", "Region", cluster.region],
        ["Cluster", "Name", cluster.cluster_name],
        ["AWS", "ARN", aws.arn],
        ["AWS", "Account", aws.account],
        ["AWS", "User ID", aws.user_id],
        ["Kubernetes", "Username", f"Error: {kube.error}" if kube.error else kube.username],
    ]
    if kube.uid:
        rows.append(["Kubernetes", "UID", kube.uid])
    if kube.groups:
        rows.append(["Kubernetes", "Groups", ", ".join(kube.groups)])
    echo_table(["COMPONENT", "ATTRIBUTE", "VALUE"], rows, no_headers)


def print_nodegroups(nodegroups: Sequence[NodegroupInfo], no_headers: bool = False) -> None:
    echo_table(
        ["NAME", "CAPACITY TYPE", "RELEASE VERSION", "LAUNCH TEMPLATE", "INSTANCE TYPE",
         "DESIRED CAPACITY", "MAX CAPACITY", "MIN CAPACITY", "VERSION", "STATUS"],
        (
            [ng.name, ng.capacity_type, ng.release_version, ng.launch_template,
             ng.instance_type, ng.desired_size, ng.max_size, ng.min_size, ng.version, ng.status]
            for ng in sorted(nodegroups, key=lambda ng: ng.name)
        ),
        no_headers,
    )


def format_labels(labels: dict[str, str]) -> str:
    if not labels:
        return "<none>"
    return ",".join(sorted(f"{k}={v}" for k, v in labels.items()))


def print_fargate_profiles(profiles: Sequence[FargateProfileInfo], no_headers: bool = False) -> None:
    """One row per selector."""
    echo_table(
        ["NAME", "STATUS", "NAMESPACE", "SELECTOR", "SUBNETS"],
        (
            [p.name, p.status, sel.namespace, format_labels(sel.labels), len(p.subnets)]
            for p in sorted(profiles, key=lambda p: p.name)
            for sel in p.selectors
        ),
        no_headers,
    )


def print_insights(insights: Sequence[InsightInfo], no_headers: bool = False) -> None:
    echo_table(
        ["ID", "CATEGORY", "STATUS", "REASON"],
        ([i.id, i.category, i.status, i.reason] for i in sorted(insights, key=lambda i: i.id)),
        no_headers,
    )


def print_insight_details(insight: InsightInfo) -> None:
    click.echo(f"Category: {insight.category}")
    click.echo(f"Status: {insight.status}")
    click.echo(f"Description: {insight.description}")
    click.echo(f"Recommendation: {insight.recommendation}")
    if insight.additional_info:
        click.echo("Additional Info:")
        for key, value in insight.additional_info.items():
            click.echo(f"  * {key}:\n      {value}")

    if not insight.deprecation_details:
        click.echo("No deprecation details found")
        return
    click.echo("Deprecation Details:")
    for d in insight.deprecation_details:
        click.echo(f'  * "{d.usage}" replaced with "{d.replaced_with}"')
        click.echo(
            f"    - Replacement from {d.start_serving_replacement_version} "
            f"to {d.stop_serving_version}"
        )
        if d.client_stats:
            click.echo("    - Client Stats:")
            for s in d.client_stats:
                click.echo(
                    f"      * {s.user_agent} has requested {s.requests_last_30_days} "
                    f"in the last 30 days - last requested: {s.last_request_time or '-'}"
                )


def print_updates(updates: Sequence[UpdateInfo], no_headers: bool = False) -> None:
    echo_table(
        ["TYPE", "STATUS", "ERRORS"],
        (
            [u.type, u.status, "; ".join(u.errors) or "-"]
            for u in sorted(updates, key=lambda u: u.type)
        ),
        no_headers,
    )
