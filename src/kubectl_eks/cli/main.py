"""kubectl-eks CLI: multi-cluster kubectl for EKS.

Commands:
    (none)            Show the current EKS cluster, or switch its region with -r
    list              List EKS clusters across hinted profiles and regions
    use               Switch the current context to a cluster ARN
    mget              Get resources from every matching cluster
    stats             Object counts per cluster
    mcheck            Workload health per cluster (aliases: mready, mrediness,
                      health, mhealth)
    nodes             Node inventory per cluster
    karpenter         NodePools, NodeClaims, drift and AMI usage (aliases: karp,
                      kptr, k)
    whoami            AWS and Kubernetes identity for the current cluster
    nodegroups        Managed nodegroups of one cluster
    fargate-profiles  Fargate profiles of one cluster (aliases: fp, fargate)
    insights          EKS upgrade insights of one cluster
    updates           Control-plane updates of one cluster
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, NoReturn, TypeVar

import click

from kubectl_eks import __version__
from kubectl_eks.cli.printing import (
    print_ami_usage,
    print_clusters,
    print_drift,
    print_fargate_profiles,
    print_health_details,
    print_health_summary,
    print_insight_details,
    print_insights,
    print_jsonpath,
    print_nodeclaims,
    print_nodegroups,
    print_nodepools,
    print_nodes,
    print_pods,
    print_resources,
    print_stats,
    print_updates,
    print_whoami,
)
from kubectl_eks.config import KubectlEksConfig, load_config
from kubectl_eks.errors import InvalidArnError, KubectlEksError
from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import (
    CallerIdentity,
    ClusterHealthSummary,
    ClusterRecord,
    FilterCriteria,
    HealthCheckResult,
    KubernetesIdentity,
)
from kubectl_eks.queries.health import HEALTH_KINDS, check_cluster, summarize
from kubectl_eks.queries.identity import get_kubernetes_identity
from kubectl_eks.queries.karpenter import (
    get_ami_usage,
    get_drifted,
    get_nodeclaims,
    get_nodepools,
)
from kubectl_eks.queries.nodes import get_nodes
from kubectl_eks.queries.pods import get_pods
from kubectl_eks.queries.stats import get_stats
from kubectl_eks.resolver.clusters import build_arn, parse_arn
from kubectl_eks.resources.listing import compile_jsonpath, jsonpath_query, list_resources
from kubectl_eks.resources.status import ResourceKind
from kubectl_eks.session import EksSession

POD_TOKENS = frozenset({"po", "pod", "pods"})
OUTPUT_FORMATS = ("", "wide", "json", "yaml")

T = TypeVar("T")


@dataclass
class CliState:
    config_path: str | None = None
    no_headers: bool = False


def _make_session(cfg: KubectlEksConfig) -> EksSession:
    return EksSession(cfg)


def _open_session(ctx: click.Context) -> EksSession:
    state: CliState = ctx.obj
    try:
        cfg = load_config(state.config_path)
    except (FileNotFoundError, KubectlEksError) as e:
        _abort(e)
    return _make_session(cfg)


def _abort(error: Exception) -> NoReturn:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def _no_headers(ctx: click.Context, local: bool) -> bool:
    return local or ctx.obj.no_headers


def _filter_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Cluster filter flags shared by every multi-cluster command."""
    options = [
        click.option("--profile", "-p", default="", help="AWS profile to use"),
        click.option("--profile-contains", "-q", default="", help="AWS profile contains string"),
        click.option("--name-contains", "-c", default="", help="Cluster name contains string"),
        click.option("--name-not-contains", "-x", default="",
                     help="Cluster name does not contain string"),
        click.option("--region", "-r", default="", help="AWS region to use"),
        click.option("--version", "-v", "eks_version", default="", help="Filter by EKS version"),
        click.option("--refresh", "-u", is_flag=True, help="Do not use cached data, refresh from AWS"),
        click.option("--no-headers", "no_headers", is_flag=True, help="Don't print headers"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


def _filters(
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
) -> FilterCriteria:
    return FilterCriteria(
        profile=profile,
        profile_contains=profile_contains,
        name_contains=name_contains,
        name_not_contains=name_not_contains,
        region=region,
        version=eks_version,
    )


def _collect(
    ctx: click.Context,
    filters: FilterCriteria,
    refresh: bool,
    visit: Callable[[KubeClients, ClusterRecord], T],
) -> list[T]:
    """Resolve *filters* and visit every matching cluster."""
    session = _open_session(ctx)
    try:
        with session:
            clusters = session.resolve(filters, refresh=refresh)
            return session.run_across_clusters(clusters, visit)
    except KubectlEksError as e:
        _abort(e)


def _with_cluster(
    ctx: click.Context,
    arn: str,
    action: Callable[[EksSession, ClusterRecord], T],
) -> T:
    """Run *action* against the cluster with *arn*, or the current cluster."""
    session = _open_session(ctx)
    try:
        with session:
            cluster = session.resolve(FilterCriteria(), arn=arn.strip() or None)[0]
            return action(session, cluster)
    except KubectlEksError as e:
        _abort(e)


# --- Root group ---


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="kubectl-eks")
@click.option("--debug", is_flag=True, help="Verbose logging on stderr")
@click.option("--config", "config_path", default=None, help="Path to kubectl-eks.yaml")
@click.option("--no-headers", is_flag=True, help="Don't print headers")
@click.option("--region", "-r", default="", help="Switch to the same cluster in a different region")
@click.option("--refresh", "-u", is_flag=True, help="Do not use cached data, refresh from AWS")
@click.pass_context
def cli(
    ctx: click.Context,
    debug: bool,
    config_path: str | None,
    no_headers: bool,
    region: str,
    refresh: bool,
) -> None:
    """kubectl-eks: a kubectl plugin for Amazon EKS."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )
    ctx.obj = CliState(config_path=config_path, no_headers=no_headers)

    if ctx.invoked_subcommand is not None:
        return

    session = _open_session(ctx)
    try:
        with session:
            if region:
                _switch_region(session, region)
            else:
                clusters = session.resolve(FilterCriteria(), refresh=refresh)
                print_clusters(clusters, no_headers)
    except KubectlEksError as e:
        _abort(e)


def _switch_region(session: EksSession, region: str) -> None:
    current = session.kubeconfig.current_cluster()
    parsed = parse_arn(current)
    if parsed is None:
        raise InvalidArnError(current)
    namespace = session.kubeconfig.current_namespace()
    target = build_arn(region, parsed.account_id, parsed.cluster_name)
    _switch_to_arn(session, target, namespace)


def _switch_to_arn(session: EksSession, arn: str, namespace: str = "", profile: str = "") -> None:
    cluster = session.resolve(FilterCriteria(), arn=arn)[0]
    if profile:
        cluster = cluster.model_copy(update={"profile_name": profile})

    session.switcher.switch_to(cluster)
    if namespace:
        session.kubeconfig.set_namespace(namespace)
        click.echo(
            f'Switched to EKS cluster "{cluster.cluster_name}" (namespace: "{namespace}") '
            f'in region "{cluster.region}" using profile "{cluster.profile_name}"'
        )
    else:
        click.echo(
            f'Switched to EKS cluster "{cluster.cluster_name}" '
            f'in region "{cluster.region}" using profile "{cluster.profile_name}"'
        )


# --- list command ---


@cli.command("list")
@_filter_options
@click.pass_context
def list_cmd(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
) -> None:
    """List EKS clusters across every hinted profile and region."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    session = _open_session(ctx)
    try:
        with session:
            clusters = session.resolver.list_clusters(filters, refresh=refresh)
    except KubectlEksError as e:
        _abort(e)
    print_clusters(clusters, _no_headers(ctx, no_headers))


# --- use command ---


@cli.command()
@click.argument("arn")
@click.option("--namespace", "-n", default="", help="Set specific namespace for the context")
@click.option("--profile", "-p", default="", help="Set specific AWS profile for the context")
@click.pass_context
def use(ctx: click.Context, arn: str, namespace: str, profile: str) -> None:
    """Switch the current kubectl context to the cluster with ARN."""
    arn = arn.strip()
    if parse_arn(arn) is None:
        _abort(InvalidArnError(arn))

    session = _open_session(ctx)
    try:
        with session:
            _switch_to_arn(session, arn, namespace, profile)
    except KubectlEksError as e:
        _abort(e)


# --- mget command ---


@cli.command()
@click.argument("resource_type")
@click.argument("resource_name", required=False, default="")
@_filter_options
@click.option("--namespace", "-n", default="", help="Kubernetes namespace")
@click.option("--all-namespaces", "-A", is_flag=True, help="Query all Kubernetes namespaces")
@click.option("--output", "-o", default="", help="Output format: wide|json|yaml|jsonpath=...")
@click.option("--resource-starts-with", "-w", "starts_with", default="",
              help="Filter resources that start with this string")
@click.pass_context
def mget(
    ctx: click.Context,
    resource_type: str,
    resource_name: str,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
    namespace: str,
    all_namespaces: bool,
    output: str,
    starts_with: str,
) -> None:
    """Get resources of RESOURCE_TYPE from every matching cluster.

    RESOURCE_TYPE is any name kubectl accepts, CRDs included.
    """
    expression = None
    if output.startswith("jsonpath="):
        expression = compile_jsonpath(output.removeprefix("jsonpath="))
    elif output not in OUTPUT_FORMATS:
        raise click.BadParameter(
            f"unsupported output format '{output}'", param_hint="'--output'",
        )

    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    no_headers = _no_headers(ctx, no_headers)
    session = _open_session(ctx)
    try:
        with session:
            clusters = session.resolve(filters, refresh=refresh)

            if expression is not None:
                batches = session.run_across_clusters(
                    clusters,
                    lambda clients, cluster: jsonpath_query(
                        clients, cluster, resource_type, expression,
                        resource_name, namespace, all_namespaces, starts_with,
                    ),
                )
                print_jsonpath([row for batch in batches for row in batch], no_headers)
            elif resource_type.lower() in POD_TOKENS and not output and not resource_name:
                pod_lists = session.run_across_clusters(
                    clusters,
                    lambda clients, cluster: get_pods(clients, cluster, namespace, all_namespaces),
                )
                print_pods(pod_lists, no_headers)
            else:
                batches = session.run_across_clusters(
                    clusters,
                    lambda clients, cluster: list_resources(
                        clients, cluster, resource_type, resource_name,
                        namespace, all_namespaces, starts_with,
                    ),
                )
                print_resources([row for batch in batches for row in batch], output, no_headers)
    except KubectlEksError as e:
        _abort(e)


# --- stats command ---


@cli.command()
@_filter_options
@click.pass_context
def stats(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
) -> None:
    """Namespace, pod and node counts for every matching cluster."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    results = _collect(ctx, filters, refresh, get_stats)
    print_stats(results, _no_headers(ctx, no_headers))


# --- mcheck command ---


@cli.command()
@_filter_options
@click.option("--namespace", "-n", default="", help="Kubernetes namespace (default: all namespaces)")
@click.option("--all", "show_all", is_flag=True, help="Show all resources including healthy ones")
@click.option("--summary", is_flag=True, help="Show health summary only")
@click.option("--pods", is_flag=True, help="Check only pods")
@click.option("--deployments", is_flag=True, help="Check only deployments")
@click.option("--statefulsets", is_flag=True, help="Check only statefulsets")
@click.option("--daemonsets", is_flag=True, help="Check only daemonsets")
@click.option("--replicasets", is_flag=True, help="Check only replicasets")
@click.pass_context
def mcheck(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
    namespace: str,
    show_all: bool,
    summary: bool,
    pods: bool,
    deployments: bool,
    statefulsets: bool,
    daemonsets: bool,
    replicasets: bool,
) -> None:
    """Check workload health across every matching cluster.

    All namespaces are checked unless -n is given.  Only unhealthy
    resources are shown unless --all is given.
    """
    selected = {
        ResourceKind.POD: pods,
        ResourceKind.DEPLOYMENT: deployments,
        ResourceKind.STATEFULSET: statefulsets,
        ResourceKind.DAEMONSET: daemonsets,
        ResourceKind.REPLICASET: replicasets,
    }
    kinds = [k for k, on in selected.items() if on] or list(HEALTH_KINDS)

    def visit(
        clients: KubeClients, cluster: ClusterRecord,
    ) -> tuple[list[HealthCheckResult], ClusterHealthSummary]:
        results = check_cluster(clients, cluster, namespace, kinds)
        return results, summarize(cluster, results)

    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    visits = _collect(ctx, filters, refresh, visit)

    no_headers = _no_headers(ctx, no_headers)
    if summary:
        print_health_summary([s for _, s in visits], no_headers)
        return
    results = [r for batch, _ in visits for r in batch]
    if not show_all:
        results = [r for r in results if not r.is_healthy]
    print_health_details(results, no_headers)


for alias in ("mready", "mrediness", "health", "mhealth"):
    cli.add_command(mcheck, name=alias)


# --- nodes command ---


@cli.command()
@_filter_options
@click.pass_context
def nodes(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
) -> None:
    """List nodes of every matching cluster (the current one without filters)."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    node_lists = _collect(ctx, filters, refresh, get_nodes)
    print_nodes(node_lists, _no_headers(ctx, no_headers))


# --- karpenter group ---


@cli.group()
def karpenter() -> None:
    """Inspect Karpenter NodePools and NodeClaims across clusters."""


for alias in ("karp", "kptr", "k"):
    cli.add_command(karpenter, name=alias)


_wide_option = click.option(
    "--output", "-o", type=click.Choice(["wide"]), default=None, help="Output format: wide",
)


@karpenter.command()
@_filter_options
@_wide_option
@click.pass_context
def nodepools(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
    output: str | None,
) -> None:
    """List Karpenter NodePools: requirements, limits and disruption settings."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    batches = _collect(ctx, filters, refresh, get_nodepools)
    print_nodepools(
        [p for batch in batches for p in batch], output == "wide", _no_headers(ctx, no_headers),
    )


@karpenter.command()
@_filter_options
@_wide_option
@click.pass_context
def nodeclaims(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
    output: str | None,
) -> None:
    """List Karpenter NodeClaims with their nodes and readiness."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    batches = _collect(ctx, filters, refresh, get_nodeclaims)
    print_nodeclaims(
        [c for batch in batches for c in batch], output == "wide", _no_headers(ctx, no_headers),
    )


@karpenter.command()
@_filter_options
@click.pass_context
def drift(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
) -> None:
    """List NodeClaims whose Drifted condition is True."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    batches = _collect(ctx, filters, refresh, get_drifted)
    print_drift([c for batch in batches for c in batch], _no_headers(ctx, no_headers))


@karpenter.command()
@_filter_options
@click.pass_context
def ami(
    ctx: click.Context,
    profile: str,
    profile_contains: str,
    name_contains: str,
    name_not_contains: str,
    region: str,
    eks_version: str,
    refresh: bool,
    no_headers: bool,
) -> None:
    """Count NodeClaims per NodePool and AMI."""
    filters = _filters(profile, profile_contains, name_contains, name_not_contains, region, eks_version)
    batches = _collect(ctx, filters, refresh, get_ami_usage)
    print_ami_usage([u for batch in batches for u in batch], _no_headers(ctx, no_headers))


karpenter.add_command(nodepools, name="np")
karpenter.add_command(nodepools, name="nodepool")
karpenter.add_command(nodeclaims, name="nc")
karpenter.add_command(nodeclaims, name="nodeclaim")


# --- Single-cluster commands ---


@cli.command()
@click.option("--no-headers", "no_headers", is_flag=True, help="Don't print headers")
@click.pass_context
def whoami(ctx: click.Context, no_headers: bool) -> None:
    """Show the IAM identity and Kubernetes user of the current cluster."""

    def lookup(
        session: EksSession, cluster: ClusterRecord,
    ) -> tuple[ClusterRecord, CallerIdentity, KubernetesIdentity]:
        aws = session.source.get_caller_identity(cluster.profile_name, cluster.region)
        return cluster, aws, get_kubernetes_identity(session.clients())

    cluster, aws, kube = _with_cluster(ctx, "", lookup)
    print_whoami(cluster, aws, kube, _no_headers(ctx, no_headers))


@cli.command()
@click.argument("arn", required=False, default="")
@click.option("--no-headers", "no_headers", is_flag=True, help="Don't print headers")
@click.pass_context
def nodegroups(ctx: click.Context, arn: str, no_headers: bool) -> None:
    """List managed nodegroups of ARN (default: the current cluster)."""
    groups = _with_cluster(ctx, arn, lambda session, c: session.source.list_nodegroups(c))
    print_nodegroups(groups, _no_headers(ctx, no_headers))


@cli.command("fargate-profiles")
@click.argument("arn", required=False, default="")
@click.option("--no-headers", "no_headers", is_flag=True, help="Don't print headers")
@click.pass_context
def fargate_profiles(ctx: click.Context, arn: str, no_headers: bool) -> None:
    """List Fargate profiles of ARN (default: the current cluster)."""
    profiles = _with_cluster(ctx, arn, lambda session, c: session.source.list_fargate_profiles(c))
    print_fargate_profiles(profiles, _no_headers(ctx, no_headers))


cli.add_command(fargate_profiles, name="fp")
cli.add_command(fargate_profiles, name="fargate")


@cli.command()
@click.argument("arn", required=False, default="")
@click.option("--show", "insight_id", default="", help="Show details for a specific insight ID")
@click.option("--no-headers", "no_headers", is_flag=True, help="Don't print headers")
@click.pass_context
def insights(ctx: click.Context, arn: str, insight_id: str, no_headers: bool) -> None:
    """List upgrade insights of ARN (default: the current cluster)."""
    insight_id = insight_id.strip()
    if insight_id:
        insight = _with_cluster(
            ctx, arn, lambda session, c: session.source.describe_insight(c, insight_id),
        )
        print_insight_details(insight)
        return
    found = _with_cluster(ctx, arn, lambda session, c: session.source.list_insights(c))
    print_insights(found, _no_headers(ctx, no_headers))


@cli.command()
@click.argument("arn", required=False, default="")
@click.option("--no-headers", "no_headers", is_flag=True, help="Don't print headers")
@click.pass_context
def updates(ctx: click.Context, arn: str, no_headers: bool) -> None:
    """List control-plane updates of ARN (default: the current cluster)."""
    found = _with_cluster(ctx, arn, lambda session, c: session.source.list_updates(c))
    print_updates(found, _no_headers(ctx, no_headers))
