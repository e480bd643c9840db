"""Generic resource listing and JSONPath extraction for one cluster.

Both entry points run inside a cluster visit: the ambient context already
points at *cluster*, and *clients* talks to it.  Failures are returned as
error rows so the other clusters still produce output.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import click
from jsonpath_ng.exceptions import JsonPathLexerError, JsonPathParserError
from jsonpath_ng.ext import parse as jsonpath_parse
from jsonpath_ng.jsonpath import JSONPath

from kubectl_eks.errors import ResourceTypeNotFoundError
from kubectl_eks.kube.client import KubeClients
from kubectl_eks.models import ClusterRecord, JsonPathResult, ResourceResult
from kubectl_eks.resources.status import status_for
from kubectl_eks.resources.types import ResourceTypeMapping, ResourceTypeResolver

logger = logging.getLogger(__name__)

NOT_FOUND = "<not found>"


# --- Listing ---


def list_resources(
    clients: KubeClients,
    cluster: ClusterRecord,
    type_token: str,
    name: str = "",
    namespace: str = "",
    all_namespaces: bool = False,
    starts_with: str = "",
    resolver: ResourceTypeResolver | None = None,
) -> list[ResourceResult]:
    """Get one named object, or list every object of a type, in *cluster*."""
    resolver = resolver or ResourceTypeResolver(clients.discovery())
    try:
        mapping = resolver.resolve(type_token)
    except ResourceTypeNotFoundError as e:
        return [_resource_row(
            cluster, error=f"Failed to resolve resource type '{type_token}': {e}",
        )]

    results: list[ResourceResult] = []
    for ns in target_namespaces(clients, mapping, namespace, all_namespaces):
        try:
            objects = fetch_objects(clients, mapping, ns, name)
        except Exception as exc:
            results.append(_resource_row(cluster, namespace=ns, name=name, error=_api_error(exc)))
            continue

        for obj in objects:
            obj_name = _meta(obj, "name")
            if not name and starts_with and not obj_name.startswith(starts_with):
                continue
            kind = str(obj.get("kind") or "")
            results.append(_resource_row(
                cluster,
                namespace=ns,
                name=obj_name,
                kind=kind,
                status=status_for(obj, kind),
                data=obj,
            ))
    return results


def target_namespaces(
    clients: KubeClients,
    mapping: ResourceTypeMapping,
    namespace: str = "",
    all_namespaces: bool = False,
) -> list[str]:
    """Namespaces to query: ``[""]`` for cluster-scoped types."""
    if not mapping.namespaced:
        return [""]
    if all_namespaces:
        try:
            return clients.list_namespaces()
        except Exception as exc:
            logger.warning("Failed to list namespaces: %s", _api_error(exc))
            return []
    if namespace:
        return [namespace]
    return [clients.current_namespace()]


def fetch_objects(
    clients: KubeClients,
    mapping: ResourceTypeMapping,
    namespace: str,
    name: str = "",
) -> list[dict[str, Any]]:
    """GET one object or a collection and return the objects as dicts."""
    body = clients.get_raw(mapping.path(namespace, name))
    if name:
        return [body]

    # List items carry no kind of their own.
    item_kind = str(body.get("kind") or "").removesuffix("List")
    items = []
    for item in body.get("items") or []:
        if item_kind and not item.get("kind"):
            item = {"kind": item_kind, **item}
        items.append(item)
    return items


# --- JSONPath ---


def compile_jsonpath(expression: str) -> JSONPath:
    """Parse a kubectl-style JSONPath (``{.spec.x}`` or ``.spec.x``).

    Raises:
        click.BadParameter: the expression does not parse.
    """
    expr = expression.strip()
    if expr.startswith("{") and expr.endswith("}"):
        expr = expr[1:-1].strip()
    if expr.startswith("."):
        expr = "$" + expr
    try:
        return jsonpath_parse(expr)
    except (JsonPathLexerError, JsonPathParserError) as e:
        raise click.BadParameter(
            f"Error parsing JSONPath expression '{expression}': {e}",
            param_hint="'-o jsonpath='",
        ) from e


def jsonpath_query(
    clients: KubeClients,
    cluster: ClusterRecord,
    type_token: str,
    expression: JSONPath,
    name: str = "",
    namespace: str = "",
    all_namespaces: bool = False,
    starts_with: str = "",
    resolver: ResourceTypeResolver | None = None,
) -> list[JsonPathResult]:
    """Evaluate *expression* against every matching object in *cluster*."""
    resolver = resolver or ResourceTypeResolver(clients.discovery())
    try:
        mapping = resolver.resolve(type_token)
    except ResourceTypeNotFoundError as e:
        return [_jsonpath_row(cluster, error=f"Failed to resolve resource type: {e}")]

    results: list[JsonPathResult] = []
    for ns in target_namespaces(clients, mapping, namespace, all_namespaces):
        try:
            objects = fetch_objects(clients, mapping, ns, name)
        except Exception as exc:
            results.append(_jsonpath_row(
                cluster, namespace=ns, resource=name or "all", error=_api_error(exc),
            ))
            continue

        for obj in objects:
            obj_name = _meta(obj, "name")
            if not name and starts_with and not obj_name.startswith(starts_with):
                continue
            matches = expression.find(obj)
            value = format_value(matches[0].value) if matches else NOT_FOUND
            results.append(_jsonpath_row(cluster, namespace=ns, resource=obj_name, value=value))
    return results


def format_value(value: Any) -> str:
    """Scalars print as text; lists and maps print as compact JSON."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int | float):
        return str(value)
    try:
        return json.dumps(value, separators=(",", ":"))
    except (TypeError, ValueError):
        return str(value)


# --- Private ---


def _meta(obj: dict[str, Any], key: str) -> str:
    metadata = obj.get("metadata")
    if not isinstance(metadata, dict):
        return ""
    return str(metadata.get(key) or "")


def _api_error(exc: Exception) -> str:
    # kubernetes ApiException, matched by name to keep the import lazy
    if type(exc).__name__ == "ApiException":
        return f"K8s API error ({exc.status}): {exc.reason}"
    return str(exc)


def _resource_row(cluster: ClusterRecord, **fields: Any) -> ResourceResult:
    return ResourceResult(
        profile=cluster.profile_name,
        region=cluster.region,
        cluster_name=cluster.cluster_name,
        **fields,
    )


def _jsonpath_row(cluster: ClusterRecord, **fields: Any) -> JsonPathResult:
    return JsonPathResult(
        profile=cluster.profile_name,
        region=cluster.region,
        cluster_name=cluster.cluster_name,
        **fields,
    )
