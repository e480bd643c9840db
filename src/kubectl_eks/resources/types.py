"""ResourceTypeResolver: maps a resource-type token to an API resource.

Tokens from the static short-name table resolve without touching the
server.  Anything else goes to the discovery API and is matched
case-insensitively against each resource's plural name, singular name
and declared short names.  Kind names are not matched.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from kubectl_eks.errors import ResourceTypeNotFoundError
from kubectl_eks.kube.client import APIResourceInfo

CLUSTER_SCOPED: frozenset[str] = frozenset({
    "nodes",
    "namespaces",
    "persistentvolumes",
    "clusterroles",
    "clusterrolebindings",
    "storageclasses",
    "customresourcedefinitions",
    "priorityclasses",
})


@dataclass(frozen=True)
class ResourceTypeMapping:
    """A fully qualified API resource (GVR) and its scope."""

    group: str
    version: str
    resource: str
    namespaced: bool = True

    @property
    def group_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    def path(self, namespace: str = "", name: str = "") -> str:
        """REST path for the collection, or for one object when *name* is set."""
        prefix = f"/apis/{self.group}/{self.version}" if self.group else f"/api/{self.version}"
        if self.namespaced and namespace:
            prefix = f"{prefix}/namespaces/{namespace}"
        path = f"{prefix}/{self.resource}"
        return f"{path}/{name}" if name else path


def _mapping(group: str, resource: str, version: str = "v1") -> ResourceTypeMapping:
    return ResourceTypeMapping(
        group=group,
        version=version,
        resource=resource,
        namespaced=resource not in CLUSTER_SCOPED,
    )


_PODS = _mapping("", "pods")
_SERVICES = _mapping("", "services")
_DEPLOYMENTS = _mapping("apps", "deployments")
_DAEMONSETS = _mapping("apps", "daemonsets")
_STATEFULSETS = _mapping("apps", "statefulsets")
_CONFIGMAPS = _mapping("", "configmaps")
_PDBS = _mapping("policy", "poddisruptionbudgets")
_INGRESSES = _mapping("networking.k8s.io", "ingresses")
_NODES = _mapping("", "nodes")
_NAMESPACES = _mapping("", "namespaces")

SHORT_NAMES: dict[str, ResourceTypeMapping] = {
    "po": _PODS,
    "pod": _PODS,
    "pods": _PODS,
    "svc": _SERVICES,
    "service": _SERVICES,
    "services": _SERVICES,
    "deploy": _DEPLOYMENTS,
    "deployment": _DEPLOYMENTS,
    "deployments": _DEPLOYMENTS,
    "ds": _DAEMONSETS,
    "daemonset": _DAEMONSETS,
    "daemonsets": _DAEMONSETS,
    "sts": _STATEFULSETS,
    "statefulset": _STATEFULSETS,
    "statefulsets": _STATEFULSETS,
    "cm": _CONFIGMAPS,
    "configmap": _CONFIGMAPS,
    "configmaps": _CONFIGMAPS,
    "pdb": _PDBS,
    "ing": _INGRESSES,
    "ingress": _INGRESSES,
    "ingresses": _INGRESSES,
    "no": _NODES,
    "node": _NODES,
    "nodes": _NODES,
    "ns": _NAMESPACES,
    "namespace": _NAMESPACES,
    "namespaces": _NAMESPACES,
}


class Discovery(Protocol):
    def server_preferred_resources(self) -> list[tuple[str, list[APIResourceInfo]]]: ...


class ResourceTypeResolver:
    """Resolve tokens against the static table, then server discovery.

    Discovery is queried at most once per resolver; one resolver is built
    per cluster visit since each cluster has its own set of CRDs.
    """

    def __init__(self, discovery: Discovery) -> None:
        self._discovery = discovery
        self._discovered: list[tuple[str, list[APIResourceInfo]]] | None = None

    def resolve(self, token: str) -> ResourceTypeMapping:
        """Return the mapping for *token*.

        Raises:
            ResourceTypeNotFoundError: neither the table nor discovery
                knows the token.
        """
        wanted = token.strip().lower()
        if not wanted:
            raise ResourceTypeNotFoundError(token)

        mapping = SHORT_NAMES.get(wanted)
        if mapping is not None:
            return mapping

        for group_version, resources in self._preferred_resources(token):
            group, _, version = group_version.rpartition("/")
            for res in resources:
                if _matches(res, wanted):
                    return ResourceTypeMapping(
                        group=group,
                        version=version,
                        resource=res.name,
                        namespaced=res.namespaced,
                    )

        raise ResourceTypeNotFoundError(token)

    def _preferred_resources(self, token: str) -> list[tuple[str, list[APIResourceInfo]]]:
        if self._discovered is None:
            try:
                self._discovered = self._discovery.server_preferred_resources()
            except Exception as exc:
                raise ResourceTypeNotFoundError(token, f"discovery failed: {exc}") from exc
        return self._discovered


def _matches(res: APIResourceInfo, wanted: str) -> bool:
    if res.name.lower() == wanted or res.singular_name.lower() == wanted:
        return True
    return any(short.lower() == wanted for short in res.short_names)
