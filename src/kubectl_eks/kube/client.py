"""Kubernetes API access for the ambient context.

Requires the ``kubernetes`` package.  A new ``ApiClient`` is built from the
kubeconfig on every ``KubeClients`` instance, so a client created after a
context switch talks to the newly selected cluster.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from kubectl_eks.kube.kubeconfig import KubeconfigFile

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"


@dataclass(frozen=True)
class APIResourceInfo:
    """One entry of a discovery ``APIResourceList``."""

    name: str
    singular_name: str = ""
    kind: str = ""
    namespaced: bool = True
    short_names: tuple[str, ...] = field(default_factory=tuple)


class DiscoveryClient:
    """Server-preferred resources from the API discovery endpoints."""

    def __init__(self, api_client: Any) -> None:
        self._api_client = api_client

    def server_preferred_resources(self) -> list[tuple[str, list[APIResourceInfo]]]:
        """Return ``(groupVersion, resources)`` for ``v1`` and every API group.

        Only the preferred version of each group is listed.  Subresources
        (``pods/log`` and the like) are excluded.  A group version whose
        discovery call fails is logged and left out.
        """
        from kubernetes import client

        groups: list[tuple[str, list[APIResourceInfo]]] = []
        core = client.CoreV1Api(self._api_client).get_api_resources()
        groups.append(("v1", _resource_infos(core)))

        for group in client.ApisApi(self._api_client).get_api_versions().groups or []:
            preferred = group.preferred_version or (group.versions or [None])[0]
            if preferred is None:
                continue
            group_version = preferred.group_version
            try:
                resource_list = self._api_client.call_api(
                    f"/apis/{group_version}", "GET",
                    response_type="V1APIResourceList",
                    auth_settings=["BearerToken"],
                    _return_http_data_only=True,
                )
            except Exception as exc:
                logger.debug("Discovery failed for %s: %s", group_version, exc)
                continue
            groups.append((group_version, _resource_infos(resource_list)))
        return groups


class KubeClients:
    """Typed API accessors plus raw path access for arbitrary resources."""

    def __init__(self, kubeconfig: str | Path, context: str | None = None) -> None:
        self._kubeconfig = Path(kubeconfig)
        self._context = context
        self._api_client: Any = None

    @property
    def api_client(self) -> Any:
        if self._api_client is None:
            self._api_client = self._get_api_client()
        return self._api_client

    def core(self) -> Any:
        from kubernetes import client

        return client.CoreV1Api(self.api_client)

    def apps(self) -> Any:
        from kubernetes import client

        return client.AppsV1Api(self.api_client)

    def authentication(self) -> Any:
        from kubernetes import client

        return client.AuthenticationV1Api(self.api_client)

    def discovery(self) -> DiscoveryClient:
        return DiscoveryClient(self.api_client)

    def current_namespace(self) -> str:
        """The ambient context's namespace, or ``default``."""
        try:
            return KubeconfigFile(self._kubeconfig).current_namespace() or DEFAULT_NAMESPACE
        except Exception as exc:
            logger.debug("Falling back to namespace %s: %s", DEFAULT_NAMESPACE, exc)
            return DEFAULT_NAMESPACE

    def list_namespaces(self) -> list[str]:
        return [ns.metadata.name for ns in self.core().list_namespace().items]

    def get_raw(self, path: str, query: dict[str, Any] | None = None) -> dict[str, Any]:
        """GET *path* and return the decoded JSON body as plain dicts."""
        return self.api_client.call_api(
            path, "GET",
            query_params=list((query or {}).items()),
            response_type="object",
            auth_settings=["BearerToken"],
            _return_http_data_only=True,
        )

    # --- Private ---

    def _get_api_client(self) -> Any:
        from kubernetes import config

        kwargs: dict[str, Any] = {"config_file": str(self._kubeconfig)}
        if self._context:
            kwargs["context"] = self._context
        return config.new_client_from_config(**kwargs)


def _resource_infos(resource_list: Any) -> list[APIResourceInfo]:
    infos: list[APIResourceInfo] = []
    for res in getattr(resource_list, "resources", None) or []:
        if "/" in res.name:
            continue
        infos.append(APIResourceInfo(
            name=res.name,
            singular_name=res.singular_name or "",
            kind=res.kind or "",
            namespaced=bool(res.namespaced),
            short_names=tuple(res.short_names or ()),
        ))
    return infos
