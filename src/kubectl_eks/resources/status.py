"""One-word status for Kubernetes objects.

Objects arrive as plain dicts (the decoded API JSON).  ``ResourceKind`` is
the closed set of kinds with a dedicated rendering; every other kind, CRDs
included, gets the ``GenericStatusView`` fallback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any


class ResourceKind(StrEnum):
    POD = "Pod"
    DEPLOYMENT = "Deployment"
    STATEFULSET = "StatefulSet"
    DAEMONSET = "DaemonSet"
    REPLICASET = "ReplicaSet"
    SERVICE = "Service"
    PDB = "PodDisruptionBudget"
    NODE = "Node"
    PVC = "PersistentVolumeClaim"
    PV = "PersistentVolume"
    JOB = "Job"
    CRONJOB = "CronJob"
    SECRET = "Secret"
    CONFIGMAP = "ConfigMap"
    INGRESS = "Ingress"
    NAMESPACE = "Namespace"

    @classmethod
    def parse(cls, kind: str) -> ResourceKind | None:
        """Case-insensitive lookup; ``None`` for kinds without a dedicated view."""
        wanted = kind.lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


@dataclass
class GenericStatusView:
    """The status fields many CRDs share."""

    phase: str = ""
    state: str = ""
    conditions: list[dict[str, Any]] = field(default_factory=list)
    ready: bool | None = None

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> GenericStatusView | None:
        status = obj.get("status")
        if not isinstance(status, dict):
            return None
        ready = status.get("ready")
        return cls(
            phase=_str(status.get("phase")),
            state=_str(status.get("state")),
            conditions=[c for c in status.get("conditions") or [] if isinstance(c, dict)],
            ready=ready if isinstance(ready, bool) else None,
        )

    def summary(self) -> str:
        if self.phase:
            return self.phase
        if self.state:
            return self.state
        if self.conditions:
            last = self.conditions[-1]
            cond_type = last.get("type")
            cond_status = last.get("status")
            if isinstance(cond_type, str) and isinstance(cond_status, str):
                return cond_type if cond_status == "True" else f"Not{cond_type}"
        if self.ready is not None:
            return "Ready" if self.ready else "NotReady"
        return "-"


def status_for(obj: dict[str, Any], kind: str | None = None) -> str:
    """Return the STATUS column for *obj*.

    *kind* defaults to the object's own ``kind`` field.
    """
    kind = kind if kind is not None else _str(obj.get("kind"))
    match ResourceKind.parse(kind):
        case ResourceKind.POD | ResourceKind.PVC | ResourceKind.PV:
            return _nested_str(obj, "status", "phase") or "Unknown"
        case ResourceKind.DEPLOYMENT:
            replicas = _nested_int(obj, "status", "replicas")
            ready = _nested_int(obj, "status", "readyReplicas")
            if ready == replicas:
                return f"{ready}/{replicas}"
            updated = _nested_int(obj, "status", "updatedReplicas")
            return f"{ready}/{replicas} (updated: {updated})"
        case ResourceKind.STATEFULSET | ResourceKind.REPLICASET:
            replicas = _nested_int(obj, "status", "replicas")
            ready = _nested_int(obj, "status", "readyReplicas")
            return f"{ready}/{replicas}"
        case ResourceKind.DAEMONSET:
            desired = _nested_int(obj, "status", "desiredNumberScheduled")
            current = _nested_int(obj, "status", "currentNumberScheduled")
            ready = _nested_int(obj, "status", "numberReady")
            return f"{ready}/{current} ready, {desired} desired"
        case ResourceKind.SERVICE:
            return _service_status(obj)
        case ResourceKind.PDB:
            healthy = _nested_int(obj, "status", "currentHealthy")
            desired = _nested_int(obj, "status", "desiredHealthy")
            allowed = _nested_int(obj, "status", "disruptionsAllowed")
            return f"{healthy}/{desired} healthy (allowed: {allowed})"
        case ResourceKind.NODE:
            return _node_status(obj)
        case ResourceKind.JOB:
            return _job_status(obj)
        case ResourceKind.CRONJOB:
            active = _nested(obj, "status", "active")
            if isinstance(active, list) and active:
                return f"{len(active)} active"
            last = _nested_str(obj, "status", "lastScheduleTime")
            if last:
                try:
                    return f"Last: {format_age(last)}"
                except ValueError:
                    pass
            return "No runs"
        case ResourceKind.SECRET:
            secret_type = _str(obj.get("type"))
            data = obj.get("data")
            if isinstance(data, dict):
                return f"{secret_type} ({len(data)})"
            return secret_type
        case ResourceKind.CONFIGMAP:
            data = obj.get("data")
            return f"{len(data) if isinstance(data, dict) else 0} keys"
        case ResourceKind.INGRESS:
            return _ingress_status(obj)
        case ResourceKind.NAMESPACE:
            return _nested_str(obj, "status", "phase") or "Active"
        case _:
            view = GenericStatusView.from_object(obj)
            return view.summary() if view is not None else "-"


def format_age(timestamp: str | datetime, now: datetime | None = None) -> str:
    """Render the time since *timestamp* as ``Ns``, ``Nm``, ``Nh`` or ``Nd``."""
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp)
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=UTC)
    now = now or datetime.now(tz=UTC)

    seconds = max(int((now - timestamp).total_seconds()), 0)
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m"
    if seconds < 86400:
        return f"{seconds // 3600}h"
    return f"{seconds // 86400}d"


def age_for(obj: dict[str, Any]) -> str:
    """AGE column from ``metadata.creationTimestamp``, or ``-``."""
    created = _nested_str(obj, "metadata", "creationTimestamp")
    if not created:
        return "-"
    try:
        return format_age(created)
    except ValueError:
        return "-"


def wide_info_for(obj: dict[str, Any], kind: str | None = None) -> str:
    """Extra detail column for ``-o wide``."""
    kind = kind if kind is not None else _str(obj.get("kind"))
    info: list[str] = []
    match ResourceKind.parse(kind):
        case ResourceKind.POD:
            ip = _nested_str(obj, "status", "podIP")
            node = _nested_str(obj, "spec", "nodeName")
            if ip:
                info.append(f"IP: {ip}")
            if node:
                info.append(f"Node: {node}")
            return ", ".join(info) or "-"
        case ResourceKind.NODE:
            addresses = {
                a.get("type"): a.get("address")
                for a in _nested(obj, "status", "addresses") or []
                if isinstance(a, dict)
            }
            internal = addresses.get("InternalIP")
            external = addresses.get("ExternalIP")
            if internal and external:
                return f"Internal: {internal}, External: {external}"
            return f"Internal: {internal}" if internal else "-"
        case ResourceKind.SERVICE:
            cluster_ip = _nested_str(obj, "spec", "clusterIP")
            if cluster_ip:
                info.append(f"ClusterIP: {cluster_ip}")
            external_ips = _nested(obj, "spec", "externalIPs")
            if isinstance(external_ips, list) and external_ips:
                info.append(f"ExternalIP: {','.join(map(str, external_ips))}")
            ports = [
                f"{p['port']}/{p.get('protocol', '')}"
                for p in _nested(obj, "spec", "ports") or []
                if isinstance(p, dict) and isinstance(p.get("port"), int) and p["port"] > 0
            ]
            if ports:
                info.append(f"Ports: {','.join(ports)}")
        case ResourceKind.DEPLOYMENT:
            labels = _nested(obj, "spec", "selector", "matchLabels")
            if isinstance(labels, dict) and labels:
                pairs = ",".join(f"{k}={v}" for k, v in sorted(labels.items()))
                info.append(f"Selector: {pairs}")
        case ResourceKind.PVC:
            volume = _nested_str(obj, "spec", "volumeName")
            storage_class = _nested_str(obj, "spec", "storageClassName")
            capacity = _nested_str(obj, "status", "capacity", "storage")
            if volume:
                info.append(f"Volume: {volume}")
            if storage_class:
                info.append(f"StorageClass: {storage_class}")
            if capacity:
                info.append(f"Capacity: {capacity}")
        case ResourceKind.PV:
            capacity = _nested_str(obj, "spec", "capacity", "storage")
            storage_class = _nested_str(obj, "spec", "storageClassName")
            if capacity:
                info.append(f"Capacity: {capacity}")
            if storage_class:
                info.append(f"StorageClass: {storage_class}")
        case ResourceKind.INGRESS:
            ingress_class = _nested_str(obj, "spec", "ingressClassName")
            if ingress_class:
                info.append(f"Class: {ingress_class}")
            hosts = [
                r["host"] for r in _nested(obj, "spec", "rules") or []
                if isinstance(r, dict) and r.get("host")
            ]
            if hosts:
                info.append(f"Hosts: {','.join(hosts)}")
        case _:
            return "-"
    return " | ".join(info) or "-"


# --- Per-kind helpers ---


def _service_status(obj: dict[str, Any]) -> str:
    svc_type = _nested_str(obj, "spec", "type")
    if svc_type == "LoadBalancer":
        ingress = _nested(obj, "status", "loadBalancer", "ingress")
        if isinstance(ingress, list) and ingress and isinstance(ingress[0], dict):
            address = ingress[0].get("ip") or ingress[0].get("hostname")
            if address:
                return f"{svc_type} ({address})"
        return f"{svc_type} (pending)"

    cluster_ip = _nested_str(obj, "spec", "clusterIP")
    if cluster_ip:
        return f"{svc_type} ({cluster_ip})"
    return svc_type


def _node_status(obj: dict[str, Any]) -> str:
    conditions = _nested(obj, "status", "conditions")
    if not isinstance(conditions, list):
        return "Unknown"
    for cond in conditions:
        if isinstance(cond, dict) and cond.get("type") == "Ready":
            if isinstance(cond.get("status"), str):
                return "Ready" if cond["status"] == "True" else "NotReady"
    return "Unknown"


def _job_status(obj: dict[str, Any]) -> str:
    succeeded = _nested_int(obj, "status", "succeeded")
    active = _nested_int(obj, "status", "active")
    failed = _nested_int(obj, "status", "failed")
    if succeeded > 0:
        return "Complete"
    if failed > 0:
        return f"Failed ({failed}/{active + failed})"
    if active > 0:
        return f"Running ({active} active)"
    return "Pending"


def _ingress_status(obj: dict[str, Any]) -> str:
    ingresses = _nested(obj, "status", "loadBalancer", "ingress")
    if isinstance(ingresses, list):
        addresses = [
            ing.get("ip") or ing.get("hostname")
            for ing in ingresses
            if isinstance(ing, dict) and (ing.get("ip") or ing.get("hostname"))
        ]
        if addresses:
            return ",".join(addresses)

    rules = _nested(obj, "spec", "rules")
    if isinstance(rules, list):
        return f"{len(rules)} rule(s)"
    return "Pending"


# --- Nested field access ---


def _nested(obj: dict[str, Any], *keys: str) -> Any:
    value: Any = obj
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _nested_str(obj: dict[str, Any], *keys: str) -> str:
    return _str(_nested(obj, *keys))


def _nested_int(obj: dict[str, Any], *keys: str) -> int:
    value = _nested(obj, *keys)
    if isinstance(value, bool) or not isinstance(value, int):
        return 0
    return value


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""
