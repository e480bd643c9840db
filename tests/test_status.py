"""Tests for per-kind status, age and wide-output rendering."""

from datetime import UTC, datetime, timedelta

import pytest

from kubectl_eks.resources.status import (
    GenericStatusView,
    ResourceKind,
    age_for,
    format_age,
    status_for,
    wide_info_for,
)


class TestResourceKind:
    def test_parse_case_insensitive(self):
        assert ResourceKind.parse("deployment") is ResourceKind.DEPLOYMENT
        assert ResourceKind.parse("PodDisruptionBudget") is ResourceKind.PDB

    def test_parse_unknown(self):
        assert ResourceKind.parse("Widget") is None
        assert ResourceKind.parse("") is None


class TestStatusFor:
    def test_pod_phase(self):
        assert status_for({"kind": "Pod", "status": {"phase": "Running"}}) == "Running"
        assert status_for({"kind": "Pod"}) == "Unknown"

    def test_deployment(self):
        ready = {"kind": "Deployment", "status": {"replicas": 3, "readyReplicas": 3}}
        assert status_for(ready) == "3/3"
        rolling = {"kind": "Deployment", "status": {"replicas": 3, "readyReplicas": 1, "updatedReplicas": 2}}
        assert status_for(rolling) == "1/3 (updated: 2)"

    def test_statefulset(self):
        obj = {"kind": "StatefulSet", "status": {"replicas": 2, "readyReplicas": 1}}
        assert status_for(obj) == "1/2"

    def test_daemonset(self):
        obj = {"kind": "DaemonSet", "status": {
            "desiredNumberScheduled": 3, "currentNumberScheduled": 3, "numberReady": 2,
        }}
        assert status_for(obj) == "2/3 ready, 3 desired"

    def test_service_cluster_ip(self):
        obj = {"kind": "Service", "spec": {"type": "ClusterIP", "clusterIP": "10.0.0.1"}}
        assert status_for(obj) == "ClusterIP (10.0.0.1)"

    def test_service_load_balancer(self):
        pending = {"kind": "Service", "spec": {"type": "LoadBalancer"}}
        assert status_for(pending) == "LoadBalancer (pending)"
        ready = {"kind": "Service", "spec": {"type": "LoadBalancer"},
                 "status": {"loadBalancer": {"ingress": [{"hostname": "lb.example.com"}]}}}
        assert status_for(ready) == "LoadBalancer (lb.example.com)"

    def test_pdb(self):
        obj = {"kind": "PodDisruptionBudget", "status": {
            "currentHealthy": 2, "desiredHealthy": 2, "disruptionsAllowed": 1,
        }}
        assert status_for(obj) == "2/2 healthy (allowed: 1)"

    @pytest.mark.parametrize(("status", "expected"), [
        ("True", "Ready"),
        ("False", "NotReady"),
        ("Unknown", "NotReady"),
    ])
    def test_node(self, status, expected):
        obj = {"kind": "Node", "status": {"conditions": [
            {"type": "MemoryPressure", "status": "False"},
            {"type": "Ready", "status": status},
        ]}}
        assert status_for(obj) == expected

    def test_node_without_conditions(self):
        assert status_for({"kind": "Node"}) == "Unknown"

    @pytest.mark.parametrize(("status", "expected"), [
        ({"succeeded": 1}, "Complete"),
        ({"failed": 2, "active": 1}, "Failed (2/3)"),
        ({"active": 1}, "Running (1 active)"),
        ({}, "Pending"),
    ])
    def test_job(self, status, expected):
        assert status_for({"kind": "Job", "status": status}) == expected

    def test_cronjob(self):
        assert status_for({"kind": "CronJob", "status": {"active": [{}, {}]}}) == "2 active"
        assert status_for({"kind": "CronJob"}) == "No runs"

    def test_secret_and_configmap(self):
        secret = {"kind": "Secret", "type": "Opaque", "data": {"a": "x", "b": "y"}}
        assert status_for(secret) == "Opaque (2)"
        assert status_for({"kind": "ConfigMap", "data": {"k": "v"}}) == "1 keys"
        assert status_for({"kind": "ConfigMap"}) == "0 keys"

    def test_ingress(self):
        with_lb = {"kind": "Ingress", "status": {"loadBalancer": {"ingress": [{"ip": "1.2.3.4"}]}}}
        assert status_for(with_lb) == "1.2.3.4"
        rules_only = {"kind": "Ingress", "spec": {"rules": [{}, {}]}}
        assert status_for(rules_only) == "2 rule(s)"
        assert status_for({"kind": "Ingress"}) == "Pending"

    def test_namespace_defaults_active(self):
        assert status_for({"kind": "Namespace"}) == "Active"

    def test_explicit_kind_overrides_field(self):
        assert status_for({"status": {"phase": "Bound"}}, kind="PersistentVolumeClaim") == "Bound"


class TestGenericStatusView:
    def test_phase_first(self):
        obj = {"kind": "Widget", "status": {"phase": "Provisioning", "state": "x"}}
        assert status_for(obj) == "Provisioning"

    def test_state(self):
        assert status_for({"kind": "Widget", "status": {"state": "Healthy"}}) == "Healthy"

    def test_last_condition(self):
        obj = {"kind": "Widget", "status": {"conditions": [
            {"type": "Synced", "status": "True"},
            {"type": "Ready", "status": "False"},
        ]}}
        assert status_for(obj) == "NotReady"

    def test_ready_flag(self):
        assert status_for({"kind": "Widget", "status": {"ready": True}}) == "Ready"

    def test_no_status(self):
        assert status_for({"kind": "Widget"}) == "-"
        assert GenericStatusView.from_object({"status": "weird"}) is None

    def test_empty_status(self):
        assert status_for({"kind": "Widget", "status": {}}) == "-"


class TestAge:
    NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=UTC)

    @pytest.mark.parametrize(("delta", "expected"), [
        (timedelta(seconds=5), "5s"),
        (timedelta(minutes=3, seconds=10), "3m"),
        (timedelta(hours=5), "5h"),
        (timedelta(days=12, hours=3), "12d"),
        (timedelta(seconds=-30), "0s"),
    ])
    def test_format_age(self, delta, expected):
        assert format_age(self.NOW - delta, now=self.NOW) == expected

    def test_format_age_iso_string(self):
        assert format_age("2024-06-01T11:00:00Z", now=self.NOW) == "1h"

    def test_naive_datetime_treated_as_utc(self):
        naive = datetime(2024, 6, 1, 11, 59, 0)
        assert format_age(naive, now=self.NOW) == "1m"

    def test_age_for_missing_or_invalid(self):
        assert age_for({}) == "-"
        assert age_for({"metadata": {"creationTimestamp": "yesterday"}}) == "-"


class TestWideInfo:
    def test_pod(self):
        obj = {"kind": "Pod", "status": {"podIP": "10.1.2.3"}, "spec": {"nodeName": "ip-10-0-0-1"}}
        assert wide_info_for(obj) == "IP: 10.1.2.3, Node: ip-10-0-0-1"

    def test_node(self):
        obj = {"kind": "Node", "status": {"addresses": [
            {"type": "InternalIP", "address": "10.0.0.1"},
            {"type": "ExternalIP", "address": "54.1.1.1"},
        ]}}
        assert wide_info_for(obj) == "Internal: 10.0.0.1, External: 54.1.1.1"

    def test_service(self):
        obj = {"kind": "Service", "spec": {
            "clusterIP": "10.0.0.9",
            "ports": [{"port": 80, "protocol": "TCP"}, {"port": 443, "protocol": "TCP"}],
        }}
        assert wide_info_for(obj) == "ClusterIP: 10.0.0.9 | Ports: 80/TCP,443/TCP"

    def test_deployment_selector_sorted(self):
        obj = {"kind": "Deployment", "spec": {"selector": {"matchLabels": {"tier": "web", "app": "shop"}}}}
        assert wide_info_for(obj) == "Selector: app=shop,tier=web"

    def test_ingress(self):
        obj = {"kind": "Ingress", "spec": {
            "ingressClassName": "alb", "rules": [{"host": "a.example.com"}, {}],
        }}
        assert wide_info_for(obj) == "Class: alb | Hosts: a.example.com"

    def test_unknown_kind(self):
        assert wide_info_for({"kind": "ConfigMap"}) == "-"
        assert wide_info_for({"kind": "Widget"}) == "-"
