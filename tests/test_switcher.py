"""Tests for cross-cluster context switching.

The AWS CLI is never executed; ``subprocess.run`` is patched or a fake
switch is used.
"""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml

from kubectl_eks.errors import ContextSwitchError
from kubectl_eks.kube.kubeconfig import KubeconfigFile
from kubectl_eks.kube.switcher import AwsCliSwitcher, ContextSwitcher
from kubectl_eks.models import ClusterRecord

ORIGINAL = "kind-local"


def _cluster(name: str, profile: str = "prod") -> ClusterRecord:
    return ClusterRecord(
        cluster_name=name,
        region="eu-west-1",
        profile_name=profile,
        account_id="123456789012",
        arn=f"arn:aws:eks:eu-west-1:123456789012:cluster/{name}",
    )


def _kubeconfig(tmp_path: Path, clusters: list[ClusterRecord]) -> KubeconfigFile:
    contexts = [{"name": ORIGINAL, "context": {"cluster": ORIGINAL}}]
    contexts += [{"name": c.arn, "context": {"cluster": c.arn}} for c in clusters]
    path = tmp_path / "config"
    path.write_text(
        yaml.safe_dump({"current-context": ORIGINAL, "contexts": contexts}),
        encoding="utf-8",
    )
    return KubeconfigFile(path)


class FakeSwitch:
    """Mimics update-kubeconfig: makes the cluster's context current."""

    def __init__(self, kubeconfig: KubeconfigFile, failing=()):
        self.kubeconfig = kubeconfig
        self.failing = set(failing)
        self.calls: list[str] = []

    def switch(self, cluster):
        self.calls.append(cluster.cluster_name)
        if cluster.cluster_name in self.failing:
            raise ContextSwitchError(f"cannot switch to {cluster.cluster_name}")
        self.kubeconfig.use_context(cluster.arn)


# --- ContextSwitcher ---


class TestRunAcrossClusters:
    def test_visits_in_order_and_restores(self, tmp_path: Path):
        clusters = [_cluster("a"), _cluster("b")]
        kc = _kubeconfig(tmp_path, clusters)
        switcher = ContextSwitcher(kc, FakeSwitch(kc))

        seen = switcher.run_across_clusters(clusters, lambda c: kc.current_cluster())

        assert seen == [clusters[0].arn, clusters[1].arn]
        assert kc.current_context() == ORIGINAL

    def test_restores_when_visit_fails(self, tmp_path: Path):
        clusters = [_cluster("a"), _cluster("b")]
        kc = _kubeconfig(tmp_path, clusters)
        switcher = ContextSwitcher(kc, FakeSwitch(kc))

        def visit(cluster):
            if cluster.cluster_name == "a":
                raise RuntimeError("boom")
            return cluster.cluster_name

        assert switcher.run_across_clusters(clusters, visit) == ["b"]
        assert kc.current_context() == ORIGINAL

    def test_switch_failure_skips_cluster(self, tmp_path: Path):
        clusters = [_cluster("a"), _cluster("b")]
        kc = _kubeconfig(tmp_path, clusters)
        switch = FakeSwitch(kc, failing=["a"])
        visit = MagicMock(side_effect=lambda c: c.cluster_name)

        result = ContextSwitcher(kc, switch).run_across_clusters(clusters, visit)

        assert result == ["b"]
        assert visit.call_count == 1
        assert kc.current_context() == ORIGINAL

    def test_restores_on_interrupt(self, tmp_path: Path):
        clusters = [_cluster("a"), _cluster("b")]
        kc = _kubeconfig(tmp_path, clusters)
        switcher = ContextSwitcher(kc, FakeSwitch(kc))

        def visit(cluster):
            raise KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            switcher.run_across_clusters(clusters, visit)
        assert kc.current_context() == ORIGINAL

    def test_no_clusters(self, tmp_path: Path):
        kc = _kubeconfig(tmp_path, [])
        switch = FakeSwitch(kc)
        assert ContextSwitcher(kc, switch).run_across_clusters([], lambda c: c) == []
        assert switch.calls == []
        assert kc.current_context() == ORIGINAL

    def test_single_current_cluster_skips_switch(self, tmp_path: Path):
        cluster = _cluster("a")
        kc = _kubeconfig(tmp_path, [cluster])
        kc.use_context(cluster.arn)
        switch = FakeSwitch(kc)

        result = ContextSwitcher(kc, switch).run_across_clusters(
            [cluster], lambda c: c.cluster_name,
        )

        assert result == ["a"]
        assert switch.calls == []
        assert kc.current_context() == cluster.arn

    def test_missing_kubeconfig_does_not_block_visits(self, tmp_path: Path):
        kc = KubeconfigFile(tmp_path / "absent")
        switch = MagicMock()
        result = ContextSwitcher(kc, switch).run_across_clusters(
            [_cluster("a")], lambda c: c.cluster_name,
        )
        assert result == ["a"]
        switch.switch.assert_called_once()


class TestPreserved:
    def test_yields_previous_and_restores(self, tmp_path: Path):
        cluster = _cluster("a")
        kc = _kubeconfig(tmp_path, [cluster])
        switcher = ContextSwitcher(kc, FakeSwitch(kc))

        with switcher.preserved() as previous:
            assert previous == ORIGINAL
            switcher.switch_to(cluster)
            assert kc.current_context() == cluster.arn
        assert kc.current_context() == ORIGINAL

    def test_restore_write_failure_keeps_original_error(self, caplog):
        kc = MagicMock()
        kc.current_context.return_value = ORIGINAL
        kc.use_context.side_effect = OSError("read-only file system")
        switcher = ContextSwitcher(kc, MagicMock())

        with pytest.raises(RuntimeError, match="visit failed"):
            with switcher.preserved():
                raise RuntimeError("visit failed")

        kc.use_context.assert_called_once_with(ORIGINAL)
        assert "Failed to restore kubeconfig context" in caplog.text


# --- AwsCliSwitcher ---


class TestAwsCliSwitcher:
    def test_build_command(self):
        cmd = AwsCliSwitcher().build_command(_cluster("a"))
        assert cmd == [
            "aws", "eks", "update-kubeconfig",
            "--name", "a", "--region", "eu-west-1", "--profile", "prod",
        ]

    def test_build_command_without_profile(self):
        cmd = AwsCliSwitcher().build_command(_cluster("a", profile=""))
        assert "--profile" not in cmd

    def test_build_command_with_kubeconfig(self, tmp_path: Path):
        cmd = AwsCliSwitcher("/opt/aws", tmp_path / "kc").build_command(_cluster("a"))
        assert cmd[0] == "/opt/aws"
        assert cmd[-2:] == ["--kubeconfig", str(tmp_path / "kc")]

    def test_switch_success(self):
        completed = subprocess.CompletedProcess([], 0, stdout="Updated context", stderr="")
        with patch("kubectl_eks.kube.switcher.subprocess.run", return_value=completed) as run:
            AwsCliSwitcher(timeout=30).switch(_cluster("a"))
        args, kwargs = run.call_args
        assert args[0][:3] == ["aws", "eks", "update-kubeconfig"]
        assert kwargs["timeout"] == 30

    def test_non_zero_exit(self):
        completed = subprocess.CompletedProcess([], 255, stdout="", stderr="access denied\n")
        with patch("kubectl_eks.kube.switcher.subprocess.run", return_value=completed):
            with pytest.raises(ContextSwitchError, match="exit 255.*access denied"):
                AwsCliSwitcher().switch(_cluster("a"))

    def test_cli_missing(self):
        with patch("kubectl_eks.kube.switcher.subprocess.run", side_effect=FileNotFoundError):
            with pytest.raises(ContextSwitchError, match="AWS CLI not found"):
                AwsCliSwitcher("aws-missing").switch(_cluster("a"))

    def test_timeout(self):
        err = subprocess.TimeoutExpired(["aws"], 5)
        with patch("kubectl_eks.kube.switcher.subprocess.run", side_effect=err):
            with pytest.raises(ContextSwitchError, match="Timed out"):
                AwsCliSwitcher(timeout=5).switch(_cluster("a"))
