"""Tests for KubeconfigFile."""

from pathlib import Path

import pytest
import yaml

from kubectl_eks.errors import ConfigLoadError
from kubectl_eks.kube.kubeconfig import KubeconfigFile

PROD_ARN = "arn:aws:eks:eu-west-1:123456789012:cluster/prod-a"

KUBECONFIG = {
    "apiVersion": "v1",
    "kind": "Config",
    "current-context": PROD_ARN,
    "clusters": [{"name": PROD_ARN, "cluster": {"server": "https://prod"}}],
    "contexts": [
        {"name": PROD_ARN, "context": {"cluster": PROD_ARN, "user": PROD_ARN, "namespace": "payments"}},
        {"name": "kind-local", "context": {"cluster": "kind-local", "user": "kind"}},
    ],
    "users": [],
}


def _write(tmp_path: Path, data=None) -> KubeconfigFile:
    path = tmp_path / "config"
    path.write_text(yaml.safe_dump(data if data is not None else KUBECONFIG), encoding="utf-8")
    return KubeconfigFile(path)


class TestRead:
    def test_current_context_and_cluster(self, tmp_path: Path):
        kc = _write(tmp_path)
        assert kc.current_context() == PROD_ARN
        assert kc.current_cluster() == PROD_ARN

    def test_current_namespace(self, tmp_path: Path):
        assert _write(tmp_path).current_namespace() == "payments"

    def test_namespace_absent(self, tmp_path: Path):
        data = dict(KUBECONFIG, **{"current-context": "kind-local"})
        assert _write(tmp_path, data).current_namespace() == ""

    def test_no_current_context(self, tmp_path: Path):
        data = {k: v for k, v in KUBECONFIG.items() if k != "current-context"}
        kc = _write(tmp_path, data)
        assert kc.current_context() == ""
        with pytest.raises(ConfigLoadError, match="No current context"):
            kc.current_cluster()

    def test_unknown_context(self, tmp_path: Path):
        with pytest.raises(ConfigLoadError, match="not found"):
            _write(tmp_path).use_context("missing")

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigLoadError, match="Error loading kubeconfig"):
            KubeconfigFile(tmp_path / "nope").current_context()

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "config"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigLoadError, match="not a mapping"):
            KubeconfigFile(path).current_context()

    def test_reads_fresh_each_call(self, tmp_path: Path):
        kc = _write(tmp_path)
        assert kc.current_context() == PROD_ARN
        kc.path.write_text(
            yaml.safe_dump(dict(KUBECONFIG, **{"current-context": "kind-local"})),
            encoding="utf-8",
        )
        assert kc.current_context() == "kind-local"


class TestWrite:
    def test_use_context(self, tmp_path: Path):
        kc = _write(tmp_path)
        kc.use_context("kind-local")
        assert kc.current_context() == "kind-local"
        raw = yaml.safe_load(kc.path.read_text(encoding="utf-8"))
        assert raw["clusters"] == KUBECONFIG["clusters"]

    def test_use_unknown_context_leaves_file(self, tmp_path: Path):
        kc = _write(tmp_path)
        before = kc.path.read_text(encoding="utf-8")
        with pytest.raises(ConfigLoadError):
            kc.use_context("missing")
        assert kc.path.read_text(encoding="utf-8") == before

    def test_set_namespace(self, tmp_path: Path):
        kc = _write(tmp_path)
        kc.use_context("kind-local")
        kc.set_namespace("kube-system")
        assert kc.current_namespace() == "kube-system"

    def test_no_temp_files_left(self, tmp_path: Path):
        kc = _write(tmp_path)
        kc.set_namespace("other")
        assert [p.name for p in tmp_path.iterdir()] == ["config"]
