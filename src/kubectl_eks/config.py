"""Config file loading and auto-discovery for kubectl-eks.

Searches for ``kubectl-eks.yaml`` in the current directory and parent
directories, then in ``~/.kube``.  Every setting has a default derived from
the environment, so running without any config file is the normal case.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from kubectl_eks.errors import ConfigLoadError

CONFIG_FILENAME = "kubectl-eks.yaml"
DEFAULT_HINT_MARKER = "kubectl-eks-regions"
CACHE_FILENAME = ".kubectl-eks-cache"


def _default_aws_config() -> Path:
    env = os.environ.get("AWS_CONFIG_FILE")
    if env:
        return Path(env).expanduser()
    return Path.home() / ".aws" / "config"


def _default_kubeconfig() -> Path:
    env = os.environ.get("KUBECONFIG")
    if env:
        return Path(env.split(os.pathsep)[0]).expanduser()
    return Path.home() / ".kube" / "config"


def _default_cache_file() -> Path:
    return Path.home() / ".kube" / CACHE_FILENAME


@dataclass(frozen=True)
class KubectlEksConfig:
    """Resolved kubectl-eks settings."""

    config_path: Path | None = None
    aws_config: Path = field(default_factory=_default_aws_config)
    kubeconfig: Path = field(default_factory=_default_kubeconfig)
    cache_file: Path = field(default_factory=_default_cache_file)
    hint_marker: str = DEFAULT_HINT_MARKER
    aws_cli: str = "aws"


def find_config(start: Path | None = None) -> Path | None:
    """Walk from *start* (default ``cwd()``) up to the filesystem root.

    Returns the first ``kubectl-eks.yaml`` found, or ``None``.
    """
    current = (start or Path.cwd()).resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            return None
        current = parent


def load_config(
    path: str | Path | None = None,
    *,
    auto_discover: bool = True,
) -> KubectlEksConfig:
    """Load a kubectl-eks config file.

    Resolution order:

    1. Explicit *path* (error if it doesn't exist).
    2. Auto-discover by walking parent directories.
    3. ``~/.kube/kubectl-eks.yaml``.
    4. Return a ``KubectlEksConfig`` with all defaults.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path).expanduser().resolve()
        if not config_path.is_file():
            msg = f"Config file not found: {config_path}"
            raise FileNotFoundError(msg)
    elif auto_discover:
        config_path = find_config()
        if config_path is None:
            home_candidate = Path.home() / ".kube" / CONFIG_FILENAME
            if home_candidate.is_file():
                config_path = home_candidate

    if config_path is None:
        return KubectlEksConfig()

    return _parse_config(config_path)


def _parse_config(config_path: Path) -> KubectlEksConfig:
    """Read and parse a YAML config file, resolving relative paths."""
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        msg = f"Expected a YAML mapping in {config_path}, got {type(data).__name__}"
        raise ConfigLoadError(msg)

    base = config_path.parent
    defaults = KubectlEksConfig()

    def _resolve(key: str, fallback: Path) -> Path:
        val = data.get(key)
        if val is None:
            return fallback
        return (base / Path(str(val)).expanduser()).resolve()

    return KubectlEksConfig(
        config_path=config_path,
        aws_config=_resolve("aws_config", defaults.aws_config),
        kubeconfig=_resolve("kubeconfig", defaults.kubeconfig),
        cache_file=_resolve("cache_file", defaults.cache_file),
        hint_marker=str(data.get("hint_marker", DEFAULT_HINT_MARKER)),
        aws_cli=str(data.get("aws_cli", "aws")),
    )
