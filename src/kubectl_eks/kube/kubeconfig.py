"""Kubeconfig access.

Only the pieces of the kubeconfig that cross-cluster commands need: which
context is current, which cluster it points at, and rewriting
``current-context`` (or the current context's namespace).
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from kubectl_eks.errors import ConfigLoadError


class KubeconfigFile:
    """A kubeconfig file read fresh on every call.

    The file is shared with ``aws eks update-kubeconfig`` and ``kubectl``,
    so nothing is cached between calls.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def current_context(self) -> str:
        return str(self._read().get("current-context") or "")

    def current_cluster(self) -> str:
        """Return the cluster name (an ARN for EKS) of the current context."""
        data = self._read()
        name = str(data.get("current-context") or "")
        if not name:
            raise ConfigLoadError(f"No current context set in {self._path}")
        return str(self._find_context(data, name).get("cluster") or "")

    def current_namespace(self) -> str:
        data = self._read()
        name = str(data.get("current-context") or "")
        if not name:
            return ""
        return str(self._find_context(data, name).get("namespace") or "")

    def use_context(self, context_name: str) -> None:
        """Make *context_name* the current context."""
        data = self._read()
        self._find_context(data, context_name)
        data["current-context"] = context_name
        self._write(data)

    def set_namespace(self, namespace: str) -> None:
        """Set the default namespace of the current context."""
        data = self._read()
        name = str(data.get("current-context") or "")
        if not name:
            raise ConfigLoadError(f"No current context set in {self._path}")
        self._find_context(data, name)["namespace"] = namespace
        self._write(data)

    # --- Private ---

    def _read(self) -> dict[str, Any]:
        try:
            data = yaml.safe_load(self._path.read_text(encoding="utf-8")) or {}
        except OSError as e:
            raise ConfigLoadError(f"Error loading kubeconfig {self._path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigLoadError(f"Invalid YAML in kubeconfig {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Kubeconfig {self._path} is not a mapping")
        return data

    def _find_context(self, data: dict[str, Any], context_name: str) -> dict[str, Any]:
        for entry in data.get("contexts") or []:
            if entry.get("name") == context_name:
                context = entry.get("context")
                if context is None:
                    context = entry["context"] = {}
                return context
        raise ConfigLoadError(f"context '{context_name}' not found in kubeconfig")

    def _write(self, data: dict[str, Any]) -> None:
        fd, tmp_name = tempfile.mkstemp(
            prefix=self._path.name + ".", dir=self._path.parent,
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
