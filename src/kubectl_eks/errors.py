"""Error taxonomy for kubectl-eks.

Errors local to one cluster or one (profile, region) pair are logged and
skipped by their callers.  Errors in identity or configuration loading
propagate up to the CLI, which prints them and exits non-zero.
"""

from __future__ import annotations


class KubectlEksError(Exception):
    """Base class for every error raised by kubectl-eks."""


class ConfigLoadError(KubectlEksError):
    """Raised when the AWS config, kubeconfig or tool config is unreadable."""


class InvalidArnError(KubectlEksError):
    """Raised when an explicitly supplied cluster ARN is malformed."""

    def __init__(self, arn: str) -> None:
        self.arn = arn
        super().__init__(f"Invalid cluster ARN: {arn!r}")


class NoClusterContextError(KubectlEksError):
    """Raised when the current kubeconfig context is not an EKS cluster."""


class ClusterNotFoundError(KubectlEksError):
    """Raised when no hint-enabled profile owns a well-formed cluster ARN."""


class ProfileLookupError(KubectlEksError):
    """Raised when listing or describing clusters for a profile/region fails."""


class ResourceTypeNotFoundError(KubectlEksError):
    """Raised when a resource-type token matches nothing on the server."""

    def __init__(self, token: str, detail: str | None = None) -> None:
        self.token = token
        msg = f"resource type '{token}' not found"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)


class CacheCorruptError(KubectlEksError):
    """Raised when the cluster cache file exists but cannot be parsed."""


class ContextSwitchError(KubectlEksError):
    """Raised when the ambient kubeconfig context cannot be repointed."""
