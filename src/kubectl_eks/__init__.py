"""kubectl-eks: query many EKS clusters the way kubectl queries one."""

__version__ = "0.4.0"

from kubectl_eks.cache.store import ClusterCache
from kubectl_eks.config import KubectlEksConfig, find_config, load_config
from kubectl_eks.errors import (
    CacheCorruptError,
    ClusterNotFoundError,
    ConfigLoadError,
    ContextSwitchError,
    InvalidArnError,
    KubectlEksError,
    NoClusterContextError,
    ProfileLookupError,
    ResourceTypeNotFoundError,
)
from kubectl_eks.kube.switcher import ContextSwitcher
from kubectl_eks.models import AWSProfile, ClusterRecord, FilterCriteria
from kubectl_eks.profiles.loader import ProfileInventory
from kubectl_eks.resolver.clusters import ClusterResolver, parse_arn
from kubectl_eks.resources.types import ResourceTypeMapping, ResourceTypeResolver
from kubectl_eks.session import EksSession

__all__ = [
    "AWSProfile",
    "CacheCorruptError",
    "ClusterCache",
    "ClusterNotFoundError",
    "ClusterRecord",
    "ClusterResolver",
    "ConfigLoadError",
    "ContextSwitchError",
    "ContextSwitcher",
    "EksSession",
    "FilterCriteria",
    "find_config",
    "InvalidArnError",
    "KubectlEksConfig",
    "KubectlEksError",
    "load_config",
    "NoClusterContextError",
    "parse_arn",
    "ProfileInventory",
    "ProfileLookupError",
    "ResourceTypeMapping",
    "ResourceTypeNotFoundError",
    "ResourceTypeResolver",
    "__version__",
]
