"""Cluster resolution.

Turns filter criteria (or the current kubeconfig context) into the list of
EKS clusters a command should visit.  Combines the profile inventory, the
cluster cache and the AWS lookups:

- With no filters and no explicit ARN, the current context's cluster ARN is
  resolved to a single record.
- Otherwise every hinted (profile, region) pair passing the profile/region
  filters is enumerated (from cache when possible) and the records are
  filtered by version and name.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Protocol

from kubectl_eks.cache.store import ClusterCache
from kubectl_eks.errors import (
    ClusterNotFoundError,
    InvalidArnError,
    NoClusterContextError,
    ProfileLookupError,
)
from kubectl_eks.models import AWSProfile, ClusterRecord, FilterCriteria
from kubectl_eks.profiles.loader import ProfileInventory

logger = logging.getLogger(__name__)

ARN_PATTERN = re.compile(r"^arn:aws:eks:([a-z0-9-]+):(\d{12}):cluster/([a-zA-Z0-9-]+)$")


@dataclass(frozen=True)
class ClusterArn:
    """The parts of an EKS cluster ARN."""

    region: str
    account_id: str
    cluster_name: str

    @property
    def arn(self) -> str:
        return build_arn(self.region, self.account_id, self.cluster_name)


def parse_arn(arn: str) -> ClusterArn | None:
    """Split an EKS cluster ARN, or return ``None`` if it is not one."""
    match = ARN_PATTERN.match(arn.strip())
    if match is None:
        return None
    return ClusterArn(
        region=match.group(1),
        account_id=match.group(2),
        cluster_name=match.group(3),
    )


def build_arn(region: str, account_id: str, cluster_name: str) -> str:
    return f"arn:aws:eks:{region}:{account_id}:cluster/{cluster_name}"


class ClusterSource(Protocol):
    """The AWS lookups the resolver depends on."""

    def list_clusters(self, profile: str, region: str) -> list[str]: ...

    def describe_cluster(
        self, profile: str, region: str, name: str, account_id: str = "",
    ) -> ClusterRecord: ...

    def get_account_id(self, profile: str, region: str) -> str: ...


class AmbientCluster(Protocol):
    """Read access to the cluster the current kubeconfig context points at."""

    def current_cluster(self) -> str: ...


class ClusterResolver:
    """Resolves filters or ARNs to cluster records, populating the cache lazily."""

    def __init__(
        self,
        profiles: ProfileInventory,
        cache: ClusterCache,
        source: ClusterSource,
        ambient: AmbientCluster,
    ) -> None:
        self._profiles = profiles
        self._cache = cache
        self._source = source
        self._ambient = ambient
        self._account_ids: dict[str, str | None] = {}

    def resolve(
        self,
        filters: FilterCriteria,
        arn: str | None = None,
        refresh: bool = False,
    ) -> list[ClusterRecord]:
        """Return the clusters a command should act on.

        Raises:
            InvalidArnError: *arn* was given but is not an EKS cluster ARN.
            NoClusterContextError: no filters, and the current context is
                not an EKS cluster.
            ClusterNotFoundError: the ARN is well formed but no hinted
                profile owns it.
        """
        if arn:
            if parse_arn(arn) is None:
                raise InvalidArnError(arn)
            return [self.resolve_by_arn(arn, refresh=refresh)]

        if filters.is_empty():
            current = self._ambient.current_cluster()
            if parse_arn(current) is None:
                raise NoClusterContextError(
                    f"current cluster is not an EKS cluster: {current!r}"
                )
            return [self.resolve_by_arn(current, refresh=refresh)]

        return self.list_clusters(filters, refresh=refresh)

    def list_clusters(
        self,
        filters: FilterCriteria,
        refresh: bool = False,
    ) -> list[ClusterRecord]:
        """Enumerate every hinted profile/region and apply *filters*.

        Order is profile, then hint region, then discovery order.  A
        profile/region that cannot be enumerated is logged and skipped.
        """
        clusters: list[ClusterRecord] = []
        for profile in self._profiles.profiles_with_hints():
            if not filters.matches_profile(profile.name):
                continue
            for region in profile.hint_regions:
                if not filters.matches_region(region):
                    continue
                records = self._ensure_populated(profile.name, region, refresh)
                if records is None:
                    continue
                clusters.extend(r for r in records if filters.matches_cluster(r))
        return clusters

    def resolve_by_arn(self, arn: str, refresh: bool = False) -> ClusterRecord:
        """Find the hinted profile that owns *arn* and describe the cluster.

        Results are remembered in the ARN index of the cache, so a repeat
        lookup costs nothing.
        """
        parsed = parse_arn(arn)
        if parsed is None:
            raise InvalidArnError(arn)

        if not refresh:
            cached = self._cache.get_by_arn(arn)
            if cached is not None and cached.arn == arn:
                return cached

        for profile in self._candidate_profiles(parsed):
            record = self._find_in_profile(profile, parsed, refresh)
            if record is not None:
                self._cache.put_arn(arn, record)
                return record

        raise ClusterNotFoundError(f"cluster not found: {arn}")

    # --- Private ---

    def _candidate_profiles(self, parsed: ClusterArn) -> list[AWSProfile]:
        return [
            p for p in self._profiles.profiles_with_hints()
            if parsed.region in p.hint_regions
        ]

    def _find_in_profile(
        self,
        profile: AWSProfile,
        parsed: ClusterArn,
        refresh: bool,
    ) -> ClusterRecord | None:
        account_id = self._account_id(profile.name, parsed.region)
        if account_id != parsed.account_id:
            return None

        if not refresh:
            for record in self._cache.get_by_profile_region(profile.name, parsed.region) or []:
                if record.arn == parsed.arn:
                    return record

        try:
            names = self._source.list_clusters(profile.name, parsed.region)
            if parsed.cluster_name not in names:
                return None
            return self._source.describe_cluster(
                profile.name, parsed.region, parsed.cluster_name, account_id,
            )
        except ProfileLookupError as e:
            logger.warning("%s", e)
            return None

    def _account_id(self, profile: str, region: str) -> str | None:
        """STS account lookup, remembered per profile for this resolver."""
        if profile not in self._account_ids:
            try:
                self._account_ids[profile] = self._source.get_account_id(profile, region)
            except ProfileLookupError as e:
                logger.debug("Skipping profile %s: %s", profile, e)
                self._account_ids[profile] = None
        return self._account_ids[profile]

    def _ensure_populated(
        self, profile: str, region: str, refresh: bool,
    ) -> list[ClusterRecord] | None:
        if not refresh:
            cached = self._cache.get_by_profile_region(profile, region)
            if cached is not None:
                return cached
        try:
            return self._populate(profile, region)
        except ProfileLookupError as e:
            logger.warning(
                "Unable to load clusters using profile: %s region: %s (%s)",
                profile, region, e,
            )
            return None

    def _populate(self, profile: str, region: str) -> list[ClusterRecord]:
        """Enumerate and describe every cluster, then commit in one step."""
        names = self._source.list_clusters(profile, region)
        account_id = self._account_id(profile, region) or "-"

        records: list[ClusterRecord] = []
        for name in names:
            try:
                record = self._source.describe_cluster(profile, region, name, account_id)
            except ProfileLookupError as e:
                logger.warning("Error describing cluster %s: %s", name, e)
                record = ClusterRecord(
                    cluster_name=name,
                    region=region,
                    profile_name=profile,
                    account_id=account_id,
                )
            records.append(record)

        self._cache.populate_profile_region(profile, region, records)
        for record in records:
            if record.arn:
                self._cache.put_arn(record.arn, record)
        return records
