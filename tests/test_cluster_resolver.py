"""Tests for cluster resolution: ARN grammar, filters, cache population."""

from __future__ import annotations

import random
from pathlib import Path

import pytest

from kubectl_eks.aws.eks import AwsClusterClient
from kubectl_eks.cache.store import ClusterCache
from kubectl_eks.errors import (
    ClusterNotFoundError,
    InvalidArnError,
    NoClusterContextError,
    ProfileLookupError,
)
from kubectl_eks.models import ClusterRecord, FilterCriteria
from kubectl_eks.profiles.loader import ProfileInventory
from kubectl_eks.resolver.clusters import (
    ClusterResolver,
    build_arn,
    parse_arn,
)

AWS_CONFIG = """\
[profile prod]
# kubectl-eks-regions=eu-west-1,us-east-1

[profile staging]
# kubectl-eks-regions=eu-west-1

[profile unhinted]
region = eu-west-1
"""

STAGING_ARN = "arn:aws:eks:eu-west-1:999999999999:cluster/staging"


# --- Fakes ---


class FakeSource:
    """In-memory stand-in for AwsClusterClient."""

    def __init__(self, clusters=None, accounts=None, failing=()):
        # {(profile, region): [(name, version), ...]}
        self.clusters = clusters or {}
        self.accounts = accounts or {}
        self.failing = set(failing)
        self.list_calls: list[tuple[str, str]] = []
        self.describe_calls: list[tuple[str, str, str]] = []

    def list_clusters(self, profile, region):
        self.list_calls.append((profile, region))
        if (profile, region) in self.failing:
            raise ProfileLookupError(f"denied for {profile}")
        return [name for name, _ in self.clusters.get((profile, region), [])]

    def describe_cluster(self, profile, region, name, account_id=""):
        self.describe_calls.append((profile, region, name))
        version = dict(self.clusters[(profile, region)])[name]
        return ClusterRecord(
            cluster_name=name,
            region=region,
            profile_name=profile,
            account_id=account_id,
            status="ACTIVE",
            version=version,
            arn=build_arn(region, account_id, name),
        )

    def get_account_id(self, profile, region):
        if profile not in self.accounts:
            raise ProfileLookupError(f"no credentials for {profile}")
        return self.accounts[profile]


class FakeAmbient:
    def __init__(self, cluster: str = ""):
        self.cluster = cluster

    def current_cluster(self) -> str:
        return self.cluster


def _resolver(tmp_path: Path, source: FakeSource, ambient: str = "", cache=None):
    path = tmp_path / "aws-config"
    path.write_text(AWS_CONFIG, encoding="utf-8")
    return ClusterResolver(
        ProfileInventory(path),
        cache or ClusterCache(tmp_path / "cache"),
        source,
        FakeAmbient(ambient),
    )


def _record(name: str, version: str, profile: str = "prod", region: str = "eu-west-1"):
    return ClusterRecord(
        cluster_name=name,
        region=region,
        profile_name=profile,
        account_id="123456789012",
        version=version,
        arn=build_arn(region, "123456789012", name),
    )


# --- ARN grammar ---


class TestArnGrammar:
    def test_parse_valid(self):
        parsed = parse_arn(STAGING_ARN)
        assert parsed.region == "eu-west-1"
        assert parsed.account_id == "999999999999"
        assert parsed.cluster_name == "staging"
        assert parsed.arn == STAGING_ARN

    def test_parse_demo(self):
        parsed = parse_arn("arn:aws:eks:us-east-1:123456789012:cluster/demo")
        assert (parsed.region, parsed.account_id, parsed.cluster_name) == (
            "us-east-1", "123456789012", "demo",
        )

    @pytest.mark.parametrize("arn", [
        "",
        "arn:aws:eks:us-east-1:demo:cluster/x",
        "arn:aws:eks:eu-west-1:123:cluster/short-account",
        "arn:aws:eks:eu-west-1:123456789012:nodegroup/x",
        "arn:aws:ec2:eu-west-1:123456789012:cluster/x",
        "arn:aws:eks:EU-WEST-1:123456789012:cluster/x",
        "arn:aws:eks:eu-west-1:123456789012:cluster/under_score",
        "kind-local",
    ])
    def test_parse_invalid(self, arn):
        assert parse_arn(arn) is None

    def test_build_round_trip(self):
        assert build_arn("eu-west-1", "999999999999", "staging") == STAGING_ARN


# --- Filter conjunction ---


def _reference_match(f: FilterCriteria, r: ClusterRecord) -> bool:
    checks = []
    if f.profile:
        checks.append(r.profile_name == f.profile)
    if f.profile_contains:
        checks.append(f.profile_contains in r.profile_name)
    if f.name_contains:
        checks.append(f.name_contains in r.cluster_name)
    if f.name_not_contains:
        checks.append(f.name_not_contains not in r.cluster_name)
    if f.region:
        checks.append(r.region == f.region)
    if f.version:
        checks.append(r.version == f.version)
    return all(checks)


class TestFilterConjunction:
    def test_randomized_pairs(self):
        rng = random.Random(1234)
        profiles = ["", "prod", "staging", "prod-eu"]
        fragments = ["", "prod", "a", "eu", "stage", "x"]
        regions = ["", "eu-west-1", "us-east-1"]
        versions = ["", "1.28", "1.29"]
        names = ["prod-a", "prod-b", "stage-a", "eu-main"]

        for _ in range(500):
            f = FilterCriteria(
                profile=rng.choice(profiles),
                profile_contains=rng.choice(fragments),
                name_contains=rng.choice(fragments),
                name_not_contains=rng.choice(fragments),
                region=rng.choice(regions),
                version=rng.choice(versions),
            )
            r = ClusterRecord(
                cluster_name=rng.choice(names),
                region=rng.choice(regions[1:]),
                profile_name=rng.choice(profiles[1:]),
                version=rng.choice(versions[1:]),
            )
            assert f.matches(r) == _reference_match(f, r), (f, r)

    def test_empty_matches_everything(self):
        assert FilterCriteria().is_empty()
        assert FilterCriteria().matches(_record("anything", "1.0"))


# --- list_clusters ---


class TestListClusters:
    def test_enumerates_hinted_pairs_in_order(self, tmp_path: Path):
        source = FakeSource(
            clusters={
                ("prod", "eu-west-1"): [("prod-a", "1.29")],
                ("prod", "us-east-1"): [("prod-us", "1.28")],
                ("staging", "eu-west-1"): [("stage-a", "1.29")],
            },
            accounts={"prod": "123456789012", "staging": "999999999999"},
        )
        names = [c.cluster_name for c in _resolver(tmp_path, source).list_clusters(FilterCriteria())]
        assert names == ["prod-a", "prod-us", "stage-a"]
        assert ("unhinted", "eu-west-1") not in source.list_calls

    def test_profile_and_region_filters_skip_lookups(self, tmp_path: Path):
        source = FakeSource(accounts={"prod": "123456789012"})
        resolver = _resolver(tmp_path, source)
        resolver.list_clusters(FilterCriteria(profile="prod", region="us-east-1"))
        assert source.list_calls == [("prod", "us-east-1")]

    def test_enumeration_happens_once(self, tmp_path: Path):
        source = FakeSource(
            clusters={("prod", "eu-west-1"): [("prod-a", "1.29")]},
            accounts={"prod": "123456789012"},
        )
        resolver = _resolver(tmp_path, source)
        filters = FilterCriteria(profile="prod", region="eu-west-1")

        first = resolver.list_clusters(filters)
        second = resolver.list_clusters(filters)

        assert source.list_calls == [("prod", "eu-west-1")]
        assert [r.model_dump_json() for r in first] == [r.model_dump_json() for r in second]

    def test_refresh_re_enumerates(self, tmp_path: Path):
        source = FakeSource(
            clusters={("prod", "eu-west-1"): [("prod-a", "1.29")]},
            accounts={"prod": "123456789012"},
        )
        resolver = _resolver(tmp_path, source)
        filters = FilterCriteria(profile="prod", region="eu-west-1")
        resolver.list_clusters(filters)
        resolver.list_clusters(filters, refresh=True)
        assert len(source.list_calls) == 2

    def test_failing_pair_is_skipped(self, tmp_path: Path):
        source = FakeSource(
            clusters={("staging", "eu-west-1"): [("stage-a", "1.29")]},
            accounts={"staging": "999999999999"},
            failing=[("prod", "eu-west-1"), ("prod", "us-east-1")],
        )
        records = _resolver(tmp_path, source).list_clusters(FilterCriteria())
        assert [r.cluster_name for r in records] == ["stage-a"]

    def test_failed_pair_is_not_cached(self, tmp_path: Path):
        cache = ClusterCache(tmp_path / "cache")
        source = FakeSource(failing=[("prod", "eu-west-1")])
        _resolver(tmp_path, source, cache=cache).list_clusters(
            FilterCriteria(profile="prod", region="eu-west-1"),
        )
        assert cache.get_by_profile_region("prod", "eu-west-1") is None

    def test_name_and_version_filter_against_prepopulated_cache(self, tmp_path: Path):
        cache = ClusterCache(tmp_path / "cache")
        cache.populate_profile_region("prod", "eu-west-1", [
            _record("prod-a", "1.29"),
            _record("prod-b", "1.28"),
            _record("stage-a", "1.29"),
        ])
        cache.populate_profile_region("prod", "us-east-1", [])
        cache.populate_profile_region("staging", "eu-west-1", [])
        source = FakeSource()

        records = _resolver(tmp_path, source, cache=cache).resolve(
            FilterCriteria(name_contains="prod", version="1.29"),
        )

        assert [r.cluster_name for r in records] == ["prod-a"]
        assert source.list_calls == []


BROKEN_AWS_CONFIG = """\
[profile broken]
role_arn = arn:aws:iam::123456789012:role/admin
source_profile = does-not-exist
# kubectl-eks-regions=eu-west-1
"""


class TestBrokenCredentials:
    """A real AwsClusterClient against a profile botocore cannot build credentials for."""

    @pytest.fixture
    def resolver(self, tmp_path: Path, monkeypatch):
        config = tmp_path / "aws-config"
        config.write_text(BROKEN_AWS_CONFIG, encoding="utf-8")
        monkeypatch.setenv("AWS_CONFIG_FILE", str(config))
        monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))
        for var in ("AWS_PROFILE", "AWS_DEFAULT_PROFILE", "AWS_ACCESS_KEY_ID",
                    "AWS_SECRET_ACCESS_KEY", "AWS_SESSION_TOKEN"):
            monkeypatch.delenv(var, raising=False)
        return ClusterResolver(
            ProfileInventory(config),
            ClusterCache(tmp_path / "cache"),
            AwsClusterClient(),
            FakeAmbient(),
        )

    def test_pair_is_skipped(self, resolver):
        assert resolver.resolve(FilterCriteria(region="eu-west-1")) == []

    def test_arn_lookup_reports_not_found(self, resolver):
        with pytest.raises(ClusterNotFoundError):
            resolver.resolve_by_arn("arn:aws:eks:eu-west-1:123456789012:cluster/prod-a")


# --- resolve / resolve_by_arn ---


class TestResolve:
    def test_ambient_context_resolves_single_cluster(self, tmp_path: Path):
        source = FakeSource(
            clusters={("staging", "eu-west-1"): [("staging", "1.29")]},
            accounts={"prod": "123456789012", "staging": "999999999999"},
        )
        records = _resolver(tmp_path, source, ambient=STAGING_ARN).resolve(FilterCriteria())

        assert len(records) == 1
        assert records[0].cluster_name == "staging"
        assert records[0].region == "eu-west-1"
        assert records[0].arn == STAGING_ARN
        assert records[0].profile_name == "staging"

    def test_non_eks_context_raises(self, tmp_path: Path):
        resolver = _resolver(tmp_path, FakeSource(), ambient="kind-local")
        with pytest.raises(NoClusterContextError, match="kind-local"):
            resolver.resolve(FilterCriteria())

    def test_invalid_explicit_arn(self, tmp_path: Path):
        resolver = _resolver(tmp_path, FakeSource())
        with pytest.raises(InvalidArnError):
            resolver.resolve(FilterCriteria(), arn="not-an-arn")

    def test_explicit_arn_wins_over_filters(self, tmp_path: Path):
        source = FakeSource(
            clusters={("staging", "eu-west-1"): [("staging", "1.29")]},
            accounts={"staging": "999999999999"},
        )
        records = _resolver(tmp_path, source).resolve(
            FilterCriteria(profile="prod"), arn=STAGING_ARN,
        )
        assert [r.cluster_name for r in records] == ["staging"]

    def test_unknown_account_not_found(self, tmp_path: Path):
        source = FakeSource(accounts={"prod": "123456789012", "staging": "111111111111"})
        with pytest.raises(ClusterNotFoundError, match="cluster not found"):
            _resolver(tmp_path, source).resolve_by_arn(STAGING_ARN)

    def test_profile_without_credentials_is_skipped(self, tmp_path: Path):
        source = FakeSource(
            clusters={("staging", "eu-west-1"): [("staging", "1.29")]},
            accounts={"staging": "999999999999"},
        )
        record = _resolver(tmp_path, source).resolve_by_arn(STAGING_ARN)
        assert record.profile_name == "staging"

    def test_arn_lookup_is_cached(self, tmp_path: Path):
        cache = ClusterCache(tmp_path / "cache")
        source = FakeSource(
            clusters={("staging", "eu-west-1"): [("staging", "1.29")]},
            accounts={"staging": "999999999999"},
        )
        resolver = _resolver(tmp_path, source, cache=cache)
        resolver.resolve_by_arn(STAGING_ARN)
        resolver.resolve_by_arn(STAGING_ARN)

        assert len(source.describe_calls) == 1
        assert cache.get_by_arn(STAGING_ARN).cluster_name == "staging"

    def test_cluster_missing_from_listing(self, tmp_path: Path):
        source = FakeSource(
            clusters={("staging", "eu-west-1"): [("other", "1.29")]},
            accounts={"staging": "999999999999"},
        )
        with pytest.raises(ClusterNotFoundError):
            _resolver(tmp_path, source).resolve_by_arn(STAGING_ARN)
