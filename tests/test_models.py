"""Tests for version resolution data models and result messages."""

from datetime import datetime, timedelta, timezone

import pytest

from version_lsp.versioning.messages import Severity, describe
from version_lsp.versioning.models import (
    CacheEntry,
    MatchKind,
    PackageIdentity,
    RegistryType,
    VersionCompareResult,
    VersionSet,
    VersionStatus,
)

FETCHED = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
INTERVAL = timedelta(hours=24)


def entry():
    """Helper to build a cache entry fetched at FETCHED."""
    identity = PackageIdentity(RegistryType.NPM, "lodash")
    return CacheEntry(identity, VersionSet.of(["4.17.21"], fetched_at=FETCHED), INTERVAL)


class TestStaleness:
    """An entry is stale only once it is strictly older than the interval."""

    def test_fresh_before_interval(self):
        assert not entry().is_stale(FETCHED + INTERVAL - timedelta(seconds=1))

    def test_fresh_one_millisecond_before_interval(self):
        assert not entry().is_stale(FETCHED + INTERVAL - timedelta(milliseconds=1))

    def test_fresh_exactly_at_interval(self):
        assert not entry().is_stale(FETCHED + INTERVAL)

    def test_stale_after_interval(self):
        assert entry().is_stale(FETCHED + INTERVAL + timedelta(microseconds=1))


class TestModels:
    """Identity, version set and status helpers."""

    def test_identity_str(self):
        assert str(PackageIdentity(RegistryType.GO_PROXY, "golang.org/x/net")) == "go-proxy:golang.org/x/net"

    def test_naive_fetch_time_is_utc(self):
        version_set = VersionSet(("1.0.0",), datetime(2024, 1, 1))
        assert version_set.fetched_at.tzinfo is timezone.utc

    def test_version_set_is_immutable_tuple(self):
        version_set = VersionSet.of(["1.0.0", "2.0.0"])
        assert version_set.versions == ("1.0.0", "2.0.0")
        assert "2.0.0" in version_set
        assert len(version_set) == 2

    @pytest.mark.parametrize("value,expected", [
        ("npm", RegistryType.NPM),
        ("crates_io", RegistryType.CRATES),
        ("github", RegistryType.GITHUB_RELEASES),
        ("GO", RegistryType.GO_PROXY),
    ])
    def test_registry_type_aliases(self, value, expected):
        assert RegistryType.parse(value) is expected

    def test_unknown_registry_type(self):
        with pytest.raises(ValueError):
            RegistryType.parse("maven")

    def test_status_mapping(self):
        assert VersionStatus.from_match(MatchKind.SATISFIED) is VersionStatus.LATEST
        assert VersionStatus.from_match(MatchKind.UPGRADABLE) is VersionStatus.OUTDATED


class TestDescribe:
    """Diagnostic text for each status."""

    def test_outdated(self):
        result = VersionCompareResult("1.2.3", "2.0.0", VersionStatus.OUTDATED, best_match="1.9.0")
        assert describe(result) == (Severity.WARNING, "Update available: 1.2.3 -> 1.9.0")

    def test_not_found(self):
        result = VersionCompareResult("9.9.9", "1.0.0", VersionStatus.NOT_FOUND)
        assert describe(result) == (Severity.ERROR, "Version 9.9.9 not found in registry")

    def test_invalid(self):
        result = VersionCompareResult("bogus", "1.0.0", VersionStatus.INVALID)
        assert describe(result) == (Severity.ERROR, "Invalid version specification: bogus")

    @pytest.mark.parametrize("status", [VersionStatus.LATEST, VersionStatus.NOT_IN_CACHE])
    def test_silent_statuses(self, status):
        assert describe(VersionCompareResult("1.0.0", None, status)) is None
