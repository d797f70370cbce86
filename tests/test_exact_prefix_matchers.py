"""Tests for the exact (Go) and partial-prefix (GitHub Actions) matchers."""

from version_lsp.versioning.matchers import ExactVersionMatcher, PrefixVersionMatcher
from version_lsp.versioning.models import MatchKind, MatchResult, RegistryType, VersionSet


class TestExactVersionMatcher:
    """Go module versions must be published exactly."""

    matcher = ExactVersionMatcher(RegistryType.GO_PROXY)

    def test_latest_is_satisfied(self):
        versions = VersionSet.of(["v1.0.0", "v1.2.0"], latest="v1.2.0")
        assert self.matcher.check_version("v1.2.0", versions).kind is MatchKind.SATISFIED

    def test_older_is_upgradable(self):
        versions = VersionSet.of(["v1.0.0", "v1.2.0"], latest="v1.2.0")
        assert self.matcher.check_version("v1.0.0", versions) == MatchResult.upgradable("v1.2.0")

    def test_unpublished_is_not_found(self):
        versions = VersionSet.of(["v1.0.0"], latest="v1.0.0")
        assert self.matcher.check_version("v1.0.1", versions).kind is MatchKind.NOT_FOUND

    def test_prerelease_ahead_of_latest_is_satisfied(self):
        versions = VersionSet.of(["v1.0.0", "v1.1.0-rc.1"], latest="v1.0.0")
        assert self.matcher.check_version("v1.1.0-rc.1", versions).kind is MatchKind.SATISFIED

    def test_latest_derived_when_registry_has_no_marker(self):
        versions = VersionSet.of(["v1.0.0", "v1.3.0"])
        assert self.matcher.check_version("v1.0.0", versions) == MatchResult.upgradable("v1.3.0")

    def test_invalid(self):
        versions = VersionSet.of(["v1.0.0"])
        assert self.matcher.check_version("not-a-version", versions).kind is MatchKind.INVALID


class TestPrefixVersionMatcher:
    """GitHub Actions references such as ``v6`` select a release line."""

    matcher = PrefixVersionMatcher(RegistryType.GITHUB_RELEASES)

    def test_major_prefix_with_newer_minor(self):
        versions = VersionSet.of(["v6.0.0", "v6.1.0", "v7.0.0"])
        assert self.matcher.check_version("v6", versions) == MatchResult.upgradable("v6.1.0")

    def test_major_prefix_on_only_release(self):
        versions = VersionSet.of(["v6.0.0", "v7.0.0"])
        assert self.matcher.check_version("v6", versions).kind is MatchKind.SATISFIED

    def test_minor_prefix(self):
        versions = VersionSet.of(["v4.1.0", "v4.1.3", "v4.2.0"])
        assert self.matcher.check_version("v4.1", versions) == MatchResult.upgradable("v4.1.3")

    def test_full_version_current(self):
        versions = VersionSet.of(["v4.1.0", "v4.1.3"])
        assert self.matcher.check_version("v4.1.3", versions).kind is MatchKind.SATISFIED

    def test_prereleases_are_ignored(self):
        versions = VersionSet.of(["v6.0.0", "v6.1.0-beta.1"])
        assert self.matcher.check_version("v6", versions).kind is MatchKind.SATISFIED

    def test_unknown_major_is_not_found(self):
        versions = VersionSet.of(["v6.0.0"])
        assert self.matcher.check_version("v5", versions).kind is MatchKind.NOT_FOUND

    def test_invalid(self):
        versions = VersionSet.of(["v6.0.0"])
        assert self.matcher.check_version("not-a-version", versions).kind is MatchKind.INVALID
        assert self.matcher.check_version("main", versions).kind is MatchKind.INVALID
