"""Data models for version resolution and caching."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Iterable, Optional, Tuple


class RegistryType(Enum):
    """Supported registry kinds."""

    NPM = "npm"
    CRATES = "crates"
    GO_PROXY = "go-proxy"
    GITHUB_RELEASES = "github-releases"
    PYPI = "pypi"
    JSR = "jsr"
    PNPM_CATALOG = "pnpm-catalog"

    @classmethod
    def parse(cls, value: str) -> "RegistryType":
        """Look up a registry kind by value, accepting underscores for dashes."""
        normalized = value.strip().lower().replace("_", "-")
        aliases = {"crates-io": "crates", "go": "go-proxy", "github": "github-releases",
                   "github-actions": "github-releases", "pnpm": "pnpm-catalog"}
        normalized = aliases.get(normalized, normalized)
        for member in cls:
            if member.value == normalized:
                return member
        raise ValueError(f"Unknown registry type: {value}")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class PackageIdentity:
    """Key for every cache and in-flight lookup."""

    registry_type: RegistryType
    package_name: str

    def __str__(self) -> str:
        return f"{self.registry_type.value}:{self.package_name}"


@dataclass(frozen=True)
class VersionSet:
    """Published versions of one package, ordered oldest to newest.

    Replaced as a whole on every successful fetch; never merged.
    """

    versions: Tuple[str, ...]
    fetched_at: datetime = field(default_factory=utc_now)
    latest: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "versions", tuple(self.versions))
        if self.fetched_at.tzinfo is None:
            object.__setattr__(self, "fetched_at", self.fetched_at.replace(tzinfo=timezone.utc))

    @classmethod
    def of(cls, versions: Iterable[str], latest: Optional[str] = None,
           fetched_at: Optional[datetime] = None) -> "VersionSet":
        return cls(tuple(versions), fetched_at or utc_now(), latest)

    def __contains__(self, version: object) -> bool:
        return version in self.versions

    def __len__(self) -> int:
        return len(self.versions)


@dataclass(frozen=True)
class CacheEntry:
    """Durable record for one identity."""

    identity: PackageIdentity
    version_set: VersionSet
    refresh_interval: timedelta

    @property
    def fetched_at(self) -> datetime:
        return self.version_set.fetched_at

    def is_stale(self, now: Optional[datetime] = None) -> bool:
        """True once the entry is strictly older than the refresh interval."""
        now = now or utc_now()
        return now - self.version_set.fetched_at > self.refresh_interval


class MatchKind(Enum):
    """Outcome of a matcher comparison."""

    SATISFIED = "satisfied"
    UPGRADABLE = "upgradable"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


@dataclass(frozen=True)
class MatchResult:
    """Matcher output; best_match is set only for UPGRADABLE."""

    kind: MatchKind
    best_match: Optional[str] = None

    @classmethod
    def satisfied(cls) -> "MatchResult":
        return cls(MatchKind.SATISFIED)

    @classmethod
    def upgradable(cls, best_match: str) -> "MatchResult":
        return cls(MatchKind.UPGRADABLE, best_match)

    @classmethod
    def not_found(cls) -> "MatchResult":
        return cls(MatchKind.NOT_FOUND)

    @classmethod
    def invalid(cls) -> "MatchResult":
        return cls(MatchKind.INVALID)


class VersionStatus(Enum):
    """Verdict reported for one declared dependency."""

    LATEST = "latest"
    OUTDATED = "outdated"
    NOT_FOUND = "not_found"
    INVALID = "invalid"
    NOT_IN_CACHE = "not_in_cache"

    @classmethod
    def from_match(cls, kind: MatchKind) -> "VersionStatus":
        return _MATCH_TO_STATUS[kind]


_MATCH_TO_STATUS = {
    MatchKind.SATISFIED: VersionStatus.LATEST,
    MatchKind.UPGRADABLE: VersionStatus.OUTDATED,
    MatchKind.NOT_FOUND: VersionStatus.NOT_FOUND,
    MatchKind.INVALID: VersionStatus.INVALID,
}


@dataclass(frozen=True)
class VersionCompareResult:
    """Comparison outcome handed to the protocol layer. Never persisted."""

    current_version: str
    latest_version: Optional[str]
    status: VersionStatus
    best_match: Optional[str] = None


@dataclass(frozen=True)
class DependencyEntry:
    """One dependency declaration supplied by a manifest parser."""

    identity: PackageIdentity
    declared_spec: str
    source_location: Any = None
