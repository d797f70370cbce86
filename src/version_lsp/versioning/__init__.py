"""Version resolution: models, matchers, the persistent cache and the checker."""

from .cache import VersionCache
from .checker import VersionChecker, compare_entry
from .messages import describe
from .models import (
    CacheEntry,
    DependencyEntry,
    MatchKind,
    MatchResult,
    PackageIdentity,
    RegistryType,
    VersionCompareResult,
    VersionSet,
    VersionStatus,
)

__all__ = [
    "CacheEntry",
    "DependencyEntry",
    "MatchKind",
    "MatchResult",
    "PackageIdentity",
    "RegistryType",
    "VersionCache",
    "VersionChecker",
    "VersionCompareResult",
    "VersionSet",
    "VersionStatus",
    "compare_entry",
    "describe",
]
