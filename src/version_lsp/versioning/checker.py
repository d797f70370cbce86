"""Version checker: decides what a declared version means right now.

The checker never waits on the network. A cache miss answers
``NOT_IN_CACHE`` and a stale entry answers from the old data; in both cases
a deduplicated refresh is scheduled in the background. When that refresh
lands in the cache, ``on_refreshed`` is called so the protocol layer can
re-run the query and republish diagnostics.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from ..errors import CacheError, FetchError
from .cache import VersionCache
from .matchers import VersionMatcher, default_matchers
from .models import (
    CacheEntry,
    DependencyEntry,
    MatchResult,
    PackageIdentity,
    RegistryType,
    VersionCompareResult,
    VersionStatus,
)

logger = logging.getLogger(__name__)

RefreshCallback = Callable[[PackageIdentity], Optional[Awaitable[None]]]


def compare_entry(entry: CacheEntry, matcher: VersionMatcher, declared_spec: str) -> VersionCompareResult:
    """Turn a cached entry and a declared spec into a verdict. Pure."""
    available = entry.version_set
    match: MatchResult = matcher.check_version(declared_spec, available)
    return VersionCompareResult(
        current_version=matcher.display_version(declared_spec),
        latest_version=matcher.latest_version(available),
        status=VersionStatus.from_match(match.kind),
        best_match=match.best_match,
    )


def not_in_cache(declared_spec: str, matcher: Optional[VersionMatcher] = None) -> VersionCompareResult:
    current = matcher.display_version(declared_spec) if matcher else declared_spec.strip()
    return VersionCompareResult(current_version=current, latest_version=None,
                                status=VersionStatus.NOT_IN_CACHE)


class VersionChecker:
    """Composes the cache, registries and matchers.

    Registries and matchers are selected once per registry kind and shared
    read-only; the checker itself keeps no persisted state.
    """

    def __init__(
        self,
        cache: VersionCache,
        registries: Dict[RegistryType, object],
        matchers: Optional[Dict[RegistryType, VersionMatcher]] = None,
        enabled: Optional[Callable[[RegistryType], bool]] = None,
        on_refreshed: Optional[RefreshCallback] = None,
    ):
        """Initialize the checker.

        Args:
            cache: Durable version cache.
            registries: Fetcher per registry kind.
            matchers: Matcher per registry kind; defaults to ``default_matchers()``.
            enabled: Predicate for per-registry switches; all enabled when omitted.
            on_refreshed: Called with the identity after a background fetch stored new data.
        """
        self._cache = cache
        self._registries = dict(registries)
        self._matchers = matchers if matchers is not None else default_matchers()
        self._enabled = enabled or (lambda registry_type: True)
        self._on_refreshed = on_refreshed
        self._background: Dict[PackageIdentity, asyncio.Task] = {}

    @property
    def cache(self) -> VersionCache:
        return self._cache

    def registry_for(self, registry_type: RegistryType):
        return self._registries.get(registry_type)

    def matcher_for(self, registry_type: RegistryType) -> Optional[VersionMatcher]:
        return self._matchers.get(registry_type)

    async def compare_version(
        self,
        identity: PackageIdentity,
        declared_spec: str,
        registry=None,
        matcher: Optional[VersionMatcher] = None,
    ) -> VersionCompareResult:
        """Answer whether ``declared_spec`` is current for ``identity``.

        Registry and matcher default to the ones configured for the identity's
        registry kind.

        Raises:
            CacheError: the local store failed; registry problems never raise
        """
        registry = registry or self._registries.get(identity.registry_type)
        matcher = matcher or self._matchers.get(identity.registry_type)

        if not self._enabled(identity.registry_type) or registry is None or matcher is None:
            logger.debug("Registry %s disabled or unsupported; skipping %s",
                         identity.registry_type.value, identity)
            return not_in_cache(declared_spec, matcher)

        entry = await self._cache.aget(identity)
        if entry is None:
            self.schedule_refresh(identity, registry)
            return not_in_cache(declared_spec, matcher)

        if entry.is_stale():
            logger.debug("Cache entry for %s is stale; answering from it and refreshing", identity)
            self.schedule_refresh(identity, registry)

        return compare_entry(entry, matcher, declared_spec)

    async def check_document(self, entries: Iterable[DependencyEntry]) -> List[VersionCompareResult]:
        """Compare every dependency of one document, one result per entry.

        Failures stay per identity: a registry problem only ever degrades that
        package's status. Only CacheError, a local fault, propagates.
        """
        entries = list(entries)
        results = await asyncio.gather(
            *(self.compare_version(entry.identity, entry.declared_spec) for entry in entries),
            return_exceptions=True,
        )
        checked: List[VersionCompareResult] = []
        for entry, result in zip(entries, results):
            if isinstance(result, CacheError):
                raise result
            if isinstance(result, BaseException):
                logger.warning("Check for %s failed: %s", entry.identity, result, exc_info=result)
                checked.append(VersionCompareResult(
                    current_version=entry.declared_spec.strip(), latest_version=None,
                    status=VersionStatus.NOT_IN_CACHE))
                continue
            checked.append(result)
        return checked

    def schedule_refresh(self, identity: PackageIdentity, registry=None) -> None:
        """Start a fire-and-forget refresh; the caller gets no handle to it.

        Concurrent schedules for the same identity collapse into the cache's
        single in-flight fetch.
        """
        registry = registry or self._registries.get(identity.registry_type)
        if registry is None:
            return
        if identity in self._background:
            return
        task = asyncio.ensure_future(self._refresh(identity, registry))
        self._background[identity] = task
        task.add_done_callback(lambda done: self._background.pop(identity, None))

    async def _refresh(self, identity: PackageIdentity, registry) -> None:
        try:
            # A recorded upstream not-found suppresses fetches for one interval,
            # whether or not an older entry is still cached.
            if await self._cache.ais_known_missing(identity):
                logger.debug("%s recently reported missing upstream; not refetching", identity)
                return
            await self._cache.fetch_with_dedup(identity, registry)
        except FetchError as exc:
            # Stale or missing data stays the best answer; the next query retries.
            logger.info("Background refresh for %s failed: %s", identity, exc)
            return
        except CacheError:
            logger.exception("Could not store refreshed versions for %s", identity)
            return
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Background refresh for %s failed unexpectedly", identity)
            return

        if self._on_refreshed is not None:
            try:
                outcome = self._on_refreshed(identity)
                if asyncio.iscoroutine(outcome):
                    await outcome
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Refresh callback failed for %s", identity)

    async def refresh_stale(self) -> int:
        """Schedule a refresh for every stale cached identity; returns how many."""
        identities = [
            identity for identity in await self._cache.astale_identities()
            if self._enabled(identity.registry_type) and identity.registry_type in self._registries
        ]
        if identities:
            logger.info("%d packages need refresh", len(identities))
        else:
            logger.info("No packages need refresh")
        for identity in identities:
            self.schedule_refresh(identity)
        return len(identities)

    async def wait_idle(self) -> None:
        """Wait until every background refresh scheduled so far has finished."""
        while self._background:
            await asyncio.gather(*list(self._background.values()), return_exceptions=True)

    @classmethod
    def from_settings(cls, settings, http=None, on_refreshed: Optional[RefreshCallback] = None) -> "VersionChecker":
        """Build cache, registries and matchers from Settings."""
        from ..common.http_client import HttpClient
        from ..registry import default_registries

        cache = VersionCache(
            settings.db_path,
            refresh_interval=settings.refresh_interval,
            fetch_timeout=settings.fetch_timeout,
            negative_cache=settings.negative_cache,
        )
        http = http or HttpClient(timeout=settings.fetch_timeout)
        return cls(
            cache,
            default_registries(http, settings),
            enabled=settings.is_enabled,
            on_refreshed=on_refreshed,
        )
