"""Tests for the persistent version cache and its fetch deduplication."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from version_lsp.errors import CacheError, TransientFetchError, UpstreamNotFoundError
from version_lsp.versioning.cache import VersionCache
from version_lsp.versioning.models import PackageIdentity, RegistryType, VersionSet

from .fakes import FakeRegistry, HangingRegistry

LODASH = PackageIdentity(RegistryType.NPM, "lodash")
SERDE = PackageIdentity(RegistryType.CRATES, "serde")


@pytest.fixture
def db_path(tmp_path):
    """Cache database location inside the test's temp dir."""
    return tmp_path / "data" / "versions.db"


@pytest.fixture
def cache(db_path):
    """Cache with a one hour refresh interval."""
    instance = VersionCache(db_path, refresh_interval=timedelta(hours=1), fetch_timeout=5)
    yield instance
    instance.close()


class TestPersistence:
    """Entries survive a restart and are replaced as a whole."""

    def test_miss_returns_none(self, cache):
        assert cache.get(LODASH) is None

    def test_round_trip_across_instances(self, db_path):
        fetched = datetime(2024, 5, 6, 7, 8, 9, 123456, tzinfo=timezone.utc)
        stored = VersionSet.of(["4.17.20", "4.17.21", "5.0.0-beta.1"], latest="4.17.21", fetched_at=fetched)

        with VersionCache(db_path) as first:
            first.put(LODASH, stored)
        with VersionCache(db_path) as second:
            entry = second.get(LODASH)

        assert entry is not None
        assert entry.version_set == stored
        assert entry.version_set.versions == ("4.17.20", "4.17.21", "5.0.0-beta.1")
        assert entry.fetched_at == fetched

    def test_put_replaces_whole_entry(self, cache):
        cache.put(LODASH, VersionSet.of(["1.0.0", "2.0.0", "3.0.0"], latest="3.0.0"))
        cache.put(LODASH, VersionSet.of(["1.0.0"]))

        entry = cache.get(LODASH)
        assert entry.version_set.versions == ("1.0.0",)
        assert entry.version_set.latest is None

    def test_identities_are_independent(self, cache):
        cache.put(LODASH, VersionSet.of(["1.0.0"]))
        assert cache.get(PackageIdentity(RegistryType.PNPM_CATALOG, "lodash")) is None

    def test_invalidate(self, cache):
        cache.put(LODASH, VersionSet.of(["1.0.0"]))
        cache.invalidate(LODASH)
        assert cache.get(LODASH) is None

    def test_unopenable_database_raises_cache_error(self, tmp_path):
        with pytest.raises(CacheError):
            VersionCache(tmp_path)


class TestStaleness:
    """Staleness is reported, never acted upon."""

    def test_stale_identities(self, cache):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        cache.put(LODASH, VersionSet.of(["1.0.0"], fetched_at=now - timedelta(hours=2)))
        cache.put(SERDE, VersionSet.of(["1.0.0"], fetched_at=now - timedelta(minutes=5)))

        assert cache.stale_identities(now) == [LODASH]
        assert cache.get(LODASH).is_stale(now)
        assert not cache.get(SERDE).is_stale(now)

    def test_boundary_is_not_stale(self, cache):
        now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        cache.put(LODASH, VersionSet.of(["1.0.0"], fetched_at=now - timedelta(hours=1)))
        assert cache.stale_identities(now) == []


class TestNegativeCache:
    """Upstream not-found results suppress refetching for one interval."""

    def test_record_expires_after_interval(self, cache):
        recorded = datetime(2024, 1, 1, tzinfo=timezone.utc)
        cache.put_negative(LODASH, recorded)

        assert cache.get_negative(LODASH) == recorded
        assert cache.is_known_missing(LODASH, recorded + timedelta(minutes=30))
        assert not cache.is_known_missing(LODASH, recorded + timedelta(hours=2))

    def test_put_clears_record(self, cache):
        cache.put_negative(LODASH)
        cache.put(LODASH, VersionSet.of(["1.0.0"]))
        assert cache.get_negative(LODASH) is None

    def test_not_found_fetch_is_recorded(self, cache):
        registry = FakeRegistry(error=UpstreamNotFoundError("npm", "lodash"))

        with pytest.raises(UpstreamNotFoundError):
            asyncio.run(cache.fetch_with_dedup(LODASH, registry))

        assert cache.is_known_missing(LODASH)
        assert cache.get(LODASH) is None

    def test_disabled_negative_cache(self, db_path):
        registry = FakeRegistry(error=UpstreamNotFoundError("npm", "lodash"))
        with VersionCache(db_path, negative_cache=False) as cache:
            with pytest.raises(UpstreamNotFoundError):
                asyncio.run(cache.fetch_with_dedup(LODASH, registry))
            assert not cache.is_known_missing(LODASH)

    def test_transient_failure_is_not_recorded(self, cache):
        registry = FakeRegistry(error=TransientFetchError("npm", "lodash", "boom", status_code=503))

        with pytest.raises(TransientFetchError):
            asyncio.run(cache.fetch_with_dedup(LODASH, registry))

        assert cache.get_negative(LODASH) is None


class TestFetchDedup:
    """Concurrent fetches for one identity share a single registry call."""

    def test_concurrent_callers_share_one_fetch(self, cache):
        async def scenario():
            gate = asyncio.Event()
            registry = FakeRegistry(versions=["1.0.0", "1.2.0"], latest="1.2.0", gate=gate)
            callers = [asyncio.ensure_future(cache.fetch_with_dedup(LODASH, registry)) for _ in range(5)]
            await asyncio.sleep(0)
            assert cache.in_flight(LODASH)
            gate.set()
            entries = await asyncio.gather(*callers)
            await asyncio.sleep(0)
            return registry, entries

        registry, entries = asyncio.run(scenario())

        assert registry.calls == 1
        assert all(entry.version_set.versions == ("1.0.0", "1.2.0") for entry in entries)
        assert not cache.in_flight(LODASH)
        assert cache.get(LODASH).version_set.latest == "1.2.0"

    def test_different_identities_fetch_independently(self, cache):
        async def scenario():
            registry = FakeRegistry()
            await asyncio.gather(
                cache.fetch_with_dedup(LODASH, registry),
                cache.fetch_with_dedup(SERDE, registry),
            )
            return registry

        assert asyncio.run(scenario()).calls == 2

    def test_failure_reaches_every_caller_and_clears_marker(self, cache):
        async def scenario():
            gate = asyncio.Event()
            registry = FakeRegistry(error=TransientFetchError("npm", "lodash", "reset"), gate=gate)
            callers = [asyncio.ensure_future(cache.fetch_with_dedup(LODASH, registry)) for _ in range(3)]
            await asyncio.sleep(0)
            gate.set()
            results = await asyncio.gather(*callers, return_exceptions=True)
            await asyncio.sleep(0)
            in_flight = cache.in_flight(LODASH)

            registry.error = None
            await cache.fetch_with_dedup(LODASH, registry)
            return registry, results, in_flight

        registry, results, in_flight = asyncio.run(scenario())

        assert all(isinstance(result, TransientFetchError) for result in results)
        assert not in_flight
        assert registry.calls == 2

    def test_cancelled_caller_does_not_cancel_fetch(self, cache):
        async def scenario():
            gate = asyncio.Event()
            registry = FakeRegistry(gate=gate)
            impatient = asyncio.ensure_future(cache.fetch_with_dedup(LODASH, registry))
            patient = asyncio.ensure_future(cache.fetch_with_dedup(LODASH, registry))
            await asyncio.sleep(0)
            impatient.cancel()
            await asyncio.sleep(0)
            gate.set()
            entry = await patient
            return registry, impatient, entry

        registry, impatient, entry = asyncio.run(scenario())

        assert impatient.cancelled()
        assert registry.calls == 1
        assert entry.version_set.versions == ("1.0.0", "1.1.0")

    def test_timeout_leaves_existing_entry(self, db_path):
        previous = VersionSet.of(["1.0.0"], latest="1.0.0")
        with VersionCache(db_path, fetch_timeout=0.05) as cache:
            cache.put(LODASH, previous)
            with pytest.raises(TransientFetchError):
                asyncio.run(cache.fetch_with_dedup(LODASH, HangingRegistry()))
            assert cache.get(LODASH).version_set == previous
            assert not cache.in_flight(LODASH)
