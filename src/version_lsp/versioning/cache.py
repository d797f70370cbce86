"""Persistent version cache with per-package fetch deduplication.

Entries live in an SQLite database in WAL mode: readers never wait for a
writer, and every ``put`` replaces the whole entry inside one transaction,
so a crash leaves either the previous entry or the new one, never a mix.

The cache never refreshes on its own. It reports staleness and lets the
checker decide when to schedule ``fetch_with_dedup``.
"""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..common.logging_utils import Timer, extra_context
from ..constants import Constants
from ..errors import CacheError, TransientFetchError, UpstreamNotFoundError
from .models import CacheEntry, PackageIdentity, RegistryType, VersionSet, utc_now

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)
_SCHEMA_VERSION = 1

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS packages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        registry_type TEXT NOT NULL,
        package_name TEXT NOT NULL,
        updated_at INTEGER NOT NULL,
        latest TEXT,
        UNIQUE(registry_type, package_name)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_updated_at ON packages(updated_at)",
    """
    CREATE TABLE IF NOT EXISTS versions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        package_id INTEGER NOT NULL,
        position INTEGER NOT NULL,
        version TEXT NOT NULL,
        FOREIGN KEY (package_id) REFERENCES packages(id) ON DELETE CASCADE,
        UNIQUE(package_id, position)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_package_id ON versions(package_id)",
    """
    CREATE TABLE IF NOT EXISTS not_found (
        registry_type TEXT NOT NULL,
        package_name TEXT NOT NULL,
        recorded_at INTEGER NOT NULL,
        PRIMARY KEY (registry_type, package_name)
    )
    """,
)


def _to_micros(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - _EPOCH) // _MICROSECOND


def _from_micros(value: int) -> datetime:
    return _EPOCH + timedelta(microseconds=value)


class VersionCache:
    """Durable map from PackageIdentity to its latest fetched VersionSet.

    Owns all cache entries and the in-flight fetch markers. Synchronous
    methods touch only the local database; the ``a``-prefixed coroutines run
    them on the default thread pool so the event loop never blocks on disk.
    """

    def __init__(
        self,
        db_path: Union[str, Path],
        refresh_interval: timedelta = timedelta(milliseconds=Constants.DEFAULT_REFRESH_INTERVAL_MS),
        fetch_timeout: float = Constants.REQUEST_TIMEOUT,
        negative_cache: bool = True,
    ):
        """Open (creating if needed) the cache database.

        Args:
            db_path: SQLite file location.
            refresh_interval: Age after which an entry reports itself stale.
            fetch_timeout: Upper bound in seconds for one registry fetch.
            negative_cache: Record upstream-not-found results for one interval.

        Raises:
            CacheError: if the database cannot be opened or migrated.
        """
        self._db_path = Path(db_path)
        self._refresh_interval = refresh_interval
        self._fetch_timeout = fetch_timeout
        self._negative_cache = negative_cache
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_lock = threading.Lock()
        self._in_flight: Dict[PackageIdentity, asyncio.Task] = {}
        self._in_flight_lock = threading.Lock()

        logger.info("Initializing cache database at %s", self._db_path)
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise CacheError(f"Failed to create cache directory {self._db_path.parent}: {exc}") from exc
        self._create_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @property
    def refresh_interval(self) -> timedelta:
        return self._refresh_interval

    # -- connection management -------------------------------------------

    def _connection(self) -> sqlite3.Connection:
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            return conn
        try:
            conn = sqlite3.connect(
                str(self._db_path), timeout=30.0, isolation_level=None, check_same_thread=False)
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=FULL")
            conn.execute("PRAGMA foreign_keys=ON")
        except sqlite3.Error as exc:
            raise CacheError(f"Failed to connect to database {self._db_path}: {exc}") from exc
        self._local.conn = conn
        with self._connections_lock:
            self._connections.append(conn)
        return conn

    def _create_schema(self) -> None:
        logger.debug("Creating database schema")
        conn = self._connection()
        try:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version > _SCHEMA_VERSION:
                raise CacheError(
                    f"Cache schema version {version} is newer than supported {_SCHEMA_VERSION}")
            conn.execute("BEGIN IMMEDIATE")
            for statement in _SCHEMA:
                conn.execute(statement)
            conn.execute(f"PRAGMA user_version = {_SCHEMA_VERSION}")
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise CacheError(f"Failed to create schema: {exc}") from exc

    def close(self) -> None:
        """Close every connection opened by any thread."""
        with self._connections_lock:
            connections, self._connections = self._connections, []
        for conn in connections:
            conn.close()
        self._local = threading.local()

    def __enter__(self) -> "VersionCache":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # -- reads -------------------------------------------------------------

    def get(self, identity: PackageIdentity) -> Optional[CacheEntry]:
        """Return the cached entry, or None on a miss. Never touches the network."""
        conn = self._connection()
        try:
            # One read transaction so the two selects see the same snapshot.
            conn.execute("BEGIN")
            row = conn.execute(
                "SELECT id, updated_at, latest FROM packages WHERE registry_type = ? AND package_name = ?",
                (identity.registry_type.value, identity.package_name),
            ).fetchone()
            versions: List[str] = []
            if row is not None:
                versions = [
                    version for (version,) in conn.execute(
                        "SELECT version FROM versions WHERE package_id = ? ORDER BY position", (row[0],))
                ]
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise CacheError(f"Database query failed: {exc}") from exc

        if row is None:
            return None
        version_set = VersionSet(tuple(versions), _from_micros(row[1]), row[2])
        return CacheEntry(identity, version_set, self._refresh_interval)

    def stale_identities(self, now: Optional[datetime] = None) -> List[PackageIdentity]:
        """Identities whose entries are older than the refresh interval."""
        cutoff = _to_micros((now or utc_now()) - self._refresh_interval)
        try:
            rows = self._connection().execute(
                "SELECT registry_type, package_name FROM packages WHERE updated_at < ? ORDER BY updated_at",
                (cutoff,),
            ).fetchall()
        except sqlite3.Error as exc:
            raise CacheError(f"Database query failed: {exc}") from exc

        identities = []
        for registry_value, package_name in rows:
            try:
                identities.append(PackageIdentity(RegistryType(registry_value), package_name))
            except ValueError:
                logger.debug("Skipping cached entry for unknown registry %s", registry_value)
        return identities

    def get_negative(self, identity: PackageIdentity) -> Optional[datetime]:
        """When the registry last reported this package as missing, if recorded."""
        try:
            row = self._connection().execute(
                "SELECT recorded_at FROM not_found WHERE registry_type = ? AND package_name = ?",
                (identity.registry_type.value, identity.package_name),
            ).fetchone()
        except sqlite3.Error as exc:
            raise CacheError(f"Database query failed: {exc}") from exc
        return _from_micros(row[0]) if row else None

    def is_known_missing(self, identity: PackageIdentity, now: Optional[datetime] = None) -> bool:
        """True while a not-found record is younger than the refresh interval."""
        recorded = self.get_negative(identity)
        if recorded is None:
            return False
        return (now or utc_now()) - recorded <= self._refresh_interval

    # -- writes ------------------------------------------------------------

    def put(self, identity: PackageIdentity, version_set: VersionSet) -> CacheEntry:
        """Atomically replace the whole entry; durable once this returns."""
        conn = self._connection()
        key = (identity.registry_type.value, identity.package_name)
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute(
                """
                INSERT INTO packages (registry_type, package_name, updated_at, latest)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(registry_type, package_name)
                DO UPDATE SET updated_at = excluded.updated_at, latest = excluded.latest
                """,
                key + (_to_micros(version_set.fetched_at), version_set.latest),
            )
            package_id = conn.execute(
                "SELECT id FROM packages WHERE registry_type = ? AND package_name = ?", key,
            ).fetchone()[0]
            conn.execute("DELETE FROM versions WHERE package_id = ?", (package_id,))
            conn.executemany(
                "INSERT INTO versions (package_id, position, version) VALUES (?, ?, ?)",
                [(package_id, position, version) for position, version in enumerate(version_set.versions)],
            )
            conn.execute("DELETE FROM not_found WHERE registry_type = ? AND package_name = ?", key)
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise CacheError(f"Failed to store {identity}: {exc}") from exc

        logger.debug(
            "Cached versions",
            extra=extra_context(event="cache_put", component="cache", target=str(identity),
                                versions=len(version_set)),
        )
        return CacheEntry(identity, version_set, self._refresh_interval)

    def put_negative(self, identity: PackageIdentity, recorded_at: Optional[datetime] = None) -> None:
        """Remember that the registry does not know this package."""
        try:
            self._connection().execute(
                """
                INSERT INTO not_found (registry_type, package_name, recorded_at) VALUES (?, ?, ?)
                ON CONFLICT(registry_type, package_name) DO UPDATE SET recorded_at = excluded.recorded_at
                """,
                (identity.registry_type.value, identity.package_name, _to_micros(recorded_at or utc_now())),
            )
        except sqlite3.Error as exc:
            raise CacheError(f"Failed to store not-found record for {identity}: {exc}") from exc

    def invalidate(self, identity: PackageIdentity) -> None:
        """Drop the entry and any not-found record for an identity."""
        conn = self._connection()
        key = (identity.registry_type.value, identity.package_name)
        try:
            conn.execute("BEGIN IMMEDIATE")
            conn.execute("DELETE FROM packages WHERE registry_type = ? AND package_name = ?", key)
            conn.execute("DELETE FROM not_found WHERE registry_type = ? AND package_name = ?", key)
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
            raise CacheError(f"Failed to invalidate {identity}: {exc}") from exc

    # -- async wrappers ----------------------------------------------------

    async def aget(self, identity: PackageIdentity) -> Optional[CacheEntry]:
        return await asyncio.to_thread(self.get, identity)

    async def aput(self, identity: PackageIdentity, version_set: VersionSet) -> CacheEntry:
        return await asyncio.to_thread(self.put, identity, version_set)

    async def ais_known_missing(self, identity: PackageIdentity) -> bool:
        return await asyncio.to_thread(self.is_known_missing, identity)

    async def astale_identities(self) -> List[PackageIdentity]:
        return await asyncio.to_thread(self.stale_identities)

    # -- fetch deduplication ---------------------------------------------

    def in_flight(self, identity: PackageIdentity) -> bool:
        """Whether a fetch for this identity is currently running."""
        with self._in_flight_lock:
            return identity in self._in_flight

    async def fetch_with_dedup(self, identity: PackageIdentity, registry) -> CacheEntry:
        """Fetch and store an identity, sharing one fetch among concurrent callers.

        The first caller starts the fetch task; later callers await the same
        task and observe the same entry or the same FetchError. Cancelling a
        caller does not cancel the shared fetch.

        Raises:
            FetchError: the registry fetch failed; the cache is left untouched
            CacheError: the fetched set could not be stored
        """
        with self._in_flight_lock:
            task = self._in_flight.get(identity)
            if task is None:
                task = asyncio.ensure_future(self._fetch_and_store(identity, registry))
                self._in_flight[identity] = task
                task.add_done_callback(lambda done: self._clear_in_flight(identity, done))
            else:
                logger.debug("Joining in-flight fetch for %s", identity)
        return await asyncio.shield(task)

    def _clear_in_flight(self, identity: PackageIdentity, task: asyncio.Task) -> None:
        with self._in_flight_lock:
            if self._in_flight.get(identity) is task:
                del self._in_flight[identity]
        if not task.cancelled():
            # Retrieve the exception so an unobserved failure is not reported as "never retrieved".
            task.exception()

    async def _fetch_and_store(self, identity: PackageIdentity, registry) -> CacheEntry:
        logger.info("Fetching versions for %s", identity)
        with Timer() as timer:
            try:
                version_set = await asyncio.wait_for(
                    registry.fetch_versions(identity.package_name), timeout=self._fetch_timeout)
            except asyncio.TimeoutError as exc:
                logger.warning("Fetch for %s timed out after %ss", identity, self._fetch_timeout)
                raise TransientFetchError(
                    identity.registry_type.value, identity.package_name,
                    f"fetch timed out after {self._fetch_timeout}s") from exc
            except UpstreamNotFoundError:
                logger.info("%s not found upstream", identity)
                if self._negative_cache:
                    await asyncio.to_thread(self.put_negative, identity)
                raise

        entry = await self.aput(identity, version_set)
        logger.info(
            "Fetched %d versions for %s", len(version_set), identity,
            extra=extra_context(event="fetch", component="cache", outcome="success",
                                duration_ms=timer.duration_ms(), target=str(identity)),
        )
        return entry
