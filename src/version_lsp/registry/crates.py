"""crates.io registry client."""

from __future__ import annotations

import logging

from ..constants import Constants
from ..versioning.models import RegistryType, VersionSet
from .base import Registry, parse_timestamp, sort_by_timestamp

logger = logging.getLogger(__name__)


class CratesIoRegistry(Registry):
    """Lists non-yanked crate versions ordered by ``created_at``."""

    registry_type = RegistryType.CRATES
    DEFAULT_BASE_URL = Constants.REGISTRY_URL_CRATES

    async def fetch_versions(self, package_name: str) -> VersionSet:
        url = f"{self.base_url}/{package_name}"
        data = self._expect_dict(await self._get_json(url, package_name), package_name)

        entries = data.get("versions")
        if not isinstance(entries, list):
            raise self._malformed(package_name, "missing 'versions' list")

        pairs = []
        for entry in entries:
            if not isinstance(entry, dict) or not isinstance(entry.get("num"), str):
                raise self._malformed(package_name, "version entry without 'num'")
            if entry.get("yanked"):
                continue
            pairs.append((entry["num"], parse_timestamp(entry.get("created_at"))))

        crate = data.get("crate") if isinstance(data.get("crate"), dict) else {}
        latest = crate.get("max_stable_version") or crate.get("max_version")
        ordered = sort_by_timestamp(pairs)
        logger.debug("crates.io %s: %d versions", package_name, len(ordered))
        return VersionSet.of(ordered, latest=latest if isinstance(latest, str) else None)
