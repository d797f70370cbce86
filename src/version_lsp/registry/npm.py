"""npm registry client (also serves pnpm catalogs)."""

from __future__ import annotations

import logging

from ..constants import Constants
from ..versioning.models import RegistryType, VersionSet
from .base import Registry, parse_timestamp, sort_by_timestamp

logger = logging.getLogger(__name__)


def encode_package_name(package_name: str) -> str:
    """Scoped packages are requested as ``@scope%2Fname``."""
    if package_name.startswith("@"):
        return package_name.replace("/", "%2F")
    return package_name


class NpmRegistry(Registry):
    """Reads the packument: every version plus ``dist-tags`` and publish times."""

    registry_type = RegistryType.NPM
    DEFAULT_BASE_URL = Constants.REGISTRY_URL_NPM

    async def fetch_versions(self, package_name: str) -> VersionSet:
        url = f"{self.base_url}/{encode_package_name(package_name)}"
        data = self._expect_dict(await self._get_json(url, package_name), package_name)

        versions = data.get("versions")
        if not isinstance(versions, dict):
            raise self._malformed(package_name, "missing 'versions' object")
        times = data.get("time") if isinstance(data.get("time"), dict) else {}
        dist_tags = data.get("dist-tags") if isinstance(data.get("dist-tags"), dict) else {}

        ordered = sort_by_timestamp((v, parse_timestamp(times.get(v))) for v in versions)
        latest = dist_tags.get("latest")
        logger.debug("npm %s: %d versions, latest=%s", package_name, len(ordered), latest)
        return VersionSet.of(ordered, latest=latest if isinstance(latest, str) else None)


class PnpmCatalogRegistry(NpmRegistry):
    """pnpm catalogs resolve against the npm registry."""

    registry_type = RegistryType.PNPM_CATALOG
