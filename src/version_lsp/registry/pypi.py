"""PyPI JSON API client."""

from __future__ import annotations

import logging

from packaging.utils import canonicalize_name

from ..constants import Constants
from ..versioning.models import RegistryType, VersionSet
from .base import Registry, parse_timestamp, sort_by_timestamp

logger = logging.getLogger(__name__)


class PyPIRegistry(Registry):
    """Reads ``/pypi/{name}/json``; releases whose files are all yanked are dropped."""

    registry_type = RegistryType.PYPI
    DEFAULT_BASE_URL = Constants.REGISTRY_URL_PYPI

    async def fetch_versions(self, package_name: str) -> VersionSet:
        url = f"{self.base_url}/{canonicalize_name(package_name)}/json"
        data = self._expect_dict(await self._get_json(url, package_name), package_name)

        releases = data.get("releases")
        if not isinstance(releases, dict):
            raise self._malformed(package_name, "missing 'releases' object")

        pairs = []
        for version, files in releases.items():
            files = files if isinstance(files, list) else []
            if files and all(isinstance(f, dict) and f.get("yanked") for f in files):
                continue
            uploaded = [
                parse_timestamp(f.get("upload_time_iso_8601") or f.get("upload_time"))
                for f in files if isinstance(f, dict)
            ]
            uploaded = [ts for ts in uploaded if ts is not None]
            pairs.append((version, min(uploaded) if uploaded else None))

        info = data.get("info") if isinstance(data.get("info"), dict) else {}
        latest = info.get("version")
        ordered = sort_by_timestamp(pairs)
        logger.debug("pypi %s: %d releases, latest=%s", package_name, len(ordered), latest)
        return VersionSet.of(ordered, latest=latest if isinstance(latest, str) else None)
