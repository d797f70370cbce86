"""JSR (jsr.io) registry client."""

from __future__ import annotations

import logging
import re

from ..constants import Constants
from ..errors import UpstreamNotFoundError
from ..versioning.models import RegistryType, VersionSet
from .base import Registry, parse_timestamp, sort_by_timestamp

logger = logging.getLogger(__name__)

_JSR_NAME_RE = re.compile(r"^@[a-z0-9-]+/[a-z0-9-]+$")


class JsrRegistry(Registry):
    """Reads ``/@scope/name/meta.json``; yanked versions are dropped."""

    registry_type = RegistryType.JSR
    DEFAULT_BASE_URL = Constants.REGISTRY_URL_JSR

    async def fetch_versions(self, package_name: str) -> VersionSet:
        name = package_name[len("jsr:"):] if package_name.startswith("jsr:") else package_name
        if not _JSR_NAME_RE.match(name):
            raise UpstreamNotFoundError(self.registry_type.value, package_name)

        data = self._expect_dict(
            await self._get_json(f"{self.base_url}/{name}/meta.json", package_name), package_name)
        versions = data.get("versions")
        if not isinstance(versions, dict):
            raise self._malformed(package_name, "missing 'versions' object")

        pairs = []
        for version, meta in versions.items():
            meta = meta if isinstance(meta, dict) else {}
            if meta.get("yanked"):
                continue
            pairs.append((version, parse_timestamp(meta.get("createdAt"))))

        latest = data.get("latest")
        ordered = sort_by_timestamp(pairs)
        logger.debug("jsr %s: %d versions, latest=%s", package_name, len(ordered), latest)
        return VersionSet.of(ordered, latest=latest if isinstance(latest, str) else None)
