"""Go module proxy client (GOPROXY protocol)."""

from __future__ import annotations

import logging

from ..constants import Constants
from ..errors import UpstreamNotFoundError
from ..versioning.matchers.semver import parse_semver
from ..versioning.models import RegistryType, VersionSet
from .base import Registry

logger = logging.getLogger(__name__)


def escape_module_path(module_path: str) -> str:
    """Case-encode a module path: each upper-case letter becomes '!' + lower."""
    return "".join(f"!{ch.lower()}" if ch.isupper() else ch for ch in module_path)


class GoProxyRegistry(Registry):
    """Reads ``@v/list``; falls back to ``@latest`` for pseudo-version-only modules."""

    registry_type = RegistryType.GO_PROXY
    DEFAULT_BASE_URL = Constants.REGISTRY_URL_GO_PROXY

    async def fetch_versions(self, package_name: str) -> VersionSet:
        module = escape_module_path(package_name)
        text = await self._get_text(f"{self.base_url}/{module}/@v/list", package_name)
        listed = [line.strip() for line in text.splitlines() if line.strip()]

        parsed = []
        for version in listed:
            semver = parse_semver(version)
            if semver is None:
                raise self._malformed(package_name, f"invalid version in list: {version!r}")
            parsed.append((version, semver))
        parsed.sort(key=lambda pair: pair[1])
        versions = [version for version, _ in parsed]

        stable = [version for version, semver in parsed if not semver.prerelease]
        latest = stable[-1] if stable else None
        if latest is None:
            latest = await self._fetch_latest(module, package_name)
            if latest is not None and latest not in versions:
                versions.append(latest)

        logger.debug("go proxy %s: %d versions, latest=%s", package_name, len(versions), latest)
        return VersionSet.of(versions, latest=latest)

    async def _fetch_latest(self, module: str, package_name: str):
        try:
            data = await self._get_json(f"{self.base_url}/{module}/@latest", package_name)
        except UpstreamNotFoundError:
            return None
        data = self._expect_dict(data, package_name)
        version = data.get("Version")
        if not isinstance(version, str) or parse_semver(version) is None:
            raise self._malformed(package_name, "@latest without a valid 'Version'")
        return version
