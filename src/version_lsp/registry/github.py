"""GitHub Releases client used for GitHub Actions references."""

from __future__ import annotations

import logging
import os
from typing import Dict, Optional, Tuple

from ..constants import Constants
from ..errors import UpstreamNotFoundError
from ..versioning.models import RegistryType, VersionSet
from .base import Registry, parse_timestamp, sort_by_timestamp

logger = logging.getLogger(__name__)


def split_repository(package_name: str) -> Optional[Tuple[str, str]]:
    """``owner/repo[/path]`` -> (owner, repo); actions in sub-directories share the repo."""
    parts = [part for part in package_name.strip().split("/") if part]
    if len(parts) < 2:
        return None
    return parts[0], parts[1]


class GitHubRegistry(Registry):
    """Lists release tags (drafts excluded), falling back to plain tags.

    Honours ``$GITHUB_TOKEN`` to lift the anonymous rate limit.
    """

    registry_type = RegistryType.GITHUB_RELEASES
    DEFAULT_BASE_URL = Constants.REGISTRY_URL_GITHUB

    def __init__(self, http=None, base_url: Optional[str] = None, token: Optional[str] = None):
        super().__init__(http, base_url)
        self._token = token if token is not None else os.environ.get(Constants.ENV_GITHUB_TOKEN)

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def fetch_versions(self, package_name: str) -> VersionSet:
        repository = split_repository(package_name)
        if repository is None:
            raise UpstreamNotFoundError(self.registry_type.value, package_name)
        owner, repo = repository
        per_page = Constants.GITHUB_RELEASES_PER_PAGE

        releases = await self._get_json(
            f"{self.base_url}/repos/{owner}/{repo}/releases?per_page={per_page}",
            package_name, headers=self._headers())
        if not isinstance(releases, list):
            raise self._malformed(package_name, "releases response is not a list")

        pairs = []
        stable = []
        for release in releases:
            if not isinstance(release, dict) or not isinstance(release.get("tag_name"), str):
                raise self._malformed(package_name, "release without 'tag_name'")
            if release.get("draft"):
                continue
            published = parse_timestamp(release.get("published_at") or release.get("created_at"))
            pairs.append((release["tag_name"], published))
            if not release.get("prerelease"):
                stable.append(pairs[-1])

        if not pairs:
            return await self._fetch_tags(owner, repo, package_name)

        ordered = sort_by_timestamp(pairs)
        logger.debug("github %s: %d releases", package_name, len(ordered))
        return VersionSet.of(ordered, latest=sort_by_timestamp(stable)[-1] if stable else None)

    async def _fetch_tags(self, owner: str, repo: str, package_name: str) -> VersionSet:
        """Repositories without releases still publish tags; the API lists them newest first."""
        tags = await self._get_json(
            f"{self.base_url}/repos/{owner}/{repo}/tags?per_page={Constants.GITHUB_RELEASES_PER_PAGE}",
            package_name, headers=self._headers())
        if not isinstance(tags, list):
            raise self._malformed(package_name, "tags response is not a list")
        names = []
        for tag in tags:
            if not isinstance(tag, dict) or not isinstance(tag.get("name"), str):
                raise self._malformed(package_name, "tag without 'name'")
            names.append(tag["name"])
        names.reverse()
        logger.debug("github %s: no releases, %d tags", package_name, len(names))
        return VersionSet.of(names)
