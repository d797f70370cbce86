"""Base class for registry fetchers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

from ..common.http_client import HttpClient
from ..errors import MalformedResponseError
from ..versioning.models import RegistryType, VersionSet


class Registry(ABC):
    """Retrieves the published version set of one package from one registry.

    Pure I/O boundary: no caching and no retries. Failures are reported as
    FetchError subclasses so the caller can decide what to keep.
    """

    registry_type: RegistryType
    DEFAULT_BASE_URL: str = ""

    def __init__(self, http: Optional[HttpClient] = None, base_url: Optional[str] = None):
        """Initialize the registry.

        Args:
            http: Shared HTTP client; a private one is created when omitted.
            base_url: Override of the registry endpoint (mirrors, tests).
        """
        self._http = http or HttpClient()
        self._base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")

    @property
    def base_url(self) -> str:
        return self._base_url

    @abstractmethod
    async def fetch_versions(self, package_name: str) -> VersionSet:
        """Fetch every published version of a package, oldest first.

        Raises:
            UpstreamNotFoundError: the package does not exist
            TransientFetchError: network, HTTP or timeout failure
            MalformedResponseError: the response could not be understood
        """

    async def _get_json(self, url: str, package_name: str, **kwargs: Any) -> Any:
        return await self._http.get_json(
            url, registry_type=self.registry_type.value, package_name=package_name, **kwargs)

    async def _get_text(self, url: str, package_name: str, **kwargs: Any) -> str:
        return await self._http.get_text(
            url, registry_type=self.registry_type.value, package_name=package_name, **kwargs)

    def _malformed(self, package_name: str, message: str) -> MalformedResponseError:
        return MalformedResponseError(self.registry_type.value, package_name, message)

    def _expect_dict(self, data: Any, package_name: str) -> dict:
        if not isinstance(data, dict):
            raise self._malformed(package_name, f"expected JSON object, got {type(data).__name__}")
        return data


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO 8601 / RFC 3339 timestamp, None when absent or invalid."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def sort_by_timestamp(pairs: Iterable[Tuple[str, Optional[datetime]]]) -> List[str]:
    """Order versions oldest first; versions without a timestamp come first."""
    ordered = sorted(
        pairs,
        key=lambda pair: (pair[1] is not None, pair[1] or datetime.min.replace(tzinfo=timezone.utc)),
    )
    return [version for version, _ in ordered]
