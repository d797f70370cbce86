"""Exception hierarchy shared by the registry, cache and config layers."""

from __future__ import annotations

from typing import Optional


class VersionLspError(Exception):
    """Base class for all errors raised by version_lsp."""


class FetchError(VersionLspError):
    """A registry fetch did not produce a usable version set.

    Never fatal: the checker reduces every fetch error to a stale or
    missing cache state.
    """

    def __init__(self, registry_type: str, package_name: str, message: str):
        self.registry_type = registry_type
        self.package_name = package_name
        super().__init__(f"{registry_type}:{package_name}: {message}")


class UpstreamNotFoundError(FetchError):
    """The registry reports that the package does not exist."""

    def __init__(self, registry_type: str, package_name: str):
        super().__init__(registry_type, package_name, "package not found upstream")


class TransientFetchError(FetchError):
    """Network failure, non-success HTTP status or timeout."""

    def __init__(
        self,
        registry_type: str,
        package_name: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.status_code = status_code
        super().__init__(registry_type, package_name, message)


class MalformedResponseError(FetchError):
    """The registry answered, but the body could not be understood."""


class CacheError(VersionLspError):
    """Local durable-store failure (I/O error, corruption, schema problem)."""


class ConfigError(VersionLspError):
    """Configuration file could not be read or is structurally invalid."""
