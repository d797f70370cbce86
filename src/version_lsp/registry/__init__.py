"""Registry fetchers for the supported package ecosystems."""

from typing import Dict, Optional

from ..common.http_client import HttpClient
from ..config import Settings
from ..versioning.models import RegistryType
from .base import Registry
from .crates import CratesIoRegistry
from .github import GitHubRegistry
from .go_proxy import GoProxyRegistry
from .jsr import JsrRegistry
from .npm import NpmRegistry, PnpmCatalogRegistry
from .pypi import PyPIRegistry

REGISTRY_CLASSES = {
    RegistryType.NPM: NpmRegistry,
    RegistryType.PNPM_CATALOG: PnpmCatalogRegistry,
    RegistryType.JSR: JsrRegistry,
    RegistryType.CRATES: CratesIoRegistry,
    RegistryType.GO_PROXY: GoProxyRegistry,
    RegistryType.GITHUB_RELEASES: GitHubRegistry,
    RegistryType.PYPI: PyPIRegistry,
}


def default_registries(http: HttpClient, settings: Optional[Settings] = None) -> Dict[RegistryType, Registry]:
    """One fetcher per enabled registry kind, all sharing ``http``."""
    settings = settings or Settings()
    registries: Dict[RegistryType, Registry] = {}
    for registry_type, cls in REGISTRY_CLASSES.items():
        if not settings.is_enabled(registry_type):
            continue
        registries[registry_type] = cls(http, base_url=settings.base_url(registry_type))
    return registries


__all__ = [
    "Registry",
    "CratesIoRegistry",
    "GitHubRegistry",
    "GoProxyRegistry",
    "JsrRegistry",
    "NpmRegistry",
    "PnpmCatalogRegistry",
    "PyPIRegistry",
    "REGISTRY_CLASSES",
    "default_registries",
]
