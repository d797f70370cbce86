"""User-facing text for comparison results."""

from enum import Enum
from typing import Optional, Tuple

from .models import VersionCompareResult, VersionStatus


class Severity(Enum):
    """Diagnostic severity, mirroring the LSP levels the protocol layer emits."""

    ERROR = "error"
    WARNING = "warning"


def describe(result: VersionCompareResult) -> Optional[Tuple[Severity, str]]:
    """Message for a result, or None when nothing should be shown.

    Current and not-yet-checked packages stay silent; an unreachable registry
    must not produce an error banner.
    """
    if result.status is VersionStatus.OUTDATED:
        target = result.best_match or result.latest_version
        return Severity.WARNING, f"Update available: {result.current_version} -> {target}"
    if result.status is VersionStatus.NOT_FOUND:
        return Severity.ERROR, f"Version {result.current_version} not found in registry"
    if result.status is VersionStatus.INVALID:
        return Severity.ERROR, f"Invalid version specification: {result.current_version}"
    return None
