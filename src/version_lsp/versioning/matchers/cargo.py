"""Cargo requirement matcher.

A bare full version (``1.0.100``) is treated as a pinned version and
compared exactly. Every other requirement form is translated into the npm
range grammar, which Cargo's operators mirror:

- ``=1.2.3`` pins, ``^``/``~`` and comparators keep their meaning
- ``1.2`` and ``1`` (partial, no operator) read as caret requirements
- comma-separated requirements are intersected
"""

import re

from ..models import MatchResult, RegistryType, VersionSet
from .exact import ExactVersionMatcher
from .npm import NpmVersionMatcher

_FULL_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$")
_PARTIAL_RE = re.compile(r"^\d+(?:\.\d+)?$")


class CargoVersionMatcher(NpmVersionMatcher):
    """Exact semantics for bare versions, range semantics for requirements."""

    def __init__(self, registry_type: RegistryType = RegistryType.CRATES):
        super().__init__(registry_type)
        self._exact = ExactVersionMatcher(registry_type)

    def check_version(self, version_spec: str, available: VersionSet) -> MatchResult:
        if not version_spec.strip():
            return MatchResult.invalid()
        if _FULL_VERSION_RE.match(version_spec.strip()):
            return self._exact.check_version(version_spec, available)
        return super().check_version(version_spec, available)

    def normalize_spec(self, version_spec: str) -> str:
        parts = []
        for requirement in version_spec.split(","):
            requirement = requirement.strip()
            if not requirement:
                continue
            if requirement.startswith("=") and not requirement.startswith("=="):
                requirement = requirement[1:].strip()
            elif _PARTIAL_RE.match(requirement):
                requirement = f"^{requirement}"
            parts.append(requirement)
        return super().normalize_spec(" ".join(parts))

    def display_version(self, version_spec: str) -> str:
        """``=1.2.3`` displays as ``1.2.3``; other forms as npm does."""
        text = version_spec.strip()
        if text.startswith("=") and not text.startswith("==") and "," not in text:
            return text[1:].strip()
        return super().display_version(text)
