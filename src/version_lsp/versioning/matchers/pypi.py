"""PyPI matcher using PEP 440 specifiers."""

import re
from typing import Any, Optional

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import InvalidVersion, Version

from ..models import MatchResult, VersionSet
from .base import VersionMatcher

_ANCHOR_OPERATORS = ("==", "===", ">=", "~=")
_SINGLE_PIN_RE = re.compile(r"^(===?)\s*([^,*]+)$")


class PyPIVersionMatcher(VersionMatcher):
    """PEP 508 style specifiers (``==1.2.3``, ``>=2,<3``, ``~=1.4``).

    A bare version is read as ``==``. The best match is the highest release
    the specifier admits; pre-releases only count when the specifier names
    one. Anchored specifiers are current when their lower bound is the best
    match; pure upper bounds and exclusions are current whenever satisfiable.
    """

    def parse_version(self, version: str) -> Optional[Any]:
        try:
            return Version(version)
        except InvalidVersion:
            return None

    def is_prerelease(self, parsed: Any) -> bool:
        return parsed.is_prerelease

    def display_version(self, version_spec: str) -> str:
        text = version_spec.strip()
        match = _SINGLE_PIN_RE.match(text)
        if match:
            return match.group(2).strip()
        return text

    @staticmethod
    def _specifier_set(version_spec: str) -> Optional[SpecifierSet]:
        text = version_spec.strip()
        if text[:1].isdigit():
            text = f"=={text}"
        try:
            return SpecifierSet(text)
        except InvalidSpecifier:
            return None

    def check_version(self, version_spec: str, available: VersionSet) -> MatchResult:
        specifiers = self._specifier_set(version_spec)
        if specifiers is None:
            return MatchResult.invalid()

        by_version = {}
        for raw, parsed in self.parsed_versions(available.versions):
            by_version.setdefault(parsed, raw)
        matching = list(specifiers.filter(by_version.keys()))
        if not matching:
            return MatchResult.not_found()

        best = max(matching)
        anchor = self._anchor(specifiers)
        if anchor is None or best == anchor:
            return MatchResult.satisfied()
        return MatchResult.upgradable(by_version[best])

    def _anchor(self, specifiers: SpecifierSet) -> Optional[Version]:
        anchors = []
        for specifier in specifiers:
            if specifier.operator not in _ANCHOR_OPERATORS or specifier.version.endswith(".*"):
                continue
            parsed = self.parse_version(specifier.version)
            if parsed is not None:
                anchors.append(parsed)
        return max(anchors) if anchors else None
