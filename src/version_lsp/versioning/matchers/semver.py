"""semantic_version helpers shared by the semver-based matchers."""

import re
from typing import Optional

import semantic_version

_PARTIAL_RE = re.compile(r"^\d+(\.\d+){0,2}([-+][0-9A-Za-z.+-]*)?$")


def strip_v(text: str) -> str:
    """Drop a single leading 'v'/'V' as used by Go modules and Git tags."""
    text = text.strip()
    if len(text) > 1 and text[0] in "vV" and text[1].isdigit():
        return text[1:]
    return text


def parse_semver(text: str) -> Optional[semantic_version.Version]:
    """Strictly parse a full semantic version, tolerating a 'v' prefix."""
    try:
        return semantic_version.Version(strip_v(text))
    except ValueError:
        return None


def coerce_semver(text: str) -> Optional[semantic_version.Version]:
    """Parse a possibly partial version ('6', '4.1') padding missing parts with zero."""
    candidate = strip_v(text)
    if not _PARTIAL_RE.match(candidate):
        return None
    try:
        return semantic_version.Version.coerce(candidate)
    except ValueError:
        return None


def is_semver_prerelease(version: semantic_version.Version) -> bool:
    return bool(version.prerelease)
