# versions.py
from __future__ import annotations

import re
from typing import Mapping, Optional, Tuple

from .model import VersionConfig

# ---------------------------------------------------------------------
# Version patterns
# ---------------------------------------------------------------------
# Supported patterns (checked in this order):
#   "25.0.5"   exact string match
#   "24.*"     trailing wildcard, prefix match ("24.0-SNAPSHOT" matches)
#   ">=24.1"   comparator on major.minor (also <=, >, <)
#
# Comparators ignore the patch level and any pre-release suffix.
# ---------------------------------------------------------------------

_COMPARATORS = (
    (">=", lambda c: c >= 0),
    ("<=", lambda c: c <= 0),
    (">", lambda c: c > 0),
    ("<", lambda c: c < 0),
)

_LEADING_INT = re.compile(r"\d+")


def _to_int(part: str) -> int:
    m = _LEADING_INT.match(part.strip())
    return int(m.group(0)) if m else 0


def major_minor(version: str) -> Tuple[int, int]:
    """
    Extract (major, minor) from a version string.

    "25.0-SNAPSHOT" -> (25, 0), "24.6.0" -> (24, 6), "26" -> (26, 0)
    """
    clean = version.split("-", 1)[0]
    parts = clean.split(".")
    major = _to_int(parts[0]) if parts and parts[0] else 0
    minor = _to_int(parts[1]) if len(parts) > 1 else 0
    return major, minor


def compare_versions(v1: str, v2: str) -> int:
    """Negative if v1 < v2, 0 if equal, positive if v1 > v2 (major.minor only)."""
    a, b = major_minor(v1), major_minor(v2)
    if a[0] != b[0]:
        return a[0] - b[0]
    return a[1] - b[1]


def matches_version(pattern: Optional[str], version: Optional[str]) -> bool:
    if not pattern or not version:
        return False

    if pattern == version:
        return True

    if pattern.endswith("*"):
        return version.startswith(pattern[:-1])

    for op, accept in _COMPARATORS:
        if pattern.startswith(op):
            return accept(compare_versions(version, pattern[len(op):]))

    return False


def find_version_config(
    overrides: Optional[Mapping[str, VersionConfig]],
    version: str,
    defaults: Optional[Mapping[str, VersionConfig]] = None,
) -> Optional[VersionConfig]:
    """
    Return the first override matching `version`.

    Project-specific overrides are checked first, then the global defaults.
    A matching project override is returned even when it sets nothing, so a
    project can opt out of a default rule.
    """
    for table in (overrides, defaults):
        for pattern, config in (table or {}).items():
            if matches_version(pattern, version):
                return config
    return None
