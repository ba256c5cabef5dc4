"""Engine version comparison utilities."""

from __future__ import annotations

import re

from packaging.version import Version, InvalidVersion

# Docker engine versions carry suffixes like "24.0.7-ce" or "20.10.21+azure-1".
_SUFFIX = re.compile(r"[-+~].*$")


def parse_version(v: str) -> Version | None:
    """Parse a version string, returning None on failure."""
    v = v.strip()
    if v.startswith("v"):
        v = v[1:]
    try:
        return Version(v)
    except InvalidVersion:
        try:
            return Version(_SUFFIX.sub("", v))
        except InvalidVersion:
            pass
    return None


def meets_minimum(current: str, minimum: str) -> bool:
    """Return True if current is at least minimum. Unparseable versions never qualify."""
    cur = parse_version(current)
    low = parse_version(minimum)
    if cur is None or low is None:
        return False
    return cur >= low
