"""
API version type.

CouchDB releases are numbered major.minor.patch, but the documentation
often omits the patch level ("since 2.4").  Both forms parse to the same
ApiVersion, so "2.4" == "2.4.0".
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from .errors import UsageError

_VERSION_RE = re.compile(r"^\s*v?(\d+)\.(\d+)(?:\.(\d+))?")


@dataclass(frozen=True, order=True)
class ApiVersion:
    """An immutable, totally ordered major.minor.patch version."""

    major: int
    minor: int
    patch: int = 0

    @classmethod
    def parse(cls, value: VersionLike) -> ApiVersion:
        """Parse a version string, ApiVersion or (major, minor[, patch]) tuple.

        Text after the patch level (like "-rc1") is ignored.

        Raises:
            UsageError: If the value is not a recognizable version
        """
        if isinstance(value, ApiVersion):
            return value

        if isinstance(value, tuple):
            if not 2 <= len(value) <= 3:
                raise UsageError(f"Malformed version {value!r}", what=str(value))
            return cls(*(int(part) for part in value))

        match = _VERSION_RE.match(str(value))
        if match is None:
            raise UsageError(f"Malformed version '{value}'", what=str(value))

        major, minor, patch = match.groups()
        return cls(int(major), int(minor), int(patch or 0))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


VersionLike = Union[ApiVersion, str, tuple]


def parse_version(value: VersionLike | None) -> ApiVersion | None:
    """Parse an optional version; empty values stay None."""
    if value is None or value == "":
        return None
    return ApiVersion.parse(value)
