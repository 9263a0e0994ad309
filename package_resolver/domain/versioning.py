"""
Ordered package version values.

Versions follow the NuGet flavour of SemVer 2.0:
``major.minor[.patch[.revision]][-prerelease][+metadata]``.
Build metadata is kept for display but ignored for equality and ordering.
"""
from __future__ import annotations

import re
from functools import total_ordering
from typing import Optional, Tuple

_VERSION_RE = re.compile(
    r"^\s*v?(?P<numbers>\d+(?:\.\d+){1,3})"
    r"(?:-(?P<label>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?"
    r"(?:\+(?P<metadata>[0-9A-Za-z\-]+(?:\.[0-9A-Za-z\-]+)*))?\s*$"
)


def _label_key(label: str) -> Tuple[Tuple[int, int, str], ...]:
    # Numeric identifiers sort before alphanumeric ones.
    parts = []
    for part in label.split("."):
        if part.isdigit():
            parts.append((0, int(part), ""))
        else:
            parts.append((1, 0, part.lower()))
    return tuple(parts)


@total_ordering
class SemanticVersion:
    """A parsed, totally ordered package version."""

    __slots__ = ("major", "minor", "patch", "revision", "special_version", "metadata")

    def __init__(self, version: str):
        match = _VERSION_RE.match(version or "")
        if not match:
            raise ValueError(f"'{version}' is not a valid version string")

        numbers = [int(n) for n in match.group("numbers").split(".")]
        numbers += [0] * (4 - len(numbers))
        self.major, self.minor, self.patch, self.revision = numbers
        self.special_version: str = match.group("label") or ""
        self.metadata: str = match.group("metadata") or ""

    @classmethod
    def try_parse(cls, version: Optional[str]) -> Optional["SemanticVersion"]:
        if version is None:
            return None
        try:
            return cls(str(version))
        except ValueError:
            return None

    @property
    def is_prerelease(self) -> bool:
        return bool(self.special_version.strip())

    def _key(self):
        release = (self.major, self.minor, self.patch, self.revision)
        if not self.is_prerelease:
            # A release sorts above any prerelease of the same numbers.
            return release, (1,), ()
        return release, (0,), _label_key(self.special_version)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: "SemanticVersion") -> bool:
        if not isinstance(other, SemanticVersion):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}.{self.patch}"
        if self.revision:
            text += f".{self.revision}"
        if self.special_version:
            text += f"-{self.special_version}"
        return text

    def __repr__(self) -> str:
        return f"SemanticVersion('{self}')"
