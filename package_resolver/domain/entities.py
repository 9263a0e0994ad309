from __future__ import annotations

import threading
from typing import List, NamedTuple, Optional, Set, Tuple

from package_resolver.domain.versioning import SemanticVersion


def _version_key(version: SemanticVersion) -> str:
    # Prerelease labels compare case-insensitively.
    return str(version).lower()


class EntrySnapshot(NamedTuple):
    all_versions: Tuple[SemanticVersion, ...]
    latest_version: Optional[SemanticVersion]
    absolute_latest_version: Optional[SemanticVersion]


class PackageEntryInfo:
    """
    A package as a whole entity, across all of its versions (e.g. 'awssdk').

    Versions are added incrementally while results stream in from one or more
    feeds, possibly from several threads at once. The only mutator is
    add_version(), which is idempotent per canonical version string.
    """

    def __init__(self, package_id: str):
        self._id = package_id
        self._all_versions: List[SemanticVersion] = []
        self._all_versions_set: Set[str] = set()
        self._latest_version: Optional[SemanticVersion] = None
        self._absolute_latest_version: Optional[SemanticVersion] = None
        self._lock = threading.Lock()

    @property
    def id(self) -> str:
        return self._id

    @property
    def all_versions(self) -> Tuple[SemanticVersion, ...]:
        """Versions in insertion order. A copy; the entry itself is never exposed."""
        with self._lock:
            return tuple(self._all_versions)

    @property
    def latest_version(self) -> Optional[SemanticVersion]:
        """Highest non-prerelease version seen so far."""
        return self._latest_version

    @property
    def absolute_latest_version(self) -> Optional[SemanticVersion]:
        """Highest version seen so far, prerelease or not."""
        return self._absolute_latest_version

    def snapshot(self) -> EntrySnapshot:
        """Consistent view of versions and both latest markers."""
        with self._lock:
            return EntrySnapshot(
                tuple(self._all_versions),
                self._latest_version,
                self._absolute_latest_version,
            )

    def has_version(self, version: SemanticVersion) -> bool:
        return _version_key(version) in self._all_versions_set

    def add_version(self, version: SemanticVersion) -> "PackageEntryInfo":
        version_str = _version_key(version)
        if version_str in self._all_versions_set:
            return self

        with self._lock:
            if version_str not in self._all_versions_set:
                self._all_versions.append(version)
                if not version.is_prerelease:
                    if self._latest_version is None or self._latest_version < version:
                        self._latest_version = version

                if self._absolute_latest_version is None or self._absolute_latest_version < version:
                    self._absolute_latest_version = version

                self._all_versions_set.add(version_str)

        return self

    def __repr__(self) -> str:
        return f"PackageEntryInfo(id='{self._id}', versions={len(self._all_versions)})"
