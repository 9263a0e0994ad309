"""
Find and search packages across several package sources at once.

Every source is queried on its own worker thread. Versions reported by any
source are merged into one PackageEntryInfo per package id, which is then
used to flag the latest versions among the returned packages.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, Dict, Iterable, List, Optional, Tuple

from package_resolver.core import messages
from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.errors import EndpointDiscoveryError, InvalidSourceError
from package_resolver.domain.filtering import apply_post_filters
from package_resolver.domain.models import PackageMetadata, SourceConfig
from package_resolver.domain.search import SearchContext, SearchResult, SearchTerm
from package_resolver.domain.versioning import SemanticVersion
from package_resolver.repository.create_parameters import RepositoryCreateParameters
from package_resolver.repository.factory import PackageRepositoryFactory
from package_resolver.repository.package_repository import PackageRepository

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    packages: List[PackageMetadata] = field(default_factory=list)
    entries: Dict[str, PackageEntryInfo] = field(default_factory=dict)
    # location -> error message
    failed_sources: Dict[str, str] = field(default_factory=dict)


class PackageDiscoveryService:
    def __init__(self, factory: Optional[PackageRepositoryFactory] = None, max_workers: Optional[int] = None):
        self.factory = factory or PackageRepositoryFactory.default()
        self.max_workers = max_workers
        self._entries: Dict[str, PackageEntryInfo] = {}
        self._entries_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Shared entries
    # ------------------------------------------------------------------

    def get_entry(self, package_id: str) -> PackageEntryInfo:
        """The session-wide entry for a package id (case-insensitive)."""
        key = package_id.lower()
        entry = self._entries.get(key)
        if entry is None:
            with self._entries_lock:
                entry = self._entries.get(key)
                if entry is None:
                    entry = PackageEntryInfo(package_id)
                    self._entries[key] = entry
        return entry

    def _record(self, packages: Iterable[PackageMetadata]) -> None:
        for package in packages:
            version = SemanticVersion.try_parse(package.version)
            if version is not None:
                self.get_entry(package.id).add_version(version)

    # ------------------------------------------------------------------
    # Sources
    # ------------------------------------------------------------------

    def open_repositories(
        self, locations: Iterable[str], request: "RequestContext"
    ) -> Tuple[List[PackageRepository], Dict[str, str]]:
        """Create a repository per location; locations that fail are skipped."""
        repositories: List[PackageRepository] = []
        failures: Dict[str, str] = {}
        for location in locations:
            try:
                parameters = RepositoryCreateParameters(location, request)
                repositories.append(self.factory.create_repository(parameters))
            except (InvalidSourceError, EndpointDiscoveryError) as e:
                request.warning(messages.SKIPPING_SOURCE, location, e)
                failures[location] = str(e)
        return repositories, failures

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find_packages(
        self,
        package_id: str,
        locations: Iterable[str],
        request: "RequestContext",
        required_version: Optional[SemanticVersion] = None,
        minimum_version: Optional[SemanticVersion] = None,
        maximum_version: Optional[SemanticVersion] = None,
        all_versions: bool = False,
    ) -> DiscoveryResult:
        """Find a package by id in every source."""

        def make_context() -> SearchContext:
            # Each source selects versions from what it has itself.
            return SearchContext(
                package_info=PackageEntryInfo(package_id),
                required_version=required_version,
                minimum_version=minimum_version,
                maximum_version=maximum_version,
                allow_prerelease=request.allow_prerelease,
                all_versions=all_versions,
            )

        result = self._run(
            locations,
            request,
            make_context,
            lambda repository, context: repository.find_packages_by_id(context, request),
        )
        result.entries.setdefault(package_id.lower(), self.get_entry(package_id))
        return result

    def search(
        self,
        search_terms: List[SearchTerm],
        locations: Iterable[str],
        request: "RequestContext",
        all_versions: bool = False,
    ) -> DiscoveryResult:
        """Search every source with the same terms."""

        def make_context() -> SearchContext:
            return SearchContext(
                search_terms=list(search_terms),
                allow_prerelease=request.allow_prerelease,
                all_versions=all_versions,
                enable_deep_metadata_bypass=True,
            )

        return self._run(
            locations,
            request,
            make_context,
            lambda repository, context: repository.search(context, request),
        )

    def _run(
        self,
        locations: Iterable[str],
        request: "RequestContext",
        make_context: Callable[[], SearchContext],
        query: Callable[[PackageRepository, SearchContext], SearchResult],
    ) -> DiscoveryResult:
        repositories, failures = self.open_repositories(locations, request)
        result = DiscoveryResult(failed_sources=failures)
        if not repositories:
            return result

        def _query(repository: PackageRepository) -> List[PackageMetadata]:
            if request.is_canceled:
                return []
            context = make_context()
            packages = apply_post_filters(query(repository, context), context)
            return packages or []

        errors: List[Exception] = []
        max_workers = self.max_workers or request.config.max_discovery_workers
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = {executor.submit(_query, repository): repository for repository in repositories}
            for future in as_completed(futures):
                repository = futures[future]
                try:
                    packages = future.result()
                except Exception as e:
                    request.warning(messages.SKIPPING_SOURCE, repository.source, e)
                    result.failed_sources[repository.source] = str(e)
                    errors.append(e)
                    continue
                self._record(packages)
                result.packages.extend(packages)

        if len(errors) == len(repositories):
            raise errors[0]

        self._mark_latest(result)
        return result

    def _mark_latest(self, result: DiscoveryResult) -> None:
        for package in result.packages:
            entry = self.get_entry(package.id)
            result.entries.setdefault(package.id.lower(), entry)
            version = package.semantic_version
            snapshot = entry.snapshot()
            package.is_latest_version = snapshot.latest_version == version
            package.is_absolute_latest_version = snapshot.absolute_latest_version == version


def enabled_locations(sources: Iterable[SourceConfig]) -> List[str]:
    """Locations of the configured sources that are switched on, in order."""
    return [source.location for source in sources if source.enabled]
