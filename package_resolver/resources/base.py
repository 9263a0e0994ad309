from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, List, Optional

from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.search import SearchContext, SearchResult, SearchTerm

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext


class Feed(ABC):
    """
    Abstract base class for a single resource of a package source.
    """

    @abstractmethod
    def is_available(self, request: "RequestContext") -> bool:
        """Check whether the resource can currently be reached."""
        pass


class PackagesFeed(Feed):
    """A feed used to get info about a specific package id."""

    @abstractmethod
    def find(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        """Find packages using context.package_info and (optionally) versions."""
        pass


class QueryFeed(Feed):
    """A feed used to search for multiple packages given some criteria."""

    @abstractmethod
    def search(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        """Search for packages matching context.search_terms."""
        pass


class AutoCompleteFeed(Feed):
    """A feed returning package ids that start with a prefix."""

    @abstractmethod
    def autocomplete(self, context: SearchContext, request: "RequestContext") -> List[str]:
        pass


class FilesFeed(Feed):
    """A feed used to access package files."""

    @abstractmethod
    def download_package(self, package: PackageMetadata, destination: str, request: "RequestContext") -> bool:
        """
        Download a package archive to the specified destination.
        Returns True if the download was successful.
        """
        pass

    @abstractmethod
    def install_package(self, package: PackageMetadata, request: "RequestContext") -> bool:
        """
        Install a package into the configured install root.
        Returns True if the install was successful.
        """
        pass

    @abstractmethod
    def get_version_info(self, package_info: PackageEntryInfo, request: "RequestContext") -> PackageEntryInfo:
        """Add every version the source knows for package_info.id to package_info."""
        pass


class ResourceCollection:
    """
    The set of resources a package source location exposes.

    Repositories route every operation to one of these feeds; which concrete
    feeds are present is decided once, when the collection is made.
    """

    def __init__(
        self,
        packages_feed: Optional[PackagesFeed] = None,
        query_feed: Optional[QueryFeed] = None,
        files_feed: Optional[FilesFeed] = None,
        auto_complete_feed: Optional[AutoCompleteFeed] = None,
    ):
        self.packages_feed = packages_feed
        self.query_feed = query_feed
        self.files_feed = files_feed
        self.auto_complete_feed = auto_complete_feed

    def get_search_query(self, terms: Iterable[SearchTerm]) -> str:
        """Render search terms into the query string this source understands."""
        return " ".join(t.text for t in terms or [] if t.text).strip()
