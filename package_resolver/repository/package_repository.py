"""
Repository façade over the resources of one package source.

A repository selects its feeds once, at construction, and afterwards only
forwards calls to them. Backend errors are never translated here.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from package_resolver.core import messages
from package_resolver.domain.errors import InvalidSourceError
from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.search import SearchContext, SearchResult
from package_resolver.resources.base import ResourceCollection
from package_resolver.resources.factory import ResourceCollectionFactory

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext
    from package_resolver.repository.create_parameters import RepositoryCreateParameters

logger = logging.getLogger(__name__)


class PackageRepository(ABC):
    """
    Abstract base class for a package source.
    """

    def __init__(self, resources: ResourceCollection):
        self._resources = resources

    @property
    @abstractmethod
    def source(self) -> str:
        """The location this repository serves packages from."""
        pass

    @property
    @abstractmethod
    def is_file(self) -> bool:
        """True for a local directory source."""
        pass

    @property
    def resource_provider(self) -> ResourceCollection:
        return self._resources

    @property
    def _name(self) -> str:
        return type(self).__name__

    def find_package(self, context: SearchContext, request: "RequestContext") -> Optional[PackageMetadata]:
        """Find the single best package for the context, or None."""
        request.debug(messages.DEBUG_CALL_METHOD3, self._name, "find_package", _package_id(context))
        search_result = self._resources.packages_feed.find(context, request)
        if search_result.result is None:
            return None
        return next(iter(search_result.result), None)

    def find_packages_by_id(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        request.debug(messages.DEBUG_CALL_METHOD3, self._name, "find_packages_by_id", _package_id(context))
        return self._resources.packages_feed.find(context, request)

    def search(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        request.debug(messages.DEBUG_CALL_METHOD, self._name, "search")
        return self._resources.query_feed.search(context, request)

    def download_package(self, package: PackageMetadata, destination: str, request: "RequestContext") -> bool:
        request.debug(messages.DEBUG_CALL_METHOD3, self._name, "download_package", package.id)
        return self._resources.files_feed.download_package(package, destination, request)

    def install_package(self, package: PackageMetadata, request: "RequestContext") -> bool:
        request.debug(messages.DEBUG_CALL_METHOD3, self._name, "install_package", package.id)
        return self._resources.files_feed.install_package(package, request)

    def __repr__(self) -> str:
        return f"{self._name}({self.source!r})"


def _package_id(context: SearchContext) -> str:
    return context.package_info.id if context.package_info is not None else ""


class NetworkPackageRepository(PackageRepository):
    """A repository backed by a remote feed."""

    def __init__(self, parameters: "RepositoryCreateParameters"):
        request = parameters.request
        original_location = parameters.location
        request.debug(messages.DEBUG_CALL_METHOD3, "NetworkPackageRepository", "__init__", original_location)

        if not parameters.validate_location():
            raise InvalidSourceError(messages.INVALID_QUERY_URL.format(original_location), original_location)

        self._source = parameters.location
        super().__init__(ResourceCollectionFactory.get_resources(self._source, request))

    @property
    def source(self) -> str:
        return self._source

    @property
    def is_file(self) -> bool:
        return False


class LocalPackageRepository(PackageRepository):
    """A repository backed by a directory of package archives."""

    def __init__(self, root: Path, request: "RequestContext"):
        request.debug(messages.DEBUG_CALL_METHOD3, "LocalPackageRepository", "__init__", str(root))
        root = Path(root)
        if not root.is_dir():
            raise InvalidSourceError(messages.SOURCE_NOT_FOUND.format(root), str(root))

        self._root = root.resolve()
        super().__init__(ResourceCollectionFactory.get_local_resources(self._root, request))

    @property
    def source(self) -> str:
        return str(self._root)

    @property
    def is_file(self) -> bool:
        return True
