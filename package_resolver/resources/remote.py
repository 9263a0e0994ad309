"""
Package resources for remote v3 JSON feeds.

A v3 feed publishes a service index listing its services by ``@type``:
- ``PackageBaseAddress``: flat container with version lists, manifests and archives
- ``SearchQueryService``: free-text search
- ``SearchAutocompleteService``: package id completion

Only what this resolver needs from each service is implemented here.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, TypeVar
from xml.etree.ElementTree import ParseError

import httpx
from pydantic import ValidationError

from package_resolver.core import messages
from package_resolver.data.settings import get_data_dir
from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.filtering import contains_wildcard_characters, is_valid_by_name, select_versions
from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.search import SearchContext, SearchResult, SearchTerm, SearchTermType
from package_resolver.domain.versioning import SemanticVersion
from package_resolver.resources.archive import extract_package, parse_manifest
from package_resolver.resources.base import (
    AutoCompleteFeed,
    FilesFeed,
    PackagesFeed,
    QueryFeed,
    ResourceCollection,
)
from package_resolver.services.downloader import backoff_seconds, download_file

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)

T = TypeVar("T")

SEM_VER_LEVEL = "2.0.0"


class ServiceType(Enum):
    QUERY = "SearchQueryService"
    PACKAGE_BASE_ADDRESS = "PackageBaseAddress"
    AUTO_COMPLETE = "SearchAutocompleteService"


@dataclass
class ServiceEndpoint:
    """One entry of a service index."""

    url: str
    type: ServiceType
    preference: SemanticVersion

    @classmethod
    def from_resource(cls, resource: Dict[str, Any]) -> Optional["ServiceEndpoint"]:
        url = resource.get("@id")
        types = resource.get("@type") or []
        if isinstance(types, str):
            types = [types]
        if not url:
            return None

        for raw_type in types:
            family, _, version = str(raw_type).partition("/")
            for service_type in ServiceType:
                if family == service_type.value:
                    preference = SemanticVersion.try_parse(version) or SemanticVersion("0.0.0")
                    return cls(url=url, type=service_type, preference=preference)
        return None


def _ensure_trailing_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def _join(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value) if value else None
    return str(value)


class RemoteFeedBase:
    """Base for any web feed: tries every endpoint, retrying each one."""

    def __init__(self, endpoint: ServiceEndpoint):
        self.endpoints: List[ServiceEndpoint] = [endpoint]

    def execute(self, request: "RequestContext", execute_with_base_url: Callable[[str], T]) -> T:
        errors: List[Exception] = []
        for endpoint in self.endpoints:
            for attempt in range(1, request.config.retry_count + 1):
                if request.is_canceled:
                    raise RuntimeError("The request was canceled")
                try:
                    return execute_with_base_url(endpoint.url)
                except httpx.HTTPError as e:
                    errors.append(e)
                    logger.debug(f"Request against {endpoint.url} failed (attempt {attempt}): {e}")
                    if attempt < request.config.retry_count:
                        time.sleep(backoff_seconds(attempt))

        # Every endpoint failed; surface the last error.
        raise errors[-1]

    def is_available(self, request: "RequestContext") -> bool:
        client = request.get_http_client()
        for endpoint in self.endpoints:
            try:
                client.get(endpoint.url)
                return True
            except httpx.HTTPError as e:
                request.debug(f"Endpoint {endpoint.url} is not available: {e}")
        return False


class RemotePackagesFeed(RemoteFeedBase, PackagesFeed):
    """Find packages by id through the flat container."""

    def find(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        if context.package_info is None:
            raise ValueError("A package id is required to find packages")

        request.debug(messages.DEBUG_CALL_METHOD3, "RemotePackagesFeed", "find", context.package_info.id)
        if contains_wildcard_characters(context.package_info.id):
            # Ids with wildcards can never be found through the flat container.
            return context.make_result([])

        result = self.execute(request, lambda base_url: self._find_at(base_url, context, request))
        request.debug(messages.DEBUG_RETURN_CALL, "RemotePackagesFeed", "find")
        return result

    def _find_at(self, base_url: str, context: SearchContext, request: "RequestContext") -> SearchResult:
        base_url = _ensure_trailing_slash(base_url)
        package_info = context.package_info
        id_lower = package_info.id.lower()

        response = request.get_http_client().get(f"{base_url}{id_lower}/index.json")
        if response.status_code == 404:
            return context.make_result()
        response.raise_for_status()

        for raw_version in response.json().get("versions", []):
            version = SemanticVersion.try_parse(raw_version)
            if version is not None:
                package_info.add_version(version)

        packages = [
            self._make_package(base_url, package_info.id, version, context, request)
            for version in select_versions(context, package_info)
        ]
        return context.make_result(packages, version_post_filter_required=False)

    def _make_package(
        self,
        base_url: str,
        package_id: str,
        version: SemanticVersion,
        context: SearchContext,
        request: "RequestContext",
    ) -> PackageMetadata:
        id_lower = package_id.lower()
        version_lower = str(version).lower()
        package = None

        if not context.enable_deep_metadata_bypass:
            response = request.get_http_client().get(f"{base_url}{id_lower}/{version_lower}/{id_lower}.nuspec")
            if response.is_success:
                try:
                    package = parse_manifest(response.content)
                except (ParseError, ValidationError, ValueError) as e:
                    request.warning(messages.UNREADABLE_PACKAGE, str(response.url), e)

        if package is None:
            package = PackageMetadata(id=package_id, version=str(version))

        package.download_url = make_download_uri(base_url, package.id, package.version)
        package.source = base_url
        return package


class RemoteQueryFeed(RemoteFeedBase, QueryFeed):
    """Search through the search query service."""

    def __init__(self, endpoint: ServiceEndpoint, query_builder: Callable[[Iterable[SearchTerm]], str]):
        super().__init__(endpoint)
        self.query_builder = query_builder

    def search(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        request.debug(messages.DEBUG_CALL_METHOD, "RemoteQueryFeed", "search")
        query = self.query_builder(context.search_terms)
        request.debug(messages.DEBUG_CALL_METHOD3, "RemoteQueryFeed", "search", query)

        params = {
            "q": query,
            "skip": 0,
            "take": request.config.search_page_size,
            "semVerLevel": SEM_VER_LEVEL,
        }
        if context.allow_prerelease:
            params["prerelease"] = "true"

        def _search(base_url: str) -> SearchResult:
            response = request.get_http_client().get(base_url, params=params)
            response.raise_for_status()
            packages = []
            for item in response.json().get("data", []):
                packages.extend(self._make_packages(item, context))
            return context.make_result(
                packages,
                version_post_filter_required=True,
                name_post_filter_required=False,
                contains_post_filter_required=False,
            )

        return self.execute(request, _search)

    def _make_packages(self, item: Dict[str, Any], context: SearchContext) -> List[PackageMetadata]:
        package_id = item.get("id")
        if not package_id or not self._matches_name(package_id, context):
            return []

        common = dict(
            id=package_id,
            title=item.get("title"),
            authors=_join(item.get("authors")),
            owners=_join(item.get("owners")),
            description=item.get("description"),
            summary=item.get("summary"),
            tags=" ".join(item.get("tags") or []) or None,
            license_url=item.get("licenseUrl"),
            project_url=item.get("projectUrl"),
            icon_url=item.get("iconUrl"),
            download_count=item.get("totalDownloads"),
        )

        listed = [v.get("version") for v in item.get("versions") or [] if v.get("version")]
        if context.all_versions and listed:
            versions = listed
        elif context.has_version_constraints and listed:
            # The top-level version is only the latest; constraints pick from the full list.
            versions = self._best_listed_version(package_id, listed, context)
        else:
            versions = [item.get("version")] if item.get("version") else []

        packages = []
        for version in versions:
            if SemanticVersion.try_parse(version) is None:
                logger.debug(f"Skipping {package_id} {version}: invalid version")
                continue
            packages.append(PackageMetadata(version=version, **common))
        return packages

    @staticmethod
    def _matches_name(package_id: str, context: SearchContext) -> bool:
        """Name checks the search service does not do for us."""
        if context.package_info is not None and package_id.lower() != context.package_info.id.lower():
            return False
        for id_term in context.terms_of(SearchTermType.ID):
            if package_id.lower() != (id_term.text or "").lower():
                return False
        return is_valid_by_name(PackageEntryInfo(package_id), context)

    @staticmethod
    def _best_listed_version(package_id: str, listed: List[str], context: SearchContext) -> List[str]:
        package_info = PackageEntryInfo(package_id)
        by_version: Dict[SemanticVersion, str] = {}
        for text in listed:
            version = SemanticVersion.try_parse(text)
            if version is None:
                continue
            package_info.add_version(version)
            by_version.setdefault(version, text)

        return [by_version[v] for v in select_versions(context, package_info) if v in by_version]


class RemoteAutoCompleteFeed(RemoteFeedBase, AutoCompleteFeed):
    """Complete package ids from a prefix."""

    def autocomplete(self, context: SearchContext, request: "RequestContext") -> List[str]:
        term = context.first_term(SearchTermType.AUTO_COMPLETE)
        params = {
            "q": term.text if term else "",
            "take": request.config.search_page_size,
            "semVerLevel": SEM_VER_LEVEL,
        }
        if context.allow_prerelease:
            params["prerelease"] = "true"

        def _autocomplete(base_url: str) -> List[str]:
            response = request.get_http_client().get(base_url, params=params)
            response.raise_for_status()
            return [str(package_id) for package_id in response.json().get("data", [])]

        return self.execute(request, _autocomplete)


def make_download_uri(base_url: str, package_id: str, version: str) -> str:
    id_lower = package_id.lower()
    version_lower = version.lower()
    return f"{_ensure_trailing_slash(base_url)}{id_lower}/{version_lower}/{id_lower}.{version_lower}.nupkg"


class RemoteFilesFeed(RemoteFeedBase, FilesFeed):
    """Download and install package archives from the flat container."""

    def _download_uri(self, package: PackageMetadata) -> str:
        return package.download_url or make_download_uri(self.endpoints[0].url, package.id, package.version)

    def download_package(self, package: PackageMetadata, destination: str, request: "RequestContext") -> bool:
        try:
            request.debug(messages.DEBUG_CALL_METHOD3, "RemoteFilesFeed", "download_package", destination)
            destination_path = Path(destination)
            if destination_path.is_dir():
                destination_path = destination_path / f"{package.id}.{package.version}.nupkg"
            try:
                download_file(self._download_uri(package), destination_path, request)
            except httpx.HTTPError as e:
                request.warning(f"Failed to download {package.id} {package.version}: {e}")
                return False
            return True
        finally:
            request.debug(messages.DEBUG_RETURN_CALL, "RemoteFilesFeed", "download_package")

    def install_package(self, package: PackageMetadata, request: "RequestContext") -> bool:
        try:
            request.debug(messages.DEBUG_CALL_METHOD3, "RemoteFilesFeed", "install_package", package.id)
            install_root = Path(request.config.install_root or get_data_dir() / "packages")
            archive_path = install_root / ".downloads" / f"{package.id}.{package.version}.nupkg"
            try:
                download_file(self._download_uri(package), archive_path, request)
            except httpx.HTTPError as e:
                request.warning(f"Failed to download {package.id} {package.version}: {e}")
                return False
            try:
                extract_package(archive_path, install_root, package)
            finally:
                archive_path.unlink(missing_ok=True)
            return True
        finally:
            request.debug(messages.DEBUG_RETURN_CALL, "RemoteFilesFeed", "install_package")

    def get_version_info(self, package_info: PackageEntryInfo, request: "RequestContext") -> PackageEntryInfo:
        def _versions(base_url: str) -> PackageEntryInfo:
            base_url = _ensure_trailing_slash(base_url)
            response = request.get_http_client().get(f"{base_url}{package_info.id.lower()}/index.json")
            if response.status_code == 404:
                return package_info
            response.raise_for_status()
            for raw_version in response.json().get("versions", []):
                version = SemanticVersion.try_parse(raw_version)
                if version is not None:
                    package_info.add_version(version)
            return package_info

        return self.execute(request, _versions)


def build_search_query(terms: Iterable[SearchTerm]) -> str:
    """Render terms the way v3 search services expect (``text tag:x description:y``)."""
    parts = []
    for term in terms or []:
        if term.term == SearchTermType.SEARCH_TERM:
            parts.append(term.text)
        elif term.term == SearchTermType.TAG:
            parts.append(f"tag:{term.text}")
        elif term.term == SearchTermType.CONTAINS:
            parts.append(f"description:{term.text}")
    return " ".join(p for p in parts if p).strip()


class RemoteResourceCollection(ResourceCollection):
    """Collection of v3 resources discovered from a service index."""

    def get_search_query(self, terms: Iterable[SearchTerm]) -> str:
        return build_search_query(terms)

    @classmethod
    def make(cls, root: Dict[str, Any], base_url: str, request: "RequestContext") -> "RemoteResourceCollection":
        request.debug(messages.DEBUG_CALL_METHOD3, "RemoteResourceCollection", "make", base_url)
        # Highest advertised version wins; equal versions become fallback endpoints.
        chosen: Dict[ServiceType, List[ServiceEndpoint]] = {}
        for resource in root.get("resources", []):
            if not isinstance(resource, dict):
                continue
            endpoint = ServiceEndpoint.from_resource(resource)
            if endpoint is None:
                continue

            current = chosen.get(endpoint.type)
            if not current or current[0].preference < endpoint.preference:
                chosen[endpoint.type] = [endpoint]
            elif current[0].preference == endpoint.preference:
                current.append(endpoint)
            else:
                continue
            request.debug(messages.ENDPOINT_DISCOVERED, endpoint.type.value, endpoint.url)

        collection = cls()
        collection.query_feed = cls._make_feed(chosen, ServiceType.QUERY, lambda e: RemoteQueryFeed(e, build_search_query))
        collection.auto_complete_feed = cls._make_feed(chosen, ServiceType.AUTO_COMPLETE, RemoteAutoCompleteFeed)
        collection.packages_feed = cls._make_feed(chosen, ServiceType.PACKAGE_BASE_ADDRESS, RemotePackagesFeed)
        collection.files_feed = cls._make_feed(chosen, ServiceType.PACKAGE_BASE_ADDRESS, RemoteFilesFeed)
        return collection

    @staticmethod
    def _make_feed(chosen: Dict[ServiceType, List[ServiceEndpoint]], service_type: ServiceType, constructor):
        endpoints = chosen.get(service_type)
        if not endpoints:
            return None
        feed = constructor(endpoints[0])
        feed.endpoints.extend(endpoints[1:])
        return feed
