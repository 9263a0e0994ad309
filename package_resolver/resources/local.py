"""
Package resources for a local directory of package archives.

The directory is crawled recursively for archives (``*.nupkg`` by default).
All filtering is done natively, so results from this source never require
client-side post-filtering.
"""
from __future__ import annotations

import logging
import shutil
import zipfile
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional
from xml.etree.ElementTree import ParseError

from pydantic import ValidationError

from package_resolver.core import messages
from package_resolver.data.settings import get_data_dir
from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.filtering import (
    contains_ignore_case,
    contains_wildcard_characters,
    select_versions,
    wildcard_match,
)
from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.search import SearchContext, SearchResult, SearchTermType
from package_resolver.domain.versioning import SemanticVersion
from package_resolver.resources.archive import extract_package, read_package_archive
from package_resolver.resources.base import FilesFeed, PackagesFeed, QueryFeed, ResourceCollection

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)


class LocalPackageFeed(PackagesFeed, QueryFeed, FilesFeed):
    """Implements package finding, searching and file access for a local directory."""

    def __init__(self, root: Path, package_file_extension: str = ".nupkg"):
        self.root = Path(root)
        self.package_file_extension = package_file_extension.lower()

    def is_available(self, request: "RequestContext") -> bool:
        return self.root.is_dir()

    # ------------------------------------------------------------------
    # Index
    # ------------------------------------------------------------------

    def _scan(self, request: "RequestContext") -> Optional[List[PackageMetadata]]:
        """
        Crawl the directory for package archives.

        Returns None when the directory itself does not exist.
        """
        if not self.root.is_dir():
            return None

        packages: List[PackageMetadata] = []
        for path in sorted(self.root.rglob(f"*{self.package_file_extension}")):
            if not path.is_file():
                continue
            try:
                package = read_package_archive(path)
            except (zipfile.BadZipFile, ParseError, ValidationError, ValueError, OSError) as e:
                request.warning(messages.UNREADABLE_PACKAGE, path, e)
                continue
            if SemanticVersion.try_parse(package.version) is None:
                request.warning(messages.UNREADABLE_PACKAGE, path, f"invalid version '{package.version}'")
                continue
            package.source = str(self.root)
            packages.append(package)
        return packages

    def _group_by_id(self, packages: List[PackageMetadata]) -> Dict[str, List[PackageMetadata]]:
        grouped: Dict[str, List[PackageMetadata]] = {}
        for package in packages:
            grouped.setdefault(package.id.lower(), []).append(package)
        return grouped

    def _select(
        self,
        context: SearchContext,
        package_info: PackageEntryInfo,
        candidates: List[PackageMetadata],
    ) -> List[PackageMetadata]:
        by_version = {}
        for package in candidates:
            version = package.semantic_version
            package_info.add_version(version)
            by_version.setdefault(version, package)

        return [by_version[v] for v in select_versions(context, package_info) if v in by_version]

    # ------------------------------------------------------------------
    # PackagesFeed
    # ------------------------------------------------------------------

    def find(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        if context.package_info is None:
            raise ValueError("A package id is required to find packages")

        request.debug(messages.DEBUG_CALL_METHOD3, "LocalPackageFeed", "find", context.package_info.id)
        packages = self._scan(request)
        if packages is None:
            return context.make_result()

        candidates = self._group_by_id(packages).get(context.package_info.id.lower(), [])
        result = self._select(context, context.package_info, candidates)
        return context.make_result(
            result,
            version_post_filter_required=False,
            name_post_filter_required=False,
            contains_post_filter_required=False,
        )

    # ------------------------------------------------------------------
    # QueryFeed
    # ------------------------------------------------------------------

    def _matches(self, package: PackageMetadata, context: SearchContext) -> bool:
        for term in context.terms_of(SearchTermType.SEARCH_TERM):
            text = term.text or ""
            if not text.strip():
                continue
            candidates = [package.id, package.title or "", package.description or "", *package.tag_list]
            if not any(contains_ignore_case(value, text.strip()) for value in candidates):
                return False

        for term in context.terms_of(SearchTermType.ORIGINAL_PATTERN):
            if not term.text or not term.text.strip():
                continue
            if contains_wildcard_characters(term.text):
                if not wildcard_match(term.text, package.id):
                    return False
            elif not contains_ignore_case(package.id, term.text):
                return False

        for term in context.terms_of(SearchTermType.ID):
            if package.id.lower() != (term.text or "").lower():
                return False

        tags = [t.lower() for t in package.tag_list]
        for term in context.terms_of(SearchTermType.TAG):
            if (term.text or "").lower() not in tags:
                return False

        for term in context.terms_of(SearchTermType.CONTAINS):
            if not (contains_ignore_case(package.description, term.text) or contains_ignore_case(package.id, term.text)):
                return False

        return True

    def search(self, context: SearchContext, request: "RequestContext") -> SearchResult:
        request.debug(messages.DEBUG_CALL_METHOD, "LocalPackageFeed", "search")
        packages = self._scan(request)
        if packages is None:
            return context.make_result()

        result: List[PackageMetadata] = []
        for package_id, candidates in self._group_by_id(packages).items():
            matching = [p for p in candidates if self._matches(p, context)]
            if not matching:
                continue
            entry = PackageEntryInfo(matching[0].id)
            result.extend(self._select(context, entry, matching))

        return context.make_result(
            result,
            version_post_filter_required=False,
            name_post_filter_required=False,
            contains_post_filter_required=False,
        )

    # ------------------------------------------------------------------
    # FilesFeed
    # ------------------------------------------------------------------

    def _archive_path(self, package: PackageMetadata) -> Optional[Path]:
        if package.package_path:
            path = Path(package.package_path)
            if path.is_file():
                return path
        return None

    def download_package(self, package: PackageMetadata, destination: str, request: "RequestContext") -> bool:
        try:
            request.debug(messages.DEBUG_CALL_METHOD3, "LocalPackageFeed", "download_package", destination)
            source_path = self._archive_path(package)
            if source_path is None:
                request.warning(messages.UNREADABLE_PACKAGE, package.package_path, "file not found")
                return False

            destination_path = Path(destination)
            if destination_path.is_dir():
                destination_path = destination_path / source_path.name
            destination_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source_path, destination_path)
            return True
        finally:
            request.debug(messages.DEBUG_RETURN_CALL, "LocalPackageFeed", "download_package")

    def install_package(self, package: PackageMetadata, request: "RequestContext") -> bool:
        try:
            request.debug(messages.DEBUG_CALL_METHOD3, "LocalPackageFeed", "install_package", package.id)
            source_path = self._archive_path(package)
            if source_path is None:
                request.warning(messages.UNREADABLE_PACKAGE, package.package_path, "file not found")
                return False

            install_root = Path(request.config.install_root or get_data_dir() / "packages")
            install_root.mkdir(parents=True, exist_ok=True)
            extract_package(source_path, install_root, package)
            return True
        finally:
            request.debug(messages.DEBUG_RETURN_CALL, "LocalPackageFeed", "install_package")

    def get_version_info(self, package_info: PackageEntryInfo, request: "RequestContext") -> PackageEntryInfo:
        packages = self._scan(request) or []
        for package in self._group_by_id(packages).get(package_info.id.lower(), []):
            package_info.add_version(package.semantic_version)
        return package_info


def make_local_collection(root: Path, package_file_extension: str = ".nupkg") -> ResourceCollection:
    """All resources of a local directory are served by the same feed."""
    feed = LocalPackageFeed(root, package_file_extension)
    return ResourceCollection(packages_feed=feed, query_feed=feed, files_feed=feed)
