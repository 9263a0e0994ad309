"""
Client-side filters applied to candidate packages.

Feeds differ in how much filtering they do natively. Whatever a feed reports
as still required (see SearchResult) is applied here by apply_post_filters().
"""
from __future__ import annotations

import fnmatch
from typing import Iterable, List, Optional, Sequence

from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.search import SearchContext, SearchResult, SearchTermType
from package_resolver.domain.versioning import SemanticVersion

_WILDCARD_CHARACTERS = set("*?[")


def contains_wildcard_characters(text: Optional[str]) -> bool:
    return bool(text) and any(c in _WILDCARD_CHARACTERS for c in text)


def wildcard_match(pattern: str, value: str) -> bool:
    """Case-insensitive wildcard match supporting *, ? and [...]."""
    return fnmatch.fnmatchcase((value or "").lower(), (pattern or "").lower())


def contains_ignore_case(value: Optional[str], text: str) -> bool:
    return text.lower() in (value or "").lower()


def _version_of(package: PackageMetadata) -> Optional[SemanticVersion]:
    return SemanticVersion.try_parse(package.version)


def filter_on_tags(packages: Iterable[PackageMetadata], tags: Sequence[str]) -> List[PackageMetadata]:
    """Keep packages carrying *all* of the given tags."""
    packages = list(packages)
    if not tags:
        return packages

    result = []
    for pkg in packages:
        package_tags = [t.lower() for t in pkg.tag_list]
        # A package without tags never matches a tag query.
        if package_tags and all(tag.lower() in package_tags for tag in tags):
            result.append(pkg)
    return result


def filter_on_contains(packages: Iterable[PackageMetadata], contains_pattern: Optional[str]) -> List[PackageMetadata]:
    packages = list(packages)
    if not contains_pattern or not contains_pattern.strip():
        return packages

    return [
        pkg for pkg in packages
        if contains_ignore_case(pkg.description, contains_pattern) or contains_ignore_case(pkg.id, contains_pattern)
    ]


def filter_on_version(
    packages: Iterable[PackageMetadata],
    required_version: Optional[SemanticVersion] = None,
    minimum_version: Optional[SemanticVersion] = None,
    maximum_version: Optional[SemanticVersion] = None,
    min_inclusive: bool = True,
    max_inclusive: bool = True,
) -> List[PackageMetadata]:
    """Filter by version; a required version overrides minimum/maximum."""
    result = []
    for pkg in packages:
        version = _version_of(pkg)
        if version is None:
            continue

        if required_version is not None:
            if version == required_version:
                result.append(pkg)
            continue

        if minimum_version is not None:
            if version < minimum_version or (not min_inclusive and version == minimum_version):
                continue
        if maximum_version is not None:
            if version > maximum_version or (not max_inclusive and version == maximum_version):
                continue
        result.append(pkg)
    return result


def filter_on_prerelease(packages: Iterable[PackageMetadata], allow_prerelease: bool) -> List[PackageMetadata]:
    packages = list(packages)
    if allow_prerelease:
        return packages
    return [pkg for pkg in packages if not pkg.is_prerelease]


def filter_on_name(packages: Iterable[PackageMetadata], search_term: str, use_wildcard: bool) -> List[PackageMetadata]:
    if use_wildcard:
        return [pkg for pkg in packages if wildcard_match(search_term, pkg.id)]
    return [pkg for pkg in packages if contains_ignore_case(pkg.id, search_term)]


def is_valid_by_name(package_entry: PackageEntryInfo, search_context: SearchContext) -> bool:
    """Check an entry id against the original (user supplied) name pattern, e.g. 'aws*'."""
    original_term = search_context.first_term(SearchTermType.ORIGINAL_PATTERN)
    if original_term is None or not original_term.text or not original_term.text.strip():
        return True

    if contains_wildcard_characters(original_term.text):
        return wildcard_match(original_term.text, package_entry.id)
    return contains_ignore_case(package_entry.id, original_term.text)


def select_versions(context: SearchContext, package_info: PackageEntryInfo) -> List[SemanticVersion]:
    """
    Pick the versions of an entry that satisfy the context's version policy.

    Without constraints and without all_versions only the latest version is
    returned (the absolute latest when prereleases are allowed). With
    constraints, either every allowed match (all_versions) or the highest one.
    A required version is returned even when it is a prerelease.
    """
    snapshot = package_info.snapshot()

    if not context.has_version_constraints and not context.all_versions:
        latest = snapshot.absolute_latest_version if context.allow_prerelease else snapshot.latest_version
        return [latest] if latest is not None else []

    selected: List[SemanticVersion] = []
    highest: Optional[SemanticVersion] = None
    for version in snapshot.all_versions:
        if context.required_version is not None:
            if version != context.required_version:
                continue
        else:
            if context.minimum_version is not None and version < context.minimum_version:
                continue
            if context.maximum_version is not None and version > context.maximum_version:
                continue

        allowed = (
            context.allow_prerelease
            or not version.is_prerelease
            or context.required_version is not None
        )
        if not allowed:
            continue

        if context.all_versions:
            selected.append(version)
        elif highest is None or highest < version:
            highest = version

    if highest is not None:
        selected.append(highest)
    return sorted(selected, reverse=True)


def apply_post_filters(search_result: SearchResult, context: SearchContext) -> Optional[List[PackageMetadata]]:
    """
    Apply every filter the feed reported as still required.

    A result without a container (``result is None``) stays None so callers
    can tell "the feed gave nothing" from "the feed found no matches".
    """
    if search_result.result is None:
        return None

    packages = list(search_result.result)

    if search_result.version_post_filter_required:
        packages = filter_on_version(
            packages,
            context.required_version,
            context.minimum_version,
            context.maximum_version,
        )
        if context.required_version is None:
            packages = filter_on_prerelease(packages, context.allow_prerelease)

    if search_result.name_post_filter_required:
        if context.package_info is not None:
            packages = [p for p in packages if p.id.lower() == context.package_info.id.lower()]

        for id_term in context.terms_of(SearchTermType.ID):
            packages = [p for p in packages if p.id.lower() == id_term.text.lower()]

        original_term = context.first_term(SearchTermType.ORIGINAL_PATTERN)
        if original_term is not None and original_term.text and original_term.text.strip():
            packages = filter_on_name(
                packages,
                original_term.text,
                contains_wildcard_characters(original_term.text),
            )

        packages = filter_on_tags(packages, [t.text for t in context.terms_of(SearchTermType.TAG)])

    if search_result.contains_post_filter_required:
        for contains_term in context.terms_of(SearchTermType.CONTAINS):
            packages = filter_on_contains(packages, contains_term.text)

    return packages
