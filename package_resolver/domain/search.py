"""
Query descriptors shared by every repository and feed.

A SearchContext describes what the caller is looking for. Feeds answer with a
SearchResult whose post-filter flags tell the caller which filters the feed
did NOT apply natively and therefore still have to be applied client side.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Iterable, List, Optional

from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.versioning import SemanticVersion

if TYPE_CHECKING:
    from package_resolver.domain.entities import PackageEntryInfo


class SearchTermType(Enum):
    TAG = "Tag"
    SEARCH_TERM = "SearchTerm"
    ID = "Id"
    PACKAGE_TYPE = "PackageType"
    AUTO_COMPLETE = "AutoComplete"
    ORIGINAL_PATTERN = "OriginalPattern"
    CONTAINS = "Contains"


@dataclass(frozen=True)
class SearchTerm:
    """A single unit of query intent."""

    term: SearchTermType
    text: str

    def __str__(self) -> str:
        return f"{self.term.value}@{self.text}"


@dataclass
class SearchResult:
    """Result of a find or search request."""

    result: Optional[Iterable[PackageMetadata]] = None
    version_post_filter_required: bool = True
    name_post_filter_required: bool = True
    contains_post_filter_required: bool = True


@dataclass
class SearchContext:
    """Contains all required search information."""

    package_info: Optional["PackageEntryInfo"] = None
    search_terms: List[SearchTerm] = field(default_factory=list)
    required_version: Optional[SemanticVersion] = None
    minimum_version: Optional[SemanticVersion] = None
    maximum_version: Optional[SemanticVersion] = None
    allow_prerelease: bool = False
    all_versions: bool = False
    # Skip "deep" (but required) metadata. Safe for search, not for find.
    enable_deep_metadata_bypass: bool = False

    @property
    def has_version_constraints(self) -> bool:
        return (
            self.required_version is not None
            or self.minimum_version is not None
            or self.maximum_version is not None
        )

    def terms_of(self, term_type: SearchTermType) -> List[SearchTerm]:
        return [t for t in self.search_terms or [] if t.term == term_type]

    def first_term(self, term_type: SearchTermType) -> Optional[SearchTerm]:
        terms = self.terms_of(term_type)
        return terms[0] if terms else None

    def make_result(
        self,
        result: Optional[Iterable[PackageMetadata]] = None,
        version_post_filter_required: bool = True,
        name_post_filter_required: bool = True,
        contains_post_filter_required: bool = True,
    ) -> SearchResult:
        """
        Wrap the packages a feed produced together with its filter obligations.

        Called without arguments this yields an empty result (``result is None``)
        that still requires every filter.
        """
        return SearchResult(
            result=result,
            version_post_filter_required=version_post_filter_required,
            name_post_filter_required=name_post_filter_required,
            contains_post_filter_required=contains_post_filter_required,
        )
