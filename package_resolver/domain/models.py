"""
Pydantic models for the package resolver.

This module defines the data models used throughout the application, including:
- Provider configuration and configured package sources
- Package metadata as reported by a feed (the value handed to filters,
  download and install)

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from package_resolver.domain.versioning import SemanticVersion


# ---------------------------------------------------------------------------
# Provider Configuration Models
# ---------------------------------------------------------------------------


class ProviderConfig(BaseModel):
    """
    Top-level configuration for the package resolver.

    Controls how feeds are contacted (timeouts, retries, headers), how large
    a search page is, and where packages are installed.

    Persisted at: <DATA_DIR>/provider.json
    """

    user_agent: str = Field(
        default="package-resolver/0.1.0",
        description="User-Agent header sent with every feed request.",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        ge=1,
        description="Timeout (in seconds) applied to every HTTP request made against a feed.",
    )
    retry_count: int = Field(
        default=3,
        ge=1,
        description="How many times a package download is attempted before giving up.",
    )
    search_page_size: int = Field(
        default=200,
        ge=1,
        description="Number of results requested from a remote search service in one call.",
    )
    max_discovery_workers: int = Field(
        default=4,
        ge=1,
        description="Upper bound on the number of sources queried concurrently during discovery.",
    )
    install_root: Optional[str] = Field(
        default=None,
        description="Directory packages are installed into. Defaults to <DATA_DIR>/packages.",
    )
    headers: Dict[str, str] = Field(
        default_factory=dict,
        description="Additional HTTP headers sent to remote feeds (e.g. API keys).",
    )
    package_file_extension: str = Field(
        default=".nupkg",
        description="File extension of package archives in local sources.",
    )


class SourceConfig(BaseModel):
    """
    A single configured package source.

    The location is either a local directory (or file: URI) or the URL of a
    remote feed's service index.
    """

    name: str = Field(description="Friendly name of the source.")
    location: str = Field(description="Directory path, file: URI, or feed URL.")
    enabled: bool = Field(
        default=True,
        description="Disabled sources are ignored during discovery.",
    )
    trusted: bool = Field(
        default=False,
        description="Informational flag carried through to callers.",
    )


class SourcesConfig(BaseModel):
    """
    The list of configured sources.

    Persisted at: <DATA_DIR>/sources.yaml
    """

    sources: List[SourceConfig] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Package Metadata Models
# ---------------------------------------------------------------------------


class PackageDependency(BaseModel):
    """A dependency on another package id within a version range."""

    id: str
    version_range: Optional[str] = None


class PackageDependencySet(BaseModel):
    """Dependencies that apply to one target framework (or to all when unset)."""

    target_framework: Optional[str] = None
    dependencies: List[PackageDependency] = Field(default_factory=list)


class PackageMetadata(BaseModel):
    """
    A single package version as reported by a feed.

    Feeds produce these; the resolver only aggregates and filters them and
    hands them to the files feed for download or install.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(description="Package identifier.")
    version: str = Field(description="Version string as reported by the feed.")
    title: Optional[str] = None
    authors: Optional[str] = None
    owners: Optional[str] = None
    description: Optional[str] = None
    summary: Optional[str] = None
    tags: Optional[str] = Field(
        default=None,
        description="Space separated tags, as published on the feed.",
    )
    license_url: Optional[str] = None
    project_url: Optional[str] = None
    icon_url: Optional[str] = None
    dependency_sets: List[PackageDependencySet] = Field(default_factory=list)
    package_hash: Optional[str] = None
    package_hash_algorithm: Optional[str] = None
    is_listed: bool = True
    is_latest_version: bool = False
    is_absolute_latest_version: bool = False
    download_count: Optional[int] = None
    download_url: Optional[str] = Field(
        default=None,
        description="Where the package archive can be fetched from (remote feeds).",
    )
    package_path: Optional[str] = Field(
        default=None,
        description="Absolute path of the package archive (local feeds).",
    )
    source: Optional[str] = Field(
        default=None,
        description="Location of the repository the package was found in.",
    )

    @property
    def semantic_version(self) -> SemanticVersion:
        return SemanticVersion(self.version)

    @property
    def is_prerelease(self) -> bool:
        version = SemanticVersion.try_parse(self.version)
        return version.is_prerelease if version else False

    @property
    def tag_list(self) -> List[str]:
        return (self.tags or "").split()
