"""Tests for local directory sources and package archives."""

import io
import zipfile
from pathlib import Path

import pytest

from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.models import PackageMetadata
from package_resolver.domain.search import SearchContext, SearchTerm, SearchTermType
from package_resolver.domain.versioning import SemanticVersion
from package_resolver.resources.archive import extract_package, parse_manifest, read_package_archive
from package_resolver.resources.local import LocalPackageFeed
from package_resolver.tests.conftest import build_manifest


def find(feed: LocalPackageFeed, request, package_id: str, **context_kwargs):
    context = SearchContext(package_info=PackageEntryInfo(package_id), **context_kwargs)
    return context, feed.find(context, request)


# =============================================================================
# Archives
# =============================================================================


class TestArchive:
    """Tests for reading and extracting package archives."""

    def test_parse_manifest(self) -> None:
        """Test mapping of manifest metadata and dependency groups."""
        package = parse_manifest(
            build_manifest("Foo", "1.2.0", description="Foo things", tags="a b", dependencies={"Bar": "[1.0,)"})
        )

        assert package.id == "Foo"
        assert package.version == "1.2.0"
        assert package.description == "Foo things"
        assert package.tag_list == ["a", "b"]
        assert package.dependency_sets[0].target_framework == "net8.0"
        assert package.dependency_sets[0].dependencies[0].id == "Bar"
        assert package.dependency_sets[0].dependencies[0].version_range == "[1.0,)"

    def test_manifest_without_version(self) -> None:
        content = b"<package><metadata><id>Foo</id></metadata></package>"

        with pytest.raises(ValueError):
            parse_manifest(content)

    def test_manifest_with_entity_declarations(self) -> None:
        """Test that manifests declaring entities are refused before parsing."""
        content = (
            b'<?xml version="1.0"?>'
            b'<!DOCTYPE package [<!ENTITY a "aaaaaaaaaa"><!ENTITY b "&a;&a;&a;&a;&a;">]>'
            b"<package><metadata><id>&b;</id><version>1.0.0</version></metadata></package>"
        )

        with pytest.raises(ValueError, match="DOCTYPE"):
            parse_manifest(content)

    def test_read_archive(self, tmp_path: Path, write_package) -> None:
        path = write_package(tmp_path, "foo", "1.0.0")

        package = read_package_archive(path)

        assert package.id == "foo"
        assert package.package_path == str(path.resolve())

    def test_extract_rejects_unsafe_paths(self, tmp_path: Path) -> None:
        """Test that archive entries escaping the install directory are refused."""
        archive_path = tmp_path / "evil.nupkg"
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("evil.nuspec", build_manifest("evil", "1.0.0"))
            archive.writestr("../../escaped.txt", "nope")
        archive_path.write_bytes(buffer.getvalue())

        with pytest.raises(ValueError, match="Unsafe path"):
            extract_package(archive_path, tmp_path / "installed", PackageMetadata(id="evil", version="1.0.0"))

        assert not (tmp_path / "escaped.txt").exists()


# =============================================================================
# Find
# =============================================================================


class TestLocalFind:
    """Tests for LocalPackageFeed.find."""

    def test_latest_stable(self, local_source: Path, request_context) -> None:
        """Test that the latest stable version is found and every version is recorded."""
        context, result = find(LocalPackageFeed(local_source), request_context, "FOO")

        assert [p.version for p in result.result] == ["1.5.0"]
        assert not result.version_post_filter_required
        assert not result.name_post_filter_required
        assert context.package_info.latest_version == SemanticVersion("1.5.0")
        assert context.package_info.absolute_latest_version == SemanticVersion("2.0.0-beta")
        assert len(context.package_info.all_versions) == 3

    def test_prerelease_allowed(self, local_source: Path, request_context) -> None:
        _, result = find(LocalPackageFeed(local_source), request_context, "foo", allow_prerelease=True)

        assert [p.version for p in result.result] == ["2.0.0-beta"]

    def test_all_versions(self, local_source: Path, request_context) -> None:
        _, result = find(
            LocalPackageFeed(local_source), request_context, "foo", all_versions=True, allow_prerelease=True
        )

        assert [p.version for p in result.result] == ["2.0.0-beta", "1.5.0", "1.0.0"]

    def test_required_version(self, local_source: Path, request_context) -> None:
        _, result = find(
            LocalPackageFeed(local_source), request_context, "foo", required_version=SemanticVersion("1.0.0")
        )

        assert [p.version for p in result.result] == ["1.0.0"]

    def test_nested_directories_are_scanned(self, local_source: Path, request_context) -> None:
        _, result = find(LocalPackageFeed(local_source), request_context, "baz")

        assert [p.version for p in result.result] == ["3.1.0"]

    def test_unknown_id_is_empty(self, local_source: Path, request_context) -> None:
        """Test that a missing id is an empty result, not None."""
        _, result = find(LocalPackageFeed(local_source), request_context, "nothing")

        assert result.result == []

    def test_missing_directory_is_none(self, tmp_path: Path, request_context) -> None:
        """Test that a missing source directory gives no result container."""
        _, result = find(LocalPackageFeed(tmp_path / "missing"), request_context, "foo")

        assert result.result is None

    def test_unreadable_archive_is_skipped(
        self, local_source: Path, request_context, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test that a broken archive is logged and the rest still served."""
        (local_source / "broken.1.0.0.nupkg").write_bytes(b"not a zip file")

        _, result = find(LocalPackageFeed(local_source), request_context, "foo")

        assert [p.version for p in result.result] == ["1.5.0"]
        assert "Unable to read package file" in caplog.text

    def test_package_info_required(self, local_source: Path, request_context) -> None:
        with pytest.raises(ValueError):
            LocalPackageFeed(local_source).find(SearchContext(), request_context)


# =============================================================================
# Search
# =============================================================================


class TestLocalSearch:
    """Tests for LocalPackageFeed.search."""

    def ids(self, feed: LocalPackageFeed, request, *terms: SearchTerm):
        result = feed.search(SearchContext(search_terms=list(terms)), request)
        return sorted(p.id for p in result.result)

    def test_free_text(self, local_source: Path, request_context) -> None:
        """Test free text matching id, description and tags."""
        feed = LocalPackageFeed(local_source)

        assert self.ids(feed, request_context, SearchTerm(SearchTermType.SEARCH_TERM, "foo")) == ["bar", "foo"]

    def test_tags(self, local_source: Path, request_context) -> None:
        feed = LocalPackageFeed(local_source)

        assert self.ids(feed, request_context, SearchTerm(SearchTermType.TAG, "util")) == ["bar", "foo"]
        assert self.ids(
            feed,
            request_context,
            SearchTerm(SearchTermType.TAG, "util"),
            SearchTerm(SearchTermType.TAG, "text"),
        ) == ["foo"]

    def test_pattern(self, local_source: Path, request_context) -> None:
        feed = LocalPackageFeed(local_source)

        assert self.ids(feed, request_context, SearchTerm(SearchTermType.ORIGINAL_PATTERN, "ba*")) == ["bar", "baz"]

    def test_flags(self, local_source: Path, request_context) -> None:
        """Test that a local search needs no client-side filtering."""
        result = LocalPackageFeed(local_source).search(SearchContext(), request_context)

        assert not result.version_post_filter_required
        assert not result.name_post_filter_required
        assert not result.contains_post_filter_required
        assert sorted(p.id for p in result.result) == ["bar", "baz", "foo"]


# =============================================================================
# Files
# =============================================================================


class TestLocalFiles:
    """Tests for download, install and version info."""

    def test_download_into_directory(self, local_source: Path, tmp_path: Path, request_context) -> None:
        feed = LocalPackageFeed(local_source)
        _, result = find(feed, request_context, "foo")
        package = result.result[0]
        destination = tmp_path / "downloads"
        destination.mkdir()

        assert feed.download_package(package, str(destination), request_context)
        assert (destination / "foo.1.5.0.nupkg").is_file()

    def test_download_missing_archive(self, local_source: Path, tmp_path: Path, request_context) -> None:
        package = PackageMetadata(id="foo", version="1.0.0", package_path=str(tmp_path / "gone.nupkg"))

        assert not LocalPackageFeed(local_source).download_package(package, str(tmp_path / "x"), request_context)

    def test_install_extracts(self, local_source: Path, tmp_path: Path, request_context) -> None:
        """Test that install unpacks into <install_root>/<id>.<version>."""
        request_context.config.install_root = str(tmp_path / "installed")
        feed = LocalPackageFeed(local_source)
        _, result = find(feed, request_context, "foo")

        assert feed.install_package(result.result[0], request_context)

        target = tmp_path / "installed" / "foo.1.5.0"
        assert (target / "foo.nuspec").is_file()
        assert (target / "lib" / "net8.0" / "readme.txt").read_text() == "foo 1.5.0"
        assert (target / "foo.1.5.0.nupkg").is_file()

    def test_install_defaults_to_data_dir(self, local_source: Path, data_dir: Path, request_context) -> None:
        feed = LocalPackageFeed(local_source)
        _, result = find(feed, request_context, "bar")

        assert feed.install_package(result.result[0], request_context)
        assert (data_dir / "packages" / "bar.0.9.0" / "bar.nuspec").is_file()

    def test_version_info(self, local_source: Path, request_context) -> None:
        entry = LocalPackageFeed(local_source).get_version_info(PackageEntryInfo("Foo"), request_context)

        assert sorted(str(x) for x in entry.all_versions) == ["1.0.0", "1.5.0", "2.0.0-beta"]

    def test_availability(self, local_source: Path, tmp_path: Path, request_context) -> None:
        assert LocalPackageFeed(local_source).is_available(request_context)
        assert not LocalPackageFeed(tmp_path / "missing").is_available(request_context)
