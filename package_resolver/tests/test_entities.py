"""Tests for PackageEntryInfo version aggregation."""

import threading
from concurrent.futures import ThreadPoolExecutor

from package_resolver.domain.entities import PackageEntryInfo
from package_resolver.domain.versioning import SemanticVersion


def v(text: str) -> SemanticVersion:
    return SemanticVersion(text)


class TestAddVersion:
    """Tests for the single mutator of an entry."""

    def test_new_entry_is_empty(self) -> None:
        """Test the initial state of an entry."""
        entry = PackageEntryInfo("foo")

        assert entry.id == "foo"
        assert entry.all_versions == ()
        assert entry.latest_version is None
        assert entry.absolute_latest_version is None

    def test_add_is_fluent(self) -> None:
        """Test that add_version returns the entry itself."""
        entry = PackageEntryInfo("foo")

        assert entry.add_version(v("1.0.0")) is entry

    def test_add_is_idempotent(self) -> None:
        """Test that adding the same version twice keeps one copy."""
        entry = PackageEntryInfo("foo")
        entry.add_version(v("1.0.0")).add_version(v("1.0.0")).add_version(v("1.0"))

        assert entry.all_versions == (v("1.0.0"),)

    def test_prerelease_label_case_is_ignored(self) -> None:
        entry = PackageEntryInfo("foo")
        entry.add_version(v("1.0.0-Beta")).add_version(v("1.0.0-beta"))

        assert len(entry.all_versions) == 1
        assert entry.has_version(v("1.0.0-BETA"))

    def test_insertion_order_kept(self) -> None:
        """Test that versions are listed in the order they arrived."""
        entry = PackageEntryInfo("foo")
        for text in ["2.0.0", "1.0.0", "3.0.0"]:
            entry.add_version(v(text))

        assert [str(x) for x in entry.all_versions] == ["2.0.0", "1.0.0", "3.0.0"]

    def test_foo_scenario(self) -> None:
        """Test latest tracking with a mix of release and prerelease versions."""
        entry = PackageEntryInfo("foo")
        entry.add_version(v("1.0.0"))
        entry.add_version(v("2.0.0-beta"))
        entry.add_version(v("1.5.0"))

        assert entry.absolute_latest_version == v("2.0.0-beta")
        assert entry.latest_version == v("1.5.0")
        assert len(entry.all_versions) == 3

    def test_only_prereleases(self) -> None:
        """Test that prereleases never become the latest stable version."""
        entry = PackageEntryInfo("foo")
        entry.add_version(v("1.0.0-alpha")).add_version(v("1.0.0-beta"))

        assert entry.latest_version is None
        assert entry.absolute_latest_version == v("1.0.0-beta")

    def test_latest_is_monotonic(self) -> None:
        """Test that a lower version never replaces a higher latest."""
        entry = PackageEntryInfo("foo")
        entry.add_version(v("3.0.0"))
        entry.add_version(v("1.0.0"))

        assert entry.latest_version == v("3.0.0")
        assert entry.absolute_latest_version == v("3.0.0")

    def test_all_versions_is_a_copy(self) -> None:
        """Test that callers cannot mutate the entry through all_versions."""
        entry = PackageEntryInfo("foo").add_version(v("1.0.0"))
        versions = entry.all_versions
        entry.add_version(v("2.0.0"))

        assert versions == (v("1.0.0"),)
        assert entry.has_version(v("2.0.0"))


class TestConcurrentAdd:
    """Tests for add_version under concurrent callers."""

    def test_parallel_adds_keep_every_version_once(self) -> None:
        """Test that many threads adding overlapping versions lose nothing."""
        entry = PackageEntryInfo("foo")
        texts = [f"1.{minor}.{patch}" for minor in range(10) for patch in range(10)]
        texts += [f"2.0.{patch}-beta" for patch in range(10)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            # Every version is submitted four times.
            list(executor.map(lambda t: entry.add_version(v(t)), texts * 4))

        snapshot = entry.snapshot()
        assert len(snapshot.all_versions) == len(texts)
        assert len({str(x) for x in snapshot.all_versions}) == len(texts)
        assert snapshot.latest_version == v("1.9.9")
        assert snapshot.absolute_latest_version == v("2.0.9-beta")

    def test_same_version_raced_from_many_threads(self) -> None:
        """Test that a barrier-synchronised burst of identical adds yields one entry."""
        entry = PackageEntryInfo("foo")
        barrier = threading.Barrier(16)

        def add() -> None:
            barrier.wait()
            entry.add_version(v("1.0.0"))

        threads = [threading.Thread(target=add) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert entry.all_versions == (v("1.0.0"),)
