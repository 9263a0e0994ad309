"""Shared pytest fixtures."""

import io
import zipfile
from pathlib import Path
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from package_resolver.core.dependencies import reset_dependencies
from package_resolver.core.request import RequestContext
from package_resolver.data.settings import DATA_ROOT_ENV_VAR
from package_resolver.domain.models import ProviderConfig

FEED_INDEX_URL = "https://feed.test/v3/index.json"
FLAT_CONTAINER_URL = "https://feed.test/v3/flat/"
SEARCH_URL = "https://feed.test/v3/query"
AUTOCOMPLETE_URL = "https://feed.test/v3/autocomplete"

FOO_VERSIONS = ["1.0.0", "2.0.0-beta", "1.5.0"]


def build_manifest(
    package_id: str,
    version: str,
    description: Optional[str] = None,
    tags: Optional[str] = None,
    dependencies: Optional[Dict[str, str]] = None,
) -> bytes:
    """Render a minimal .nuspec document."""
    parts = [
        '<?xml version="1.0" encoding="utf-8"?>',
        '<package xmlns="http://schemas.microsoft.com/packaging/2013/05/nuspec.xsd">',
        "  <metadata>",
        f"    <id>{package_id}</id>",
        f"    <version>{version}</version>",
        "    <authors>Test Author</authors>",
        f"    <description>{description or package_id + ' package'}</description>",
    ]
    if tags:
        parts.append(f"    <tags>{tags}</tags>")
    if dependencies:
        parts.append('    <dependencies><group targetFramework="net8.0">')
        for dep_id, dep_range in dependencies.items():
            parts.append(f'      <dependency id="{dep_id}" version="{dep_range}" />')
        parts.append("    </group></dependencies>")
    parts += ["  </metadata>", "</package>"]
    return "\n".join(parts).encode("utf-8")


def build_nupkg(package_id: str, version: str, **manifest_kwargs) -> bytes:
    """Build a package archive (zip with the manifest at its root) in memory."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        archive.writestr(f"{package_id}.nuspec", build_manifest(package_id, version, **manifest_kwargs))
        archive.writestr("lib/net8.0/readme.txt", f"{package_id} {version}")
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the data directory at a temporary location for every test."""
    directory = tmp_path / "data"
    monkeypatch.setenv(DATA_ROOT_ENV_VAR, str(directory))
    return directory


@pytest.fixture(autouse=True)
def clean_caches():
    """Start and finish every test without cached repositories or resources."""
    reset_dependencies()
    yield
    reset_dependencies()


@pytest.fixture
def write_package() -> Callable[..., Path]:
    """Return a function writing a .nupkg file into a directory."""

    def _write(directory: Path, package_id: str, version: str, **manifest_kwargs) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{package_id}.{version}.nupkg"
        path.write_bytes(build_nupkg(package_id, version, **manifest_kwargs))
        return path

    return _write


@pytest.fixture
def local_source(tmp_path: Path, write_package) -> Path:
    """A local source holding foo (three versions), bar and a nested baz."""
    root = tmp_path / "source"
    for version in FOO_VERSIONS:
        write_package(root, "foo", version, description="The foo library", tags="util text")
    write_package(root, "bar", "0.9.0", description="Bar tools for foo users", tags="util")
    write_package(root / "nested", "baz", "3.1.0", tags="network")
    return root


@pytest.fixture
def config() -> ProviderConfig:
    return ProviderConfig(retry_count=2)


@pytest.fixture
def feed_requests() -> List[httpx.Request]:
    """Every request the mock feed received."""
    return []


def _feed_handler(requests: List[httpx.Request]) -> Callable[[httpx.Request], httpx.Response]:
    service_index = {
        "version": "3.0.0",
        "resources": [
            {"@id": FLAT_CONTAINER_URL, "@type": "PackageBaseAddress/3.0.0"},
            {"@id": "https://feed.test/v3/old-query", "@type": "SearchQueryService/3.0.0-beta"},
            {"@id": SEARCH_URL, "@type": "SearchQueryService/3.5.0"},
            {"@id": AUTOCOMPLETE_URL, "@type": "SearchAutocompleteService"},
            {"@id": "https://feed.test/v3/registration/", "@type": "RegistrationsBaseUrl/3.6.0"},
        ],
    }
    search_data = {
        "totalHits": 2,
        "data": [
            {
                "id": "Foo",
                "version": "1.5.0",
                "description": "The foo library",
                "authors": ["Test Author"],
                "tags": ["util", "text"],
                "totalDownloads": 42,
                "versions": [{"version": v} for v in FOO_VERSIONS],
            },
            {
                "id": "FooBar",
                "version": "3.0.0-rc.1",
                "description": "Foo and bar together",
                "tags": ["util"],
                "versions": [{"version": "3.0.0-rc.1"}],
            },
        ],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        url = str(request.url).split("?")[0]

        if url == FEED_INDEX_URL:
            return httpx.Response(200, json=service_index)
        if url == "https://feed.test/v2/":
            return httpx.Response(200, text='<?xml version="1.0" encoding="utf-8"?><service />')
        if url == "https://feed.test/not-a-feed.json":
            return httpx.Response(200, json={"version": "2.0.0"})
        if url == "https://feed.test/moved/index.json":
            return httpx.Response(301, headers={"Location": FEED_INDEX_URL})
        if url == f"{FLAT_CONTAINER_URL}foo/index.json":
            return httpx.Response(200, json={"versions": FOO_VERSIONS})
        if url.startswith(FLAT_CONTAINER_URL + "foo/") and url.endswith(".nuspec"):
            version = url.split("/")[-2]
            return httpx.Response(200, content=build_manifest("Foo", version, description="The foo library"))
        if url.startswith(FLAT_CONTAINER_URL + "foo/") and url.endswith(".nupkg"):
            version = url.split("/")[-2]
            return httpx.Response(200, content=build_nupkg("Foo", version))
        if url == SEARCH_URL:
            return httpx.Response(200, json=search_data)
        if url == AUTOCOMPLETE_URL:
            return httpx.Response(200, json={"totalHits": 2, "data": ["Foo", "FooBar"]})
        return httpx.Response(404)

    return handler


@pytest.fixture
def feed_transport(feed_requests: List[httpx.Request]) -> httpx.MockTransport:
    return httpx.MockTransport(_feed_handler(feed_requests))


@pytest.fixture
def request_context(config: ProviderConfig, feed_transport: httpx.MockTransport):
    """A RequestContext whose HTTP client talks to the mock feed only."""
    with RequestContext(config=config, transport=feed_transport) as context:
        yield context


@pytest.fixture
def prerelease_context(config: ProviderConfig, feed_transport: httpx.MockTransport):
    with RequestContext(config=config, transport=feed_transport, allow_prerelease=True) as context:
        yield context
