"""
Scheme specific validation of package source locations.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from urllib.parse import unquote, urljoin, urlparse
from urllib.request import url2pathname

import httpx

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)


def file_uri_to_path(uri: str) -> Path:
    parsed = urlparse(uri)
    path = url2pathname(unquote(parsed.path))
    if parsed.netloc and parsed.netloc != "localhost":
        # UNC share
        path = f"//{parsed.netloc}{path}"
    return Path(path)


def validate_uri(uri: str, request: "RequestContext") -> Optional[str]:
    """
    Validate an absolute URI and return its usable form, or None.

    ``file:`` URIs must point at an existing directory. ``http(s)`` URIs are
    probed once: a success response yields the final URL, a redirect yields
    its target.
    """
    scheme = urlparse(uri).scheme.lower()

    if scheme == "file":
        path = file_uri_to_path(uri)
        if path.is_dir():
            return path.resolve().as_uri()
        logger.debug(f"{path} is not a directory")
        return None

    if scheme not in ("http", "https"):
        logger.debug(f"Unsupported scheme for source location {uri}")
        return None

    client = request.get_http_client()
    try:
        response = client.get(uri, follow_redirects=False)
    except httpx.HTTPError as e:
        logger.warning(f"Unable to reach {uri}: {e}")
        return None

    if response.is_success:
        return str(response.url)
    if response.is_redirect and response.headers.get("location"):
        return urljoin(uri, response.headers["location"])

    logger.debug(f"{uri} responded with {response.status_code}")
    return None
