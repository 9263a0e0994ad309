"""
Creates the resource collection behind a package source location.
"""
from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

import httpx

from package_resolver.core import messages
from package_resolver.domain.errors import EndpointDiscoveryError
from package_resolver.resources.base import ResourceCollection
from package_resolver.resources.local import make_local_collection
from package_resolver.resources.remote import RemoteResourceCollection

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)

XML_START_CONTENT = "<?xml"


class ResourceCollectionFactory:
    """
    Resolves (and caches for the session) the resources of a feed URL.

    Discovery is done at most once per base URL, even when several threads
    create repositories for the same source at the same time.
    """

    _cache: Dict[str, ResourceCollection] = {}
    _cache_locks: Dict[str, threading.Lock] = {}
    _locks_lock = threading.Lock()

    @classmethod
    def get_resources(cls, base_url: Optional[str], request: "RequestContext") -> ResourceCollection:
        """
        Get all resources discovered from a base URL, e.g.
        ``https://api.nuget.org/v3/index.json``.

        Raises EndpointDiscoveryError when the location does not describe a feed.
        """
        if not base_url:
            return make_local_collection(Path.cwd(), request.config.package_file_extension)

        if base_url not in cls._cache_locks:
            with cls._locks_lock:
                if base_url not in cls._cache_locks:
                    cls._cache_locks[base_url] = threading.Lock()

        with cls._cache_locks[base_url]:
            if base_url not in cls._cache:
                cls._cache[base_url] = cls._discover(base_url, request)

        return cls._cache[base_url]

    @classmethod
    def get_local_resources(cls, root: Path, request: "RequestContext") -> ResourceCollection:
        return make_local_collection(root, request.config.package_file_extension)

    @classmethod
    def clear_cache(cls) -> None:
        with cls._locks_lock:
            cls._cache.clear()
            cls._cache_locks.clear()

    @staticmethod
    def _discover(base_url: str, request: "RequestContext") -> ResourceCollection:
        message = messages.ENDPOINT_DISCOVERY_FAILED.format(base_url)
        try:
            response = request.get_http_client().get(base_url)
        except httpx.HTTPError as e:
            raise EndpointDiscoveryError(message, base_url) from e

        if not response.is_success:
            raise EndpointDiscoveryError(message, base_url)

        content = response.text.lstrip()
        if content.startswith(XML_START_CONTENT):
            # v2 (OData) feeds are not supported.
            logger.warning(f"{base_url} looks like a v2 feed, which is not supported")
            raise EndpointDiscoveryError(message, base_url)

        try:
            root = json.loads(content)
        except json.JSONDecodeError as e:
            raise EndpointDiscoveryError(message, base_url) from e

        version = root.get("version") if isinstance(root, dict) else None
        if not isinstance(version, str) or not version.startswith("3."):
            # Couldn't figure out what this is
            raise EndpointDiscoveryError(message, base_url)

        return RemoteResourceCollection.make(root, base_url, request)
