from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Optional
from urllib.parse import urlparse

from package_resolver.core.cache import ConcurrentInMemoryCache
from package_resolver.repository.location import file_uri_to_path
from package_resolver.repository.package_repository import (
    LocalPackageRepository,
    NetworkPackageRepository,
    PackageRepository,
)

if TYPE_CHECKING:
    from package_resolver.repository.create_parameters import RepositoryCreateParameters

logger = logging.getLogger(__name__)


def _local_path(location: str) -> Optional[Path]:
    """The directory a location refers to, if it is a local one."""
    if urlparse(location).scheme.lower() == "file":
        return file_uri_to_path(location)
    try:
        path = Path(location).expanduser()
        if path.is_dir():
            return path
    except (OSError, ValueError):
        return None
    return None


class PackageRepositoryFactory:
    """Creates (and caches) the repository for a source location."""

    _default: Optional["PackageRepositoryFactory"] = None
    _default_lock = threading.Lock()

    def __init__(self, cache: Optional[ConcurrentInMemoryCache] = None):
        self._cache = cache or ConcurrentInMemoryCache.instance()

    @classmethod
    def default(cls) -> "PackageRepositoryFactory":
        if cls._default is None:
            with cls._default_lock:
                if cls._default is None:
                    cls._default = cls()
        return cls._default

    def create_repository(self, parameters: "RepositoryCreateParameters") -> PackageRepository:
        if parameters is None:
            raise ValueError("parameters must not be None")
        if parameters.location is None:
            raise ValueError("parameters.location must not be None")
        if parameters.request is None:
            raise ValueError("parameters.request must not be None")

        location = parameters.location
        local_path = _local_path(location)
        if local_path is not None:
            logger.debug(f"Using local repository for {location}")
            return self._cache.get_or_add(
                location, lambda: LocalPackageRepository(local_path, parameters.request)
            )

        return self._cache.get_or_add(location, lambda: NetworkPackageRepository(parameters))
