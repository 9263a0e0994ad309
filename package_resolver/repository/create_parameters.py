from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Optional
from urllib.parse import urlparse

from package_resolver.repository.location import validate_uri

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)

LocationValidator = Callable[[str, "RequestContext"], Optional[str]]


def is_absolute_uri(location: Optional[str]) -> bool:
    if not location or not location.strip():
        return False
    try:
        parsed = urlparse(location.strip())
    except ValueError:
        return False
    if not parsed.scheme or len(parsed.scheme) < 2:
        # A single letter scheme is a drive letter (C:\...), not a URI.
        return False
    if parsed.scheme.lower() == "file":
        return bool(parsed.path)
    return bool(parsed.netloc)


class RepositoryCreateParameters:
    """
    Everything needed to build a repository for one source location.

    validate_location() runs at most once; concurrent callers wait for the
    first one and share its answer.
    """

    def __init__(
        self,
        location: Optional[str],
        request: Optional["RequestContext"],
        location_valid: Optional[bool] = None,
        validator: LocationValidator = validate_uri,
    ):
        self.location = location
        self.request = request
        self.location_valid = location_valid
        self._validator = validator
        self._lock = threading.Lock()

    def validate_location(self) -> bool:
        if self.location_valid is None:
            with self._lock:
                if self.location_valid is None:
                    self.location_valid = self._validate()
        return self.location_valid

    def _validate(self) -> bool:
        if not is_absolute_uri(self.location):
            logger.debug(f"'{self.location}' is not an absolute URI")
            return False

        validated = self._validator(self.location.strip(), self.request)
        if validated is None:
            return False

        self.location = validated
        return True

    def __repr__(self) -> str:
        return f"RepositoryCreateParameters(location={self.location!r}, location_valid={self.location_valid!r})"
