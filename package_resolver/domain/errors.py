"""Exceptions raised while creating repositories and discovering feed endpoints."""
from __future__ import annotations

from typing import Optional


class InvalidSourceError(ValueError):
    """A package source location could not be validated."""

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message)
        self.location = location


class EndpointDiscoveryError(Exception):
    """The resources behind a feed location could not be discovered."""

    def __init__(self, message: str, location: Optional[str] = None):
        super().__init__(message)
        self.location = location
