"""
The session object threaded through every repository and feed call.

A RequestContext carries:
* the provider configuration,
* a diagnostic log sink (debug/verbose/warning),
* a cancellation flag,
* a lazily created, shared httpx client for remote feeds.
"""
from __future__ import annotations

import logging
import threading
from typing import Optional

import httpx

from package_resolver.domain.models import ProviderConfig

logger = logging.getLogger(__name__)


class RequestContext:
    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        allow_prerelease: bool = False,
        http_client: Optional[httpx.Client] = None,
        transport: Optional[httpx.BaseTransport] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.config = config or ProviderConfig()
        self.allow_prerelease = allow_prerelease
        self._log = log or logger
        self._transport = transport
        self._http_client = http_client
        self._owns_client = http_client is None
        self._client_lock = threading.Lock()
        self._canceled = threading.Event()

    # ------------------------------------------------------------------
    # Log sink
    # ------------------------------------------------------------------

    def debug(self, message: str, *args) -> None:
        self._log.debug(message, *args)

    def verbose(self, message: str, *args) -> None:
        self._log.info(message, *args)

    def warning(self, message: str, *args) -> None:
        self._log.warning(message, *args)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    @property
    def is_canceled(self) -> bool:
        return self._canceled.is_set()

    def cancel(self) -> None:
        self._canceled.set()

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def get_http_client(self) -> httpx.Client:
        if self._http_client is None:
            with self._client_lock:
                if self._http_client is None:
                    headers = {"User-Agent": self.config.user_agent}
                    headers.update(self.config.headers)
                    self._http_client = httpx.Client(
                        headers=headers,
                        timeout=self.config.request_timeout_seconds,
                        follow_redirects=True,
                        transport=self._transport,
                    )
        return self._http_client

    def close(self) -> None:
        with self._client_lock:
            if self._http_client is not None and self._owns_client:
                self._http_client.close()
                self._http_client = None

    def __enter__(self) -> "RequestContext":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
