"""
Download package archives from remote feeds.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

import httpx

from package_resolver.core import messages

if TYPE_CHECKING:
    from package_resolver.core.request import RequestContext

logger = logging.getLogger(__name__)


def backoff_seconds(attempt: int) -> float:
    """1s before the second attempt, doubling afterwards."""
    return float(2 ** (attempt - 1))


def download_file(url: str, destination: Path, request: "RequestContext", sleep=time.sleep) -> Path:
    """
    Stream ``url`` into ``destination``.

    The body is written to a temp file first so a partial download never
    replaces an existing file. Transport errors and non-2xx responses are
    retried up to config.retry_count times; the last error is raised.
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = destination.with_name(f"{destination.name}.tmp")
    retry_count = request.config.retry_count
    client = request.get_http_client()

    for attempt in range(1, retry_count + 1):
        if request.is_canceled:
            raise RuntimeError(f"Download of {url} was canceled")
        try:
            if tmp_path.exists():
                tmp_path.unlink()

            with client.stream("GET", url) as response:
                response.raise_for_status()

                total_size = int(response.headers.get("content-length", 0))
                downloaded = 0

                with open(tmp_path, "wb") as f:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
                        downloaded += len(chunk)
                        if total_size > 0:
                            percent = (downloaded / total_size) * 100
                            logger.debug(f"Progress: {percent:.1f}%")
            break
        except httpx.HTTPError as e:
            # Clean up temp file and retry
            tmp_path.unlink(missing_ok=True)
            if attempt < retry_count:
                logger.warning(f"Download failed (attempt {attempt}/{retry_count}): {e}. Retrying...")
                request.verbose(messages.RETRYING_DOWNLOAD, url, attempt + 1)
                sleep(backoff_seconds(attempt))
            else:
                raise

    # Move temp file into place
    tmp_path.replace(destination)
    logger.info(f"Downloaded {url} to {destination}")
    return destination
