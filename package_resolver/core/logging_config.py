from __future__ import annotations

import logging


def configure_logging(level: int | str = logging.INFO) -> None:
    """Configure root logging the same way for library use and tests."""
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)
