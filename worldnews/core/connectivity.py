"""Pre-flight network reachability check."""

from __future__ import annotations

import logging
import socket
from typing import Callable

from worldnews.core.settings import Settings

logger = logging.getLogger(__name__)


def probe_host(host: str, port: int = 443, timeout: float = 2.0) -> bool:
    """Return True if a TCP connection to ``host:port`` can be opened."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError as e:
        logger.warning(f"Network unreachable ({host}:{port}): {e}")
        return False


def connectivity_check(settings: Settings) -> Callable[[], bool]:
    """Build the reachability callable used before each fetch."""

    def _check() -> bool:
        return probe_host(
            settings.connectivity_host,
            settings.connectivity_port,
            settings.connectivity_timeout,
        )

    return _check
