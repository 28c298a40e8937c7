"""Egress endpoint selection.

Proxies are configured as one comma separated string. Selection is uniform,
random and stateless: no stickiness and no health or load tracking.
"""

import random
from dataclasses import dataclass
from typing import List, Optional

from relay.app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ProxyEndpoint:
    """An outbound address that forwards JSON-RPC calls upstream."""

    url: str


def list_endpoints(config: Optional[str]) -> List[ProxyEndpoint]:
    """Parse the configured proxy string into endpoints.

    Args:
        config: Comma separated proxy URLs; empty or None means no proxies

    Returns:
        Endpoints in configuration order
    """
    if not config:
        return []
    return [ProxyEndpoint(url=part.strip()) for part in config.split(",") if part.strip()]


def select_proxy(
    config: Optional[str], rng: Optional[random.Random] = None
) -> Optional[ProxyEndpoint]:
    """Pick one configured endpoint uniformly at random.

    Args:
        config: Comma separated proxy URLs
        rng: Random source, injectable for deterministic tests

    Returns:
        The selected endpoint, or None if none are configured or the
        configuration cannot be parsed
    """
    try:
        endpoints = list_endpoints(config)
    except Exception as e:
        logger.error(f"Failed to select proxy: {type(e).__name__}: {e}")
        return None

    if not endpoints:
        return None
    return (rng or random).choice(endpoints)
