"""Browser fingerprinting and outbound header sanitation.

Every upstream attempt presents a freshly sampled, browser-like header set,
and no header that could reveal the relay or the forwarding chain leaves it.
"""

import random
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

USER_AGENTS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
)

ACCEPT_LANGUAGES = (
    "en-US,en;q=0.9",
    "en-GB,en;q=0.9",
    "en-US,en;q=0.8,es;q=0.6",
    "en-US,en;q=0.9,fr;q=0.8",
    "en-US,en;q=0.9,de;q=0.8",
)

# Edge platform internal header namespace
INTERNAL_HEADER_PREFIX = "cf-"

# Forwarding and trace headers that would expose the chain of hops
STRIPPED_HEADERS = frozenset((
    "x-forwarded-for",
    "x-forwarded-host",
    "x-forwarded-proto",
    "x-client-ip",
    "true-client-ip",
    "x-real-ip",
    "x-cluster-client-ip",
    "client-ip",
    "via",
    "forwarded",
    "cdn-loop",
))

REAL_CLIENT_IP_HEADER = "X-Real-Client-IP"


def generate_fingerprint(rng: Optional[random.Random] = None) -> Dict[str, str]:
    """Generate realistic browser headers.

    Args:
        rng: Random source, injectable for deterministic tests

    Returns:
        Header name to value mapping
    """
    rand = rng or random
    return {
        "User-Agent": rand.choice(USER_AGENTS),
        "Accept-Language": rand.choice(ACCEPT_LANGUAGES),
        "Accept": "application/json, text/plain, */*",
        "Accept-Encoding": "gzip, deflate, br",
        "DNT": "1",
        "Connection": "keep-alive",
        "Upgrade-Insecure-Requests": "1",
    }


def _header_items(headers: Any) -> List[Tuple[Any, Any]]:
    if isinstance(headers, httpx.Headers):
        return headers.multi_items()
    if isinstance(headers, Mapping):
        return list(headers.items())
    if isinstance(headers, (list, tuple)):
        return [item for item in headers if isinstance(item, (list, tuple)) and len(item) == 2]
    return []


def _is_stripped(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith(INTERNAL_HEADER_PREFIX) or lowered in STRIPPED_HEADERS


def sanitize_headers(headers: Any, real_client_ip: Any = None) -> httpx.Headers:
    """Prepare outbound headers.

    - Remove every header in the internal ``cf-`` namespace
    - Remove forwarding/trace headers
    - Set REAL_CLIENT_IP_HEADER to the caller's IP, replacing any prior value;
      without an IP a caller supplied value is passed through

    Never raises and never mutates ``headers``; anything that is not a
    name/value pair is dropped.

    Args:
        headers: httpx.Headers, a mapping, or a list of pairs
        real_client_ip: Caller IP to forward

    Returns:
        A new httpx.Headers instance
    """
    client_ip = str(real_client_ip) if real_client_ip else ""

    kept = []
    for name, value in _header_items(headers):
        if value is None:
            continue
        name, value = str(name), str(value)
        if not (name.isascii() and value.isascii()):
            continue
        if _is_stripped(name):
            continue
        if client_ip and name.lower() == REAL_CLIENT_IP_HEADER.lower():
            continue
        kept.append((name, value))

    cleaned = httpx.Headers(kept)
    if client_ip and client_ip.isascii():
        cleaned[REAL_CLIENT_IP_HEADER] = client_ip

    return cleaned
