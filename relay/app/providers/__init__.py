"""Upstream-facing building blocks for the translation relay.

This package provides:
- Proxy selection (ProxyEndpoint, list_endpoints, select_proxy)
- Browser fingerprints and header sanitation (generate_fingerprint, sanitize_headers)
- Language normalization (normalize_language_code)
- JSON-RPC body construction (RequestBodyBuilder, TranslationRequest)
- Retry mechanism (RetryPolicy, execute, with_retry, is_retryable_error)
"""

from relay.app.providers.fingerprint import (
    REAL_CLIENT_IP_HEADER,
    generate_fingerprint,
    sanitize_headers,
)
from relay.app.providers.jsonrpc import RequestBodyBuilder, TranslationRequest
from relay.app.providers.languages import normalize_language_code
from relay.app.providers.proxy_selector import ProxyEndpoint, list_endpoints, select_proxy
from relay.app.providers.retry import RetryPolicy, execute, is_retryable_error, with_retry

__all__ = [
    # Proxy selection
    "ProxyEndpoint",
    "list_endpoints",
    "select_proxy",
    # Fingerprint
    "REAL_CLIENT_IP_HEADER",
    "generate_fingerprint",
    "sanitize_headers",
    # Request body
    "RequestBodyBuilder",
    "TranslationRequest",
    "normalize_language_code",
    # Retry
    "RetryPolicy",
    "execute",
    "is_retryable_error",
    "with_retry",
]
