"""Custom exceptions for the relay.

Every failure the translation pipeline can produce is one of the classes
below. Each carries the HTTP status it collapses to and whether the retry
executor may try the call again.
"""

from typing import Optional


class RelayException(Exception):
    """Base class for relay exceptions with HTTP status code.

    All custom exceptions should inherit from this class and define
    their specific status_code for consistent HTTP response handling.
    """
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str = "Relay error"):
        self.message = message
        super().__init__(message)


class ValidationError(RelayException):
    """Raised when the translation request itself is invalid.

    Maps to HTTP 400 Bad Request.
    """
    status_code = 400


class RateLimitError(RelayException):
    """Raised when the client or egress bucket has no tokens left.

    Not retried within the same call; the caller has to come back later.
    Maps to HTTP 429 Too Many Requests.
    """
    status_code = 429

    def __init__(self, reason: str = "Rate limit exceeded"):
        self.reason = reason
        super().__init__(reason)


class UpstreamTimeoutError(RelayException):
    """Raised when the upstream call does not finish within the timeout.

    Maps to HTTP 408 Request Timeout.
    """
    status_code = 408
    retryable = True

    def __init__(self, endpoint: str, timeout: float):
        self.endpoint = endpoint
        self.timeout = timeout
        super().__init__(f"Request timeout after {timeout:g} seconds to {endpoint}")


class TransportError(RelayException):
    """Raised on network-level failures (DNS, refused connection, reset).

    Maps to HTTP 502 Bad Gateway.
    """
    status_code = 502
    retryable = True


class UpstreamHTTPError(RelayException):
    """Raised when the upstream answers with a non-2xx status.

    Only 429 and 5xx are worth another attempt.
    """

    def __init__(self, status_code: int, body: str = ""):
        self.status_code = status_code
        self.body = body
        message = f"Request failed with status {status_code}"
        if body:
            message += f": {body}"
        super().__init__(message)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code == 429 or self.status_code >= 500


class UpstreamProtocolError(RelayException):
    """Raised when the upstream response is not valid JSON or lacks results.

    Maps to HTTP 500.
    """
    status_code = 500


class UpstreamApplicationError(RelayException):
    """Raised when the upstream returns a structured JSON-RPC error.

    The original upstream code and message are kept for classification.
    """

    # code -> (HTTP status, human readable message)
    KNOWN_CODES = {
        1156049: (
            502,
            "Invalid request format detected. This may be caused by: "
            "1) Incorrect JSON-RPC structure, 2) Invalid request ID format, "
            "3) Malformed timestamp, or 4) Unsupported language codes.",
        ),
        1042912: (429, "Too many requests. Please try again later."),
        1042513: (429, "Request quota exceeded. Please try again later."),
        1042003: (502, "Invalid authentication. Please check your API configuration."),
    }

    def __init__(self, code: Optional[int], original_message: Optional[str] = None):
        self.code = code
        self.original_message = original_message or "Unknown upstream error"
        known = self.KNOWN_CODES.get(code) if isinstance(code, int) else None
        if known is not None:
            self.status_code, message = known
        else:
            self.status_code = 502
            message = f"Upstream error: {self.original_message} (Code: {code})"
        super().__init__(message)
