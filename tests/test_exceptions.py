import pytest

from relay.app.exceptions import (
    RateLimitError,
    RelayException,
    TransportError,
    UpstreamApplicationError,
    UpstreamHTTPError,
    UpstreamProtocolError,
    UpstreamTimeoutError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error", "status", "retryable"),
    [
        (ValidationError("bad"), 400, False),
        (RateLimitError(), 429, False),
        (UpstreamTimeoutError("https://upstream/jsonrpc", 10), 408, True),
        (TransportError("reset"), 502, True),
        (UpstreamProtocolError("not json"), 500, False),
        (UpstreamHTTPError(503), 503, True),
        (UpstreamHTTPError(404), 404, False),
    ],
)
def test_status_and_retryability(error: RelayException, status: int, retryable: bool) -> None:
    assert error.status_code == status
    assert error.retryable is retryable


def test_timeout_message() -> None:
    error = UpstreamTimeoutError("https://upstream/jsonrpc", 10.0)

    assert str(error) == "Request timeout after 10 seconds to https://upstream/jsonrpc"


def test_http_error_message_includes_body() -> None:
    assert str(UpstreamHTTPError(500, "boom")) == "Request failed with status 500: boom"
    assert str(UpstreamHTTPError(502)) == "Request failed with status 502"


@pytest.mark.parametrize(
    ("code", "status"),
    [(1042912, 429), (1042513, 429), (1156049, 502), (1042003, 502)],
)
def test_known_application_codes(code: int, status: int) -> None:
    error = UpstreamApplicationError(code, "raw")

    assert error.status_code == status
    assert error.retryable is False
    assert "raw" not in error.message


def test_unknown_application_code() -> None:
    error = UpstreamApplicationError(None)

    assert error.status_code == 502
    assert error.message == "Upstream error: Unknown upstream error (Code: None)"
