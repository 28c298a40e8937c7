"""Resilient translation query against the upstream JSON-RPC endpoint.

One ``translate`` call runs the whole pipeline inside the retry executor:

    select proxy -> rate limit -> fingerprint -> build body
        -> sanitize headers -> POST -> classify -> retry or finish

Every attempt starts from scratch; no attempt reuses another attempt's
endpoint, fingerprint or body. Whatever happens, the caller gets a
TranslationResult back, never an exception.
"""

import asyncio
import random
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import httpx

from relay.app.core.config import settings
from relay.app.core.logging import get_log_context, get_logger
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
from relay.app.providers.fingerprint import generate_fingerprint, sanitize_headers
from relay.app.providers.jsonrpc import (
    DEFAULT_SOURCE_LANG,
    DEFAULT_TARGET_LANG,
    RequestBodyBuilder,
    TranslationRequest,
)
from relay.app.providers.languages import normalize_language_code
from relay.app.providers.proxy_selector import select_proxy
from relay.app.providers.retry import RetryPolicy, execute
from relay.app.services.rate_limit import TokenBucketRateLimiter

logger = get_logger(__name__)

UNKNOWN_CLIENT = "unknown"


@dataclass(frozen=True)
class RequestContext:
    """Per-call information about the caller.

    Attributes:
        client_ip: Caller IP; used as rate-limit identity and forwarded upstream
        egress_override: Endpoint to use instead of proxy selection
        extra_headers: Caller supplied headers merged over the fingerprint
        request_id: Correlation id for logs
    """
    client_ip: Optional[str] = None
    egress_override: Optional[str] = None
    extra_headers: Mapping[str, str] = field(default_factory=dict)
    request_id: Optional[str] = None


@dataclass(frozen=True)
class TranslationResult:
    """Terminal outcome of a translation call."""
    http_status: int
    translated_text: Optional[str]
    request_id: Optional[int] = None
    source_lang: str = DEFAULT_SOURCE_LANG
    target_lang: str = DEFAULT_TARGET_LANG.upper()
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.http_status == 200


class QueryOrchestrator:
    """Composes proxy selection, rate limiting, mimicry and retries.

    Usage:
        orchestrator = QueryOrchestrator(http_client, rate_limiter)
        result = await orchestrator.translate(
            TranslationRequest(text="Hi", target_lang="de"),
            RequestContext(client_ip="203.0.113.7"),
        )
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        rate_limiter: TokenBucketRateLimiter,
        body_builder: Optional[RequestBodyBuilder] = None,
        retry_policy: Optional[RetryPolicy] = None,
        proxy_urls: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the orchestrator.

        Args:
            http_client: Client used for upstream calls
            rate_limiter: Limiter checked for client and egress identities
            body_builder: JSON-RPC body builder (default from settings)
            retry_policy: Retry policy (default from settings)
            proxy_urls: Comma separated proxy URLs (default from settings)
            api_url: Direct endpoint used when no proxy is selected
            timeout: Bound on one upstream call in seconds
            rng: Random source for proxy selection and fingerprints
            sleep: Awaitable sleep used between retries
        """
        self.http_client = http_client
        self.rate_limiter = rate_limiter
        self.body_builder = body_builder or RequestBodyBuilder()
        self.retry_policy = retry_policy or RetryPolicy.from_settings()
        self.proxy_urls = settings.proxy_urls if proxy_urls is None else proxy_urls
        self.api_url = api_url or settings.api_url
        self.timeout = timeout or settings.request_timeout
        self._rng = rng or random.Random()
        self._sleep = sleep

    async def translate(
        self,
        request: TranslationRequest,
        context: Optional[RequestContext] = None,
    ) -> TranslationResult:
        """Translate one text, collapsing every failure into a result."""
        ctx = context or RequestContext()

        if not request.text:
            return self._error_result(
                request, ValidationError("Invalid request parameters: text is required")
            )

        attempts = 0

        async def attempt() -> TranslationResult:
            nonlocal attempts
            attempts += 1
            return await self._attempt(request, ctx, attempts)

        try:
            return await execute(
                attempt, self.retry_policy, sleep=self._sleep, rng=self._rng, name="translate"
            )
        except Exception as e:
            result = self._error_result(request, e)
            logger.warning(
                f"Translation failed after {attempts} attempt(s): {type(e).__name__}: {e}",
                extra=get_log_context(
                    request_id=ctx.request_id,
                    client_ip=ctx.client_ip,
                    status_code=result.http_status,
                ),
            )
            return result

    def _resolve_endpoint(self, ctx: RequestContext) -> str:
        if ctx.egress_override:
            return ctx.egress_override
        proxy = select_proxy(self.proxy_urls, self._rng)
        return proxy.url if proxy is not None else self.api_url

    def _build_headers(self, ctx: RequestContext) -> httpx.Headers:
        headers: Dict[str, str] = {"Content-Type": "application/json; charset=utf-8"}
        headers.update(generate_fingerprint(self._rng))
        headers.update(ctx.extra_headers or {})
        return sanitize_headers(headers, ctx.client_ip)

    async def _attempt(
        self, request: TranslationRequest, ctx: RequestContext, attempt: int
    ) -> TranslationResult:
        endpoint = self._resolve_endpoint(ctx)
        log_extra = get_log_context(
            request_id=ctx.request_id,
            client_ip=ctx.client_ip,
            endpoint=endpoint,
            attempt=attempt,
        )

        admission = await self.rate_limiter.admit_combined(
            ctx.client_ip or UNKNOWN_CLIENT, endpoint
        )
        if not admission.allowed:
            raise RateLimitError(admission.reason or "Rate limit exceeded")

        headers = self._build_headers(ctx)
        body = self.body_builder.build(request)

        started = time.perf_counter()
        response = await self._send(endpoint, body, headers)
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.debug(
            f"Upstream responded {response.status_code} in {duration_ms}ms",
            extra={**log_extra, "status_code": response.status_code, "duration_ms": duration_ms},
        )

        if not response.is_success:
            if response.status_code == 400 and settings.debug:
                logger.debug(f"400 error received. Request body was: {body}", extra=log_extra)
            raise UpstreamHTTPError(response.status_code, response.text)

        return self._parse_response(response, endpoint, request)

    async def _send(self, endpoint: str, body: str, headers: httpx.Headers) -> httpx.Response:
        try:
            return await asyncio.wait_for(
                self.http_client.post(
                    endpoint,
                    content=body.encode("utf-8"),
                    headers=headers,
                    timeout=self.timeout,
                ),
                timeout=self.timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            raise UpstreamTimeoutError(endpoint, self.timeout) from e
        except httpx.TransportError as e:
            raise TransportError(f"Network error contacting {endpoint}: {e}") from e

    def _parse_response(
        self, response: httpx.Response, endpoint: str, request: TranslationRequest
    ) -> TranslationResult:
        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamProtocolError(
                f"Failed to parse JSON response from {endpoint}: {e}"
            ) from e

        if not isinstance(data, dict):
            raise UpstreamProtocolError(f"Unexpected JSON document from {endpoint}")

        error = data.get("error")
        if error:
            if isinstance(error, dict):
                raise UpstreamApplicationError(error.get("code"), error.get("message"))
            raise UpstreamApplicationError(None, str(error))

        result = data.get("result")
        texts = result.get("texts") if isinstance(result, dict) else None
        if not texts or not isinstance(texts, list) or not isinstance(texts[0], dict):
            raise UpstreamProtocolError("Invalid response structure from upstream API")

        translated_text = texts[0].get("text")
        if not isinstance(translated_text, str):
            raise UpstreamProtocolError("Upstream response is missing the translated text")

        return TranslationResult(
            http_status=200,
            translated_text=translated_text,
            request_id=data.get("id"),
            source_lang=normalize_language_code(result.get("lang")),
            target_lang=normalize_language_code(request.target_lang or DEFAULT_TARGET_LANG),
        )

    def _error_result(self, request: TranslationRequest, error: Exception) -> TranslationResult:
        status = error.status_code if isinstance(error, RelayException) else 500
        return TranslationResult(
            http_status=status,
            translated_text=None,
            source_lang=normalize_language_code(request.source_lang or DEFAULT_SOURCE_LANG),
            target_lang=normalize_language_code(request.target_lang or DEFAULT_TARGET_LANG),
            message=str(error),
        )
