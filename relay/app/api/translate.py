"""Translation API endpoint."""

from typing import Any, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from relay.app.middleware.request_id import get_request_id
from relay.app.providers.jsonrpc import (
    DEFAULT_SOURCE_LANG,
    DEFAULT_TARGET_LANG,
    TranslationRequest,
)
from relay.app.services.query import (
    UNKNOWN_CLIENT,
    QueryOrchestrator,
    RequestContext,
    TranslationResult,
)

router = APIRouter()


class TranslateBody(BaseModel):
    """Request model for /translate.

    ``text`` is deliberately untyped so that bad input is reported by the
    relay's own validation as a 400 instead of a framework 422.
    """
    text: Any = None
    source_lang: Optional[str] = DEFAULT_SOURCE_LANG
    target_lang: Optional[str] = DEFAULT_TARGET_LANG


def get_client_ip(request: Request) -> str:
    """Resolve the caller's IP.

    Prefers the edge's CF-Connecting-IP header, then the first
    X-Forwarded-For hop, then the socket peer.
    """
    ip = request.headers.get("CF-Connecting-IP")
    if ip:
        return ip.strip()

    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop

    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def get_query_orchestrator(request: Request) -> QueryOrchestrator:
    """Get the orchestrator created during application startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise RuntimeError("Query orchestrator not initialized. Ensure lifespan context is active.")
    return orchestrator


def result_to_response(result: TranslationResult) -> JSONResponse:
    """Render a TranslationResult as the public response envelope."""
    content = {
        "code": result.http_status,
        "id": result.request_id,
        "data": result.translated_text,
        "source_lang": result.source_lang,
        "target_lang": result.target_lang,
        "method": "Free",
    }
    if result.message:
        content["message"] = result.message
    return JSONResponse(status_code=result.http_status, content=content)


@router.post("/translate", response_model=None)
async def translate(
    body: TranslateBody,
    request: Request,
    orchestrator: QueryOrchestrator = Depends(get_query_orchestrator),
) -> JSONResponse:
    context = RequestContext(
        client_ip=get_client_ip(request),
        request_id=get_request_id(request),
    )
    result = await orchestrator.translate(
        TranslationRequest(
            text=body.text,
            source_lang=body.source_lang,
            target_lang=body.target_lang,
        ),
        context,
    )
    return result_to_response(result)
