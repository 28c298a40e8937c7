from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from relay.app.api.translate import result_to_response, router as translate_router
from relay.app.core.config import settings
from relay.app.core.http_client import init_http_client
from relay.app.core.kv_store import get_kv_store
from relay.app.core.logging import get_logger, setup_logging
from relay.app.middleware.request_id import RequestIdMiddleware
from relay.app.services.query import QueryOrchestrator, TranslationResult
from relay.app.services.rate_limit import create_rate_limiter


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance
    """
    setup_logging()
    logger = get_logger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan context manager.

        Creates the shared HTTP client, the rate limiter and the orchestrator
        on startup; flushes pending rate-limit writes and closes the store on
        shutdown.
        """
        store = get_kv_store()
        async with init_http_client() as http_client:
            rate_limiter = create_rate_limiter(store)
            app.state.rate_limiter = rate_limiter
            app.state.orchestrator = QueryOrchestrator(http_client, rate_limiter)

            logger.info(
                "Application startup complete",
                extra={
                    "store": type(store).__name__,
                    "proxies_configured": bool(settings.proxy_urls),
                    "debug_mode": settings.debug,
                },
            )

            yield

            await rate_limiter.drain()

        await store.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title="Translation Relay",
        description="Browser-mimicking relay for a JSON-RPC translation endpoint",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(RequestIdMiddleware)
    app.include_router(translate_router)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Report unparseable bodies in the translate envelope instead of a 422."""
        logger.debug(f"Rejected request body: {exc.errors()}")
        return result_to_response(
            TranslationResult(
                http_status=400,
                translated_text=None,
                message="Invalid request parameters",
            )
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled exceptions.

        Never returns a traceback; debug mode adds the exception message.
        """
        request_id = getattr(request.state, "request_id", "unknown")
        logger.exception(
            f"Unhandled exception [request_id={request_id}]",
            extra={"request_id": request_id, "exception_type": type(exc).__name__},
        )
        content = {"code": 500, "data": None, "message": "Internal server error"}
        if settings.debug:
            content["message"] = str(exc)
        return JSONResponse(status_code=500, content=content)

    return app


# Create the application instance
app = create_app()
