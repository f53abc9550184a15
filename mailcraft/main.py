import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from sqlalchemy import text
from sqlalchemy.exc import ProgrammingError

from mailcraft.config import settings
from mailcraft.db.base import engine, init_db
from mailcraft.llm.client import LLMAuthenticationError, LLMClientConfigError, LLMRateLimitError
from mailcraft.routers import (
    account,
    billing,
    campaigns,
    context,
    session,
    stripe_webhooks,
    workspaces,
)
from mailcraft.services.context_ai import AIResponseError
from mailcraft.services.extraction import ExtractionError
from mailcraft.services.usage import LIMIT_GUIDANCE, UsageLimitExceededError

logger = logging.getLogger(__name__)


def _is_schema_mismatch_programming_error(exc: ProgrammingError) -> bool:
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "42703":
        return True
    message = str(orig or exc).lower()
    return any(
        marker in message
        for marker in (
            "undefined column",
            "does not exist",
            "no such column",
        )
    )


@asynccontextmanager
async def _app_lifespan(_app: FastAPI) -> AsyncIterator[None]:
    if settings.DB_CREATE_ALL:
        init_db()
    yield


def create_app() -> FastAPI:
    app = FastAPI(
        title="Mailcraft API",
        default_response_class=ORJSONResponse,
        lifespan=_app_lifespan,
    )

    allow_origins = sorted(set(settings.BACKEND_CORS_ORIGINS))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(UsageLimitExceededError)
    async def usage_limit_handler(_request: Request, exc: UsageLimitExceededError) -> ORJSONResponse:
        return ORJSONResponse(status_code=429, content={"detail": exc.message, "used": exc.used, "cap": exc.cap})

    @app.exception_handler(LLMRateLimitError)
    async def rate_limit_handler(_request: Request, exc: LLMRateLimitError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=429,
            content={"detail": f"The AI provider is rate limiting requests. {LIMIT_GUIDANCE}"},
        )

    @app.exception_handler(LLMAuthenticationError)
    async def llm_auth_handler(_request: Request, exc: LLMAuthenticationError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(LLMClientConfigError)
    async def llm_config_handler(_request: Request, exc: LLMClientConfigError) -> ORJSONResponse:
        logger.error("LLM client misconfigured", extra={"error": str(exc)})
        return ORJSONResponse(status_code=503, content={"detail": "AI generation is not configured."})

    @app.exception_handler(AIResponseError)
    async def ai_response_handler(_request: Request, exc: AIResponseError) -> ORJSONResponse:
        return ORJSONResponse(status_code=502, content={"detail": exc.message})

    @app.exception_handler(ExtractionError)
    async def extraction_error_handler(_request: Request, exc: ExtractionError) -> ORJSONResponse:
        return ORJSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(ValueError)
    async def value_error_handler(_request: Request, exc: ValueError) -> ORJSONResponse:
        return ORJSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ProgrammingError)
    async def programming_error_handler(_request: Request, exc: ProgrammingError) -> ORJSONResponse:
        logger.exception("Database programming error", exc_info=exc)
        if _is_schema_mismatch_programming_error(exc):
            return ORJSONResponse(
                status_code=503,
                content={
                    "detail": "Database schema is out of date. Run `alembic upgrade head` and redeploy."
                },
            )
        return ORJSONResponse(status_code=500, content={"detail": "Database query failed."})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(_request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("Unhandled server exception", exc_info=exc)
        return ORJSONResponse(status_code=500, content={"detail": "Internal server error."})

    @app.get("/health")
    async def health() -> dict[str, bool]:
        return {"ok": True}

    @app.get("/health/db")
    def health_db() -> dict[str, str]:
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            return {"db": "ok"}
        except Exception as exc:  # pragma: no cover - simple runtime check
            return {"db": f"error: {exc}"}

    app.include_router(context.router)
    app.include_router(campaigns.router)
    app.include_router(workspaces.router)
    app.include_router(session.router)
    app.include_router(account.router)
    app.include_router(billing.router)
    app.include_router(stripe_webhooks.router)

    return app


app = create_app()
