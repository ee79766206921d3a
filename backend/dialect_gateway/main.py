"""
Dialect Gateway Application Entry Point

FastAPI application main entry, including router registration and application configuration.
"""

import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from dialect_gateway.api.proxy import anthropic_router, openai_router, responses_router
from dialect_gateway.common.errors import AppError
from dialect_gateway.config import get_settings
from dialect_gateway.logging_config import setup_logging

logger = logging.getLogger(__name__)

# Initialize logging configuration
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifecycle Management
    """
    settings = get_settings()
    logger.info(
        "Smart routing enabled: %s, fallback on error: %s",
        settings.SMART_ROUTING_ENABLED,
        settings.SMART_ROUTING_FALLBACK_ON_ERROR,
    )
    yield


settings = get_settings()

app = FastAPI(
    title=settings.APP_NAME,
    description="Dialect-translating gateway for Messages, Chat Completions and Responses APIs",
    version="0.1.0",
    lifespan=lifespan,
)


# Global Exception Handler
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """
    Handle application custom exceptions

    In production mode, error details are hidden to prevent information leakage.
    """
    settings = get_settings()
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(include_details=settings.DEBUG),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """
    Handle uncaught exceptions

    Stack traces are logged but only returned to clients in debug mode.
    """
    settings = get_settings()
    logger.error(
        "Uncaught exception: %s\nPath: %s\nTraceback:\n%s",
        str(exc),
        request.url.path,
        traceback.format_exc(),
    )

    if settings.DEBUG:
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": str(exc),
                    "type": type(exc).__name__,
                    "code": "internal_error",
                    "traceback": traceback.format_exc().split("\n"),
                }
            },
        )

    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "message": "Internal server error",
                "type": "internal_error",
                "code": "internal_error",
            }
        },
    )


# Health Check Endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health Check

    Used for service liveness probe.
    """
    return {"status": "healthy"}


# Register Proxy Routers
app.include_router(openai_router)
app.include_router(anthropic_router)
app.include_router(responses_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "dialect_gateway.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )
