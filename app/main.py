"""
FastAPI Application Entry Point.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import router
from .config import Settings, settings
from .container import build_services
from .errors import StepValidationError, TravelAppError

_log_level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

logging.basicConfig(
    level=_log_level,
    format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

# Quiet noisy libraries
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


def create_app(config: Settings = settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    """Build the application; services are created when the lifespan starts."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.services = build_services(config, transport=transport)
        logger.info(f"Booking backend started (store: {config.database_path})")
        yield
        app.state.services.close()
        logger.info("Booking backend stopped")

    app = FastAPI(
        title="Let's Travel Together",
        description="Booking backend matching travelers with disabilities to local guides",
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TravelAppError)
    async def travel_app_error_handler(request: Request, exc: TravelAppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        body = {"success": False, "error": str(exc)}
        if isinstance(exc, StepValidationError):
            body["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=body)

    app.include_router(router)

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug
    )
