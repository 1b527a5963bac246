"""FastAPI application entrypoint for the video relay service."""
from __future__ import annotations

import logging
from typing import Final

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from video_relay.api.http import router as api_router
from video_relay.core.config import Settings, get_settings
from video_relay.core.logging_cfg import setup_logging

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance.

    Notes
    -----
    - Logging is configured up front based on settings; settings are loaded once.
    - Error bodies use the ``{"message": str}`` shape for both ``HTTPException``
      and request validation failures (the latter as 400).
    - CORS is permissive by default so browser front-ends on other origins can
      call the API.

    Returns
    -------
    FastAPI
        The configured FastAPI application.
    """

    settings: Settings = get_settings()
    setup_logging(settings.debug)

    app: FastAPI = FastAPI(title=settings.app_name)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )
    app.include_router(api_router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"message": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Malformed request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(status_code=400, content={"message": "Invalid input."})

    @app.get("/health", tags=["system"])
    def health() -> dict[str, str]:
        """Health check endpoint.

        Notes
        -----
        - Lightweight liveness probe; does not call the provider.
        """

        return {"status": "ok"}

    return app


app: Final[FastAPI] = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("video_relay.main:app", host="127.0.0.1", port=8000, reload=True)
