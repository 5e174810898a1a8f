"""
FastAPI application entry point for the blockboard backend.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from blockboard.config import get_settings
from blockboard.routes import (
    access_router,
    dashboard_router,
    github_router,
    oauth_router,
    public_router,
)


async def plain_text_http_exception(
    request: Request, exc: StarletteHTTPException
) -> PlainTextResponse:
    """Errors go out as their bare detail text ("Not Found", "Unauthorized")."""
    return PlainTextResponse(
        str(exc.detail),
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Blockboard API", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StarletteHTTPException, plain_text_http_exception)

    app.include_router(dashboard_router)
    app.include_router(public_router)
    app.include_router(access_router)
    app.include_router(oauth_router)
    app.include_router(github_router)
    return app


app = create_app()
