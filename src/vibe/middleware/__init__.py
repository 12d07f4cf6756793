"""Middleware registration."""

from fastapi import FastAPI

from vibe.config import Settings
from vibe.middleware.cors import setup_cors
from vibe.middleware.error_handler import setup_error_handlers
from vibe.middleware.logging import setup_logging
from vibe.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and middleware.

    Starlette runs middleware in reverse-add order, so CORS (added last)
    is outermost and also wraps error responses.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
