"""
Route registration and API middlewares.
"""
from __future__ import annotations

import time
from typing import Awaitable, Callable
from uuid import uuid4

from aiohttp import web

from ..shared import get_logger, log_success, request_id_var
from .handlers import register_geninfo_routes, register_version_routes

logger = get_logger(__name__)

API_PREFIX = "/itb/"
REQUEST_ID_HEADER = "X-Request-ID"
MAX_REQUEST_ID_CHARS = 64

_APP_KEY_MIDDLEWARES_INSTALLED = web.AppKey("itb_middlewares_installed", bool)


def _incoming_request_id(request: web.Request) -> str:
    raw = str(request.headers.get(REQUEST_ID_HEADER) or "").strip()
    if raw and len(raw) <= MAX_REQUEST_ID_CHARS and raw.isprintable():
        return raw
    return uuid4().hex


@web.middleware
async def request_context_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Bind a request id to log records and echo it back in the response."""
    rid = _incoming_request_id(request)
    token = request_id_var.set(rid)
    start = time.perf_counter()
    try:
        try:
            response = await handler(request)
        except web.HTTPException as exc:
            exc.headers[REQUEST_ID_HEADER] = rid
            raise
        response.headers[REQUEST_ID_HEADER] = rid
        logger.debug(
            "%s %s -> %s (%.1fms)",
            request.method,
            request.path,
            response.status,
            (time.perf_counter() - start) * 1000.0,
        )
        return response
    finally:
        request_id_var.reset(token)


@web.middleware
async def security_headers_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Apply strict security headers to engine API responses only."""
    response = await handler(request)
    if not (request.path or "").startswith(API_PREFIX):
        return response

    # API responses are never documents.
    response.headers.setdefault("Content-Security-Policy", "default-src 'none'")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    response.headers.setdefault("Cache-Control", "no-store, no-cache, must-revalidate")
    response.headers.setdefault("Pragma", "no-cache")
    return response


def register_all_routes(routes: web.RouteTableDef | None = None) -> web.RouteTableDef:
    """
    Register every handler module on `routes` (a fresh table when omitted).
    """
    routes = routes if routes is not None else web.RouteTableDef()
    register_geninfo_routes(routes)
    logger.info("  POST /itb/geninfo/extract, /itb/geninfo/score")
    try:
        register_version_routes(routes)
        logger.info("  GET /itb/version")
    except Exception as e:
        logger.error(f"Failed to register version routes: {e}")
    return routes


def _install_middlewares(app: web.Application) -> None:
    if app.get(_APP_KEY_MIDDLEWARES_INSTALLED):
        return
    app.middlewares.insert(0, security_headers_middleware)
    app.middlewares.insert(0, request_context_middleware)
    app[_APP_KEY_MIDDLEWARES_INSTALLED] = True


def register_routes(app: web.Application) -> None:
    """Register routes and middlewares onto an existing aiohttp application."""
    _install_middlewares(app)
    app.add_routes(register_all_routes())
    log_success(logger, "Metadata engine API routes registered")


def create_app() -> web.Application:
    """Standalone application serving the extraction API."""
    app = web.Application()
    register_routes(app)
    return app
