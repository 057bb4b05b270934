"""
Response utilities for route handlers.
"""

import math
from typing import Any

from aiohttp import web

from ...config import debug_enabled
from ...shared import Result, sanitize_error_message


def safe_error_message(exc: Exception, generic_message: str) -> str:
    """
    Return a safe message for clients.

    Exception text is only included when `ITB_DEBUG` is enabled, and even then
    it is path-masked and truncated.
    """
    if debug_enabled():
        return sanitize_error_message(exc, generic_message)
    return generic_message


def _json_response(result: Result, status: int | None = None) -> web.Response:
    """
    Convert a Result into the `{ok, data, error, code, meta}` JSON envelope.

    Validation errors are HTTP 200 with `ok: false`; an explicit status is
    only passed for unhandled server failures.
    """
    if status is None:
        status = 200

    payload = _sanitize_json_payload(
        {
            "ok": result.ok,
            "data": result.data,
            "error": result.error,
            "code": result.code,
            "meta": result.meta,
        }
    )
    return web.json_response(payload, status=status)


def _sanitize_json_payload(value: Any) -> Any:
    """NaN/Infinity become null; tuples become lists."""
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_json_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_json_payload(v) for v in value]
    return value
