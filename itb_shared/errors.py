"""
Helpers for turning exceptions into short, client-safe messages.
"""
from __future__ import annotations

import os
import re
from typing import Any

from .log import get_logger

logger = get_logger(__name__)
_WINDOWS_PATH_RE = re.compile(r"[A-Za-z]:\\[^\s]+")
_UNIX_PATH_RE = re.compile(r"(?<![A-Za-z0-9:/?&=#%])/(?!/)[^\s#?]+")
MAX_MESSAGE_CHARS = 200


def _debug_enabled() -> bool:
    return os.getenv("ITB_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def _mask_paths(value: str) -> str:
    cleaned = _WINDOWS_PATH_RE.sub("[path]", value)
    return _UNIX_PATH_RE.sub("[path]", cleaned)


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    Build a safe error message for clients.

    Raw metadata can be megabytes long and may embed local model paths, so
    the exception text is path-masked, flattened to one line and truncated.

    Args:
        exc: Exception or raw value to sanitize.
        fallback: Message used when nothing meaningful remains.

    Returns:
        A string suitable for inclusion in API responses.
    """
    if not fallback:
        fallback = "An error occurred"

    if exc is None:
        return fallback

    try:
        raw = str(exc)
    except Exception:
        raw = ""

    if not raw:
        return fallback

    sanitized = _mask_paths(raw)
    sanitized = " ".join(sanitized.splitlines()).strip()

    if _debug_enabled():
        logger.debug("Sanitized error payload: %s", sanitized, exc_info=True)

    if sanitized:
        return f"{fallback}: {sanitized[:MAX_MESSAGE_CHARS]}"
    return fallback
