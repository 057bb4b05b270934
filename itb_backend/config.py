"""
Configuration for the metadata engine.

Every knob is an environment variable read when the value is needed, so a
long-running host can be tuned without re-importing the engine.
"""
import logging
import os

from .utils import env_bool

logger = logging.getLogger(__name__)

DEFAULT_MAX_GRAPH_DEPTH = 50
DEFAULT_MAX_LINK_DEPTH = 50
DEFAULT_MAX_METADATA_JSON_SIZE = 10 * 1024 * 1024  # 10MB
DEFAULT_MAX_JSON_BYTES = 10 * 1024 * 1024


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_bool(default: bool, *names: str) -> bool:
    for name in names:
        if name and name in os.environ:
            return env_bool(name, default)
    return default


def max_graph_depth() -> int:
    """Depth bound for UI-workflow traces (sampler search, prompt recursion)."""
    return _env_int(DEFAULT_MAX_GRAPH_DEPTH, "ITB_MAX_GRAPH_DEPTH", min_value=1, max_value=1000)


def max_link_depth() -> int:
    """Depth bound for following inline `[id, slot]` links in API graphs."""
    return _env_int(DEFAULT_MAX_LINK_DEPTH, "ITB_MAX_LINK_DEPTH", min_value=1, max_value=1000)


def max_metadata_json_size() -> int:
    return _env_int(DEFAULT_MAX_METADATA_JSON_SIZE, "ITB_MAX_METADATA_JSON_SIZE", min_value=1024)


def max_request_json_bytes() -> int:
    return _env_int(DEFAULT_MAX_JSON_BYTES, "ITB_MAX_JSON_SIZE", min_value=1024)


def debug_enabled() -> bool:
    return _env_bool(False, "ITB_DEBUG")
