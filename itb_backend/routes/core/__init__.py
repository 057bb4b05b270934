"""Shared helpers for route handlers."""
from .request_json import _read_json
from .response import _json_response, safe_error_message

__all__ = ["_json_response", "_read_json", "safe_error_message"]
