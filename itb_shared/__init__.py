"""Shared utilities for the Image Toolbox metadata engine."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success, request_id_var
from .result import Result
from .types import CanonicalKey, ErrorCode, MetadataQuality, Software, is_comfy_software

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "CanonicalKey",
    "ErrorCode",
    "MetadataQuality",
    "Software",
    "is_comfy_software",
    "sanitize_error_message",
]
