"""Backend-facing alias for shared utilities."""

from __future__ import annotations

import itb_shared as _root_shared
from itb_shared.types import CORE_PARAM_KEYS, NO_METADATA_MESSAGE, NO_PROMPT_MESSAGE

Result = _root_shared.Result
ErrorCode = _root_shared.ErrorCode
CanonicalKey = _root_shared.CanonicalKey
Software = _root_shared.Software
MetadataQuality = _root_shared.MetadataQuality
is_comfy_software = _root_shared.is_comfy_software
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
request_id_var = _root_shared.request_id_var
sanitize_error_message = _root_shared.sanitize_error_message

__all__ = _root_shared.__all__ + [
    "CORE_PARAM_KEYS",
    "NO_METADATA_MESSAGE",
    "NO_PROMPT_MESSAGE",
]
