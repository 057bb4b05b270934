"""
Chunk scoring and software identification.

An image can carry several text chunks (PNG `parameters`, `prompt`,
`workflow`, EXIF UserComment, ...). The richest one is picked by a fixed
score table, then the parsed document is labelled with the generator that
wrote it.
"""

from __future__ import annotations

import re
from typing import Any, Iterable

from ...shared import Software, get_logger
from .parsing_utils import try_parse_json_text

logger = get_logger(__name__)

SCORE_SWARMUI = 100
SCORE_COMFY_API = 90
SCORE_TEXT_PARAMS = 80
SCORE_COMFY_WORKFLOW = 10
SCORE_NONE = 0

_NODE_ID_OBJECT_RE = re.compile(r'\{\s*"\d+"\s*:\s*\{')

ENVELOPE_API_KEY = "prompt"
ENVELOPE_WORKFLOW_KEY = "workflow"


def score_chunk(text: str | None) -> int:
    if not text:
        return SCORE_NONE
    if "sui_image_params" in text:
        return SCORE_SWARMUI
    if _NODE_ID_OBJECT_RE.search(text):
        return SCORE_COMFY_API
    if "Steps:" in text and "Sampler:" in text:
        return SCORE_TEXT_PARAMS
    if '"nodes"' in text and '"links"' in text:
        return SCORE_COMFY_WORKFLOW
    return SCORE_NONE


def select_best_chunk(candidates: Iterable[str | None] | None) -> str | None:
    """Highest-scoring non-empty candidate; the first one seen wins ties."""
    best: str | None = None
    best_score = -1
    for candidate in candidates or ():
        if not candidate or not str(candidate).strip():
            continue
        score = score_chunk(candidate)
        if score > best_score:
            best, best_score = candidate, score
    return best


def is_api_graph(root: Any) -> bool:
    """First key numeric and its value carries a `class_type`."""
    if not isinstance(root, dict) or not root:
        return False
    first_key = next(iter(root))
    first = root[first_key]
    return str(first_key).isdigit() and isinstance(first, dict) and "class_type" in first


def is_ui_workflow(root: Any) -> bool:
    return isinstance(root, dict) and "nodes" in root and "links" in root


def _envelope_payload(root: dict[str, Any], key: str) -> Any:
    payload = root.get(key)
    if isinstance(payload, str):
        return try_parse_json_text(payload)
    return payload


def unwrap_envelope(root: Any) -> Any:
    """
    Replace JSON-string `prompt` / `workflow` envelope payloads with parsed
    objects so the walk can descend into them. Other documents are returned as is.
    """
    if not isinstance(root, dict):
        return root
    unwrapped = dict(root)
    for key in (ENVELOPE_API_KEY, ENVELOPE_WORKFLOW_KEY):
        if isinstance(root.get(key), str):
            parsed = _envelope_payload(root, key)
            if isinstance(parsed, dict) and (is_api_graph(parsed) or is_ui_workflow(parsed)):
                unwrapped[key] = parsed
    return unwrapped


def identify_software(root: Any) -> Software:
    if not isinstance(root, dict):
        return Software.UNKNOWN
    if "sui_image_params" in root:
        return Software.SWARMUI
    meta = root.get("meta")
    if isinstance(meta, dict) and "invokeai_metadata" in meta:
        return Software.INVOKEAI
    if "uc" in root:
        return Software.NOVELAI
    if is_api_graph(root):
        return Software.COMFYUI
    if is_ui_workflow(root):
        return Software.COMFYUI_WORKFLOW

    if is_api_graph(_envelope_payload(root, ENVELOPE_API_KEY)):
        return Software.COMFYUI
    if is_ui_workflow(_envelope_payload(root, ENVELOPE_WORKFLOW_KEY)):
        return Software.COMFYUI_WORKFLOW
    return Software.UNKNOWN
