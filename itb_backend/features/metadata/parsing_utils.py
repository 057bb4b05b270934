"""
Parsing utilities for raw metadata chunks: JSON payload cleanup and the
Automatic1111 / Forge "parameters" text block.
"""
import json
import re
from typing import Any, Dict, List, Optional, Tuple

from ...config import max_metadata_json_size
from ...shared import CanonicalKey, get_logger

logger = get_logger(__name__)

NEGATIVE_MARKER = "Negative prompt:"
STEPS_MARKER = "\nSteps: "
STEPS_MARKER_LOOSE = "\nSteps:"

# key: value pairs; a value runs to the next comma unless it is double-quoted.
_A1111_PARAM_RE = re.compile(r'([^:,]+):\s*("(?:\\.|[^"\\])*"|[^,]+)(?:,|$)')
_A1111_LORA_RE = re.compile(r"<lora:([^:>]+)(?::([^:>]+))?(?::([^:>]+))?>", re.IGNORECASE)

_A1111_KEYS: Dict[str, str] = {
    "steps": CanonicalKey.STEPS,
    "sampler": CanonicalKey.SAMPLER,
    "schedule type": CanonicalKey.SCHEDULER,
    "scheduler": CanonicalKey.SCHEDULER,
    "cfg scale": CanonicalKey.CFG,
    "cfg": CanonicalKey.CFG,
    "seed": CanonicalKey.SEED,
    "model": CanonicalKey.MODEL,
    "model hash": CanonicalKey.MODEL_HASH,
    "denoising strength": CanonicalKey.DENOISE,
}
_DISTILLED_CFG_KEYS = ("distilled cfg scale", "distilled cfg")


def looks_like_json_payload(text: str) -> bool:
    """
    `{...}` objects, or a quoted JSON string that wraps a ComfyUI prompt.

    EXIF UserComment chunks may carry a `Workflow:` / `Prompt:` prefix.
    """
    if not isinstance(text, str):
        return False
    raw = _strip_known_json_prefix(text.strip())
    return raw.startswith("{") or (raw.startswith('"') and '"prompt"' in raw)


def looks_like_text_parameters(text: str) -> bool:
    if not isinstance(text, str):
        return False
    return "Steps:" in text and ("Sampler:" in text or "Schedule type:" in text)


def _strip_known_json_prefix(raw: str) -> str:
    lower_raw = raw.lower()
    for prefix in ("workflow:", "prompt:"):
        if lower_raw.startswith(prefix):
            return raw[len(prefix) :].strip()
    return raw


def clean_json_text(text: str) -> str:
    """Drop known prefixes and trailing junk after the last closing brace."""
    raw = _strip_known_json_prefix(text.strip())
    if raw.startswith('"'):
        return raw
    last_brace = raw.rfind("}")
    if last_brace != -1 and last_brace < len(raw) - 1:
        raw = raw[: last_brace + 1]
    return raw


def _unquote_json_string(raw: str) -> str:
    try:
        unquoted = json.loads(raw)
    except Exception:
        unquoted = None
    if isinstance(unquoted, str):
        return unquoted
    # Loosely escaped: strip the outer quotes by hand.
    inner = raw[1:-1] if raw.endswith('"') and len(raw) >= 2 else raw[1:]
    return inner.replace('\\"', '"')


def parse_json_payload(text: str) -> Dict[str, Any]:
    """
    Parse a metadata JSON chunk into a dict.

    Raises:
        ValueError: payload too large, not JSON, or not a JSON object.
    """
    raw = clean_json_text(text)
    if len(raw) > max_metadata_json_size():
        raise ValueError(f"metadata JSON exceeds {max_metadata_json_size()} bytes")
    if raw.startswith('"'):
        raw = clean_json_text(_unquote_json_string(raw))
    parsed = json.loads(raw)
    if isinstance(parsed, str):
        parsed = json.loads(clean_json_text(parsed))
    if not isinstance(parsed, dict):
        raise ValueError("metadata JSON is not an object")
    return parsed


def try_parse_json_text(text: Any) -> Optional[Dict[str, Any]]:
    """Best-effort variant of `parse_json_payload`: `None` instead of raising."""
    if not isinstance(text, str) or not text.strip():
        return None
    try:
        return parse_json_payload(text)
    except Exception:
        return None


def find_longest_text(root: Any) -> Optional[str]:
    """Longest string stored under a `text` key anywhere in the document, skipping JSON-ish values."""
    best: Optional[str] = None
    stack: List[Any] = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            for key, value in node.items():
                if key == "text" and isinstance(value, str):
                    if "{" not in value and (best is None or len(value) > len(best)):
                        best = value
                elif isinstance(value, (dict, list)):
                    stack.append(value)
        elif isinstance(node, list):
            stack.extend(v for v in node if isinstance(v, (dict, list)))
    return best


def parse_a1111_params(params_text: str) -> Dict[str, str]:
    """Parse an Auto1111/Forge parameters block into canonical keys."""
    result: Dict[str, str] = {}
    if not params_text:
        return result
    try:
        text = params_text.strip()
        positive, remaining = _split_a1111_prompt_and_remaining(text, result)
        if positive:
            result[CanonicalKey.PROMPT] = positive
            _extract_a1111_loras(positive, result)
        if remaining:
            _parse_a1111_param_block(remaining, result)
    except Exception as e:
        logger.debug(f"Failed to parse Auto1111 params: {e}")
    return result


def _split_a1111_prompt_and_remaining(text: str, result: Dict[str, str]) -> Tuple[str, str]:
    if NEGATIVE_MARKER in text:
        positive, _, rest = text.partition(NEGATIVE_MARKER)
        negative, sep, params = rest.partition(STEPS_MARKER)
        if sep:
            remaining = "Steps: " + params
        else:
            last_steps = rest.rfind(STEPS_MARKER_LOOSE)
            if last_steps != -1:
                negative, remaining = rest[:last_steps], rest[last_steps + 1 :]
            else:
                negative, remaining = rest, rest
        if negative.strip():
            result[CanonicalKey.NEGATIVE] = negative.strip()
        return positive.strip(), remaining

    last_steps = text.rfind(STEPS_MARKER_LOOSE)
    if last_steps != -1:
        return text[:last_steps].strip(), text[last_steps + 1 :]
    if text.startswith("Steps:"):
        return "", text
    return text, text


def _extract_a1111_loras(prompt: str, result: Dict[str, str]) -> None:
    entries: List[str] = []
    seen: set = set()
    for match in _A1111_LORA_RE.finditer(prompt):
        name, strength = match.group(1).strip(), match.group(2)
        if name in seen:
            continue
        seen.add(name)
        entries.append(f"<lora:{name}:{strength.strip()}>" if strength else f"<lora:{name}>")
    if entries:
        result[CanonicalKey.LORAS] = ", ".join(entries)


def _parse_a1111_param_block(remaining: str, result: Dict[str, str]) -> None:
    distilled: Optional[str] = None
    for match in _A1111_PARAM_RE.finditer(remaining):
        key = match.group(1).strip().lower()
        value = match.group(2).strip()
        if len(value) >= 2 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1].replace('\\"', '"').strip()
        if not value:
            continue
        if key in _A1111_KEYS:
            result[_A1111_KEYS[key]] = value
        elif key in _DISTILLED_CFG_KEYS:
            distilled = value
        elif key == "size":
            _set_size(result, value)
        elif key == "hires upscale":
            result[CanonicalKey.HIRES_FIX] = f"Enabled ({value}x)"
        elif key == "lora hashes" and CanonicalKey.LORAS not in result:
            result[CanonicalKey.LORAS] = value

    if distilled is not None:
        cfg = result.get(CanonicalKey.CFG)
        result[CanonicalKey.CFG] = f"{cfg} (distilled {distilled})" if cfg else f"{distilled} (distilled)"


def _set_size(result: Dict[str, str], value: str) -> None:
    dims = value.split("x")
    if len(dims) != 2:
        return
    width, height = dims[0].strip(), dims[1].strip()
    if width and height:
        result[CanonicalKey.WIDTH] = width
        result[CanonicalKey.HEIGHT] = height
