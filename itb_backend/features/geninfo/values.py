"""Literal helpers shared by both graph forms: numbers, filenames, prompt stoplist, LoRA tags."""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

from ...shared import CanonicalKey

VALID_MODEL_EXTENSIONS: tuple[str, ...] = (".safetensors", ".ckpt", ".gguf", ".pt", ".pth", ".bin")

IGNORED_FILENAME_PATTERNS: tuple[str, ...] = (
    "upscale",
    "esrgan",
    "controlnet",
    "ipadapter",
    "faceid",
    "adapter",
    "clip",
    "vae",
    "preview",
    "t5",
    "encoder",
    "refiner",
    "bbox",
    "yolo",
    "ultralytics",
    "mediapipe",
    "segs",
    "detailer",
    "mask",
    "inpaint",
)

IGNORED_PROMPT_TEXTS: frozenset[str] = frozenset(
    s.lower()
    for s in (
        "fixed",
        "increment",
        "decrement",
        "randomize",
        "random",
        "reproduce",
        "enable",
        "disable",
        "on",
        "off",
        "center",
        "resize",
        "crop",
        "Select Wildcard",
        "Full Cache",
        "Preserve",
        "Baked/Default",
        "auto",
        "bf16",
        "undefined",
        "null",
        "true",
        "false",
    )
)

_NUMERIC_TEXT_RE = re.compile(r"^-?\d+(\.\d+)?$")
_MODEL_EXT_RE = re.compile(r"\.(safetensors|gguf|ckpt|pt|pth|bin)$", re.IGNORECASE)
LORA_TAG_RE = re.compile(r"<lora:([^:>]+)(?::([^:>]+))?.*?>", re.IGNORECASE)
_LORA_NAME_RE = re.compile(r"<lora:([^:>]+)", re.IGNORECASE)

_TWO_PLACES = Decimal("0.01")


def is_numeric(value: Any) -> bool:
    """Numbers and numeric strings; booleans never count."""
    if isinstance(value, bool) or value is None:
        return False
    if isinstance(value, (int, float)):
        return not (isinstance(value, float) and not math.isfinite(value))
    if isinstance(value, str):
        return bool(_NUMERIC_TEXT_RE.match(value.strip()))
    return False


def is_integer(value: Any) -> bool:
    if not is_numeric(value):
        return False
    if isinstance(value, int):
        return True
    text = str(value).strip()
    return "." not in text or text.endswith(".0")


def as_long(value: Any) -> int | None:
    """Truncating integer conversion, `None` when not numeric."""
    if not is_numeric(value):
        return None
    try:
        if isinstance(value, (int, float)):
            return int(value)
        return int(str(value).strip().split(".")[0])
    except Exception:
        return None


def as_float(value: Any) -> float | None:
    if not is_numeric(value):
        return None
    try:
        return float(value)
    except Exception:
        return None


def format_number(value: Any) -> str:
    """Render with at most two decimals and no trailing zeros (`7.0 -> "7"`)."""
    if isinstance(value, bool):
        return str(value)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return str(value)
    if not number.is_finite():
        return str(value)
    number = number.quantize(_TWO_PLACES, rounding=ROUND_HALF_EVEN)
    text = format(number, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    if text in ("-0", ""):
        text = "0"
    return text


def literal_text(value: Any) -> str | None:
    """Canonical string for a literal input value."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        # NaN/Infinity are legal in lenient JSON but never a parameter value.
        return format_number(value) if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        return text or None
    return None


def is_valid_model_file(filename: Any) -> bool:
    if not isinstance(filename, str) or len(filename) < 3:
        return False
    lower = filename.lower()
    if not lower.endswith(VALID_MODEL_EXTENSIONS):
        return False
    if any(p in lower for p in IGNORED_FILENAME_PATTERNS):
        return False
    return lower not in ("true", "false", "none")


def clean_filename(path: str) -> str:
    name = str(path or "")
    name = name.rsplit("\\", 1)[-1]
    name = name.rsplit("/", 1)[-1]
    return _MODEL_EXT_RE.sub("", name)


def is_valid_prompt(text: Any) -> bool:
    if not isinstance(text, str):
        return False
    stripped = text.strip()
    if not stripped:
        return False
    if is_valid_model_file(stripped):
        return False
    if stripped.startswith("comma") or stripped.startswith("newline"):
        return False
    if stripped.lower() in IGNORED_PROMPT_TEXTS:
        return False
    if "Select Wildcard" in stripped and "Full Cache" in stripped:
        return False
    return True


def append_result(result: dict[str, str], key: str, text: str) -> None:
    """Append `text` to `result[key]` with `", "` unless already contained."""
    if not text:
        return
    existing = result.get(key)
    if not existing:
        result[key] = text
    elif text not in existing:
        result[key] = f"{existing}, {text}"


def format_lora(name: str, strength: Any = 1.0) -> str:
    value = as_float(strength)
    return f"<lora:{name}:{format_number(1.0 if value is None else value)}>"


def lora_names(result: dict[str, str]) -> set[str]:
    return {m.group(1).strip() for m in _LORA_NAME_RE.finditer(result.get(CanonicalKey.LORAS, ""))}


def append_lora(result: dict[str, str], name: str, strength: Any = 1.0) -> None:
    """Add a formatted LoRA entry unless a LoRA with the same cleaned name exists."""
    cleaned = clean_filename(name).strip()
    if not cleaned or cleaned in lora_names(result):
        return
    append_result(result, CanonicalKey.LORAS, format_lora(cleaned, strength))


def extract_loras_from_prompt(prompt: Any, result: dict[str, str]) -> None:
    if not isinstance(prompt, str) or "<lora:" not in prompt.lower():
        return
    for match in LORA_TAG_RE.finditer(prompt):
        strength = as_float(match.group(2))
        append_lora(result, match.group(1), 1.0 if strength is None else strength)


def extract_power_loras(entries: Any, result: dict[str, str]) -> None:
    """
    Power Lora Loader rows: `{"on": bool, "lora": filename, "strength": float}`.

    API form passes the `inputs` dict (rows under `lora_*` keys); UI form passes
    `widgets_values` (rows mixed with header dicts and literals).
    """
    if isinstance(entries, dict):
        rows = [v for k, v in entries.items() if str(k).lower().startswith("lora")]
    elif isinstance(entries, list):
        rows = list(entries)
    else:
        return
    for row in rows:
        if not isinstance(row, dict) or row.get("on") is not True:
            continue
        name = row.get("lora")
        if not is_valid_model_file(name):
            continue
        strength = as_float(row.get("strength"))
        append_lora(result, name, 1.0 if strength is None else strength)
