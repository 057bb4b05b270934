"""
Node classification by type string.

ComfyUI node types are an open vocabulary (custom node packs add new ones all
the time), so every classifier here is a substring test of the lower-cased
type against a literal keyword table.
"""

from __future__ import annotations

from typing import Any

SAMPLER_TYPE_KEYWORDS: tuple[str, ...] = ("sampler", "clownshark")
SAMPLER_EXCLUDED_KEYWORDS: tuple[str, ...] = ("detailer", "upscale")
GLOBAL_SAMPLER_EXCLUDED_KEYWORDS: tuple[str, ...] = ("detailer", "upscale", "refiner")

OUTPUT_NODE_TYPES: tuple[str, ...] = (
    "save image",
    "preview image",
    "saveimage",
    "previewimage",
    "video save",
    "save",
    "preview",
    "image save",
)

PASSTHROUGH_TYPES: tuple[str, ...] = (
    "reroute",
    "switch",
    "pipe",
    "bus",
    "node",
    "wifi",
    "set",
    "get",
    "any",
    "showtext",
    "pysssss",
    "stringreplace",
    "wildcard",
)

# Node types whose every input is followed when tracing an output back to its sampler.
TRACE_PASSTHROUGH_TYPES: tuple[str, ...] = ("reroute", "node", "pipe")
TRACE_INPUT_NAMES: tuple[str, ...] = ("image", "latent", "pixels", "samples", "vae")

CONDITIONING_RELAY_KEYWORDS: tuple[str, ...] = ("combine", "average", "cond", "concat", "jps", "text")
STRING_JOIN_KEYWORDS: tuple[str, ...] = ("concat", "jps", "combin")
TEXT_ENCODER_KEYWORDS: tuple[str, ...] = ("cliptextencode", "prompt")

TEXT_NODE_KEYWORDS: tuple[str, ...] = (
    "text",
    "prompt",
    "primitive",
    "string",
    "portrait",
    "processor",
    "wildcard",
    "manager",
)

ALLOWED_MODEL_NODE_TYPES: tuple[str, ...] = ("checkpoint", "unet", "loader", "lora")
IGNORED_MODEL_NODE_TYPES: tuple[str, ...] = (
    "preprocessor",
    "detailer",
    "output",
    "save image",
    "preview image",
    "save",
    "preview",
    "detector",
    "mask",
    # Loaders for auxiliary weights never carry the diffusion model.
    "vaeloader",
    "cliploader",
    "controlnetloader",
    "upscalemodelloader",
)

SAMPLER_KEYWORDS: tuple[str, ...] = (
    "euler",
    "heun",
    "dpm",
    "lms",
    "ddim",
    "uni_pc",
    "lcm",
    "multistep",
    "singlestep",
    "clownshark",
)

SCHEDULER_KEYWORDS: tuple[str, ...] = (
    "normal",
    "karras",
    "exponential",
    "sgm",
    "simple",
    "beta",
    "ddim",
    "standard",
    "linear",
    "uniform",
    "gpu",
    "polyexponential",
    "automatic",
)

INACTIVE_MODES: tuple[int, ...] = (2, 4)


def _contains_any(value: str, needles: tuple[str, ...]) -> bool:
    return any(needle in value for needle in needles)


def node_type(node: Any) -> str:
    """Lower-cased `class_type` (API form) or `type` (UI form)."""
    if not isinstance(node, dict):
        return ""
    raw = node.get("class_type") or node.get("type") or ""
    return str(raw).lower()


def node_title(node: Any) -> str:
    if not isinstance(node, dict):
        return ""
    title = node.get("title")
    if title:
        return str(title).lower()
    meta = node.get("_meta")
    if isinstance(meta, dict) and meta.get("title"):
        return str(meta["title"]).lower()
    return ""


def is_active(node: Any) -> bool:
    """Bypassed (mode 2) and muted (mode 4) nodes take no part in resolution."""
    if not isinstance(node, dict):
        return False
    mode = node.get("mode")
    if isinstance(mode, bool) or not isinstance(mode, (int, float)):
        return True
    return int(mode) not in INACTIVE_MODES


def is_sampler_type(ct: str) -> bool:
    return _contains_any(ct, SAMPLER_TYPE_KEYWORDS) and not _contains_any(ct, SAMPLER_EXCLUDED_KEYWORDS)


def is_global_sampler_type(ct: str) -> bool:
    return _contains_any(ct, SAMPLER_TYPE_KEYWORDS) and not _contains_any(ct, GLOBAL_SAMPLER_EXCLUDED_KEYWORDS)


def is_custom_sampler_type(ct: str) -> bool:
    return "samplercustom" in ct


def is_output_type(ct: str) -> bool:
    return _contains_any(ct, OUTPUT_NODE_TYPES)


def is_passthrough_type(ct: str) -> bool:
    return _contains_any(ct, PASSTHROUGH_TYPES)


def is_trace_passthrough_type(ct: str) -> bool:
    return _contains_any(ct, TRACE_PASSTHROUGH_TYPES)


def is_trace_input_name(name: str) -> bool:
    return _contains_any(name, TRACE_INPUT_NAMES)


def is_text_encoder_type(ct: str) -> bool:
    return _contains_any(ct, TEXT_ENCODER_KEYWORDS)


def is_conditioning_relay_type(ct: str) -> bool:
    return is_passthrough_type(ct) or _contains_any(ct, CONDITIONING_RELAY_KEYWORDS)


def is_string_join_type(ct: str) -> bool:
    return _contains_any(ct, STRING_JOIN_KEYWORDS)


def is_text_or_primitive_type(ct: str) -> bool:
    if "janus" in ct:
        return False
    return _contains_any(ct, TEXT_NODE_KEYWORDS)


def is_allowed_model_node(ct: str) -> bool:
    if _contains_any(ct, IGNORED_MODEL_NODE_TYPES):
        return False
    return _contains_any(ct, ALLOWED_MODEL_NODE_TYPES)


def is_lora_loader_type(ct: str) -> bool:
    return "loraloader" in ct


def is_power_lora_type(ct: str) -> bool:
    return "power lora loader" in ct


def is_guidance_type(ct: str) -> bool:
    return "guidance" in ct


def is_scheduler_type(ct: str) -> bool:
    return "scheduler" in ct


def is_negative_node(node: Any) -> bool:
    if "negative" in node_title(node):
        return True
    ct = node_type(node)
    return "negative" in ct or "neg " in ct
