"""
Flat JSON strategies: SwarmUI, InvokeAI, NovelAI and a generic per-field mapper.

Each strategy maps a closed set of lower-cased field names to canonical keys
and never looks beyond the field it is handed.
"""

from __future__ import annotations

from typing import Any

from ...shared import CanonicalKey, Software
from ..geninfo.values import append_result, as_long, literal_text
from .base import ExtractionContext, MetadataStrategy

NOVELAI_MODEL_LABEL = "NovelAI Diffusion"


def _scalar_text(value: Any) -> str | None:
    """Strings and numbers only; containers and booleans are never field values here."""
    if isinstance(value, (dict, list)) or isinstance(value, bool):
        return None
    return literal_text(value)


class SwarmUIStrategy(MetadataStrategy):
    name = "swarmui"

    def supports(self, software: Software) -> bool:
        return software in (Software.SWARMUI, Software.UNKNOWN)

    def extract(self, key: str, value: Any, parent: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
        text = _scalar_text(value)
        if text is None:
            return
        if key == "model":
            if len(text) > 4 and "{" not in text:
                result[CanonicalKey.MODEL] = text
        elif key == "sampler":
            result[CanonicalKey.SAMPLER] = text
        elif key == "prompt":
            if len(text) > 5 and CanonicalKey.PROMPT not in result:
                result[CanonicalKey.PROMPT] = text
        elif key == "negativeprompt":
            result[CanonicalKey.NEGATIVE] = text
        elif key == "cfgscale":
            result[CanonicalKey.CFG] = text
        elif key == "steps":
            result[CanonicalKey.STEPS] = text
        elif key == "seed":
            result[CanonicalKey.SEED] = text


class InvokeAIStrategy(MetadataStrategy):
    name = "invokeai"

    def supports(self, software: Software) -> bool:
        return software in (Software.INVOKEAI, Software.UNKNOWN)

    def extract(self, key: str, value: Any, parent: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
        text = _scalar_text(value)
        if text is None:
            return
        if key in ("model_name", "model_weights"):
            result[CanonicalKey.MODEL] = text
        elif key == "variant":
            result.setdefault(CanonicalKey.MODEL, text)
        elif key == "positive_prompt" or (key == "prompt" and CanonicalKey.PROMPT not in result):
            result[CanonicalKey.PROMPT] = text
        elif key == "negative_prompt":
            result[CanonicalKey.NEGATIVE] = text
        elif key in ("cfg_scale", "cfg_rescale_multiplier"):
            result[CanonicalKey.CFG] = text
        elif key in ("sampler_name", "scheduler"):
            result.setdefault(CanonicalKey.SAMPLER, text)


class NovelAIStrategy(MetadataStrategy):
    name = "novelai"

    def supports(self, software: Software) -> bool:
        return software in (Software.NOVELAI, Software.UNKNOWN)

    def extract(self, key: str, value: Any, parent: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
        text = _scalar_text(value)
        if text is None:
            return
        if key == "prompt":
            result.setdefault(CanonicalKey.PROMPT, text)
        elif key == "uc":
            result[CanonicalKey.NEGATIVE] = text
        elif key == "scale":
            result[CanonicalKey.CFG] = text
        elif key == "steps":
            result[CanonicalKey.STEPS] = text
        elif key == "seed":
            result[CanonicalKey.SEED] = text
        elif key == "sampler":
            result[CanonicalKey.SAMPLER] = text
        elif key == "software" and text.lower() == "novelai":
            result.setdefault(CanonicalKey.MODEL, NOVELAI_MODEL_LABEL)


class CommonStrategy(MetadataStrategy):
    """Generic field names shared by many JSON dialects."""

    name = "common"

    _CORE_FIELDS: dict[str, str] = {
        "steps": CanonicalKey.STEPS,
        "seed": CanonicalKey.SEED,
        "noise_seed": CanonicalKey.SEED,
        "cfg": CanonicalKey.CFG,
        "cfgscale": CanonicalKey.CFG,
        "sampler_name": CanonicalKey.SAMPLER,
        "scheduler": CanonicalKey.SCHEDULER,
    }

    def extract(self, key: str, value: Any, parent: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
        text = _scalar_text(value)
        if text is None:
            return
        target = self._CORE_FIELDS.get(key)
        if target is not None:
            if ctx.core_params_locked or (target == CanonicalKey.SEED and ctx.seed_locked):
                return
            result[target] = text
        elif key in ("width", "height"):
            size = as_long(value)
            if size is not None and size > 0 and str(size) == text:
                result[CanonicalKey.WIDTH if key == "width" else CanonicalKey.HEIGHT] = text
        elif "lora_name" in key:
            append_result(result, CanonicalKey.LORAS, text)
        elif key in ("upscale_by", "upscale_method"):
            result[CanonicalKey.HIRES_FIX] = f"Enabled ({text}x)"
        elif "control_net" in key or "controlnet" in key:
            append_result(result, CanonicalKey.CONTROLNET, text)


SWARMUI_STRATEGY = SwarmUIStrategy()
INVOKEAI_STRATEGY = InvokeAIStrategy()
NOVELAI_STRATEGY = NovelAIStrategy()
COMMON_STRATEGY = CommonStrategy()
