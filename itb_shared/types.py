"""
Shared types, enums, and constants.
"""
from enum import Enum
from typing import Final, Literal

# How much of the canonical vocabulary an extraction resolved
MetadataQuality = Literal["full", "partial", "degraded", "none"]


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_JSON = "INVALID_JSON"

    # Extraction
    METADATA_FAILED = "METADATA_FAILED"


class Software(str, Enum):
    """Generator labels reported under the `Software` key."""

    SWARMUI = "SwarmUI"
    INVOKEAI = "InvokeAI"
    NOVELAI = "NovelAI"
    COMFYUI = "ComfyUI"
    COMFYUI_WORKFLOW = "ComfyUI (Workflow)"
    A1111 = "A1111 / Forge"
    UNKNOWN = "Unknown"


def is_comfy_software(software: "Software | str | None") -> bool:
    value = software.value if isinstance(software, Software) else str(software or "")
    return "ComfyUI" in value


class CanonicalKey:
    """Keys of the extraction result map."""

    SOFTWARE: Final[str] = "Software"
    PROMPT: Final[str] = "Prompt"
    # One key for every source; A1111 text and flat JSON dialects are not labelled "Negative".
    NEGATIVE: Final[str] = "Negative Prompt"
    STEPS: Final[str] = "Steps"
    SEED: Final[str] = "Seed"
    CFG: Final[str] = "CFG"
    SAMPLER: Final[str] = "Sampler"
    SCHEDULER: Final[str] = "Scheduler"
    MODEL: Final[str] = "Model"
    LORAS: Final[str] = "Loras"
    WIDTH: Final[str] = "Width"
    HEIGHT: Final[str] = "Height"
    CONTROLNET: Final[str] = "ControlNet"
    HIRES_FIX: Final[str] = "Hires. fix"
    DENOISE: Final[str] = "Denoise"
    MODEL_HASH: Final[str] = "Model Hash"
    RAW: Final[str] = "Raw"


CORE_PARAM_KEYS: Final[tuple[str, ...]] = (
    CanonicalKey.STEPS,
    CanonicalKey.CFG,
    CanonicalKey.SEED,
    CanonicalKey.SAMPLER,
    CanonicalKey.SCHEDULER,
)

NO_METADATA_MESSAGE: Final[str] = "No metadata found in this image."
NO_PROMPT_MESSAGE: Final[str] = "No descriptive prompt found"
