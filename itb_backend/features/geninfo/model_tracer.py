"""Checkpoint and LoRA extraction from UI workflow loader nodes."""

from __future__ import annotations

from typing import Any

from ...shared import CanonicalKey
from .graph_converter import WorkflowGraph, _widgets
from .node_types import is_allowed_model_node, is_lora_loader_type, is_power_lora_type, node_type
from .values import append_lora, as_float, clean_filename, extract_power_loras, is_numeric, is_valid_model_file


def lora_from_widgets(widgets: list[Any]) -> tuple[str, float] | None:
    """`(name, strength_model)` of a LoraLoader: first weight filename, then the first number after it."""
    for idx, w in enumerate(widgets):
        if isinstance(w, str) and is_valid_model_file(w):
            strength = 1.0
            for rest in widgets[idx + 1 :]:
                if is_numeric(rest):
                    strength = as_float(rest) or 0.0
                    break
            return clean_filename(w), strength
    return None


def model_from_widgets(widgets: list[Any]) -> str | None:
    found: str | None = None
    for w in widgets:
        if isinstance(w, str) and is_valid_model_file(w):
            found = clean_filename(w)
    return found


def extract_models_and_loras(graph: WorkflowGraph, result: dict[str, str]) -> None:
    for node in graph.active_nodes():
        ct = node_type(node)
        widgets = _widgets(node)
        if is_power_lora_type(ct):
            extract_power_loras(widgets, result)
            continue
        if not is_allowed_model_node(ct):
            continue
        if is_lora_loader_type(ct):
            lora = lora_from_widgets(widgets)
            if lora is not None:
                append_lora(result, *lora)
            continue
        model = model_from_widgets(widgets)
        if model:
            result[CanonicalKey.MODEL] = model
