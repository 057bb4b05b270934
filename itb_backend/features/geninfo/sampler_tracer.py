"""
Sampler selection and parameter resolution for UI workflows.

UI nodes carry most parameters as positional `widgets_values`, so every
resolver first looks for a named input (linked or with an inline widget
value) and then falls back to a positional heuristic over the widget list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .graph_converter import WorkflowGraph, _input_list, _input_name, _widgets
from .node_types import (
    SAMPLER_KEYWORDS,
    SCHEDULER_KEYWORDS,
    is_active,
    is_custom_sampler_type,
    is_global_sampler_type,
    is_output_type,
    is_sampler_type,
    is_trace_input_name,
    is_trace_passthrough_type,
    node_type,
)
from .values import as_float, as_long, is_integer, is_numeric

DEFAULT_TRACED_STEPS = 20
MIN_WIDGET_STEPS = 2
MAX_WIDGET_STEPS = 1000
MIN_WIDGET_SEED = 1_000_000
MIN_CFG = 1.0
MAX_CFG = 100.0


@dataclass
class SamplerChoice:
    node: dict[str, Any]
    steps: int | None


# --- widget heuristics ---------------------------------------------------


def first_numeric(widgets: list[Any]) -> Any | None:
    for w in widgets:
        if is_numeric(w):
            return w
    return None


def steps_from_widgets(widgets: list[Any]) -> int | None:
    for w in widgets:
        if is_integer(w):
            val = as_long(w)
            if val is not None and MIN_WIDGET_STEPS <= val <= MAX_WIDGET_STEPS:
                return val
    return None


def seed_from_widgets(widgets: list[Any]) -> int | None:
    for w in widgets:
        val = as_long(w)
        if val is not None and val > MIN_WIDGET_SEED:
            return val
    return None


def cfg_from_widgets(widgets: list[Any], steps: int | None) -> float | None:
    """First number in [1, 100] that is not the Steps value."""
    for w in widgets:
        val = as_float(w)
        if val is None:
            continue
        if steps is not None and steps > 0 and abs(val - steps) < 0.001:
            continue
        if MIN_CFG <= val <= MAX_CFG:
            return val
    return None


def keyword_from_widgets(widgets: list[Any], keywords: tuple[str, ...], start: int = 0) -> tuple[int, str] | None:
    for idx in range(max(0, start), len(widgets)):
        w = widgets[idx]
        if isinstance(w, str) and any(k in w.lower() for k in keywords):
            return idx, w
    return None


# --- named parameter resolution ------------------------------------------


def _named_inputs(node: dict[str, Any], name: str) -> list[dict[str, Any]]:
    return [inp for inp in _input_list(node) if name in _input_name(inp)]


def _widget_value(inp: dict[str, Any]) -> Any | None:
    widget = inp.get("widget")
    if isinstance(widget, dict) and "value" in widget:
        return widget.get("value")
    return None


def resolve_int_param(graph: WorkflowGraph, node: dict[str, Any], name: str) -> int | None:
    for inp in _named_inputs(node, name):
        source = graph.linked_source(inp)
        if source is not None:
            val = as_long(first_numeric(_widgets(source)))
            if val is not None:
                return val
        val = as_long(_widget_value(inp))
        if val is not None:
            return val
    return None


def resolve_float_param(graph: WorkflowGraph, node: dict[str, Any], name: str) -> float | None:
    for inp in _named_inputs(node, name):
        source = graph.linked_source(inp)
        if source is not None:
            val = as_float(first_numeric(_widgets(source)))
            if val is not None:
                return val
        val = as_float(_widget_value(inp))
        if val is not None:
            return val
    widgets = _widgets(node)
    if name == "guidance":
        return as_float(first_numeric(widgets))
    if "cfg" in name:
        # Only non-integral widgets: integral numbers are far more likely Steps or seeds.
        for w in widgets:
            if isinstance(w, float) and MIN_CFG <= w <= MAX_CFG:
                return w
    return None


def resolve_string_param(graph: WorkflowGraph, node: dict[str, Any], name: str) -> str | None:
    for inp in _named_inputs(node, name):
        val = _widget_value(inp)
        if isinstance(val, str) and val.strip():
            return val.strip()
        source = graph.linked_source(inp)
        if source is None:
            continue
        widgets = _widgets(source)
        if widgets and isinstance(widgets[0], str) and widgets[0].strip():
            return widgets[0].strip()
    return None


# --- sampler selection ---------------------------------------------------


def trace_back_to_sampler(graph: WorkflowGraph, node: dict[str, Any], depth: int = 0) -> dict[str, Any] | None:
    """Walk upstream from an output node through image/latent inputs to the first sampler."""
    if depth > graph.max_depth:
        return None
    ct = node_type(node)
    if is_sampler_type(ct):
        return node
    passthrough = is_trace_passthrough_type(ct)
    for inp in _input_list(node):
        if not (passthrough or is_trace_input_name(_input_name(inp))):
            continue
        source = graph.linked_source(inp)
        if source is None:
            continue
        found = trace_back_to_sampler(graph, source, depth + 1)
        if found is not None:
            return found
    return None


def resolve_steps(graph: WorkflowGraph, node: dict[str, Any]) -> int | None:
    steps = resolve_int_param(graph, node, "steps")
    if steps is None:
        steps = steps_from_widgets(_widgets(node))
    if steps is None and is_custom_sampler_type(node_type(node)):
        sigmas = graph.linked_input(node, "sigmas")
        if sigmas is not None:
            steps = resolve_int_param(graph, sigmas, "steps")
            if steps is None:
                steps = steps_from_widgets(_widgets(sigmas))
    return steps


def select_sampler(graph: WorkflowGraph) -> SamplerChoice | None:
    """
    Choose the sampler whose parameters describe the image.

    Samplers reachable from an active output node are preferred; failing that
    every active sampler-type node competes. Highest Steps wins, first seen
    wins ties.
    """
    best: SamplerChoice | None = None
    for node in graph.nodes:
        if not is_active(node) or not is_output_type(node_type(node)):
            continue
        sampler = trace_back_to_sampler(graph, node)
        if sampler is None:
            continue
        steps = resolve_steps(graph, sampler)
        if steps is None or steps <= 0:
            steps = DEFAULT_TRACED_STEPS
        if best is None or (best.steps is not None and steps > best.steps):
            best = SamplerChoice(node=sampler, steps=steps)
    if best is not None:
        return best

    for node in graph.active_nodes():
        if not is_global_sampler_type(node_type(node)):
            continue
        steps = resolve_steps(graph, node)
        if best is None:
            best = SamplerChoice(node=node, steps=steps)
        elif steps is not None and (best.steps is None or steps > best.steps):
            best = SamplerChoice(node=node, steps=steps)
    return best


def resolve_seed(graph: WorkflowGraph, sampler: dict[str, Any]) -> int | None:
    seed = resolve_int_param(graph, sampler, "seed")
    if seed is None:
        seed = resolve_int_param(graph, sampler, "noise_seed")
    if seed is None:
        seed = seed_from_widgets(_widgets(sampler))
    if seed is None:
        noise = graph.linked_input(sampler, "noise")
        if noise is not None:
            seed = resolve_int_param(graph, noise, "seed")
            if seed is None:
                seed = as_long(first_numeric(_widgets(noise)))
    return seed


def resolve_cfg(graph: WorkflowGraph, sampler: dict[str, Any], steps: int | None) -> float | None:
    cfg = resolve_float_param(graph, sampler, "cfg")
    if cfg is None or cfg < MIN_CFG or (steps is not None and abs(cfg - steps) < 0.001):
        cfg = cfg_from_widgets(_widgets(sampler), steps)
    if cfg is None:
        guider = graph.linked_input(sampler, "guider")
        if guider is not None:
            cfg = resolve_float_param(graph, guider, "cfg")
            if cfg is None:
                cfg = cfg_from_widgets(_widgets(guider), steps)
    return cfg


def resolve_sampler_and_scheduler(graph: WorkflowGraph, sampler: dict[str, Any]) -> tuple[str | None, str | None]:
    widgets = _widgets(sampler)
    sampler_name = resolve_string_param(graph, sampler, "sampler")
    sampler_idx = -1
    if sampler_name is None:
        hit = keyword_from_widgets(widgets, SAMPLER_KEYWORDS)
        if hit is not None:
            sampler_idx, sampler_name = hit
    elif sampler_name in widgets:
        sampler_idx = widgets.index(sampler_name)

    scheduler = resolve_string_param(graph, sampler, "scheduler")
    if scheduler is None:
        # The scheduler widget always follows the sampler widget.
        hit = keyword_from_widgets(widgets, SCHEDULER_KEYWORDS, start=sampler_idx + 1)
        if hit is not None:
            scheduler = hit[1]
    if scheduler is None:
        sigmas = graph.linked_input(sampler, "sigmas")
        if sigmas is not None:
            scheduler = resolve_string_param(graph, sigmas, "scheduler")
            if scheduler is None:
                hit = keyword_from_widgets(_widgets(sigmas), SCHEDULER_KEYWORDS)
                scheduler = hit[1] if hit else None
    return sampler_name, scheduler
