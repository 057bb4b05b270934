"""
ComfyUI UI-workflow resolver (`{"nodes": [...], "links": [...]}`).

One structural pass over the whole graph: pick the sampler that produced the
image, resolve its parameters, trace its prompts and collect loaders.
"""

from __future__ import annotations

from typing import Any

from ...config import max_graph_depth
from ...shared import CanonicalKey, get_logger
from ..metadata.base import ExtractionContext
from .graph_converter import WorkflowGraph, _widgets
from .model_tracer import extract_models_and_loras
from .node_types import is_guidance_type, is_text_or_primitive_type, node_type
from .prompt_tracer import has_linked_text_input, trace_input_to_text
from .sampler_tracer import (
    resolve_cfg,
    resolve_float_param,
    resolve_sampler_and_scheduler,
    resolve_seed,
    select_sampler,
)
from .values import append_result, as_long, extract_loras_from_prompt, format_number, is_valid_prompt

logger = get_logger(__name__)


def _flux_guidance(graph: WorkflowGraph) -> float | None:
    guidance: float | None = None
    for node in graph.active_nodes():
        if is_guidance_type(node_type(node)):
            value = resolve_float_param(graph, node, "guidance")
            if value is not None:
                guidance = value
    return guidance


def format_cfg(cfg: float, guidance: float | None) -> str:
    text = format_number(cfg)
    if guidance is not None:
        text += f" (distilled {format_number(guidance)})"
    return text


def _trace_sampler_prompt(graph: WorkflowGraph, sampler: dict[str, Any], branch: str) -> str | None:
    """
    Text on the sampler's `branch` input, or on its linked guider's.

    SamplerCustomAdvanced has no conditioning inputs of its own; CFGGuider
    carries `positive`/`negative` and BasicGuider a single `conditioning`.
    """
    text = trace_input_to_text(graph, sampler, branch)
    if text:
        return text
    guider = graph.linked_input(sampler, "guider")
    if guider is None:
        return None
    text = trace_input_to_text(graph, guider, branch)
    if not text and branch == "positive":
        text = trace_input_to_text(graph, guider, "conditioning")
    return text


def _collect_loose_prompts(graph: WorkflowGraph, result: dict[str, str]) -> None:
    """Without a sampler, every literal text widget of an unlinked text node is prompt material."""
    for node in graph.active_nodes():
        if not is_text_or_primitive_type(node_type(node)) or has_linked_text_input(node):
            continue
        for w in _widgets(node):
            if isinstance(w, str) and is_valid_prompt(w):
                text = w.strip()
                append_result(result, CanonicalKey.PROMPT, text)
                extract_loras_from_prompt(text, result)


def resolve_workflow(workflow: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
    """Resolve a UI workflow into `result`; sets the structural-pass flags on `ctx`."""
    graph = WorkflowGraph.from_workflow(workflow.get("nodes"), workflow.get("links"), max_graph_depth())
    if not graph.nodes:
        return

    choice = select_sampler(graph)
    extract_models_and_loras(graph, result)

    if choice is None:
        logger.debug("No sampler in workflow (%d nodes), collecting loose prompt text", len(graph.nodes))
        _collect_loose_prompts(graph, result)
    else:
        sampler = choice.node
        if sampler.get("id") is not None:
            ctx.active_sampler_id = str(sampler.get("id"))
        if choice.steps is not None:
            result[CanonicalKey.STEPS] = str(choice.steps)

        seed = resolve_seed(graph, sampler)
        if seed is not None:
            result[CanonicalKey.SEED] = str(seed)

        cfg = resolve_cfg(graph, sampler, choice.steps)
        if cfg is not None:
            result[CanonicalKey.CFG] = format_cfg(cfg, _flux_guidance(graph))

        sampler_name, scheduler = resolve_sampler_and_scheduler(graph, sampler)
        if sampler_name:
            result[CanonicalKey.SAMPLER] = sampler_name
        if scheduler:
            result[CanonicalKey.SCHEDULER] = scheduler

        positive = _trace_sampler_prompt(graph, sampler, "positive")
        if positive:
            result[CanonicalKey.PROMPT] = positive
            extract_loras_from_prompt(positive, result)
            ctx.prompt_locked = True
        negative = _trace_sampler_prompt(graph, sampler, "negative")
        if negative:
            result[CanonicalKey.NEGATIVE] = negative

    _apply_seed_widgets(workflow, graph, result, ctx)
    ctx.workflow_analyzed = True
    ctx.core_params_locked = True


def _apply_seed_widgets(workflow: dict[str, Any], graph: WorkflowGraph, result: dict[str, str], ctx: ExtractionContext) -> None:
    """`extra.seed_widgets[sampler_id]` names the widget holding the real seed."""
    extra = workflow.get("extra")
    if not isinstance(extra, dict) or ctx.active_sampler_id is None:
        return
    seed_widgets = extra.get("seed_widgets")
    if not isinstance(seed_widgets, dict):
        return
    index = as_long(seed_widgets.get(ctx.active_sampler_id))
    node = graph.by_id.get(ctx.active_sampler_id)
    if index is None or node is None:
        return
    widgets = _widgets(node)
    if 0 <= index < len(widgets):
        seed = as_long(widgets[index])
        if seed is not None:
            result[CanonicalKey.SEED] = str(seed)
            ctx.seed_locked = True
