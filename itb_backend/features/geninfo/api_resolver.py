"""
ComfyUI API-prompt resolver (`{"<id>": {"class_type": ..., "inputs": {...}}}`).

Pass 1 scans every node's inputs field by field for baseline values; the
chosen sampler's own (possibly linked) parameters then overwrite them.
Link following is bounded by `ITB_MAX_LINK_DEPTH` and never revisits a node.
"""

from __future__ import annotations

from typing import Any

from ...config import max_link_depth
from ...shared import CanonicalKey, get_logger
from ..metadata.base import ExtractionContext
from .graph_converter import ApiGraph, _inputs
from .node_types import (
    is_allowed_model_node,
    is_custom_sampler_type,
    is_negative_node,
    is_power_lora_type,
    is_sampler_type,
    is_scheduler_type,
    node_type,
)
from .prompt_tracer import collect_api_prompt
from .values import (
    append_lora,
    append_result,
    as_float,
    as_long,
    clean_filename,
    extract_loras_from_prompt,
    extract_power_loras,
    format_number,
    is_numeric,
    is_valid_model_file,
    is_valid_prompt,
    literal_text,
)

logger = get_logger(__name__)

# Inputs of a linked source node that carry the forwarded value.
NUMERIC_SOURCE_KEYS: tuple[str, ...] = ("Value", "value", "seed", "noise_seed", "int", "float", "number")
STRING_SOURCE_KEYS: tuple[str, ...] = ("Value", "value", "text", "string")

MODEL_INPUT_KEYWORDS: tuple[str, ...] = ("ckpt", "model", "unet", "file")
LATENT_INPUT_KEYS: tuple[str, ...] = ("latent_image", "samples", "latent", "image")


def resolve_api_value(
    graph: ApiGraph,
    value: Any,
    source_keys: tuple[str, ...],
    *,
    numeric: bool,
    visited: set[str] | None = None,
    depth: int = 0,
) -> Any | None:
    """Literal behind `value`, following `[id, slot]` links through forwarding nodes."""
    if numeric and is_numeric(value):
        return value
    if not numeric and isinstance(value, str):
        return value.strip() or None
    if depth >= graph.max_depth:
        logger.debug("Link depth limit (%d) reached while resolving %r", graph.max_depth, value)
        return None
    found = graph.node_for_link(value)
    if found is None:
        return None
    source_id, source = found
    visited = set() if visited is None else visited
    if source_id in visited:
        return None
    visited.add(source_id)
    ins = _inputs(source)
    for key in source_keys:
        if key in ins:
            resolved = resolve_api_value(graph, ins[key], source_keys, numeric=numeric, visited=visited, depth=depth + 1)
            if resolved is not None:
                return resolved
    return None


def resolve_number(graph: ApiGraph, node: dict[str, Any] | None, name: str) -> Any | None:
    ins = _inputs(node)
    if name not in ins:
        return None
    return resolve_api_value(graph, ins[name], (name, *NUMERIC_SOURCE_KEYS), numeric=True)


def resolve_string(graph: ApiGraph, node: dict[str, Any] | None, name: str) -> str | None:
    ins = _inputs(node)
    if name not in ins:
        return None
    return resolve_api_value(graph, ins[name], (name, *STRING_SOURCE_KEYS), numeric=False)


def scan_inputs_block(
    inputs: dict[str, Any],
    node: dict[str, Any],
    result: dict[str, str],
    ctx: ExtractionContext,
    *,
    skip_core: bool = False,
) -> None:
    """Per-field scan of one API node's literal inputs."""
    ct = node_type(node)
    core_writable = not skip_core and not ctx.core_params_locked
    negative = is_negative_node(node)

    for key, value in inputs.items():
        k = str(key).lower()
        if core_writable:
            _scan_core_field(k, value, result, ctx)
        if is_numeric(value) or not isinstance(value, str):
            continue

        if is_allowed_model_node(ct) and is_valid_model_file(value) and any(m in k for m in MODEL_INPUT_KEYWORDS):
            result[CanonicalKey.MODEL] = clean_filename(value)
        if "lora" in ct and "lora" in k and is_valid_model_file(value):
            strength = inputs.get("strength_model", inputs.get("strength", 1.0))
            append_lora(result, value, as_float(strength) if is_numeric(strength) else 1.0)
        if not ctx.prompt_locked and is_valid_prompt(value) and ("prompt" in k or "text" in k):
            text = value.strip()
            append_result(result, CanonicalKey.NEGATIVE if negative else CanonicalKey.PROMPT, text)
            extract_loras_from_prompt(text, result)


def _scan_core_field(k: str, value: Any, result: dict[str, str], ctx: ExtractionContext) -> None:
    if k == "scheduler" and isinstance(value, str) and value.strip():
        result[CanonicalKey.SCHEDULER] = value.strip()
    elif k == "sampler_name" and isinstance(value, str) and value.strip():
        result[CanonicalKey.SAMPLER] = value.strip()
    if not is_numeric(value):
        return
    if k == "steps":
        result[CanonicalKey.STEPS] = literal_text(value) or str(value)
    elif k in ("cfg", "cfg_scale"):
        result[CanonicalKey.CFG] = format_number(value)
    elif k in ("seed", "noise_seed") and not ctx.seed_locked:
        seed = as_long(value)
        if seed is not None:
            result[CanonicalKey.SEED] = str(seed)


def _sampler_steps(graph: ApiGraph, node: dict[str, Any], ct: str) -> int | None:
    if is_custom_sampler_type(ct):
        return as_long(resolve_number(graph, graph.linked_node(node, "sigmas"), "steps"))
    return as_long(resolve_number(graph, node, "steps"))


def latent_size(graph: ApiGraph, sampler: dict[str, Any]) -> tuple[int, int] | None:
    """Follow the sampler's latent input upstream to the node that sets width/height."""
    node: dict[str, Any] | None = sampler
    seen: set[str] = set()
    for _ in range(graph.max_depth):
        ins = _inputs(node)
        found = next((graph.node_for_link(ins[k]) for k in LATENT_INPUT_KEYS if k in ins), None)
        if found is None or found[0] in seen:
            return None
        seen.add(found[0])
        node = found[1]
        width = as_long(resolve_number(graph, node, "width"))
        height = as_long(resolve_number(graph, node, "height"))
        if width and height and width > 0 and height > 0:
            return width, height
    return None


def resolve_api_graph(root: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
    """Resolve an API prompt graph into `result`; sets the structural-pass flags on `ctx`."""
    graph = ApiGraph.from_prompt(root, max_link_depth())
    if not graph.by_id:
        return

    best: tuple[str, dict[str, Any]] | None = None
    best_key: tuple[int, int] = (-1, -1)
    best_steps: int | None = None
    guidance: float | None = None
    direct_scheduler: str | None = None

    for node_id, node in graph.items():
        ct = node_type(node)
        ins = _inputs(node)
        if ins:
            scan_inputs_block(ins, node, result, ctx)
            g = as_float(resolve_number(graph, node, "guidance"))
            if g is not None:
                guidance = g
            if is_power_lora_type(ct):
                extract_power_loras(ins, result)
        if is_scheduler_type(ct) and isinstance(ins.get("scheduler"), str):
            direct_scheduler = ins["scheduler"]

        if not (is_custom_sampler_type(ct) or is_sampler_type(ct)):
            continue
        steps = _sampler_steps(graph, node, ct)
        # Resolved Steps rank by value; unresolved samplers only compete among themselves.
        key = (steps, 0) if steps is not None else (-1, 1 if is_custom_sampler_type(ct) else 0)
        if best is None or key > best_key:
            best, best_key, best_steps = (node_id, node), key, steps

    if best is None:
        logger.debug("No sampler among %d API nodes", len(graph.by_id))
    else:
        _write_sampler_params(graph, best[0], best[1], best_steps, guidance, direct_scheduler, result, ctx)

    ctx.api_graph_analyzed = True
    ctx.core_params_locked = True


def _write_sampler_params(
    graph: ApiGraph,
    sampler_id: str,
    sampler: dict[str, Any],
    steps: int | None,
    guidance: float | None,
    direct_scheduler: str | None,
    result: dict[str, str],
    ctx: ExtractionContext,
) -> None:
    ctx.active_sampler_id = sampler_id
    if steps is not None:
        result[CanonicalKey.STEPS] = str(steps)

    seed = as_long(resolve_number(graph, sampler, "seed"))
    if seed is None:
        seed = as_long(resolve_number(graph, sampler, "noise_seed"))
    if seed is None:
        seed = as_long(resolve_number(graph, graph.linked_node(sampler, "noise"), "noise_seed"))
    if seed is not None and not ctx.seed_locked:
        result[CanonicalKey.SEED] = str(seed)

    cfg = as_float(resolve_number(graph, sampler, "cfg"))
    if cfg is None:
        cfg = as_float(resolve_number(graph, graph.linked_node(sampler, "guider"), "cfg"))
    if cfg is not None:
        text = format_number(cfg)
        if guidance is not None:
            text += f" (distilled {format_number(guidance)})"
        result[CanonicalKey.CFG] = text

    sampler_name = resolve_string(graph, sampler, "sampler_name")
    if sampler_name is None:
        sampler_name = resolve_string(graph, graph.linked_node(sampler, "sampler"), "sampler_name")
    if sampler_name:
        result[CanonicalKey.SAMPLER] = sampler_name

    scheduler = resolve_string(graph, sampler, "scheduler")
    if scheduler is None:
        scheduler = resolve_string(graph, graph.linked_node(sampler, "sigmas"), "scheduler")
    if scheduler is None:
        scheduler = direct_scheduler
    if scheduler:
        result[CanonicalKey.SCHEDULER] = scheduler

    size = latent_size(graph, sampler)
    if size is not None:
        result[CanonicalKey.WIDTH], result[CanonicalKey.HEIGHT] = str(size[0]), str(size[1])

    positive = collect_api_prompt(graph, sampler, "positive")
    if positive:
        result[CanonicalKey.PROMPT] = positive
        extract_loras_from_prompt(positive, result)
        ctx.prompt_locked = True
    negative = collect_api_prompt(graph, sampler, "negative")
    if negative:
        result[CanonicalKey.NEGATIVE] = negative
