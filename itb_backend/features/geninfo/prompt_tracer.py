"""
Prompt tracing from a sampler's `positive` / `negative` conditioning inputs.

UI workflows are traced through `links`; API prompts through inline
`[source_id, slot]` links. Both walks are depth-bounded.
"""

from __future__ import annotations

from typing import Any

from .graph_converter import ApiGraph, WorkflowGraph, _inputs, _input_list, _input_name, _is_link, _widgets
from .node_types import (
    is_conditioning_relay_type,
    is_passthrough_type,
    is_string_join_type,
    is_text_encoder_type,
    node_type,
)
from .values import is_valid_prompt

# Relay inputs tried in order; the first group that resolves to text wins.
RELAY_INPUT_PRIORITY: tuple[str, ...] = ("conditioning", "average", "string", "text", "")
TEXT_INPUT_KEYWORDS: tuple[str, ...] = ("text", "string", "prompt")
TEXT_INPUT_EXACT: tuple[str, ...] = ("value", "input", "question")
JOIN_INPUT_KEYWORDS: tuple[str, ...] = ("text", "string", "input")

API_TEXT_KEYS: tuple[str, ...] = ("text", "text_g", "text_l", "prompt", "string", "value", "Value")


def _join(parts: list[str]) -> str:
    return ", ".join(p for p in parts if p)


def _longest_prompt_widget(widgets: list[Any]) -> str | None:
    best: str | None = None
    for w in widgets:
        if not isinstance(w, str):
            continue
        val = w.strip()
        if is_valid_prompt(val) and (best is None or len(val) > len(best)):
            best = val
    return best


# --- UI form -------------------------------------------------------------


def _node_key(node: dict[str, Any]) -> str:
    return str(node.get("id"))


def trace_input_to_text(
    graph: WorkflowGraph,
    node: dict[str, Any],
    match: str,
    depth: int = 0,
    path: frozenset[str] = frozenset(),
) -> str | None:
    """
    Text reaching `node` through inputs whose name contains `match`.

    Several matching inputs (e.g. `conditioning_1`, `conditioning_2` on a
    combine node) are resolved in name order and joined with ", ".
    """
    if depth > graph.max_depth:
        return None
    path = path | {_node_key(node)}
    matching = sorted(
        (inp for inp in _input_list(node) if match in _input_name(inp)),
        key=lambda inp: str(inp.get("name") or ""),
    )
    parts: list[str] = []
    for inp in matching:
        source = graph.linked_source(inp)
        if source is None or _node_key(source) in path:
            continue
        text = _text_from_conditioning_source(graph, source, depth, path)
        if text and text not in parts:
            parts.append(text)
    return _join(parts) or None


def _text_from_conditioning_source(
    graph: WorkflowGraph, source: dict[str, Any], depth: int, path: frozenset[str]
) -> str | None:
    ct = node_type(source)
    if is_text_encoder_type(ct):
        return resolve_node_text(graph, source, depth + 1, path)
    if not is_conditioning_relay_type(ct):
        return None
    for match in RELAY_INPUT_PRIORITY:
        text = trace_input_to_text(graph, source, match, depth + 1, path)
        if text:
            return text
    return _longest_prompt_widget(_widgets(source))


def _is_text_input(name: str) -> bool:
    return any(k in name for k in TEXT_INPUT_KEYWORDS) or name in TEXT_INPUT_EXACT


def resolve_node_text(
    graph: WorkflowGraph, node: dict[str, Any], depth: int = 0, path: frozenset[str] = frozenset()
) -> str | None:
    """Text produced by an encoder/string node: linked text inputs first, then its own widgets."""
    if depth > graph.max_depth:
        return None
    ct = node_type(node)
    if is_string_join_type(ct):
        return resolve_string_source(graph, node, depth, path)
    path = path | {_node_key(node)}
    passthrough = is_passthrough_type(ct)
    for inp in _input_list(node):
        name = _input_name(inp)
        if not (_is_text_input(name) or (passthrough and name in ("", "*"))):
            continue
        source = graph.linked_source(inp)
        if source is None or _node_key(source) in path:
            continue
        resolved = resolve_string_source(graph, source, depth + 1, path)
        if resolved:
            return resolved
    return _longest_prompt_widget(_widgets(node))


def resolve_string_source(
    graph: WorkflowGraph, node: dict[str, Any], depth: int = 0, path: frozenset[str] = frozenset()
) -> str | None:
    if depth > graph.max_depth:
        return None
    if not is_string_join_type(node_type(node)):
        return resolve_node_text(graph, node, depth, path)

    path = path | {_node_key(node)}
    relevant = sorted(
        (inp for inp in _input_list(node) if any(k in _input_name(inp) for k in JOIN_INPUT_KEYWORDS)),
        key=lambda inp: str(inp.get("name") or ""),
    )
    parts: list[str] = []
    for inp in relevant:
        source = graph.linked_source(inp)
        if source is None or _node_key(source) in path:
            continue
        resolved = resolve_string_source(graph, source, depth + 1, path)
        if resolved:
            parts.append(resolved)
    if parts:
        return _join(parts)
    texts = [w.strip() for w in _widgets(node) if isinstance(w, str) and is_valid_prompt(w)]
    return " ".join(texts) or None


def has_linked_text_input(node: dict[str, Any]) -> bool:
    for inp in _input_list(node):
        if _input_name(inp) in ("text", "string", "prompt") and inp.get("link") is not None:
            return True
    return False


# --- API form ------------------------------------------------------------


def _conditioning_key_allowed(key: Any, branch: str) -> bool:
    key_s = str(key).lower()
    if branch == "positive":
        return key_s not in ("negative", "neg", "negative_prompt") and not key_s.startswith("negative_")
    return key_s not in ("positive", "pos", "positive_prompt") and not key_s.startswith("positive_")


def _conditioning_should_expand(ct: str, ins: dict[str, Any], branch: str) -> bool:
    if is_conditioning_relay_type(ct) or "conditioning" in ct:
        return True
    if any("conditioning" in str(key).lower() for key in ins):
        return True
    return _is_link(ins.get(branch))


def _api_literal_text(graph: ApiGraph, value: Any, visited: set[str], depth: int) -> str | None:
    """A text input value, following links into primitive/string nodes."""
    if isinstance(value, str):
        return value.strip() if is_valid_prompt(value) else None
    if not _is_link(value) or depth > graph.max_depth:
        return None
    found = graph.node_for_link(value)
    if found is None or found[0] in visited:
        return None
    source_id, source = found
    visited.add(source_id)
    if is_string_join_type(node_type(source)):
        parts = []
        for key in sorted(_inputs(source)):
            if any(k in key.lower() for k in JOIN_INPUT_KEYWORDS):
                text = _api_literal_text(graph, _inputs(source)[key], visited, depth + 1)
                if text:
                    parts.append(text)
        return _join(parts) or None
    return _api_node_text(graph, source, visited, depth + 1)


def _api_node_text(graph: ApiGraph, node: dict[str, Any], visited: set[str], depth: int) -> str | None:
    ins = _inputs(node)
    for key in API_TEXT_KEYS:
        if key in ins:
            text = _api_literal_text(graph, ins[key], visited, depth)
            if text:
                return text
    return None


def collect_api_prompt(graph: ApiGraph, sampler: dict[str, Any], branch: str) -> str | None:
    """
    DFS upstream from the sampler's `branch` input, joining the texts of every
    text-encoder reached. Expansion only passes through conditioning and
    pass-through nodes; `visited` keeps cyclic graphs finite.
    """
    start = _inputs(sampler).get(branch)
    found = graph.node_for_link(start)
    if found is None:
        guider = graph.linked_node(sampler, "guider")
        if guider is None:
            return None
        found = graph.node_for_link(_inputs(guider).get(branch))
        if found is None:
            return None

    visited: set[str] = set()
    stack: list[tuple[str, dict[str, Any], int]] = [(found[0], found[1], 0)]
    texts: list[tuple[str, str]] = []
    while stack:
        nid, node, depth = stack.pop()
        if depth > graph.max_depth or nid in visited:
            continue
        visited.add(nid)
        ct = node_type(node)
        if is_text_encoder_type(ct):
            text = _api_node_text(graph, node, set(visited), depth)
            if text:
                texts.append((nid, text))
            continue
        if branch == "negative" and "conditioningzeroout" in ct:
            continue
        ins = _inputs(node)
        if not _conditioning_should_expand(ct, ins, branch):
            continue
        # Nodes carrying both branches (ControlNet apply, guiders) only forward their own.
        if _is_link(ins.get(branch)):
            frontier = [ins[branch]]
        else:
            frontier = [v for k, v in ins.items() if _conditioning_key_allowed(k, branch)]
        for value in frontier:
            linked = graph.node_for_link(value)
            if linked is not None and linked[0] not in visited:
                stack.append((linked[0], linked[1], depth + 1))

    def _nid_key(item: tuple[str, str]) -> tuple[int, str]:
        try:
            return int(item[0]), item[0]
        except Exception:
            return 10**9, item[0]

    ordered: list[str] = []
    for _, text in sorted(texts, key=_nid_key):
        if text not in ordered:
            ordered.append(text)
    return _join(ordered) or None
