"""Lookup structures over the two ComfyUI graph forms."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .node_types import is_active


def _to_int(value: Any) -> int | None:
    try:
        if value is None or isinstance(value, bool):
            return None
        return int(value)
    except Exception:
        return None


def _looks_like_node_id(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if not isinstance(value, str):
        return False
    s = value.strip()
    if not s:
        return False
    parts = s.split(":")
    return all(p.isdigit() for p in parts if p != "")


def is_node_id(key: Any) -> bool:
    return isinstance(key, str) and key.isdigit()


def _is_link(value: Any) -> bool:
    """API-form inline link: `[source_id, slot]`."""
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        return False
    a, b = value[0], value[1]
    return _looks_like_node_id(a) and _to_int(b) is not None


def _resolve_link(value: Any) -> tuple[str, int] | None:
    if not _is_link(value):
        return None
    a, b = value[0], value[1]
    return str(a).strip(), int(_to_int(b) or 0)


def _inputs(node: Any) -> dict[str, Any]:
    """API-form inputs mapping (empty for UI nodes, whose inputs are a list)."""
    if not isinstance(node, dict):
        return {}
    ins = node.get("inputs")
    return ins if isinstance(ins, dict) else {}


def _input_list(node: Any) -> list[dict[str, Any]]:
    """UI-form input slots."""
    if not isinstance(node, dict):
        return []
    ins = node.get("inputs")
    if not isinstance(ins, list):
        return []
    return [i for i in ins if isinstance(i, dict)]


def _widgets(node: Any) -> list[Any]:
    if not isinstance(node, dict):
        return []
    widgets = node.get("widgets_values")
    return widgets if isinstance(widgets, list) else []


def _input_name(inp: dict[str, Any]) -> str:
    return str(inp.get("name") or "").lower()


def _build_link_source_map(links: Any) -> dict[str, str]:
    """`link_id -> source node id` from UI `links` rows `[id, src, src_slot, dst, dst_slot, type]`."""
    link_to_source: dict[str, str] = {}
    if not isinstance(links, list):
        return link_to_source
    for link in links:
        if isinstance(link, list) and len(link) >= 2 and link[0] is not None and link[1] is not None:
            link_to_source[str(link[0])] = str(link[1])
        elif isinstance(link, dict) and link.get("id") is not None and link.get("origin_id") is not None:
            link_to_source[str(link["id"])] = str(link["origin_id"])
    return link_to_source


@dataclass
class WorkflowGraph:
    """UI workflow (`nodes` + `links`) with id and link lookups."""

    nodes: list[dict[str, Any]]
    links: dict[str, str] = field(default_factory=dict)
    by_id: dict[str, dict[str, Any]] = field(default_factory=dict)
    max_depth: int = 50

    @classmethod
    def from_workflow(cls, nodes: Any, links: Any, max_depth: int = 50) -> "WorkflowGraph":
        node_list = [n for n in nodes if isinstance(n, dict)] if isinstance(nodes, list) else []
        by_id: dict[str, dict[str, Any]] = {}
        for node in node_list:
            node_id = node.get("id")
            if node_id is not None:
                by_id[str(node_id)] = node
        return cls(nodes=node_list, links=_build_link_source_map(links), by_id=by_id, max_depth=max_depth)

    def active_nodes(self) -> list[dict[str, Any]]:
        return [n for n in self.nodes if is_active(n)]

    def linked_source(self, inp: dict[str, Any], *, active_only: bool = True) -> dict[str, Any] | None:
        """Source node feeding a UI input slot, `None` when unlinked, dangling or inactive."""
        link = inp.get("link")
        if link is None or isinstance(link, bool):
            return None
        source_id = self.links.get(str(link))
        if source_id is None:
            return None
        source = self.by_id.get(source_id)
        if source is None:
            return None
        if active_only and not is_active(source):
            return None
        return source

    def linked_input(self, node: dict[str, Any], needle: str) -> dict[str, Any] | None:
        """Active source of the first input whose name contains `needle`."""
        for inp in _input_list(node):
            if needle in _input_name(inp):
                source = self.linked_source(inp)
                if source is not None:
                    return source
        return None


@dataclass
class ApiGraph:
    """API prompt graph (`{node_id: {"class_type", "inputs"}}`)."""

    by_id: dict[str, dict[str, Any]]
    max_depth: int = 50

    @classmethod
    def from_prompt(cls, root: Any, max_depth: int = 50) -> "ApiGraph":
        by_id: dict[str, dict[str, Any]] = {}
        if isinstance(root, dict):
            for key, node in root.items():
                if isinstance(node, dict) and ("class_type" in node or "inputs" in node):
                    by_id[str(key)] = node
        return cls(by_id=by_id, max_depth=max_depth)

    def items(self) -> list[tuple[str, dict[str, Any]]]:
        return list(self.by_id.items())

    def linked_node(self, node: dict[str, Any], input_name: str) -> dict[str, Any] | None:
        resolved = _resolve_link(_inputs(node).get(input_name))
        if not resolved:
            return None
        return self.by_id.get(resolved[0])

    def node_for_link(self, value: Any) -> tuple[str, dict[str, Any]] | None:
        resolved = _resolve_link(value)
        if not resolved:
            return None
        node = self.by_id.get(resolved[0])
        if node is None:
            return None
        return resolved[0], node
