"""ComfyUI strategy: routes graph-shaped fields to the UI or API resolver."""

from __future__ import annotations

from typing import Any

from ...shared import Software
from ..metadata.base import ExtractionContext, MetadataStrategy
from .api_resolver import resolve_api_graph, scan_inputs_block
from .graph_converter import is_node_id
from .workflow_resolver import resolve_workflow


class ComfyUIStrategy(MetadataStrategy):
    """
    Recognises three shapes while the document is walked:

    - `nodes` array: a UI workflow, resolved once as a whole graph;
    - `"<digits>": {"class_type", "inputs"}`: the first API node seen triggers
      a pass over its parent mapping;
    - any other `inputs` object: per-field scan (core params skipped once a
      graph pass ran).
    """

    name = "comfyui"

    def supports(self, software: Software) -> bool:
        return True

    def extract(self, key: str, value: Any, parent: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
        if key == "nodes" and isinstance(value, list):
            if not ctx.graph_analyzed:
                resolve_workflow(parent, result, ctx)
        elif is_node_id(key) and isinstance(value, dict) and "class_type" in value and "inputs" in value:
            if not ctx.graph_analyzed:
                resolve_api_graph(parent, result, ctx)
        elif key == "inputs" and isinstance(value, dict):
            scan_inputs_block(value, parent, result, ctx, skip_core=ctx.graph_analyzed)


COMFYUI_STRATEGY = ComfyUIStrategy()
