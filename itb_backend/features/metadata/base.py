"""
Per-call extraction state and the strategy contract.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ...shared import Software, is_comfy_software


@dataclass
class ExtractionContext:
    """
    Flags shared by the strategies of a single extraction call.

    A fresh context is built for every call and never stored in the result map.
    """

    software: Software = Software.UNKNOWN
    # Set after a structural graph pass; per-field scans then leave Steps/CFG/Seed/Sampler/Scheduler alone.
    core_params_locked: bool = False
    api_graph_analyzed: bool = False
    workflow_analyzed: bool = False
    # Set once the sampler's own positive/negative prompts were traced.
    prompt_locked: bool = False
    seed_locked: bool = False
    active_sampler_id: str | None = None

    @property
    def is_comfy(self) -> bool:
        return is_comfy_software(self.software)

    @property
    def graph_analyzed(self) -> bool:
        return self.api_graph_analyzed or self.workflow_analyzed


class MetadataStrategy:
    """
    A stateless field mapper invoked for every object field of the parsed document.

    Instances are module-level singletons shared across threads: all per-call
    state lives in `result` and `ctx`.
    """

    name: str = "base"

    def supports(self, software: Software) -> bool:
        return not is_comfy_software(software)

    def extract(self, key: str, value: Any, parent: dict[str, Any], result: dict[str, str], ctx: ExtractionContext) -> None:
        raise NotImplementedError
