"""Depth-first strategy dispatch over a parsed metadata document."""

from __future__ import annotations

from typing import Any, Sequence

from ...shared import get_logger
from ..geninfo.comfy_strategy import COMFYUI_STRATEGY
from .base import ExtractionContext, MetadataStrategy
from .strategies import COMMON_STRATEGY, INVOKEAI_STRATEGY, NOVELAI_STRATEGY, SWARMUI_STRATEGY

logger = get_logger(__name__)

DEFAULT_STRATEGIES: tuple[MetadataStrategy, ...] = (
    SWARMUI_STRATEGY,
    COMFYUI_STRATEGY,
    INVOKEAI_STRATEGY,
    NOVELAI_STRATEGY,
    COMMON_STRATEGY,
)


def compatible_strategies(ctx: ExtractionContext, strategies: Sequence[MetadataStrategy]) -> list[MetadataStrategy]:
    """ComfyUI documents are handled by the ComfyUI strategy alone."""
    if ctx.is_comfy:
        return [s for s in strategies if s.name == COMFYUI_STRATEGY.name]
    return [s for s in strategies if s.supports(ctx.software)]


def walk(
    node: Any,
    result: dict[str, str],
    ctx: ExtractionContext,
    strategies: Sequence[MetadataStrategy] = DEFAULT_STRATEGIES,
) -> None:
    """
    Visit every object field depth-first, offering `(lower-cased key, value,
    parent)` to each compatible strategy before descending into the value.
    """
    _walk(node, result, ctx, compatible_strategies(ctx, strategies))


def _walk(node: Any, result: dict[str, str], ctx: ExtractionContext, active: list[MetadataStrategy]) -> None:
    if isinstance(node, dict):
        for key, value in node.items():
            lowered = str(key).lower()
            for strategy in active:
                _invoke(strategy, lowered, value, node, result, ctx)
            _walk(value, result, ctx, active)
    elif isinstance(node, list):
        for child in node:
            _walk(child, result, ctx, active)


def _invoke(
    strategy: MetadataStrategy,
    key: str,
    value: Any,
    parent: dict[str, Any],
    result: dict[str, str],
    ctx: ExtractionContext,
) -> None:
    try:
        strategy.extract(key, value, parent, result, ctx)
    except Exception as exc:
        logger.debug("Strategy %s failed on key %r: %s", strategy.name, key, exc)
