"""
Metadata engine - turns the best metadata chunk of an image into canonical fields.
"""
import logging
from typing import Any, Dict, Iterable, Optional, Sequence

from ...shared import (
    CORE_PARAM_KEYS,
    NO_METADATA_MESSAGE,
    NO_PROMPT_MESSAGE,
    CanonicalKey,
    ErrorCode,
    MetadataQuality,
    Result,
    Software,
    get_logger,
    log_structured,
)
from .base import ExtractionContext, MetadataStrategy
from .chunk_selector import identify_software, select_best_chunk, unwrap_envelope
from .dispatcher import DEFAULT_STRATEGIES, walk
from .parsing_utils import (
    find_longest_text,
    looks_like_json_payload,
    looks_like_text_parameters,
    parse_a1111_params,
    parse_json_payload,
)

logger = get_logger(__name__)

_FULL_QUALITY_KEYS = (CanonicalKey.STEPS, CanonicalKey.SEED, CanonicalKey.CFG, CanonicalKey.SAMPLER)


def _is_blank(raw: Any) -> bool:
    return raw is None or not str(raw).strip()


def _positive_dimension(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return str(number) if number > 0 else None


def classify_quality(result: Dict[str, str]) -> MetadataQuality:
    """
    `full` when prompt and core sampling parameters resolved, `none` when nothing did.

    `degraded` marks a JSON payload that could not be parsed (malformed or
    oversized): the raw text was kept as the prompt and nothing else resolved.
    """
    prompt = result.get(CanonicalKey.PROMPT)
    has_prompt = bool(prompt) and prompt not in (NO_METADATA_MESSAGE, NO_PROMPT_MESSAGE)
    has_core = any(result.get(k) for k in CORE_PARAM_KEYS)
    software = result.get(CanonicalKey.SOFTWARE, Software.UNKNOWN.value)
    raw = result.get(CanonicalKey.RAW)
    if not has_core and raw and prompt and prompt.strip() == raw.strip() and looks_like_json_payload(raw):
        return "degraded"
    if not has_core and (prompt == NO_METADATA_MESSAGE or software == Software.UNKNOWN.value):
        return "none"
    if has_prompt and all(result.get(k) for k in _FULL_QUALITY_KEYS):
        return "full"
    return "partial"


class MetadataEngine:
    """
    Stateless extraction facade.

    One instance can serve any number of threads: strategies are shared
    singletons and every call builds its own result map and context.
    """

    def __init__(self, strategies: Sequence[MetadataStrategy] = DEFAULT_STRATEGIES):
        self._strategies = tuple(strategies)

    def extract(self, raw: Optional[str]) -> Dict[str, str]:
        """Extract canonical fields from one raw chunk. Never raises."""
        return self._extract_into({}, raw)

    def extract_from_chunks(
        self,
        candidates: Optional[Iterable[Optional[str]]],
        width: Any = None,
        height: Any = None,
    ) -> Dict[str, str]:
        """
        Pick the best candidate chunk and extract it.

        Physical dimensions from the image reader are written first so that
        dimensions found in the metadata itself take precedence.
        """
        result: Dict[str, str] = {}
        for key, value in ((CanonicalKey.WIDTH, width), (CanonicalKey.HEIGHT, height)):
            dim = _positive_dimension(value)
            if dim is not None:
                result[key] = dim
        try:
            best = select_best_chunk(list(candidates or ()))
        except Exception as exc:
            logger.debug("Chunk selection failed: %s", exc)
            best = None
        return self._extract_into(result, best)

    def extract_result(self, raw: Optional[str]) -> Result[Dict[str, str]]:
        if raw is not None and not isinstance(raw, str):
            return Result.Err(ErrorCode.INVALID_INPUT, "Metadata must be a string or null")
        data = self.extract(raw)
        return Result.Ok(
            data,
            software=data.get(CanonicalKey.SOFTWARE, Software.UNKNOWN.value),
            quality=classify_quality(data),
        )

    # ------------------------------------------------------------------

    def _extract_into(self, result: Dict[str, str], raw: Optional[str]) -> Dict[str, str]:
        if _is_blank(raw):
            result[CanonicalKey.PROMPT] = NO_METADATA_MESSAGE
            return result
        text = str(raw)
        result[CanonicalKey.RAW] = text
        trimmed = text.strip()
        try:
            if looks_like_json_payload(trimmed):
                self._extract_json(trimmed, result)
            elif looks_like_text_parameters(text):
                result.update(parse_a1111_params(text))
                result[CanonicalKey.SOFTWARE] = Software.A1111.value
            else:
                result[CanonicalKey.PROMPT] = text
                result[CanonicalKey.SOFTWARE] = Software.UNKNOWN.value
        except Exception as exc:
            logger.debug("Metadata extraction degraded to raw text: %s", exc)
            result[CanonicalKey.PROMPT] = text
            result[CanonicalKey.SOFTWARE] = Software.UNKNOWN.value
        return result

    def _extract_json(self, text: str, result: Dict[str, str]) -> None:
        try:
            root = parse_json_payload(text)
        except Exception as exc:
            log_structured(logger, logging.DEBUG, "Malformed metadata JSON", size=len(text), error=str(exc)[:200])
            result[CanonicalKey.PROMPT] = text
            result[CanonicalKey.SOFTWARE] = Software.UNKNOWN.value
            return

        software = identify_software(root)
        ctx = ExtractionContext(software=software)
        result[CanonicalKey.SOFTWARE] = software.value
        document = unwrap_envelope(root)
        walk(document, result, ctx, self._strategies)

        if not result.get(CanonicalKey.PROMPT):
            result[CanonicalKey.PROMPT] = find_longest_text(document) or NO_PROMPT_MESSAGE


_DEFAULT_ENGINE = MetadataEngine()


def extract_metadata(raw: Optional[str]) -> Dict[str, str]:
    """Module-level shortcut over a shared default engine."""
    return _DEFAULT_ENGINE.extract(raw)


def extract_from_chunks(
    candidates: Optional[Iterable[Optional[str]]],
    width: Any = None,
    height: Any = None,
) -> Dict[str, str]:
    return _DEFAULT_ENGINE.extract_from_chunks(candidates, width=width, height=height)


def extract_metadata_result(raw: Optional[str]) -> Result[Dict[str, str]]:
    return _DEFAULT_ENGINE.extract_result(raw)
