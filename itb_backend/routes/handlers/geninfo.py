"""
Generation-info extraction endpoints.

Callers that already read an image's text chunks post them here and get the
canonical field map back inside the usual Result envelope.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

from aiohttp import web

from ...features.metadata.chunk_selector import score_chunk, select_best_chunk
from ...features.metadata.service import classify_quality, extract_from_chunks, extract_metadata_result
from ...shared import CanonicalKey, ErrorCode, Result, Software, get_logger, log_structured
from ..core import _json_response, _read_json, safe_error_message

logger = get_logger(__name__)

MAX_CHUNKS = 64


def _chunk_list(body: dict[str, Any]) -> list[str | None] | Result:
    chunks = body.get("chunks")
    if not isinstance(chunks, list):
        return Result.Err(ErrorCode.INVALID_INPUT, "'chunks' must be a list")
    if len(chunks) > MAX_CHUNKS:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Too many chunks (max {MAX_CHUNKS})", limit=MAX_CHUNKS)
    if any(c is not None and not isinstance(c, str) for c in chunks):
        return Result.Err(ErrorCode.INVALID_INPUT, "'chunks' entries must be strings or null")
    return chunks


def _extract_chunks_result(chunks: list[str | None], width: Any, height: Any) -> Result[dict[str, str]]:
    data = extract_from_chunks(chunks, width=width, height=height)
    return Result.Ok(
        data,
        software=data.get(CanonicalKey.SOFTWARE, Software.UNKNOWN.value),
        quality=classify_quality(data),
    )


def register_geninfo_routes(routes: web.RouteTableDef) -> None:
    """Expose chunk scoring and metadata extraction."""

    @routes.post("/itb/geninfo/extract")
    async def extract_geninfo(request: web.Request) -> web.Response:
        body_res = await _read_json(request)
        if not body_res.ok:
            return _json_response(body_res)
        body = body_res.unwrap_or({})

        try:
            if "chunks" in body:
                chunks = _chunk_list(body)
                if isinstance(chunks, Result):
                    return _json_response(chunks)
                result = await asyncio.to_thread(
                    _extract_chunks_result, chunks, body.get("width"), body.get("height")
                )
            elif "text" in body:
                result = await asyncio.to_thread(extract_metadata_result, body.get("text"))
            else:
                result = Result.Err(ErrorCode.INVALID_INPUT, "Expected 'text' or 'chunks'")
        except Exception as exc:
            log_structured(
                logger,
                logging.WARNING,
                "Metadata extraction failed",
                path=request.path,
                body_keys=sorted(body),
                error=type(exc).__name__,
            )
            return _json_response(
                Result.Err(ErrorCode.METADATA_FAILED, safe_error_message(exc, "Metadata extraction failed")),
                status=500,
            )
        return _json_response(result)

    @routes.post("/itb/geninfo/score")
    async def score_geninfo_chunks(request: web.Request) -> web.Response:
        body_res = await _read_json(request)
        if not body_res.ok:
            return _json_response(body_res)
        chunks = _chunk_list(body_res.unwrap_or({}))
        if isinstance(chunks, Result):
            return _json_response(chunks)

        scores = [score_chunk(c) for c in chunks]
        best = select_best_chunk(chunks)
        selected = None
        if best is not None:
            selected = next(i for i, c in enumerate(chunks) if c is best)
        return _json_response(Result.Ok({"scores": scores, "selected": selected}))
