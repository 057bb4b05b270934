import pytest

from itb_backend.routes.core import request_json as rq


class _DummyContent:
    def __init__(self, chunks, exc=None):
        self._chunks = chunks
        self._exc = exc

    async def iter_chunked(self, _size):
        if self._exc is not None:
            raise self._exc
        for chunk in self._chunks:
            yield chunk


class _DummyRequest:
    def __init__(self, headers=None, chunks=None, exc=None):
        self.headers = headers or {}
        self.content = _DummyContent(chunks or [], exc=exc)


def test_content_length_errors() -> None:
    assert rq._content_length_error(_DummyRequest(headers={"Content-Length": "999"}), 100) is not None
    assert rq._content_length_error(_DummyRequest(headers={"Content-Length": "99"}), 100) is None
    assert rq._content_length_error(_DummyRequest(headers={"Content-Length": "bad"}), 100) is None
    assert rq._content_length_error(_DummyRequest(), 100) is None


def test_decode_and_parse_json_dict() -> None:
    ok = rq._decode_and_parse_json_dict(b'{"a":1}')
    assert ok.ok and ok.data == {"a": 1}

    assert rq._decode_and_parse_json_dict(b"").data == {}
    assert not rq._decode_and_parse_json_dict(b"\xff").ok
    assert not rq._decode_and_parse_json_dict(b"{").ok
    assert rq._decode_and_parse_json_dict(b"[]").code == "INVALID_JSON"


@pytest.mark.asyncio
async def test_read_request_body_limited_behaviors() -> None:
    res = await rq._read_request_body_limited(_DummyRequest(chunks=[b"{", b'"a":1', b"}"]), 100)
    assert res.ok and res.data == b'{"a":1}'

    res = await rq._read_request_body_limited(_DummyRequest(chunks=[b"x" * 101]), 100)
    assert not res.ok and res.code == "INVALID_INPUT"

    res = await rq._read_request_body_limited(_DummyRequest(exc=RuntimeError("boom")), 100)
    assert not res.ok and res.code == "INVALID_JSON"


@pytest.mark.asyncio
async def test_read_json_end_to_end(monkeypatch) -> None:
    res = await rq._read_json(_DummyRequest(chunks=[b'{"text": "hi"}']))
    assert res.ok and res.data == {"text": "hi"}

    # The floor applies even when a smaller limit is configured.
    monkeypatch.setenv("ITB_MAX_JSON_SIZE", "10")
    res = await rq._read_json(_DummyRequest(chunks=[b'{"text": "' + b"x" * 2000 + b'"}']))
    assert not res.ok and res.meta["limit"] == rq.MIN_JSON_BYTES

    big = await rq._read_json(_DummyRequest(headers={"Content-Length": str(10**9)}), max_bytes=2048)
    assert not big.ok and big.meta["size"] == 10**9
