from itb_shared import ErrorCode, Result


def test_ok_and_err_envelopes():
    ok = Result.Ok({"Prompt": "a cat"}, software="A1111 / Forge")
    assert ok.ok and ok.code == "OK"
    assert ok.meta == {"software": "A1111 / Forge"}
    assert ok.unwrap_or({}) == {"Prompt": "a cat"}

    err = Result.Err(ErrorCode.INVALID_INPUT, "bad", field="text")
    assert not err.ok
    assert err.code == "INVALID_INPUT"
    assert err.meta == {"field": "text"}
    assert err.unwrap_or({}) == {}


def test_unwrap_or_keeps_falsy_data():
    assert Result.Ok(b"").unwrap_or(b"fallback") == b""
    assert Result.Ok(None).unwrap_or({}) == {}
