import json
from concurrent.futures import ThreadPoolExecutor

import pytest

from itb_backend import MetadataEngine, extract_from_chunks, extract_metadata
from itb_backend.features.metadata.base import ExtractionContext, MetadataStrategy
from itb_backend.features.metadata.service import classify_quality, extract_metadata_result
from itb_backend.shared import NO_METADATA_MESSAGE, NO_PROMPT_MESSAGE

A1111_TEXT = "prompt text\nNegative prompt: neg text\nSteps: 20, Sampler: Euler, CFG scale: 7, Seed: 123, Size: 512x768"

API_PROMPT = {
    "3": {
        "class_type": "KSampler",
        "inputs": {"seed": 847593291, "steps": 25, "cfg": 7.0, "sampler_name": "euler", "scheduler": "normal", "positive": ["6", 0]},
    },
    "6": {"class_type": "CLIPTextEncode", "inputs": {"text": "A beautiful landscape, mountains"}},
}


@pytest.mark.parametrize("raw", [None, "", "   \n\t"])
def test_empty_input_yields_exactly_no_metadata(raw):
    assert extract_metadata(raw) == {"Prompt": NO_METADATA_MESSAGE}


def test_unknown_text_is_kept_as_prompt():
    result = extract_metadata("a photo of my cat")

    assert result == {"Raw": "a photo of my cat", "Prompt": "a photo of my cat", "Software": "Unknown"}


def test_malformed_json_degrades_to_raw_text():
    raw = '{"3": {"class_type": "KSampler", "inputs": {'
    result = extract_metadata(raw)

    assert result["Software"] == "Unknown"
    assert result["Prompt"] == raw
    assert result["Raw"] == raw


def test_oversized_json_is_treated_as_unknown(monkeypatch):
    monkeypatch.setenv("ITB_MAX_METADATA_JSON_SIZE", "1024")
    raw = json.dumps({"text": "x" * 2048})
    result = extract_metadata(raw)

    assert result["Software"] == "Unknown"
    assert result["Prompt"] == raw


def test_json_without_prompt_gets_placeholder():
    result = extract_metadata('{"foo": 1, "bar": [1, 2]}')

    assert result["Software"] == "Unknown"
    assert result["Prompt"] == NO_PROMPT_MESSAGE


def test_longest_text_fallback():
    raw = json.dumps({"a": {"text": "short"}, "b": [{"text": "a much longer caption"}], "c": {"text": "{not this}"}})
    assert extract_metadata(raw)["Prompt"] == "a much longer caption"


def test_identical_input_gives_identical_output():
    raw = json.dumps(API_PROMPT)
    assert extract_metadata(raw) == extract_metadata(raw)
    assert extract_metadata(A1111_TEXT) == extract_metadata(A1111_TEXT)


def test_concurrent_extractions_do_not_interfere():
    inputs = [json.dumps(API_PROMPT), A1111_TEXT, "plain caption", None, '{"uc": "bad", "prompt": "1girl", "steps": 28}'] * 8
    expected = [extract_metadata(raw) for raw in inputs]

    with ThreadPoolExecutor(max_workers=8) as pool:
        actual = list(pool.map(extract_metadata, inputs))

    assert actual == expected


def test_strategy_errors_are_swallowed():
    class _Exploding(MetadataStrategy):
        name = "exploding"

        def supports(self, software):
            return True

        def extract(self, key, value, parent, result, ctx):
            raise RuntimeError("boom")

    engine = MetadataEngine(strategies=[_Exploding()])
    result = engine.extract('{"prompt": "kept anyway"}')

    assert result["Software"] == "Unknown"
    assert "Prompt" in result


def test_context_flags_never_leak_into_result():
    result = extract_metadata(json.dumps(API_PROMPT))
    flags = set(vars(ExtractionContext()))
    assert not flags & set(result)


def test_extract_from_chunks_picks_best_and_keeps_physical_dims():
    result = extract_from_chunks([None, "", "caption only", A1111_TEXT], width=640, height=480)
    assert result["Software"] == "A1111 / Forge"
    # Size from the parameters block wins over the reader's dimensions.
    assert (result["Width"], result["Height"]) == ("512", "768")

    result = extract_from_chunks(["a\nSteps: 20, Sampler: Euler"], width=640, height=480)
    assert (result["Width"], result["Height"]) == ("640", "480")

    result = extract_from_chunks(["a\nSteps: 20, Sampler: Euler"], width=True, height=0)
    assert "Width" not in result and "Height" not in result


def test_extract_from_chunks_without_candidates():
    assert extract_from_chunks([]) == {"Prompt": NO_METADATA_MESSAGE}
    assert extract_from_chunks(None, width=100, height=50) == {"Width": "100", "Height": "50", "Prompt": NO_METADATA_MESSAGE}


def test_result_wrapper_reports_software_and_quality():
    res = extract_metadata_result(json.dumps(API_PROMPT))
    assert res.ok
    assert res.meta == {"software": "ComfyUI", "quality": "full"}

    res = extract_metadata_result(None)
    assert res.ok and res.meta["quality"] == "none"

    bad = extract_metadata_result(123)
    assert not bad.ok
    assert bad.code == "INVALID_INPUT"


def test_quality_classification():
    assert classify_quality({"Prompt": NO_METADATA_MESSAGE}) == "none"
    assert classify_quality({"Prompt": "x", "Software": "Unknown"}) == "none"
    assert classify_quality({"Prompt": "x", "Software": "NovelAI", "Steps": "28"}) == "partial"
    full = {"Prompt": "x", "Software": "A1111 / Forge", "Steps": "20", "Seed": "1", "CFG": "7", "Sampler": "Euler"}
    assert classify_quality(full) == "full"


def test_unparseable_json_is_degraded_quality(monkeypatch):
    res = extract_metadata_result('{"3": {"class_type": "KSampler", "inputs": {')
    assert res.ok and res.meta["quality"] == "degraded"

    monkeypatch.setenv("ITB_MAX_METADATA_JSON_SIZE", "1024")
    res = extract_metadata_result(json.dumps({"text": "x" * 2048}))
    assert res.meta["quality"] == "degraded"

    assert classify_quality({"Raw": "hello", "Prompt": "hello", "Software": "Unknown"}) == "none"


def test_exif_prefixed_prompt_graph():
    result = extract_metadata("Prompt: " + json.dumps(API_PROMPT))

    assert result["Software"] == "ComfyUI"
    assert result["Prompt"] == "A beautiful landscape, mountains"
    assert result["Steps"] == "25"
