import json

from itb_backend.features.metadata import chunk_selector as cs
from itb_backend.shared import Software

API_CHUNK = json.dumps({"3": {"class_type": "KSampler", "inputs": {"steps": 20}}})
WORKFLOW_CHUNK = json.dumps({"nodes": [], "links": []})
PARAMS_CHUNK = "a cat\nSteps: 20, Sampler: Euler, Seed: 1"
SWARM_CHUNK = json.dumps({"sui_image_params": {"prompt": "a lighthouse"}})


def test_score_table():
    assert cs.score_chunk(SWARM_CHUNK) == 100
    assert cs.score_chunk(API_CHUNK) == 90
    assert cs.score_chunk(PARAMS_CHUNK) == 80
    assert cs.score_chunk(WORKFLOW_CHUNK) == 10
    assert cs.score_chunk("hello") == 0
    assert cs.score_chunk("") == 0
    assert cs.score_chunk(None) == 0


def test_select_best_chunk_prefers_highest_score():
    assert cs.select_best_chunk([WORKFLOW_CHUNK, PARAMS_CHUNK, API_CHUNK]) == API_CHUNK
    assert cs.select_best_chunk([PARAMS_CHUNK, SWARM_CHUNK]) == SWARM_CHUNK


def test_select_best_chunk_first_wins_ties_and_skips_blanks():
    first = "caption one"
    assert cs.select_best_chunk([None, "  ", first, "caption two"]) is first
    assert cs.select_best_chunk([None, ""]) is None
    assert cs.select_best_chunk(None) is None


def test_identify_software():
    assert cs.identify_software({"sui_image_params": {}}) == Software.SWARMUI
    assert cs.identify_software({"meta": {"invokeai_metadata": {}}}) == Software.INVOKEAI
    assert cs.identify_software({"uc": "lowres", "prompt": "1girl"}) == Software.NOVELAI
    assert cs.identify_software(json.loads(API_CHUNK)) == Software.COMFYUI
    assert cs.identify_software(json.loads(WORKFLOW_CHUNK)) == Software.COMFYUI_WORKFLOW
    assert cs.identify_software({"prompt": json.loads(API_CHUNK)}) == Software.COMFYUI
    assert cs.identify_software({"prompt": API_CHUNK}) == Software.COMFYUI
    assert cs.identify_software({"workflow": WORKFLOW_CHUNK}) == Software.COMFYUI_WORKFLOW
    assert cs.identify_software({"foo": "bar"}) == Software.UNKNOWN


def test_unwrap_envelope_parses_string_payloads_only():
    wrapped = {"prompt": API_CHUNK, "workflow": "not json", "extra": 1}
    unwrapped = cs.unwrap_envelope(wrapped)

    assert unwrapped["prompt"]["3"]["class_type"] == "KSampler"
    assert unwrapped["workflow"] == "not json"
    assert wrapped["prompt"] == API_CHUNK
