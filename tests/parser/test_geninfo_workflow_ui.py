import json

from itb_backend import extract_metadata
from itb_backend.features.geninfo.graph_converter import WorkflowGraph
from itb_backend.features.geninfo.sampler_tracer import cfg_from_widgets, select_sampler


def _node(node_id, node_type, inputs=None, widgets=None, mode=0, title=None):
    node = {
        "id": node_id,
        "type": node_type,
        "mode": mode,
        "inputs": inputs or [],
        "widgets_values": widgets or [],
    }
    if title:
        node["title"] = title
    return node


def _txt2img_workflow(reroutes: int = 0, sampler_widgets=None):
    """Checkpoint -> 2 encoders -> KSampler -> VAEDecode -> SaveImage, with optional reroutes on the image path."""
    nodes = [
        _node(4, "CheckpointLoaderSimple", widgets=["models/sd_xl_base_1.0.safetensors"]),
        _node(6, "CLIPTextEncode", [{"name": "clip", "link": 3}], ["a red fox in snow"]),
        _node(7, "CLIPTextEncode", [{"name": "clip", "link": 5}], ["blurry, lowres"]),
        _node(
            3,
            "KSampler",
            [
                {"name": "model", "link": 1},
                {"name": "positive", "link": 4},
                {"name": "negative", "link": 6},
                {"name": "latent_image", "link": 2},
            ],
            sampler_widgets or [123456789, "fixed", 30, 6.5, "dpmpp_2m", "karras", 1],
        ),
        _node(8, "VAEDecode", [{"name": "samples", "link": 7}, {"name": "vae", "link": 8}]),
    ]
    links = [
        [1, 4, 0, 3, 0, "MODEL"],
        [3, 4, 1, 6, 0, "CLIP"],
        [5, 4, 1, 7, 0, "CLIP"],
        [4, 6, 0, 3, 1, "CONDITIONING"],
        [6, 7, 0, 3, 2, "CONDITIONING"],
        [7, 3, 0, 8, 0, "LATENT"],
        [8, 4, 2, 8, 1, "VAE"],
    ]
    source = 8
    next_link = 100
    for i in range(reroutes):
        reroute_id = 50 + i
        links.append([next_link, source, 0, reroute_id, 0, "IMAGE"])
        nodes.append(_node(reroute_id, "Reroute", [{"name": "", "link": next_link}]))
        source = reroute_id
        next_link += 1
    links.append([next_link, source, 0, 9, 0, "IMAGE"])
    nodes.append(_node(9, "SaveImage", [{"name": "images", "link": next_link}], ["ComfyUI"]))
    return {"nodes": nodes, "links": links}


def _extract(doc):
    return extract_metadata(json.dumps(doc))


def test_basic_txt2img_workflow():
    result = _extract(_txt2img_workflow())

    assert result["Software"] == "ComfyUI (Workflow)"
    assert result["Prompt"] == "a red fox in snow"
    assert result["Negative Prompt"] == "blurry, lowres"
    assert result["Steps"] == "30"
    assert result["Seed"] == "123456789"
    assert result["CFG"] == "6.5"
    assert result["Sampler"] == "dpmpp_2m"
    assert result["Scheduler"] == "karras"
    assert result["Model"] == "sd_xl_base_1.0"


def test_reroutes_on_image_path_are_transparent():
    direct = _extract(_txt2img_workflow())
    for n in (1, 3):
        routed = _extract(_txt2img_workflow(reroutes=n))
        for key in ("Steps", "Seed", "CFG", "Sampler", "Scheduler", "Prompt", "Negative Prompt", "Model"):
            assert routed[key] == direct[key], key


def test_cfg_is_omitted_when_it_collides_with_steps():
    doc = _txt2img_workflow(sampler_widgets=[987654321, "fixed", 25, 25, "euler", "normal"])
    result = _extract(doc)

    assert result["Steps"] == "25"
    assert "CFG" not in result
    assert result["Sampler"] == "euler"
    assert result["Scheduler"] == "normal"


def test_cfg_from_widgets_skips_steps_value():
    assert cfg_from_widgets([25, 25], 25) is None
    assert cfg_from_widgets([25, 7, 1], 25) == 7.0
    assert cfg_from_widgets([0.5, 250], None) is None


def test_bypassed_sampler_and_muted_encoder_are_ignored():
    doc = _txt2img_workflow()
    # A second, bypassed branch with more steps must lose.
    doc["nodes"] += [
        _node(20, "CLIPTextEncode", [], ["muted branch prompt"], mode=4),
        _node(21, "KSampler", [{"name": "positive", "link": 200}], [5555555, "fixed", 80, 9, "euler", "simple", 1], mode=2),
        _node(22, "VAEDecode", [{"name": "samples", "link": 201}]),
        _node(23, "SaveImage", [{"name": "images", "link": 202}]),
    ]
    doc["links"] += [
        [200, 20, 0, 21, 1, "CONDITIONING"],
        [201, 21, 0, 22, 0, "LATENT"],
        [202, 22, 0, 23, 0, "IMAGE"],
    ]
    result = _extract(doc)

    assert result["Steps"] == "30"
    assert result["Seed"] == "123456789"
    assert "muted branch prompt" not in result["Prompt"]


def test_muted_encoder_on_active_sampler_contributes_nothing():
    doc = _txt2img_workflow()
    for node in doc["nodes"]:
        if node["id"] == 6:
            node["mode"] = 4
    result = _extract(doc)

    assert "a red fox" not in result.get("Prompt", "")
    assert result["Negative Prompt"] == "blurry, lowres"


def test_highest_steps_wins_between_traced_samplers():
    doc = _txt2img_workflow()
    doc["nodes"] += [
        _node(30, "KSampler", [], [222222222, "fixed", 12, 4, "euler", "simple", 1]),
        _node(31, "PreviewImage", [{"name": "images", "link": 300}]),
    ]
    doc["links"].append([300, 30, 0, 31, 0, "IMAGE"])
    graph = WorkflowGraph.from_workflow(doc["nodes"], doc["links"])

    choice = select_sampler(graph)

    assert choice is not None
    assert choice.node["id"] == 3
    assert choice.steps == 30


def test_seed_widgets_override_sampler_seed():
    doc = _txt2img_workflow(sampler_widgets=[42, "fixed", 20, 7.5, "euler", "normal", 1])
    doc["extra"] = {"seed_widgets": {"3": 0}}
    result = _extract(doc)

    assert result["Seed"] == "42"


def test_lora_loader_and_inline_prompt_loras():
    doc = _txt2img_workflow()
    doc["nodes"].append(_node(10, "LoraLoader", [{"name": "model", "link": 1}], ["detail_tweaker.safetensors", 0.8, 1]))
    doc["nodes"][1]["widgets_values"] = ["a red fox <lora:snowy_style:0.6> <lora:snowy_style:0.6>"]
    result = _extract(doc)

    loras = result["Loras"]
    assert "<lora:detail_tweaker:0.8>" in loras
    assert loras.count("snowy_style") == 1
    assert "<lora:snowy_style:0.6>" in loras


def test_conditioning_combine_joins_both_branches():
    doc = _txt2img_workflow()
    doc["nodes"] += [
        _node(40, "CLIPTextEncode", [], ["a castle"]),
        _node(41, "CLIPTextEncode", [], ["at sunset"]),
        _node(42, "ConditioningCombine", [{"name": "conditioning_1", "link": 400}, {"name": "conditioning_2", "link": 401}]),
    ]
    doc["links"] += [[400, 40, 0, 42, 0, "CONDITIONING"], [401, 41, 0, 42, 1, "CONDITIONING"], [402, 42, 0, 3, 1, "CONDITIONING"]]
    for node in doc["nodes"]:
        if node["id"] == 3:
            node["inputs"][1]["link"] = 402
    result = _extract(doc)

    assert result["Prompt"] == "a castle, at sunset"


def test_string_concat_feeding_encoder_text_input():
    doc = _txt2img_workflow()
    doc["nodes"] += [
        _node(60, "PrimitiveString", [], ["portrait of a knight"]),
        _node(61, "PrimitiveString", [], ["dramatic lighting"]),
        _node(62, "StringConcatenate", [{"name": "string_a", "link": 600}, {"name": "string_b", "link": 601}]),
    ]
    doc["links"] += [[600, 60, 0, 62, 0, "STRING"], [601, 61, 0, 62, 1, "STRING"], [602, 62, 0, 6, 1, "STRING"]]
    for node in doc["nodes"]:
        if node["id"] == 6:
            node["inputs"].append({"name": "text", "link": 602, "widget": {"name": "text"}})
    result = _extract(doc)

    assert result["Prompt"] == "portrait of a knight, dramatic lighting"


def test_workflow_without_sampler_collects_loose_text():
    doc = {
        "nodes": [
            _node(1, "CLIPTextEncode", [], ["an empty workshop"]),
            _node(2, "PrimitiveNode", [], ["randomize"]),
        ],
        "links": [],
    }
    result = _extract(doc)

    assert result["Software"] == "ComfyUI (Workflow)"
    assert result["Prompt"] == "an empty workshop"
    assert "Steps" not in result


def test_cyclic_workflow_links_terminate():
    doc = _txt2img_workflow()
    doc["nodes"] += [
        _node(70, "Reroute", [{"name": "", "link": 700}]),
        _node(71, "Reroute", [{"name": "", "link": 701}]),
    ]
    doc["links"] += [[700, 71, 0, 70, 0, "*"], [701, 70, 0, 71, 0, "*"], [702, 70, 0, 3, 1, "CONDITIONING"]]
    for node in doc["nodes"]:
        if node["id"] == 3:
            node["inputs"][1]["link"] = 702
    result = _extract(doc)

    assert result["Steps"] == "30"
    assert "a red fox" not in result.get("Prompt", "")


def _flux_workflow(guider_type="CFGGuider"):
    """SamplerCustomAdvanced takes its conditioning through a linked guider node."""
    if guider_type == "BasicGuider":
        guider_inputs = [{"name": "model", "link": None}, {"name": "conditioning", "link": 820}]
    else:
        guider_inputs = [
            {"name": "model", "link": None},
            {"name": "positive", "link": 820},
            {"name": "negative", "link": 821},
        ]
    nodes = [
        _node(80, "PrimitiveString", [], ["a misty pine forest"]),
        _node(81, "PrimitiveString", [], ["at dawn"]),
        _node(82, "StringConcatenate", [{"name": "string_a", "link": 800}, {"name": "string_b", "link": 801}]),
        _node(6, "CLIPTextEncode", [{"name": "text", "link": 802, "widget": {"name": "text"}}], [""]),
        _node(7, "CLIPTextEncode", [], ["blurry, watermark"]),
        _node(22, guider_type, guider_inputs, [7] if guider_type == "CFGGuider" else []),
        _node(
            13,
            "SamplerCustomAdvanced",
            [
                {"name": "noise", "link": None},
                {"name": "guider", "link": 822},
                {"name": "sampler", "link": None},
                {"name": "sigmas", "link": None},
                {"name": "latent_image", "link": None},
            ],
        ),
        _node(8, "VAEDecode", [{"name": "samples", "link": 823}]),
        _node(9, "SaveImage", [{"name": "images", "link": 824}], ["flux"]),
    ]
    links = [
        [800, 80, 0, 82, 0, "STRING"],
        [801, 81, 0, 82, 1, "STRING"],
        [802, 82, 0, 6, 0, "STRING"],
        [820, 6, 0, 22, 1, "CONDITIONING"],
        [821, 7, 0, 22, 2, "CONDITIONING"],
        [822, 22, 0, 13, 1, "GUIDER"],
        [823, 13, 0, 8, 0, "LATENT"],
        [824, 8, 0, 9, 0, "IMAGE"],
    ]
    return {"nodes": nodes, "links": links}


def test_custom_sampler_prompts_come_from_linked_guider():
    result = _extract(_flux_workflow())

    assert result["Prompt"] == "a misty pine forest, at dawn"
    assert result["Negative Prompt"] == "blurry, watermark"
    assert result["Steps"] == "20"


def test_basic_guider_single_conditioning_is_the_prompt():
    result = _extract(_flux_workflow("BasicGuider"))

    assert result["Prompt"] == "a misty pine forest, at dawn"
    assert "Negative Prompt" not in result
