import pytest

from itb_backend import config
from itb_backend.utils import parse_bool


def test_defaults(monkeypatch):
    for name in ("ITB_MAX_GRAPH_DEPTH", "ITB_MAX_LINK_DEPTH", "ITB_MAX_METADATA_JSON_SIZE", "ITB_DEBUG"):
        monkeypatch.delenv(name, raising=False)

    assert config.max_graph_depth() == 50
    assert config.max_link_depth() == 50
    assert config.max_metadata_json_size() == 10 * 1024 * 1024
    assert config.debug_enabled() is False


@pytest.mark.parametrize("raw,expected", [("12", 12), ("0", 1), ("-5", 1), ("5000", 1000), ("abc", 50), ("  ", 50)])
def test_graph_depth_is_clamped(monkeypatch, raw, expected):
    monkeypatch.setenv("ITB_MAX_GRAPH_DEPTH", raw)
    assert config.max_graph_depth() == expected


def test_metadata_size_floor(monkeypatch):
    monkeypatch.setenv("ITB_MAX_METADATA_JSON_SIZE", "10")
    assert config.max_metadata_json_size() == 1024


@pytest.mark.parametrize("raw,expected", [("1", True), ("yes", True), ("off", False), ("0", False), ("garbage", False)])
def test_debug_flag(monkeypatch, raw, expected):
    monkeypatch.setenv("ITB_DEBUG", raw)
    assert config.debug_enabled() is expected


def test_parse_bool():
    assert parse_bool("Enabled") is True
    assert parse_bool("disabled", default=True) is False
    assert parse_bool("2.5") is True
    assert parse_bool(None, default=True) is True
