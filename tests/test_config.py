"""Tests for configuration loading."""
import json


def test_load_config_defaults_when_missing(tmp_path, monkeypatch):
    from podfeed.config import load_config

    monkeypatch.delenv("VIMEO_TOKEN", raising=False)
    config = load_config(tmp_path / "missing.json")

    assert config["storage"]["backend"] == "sqlite"
    assert config["feeds"]["page_size"] == 50
    assert config["vimeo"]["token"] == ""


def test_load_config_merges_nested_sections(tmp_path, monkeypatch):
    from podfeed.config import load_config

    monkeypatch.delenv("VIMEO_TOKEN", raising=False)
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"storage": {"dynamo": {"feeds_table": "MyFeeds"}}}))

    config = load_config(path)

    assert config["storage"]["dynamo"]["feeds_table"] == "MyFeeds"
    assert config["storage"]["dynamo"]["pledges_table"] == "Pledges"


def test_token_from_environment(tmp_path, monkeypatch):
    from podfeed.config import load_config

    monkeypatch.setenv("VIMEO_TOKEN", "secret")

    assert load_config(tmp_path / "missing.json")["vimeo"]["token"] == "secret"
