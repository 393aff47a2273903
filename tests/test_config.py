"""Tests for configuration loading."""
import pytest

from config import load_config, _deep_merge


def test_defaults():
    config = load_config()
    assert config["events"]["default_page_size"] == 4
    assert config["events"]["max_page_size"] == 500
    assert config["names"]["scan_limit"] == 5000
    assert config["auth"]["tokens"] == {}


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("METRICWATCH_DB_PATH", "/tmp/elsewhere.db")
    monkeypatch.setenv("METRICWATCH_DEFAULT_PAGE_SIZE", "25")
    config = load_config()
    assert config["database"]["path"] == "/tmp/elsewhere.db"
    assert config["events"]["default_page_size"] == 25


def test_override_file(tmp_path):
    path = tmp_path / "local.yaml"
    path.write_text("auth:\n  tokens:\n    abc: alice\nweb:\n  port: 8080\n")
    config = load_config(str(path))
    assert config["auth"]["tokens"] == {"abc": "alice"}
    assert config["web"]["port"] == 8080
    assert config["web"]["host"] == "127.0.0.1"


@pytest.mark.parametrize("yaml_text", [
    "events:\n  max_page_size: 1000\n",
    "events:\n  default_page_size: 0\n",
    "names:\n  scan_limit: 0\n",
    "auth:\n  tokens: [a, b]\n",
])
def test_invalid_config(tmp_path, yaml_text):
    path = tmp_path / "bad.yaml"
    path.write_text(yaml_text)
    with pytest.raises(ValueError):
        load_config(str(path))


def test_deep_merge():
    merged = _deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}, "d": 4})
    assert merged == {"a": {"b": 1, "c": 3}, "d": 4}
