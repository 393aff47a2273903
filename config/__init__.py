"""Configuration management."""
import os
import yaml
from pathlib import Path

_config = None
_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides."""
    global _config

    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "METRICWATCH_DB_PATH": ("database", "path"),
        "METRICWATCH_LOG_LEVEL": ("logging", "level"),
        "METRICWATCH_DEFAULT_PAGE_SIZE": ("events", "default_page_size"),
    }
    for env_key, config_path in env_map.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    _config = config
    return config


def get_config():
    """Return cached config, loading defaults if needed."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    required_sections = ["database", "logging", "events", "names", "web", "auth"]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    events = config["events"]
    if not isinstance(events.get("max_page_size"), int) or not 0 < events["max_page_size"] <= 500:
        raise ValueError("events.max_page_size must be an integer in 1..500")
    if not isinstance(events.get("default_page_size"), int) \
            or not 0 < events["default_page_size"] <= events["max_page_size"]:
        raise ValueError("events.default_page_size must be between 1 and events.max_page_size")

    if not isinstance(config["names"].get("scan_limit"), int) or config["names"]["scan_limit"] <= 0:
        raise ValueError("names.scan_limit must be a positive integer")

    if not isinstance(config["auth"].get("tokens") or {}, dict):
        raise ValueError("auth.tokens must be a mapping of token to user id")
