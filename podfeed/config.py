"""Configuration loading."""
import copy
import json
import os
from pathlib import Path

DEFAULT_CONFIG = {
    "vimeo": {"token": "", "timeout": 30},
    "storage": {
        "backend": "sqlite",
        "sqlite_path": "data/podfeed.db",
        "dynamo": {
            "region": "us-east-1",
            "endpoint_url": None,
            "feeds_table": "Feeds",
            "pledges_table": "Pledges",
        },
    },
    "feeds": {"page_size": 50, "quality": "high", "ttl_days": 30},
    "logging": {"retention_days": 30},
}


def get_project_dir() -> Path:
    return Path(__file__).parent.parent


def get_config_path() -> Path:
    override = os.environ.get("PODFEED_CONFIG")
    if override:
        return Path(override)
    return get_project_dir() / "config" / "config.json"


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: Path | None = None) -> dict:
    """Load JSON config merged over defaults.

    A missing file yields the defaults. The Vimeo token may also come
    from VIMEO_TOKEN.
    """
    config = copy.deepcopy(DEFAULT_CONFIG)
    path = path or get_config_path()
    if path.exists():
        with open(path, encoding="utf-8") as f:
            _merge(config, json.load(f))

    token = os.environ.get("VIMEO_TOKEN")
    if token:
        config["vimeo"]["token"] = token
    return config


def get_sqlite_path(config: dict) -> Path:
    path = Path(config["storage"]["sqlite_path"])
    if not path.is_absolute():
        path = get_project_dir() / path
    return path
