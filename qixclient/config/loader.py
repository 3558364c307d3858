"""Configuration loading utilities."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from qixclient.config.schema import Config


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".qixclient" / "config.json"


def get_data_dir() -> Path:
    """Get the qixclient data directory (logs live below it)."""
    path = Path.home() / ".qixclient"
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from file, falling back to environment and defaults.

    Values in the file win over QLIK_* environment variables; anything the
    file leaves out is still read from the environment.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object (not yet validated for connecting).
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path) as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("config file must be a JSON object")
            data = _migrate_config(data)
            allowed = set(Config.model_fields)
            data = {k: v for k, v in convert_keys(data).items() if k in allowed}
            return Config(**data)
        except (json.JSONDecodeError, ValueError) as e:
            raise ValueError(
                f"Failed to load config from {path}: {e}. "
                "Fix the file or remove it to fall back to the environment."
            ) from e

    return Config()


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    from qixclient.config.access import clear_config_cache

    clear_config_cache(config_path=path)


def _migrate_config(data: dict) -> dict:
    """Accept the older flat key names used by the REST tooling."""
    if "baseUrl" in data and "tenantUrl" not in data:
        data["tenantUrl"] = data.pop("baseUrl")
    if "qlikApiKey" in data and "apiKey" not in data:
        data["apiKey"] = data.pop("qlikApiKey")
    engine = data.get("engine")
    if isinstance(engine, dict):
        timeout_ms = engine.pop("timeoutMs", None)
        if isinstance(timeout_ms, (int, float)) and "callTimeout" not in engine:
            engine["callTimeout"] = timeout_ms / 1000.0
    return data


def convert_keys(data: Any) -> Any:
    """Convert camelCase keys to snake_case for Pydantic."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Convert snake_case keys to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.lower())
    return "".join(result)


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    components = name.split("_")
    return components[0] + "".join(x.title() for x in components[1:])
