"""Configuration module for qixclient."""

from qixclient.config.loader import load_config, get_config_path
from qixclient.config.schema import Config, EngineConfig
from qixclient.config.access import get_config, clear_config_cache

__all__ = ["Config", "EngineConfig", "load_config", "get_config_path", "get_config", "clear_config_cache"]
