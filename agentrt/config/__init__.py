"""Configuration module for agentrt."""

from agentrt.config.loader import get_config_path, load_config, save_config
from agentrt.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]
