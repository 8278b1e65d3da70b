"""Configuration module for imagelink."""

from imagelink.config.loader import load_config, save_config, get_config_path
from imagelink.config.schema import Config

__all__ = ["Config", "load_config", "save_config", "get_config_path"]
