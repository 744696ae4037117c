"""Configuration module for kyco-bridge."""

from kyco_bridge.config.loader import get_config_path, load_config, save_config
from kyco_bridge.config.schema import BridgeRuntimeConfig, Config

__all__ = ["BridgeRuntimeConfig", "Config", "get_config_path", "load_config", "save_config"]
