"""Configuration module for the highway RL system."""

import logging
import os
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), '..', 'config', 'default.yaml')


class Config:
    """Configuration manager that loads settings from YAML files."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration with optional config file path."""
        self._config: Dict[str, Any] = {}
        if config_path:
            self.load_config(config_path)
        elif os.path.exists(DEFAULT_CONFIG_PATH):
            self.load_config(DEFAULT_CONFIG_PATH)

    def load_config(self, config_path: str):
        """Load configuration from a YAML file, keeping defaults if it is unreadable."""
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Could not load config {config_path}: {e}")
            return
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            logger.warning(f"Config {config_path} is not a mapping, ignoring")
            return
        self._config = loaded

    def get(self, key_path: str, default=None):
        """Get a value by dot path (e.g. 'agent.gamma'); default if any part is missing."""
        value = self._config
        for key in key_path.split('.'):
            if not isinstance(value, dict) or key not in value:
                return default
            value = value[key]
        return value

    def section(self, key_path: str) -> Dict[str, Any]:
        """Get a nested mapping as a plain dict (empty if absent)."""
        value = self.get(key_path, {})
        return dict(value) if isinstance(value, dict) else {}

    def set(self, key_path: str, value: Any):
        """Set a value by dot path, creating intermediate sections."""
        *parents, leaf = key_path.split('.')
        section = self._config
        for key in parents:
            section = section.setdefault(key, {})
        section[leaf] = value

    def to_dict(self) -> Dict[str, Any]:
        """Return the configuration as a dictionary."""
        return self._config.copy()
