"""
Configuration loading for the SQL dump converter.
"""

import os
import re
from typing import Any, Optional

import yaml


class ConfigLoader:
    """Loads configuration from an optional YAML file."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config = self._load_config() if config_path else {}

    def _load_config(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f)

        return self._resolve_env_vars(config or {})

    def _resolve_env_vars(self, obj: Any) -> Any:
        """Recursively resolve environment variables in config."""
        if isinstance(obj, str):
            matches = self.ENV_VAR_PATTERN.findall(obj)
            for match in matches:
                env_value = os.environ.get(match, '')
                obj = obj.replace(f'${{{match}}}', env_value)
            return obj
        elif isinstance(obj, dict):
            return {k: self._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._resolve_env_vars(item) for item in obj]
        return obj

    def _get_section(self, name: str) -> dict[str, Any]:
        section = self.config.get(name) or {}
        if not isinstance(section, dict):
            raise ValueError(f"Section '{name}' must be a mapping in configuration")
        return section

    def get_input_settings(self) -> dict[str, Any]:
        """Get dump reading settings."""
        return self._get_section('input')

    def get_output_settings(self) -> dict[str, Any]:
        """Get output settings."""
        return self._get_section('output')

    def get_logging_settings(self) -> dict[str, Any]:
        """Get logging settings."""
        return self._get_section('logging')
