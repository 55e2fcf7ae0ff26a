"""
Configuration loader for briefops.

Supports environment variable substitution in YAML files:
- ${VAR} - Required variable, empty string if not set
- ${VAR:default} - Variable with default value
"""
import os
import re
from pathlib import Path
from typing import Dict, Any, Optional, Union
import yaml


class ConfigLoader:
    """Loads and manages configuration from a briefops.yaml file."""

    # Pattern for environment variable substitution: ${VAR} or ${VAR:default}
    ENV_VAR_PATTERN = re.compile(r'\$\{([^}:]+)(?::([^}]*))?\}')

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize config loader.

        Args:
            config_path: Path to briefops.yaml. If None, looks in default locations.
        """
        self.config_path = self._resolve_config_path(config_path)
        self.config: Dict[str, Any] = self._load_config()

    def _resolve_config_path(self, config_path: Optional[str]) -> Optional[Path]:
        """
        Resolve the configuration file path.

        Args:
            config_path: Optional path to config file.

        Returns:
            Resolved Path object, or None when no file is available.
        """
        if config_path:
            return Path(config_path)

        env_path = os.getenv("BRIEFOPS_CONFIG")
        if env_path:
            return Path(env_path)

        default_locations = [
            Path.cwd() / "briefops.yaml",
            self.home_dir() / "config.yaml",
        ]

        for path in default_locations:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration from YAML file, layered over the defaults.

        Returns:
            Configuration dictionary with environment variables resolved.
        """
        defaults = self._default_config()
        if self.config_path is None or not self.config_path.exists():
            return defaults

        with open(self.config_path, 'r') as f:
            config = yaml.safe_load(f)

        config = self._resolve_env_vars(config) if config else {}

        return self._merge(defaults, config)

    def _merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        merged = dict(base)
        for key, value in override.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = self._merge(merged[key], value)
            else:
                merged[key] = value
        return merged

    def _resolve_env_vars(self, obj: Any) -> Any:
        """
        Recursively resolve environment variables in config values.

        Args:
            obj: Config object (dict, list, or scalar)

        Returns:
            Object with environment variables resolved
        """
        if isinstance(obj, dict):
            return {k: self._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [self._resolve_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            return self._substitute_env_vars(obj)
        else:
            return obj

    def _substitute_env_vars(self, value: str) -> Union[str, int, float, None]:
        """
        Substitute environment variables in a string value.

        Args:
            value: String potentially containing ${VAR} or ${VAR:default}

        Returns:
            String with env vars substituted, or typed value if entire string is a var
        """
        def replace_match(match):
            var_name = match.group(1)
            default = match.group(2)
            env_value = os.getenv(var_name)

            if env_value is not None:
                return env_value
            elif default is not None:
                return default
            else:
                return ""

        result = self.ENV_VAR_PATTERN.sub(replace_match, value)

        if result != value and result:
            try:
                return int(result)
            except ValueError:
                pass
            try:
                return float(result)
            except ValueError:
                pass

        return result if result else None

    @staticmethod
    def home_dir() -> Path:
        """Base directory for user-level connectors and credentials."""
        override = os.getenv("BRIEFOPS_HOME")
        if override:
            return Path(override).expanduser()
        return Path.home() / ".briefops"

    def _default_config(self) -> Dict[str, Any]:
        """
        Return default configuration.

        Returns:
            Default configuration dictionary.
        """
        return {
            "connectors": {
                "path": os.getenv("BRIEFOPS_CONNECTORS_PATH"),
            },
            "credentials": {
                "dir": None,
            },
            "http": {
                "timeout": 30,
                "max_retries": 3,
                "backoff_base": 1.0,
                "backoff_max": 30.0,
            },
            "mcp": {
                "connect_timeout": 30,
            },
            "aggregator": {
                "source_timeout": None,
            },
            "llm": {
                "api_key": os.getenv("OPENAI_API_KEY"),
                "base_url": os.getenv("BRIEFOPS_OPENAI_BASE_URL"),
                "model": os.getenv("BRIEFOPS_OPENAI_MODEL", "gpt-4o-mini"),
                "max_tokens": 2000,
                "temperature": 0.3,
            },
        }

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key.

        Args:
            key: Configuration key (supports dot notation, e.g., 'http.timeout').
            default: Default value if key not found.

        Returns:
            Configuration value.
        """
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value

    def _section_with_defaults(self, name: str) -> Dict[str, Any]:
        # A key set to null, or to an unset ${VAR:}, keeps its default
        section = self.config.get(name) or {}
        defaults = self._default_config()[name]
        return {
            key: section.get(key) if section.get(key) is not None else value
            for key, value in defaults.items()
        }

    def get_connectors_config(self) -> Dict[str, Any]:
        """Get connector discovery configuration."""
        return self.config.get("connectors", {})

    def get_credentials_dir(self) -> Path:
        """Directory holding per-connector credential files."""
        configured = self.get("credentials.dir")
        if configured:
            return Path(configured).expanduser()
        return self.home_dir() / "credentials"

    def get_http_config(self) -> Dict[str, Any]:
        """
        Get HTTP adapter configuration.

        Returns:
            Dict with timeout, max_retries, backoff_base and backoff_max.
        """
        return self._section_with_defaults("http")

    def get_mcp_config(self) -> Dict[str, Any]:
        """Get MCP process adapter configuration."""
        return self._section_with_defaults("mcp")

    def get_aggregator_config(self) -> Dict[str, Any]:
        """Get context aggregator configuration."""
        return {"source_timeout": self.get("aggregator.source_timeout")}

    def get_llm_config(self) -> Dict[str, Any]:
        """
        Get briefing LLM configuration.

        Returns:
            Dict with api_key, base_url, model, max_tokens and temperature.
        """
        return self._section_with_defaults("llm")

    def reload(self) -> None:
        """Reload configuration from file."""
        self.config = self._load_config()
