"""
Config system - Layered configuration with merge precedence.

Sources, later overriding earlier:
1. Defaults passed to ``load``
2. ``.env`` file (read with python-dotenv, never exported to os.environ)
3. Environment variables (``CRUMB_`` prefix)
4. Manual overrides

Keys are nested with a double underscore, so
``CRUMB_SESSIONS__DEFAULT__MAX_AGE=3600`` becomes
``{"sessions": {"default": {"max_age": 3600}}}``.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values

from .faults import Fault, FaultDomain, Severity

logger = logging.getLogger("crumb.config")


class ConfigError(Fault):
    """Raised when a configuration source cannot be loaded."""

    domain = FaultDomain.CONFIG
    severity = Severity.FATAL

    def __init__(self, message: str):
        super().__init__(code="CONFIG_INVALID", message=message)


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources.

    Example:
        >>> loader = ConfigLoader.load(env_file=".env")
        >>> loader.get("sessions.default.secret")
        's3cret'
    """

    def __init__(self, env_prefix: str = "CRUMB_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}
        # Same tree with environment strings left unparsed
        self.raw_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "CRUMB_",
        env_file: Optional[str] = None,
        overrides: Optional[Dict[str, Any]] = None,
        *,
        defaults: Optional[Dict[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> ConfigLoader:
        """
        Load configuration.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Path to a .env file (missing file is skipped)
            overrides: Manual overrides (highest precedence)
            defaults: Base values (lowest precedence)
            environ: Environment mapping, ``os.environ`` when omitted

        Raises:
            ConfigError: the .env file exists but cannot be read
        """
        loader = cls(env_prefix=env_prefix)

        if defaults:
            loader._merge_dict(loader.config_data, defaults)
            loader._merge_dict(loader.raw_data, defaults)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)
            loader._merge_dict(loader.raw_data, overrides)

        return loader

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        env_path = Path(path)
        if not env_path.exists():
            logger.debug("env file %s not found, skipping", env_path)
            return

        try:
            values = dotenv_values(env_path)
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read env file {env_path}: {e}") from e

        for key, value in values.items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ: Mapping[str, str]):
        """Load config from environment variables."""
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert CRUMB_SESSIONS__DEFAULT__SECRET to a nested dict."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        self._assign(self.config_data, parts, self._parse_value(value))
        self._assign(self.raw_data, parts, value)

    def _assign(self, target: dict, parts: list, value: Any):
        current = target
        for part in parts[:-1]:
            if not isinstance(current.get(part), dict):
                current[part] = {}
            current = current[part]

        current[parts[-1]] = value

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        if value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: Mapping[str, Any]):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, Mapping):
                self._merge_dict(target[key], value)
            elif isinstance(value, Mapping):
                target[key] = {}
                self._merge_dict(target[key], value)
            else:
                target[key] = value

    def get(self, path: str, default: Any = None, *, raw: bool = False) -> Any:
        """
        Get config value by dot-separated path.

        With ``raw``, environment values come back as the exact strings
        that were set (``"0123"`` rather than ``123``).
        """
        current: Any = self.raw_data if raw else self.config_data

        for part in path.split("."):
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return default

        return current

    def to_dict(self) -> dict:
        """Export all config as dictionary."""
        return json.loads(json.dumps(self.config_data))


__all__ = ["ConfigLoader", "ConfigError"]
