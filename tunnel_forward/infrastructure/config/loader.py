"""
Configuration loading and saving utilities.

The tunnel configuration comes from an optional YAML or JSON document, with
``TUNNEL_*`` environment variables layered on top. Environment values win.
"""

import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, TextIO, Tuple

import yaml

from ...core.exceptions import ConfigurationError
from .models import ApplicationConfig

TRUE_VALUES = frozenset({'true', '1', 'yes', 'on', 'enabled'})


def parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUE_VALUES


# Environment variable suffix -> (dotted config path, converter)
ENV_OVERRIDES: Dict[str, Tuple[str, Callable[[str], Any]]] = {
    "DEBUG": ("debug", parse_bool),
    "PROTOCOL": ("tunnel.protocol", str),
    "ENDPOINT": ("tunnel.endpoint", str),
    "DESTINATION": ("tunnel.destination", str),
    "USERNAME": ("tunnel.username", str),
    "PASSWORD": ("tunnel.password", str),
    "CONNECT_TIMEOUT": ("ssh.connect_timeout", float),
    "LOGIN_TIMEOUT": ("ssh.login_timeout", float),
    "KEEPALIVE_INTERVAL": ("ssh.keepalive_interval", float),
    "KNOWN_HOSTS": ("ssh.known_hosts_file", str),
    "KEY_FILE": ("ssh.key_file", str),
    "LOG_LEVEL": ("logging.level", str),
    "LOG_DIR": ("logging.log_directory", str),
    "LOG_FILE_ENABLED": ("logging.file_enabled", parse_bool),
}


def _read_yaml(stream: TextIO) -> Any:
    return yaml.safe_load(stream) or {}


def _write_yaml(data: Dict[str, Any], stream: TextIO) -> None:
    yaml.safe_dump(data, stream, default_flow_style=False, indent=2, sort_keys=False)


def _write_json(data: Dict[str, Any], stream: TextIO) -> None:
    json.dump(data, stream, indent=2)


# File suffix -> (reader, parse error type, format label)
_READERS: Dict[str, Tuple[Callable[[TextIO], Any], Any, str]] = {
    '.yaml': (_read_yaml, yaml.YAMLError, "YAML"),
    '.yml': (_read_yaml, yaml.YAMLError, "YAML"),
    '.json': (json.load, json.JSONDecodeError, "JSON"),
}

_WRITERS: Dict[str, Callable[[Dict[str, Any], TextIO], None]] = {
    'yaml': _write_yaml,
    'json': _write_json,
}


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``override`` into a copy of ``base``, descending into nested sections."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class ConfigLoader:
    """Loads ApplicationConfig from files and the environment."""

    def __init__(self, env_prefix: str = "TUNNEL_") -> None:
        self._env_prefix = env_prefix

    def load_config(self, config_file: Optional[str] = None) -> ApplicationConfig:
        """
        Load configuration from file and environment variables.

        Args:
            config_file: Path to a YAML or JSON file (optional)

        Returns:
            Validated configuration

        Raises:
            FileNotFoundError: If ``config_file`` does not exist
            ConfigurationError: If the file or an environment value is invalid
        """
        data = self._read_file(config_file) if config_file else {}
        data = deep_merge(data, self._read_environment())

        config = ApplicationConfig.from_dict(data)
        config.config_file_path = config_file
        return config

    def save_config(self, config: ApplicationConfig, file_path: str, format: str = "yaml") -> None:
        """Write ``config`` as YAML or JSON, without its runtime-only fields."""
        writer = _WRITERS.get(format.lower())
        if writer is None:
            raise ConfigurationError(f"Unsupported format: {format}")

        data = config.to_dict()
        data.pop('config_file_path', None)
        try:
            with open(file_path, 'w', encoding='utf-8') as f:
                writer(data, f)
        except OSError as e:
            raise ConfigurationError(f"Error writing {file_path}: {e}") from e

    def _read_file(self, file_path: str) -> Dict[str, Any]:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        entry = _READERS.get(path.suffix.lower())
        if entry is None:
            raise ConfigurationError(
                f"Unsupported configuration file format: {path.suffix}")
        reader, parse_error, label = entry

        try:
            with path.open('r', encoding='utf-8') as f:
                data = reader(f)
        except parse_error as e:
            raise ConfigurationError(f"Invalid {label} in {file_path}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Error reading {file_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration root in {file_path} must be a mapping")
        return data

    def _read_environment(self) -> Dict[str, Any]:
        overrides: Dict[str, Any] = {}

        for suffix, (dotted_path, convert) in ENV_OVERRIDES.items():
            env_var = f"{self._env_prefix}{suffix}"
            raw = os.environ.get(env_var)
            if raw is None:
                continue
            try:
                value = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {raw} ({e})") from e

            *sections, key = dotted_path.split('.')
            target = overrides
            for section in sections:
                target = target.setdefault(section, {})
            target[key] = value

        return overrides
