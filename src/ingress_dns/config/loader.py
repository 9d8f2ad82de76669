"""Configuration loader for the ingress DNS responder.

This module handles loading configuration from files and environment variables,
with validation performed by the schema dataclasses.
"""

import json
import os
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from .schema import (
    FallbackConfig,
    IngressConfig,
    IngressDNSConfig,
    InventoryConfig,
    LoggingConfig,
    MatchingConfig,
    ResolutionConfig,
    ServerConfig,
    create_default_config,
)

ENV_PREFIX = "INGRESS_DNS_"

SECTIONS = {
    "server": ServerConfig,
    "ingress": IngressConfig,
    "fallback": FallbackConfig,
    "resolution": ResolutionConfig,
    "matching": MatchingConfig,
    "inventory": InventoryConfig,
    "logging": LoggingConfig,
}


class ConfigLoader:
    """Configuration loader: defaults, then file, then environment."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        """Initialize configuration loader.

        Args:
            config_file: Path to configuration file (YAML or JSON)
            environ: Environment mapping to read overrides from
                (defaults to ``os.environ``)
        """
        self.config_file = config_file
        self.environ = os.environ if environ is None else environ
        self._config: Optional[IngressDNSConfig] = None

    def load_config(self) -> IngressDNSConfig:
        """Load configuration from file and environment variables.

        Returns:
            Loaded and validated configuration

        Raises:
            FileNotFoundError: If config file is specified but not found
            ValueError: If configuration is invalid
            yaml.YAMLError: If YAML parsing fails
            json.JSONDecodeError: If JSON parsing fails
        """
        config_dict = asdict(create_default_config())

        if self.config_file:
            file_config = self._load_from_file(self.config_file)
            config_dict = self._merge_configs(config_dict, file_config)

        config_dict = self._apply_env_overrides(config_dict)

        self._config = self._dict_to_config(config_dict)

        return self._config

    def get_config(self) -> Optional[IngressDNSConfig]:
        """Get current configuration."""
        return self._config

    def _load_from_file(self, file_path: str) -> Dict[str, Any]:
        """Load configuration from YAML or JSON file.

        Args:
            file_path: Path to configuration file

        Returns:
            Configuration dictionary

        Raises:
            FileNotFoundError: If file is not found
            ValueError: If file format is not supported
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {file_path}")

        with open(path, "r", encoding="utf-8") as f:
            content = f.read()

        if path.suffix.lower() in [".yaml", ".yml"]:
            result = yaml.safe_load(content)
        elif path.suffix.lower() == ".json":
            result = json.loads(content)
        else:
            # Try YAML first, then JSON
            try:
                result = yaml.safe_load(content)
            except yaml.YAMLError:
                try:
                    result = json.loads(content)
                except json.JSONDecodeError:
                    raise ValueError(f"Unsupported file format: {file_path}")

        return result if isinstance(result, dict) else {}

    def _dict_to_config(self, config_dict: Dict[str, Any]) -> IngressDNSConfig:
        """Convert dictionary to configuration object.

        Raises:
            ValueError: If configuration is invalid or has unknown keys
        """
        unknown = set(config_dict) - set(SECTIONS)
        if unknown:
            raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

        sections = {}
        for name, section_cls in SECTIONS.items():
            values = config_dict.get(name) or {}
            if not isinstance(values, dict):
                raise ValueError(f"Configuration section '{name}' must be a mapping")
            try:
                sections[name] = section_cls(**values)
            except TypeError as e:
                raise ValueError(f"Invalid '{name}' configuration: {e}") from e

        return IngressDNSConfig(**sections)

    def _merge_configs(
        self, base: Dict[str, Any], override: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Merge two configuration dictionaries.

        Args:
            base: Base configuration dictionary
            override: Override configuration dictionary

        Returns:
            Merged configuration dictionary
        """
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config_dict: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        The deployment variables ``DNS_PORT``, ``INGRESS_IP`` and
        ``FALLBACK_DNS`` are honoured first. Any setting can then be
        overridden as INGRESS_DNS_<SECTION>_<KEY>, for example
        ``INGRESS_DNS_FALLBACK_TIMEOUT=2.5``.

        Args:
            config_dict: Base configuration dictionary

        Returns:
            Configuration dictionary with environment overrides applied
        """
        env = self.environ

        if "DNS_PORT" in env:
            config_dict["server"]["dns_port"] = self._parse_port(
                "DNS_PORT", env["DNS_PORT"]
            )

        if env.get("INGRESS_IP"):
            config_dict["ingress"]["response_address"] = env["INGRESS_IP"].strip()

        if env.get("FALLBACK_DNS"):
            host, port = split_host_port(env["FALLBACK_DNS"].strip(), 53)
            config_dict["fallback"]["address"] = host
            config_dict["fallback"]["port"] = port

        for env_key, env_value in env.items():
            if not env_key.startswith(ENV_PREFIX):
                continue

            key_parts = env_key[len(ENV_PREFIX) :].lower().split("_")
            if len(key_parts) < 2:
                continue

            section = key_parts[0]
            config_key = "_".join(key_parts[1:])

            # Kubernetes service links (INGRESS_DNS_SERVICE_HOST, ...) share the prefix
            if section not in config_dict or config_key not in config_dict[section]:
                continue

            if isinstance(config_dict[section][config_key], list):
                value = [item.strip() for item in env_value.split(",") if item.strip()]
            else:
                value = self._convert_env_value(env_value)

            config_dict[section][config_key] = value

        return config_dict

    def _parse_port(self, name: str, value: str) -> int:
        try:
            return int(value)
        except ValueError:
            raise ValueError(f"{name} must be an integer port: {value!r}")

    def _convert_env_value(self, value: str) -> Any:
        """Convert environment variable value to appropriate Python type.

        Args:
            value: Environment variable value as string

        Returns:
            Converted value
        """
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            return int(value)
        except ValueError:
            pass

        try:
            return float(value)
        except ValueError:
            pass

        return value


def split_host_port(address: str, default_port: int) -> Tuple[str, int]:
    """Split ``host[:port]`` or ``[v6host][:port]`` into its parts.

    Raises:
        ValueError: If the port is not an integer or a bracket is unclosed
    """
    if address.startswith("["):
        host, sep, rest = address[1:].partition("]")
        if not sep or (rest and not rest.startswith(":")):
            raise ValueError(f"Invalid bracketed address: {address}")
        port_str = rest[1:]
    elif address.count(":") == 1:
        host, port_str = address.rsplit(":", 1)
    else:
        return address, default_port

    if not port_str:
        return host, default_port
    try:
        return host, int(port_str)
    except ValueError:
        raise ValueError(f"Invalid port in address: {address}")


def load_config_from_file(
    config_file: Optional[str] = None,
) -> Tuple[IngressDNSConfig, ConfigLoader]:
    """Convenience function to load configuration.

    Args:
        config_file: Path to configuration file

    Returns:
        Tuple of (loaded config, config loader instance)
    """
    loader = ConfigLoader(config_file)
    config = loader.load_config()
    return config, loader
