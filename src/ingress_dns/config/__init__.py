"""Configuration loading and validation for the ingress DNS responder."""

from .loader import ConfigLoader, load_config_from_file
from .schema import IngressDNSConfig, create_default_config, validate_config

__all__ = [
    "ConfigLoader",
    "IngressDNSConfig",
    "create_default_config",
    "load_config_from_file",
    "validate_config",
]
