"""
Ingress DNS Configuration Schema

Configuration schema for the listener, the ingress answer, the fallback
upstream, rule matching, the inventory source and logging.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from .validators import (
    validate_bind_address,
    validate_file_path,
    validate_host_list,
    validate_ipv4_address,
    validate_log_level,
    validate_port,
    validate_positive_float,
    validate_positive_int,
    validate_server_host,
    validate_ttl,
)

WILDCARD_MODES = ("suffix", "regex")
INVENTORY_SOURCES = ("kubernetes", "static")
LOG_FORMATS = ("console", "json")

SERVICE_ACCOUNT_DIR = "/var/run/secrets/kubernetes.io/serviceaccount"


@dataclass
class ServerConfig:
    """Server configuration section."""

    bind_address: str = "0.0.0.0"
    dns_port: int = 53

    def __post_init__(self) -> None:
        """Validate server configuration."""
        if not validate_bind_address(self.bind_address):
            raise ValueError(f"Invalid bind address: {self.bind_address}")

        if not validate_port(self.dns_port):
            raise ValueError(f"Invalid DNS port: {self.dns_port}")


@dataclass
class IngressConfig:
    """Answer synthesized for names covered by an ingress rule."""

    response_address: Optional[str] = None
    ttl: int = 300

    def __post_init__(self) -> None:
        if self.response_address is not None and not validate_ipv4_address(
            self.response_address
        ):
            raise ValueError(
                f"Invalid ingress response address: {self.response_address}"
            )

        if not validate_ttl(self.ttl):
            raise ValueError(f"Invalid ingress TTL: {self.ttl}")


@dataclass
class FallbackConfig:
    """Upstream resolver used for names no ingress rule covers."""

    address: str = "1.1.1.1"
    port: int = 53
    timeout: float = 5.0

    def __post_init__(self) -> None:
        if not validate_server_host(self.address):
            raise ValueError(f"Invalid fallback address: {self.address}")

        if not validate_port(self.port):
            raise ValueError(f"Invalid fallback port: {self.port}")

        if not validate_positive_float(self.timeout):
            raise ValueError(f"Fallback timeout must be positive: {self.timeout}")


@dataclass
class ResolutionConfig:
    """Per-question resolution limits."""

    query_timeout: float = 10.0

    def __post_init__(self) -> None:
        if not validate_positive_float(self.query_timeout):
            raise ValueError(
                f"Query timeout must be positive: {self.query_timeout}"
            )


@dataclass
class MatchingConfig:
    """Ingress rule matching behaviour."""

    wildcard_mode: str = "suffix"

    def __post_init__(self) -> None:
        if self.wildcard_mode not in WILDCARD_MODES:
            raise ValueError(f"Invalid wildcard mode: {self.wildcard_mode}")


@dataclass
class InventoryConfig:
    """Where the current set of ingress hosts comes from."""

    source: str = "kubernetes"
    namespace: str = ""
    static_hosts: List[str] = field(default_factory=list)
    api_server: Optional[str] = None
    token_file: str = f"{SERVICE_ACCOUNT_DIR}/token"
    ca_file: str = f"{SERVICE_ACCOUNT_DIR}/ca.crt"
    request_timeout: float = 5.0

    def __post_init__(self) -> None:
        if self.source not in INVENTORY_SOURCES:
            raise ValueError(f"Invalid inventory source: {self.source}")

        if not isinstance(self.namespace, str):
            raise ValueError(f"Namespace must be a string: {self.namespace}")

        if not validate_host_list(self.static_hosts):
            raise ValueError(f"Invalid static hosts: {self.static_hosts}")

        if self.api_server is not None and not str(self.api_server).startswith(
            ("http://", "https://")
        ):
            raise ValueError(f"Invalid API server URL: {self.api_server}")

        if not validate_file_path(self.token_file):
            raise ValueError(f"Invalid token file path: {self.token_file}")

        if not validate_file_path(self.ca_file):
            raise ValueError(f"Invalid CA file path: {self.ca_file}")

        if not validate_positive_float(self.request_timeout):
            raise ValueError(
                f"Inventory request timeout must be positive: {self.request_timeout}"
            )


@dataclass
class LoggingConfig:
    """Logging configuration section."""

    level: str = "INFO"
    format: str = "console"
    file: Optional[str] = None
    max_size_mb: int = 100
    backup_count: int = 5

    def __post_init__(self) -> None:
        """Validate logging configuration."""
        if not validate_log_level(self.level):
            raise ValueError(f"Invalid log level: {self.level}")

        if self.format not in LOG_FORMATS:
            raise ValueError(f"Invalid log format: {self.format}")

        if self.file is not None and not validate_file_path(self.file):
            raise ValueError(f"Invalid log file path: {self.file}")

        if not validate_positive_int(self.max_size_mb):
            raise ValueError(f"Max size MB must be positive: {self.max_size_mb}")

        if not validate_positive_int(self.backup_count):
            raise ValueError(f"Backup count must be positive: {self.backup_count}")


@dataclass
class IngressDNSConfig:
    """Main responder configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    ingress: IngressConfig = field(default_factory=IngressConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    resolution: ResolutionConfig = field(default_factory=ResolutionConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def create_default_config() -> IngressDNSConfig:
    """Create a default configuration instance."""
    return IngressDNSConfig()


def validate_config(config: IngressDNSConfig) -> bool:
    """Validate settings that must be present before the server can start.

    Args:
        config: Configuration instance to validate

    Returns:
        True if configuration is valid

    Raises:
        ValueError: If configuration is invalid
    """
    if config.ingress.response_address is None:
        raise ValueError(
            "Ingress response address is required (set INGRESS_IP or "
            "ingress.response_address)"
        )

    if config.inventory.source == "static" and not config.inventory.static_hosts:
        raise ValueError("Static inventory requires at least one host")

    return True
