"""
Configuration Validators

This module provides validation functions for responder configuration parameters.
"""

import ipaddress
import re
from pathlib import Path
from typing import List, Optional

HOSTNAME_PATTERN = re.compile(r"^[a-zA-Z0-9.-]+$")


def validate_bind_address(address: str) -> bool:
    """Validate bind address format."""
    if not address:
        return False

    try:
        ipaddress.ip_address(address)
        return True
    except ValueError:
        return False


def validate_ipv4_address(address: Optional[str]) -> bool:
    """Validate a dotted-quad IPv4 address."""
    if not isinstance(address, str):
        return False

    try:
        ipaddress.IPv4Address(address)
        return True
    except ValueError:
        return False


def validate_file_path(path: str) -> bool:
    """Validate file path format."""
    if not path:
        return False

    try:
        Path(path)
        return True
    except (TypeError, ValueError):
        return False


def validate_log_level(level: str) -> bool:
    """Validate log level."""
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    return isinstance(level, str) and level.upper() in valid_levels


def validate_positive_float(value: float) -> bool:
    """Validate positive float."""
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def validate_positive_int(value: int) -> bool:
    """Validate positive integer."""
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def validate_ttl(value: int) -> bool:
    """Validate a record TTL (unsigned 32-bit, zero allowed)."""
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and 0 <= value <= 0xFFFFFFFF
    )


def validate_port(port: int) -> bool:
    """Validate port number."""
    return isinstance(port, int) and not isinstance(port, bool) and 1 <= port <= 65535


def validate_server_host(host: str) -> bool:
    """Validate an upstream host (IP literal or plain hostname)."""
    if not host or not isinstance(host, str):
        return False

    try:
        ipaddress.ip_address(host)
        return True
    except ValueError:
        return bool(HOSTNAME_PATTERN.match(host))


def validate_host_list(hosts: List[str]) -> bool:
    """Validate a list of ingress host patterns."""
    if not isinstance(hosts, list):
        return False

    return all(isinstance(host, str) and host for host in hosts)
