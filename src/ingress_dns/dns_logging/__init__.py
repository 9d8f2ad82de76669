"""
Ingress DNS Logging Module

This module provides structured logging for the responder with per-request
tracking and timing.
"""

from .dns_logger import DNSRequestLogger, query_type_name, response_code_name
from .logger import StructuredLogger, get_logger, log_exception, setup_logging

__all__ = [
    # Core logging
    "StructuredLogger",
    "setup_logging",
    "get_logger",
    "log_exception",
    # DNS-specific logging
    "DNSRequestLogger",
    "query_type_name",
    "response_code_name",
]
