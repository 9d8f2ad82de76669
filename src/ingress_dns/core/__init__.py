"""
Ingress DNS Core Module

This module exports the resolution pipeline and the UDP server.
"""

from .dispatcher import RequestDispatcher
from .fallback import FallbackError, FallbackResolver
from .inventory import (
    InventoryError,
    InventorySource,
    KubernetesIngressSource,
    StaticInventorySource,
)
from .matcher import HostRule, match_rules
from .message import (
    DNSClass,
    DNSHeader,
    DNSMessage,
    DNSQuestion,
    DNSRecordType,
    DNSResourceRecord,
    DNSResponseCode,
    create_a_record,
    create_query,
)
from .processor import QueryProcessor
from .server import DNSServer

__all__ = [
    # Main server
    "DNSServer",
    # Resolution pipeline
    "RequestDispatcher",
    "QueryProcessor",
    "FallbackResolver",
    "FallbackError",
    "HostRule",
    "match_rules",
    # Inventory
    "InventorySource",
    "InventoryError",
    "KubernetesIngressSource",
    "StaticInventorySource",
    # Message components
    "DNSMessage",
    "DNSQuestion",
    "DNSResourceRecord",
    "DNSHeader",
    # Enums
    "DNSRecordType",
    "DNSClass",
    "DNSResponseCode",
    # Helper functions
    "create_a_record",
    "create_query",
]
