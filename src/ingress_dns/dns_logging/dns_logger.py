"""
DNS Request/Response Logging

This module provides DNS-specific logging: one structured event per handled
request with request id tracking and response timing.
"""

import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from dns import rcode, rdatatype

from .logger import get_logger


def query_type_name(qtype: int) -> str:
    """Render a numeric query type the way dig does (A, AAAA, TYPE65534...)."""
    return rdatatype.to_text(qtype)


def response_code_name(code: int) -> str:
    """Render a numeric response code (NOERROR, SERVFAIL, RCODE12...)."""
    try:
        return rcode.to_text(code)
    except ValueError:
        return f"RCODE{code}"


class DNSRequestLogger:
    """DNS request/response logger with structured output."""

    def __init__(self):
        self.logger = get_logger("dns_requests")
        self.active_requests: Dict[str, float] = {}

    def start_request(self, request_id: Optional[str] = None) -> str:
        """Start tracking a DNS request.

        Args:
            request_id: Optional request ID, will generate if not provided

        Returns:
            Request ID for tracking
        """
        if request_id is None:
            request_id = str(uuid.uuid4())

        self.active_requests[request_id] = time.time()
        return request_id

    def end_request(
        self,
        request_id: str,
        client_ip: str,
        questions: List[Dict[str, str]],
        response_code: int,
        response_data: Optional[List[str]] = None,
        error: Optional[str] = None,
    ) -> float:
        """Stop tracking a DNS request and log the result.

        Args:
            request_id: Request ID from start_request
            client_ip: Client IP address
            questions: ``{"domain", "query_type"}`` pairs from the request
            response_code: Numeric DNS response code of the reply
            response_data: Readable answer data
            error: Error message if any

        Returns:
            Response time in milliseconds
        """
        start_time = self.active_requests.pop(request_id, time.time())
        response_time_ms = (time.time() - start_time) * 1000

        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            "request_id": request_id,
            "client_ip": client_ip,
            "questions": questions,
            "response_code": response_code_name(response_code),
            "response_time_ms": round(response_time_ms, 2),
            "answer_count": len(response_data or []),
            "response_data": response_data or [],
        }

        if error:
            log_entry["error"] = error
            self.logger.warning("DNS request failed", **log_entry)
        else:
            self.logger.info("DNS request processed", **log_entry)

        return response_time_ms
