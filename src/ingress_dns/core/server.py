"""
DNS Server Core

This module implements the UDP listener:
- Async UDP server using asyncio.DatagramProtocol
- Request decoding, dispatch and response encoding
- Malformed packet rejection with FORMERR
- Per-request structured logging
"""

import asyncio
import logging
import struct
from typing import Any, Dict, Optional, Tuple

from ..dns_logging import DNSRequestLogger, query_type_name
from .dispatcher import RequestDispatcher
from .message import DNSHeader, DNSMessage, DNSResponseCode

logger = logging.getLogger(__name__)


class DNSUDPProtocol(asyncio.DatagramProtocol):
    """Async UDP protocol handler for DNS queries"""

    def __init__(self, server: "DNSServer"):
        self.server = server
        self.transport = None

    def connection_made(self, transport):
        """Called when UDP socket is ready"""
        self.transport = transport
        logger.info(
            f"DNS UDP server listening on {transport.get_extra_info('sockname')}"
        )

    def datagram_received(self, data: bytes, addr: Tuple[str, int]):
        """Handle incoming UDP DNS queries"""
        task = asyncio.create_task(self._handle_request(data, addr))

        # Store task reference to prevent garbage collection
        self.server._background_tasks.add(task)
        task.add_done_callback(self.server._background_tasks.discard)

    async def _handle_request(self, data: bytes, addr: Tuple[str, int]):
        """Process DNS query and send response"""
        client_ip = addr[0]
        try:
            response_data = await self.server.handle_dns_request(data, client_ip)
            if response_data and self.transport is not None:
                self.transport.sendto(response_data, addr)
        except Exception as e:
            logger.error(f"Error handling UDP request from {client_ip}: {e}")

    def error_received(self, exc):
        """Handle UDP errors"""
        logger.error(f"DNS UDP protocol error: {exc}")


class DNSServer:
    """UDP front end for the request dispatcher"""

    def __init__(self, config, dispatcher: RequestDispatcher):
        self.config = config
        self.dispatcher = dispatcher
        self.request_logger = DNSRequestLogger()

        self._transport = None
        self._background_tasks = set()
        self._is_running = False

        self._stats = {
            "total_queries": 0,
            "errors": 0,
        }

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> None:
        """Start the UDP listener.

        Raises:
            OSError: If the listen address cannot be bound
        """
        if self._is_running:
            logger.warning("Server is already running")
            return

        bind_address = self.config.server.bind_address
        dns_port = self.config.server.dns_port

        loop = asyncio.get_running_loop()
        try:
            self._transport, _ = await loop.create_datagram_endpoint(
                lambda: DNSUDPProtocol(self), local_addr=(bind_address, dns_port)
            )
        except OSError as e:
            logger.error(f"Failed to start DNS server on {bind_address}:{dns_port}: {e}")
            raise

        self._is_running = True
        logger.info(f"DNS server started on {bind_address}:{dns_port}")

    async def stop(self) -> None:
        """Stop the listener and wait for in-flight requests"""
        if not self._is_running:
            return

        logger.info("Stopping DNS server...")

        if self._transport:
            self._transport.close()
            self._transport = None

        if self._background_tasks:
            await asyncio.gather(*self._background_tasks, return_exceptions=True)

        self._is_running = False
        logger.info("DNS server stopped")

    @property
    def local_address(self) -> Optional[Tuple[str, int]]:
        if self._transport is None:
            return None
        return self._transport.get_extra_info("sockname")[:2]

    async def handle_dns_request(self, data: bytes, client_ip: str) -> Optional[bytes]:
        """Decode a request, dispatch it and encode the reply"""
        try:
            query = DNSMessage.from_bytes(data)
        except (ValueError, UnicodeDecodeError) as e:
            logger.warning(f"Malformed DNS packet from {client_ip}: {e}")
            self._stats["errors"] += 1
            return self._create_format_error_response(data)

        if not query.is_query() or not query.questions:
            logger.warning(f"Invalid DNS query from {client_ip}")
            self._stats["errors"] += 1
            return self._create_format_error_response(data)

        request_id = self.request_logger.start_request()
        self._stats["total_queries"] += 1
        questions = [
            {"domain": q.name, "query_type": query_type_name(q.qtype)}
            for q in query.questions
        ]

        try:
            response = await self.dispatcher.dispatch(query)
            response_data = response.to_bytes()
        except Exception as e:
            self._stats["errors"] += 1
            self.request_logger.end_request(
                request_id,
                client_ip,
                questions,
                DNSResponseCode.SERVFAIL,
                error=f"{type(e).__name__}: {e}",
            )
            return query.create_response(DNSResponseCode.SERVFAIL).to_bytes()

        self.request_logger.end_request(
            request_id,
            client_ip,
            questions,
            response.header.rcode,
            response_data=[answer.get_readable_rdata() for answer in response.answers],
        )
        return response_data

    def _create_format_error_response(self, original_data: bytes) -> bytes:
        """Create a minimal FORMERR response carrying the original id"""
        if len(original_data) >= 2:
            transaction_id = struct.unpack("!H", original_data[:2])[0]
        else:
            transaction_id = 0

        header = DNSHeader(
            transaction_id=transaction_id,
            qr=True,
            rd=False,
            rcode=DNSResponseCode.FORMERR,
        )

        response = DNSMessage(
            header=header, questions=[], answers=[], authority=[], additional=[]
        )
        return response.to_bytes()

    def get_stats(self) -> Dict[str, Any]:
        """Get server statistics"""
        return {**self._stats, "is_running": self._is_running}
