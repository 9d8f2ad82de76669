"""
Fallback Resolver

Forwards names that no ingress rule covers to a single upstream DNS server
over UDP and hands back the upstream answer section verbatim. There is no
retry and no alternate upstream.
"""

import asyncio
import logging
import random
import socket
from typing import List, Optional

from .message import DNSMessage, DNSRecordType, DNSResourceRecord, create_query

logger = logging.getLogger(__name__)


class FallbackError(Exception):
    """The upstream resolver did not produce a usable answer"""


class _UpstreamProtocol(asyncio.DatagramProtocol):
    def __init__(self, future: asyncio.Future, server: tuple):
        self.future = future
        self.server = server

    def datagram_received(self, data, addr):
        if not self.future.done():
            self.future.set_result(data)

    def error_received(self, exc):
        if not self.future.done():
            self.future.set_exception(exc)

    def connection_lost(self, exc):
        if exc is not None and not self.future.done():
            self.future.set_exception(exc)


class FallbackResolver:
    """Single-upstream UDP forwarder for address queries"""

    def __init__(self, address: str = "1.1.1.1", port: int = 53, timeout: float = 5.0):
        self.address = address
        self.port = port
        self.timeout = timeout

    @property
    def endpoint(self) -> str:
        return f"{self.address}:{self.port}"

    def _next_transaction_id(self) -> int:
        return random.randint(0, 0xFFFF)

    async def resolve(self, name: str) -> List[DNSResourceRecord]:
        """Ask the upstream for A records of ``name``.

        Args:
            name: Query name, with or without the trailing dot

        Returns:
            The upstream answer records in upstream order (possibly empty)

        Raises:
            FallbackError: On network failure, timeout or an unusable reply
        """
        fqdn = name if name.endswith(".") else name + "."
        query = create_query(self._next_transaction_id(), fqdn, DNSRecordType.A)

        try:
            query_data = query.to_bytes()
        except ValueError as e:
            raise FallbackError(f"Cannot encode query for {name}: {e}") from e

        response_data = await self._exchange(query_data)

        try:
            response = DNSMessage.from_bytes(response_data)
        except (ValueError, UnicodeDecodeError) as e:
            raise FallbackError(
                f"Malformed reply from {self.endpoint} for {name}: {e}"
            ) from e

        if response.header.transaction_id != query.header.transaction_id:
            raise FallbackError(
                f"Transaction ID mismatch from {self.endpoint}: expected "
                f"{query.header.transaction_id}, got {response.header.transaction_id}"
            )

        logger.debug(
            f"Fallback {self.endpoint} returned {len(response.answers)} answers for {name}"
        )
        return response.answers

    async def _exchange(self, query_data: bytes) -> bytes:
        loop = asyncio.get_running_loop()
        response_future: asyncio.Future = loop.create_future()
        server = (self.address, self.port)
        transport: Optional[asyncio.DatagramTransport] = None

        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _UpstreamProtocol(response_future, server),
                remote_addr=server,
                family=socket.AF_UNSPEC,
            )
            transport.sendto(query_data)

            try:
                return await asyncio.wait_for(response_future, timeout=self.timeout)
            except asyncio.TimeoutError:
                raise FallbackError(
                    f"Query to {self.endpoint} timed out after {self.timeout}s"
                )
        except OSError as e:
            raise FallbackError(
                f"Query to {self.endpoint} failed: {type(e).__name__}: {e}"
            ) from e
        finally:
            if transport is not None:
                transport.close()
