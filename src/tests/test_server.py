"""
DNS Server Tests

Request handling through handle_dns_request and a real UDP round trip on a
loopback port.
"""

import asyncio
import struct
from unittest.mock import AsyncMock, Mock

import pytest

from ingress_dns.core.dispatcher import RequestDispatcher
from ingress_dns.core.inventory import StaticInventorySource
from ingress_dns.core.message import (
    DNSMessage,
    DNSQuestion,
    DNSRecordType,
    DNSResponseCode,
    create_query,
)
from ingress_dns.core.processor import QueryProcessor
from ingress_dns.core.server import DNSServer


def make_config(port=0):
    config = Mock()
    config.server.bind_address = "127.0.0.1"
    config.server.dns_port = port
    return config


def make_server(hosts=("app.example.com",)):
    fallback = Mock()
    fallback.resolve = AsyncMock(return_value=[])
    processor = QueryProcessor(
        inventory=StaticInventorySource(hosts),
        fallback=fallback,
        response_address="10.0.0.5",
    )
    return DNSServer(make_config(), RequestDispatcher(processor))


class TestRequestHandling:
    """Test handle_dns_request"""

    @pytest.mark.asyncio
    async def test_answers_ingress_host(self):
        server = make_server()

        data = await server.handle_dns_request(
            create_query(77, "app.example.com.").to_bytes(), "127.0.0.1"
        )
        response = DNSMessage.from_bytes(data)

        assert response.header.transaction_id == 77
        assert response.header.rcode == DNSResponseCode.NOERROR
        assert [a.get_readable_rdata() for a in response.answers] == ["10.0.0.5"]
        assert server.get_stats()["total_queries"] == 1

    @pytest.mark.asyncio
    async def test_multi_question_reply(self):
        server = make_server()
        query = create_query(78, "app.example.com.")
        query.questions.append(DNSQuestion("app.example.com.", DNSRecordType.AAAA))

        response = DNSMessage.from_bytes(
            await server.handle_dns_request(query.to_bytes(), "127.0.0.1")
        )

        assert response.header.question_count == 2
        assert len(response.answers) == 1

    @pytest.mark.asyncio
    async def test_malformed_packet_gets_formerr(self):
        """Test handling of malformed DNS packets"""
        server = make_server()

        data = await server.handle_dns_request(b"\x12\x34invalid", "127.0.0.1")

        response = DNSMessage.from_bytes(data)
        assert response.header.transaction_id == 0x1234
        assert response.header.rcode == DNSResponseCode.FORMERR
        assert server.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_empty_packet_gets_formerr(self):
        server = make_server()

        response = DNSMessage.from_bytes(
            await server.handle_dns_request(b"", "127.0.0.1")
        )

        assert response.header.transaction_id == 0
        assert response.header.rcode == DNSResponseCode.FORMERR

    @pytest.mark.asyncio
    async def test_response_packet_rejected(self):
        server = make_server()
        reply = create_query(5, "app.example.com.").create_response()

        response = DNSMessage.from_bytes(
            await server.handle_dns_request(reply.to_bytes(), "127.0.0.1")
        )

        assert response.header.rcode == DNSResponseCode.FORMERR

    @pytest.mark.asyncio
    async def test_query_without_questions_rejected(self):
        server = make_server()
        data = struct.pack("!HHHHHH", 9, 0x0100, 0, 0, 0, 0)

        response = DNSMessage.from_bytes(
            await server.handle_dns_request(data, "127.0.0.1")
        )

        assert response.header.transaction_id == 9
        assert response.header.rcode == DNSResponseCode.FORMERR

    @pytest.mark.asyncio
    async def test_label_with_dot_gets_formerr(self):
        header = struct.pack("!HHHHHH", 12, 0x0100, 1, 0, 0, 0)
        data = header + b"\x05a.b.c\x03com\x00" + struct.pack("!HH", 1, 1)

        server = make_server()

        response = DNSMessage.from_bytes(
            await server.handle_dns_request(data, "127.0.0.1")
        )

        assert response.header.transaction_id == 12
        assert response.header.rcode == DNSResponseCode.FORMERR

    @pytest.mark.asyncio
    async def test_rejected_packets_leave_no_pending_requests(self):
        server = make_server()
        reply = create_query(5, "app.example.com.").create_response().to_bytes()

        for _ in range(100):
            await server.handle_dns_request(b"\x12\x34garbage", "127.0.0.1")
            await server.handle_dns_request(reply, "127.0.0.1")
        await server.handle_dns_request(
            create_query(6, "app.example.com.").to_bytes(), "127.0.0.1"
        )

        assert server.request_logger.active_requests == {}
        assert server.get_stats()["errors"] == 200

    @pytest.mark.asyncio
    async def test_dispatch_failure_gets_servfail(self):
        dispatcher = Mock()
        dispatcher.dispatch = AsyncMock(side_effect=RuntimeError("broken"))
        server = DNSServer(make_config(), dispatcher)

        response = DNSMessage.from_bytes(
            await server.handle_dns_request(
                create_query(11, "app.example.com.").to_bytes(), "127.0.0.1"
            )
        )

        assert response.header.transaction_id == 11
        assert response.header.rcode == DNSResponseCode.SERVFAIL
        assert len(response.questions) == 1


class _ClientProtocol(asyncio.DatagramProtocol):
    def __init__(self, future):
        self.future = future

    def datagram_received(self, data, addr):
        if not self.future.done():
            self.future.set_result(data)


class TestUDPListener:
    """Test the server over a loopback socket"""

    @pytest.mark.asyncio
    async def test_udp_round_trip(self):
        server = make_server()
        await server.start()
        try:
            assert server.is_running
            loop = asyncio.get_running_loop()
            future = loop.create_future()
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _ClientProtocol(future), remote_addr=server.local_address
            )
            try:
                transport.sendto(create_query(300, "app.example.com.").to_bytes())
                data = await asyncio.wait_for(future, timeout=2.0)
            finally:
                transport.close()
        finally:
            await server.stop()

        response = DNSMessage.from_bytes(data)
        assert response.header.transaction_id == 300
        assert [a.get_readable_rdata() for a in response.answers] == ["10.0.0.5"]
        assert not server.is_running

    @pytest.mark.asyncio
    async def test_bind_failure_propagates(self):
        first = make_server()
        await first.start()
        try:
            _, port = first.local_address
            second = DNSServer(make_config(port), first.dispatcher)
            with pytest.raises(OSError):
                await second.start()
            assert not second.is_running
        finally:
            await first.stop()

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self):
        server = make_server()

        await server.stop()

        assert server.local_address is None
