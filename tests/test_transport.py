"""
Tests for dual-stack resolution and the pooled transport.
"""
import socket

import httpcore
import httpx
import pytest

from antigravity_adapter import transport
from antigravity_adapter.transport import (
    DualStackBackend,
    HTTPClientPool,
    PooledTransport,
    map_httpcore_exceptions,
    resolve_host,
)


def addrinfo(family, *addresses):
    return [(family, socket.SOCK_STREAM, 6, "", (addr, 443)) for addr in addresses]


class FakeResolver:
    """Stands in for getaddrinfo with per-family answers."""

    def __init__(self, ipv4=None, ipv6=None):
        self.answers = {socket.AF_INET: ipv4, socket.AF_INET6: ipv6}
        self.calls = []

    async def __call__(self, host, port, family):
        self.calls.append(family)
        answer = self.answers[family]
        if isinstance(answer, Exception):
            raise answer
        return answer


class RecordingBackend(httpcore.AsyncNetworkBackend):
    def __init__(self, refuse=()):
        self.refuse = set(refuse)
        self.connected = []

    async def connect_tcp(self, host, port, timeout=None, local_address=None, socket_options=None):
        self.connected.append(host)
        if host in self.refuse:
            raise httpcore.ConnectError(f"refused by {host}")
        return object()

    async def sleep(self, seconds):
        pass


class CountingMockBackend(httpcore.AsyncMockBackend):
    """Replays canned HTTP/1.1 bytes and counts new connections."""

    def __init__(self, buffer):
        super().__init__(buffer)
        self.connects = []

    async def connect_tcp(self, host, port, timeout=None, local_address=None, socket_options=None):
        self.connects.append(host)
        return await super().connect_tcp(host, port, timeout, local_address, socket_options)


class TestResolveHost:

    @pytest.mark.asyncio
    async def test_ipv4_first(self, monkeypatch):
        resolver = FakeResolver(ipv4=addrinfo(socket.AF_INET, "1.2.3.4", "1.2.3.4", "5.6.7.8"))
        monkeypatch.setattr(transport, "_getaddrinfo", resolver)

        assert await resolve_host("example.com", 443) == ["1.2.3.4", "5.6.7.8"]
        assert resolver.calls == [socket.AF_INET]

    @pytest.mark.asyncio
    async def test_falls_back_to_ipv6(self, monkeypatch):
        resolver = FakeResolver(
            ipv4=socket.gaierror(socket.EAI_NONAME, "no A record"),
            ipv6=addrinfo(socket.AF_INET6, "2001:db8::1"),
        )
        monkeypatch.setattr(transport, "_getaddrinfo", resolver)

        assert await resolve_host("v6only.example.com", 443) == ["2001:db8::1"]
        assert resolver.calls == [socket.AF_INET, socket.AF_INET6]

    @pytest.mark.asyncio
    async def test_both_fail_surfaces_ipv4_error(self, monkeypatch):
        ipv4_error = socket.gaierror(socket.EAI_NONAME, "ipv4 failed")
        resolver = FakeResolver(ipv4=ipv4_error, ipv6=socket.gaierror(socket.EAI_NONAME, "ipv6 failed"))
        monkeypatch.setattr(transport, "_getaddrinfo", resolver)

        with pytest.raises(socket.gaierror) as exc_info:
            await resolve_host("nowhere.invalid", 443)
        assert exc_info.value is ipv4_error


class TestDualStackBackend:

    @pytest.mark.asyncio
    async def test_connects_to_resolved_address(self, monkeypatch):
        monkeypatch.setattr(
            transport, "_getaddrinfo", FakeResolver(ipv4=addrinfo(socket.AF_INET, "10.0.0.1"))
        )
        inner = RecordingBackend()
        await DualStackBackend(inner).connect_tcp("api.example.com", 443)
        assert inner.connected == ["10.0.0.1"]

    @pytest.mark.asyncio
    async def test_tries_next_address_on_refusal(self, monkeypatch):
        monkeypatch.setattr(
            transport,
            "_getaddrinfo",
            FakeResolver(ipv4=addrinfo(socket.AF_INET, "10.0.0.1", "10.0.0.2")),
        )
        inner = RecordingBackend(refuse={"10.0.0.1"})
        await DualStackBackend(inner).connect_tcp("api.example.com", 443)
        assert inner.connected == ["10.0.0.1", "10.0.0.2"]

    @pytest.mark.asyncio
    async def test_resolution_failure_is_connect_error(self, monkeypatch):
        monkeypatch.setattr(
            transport,
            "_getaddrinfo",
            FakeResolver(
                ipv4=socket.gaierror(socket.EAI_NONAME, "a"),
                ipv6=socket.gaierror(socket.EAI_NONAME, "b"),
            ),
        )
        with pytest.raises(httpcore.ConnectError):
            await DualStackBackend(RecordingBackend()).connect_tcp("nowhere.invalid", 443)

    @pytest.mark.asyncio
    async def test_all_addresses_refused(self, monkeypatch):
        monkeypatch.setattr(
            transport, "_getaddrinfo", FakeResolver(ipv4=addrinfo(socket.AF_INET, "10.0.0.1"))
        )
        with pytest.raises(httpcore.ConnectError, match="refused"):
            await DualStackBackend(RecordingBackend(refuse={"10.0.0.1"})).connect_tcp("h", 443)


class TestPooledTransport:

    @pytest.mark.asyncio
    async def test_unresolvable_host_raises_httpx_connect_error(self, monkeypatch):
        monkeypatch.setattr(
            transport,
            "_getaddrinfo",
            FakeResolver(
                ipv4=socket.gaierror(socket.EAI_NONAME, "a"),
                ipv6=socket.gaierror(socket.EAI_NONAME, "b"),
            ),
        )
        async with httpx.AsyncClient(transport=PooledTransport()) as client:
            with pytest.raises(httpx.ConnectError):
                await client.get("https://nowhere.invalid/v1internal")

    @pytest.mark.asyncio
    async def test_idle_connection_is_reused(self, monkeypatch):
        monkeypatch.setattr(
            transport, "_getaddrinfo", FakeResolver(ipv4=addrinfo(socket.AF_INET, "10.0.0.1"))
        )
        backend = CountingMockBackend(
            [b"HTTP/1.1 200 OK\r\n", b"Content-Length: 2\r\n", b"\r\n", b"ok"] * 2
        )
        pooled = PooledTransport(network_backend=DualStackBackend(backend))
        async with httpx.AsyncClient(transport=pooled) as client:
            first = await client.get("http://api.example.com/v1internal")
            second = await client.get("http://api.example.com/v1internal")

        assert first.text == "ok"
        assert second.text == "ok"
        assert backend.connects == ["10.0.0.1"]

    def test_exception_mapping(self):
        with pytest.raises(httpx.ReadTimeout):
            with map_httpcore_exceptions():
                raise httpcore.ReadTimeout("slow")
        with pytest.raises(httpx.RemoteProtocolError):
            with map_httpcore_exceptions():
                raise httpcore.RemoteProtocolError("bad frame")
        with pytest.raises(ValueError):
            with map_httpcore_exceptions():
                raise ValueError("unrelated")


class TestHTTPClientPool:

    @pytest.mark.asyncio
    async def test_client_is_shared_per_proxy(self):
        pool = HTTPClientPool()
        direct = pool.get_client()
        assert pool.get_client() is direct
        proxied = pool.get_client("http://127.0.0.1:8080")
        assert proxied is not direct
        await pool.close_all()
        assert direct.is_closed
        assert pool.get_client() is not direct
        await pool.close_all()
