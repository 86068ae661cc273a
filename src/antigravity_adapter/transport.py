# src/antigravity_adapter/transport.py
"""
HTTP transport for upstream calls.

Hostnames are resolved IPv4-first with an IPv6 fallback. Some hosts
advertise AAAA records that are unreachable from IPv4-only networks, and
the system resolver's default ordering would make every new connection
wait on the IPv6 attempt first.

The resolver plugs into httpcore as a network backend, so connection
pooling and keep-alive stay httpcore's job. TLS still receives the
original hostname for SNI and certificate checks.
"""

import asyncio
import logging
import socket
from contextlib import contextmanager
from typing import AsyncIterator, Dict, Iterable, List, Optional

import httpcore
import httpx

from .timeout_config import TimeoutConfig

lib_logger = logging.getLogger("antigravity_adapter")


async def _getaddrinfo(host: str, port: int, family: int):
    loop = asyncio.get_running_loop()
    return await loop.getaddrinfo(host, port, family=family, type=socket.SOCK_STREAM)


async def resolve_host(host: str, port: int) -> List[str]:
    """
    Resolve `host` to a list of IP addresses.

    IPv4 is tried first; IPv6 only when the IPv4 lookup fails. When both
    fail the IPv4 lookup error is raised.

    Raises:
        socket.gaierror: neither address family resolved
    """
    try:
        infos = await _getaddrinfo(host, port, socket.AF_INET)
    except socket.gaierror as ipv4_error:
        try:
            infos = await _getaddrinfo(host, port, socket.AF_INET6)
        except socket.gaierror:
            raise ipv4_error
        lib_logger.debug(f"IPv4 lookup failed for {host}, using IPv6 ({ipv4_error})")

    addresses: List[str] = []
    for _family, _type, _proto, _canonname, sockaddr in infos:
        if sockaddr[0] not in addresses:
            addresses.append(sockaddr[0])
    return addresses


class DualStackBackend(httpcore.AsyncNetworkBackend):
    """httpcore network backend that connects through resolve_host()."""

    def __init__(self, backend: Optional[httpcore.AsyncNetworkBackend] = None):
        self._backend = backend or httpcore.AnyIOBackend()

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options: Optional[Iterable] = None,
    ) -> httpcore.AsyncNetworkStream:
        try:
            addresses = await asyncio.wait_for(resolve_host(host, port), timeout)
        except asyncio.TimeoutError as exc:
            raise httpcore.ConnectTimeout(f"DNS lookup for {host} timed out") from exc
        except socket.gaierror as exc:
            raise httpcore.ConnectError(f"Could not resolve {host}: {exc}") from exc

        last_error: Optional[Exception] = None
        for address in addresses:
            try:
                return await self._backend.connect_tcp(
                    address,
                    port,
                    timeout=timeout,
                    local_address=local_address,
                    socket_options=socket_options,
                )
            except httpcore.ConnectError as exc:
                lib_logger.debug(f"Connect to {host} via {address} failed: {exc}")
                last_error = exc

        if last_error is None:
            raise httpcore.ConnectError(f"No addresses found for {host}")
        raise last_error

    async def connect_unix_socket(
        self,
        path: str,
        timeout: Optional[float] = None,
        socket_options: Optional[Iterable] = None,
    ) -> httpcore.AsyncNetworkStream:
        return await self._backend.connect_unix_socket(
            path, timeout=timeout, socket_options=socket_options
        )

    async def sleep(self, seconds: float) -> None:
        await self._backend.sleep(seconds)


# httpcore → httpx, most specific first
HTTPCORE_EXC_MAP = [
    (httpcore.ConnectTimeout, httpx.ConnectTimeout),
    (httpcore.ReadTimeout, httpx.ReadTimeout),
    (httpcore.WriteTimeout, httpx.WriteTimeout),
    (httpcore.PoolTimeout, httpx.PoolTimeout),
    (httpcore.TimeoutException, httpx.TimeoutException),
    (httpcore.ConnectError, httpx.ConnectError),
    (httpcore.ReadError, httpx.ReadError),
    (httpcore.WriteError, httpx.WriteError),
    (httpcore.NetworkError, httpx.NetworkError),
    (httpcore.ProxyError, httpx.ProxyError),
    (httpcore.UnsupportedProtocol, httpx.UnsupportedProtocol),
    (httpcore.RemoteProtocolError, httpx.RemoteProtocolError),
    (httpcore.LocalProtocolError, httpx.LocalProtocolError),
    (httpcore.ProtocolError, httpx.ProtocolError),
]


@contextmanager
def map_httpcore_exceptions(request: Optional[httpx.Request] = None):
    try:
        yield
    except Exception as exc:
        for from_exc, to_exc in HTTPCORE_EXC_MAP:
            if isinstance(exc, from_exc):
                raise to_exc(str(exc), request=request) from exc
        raise


class PooledResponseStream(httpx.AsyncByteStream):
    """Wraps an httpcore response stream as an httpx byte stream."""

    def __init__(self, stream, request: Optional[httpx.Request] = None):
        self._stream = stream
        self._request = request

    async def __aiter__(self) -> AsyncIterator[bytes]:
        with map_httpcore_exceptions(self._request):
            async for chunk in self._stream:
                yield chunk

    async def aclose(self) -> None:
        if hasattr(self._stream, "aclose"):
            await self._stream.aclose()


class PooledTransport(httpx.AsyncBaseTransport):
    """
    httpx transport over an httpcore connection pool with DualStackBackend.

    Idle connections are kept alive per origin and reused across requests.
    """

    def __init__(
        self,
        limits: Optional[httpx.Limits] = None,
        verify: bool = True,
        http2: bool = False,
        network_backend: Optional[httpcore.AsyncNetworkBackend] = None,
    ):
        limits = limits or httpx.Limits(
            max_connections=100, max_keepalive_connections=20, keepalive_expiry=30.0
        )
        self._pool = httpcore.AsyncConnectionPool(
            ssl_context=httpx.create_ssl_context(verify=verify),
            max_connections=limits.max_connections,
            max_keepalive_connections=limits.max_keepalive_connections,
            keepalive_expiry=limits.keepalive_expiry,
            http1=True,
            http2=http2,
            network_backend=network_backend or DualStackBackend(),
        )

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        core_request = httpcore.Request(
            method=request.method,
            url=httpcore.URL(
                scheme=request.url.raw_scheme,
                host=request.url.raw_host,
                port=request.url.port,
                target=request.url.raw_path,
            ),
            headers=request.headers.raw,
            content=request.stream,
            extensions=request.extensions,
        )
        with map_httpcore_exceptions(request):
            core_response = await self._pool.handle_async_request(core_request)

        return httpx.Response(
            status_code=core_response.status,
            headers=core_response.headers,
            stream=PooledResponseStream(core_response.stream, request),
            extensions=core_response.extensions,
        )

    async def aclose(self) -> None:
        await self._pool.aclose()


class HTTPClientPool:
    """
    Shared httpx.AsyncClient instances, one per proxy setting.

    Without a proxy the client runs on PooledTransport. With one, the stock
    httpx proxy transport is used and DNS happens on the proxy side.
    """

    def __init__(self, timeout: Optional[httpx.Timeout] = None):
        self.timeout = timeout or TimeoutConfig.streaming()
        self._clients: Dict[Optional[str], httpx.AsyncClient] = {}

    def get_client(self, proxy: Optional[str] = None) -> httpx.AsyncClient:
        client = self._clients.get(proxy)
        if client is not None and not client.is_closed:
            return client

        if proxy:
            client = httpx.AsyncClient(
                proxy=proxy, timeout=self.timeout, follow_redirects=True
            )
            lib_logger.info(f"Created HTTP client via proxy {proxy}")
        else:
            client = httpx.AsyncClient(
                transport=PooledTransport(), timeout=self.timeout, follow_redirects=True
            )
            lib_logger.debug("Created pooled dual-stack HTTP client")

        self._clients[proxy] = client
        return client

    async def close_all(self) -> None:
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
        lib_logger.debug("All HTTP clients closed")
