"""
Tests for the TCP connect probes.
"""

from __future__ import annotations

import asyncio

import pytest

from deepscan.core.errors import ProbeTimeout
from deepscan.probes.tcp import first_open_port, tcp_connect


@pytest.mark.asyncio
async def test_connects_to_listening_port() -> None:
    server = await asyncio.start_server(lambda reader, writer: writer.close(), "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    try:
        assert await tcp_connect("127.0.0.1", port, timeout=1.0) == port
        assert await first_open_port("127.0.0.1", (port,), timeout=1.0) == port
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_first_open_port_returns_none_when_all_fail(monkeypatch) -> None:
    async def _refuse(host, port, timeout):
        raise ProbeTimeout(f"connect to {host}:{port} timed out")

    monkeypatch.setattr("deepscan.probes.tcp.tcp_connect", _refuse)

    assert await first_open_port("203.0.113.7", (80, 443), timeout=0.1) is None


@pytest.mark.asyncio
async def test_first_open_port_takes_first_acceptor(monkeypatch) -> None:
    async def _connect(host, port, timeout):
        if port == 80:
            await asyncio.sleep(5)
        return port

    monkeypatch.setattr("deepscan.probes.tcp.tcp_connect", _connect)

    assert await first_open_port("203.0.113.7", (80, 8443), timeout=0.1) == 8443
