"""
TCP connect probes.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Sequence

from deepscan.core.errors import NetworkFailure, ProbeTimeout

logger = logging.getLogger(__name__)

WEB_PORTS: tuple[int, ...] = (80, 443, 8080, 8443)


async def tcp_connect(host: str, port: int, timeout: float) -> int:
    """Open and immediately close a TCP connection to ``host:port``.

    Returns:
        The port, when the connection was accepted.

    Raises:
        ProbeTimeout:   When the handshake does not finish within *timeout*.
        NetworkFailure: When the connection is refused or unreachable.
    """
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(host, port),
            timeout=timeout,
        )
    except asyncio.TimeoutError as exc:
        raise ProbeTimeout(f"connect to {host}:{port} timed out") from exc
    except OSError as exc:
        raise NetworkFailure(f"connect to {host}:{port} failed: {exc}") from exc

    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        logger.debug("Unclean close of %s:%d", host, port)
    return port


async def _try_port(host: str, port: int, timeout: float) -> Optional[int]:
    try:
        return await tcp_connect(host, port, timeout)
    except (ProbeTimeout, NetworkFailure) as exc:
        logger.debug("%s", exc)
        return None


async def first_open_port(
    host: str,
    ports: Sequence[int] = WEB_PORTS,
    timeout: float = 0.8,
) -> Optional[int]:
    """Race connects to all *ports* and return whichever accepts first.

    The remaining attempts are cancelled as soon as one port answers.
    """
    tasks = [asyncio.ensure_future(_try_port(host, port, timeout)) for port in ports]
    try:
        for next_done in asyncio.as_completed(tasks):
            port = await next_done
            if port is not None:
                return port
        return None
    finally:
        for task in tasks:
            task.cancel()
