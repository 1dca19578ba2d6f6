"""NatsTransport — carries tool-channel frames over a NATS subject.

Requests are published to `ethagent.tools.<provider>` with a private inbox as
reply subject; the provider answers each frame on that inbox. The channel on
top still matches responses by id, so NATS ordering does not matter.
"""

import asyncio
import logging
from typing import Any

import nats
from nats.aio.client import Client as NATSClient
from nats.aio.msg import Msg
from nats.errors import ConnectionClosedError, NoServersError, OutboundBufferLimitError

from ethagent.client.transport import FrameTransport
from ethagent.errors import ProtocolTransportError

logger = logging.getLogger(__name__)

SUBJECT_PREFIX = "ethagent.tools"


def provider_subject(provider: str = "devnet") -> str:
    """Return the NATS subject a provider listens on."""
    return f"{SUBJECT_PREFIX}.{provider}"


class NatsTransport(FrameTransport):
    """Frame transport over core NATS request subjects.

    Usage:
        transport = NatsTransport("nats://localhost:4222")
        await transport.connect()
        ...
        await transport.close()
    """

    def __init__(self, url: str = "nats://localhost:4222", provider: str = "devnet") -> None:
        self._url = url
        self._subject = provider_subject(provider)
        self._nc: NATSClient | None = None
        self._inbox: str | None = None
        self._subscription: Any = None
        self._frames: asyncio.Queue[bytes] = asyncio.Queue()
        self._closed = False

    @property
    def subject(self) -> str:
        return self._subject

    @property
    def is_open(self) -> bool:
        return not self._closed and self._nc is not None and self._nc.is_connected

    async def connect(self) -> None:
        """Connect to NATS and subscribe to a private reply inbox."""
        try:
            self._nc = await nats.connect(
                self._url,
                disconnected_cb=self._on_disconnect,
                closed_cb=self._on_closed,
                error_cb=self._on_error,
                # Reconnecting would silently drop in-flight calls
                allow_reconnect=False,
            )
        except (NoServersError, OSError) as e:
            raise ProtocolTransportError(f"Cannot reach NATS at {self._url}: {e}") from e
        self._inbox = self._nc.new_inbox()
        self._subscription = await self._nc.subscribe(self._inbox, cb=self._on_frame)
        logger.info("NATS transport connected to %s (subject %s)", self._url, self._subject)

    async def send(self, frame: bytes) -> None:
        if not self.is_open or self._nc is None or self._inbox is None:
            raise ProtocolTransportError("NATS transport is not connected")
        try:
            await self._nc.publish(self._subject, frame, reply=self._inbox)
            await self._nc.flush()
        except (ConnectionClosedError, OutboundBufferLimitError, asyncio.TimeoutError) as e:
            raise ProtocolTransportError(f"NATS publish failed: {e}") from e

    async def receive(self) -> bytes:
        if self._closed and self._frames.empty():
            return b""
        return await self._frames.get()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._frames.put_nowait(b"")
        if self._subscription is not None:
            try:
                await self._subscription.unsubscribe()
            except ConnectionClosedError:
                pass
        if self._nc is not None and not self._nc.is_closed:
            await self._nc.close()
        self._nc = None
        logger.info("NATS transport closed")

    async def _on_frame(self, msg: Msg) -> None:
        self._frames.put_nowait(msg.data)

    async def _on_disconnect(self, _: Any = None) -> None:
        logger.warning("Disconnected from NATS")
        self._frames.put_nowait(b"")

    async def _on_closed(self, _: Any = None) -> None:
        self._frames.put_nowait(b"")

    async def _on_error(self, e: Exception) -> None:
        logger.error("NATS error: %s", e)
