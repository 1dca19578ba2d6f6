"""Shared test fixtures."""

import asyncio
import json
import os

import pytest

from ethagent.client.channel import ToolChannel
from ethagent.client.transport import MemoryTransport, memory_pipe
from ethagent.config import AgentConfig
from ethagent.helpers.factory import encode_frame, parse_frame

from services.provider.server import ToolProviderServer
from services.provider.state import DevnetState


class InMemoryProvider:
    """A devnet provider reachable through in-process pipes.

    Each `connect()` opens a fresh pipe against the same ledger, the way a
    restarted provider would be reached through a new channel. Faults can
    be injected per method:
        silent    requests for these methods are never answered
        garbled   these methods get a response that breaks the message schema
        slow      method -> seconds to wait before answering
        kill_on   the pipe is closed when this method arrives, `kills` times
        spare     matching requests let through before `kill_on` takes effect
    """

    def __init__(self, server: ToolProviderServer | None = None, timeout: float = 0.5) -> None:
        self.server = server or ToolProviderServer()
        self.timeout = timeout
        self.connections = 0
        self.requests: list[str] = []
        self.silent: set[str] = set()
        self.garbled: set[str] = set()
        self.slow: dict[str, float] = {}
        self.kill_on: str | None = None
        self.kills = 0
        self.spare = 0
        self._ends: list[MemoryTransport] = []
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def state(self) -> DevnetState:
        return self.server.state

    async def connect(self) -> ToolChannel:
        client_end, server_end = memory_pipe()
        self.connections += 1
        self._ends.append(server_end)
        self._tasks.append(asyncio.create_task(self._serve(server_end)))
        channel = ToolChannel(client_end, timeout=self.timeout, name=f"test-{self.connections}")
        await channel.start()
        return channel

    async def kill(self) -> None:
        """Close the most recent connection from the provider side."""
        await self._ends[-1].close()

    async def shutdown(self) -> None:
        for end in self._ends:
            await end.close()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def _serve(self, end: MemoryTransport) -> None:
        while True:
            frame = await end.receive()
            if not frame:
                break
            request = parse_frame(frame)
            method = request.method or ""
            self.requests.append(method)
            if method == self.kill_on and self.kills > 0 and self.spare > 0:
                self.spare -= 1
            elif method == self.kill_on and self.kills > 0:
                self.kills -= 1
                await end.close()
                break
            if method in self.silent:
                continue
            if method in self.garbled:
                bad = {"id": request.id, "kind": "response", "result": {}, "error": {"code": 1, "message": "?"}}
                await end.send(json.dumps(bad).encode() + b"\n")
                continue
            if method in self.slow:
                await asyncio.sleep(self.slow[method])
            response = self.server.handle_frame(frame)
            if response is not None:
                await end.send(encode_frame(response))


@pytest.fixture
def nats_url() -> str:
    return os.environ.get("NATS_URL", "nats://localhost:4222")


@pytest.fixture
def devnet() -> DevnetState:
    return DevnetState.seeded()


@pytest.fixture
def config() -> AgentConfig:
    """Fast limits for control-loop tests."""
    return AgentConfig(call_timeout=0.5, max_plan_retries=2, replan_limit=2)


@pytest.fixture
async def provider(devnet: DevnetState) -> InMemoryProvider:
    """An in-memory provider, shut down after the test."""
    p = InMemoryProvider(ToolProviderServer(devnet))
    yield p  # type: ignore[misc]
    await p.shutdown()


@pytest.fixture
async def channel(provider: InMemoryProvider) -> ToolChannel:
    """A started channel to the in-memory provider."""
    ch = await provider.connect()
    yield ch  # type: ignore[misc]
    await ch.close()
