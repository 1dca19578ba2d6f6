"""Frame transports — byte carriers underneath the tool channel.

A transport moves whole newline-terminated frames between two processes (or
two ends of an in-process pipe). It knows nothing about ids or methods; that
is the channel's job.
"""

import asyncio
import logging
import os
import sys
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from typing import IO

from ethagent.errors import ProtocolTransportError

logger = logging.getLogger(__name__)

# Largest single frame accepted from a subprocess (contract code can be big)
MAX_FRAME_BYTES = 4 * 1024 * 1024


class FrameTransport(ABC):
    """Bidirectional stream of frames.

    `receive()` returns `b""` once the peer has gone away; after that the
    transport is dead and must be replaced, never reused.
    """

    @abstractmethod
    async def send(self, frame: bytes) -> None:
        """Write one frame. Raises ProtocolTransportError if the stream is gone."""

    @abstractmethod
    async def receive(self) -> bytes:
        """Read the next frame, or `b""` at end of stream."""

    @abstractmethod
    async def close(self) -> None:
        """Release the stream. Safe to call more than once."""

    @property
    @abstractmethod
    def is_open(self) -> bool: ...


class SubprocessTransport(FrameTransport):
    """Frames over the stdin/stdout pipes of a child process.

    Usage:
        transport = SubprocessTransport([sys.executable, "-m", "services.provider"])
        await transport.start()
        await transport.send(frame)
        line = await transport.receive()
        await transport.close()

    The child's stderr is inherited so its logs reach the terminal.
    """

    def __init__(
        self,
        command: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
        cwd: str | os.PathLike[str] | None = None,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._env = dict(env) if env is not None else None
        self._cwd = cwd
        self._process: asyncio.subprocess.Process | None = None
        self._closed = False

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    @property
    def is_open(self) -> bool:
        return (
            not self._closed
            and self._process is not None
            and self._process.returncode is None
        )

    async def start(self) -> None:
        """Spawn the provider process."""
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                env=self._env,
                cwd=self._cwd,
                limit=MAX_FRAME_BYTES,
            )
        except OSError as e:
            raise ProtocolTransportError(f"Failed to start {self._command[0]}: {e}") from e
        logger.info("Started tool provider pid=%d: %s", self._process.pid, " ".join(self._command))

    async def send(self, frame: bytes) -> None:
        if not self.is_open or self._process is None or self._process.stdin is None:
            raise ProtocolTransportError("Tool provider process is not running")
        try:
            self._process.stdin.write(frame)
            await self._process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ProtocolTransportError(f"Write to tool provider failed: {e}") from e

    async def receive(self) -> bytes:
        if self._process is None or self._process.stdout is None:
            return b""
        try:
            return await self._process.stdout.readline()
        except ValueError as e:
            # StreamReader raises ValueError when a line exceeds the limit
            raise ProtocolTransportError(f"Oversized frame from tool provider: {e}") from e
        except ConnectionResetError:
            return b""

    def kill(self) -> None:
        """Kill the child immediately (used when it stops responding)."""
        if self._process is not None and self._process.returncode is None:
            self._process.kill()
            logger.warning("Killed tool provider pid=%d", self._process.pid)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        process = self._process
        if process is None:
            return
        if process.stdin is not None and not process.stdin.is_closing():
            process.stdin.close()
        try:
            await asyncio.wait_for(process.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            logger.warning("Tool provider pid=%d did not exit, terminating", process.pid)
            process.kill()
            await process.wait()
        logger.info("Tool provider pid=%d exited with %s", process.pid, process.returncode)


class StdioTransport(FrameTransport):
    """Frames over this process's own stdin/stdout (the provider side).

    Build with `await StdioTransport.open()`. Logging must go to stderr,
    since stdout carries frames.
    """

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._reader = reader
        self._writer = writer
        self._closed = False

    @classmethod
    async def open(cls, stdin: IO[bytes] | None = None, stdout: IO[bytes] | None = None) -> "StdioTransport":
        loop = asyncio.get_running_loop()
        reader = asyncio.StreamReader(limit=MAX_FRAME_BYTES)
        await loop.connect_read_pipe(
            lambda: asyncio.StreamReaderProtocol(reader), stdin or sys.stdin.buffer
        )
        write_transport, write_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, stdout or sys.stdout.buffer
        )
        writer = asyncio.StreamWriter(write_transport, write_protocol, reader, loop)
        return cls(reader, writer)

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def send(self, frame: bytes) -> None:
        if self._closed:
            raise ProtocolTransportError("stdout is closed")
        try:
            self._writer.write(frame)
            await self._writer.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise ProtocolTransportError(f"Write to stdout failed: {e}") from e

    async def receive(self) -> bytes:
        if self._closed:
            return b""
        try:
            return await self._reader.readline()
        except ValueError as e:
            raise ProtocolTransportError(f"Oversized frame on stdin: {e}") from e

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writer.close()


class MemoryTransport(FrameTransport):
    """One end of an in-process pipe. Build pairs with `memory_pipe()`."""

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._inbox: asyncio.Queue[bytes] = asyncio.Queue()
        self._peer: "MemoryTransport | None" = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return not self._closed

    async def send(self, frame: bytes) -> None:
        if self._closed or self._peer is None or self._peer._closed:
            raise ProtocolTransportError(f"{self.name}: pipe is closed")
        self._peer._inbox.put_nowait(frame)

    async def receive(self) -> bytes:
        if self._closed and self._inbox.empty():
            return b""
        return await self._inbox.get()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Wake both readers with end-of-stream
        self._inbox.put_nowait(b"")
        if self._peer is not None and not self._peer._closed:
            self._peer._inbox.put_nowait(b"")


def memory_pipe() -> tuple[MemoryTransport, MemoryTransport]:
    """Return two connected in-process transports (client end, server end)."""
    client = MemoryTransport("client")
    server = MemoryTransport("server")
    client._peer = server
    server._peer = client
    return client, server
