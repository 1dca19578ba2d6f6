"""ToolChannel — request/response calls over a frame transport.

Every call gets a fresh id. A single background reader matches responses to
waiting callers by id, so responses may arrive in any order.

The channel never reconnects. Once its transport fails, every pending and
future call raises ProtocolTransportError and the owner must build a new
channel (see `ChannelFactory`).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from ethagent.client.transport import FrameTransport
from ethagent.errors import (
    ProtocolError,
    ProtocolMalformed,
    ProtocolRemoteError,
    ProtocolTimeout,
    ProtocolTransportError,
)
from ethagent.helpers.factory import create_request, encode_frame, parse_frame, peek_id
from ethagent.models.capabilities import is_idempotent
from ethagent.models.envelope import RpcMessage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ToolChannel:
    """Async RPC channel to a tool provider.

    Usage:
        channel = ToolChannel(transport, timeout=10.0)
        await channel.start()
        result = await channel.call("check_balance", {"address": "0x..."})
        await channel.close()
    """

    def __init__(
        self,
        transport: FrameTransport,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        name: str = "tools",
    ) -> None:
        self._transport = transport
        self._timeout = timeout
        self._name = name
        self._pending: dict[str, asyncio.Future[RpcMessage]] = {}
        self._reader: asyncio.Task[None] | None = None
        self._closed_reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self._reader is not None and self._closed_reason is None

    @property
    def in_flight(self) -> int:
        """Number of calls still waiting for a response."""
        return len(self._pending)

    @property
    def transport(self) -> FrameTransport:
        return self._transport

    async def start(self) -> None:
        """Start the background reader."""
        if self._reader is not None:
            return
        self._reader = asyncio.create_task(self._read_loop(), name=f"{self._name}-reader")
        logger.debug("Channel %s started", self._name)

    async def __aenter__(self) -> "ToolChannel":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def call(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
        result_model: type[BaseModel] | None = None,
    ) -> dict[str, Any]:
        """Invoke `method` on the provider and wait for its result.

        Args:
            method: Capability name.
            params: JSON-compatible parameters.
            timeout: Overrides the channel default for this call.
            result_model: Optional schema the result must satisfy.

        Raises:
            ProtocolTimeout: No response within the timeout.
            ProtocolTransportError: The stream closed or errored.
            ProtocolRemoteError: The provider returned an error.
            ProtocolMalformed: The response didn't match the expected schema.
        """
        if self._reader is None:
            raise ProtocolTransportError(f"Channel {self._name} not started. Call start() first.")
        if self._closed_reason is not None:
            raise ProtocolTransportError(f"Channel {self._name} is closed: {self._closed_reason}")

        request = create_request(method, params)
        wait = self._timeout if timeout is None else timeout
        future: asyncio.Future[RpcMessage] = asyncio.get_running_loop().create_future()
        self._pending[request.id] = future

        try:
            try:
                await self._transport.send(encode_frame(request))
            except ProtocolTransportError as e:
                self._shutdown(str(e))
                raise
            logger.debug("-> %s %s", request.id, method)

            try:
                response = await asyncio.wait_for(future, wait)
            except asyncio.TimeoutError:
                logger.warning("Call %s (%s) timed out after %.1fs", method, request.id, wait)
                raise ProtocolTimeout(method, request.id, wait) from None
        finally:
            self._pending.pop(request.id, None)

        if response.error is not None:
            raise ProtocolRemoteError(response.error.code, response.error.message, response.error.data)
        if response.result is None:
            raise ProtocolMalformed(f"{method} ({request.id}): response has no result")
        if result_model is not None:
            try:
                result_model.model_validate(response.result)
            except ValidationError as e:
                raise ProtocolMalformed(f"{method} ({request.id}): {e.error_count()} schema errors") from e
        return response.result

    async def close(self) -> None:
        """Stop the reader, close the transport and fail pending calls."""
        self._shutdown("closed by owner")
        if self._reader is not None and not self._reader.done():
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
        await self._transport.close()
        logger.debug("Channel %s closed", self._name)

    # --- Internals ---

    async def _read_loop(self) -> None:
        reason = "end of stream"
        try:
            while True:
                try:
                    frame = await self._transport.receive()
                except ProtocolTransportError as e:
                    reason = str(e)
                    break
                if not frame:
                    break
                if not frame.strip():
                    continue
                self._dispatch(frame)
        finally:
            self._shutdown(reason)

    def _dispatch(self, frame: bytes) -> None:
        try:
            message = parse_frame(frame)
        except ValueError as e:
            request_id = peek_id(frame)
            future = self._pending.get(request_id) if request_id else None
            if future is not None and not future.done():
                future.set_exception(ProtocolMalformed(f"Unparseable response {request_id}: {e}"))
            else:
                logger.warning("Dropping unparseable frame on %s: %r", self._name, frame[:200])
            return

        if message.is_request:
            logger.warning("Ignoring unexpected request %s (%s) from provider", message.id, message.method)
            return

        future = self._pending.get(message.id)
        if future is None or future.done():
            # Late answer to a call that already timed out
            logger.warning("Dropping response for unknown id %s", message.id)
            return
        logger.debug("<- %s %s", message.id, "error" if message.is_error else "ok")
        future.set_result(message)

    def _shutdown(self, reason: str) -> None:
        if self._closed_reason is None:
            self._closed_reason = reason
            if reason != "closed by owner":
                logger.error("Channel %s lost: %s", self._name, reason)
        for request_id, future in list(self._pending.items()):
            if not future.done():
                future.set_exception(
                    ProtocolTransportError(f"Channel {self._name} closed before {request_id} answered: {reason}")
                )


ChannelFactory = Callable[[], Awaitable[ToolChannel]]
"""Zero-argument coroutine function returning a started ToolChannel."""


async def call_with_retry(
    channel: ToolChannel,
    method: str,
    params: dict[str, Any] | None = None,
    *,
    attempts: int = 2,
    result_model: type[BaseModel] | None = None,
) -> dict[str, Any]:
    """Call an idempotent capability, retrying timeouts up to `attempts` times.

    Only timeouts are retried: transport failures kill the channel and
    remote or malformed answers would repeat.
    """
    if not is_idempotent(method):
        raise ValueError(f"{method} is not idempotent and must not be retried")
    if attempts < 1:
        raise ValueError(f"attempts must be at least 1, got {attempts}")
    last: ProtocolError | None = None
    for attempt in range(1, attempts + 1):
        try:
            return await channel.call(method, params, result_model=result_model)
        except ProtocolTimeout as e:
            last = e
            logger.info("Retrying %s after timeout (%d/%d)", method, attempt, attempts)
    raise last or ProtocolTimeout(method, "-", channel.timeout)
