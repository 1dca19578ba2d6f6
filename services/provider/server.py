"""ToolProviderServer — answers tool-channel requests against the devnet ledger."""

import asyncio
import logging

import nats
from nats.aio.msg import Msg

from ethagent.client.nats_transport import provider_subject
from ethagent.client.transport import FrameTransport
from ethagent.errors import ProtocolTransportError
from ethagent.helpers.factory import create_error, create_response, encode_frame, parse_frame, peek_id
from ethagent.helpers.validation import validate_message
from ethagent.models.capabilities import CAPABILITIES, is_known_capability
from ethagent.models.envelope import ErrorCode, RpcMessage

from services.provider.rules import HANDLERS, CapabilityError
from services.provider.state import DevnetState

logger = logging.getLogger(__name__)


class ToolProviderServer:
    """Serves the capability catalogue over any frame transport.

    Requests are handled one at a time, in arrival order, and every request
    gets exactly one response.
    """

    def __init__(self, state: DevnetState | None = None) -> None:
        self._state = state if state is not None else DevnetState.seeded()
        self._handled = 0

    @property
    def state(self) -> DevnetState:
        """Expose state for testing."""
        return self._state

    @property
    def handled(self) -> int:
        return self._handled

    def handle_frame(self, frame: bytes) -> RpcMessage | None:
        """Turn one request frame into its response (None if unanswerable)."""
        try:
            request = parse_frame(frame)
        except ValueError as e:
            request_id = peek_id(frame)
            if request_id is None:
                logger.warning("Dropping unparseable frame: %r", frame[:200])
                return None
            return create_error(request_id, ErrorCode.PARSE_ERROR, f"Invalid message: {e}")

        if not request.is_request:
            logger.warning("Ignoring response frame %s sent to provider", request.id)
            return None
        self._handled += 1
        return self.handle_request(request)

    def handle_request(self, request: RpcMessage) -> RpcMessage:
        method = request.method or ""
        if not is_known_capability(method):
            return create_error(request.id, ErrorCode.METHOD_NOT_FOUND, f"Unknown method: {method}")

        errors = validate_message(request)
        if errors:
            logger.info("Rejected %s (%s): %s", method, request.id, "; ".join(errors))
            return create_error(request.id, ErrorCode.INVALID_PARAMS, "; ".join(errors))

        params = CAPABILITIES[method].params_model.model_validate(request.params or {})
        try:
            result = HANDLERS[method](params, self._state)
        except CapabilityError as e:
            logger.info("%s (%s) failed: %s", method, request.id, e)
            return create_error(request.id, ErrorCode.EXECUTION_FAILED, str(e))
        except Exception as e:
            logger.exception("Handler for %s crashed", method)
            return create_error(request.id, ErrorCode.INTERNAL_ERROR, f"Internal error: {type(e).__name__}")

        logger.debug("%s (%s) ok", method, request.id)
        return create_response(request.id, result)

    async def serve(self, transport: FrameTransport) -> None:
        """Answer frames until the peer closes the stream."""
        logger.info("Tool provider serving")
        try:
            while True:
                frame = await transport.receive()
                if not frame:
                    break
                if not frame.strip():
                    continue
                response = self.handle_frame(frame)
                if response is not None:
                    await transport.send(encode_frame(response))
        except ProtocolTransportError as e:
            logger.warning("Transport lost: %s", e)
        finally:
            await transport.close()
            logger.info("Tool provider stopped after %d requests", self._handled)


async def serve_nats(
    server: ToolProviderServer,
    url: str,
    stop: asyncio.Event,
    provider: str = "devnet",
) -> None:
    """Answer frames published on the provider's NATS subject until `stop` is set."""
    nc = await nats.connect(url)
    subject = provider_subject(provider)

    async def _on_request(msg: Msg) -> None:
        response = server.handle_frame(msg.data)
        if response is not None and msg.reply:
            await msg.respond(encode_frame(response))

    sub = await nc.subscribe(subject, cb=_on_request)
    logger.info("Tool provider listening on %s (%s)", subject, url)
    try:
        await stop.wait()
    finally:
        await sub.unsubscribe()
        await nc.drain()
        logger.info("Tool provider disconnected from NATS")
