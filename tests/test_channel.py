"""Tests for ToolChannel over in-memory transports."""

import asyncio

import pytest

from ethagent.client.channel import ToolChannel, call_with_retry
from ethagent.client.transport import memory_pipe
from ethagent.errors import (
    ProtocolMalformed,
    ProtocolRemoteError,
    ProtocolTimeout,
    ProtocolTransportError,
)
from ethagent.helpers.factory import create_error, create_response, encode_frame, parse_frame
from ethagent.models import ErrorCode
from ethagent.models.capabilities import CheckBalanceResult

ALICE = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


@pytest.fixture
async def scripted():
    """A started channel plus the raw server end of its pipe."""
    client_end, server_end = memory_pipe()
    channel = ToolChannel(client_end, timeout=0.3, name="scripted")
    await channel.start()
    yield channel, server_end
    await channel.close()
    await server_end.close()


async def _next_request(server_end):
    return parse_frame(await server_end.receive())


class TestCalls:
    async def test_round_trip_against_provider(self, channel: ToolChannel):
        result = await channel.call("check_balance", {"address": ALICE}, result_model=CheckBalanceResult)
        assert result["balance"] == 10_000 * 10**18
        assert result["denomination"] == "wei"
        assert channel.in_flight == 0

    async def test_out_of_order_responses(self, scripted):
        channel, server_end = scripted
        first = asyncio.create_task(channel.call("check_balance", {"address": ALICE}))
        second = asyncio.create_task(channel.call("get_contract_code", {"address": ALICE}))

        req_a = await _next_request(server_end)
        req_b = await _next_request(server_end)
        assert req_a.id != req_b.id
        assert channel.in_flight == 2

        # Answer the second request first
        await server_end.send(encode_frame(create_response(req_b.id, {"answer": req_b.method})))
        await server_end.send(encode_frame(create_response(req_a.id, {"answer": req_a.method})))

        assert (await first)["answer"] == "check_balance"
        assert (await second)["answer"] == "get_contract_code"

    async def test_remote_error(self, channel: ToolChannel):
        with pytest.raises(ProtocolRemoteError) as exc_info:
            await channel.call("mine_block", {})
        assert exc_info.value.code == ErrorCode.METHOD_NOT_FOUND

    async def test_timeout(self, scripted):
        channel, _ = scripted
        with pytest.raises(ProtocolTimeout) as exc_info:
            await channel.call("check_balance", {"address": ALICE}, timeout=0.05)
        assert exc_info.value.method == "check_balance"
        assert channel.in_flight == 0

    async def test_late_response_is_dropped(self, scripted):
        channel, server_end = scripted
        with pytest.raises(ProtocolTimeout):
            await channel.call("check_balance", {"address": ALICE}, timeout=0.05)
        late = await _next_request(server_end)
        await server_end.send(encode_frame(create_response(late.id, {"balance": 1})))

        # The channel still works for the next call
        task = asyncio.create_task(channel.call("list_capabilities"))
        req = await _next_request(server_end)
        await server_end.send(encode_frame(create_response(req.id, {"version": "1.0", "capabilities": []})))
        assert (await task)["version"] == "1.0"

    async def test_malformed_response(self, scripted):
        channel, server_end = scripted
        task = asyncio.create_task(channel.call("check_balance", {"address": ALICE}))
        req = await _next_request(server_end)
        await server_end.send(b'{"id": "%s", "kind": "response"}\n' % req.id.encode())
        with pytest.raises(ProtocolMalformed):
            await task

    async def test_result_schema_mismatch(self, scripted):
        channel, server_end = scripted
        task = asyncio.create_task(
            channel.call("check_balance", {"address": ALICE}, result_model=CheckBalanceResult)
        )
        req = await _next_request(server_end)
        await server_end.send(encode_frame(create_response(req.id, {"balance": "lots"})))
        with pytest.raises(ProtocolMalformed):
            await task

    async def test_error_response_carries_data(self, scripted):
        channel, server_end = scripted
        task = asyncio.create_task(channel.call("check_balance", {"address": ALICE}))
        req = await _next_request(server_end)
        await server_end.send(encode_frame(create_error(req.id, -32000, "nope", {"why": "test"})))
        with pytest.raises(ProtocolRemoteError) as exc_info:
            await task
        assert exc_info.value.message == "nope"
        assert exc_info.value.data == {"why": "test"}


class TestTransportLoss:
    async def test_pending_call_fails_on_close(self, scripted):
        channel, server_end = scripted
        task = asyncio.create_task(channel.call("check_balance", {"address": ALICE}, timeout=5))
        await _next_request(server_end)
        await server_end.close()
        with pytest.raises(ProtocolTransportError):
            await task
        assert not channel.is_open

    async def test_calls_after_loss_fail_fast(self, scripted):
        channel, server_end = scripted
        await server_end.close()
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        with pytest.raises(ProtocolTransportError):
            await channel.call("list_capabilities")

    async def test_call_before_start(self):
        client_end, _ = memory_pipe()
        channel = ToolChannel(client_end)
        with pytest.raises(ProtocolTransportError):
            await channel.call("list_capabilities")


class TestCallWithRetry:
    async def test_retries_timeouts(self, scripted):
        channel, server_end = scripted

        async def answer_second():
            await _next_request(server_end)  # ignored: times out
            req = await _next_request(server_end)
            await server_end.send(encode_frame(create_response(req.id, {"ok": True})))

        responder = asyncio.create_task(answer_second())
        result = await call_with_retry(channel, "list_capabilities", attempts=2)
        await responder
        assert result == {"ok": True}

    async def test_gives_up(self, scripted):
        channel, _ = scripted
        with pytest.raises(ProtocolTimeout):
            await call_with_retry(channel, "list_capabilities", attempts=2)

    async def test_remote_errors_not_retried(self, provider, channel: ToolChannel):
        with pytest.raises(ProtocolRemoteError):
            await call_with_retry(channel, "get_contract_code", {"address": ALICE}, attempts=3)
        assert provider.requests.count("get_contract_code") == 1

    async def test_non_idempotent_refused(self, provider, channel: ToolChannel):
        with pytest.raises(ValueError, match="not idempotent"):
            await call_with_retry(channel, "compose_transaction", {"to": ALICE, "value": 1})
        assert provider.requests == []

    async def test_needs_one_attempt(self, provider, channel: ToolChannel):
        with pytest.raises(ValueError, match="attempts must be at least 1"):
            await call_with_retry(channel, "check_balance", {"address": ALICE}, attempts=0)
        assert provider.requests == []
