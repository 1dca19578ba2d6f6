"""Tests for the rule-based action interpreter."""

import pytest

from ethagent.agent.interpreter import DEFAULT_BYTECODE, InterpretationContext, RuleBasedInterpreter
from ethagent.errors import InterpretationError
from ethagent.models import (
    KNOWN_ADDRESSES,
    BatchCall,
    CallFunction,
    DeployContract,
    ReadState,
    ReadTarget,
    TransferValue,
    ValidateAddress,
)

ALICE = KNOWN_ADDRESSES["alice"]
BOB = KNOWN_ADDRESSES["bob"]
CAROL = KNOWN_ADDRESSES["carol"]
TOKEN = "0x5FbDB2315678afecb367f032d93F642f64180aa3"


@pytest.fixture
def interpreter() -> RuleBasedInterpreter:
    return RuleBasedInterpreter()


async def _interpret(interpreter: RuleBasedInterpreter, request: str):
    return await interpreter.interpret(request, InterpretationContext())


class TestTransfers:
    async def test_send_to_named_account(self, interpreter):
        actions = await _interpret(interpreter, "send 1.5 eth to bob")
        assert actions == [TransferValue(from_address=ALICE, to_address=BOB, value=1_500_000_000_000_000_000)]

    async def test_literal_recipient_passed_through(self, interpreter):
        (action,) = await _interpret(interpreter, "Transfer 0.1 ETH to 0x742d35Cc6634C0532925a3b8D4C9db96C4b4d8b6.")
        assert isinstance(action, TransferValue)
        assert action.to_address == "0x742d35Cc6634C0532925a3b8D4C9db96C4b4d8b6"
        assert action.value == 10**17

    async def test_explicit_sender(self, interpreter):
        (action,) = await _interpret(interpreter, "send 2 eth from bob to carol")
        assert action == TransferValue(from_address=BOB, to_address=CAROL, value=2 * 10**18)

    async def test_trailing_sender(self, interpreter):
        (action,) = await _interpret(interpreter, "pay 5 gwei to alice from carol")
        assert action == TransferValue(from_address=CAROL, to_address=ALICE, value=5 * 10**9)

    async def test_zero_amount(self, interpreter):
        with pytest.raises(InterpretationError, match="must be positive"):
            await _interpret(interpreter, "send 0 eth to bob")

    async def test_fractional_wei(self, interpreter):
        with pytest.raises(InterpretationError, match="whole number of wei"):
            await _interpret(interpreter, "send 0.5 wei to bob")

    async def test_unknown_account(self, interpreter):
        with pytest.raises(InterpretationError, match="unknown account 'mallory'"):
            await _interpret(interpreter, "send 1 eth to mallory")


class TestReads:
    async def test_balance(self, interpreter):
        assert await _interpret(interpreter, "What is the balance of alice?") == [ReadState(address=ALICE)]

    async def test_token_balance(self, interpreter):
        (action,) = await _interpret(interpreter, "check usdc balance of alice")
        assert action == ReadState(address=ALICE, token="USDC")

    async def test_possessive_balance(self, interpreter):
        (action,) = await _interpret(interpreter, "what is bob's DAI balance")
        assert action == ReadState(address=BOB, token="DAI")

    async def test_eth_balance_is_native(self, interpreter):
        (action,) = await _interpret(interpreter, "read eth balance of carol")
        assert action == ReadState(address=CAROL)

    async def test_code(self, interpreter):
        (action,) = await _interpret(interpreter, f"check code at {TOKEN}")
        assert action == ReadState(address=TOKEN, target=ReadTarget.CODE)

    async def test_validate(self, interpreter):
        assert await _interpret(interpreter, "validate address of bob") == [ValidateAddress(address=BOB)]


class TestContracts:
    async def test_deploy_default_bytecode(self, interpreter):
        (action,) = await _interpret(interpreter, "Deploy a simple contract")
        assert action == DeployContract(from_address=ALICE, bytecode=DEFAULT_BYTECODE)

    async def test_deploy_bytecode_from_sender(self, interpreter):
        (action,) = await _interpret(interpreter, "deploy contract with bytecode 0x6080 from bob")
        assert action == DeployContract(from_address=BOB, bytecode="0x6080")

    async def test_call_with_inferred_signature(self, interpreter):
        (action,) = await _interpret(interpreter, f"call mint on {TOKEN} with args bob, 100")
        assert action == CallFunction(
            from_address=ALICE,
            contract=TOKEN,
            signature="mint(address,uint256)",
            args=(BOB, 100),
        )

    async def test_call_quoted_function(self, interpreter):
        (action,) = await _interpret(interpreter, f"Call function 'pause' on contract {TOKEN}")
        assert isinstance(action, CallFunction)
        assert action.signature == "pause()"
        assert action.args == ()

    async def test_call_explicit_signature(self, interpreter):
        (action,) = await _interpret(interpreter, f"call approve(address,uint256) on {TOKEN} with args carol 5 from bob")
        assert action.signature == "approve(address,uint256)"
        assert action.from_address == BOB
        assert action.args == (CAROL, 5)

    async def test_batch(self, interpreter):
        (action,) = await _interpret(interpreter, f"batch: call pause on {TOKEN}, call unpause on {TOKEN}")
        assert isinstance(action, BatchCall)
        assert [c.signature for c in action.calls] == ["pause()", "unpause()"]

    async def test_batch_entry_must_be_call(self, interpreter):
        with pytest.raises(InterpretationError, match="batch entry is not a call"):
            await _interpret(interpreter, "batch: send 1 eth to bob")


class TestClauses:
    async def test_and_then(self, interpreter):
        actions = await _interpret(interpreter, "send 1 eth to bob and then check bob's balance")
        assert [a.kind for a in actions] == ["transfer_value", "read_state"]

    async def test_semicolon(self, interpreter):
        actions = await _interpret(interpreter, "deploy a contract; what is the balance of alice")
        assert [a.kind for a in actions] == ["deploy_contract", "read_state"]

    async def test_and_before_verb(self, interpreter):
        actions = await _interpret(interpreter, "send 1 eth to bob and send 2 eth to carol")
        assert [a.to_address for a in actions] == [BOB, CAROL]

    async def test_any_bad_clause_fails_the_request(self, interpreter):
        with pytest.raises(InterpretationError):
            await _interpret(interpreter, "send 1 eth to bob and then make me a sandwich")


class TestFailures:
    async def test_empty(self, interpreter):
        with pytest.raises(InterpretationError, match="empty request"):
            await _interpret(interpreter, "   ")

    async def test_nothing_recognised(self, interpreter):
        with pytest.raises(InterpretationError, match="no supported action"):
            await _interpret(interpreter, "make me a sandwich")


class TestContext:
    async def test_replan_gives_same_actions(self, interpreter):
        first = await interpreter.interpret("send 1 eth to bob", InterpretationContext())
        again = await interpreter.interpret(
            "send 1 eth to bob", InterpretationContext(prior_failure="score 0/100", attempt=2)
        )
        assert first == again

    def test_is_replan(self):
        assert not InterpretationContext().is_replan
        assert InterpretationContext(prior_failure="x").is_replan

    async def test_custom_address_book(self):
        interpreter = RuleBasedInterpreter({"dave": BOB, "erin": CAROL}, default_sender="dave")
        (action,) = await interpreter.interpret("send 1 eth to erin", InterpretationContext())
        assert action == TransferValue(from_address=BOB, to_address=CAROL, value=10**18)
        with pytest.raises(InterpretationError):
            await interpreter.interpret("send 1 eth to alice", InterpretationContext())
