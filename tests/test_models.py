"""Unit tests for Action, Plan, StepResult and RpcMessage models."""

import pytest
from pydantic import ValidationError

from ethagent.models import (
    KNOWN_ADDRESSES,
    ActionKind,
    BatchCall,
    CallFunction,
    DeployContract,
    ErrorKind,
    EvaluationVerdict,
    MessageKind,
    Plan,
    ReadState,
    ReadTarget,
    RpcMessage,
    StepResult,
    StepStatus,
    TransferValue,
    ValidateAddress,
    dump_action,
    parse_action,
    resolve_name,
)

ALICE = KNOWN_ADDRESSES["alice"]
BOB = KNOWN_ADDRESSES["bob"]


# --- Actions ---


class TestActions:
    def test_kind_discriminator(self):
        action = parse_action({"kind": "transfer_value", "from_address": ALICE, "to_address": BOB, "value": 5})
        assert isinstance(action, TransferValue)
        assert action.kind == ActionKind.TRANSFER_VALUE

    def test_parse_from_json(self):
        action = parse_action('{"kind": "read_state", "address": "%s", "target": "code"}' % ALICE)
        assert isinstance(action, ReadState)
        assert action.target == ReadTarget.CODE

    def test_unknown_kind_rejected(self):
        with pytest.raises(ValidationError):
            parse_action({"kind": "self_destruct", "address": ALICE})

    def test_dump_then_parse_preserves_batch(self):
        batch = BatchCall(
            calls=(
                CallFunction(from_address=ALICE, contract=BOB, signature="pause()"),
                CallFunction(from_address=ALICE, contract=BOB, signature="mint(uint256)", args=(5,)),
            )
        )
        assert parse_action(dump_action(batch)) == batch

    def test_frozen(self):
        action = ValidateAddress(address=ALICE)
        with pytest.raises(ValidationError):
            action.address = BOB  # type: ignore[misc]

    def test_transfer_value_must_be_positive(self):
        with pytest.raises(ValidationError):
            TransferValue(from_address=ALICE, to_address=BOB, value=0)

    def test_deploy_bytecode_must_be_hex(self):
        with pytest.raises(ValidationError):
            DeployContract(from_address=ALICE, bytecode="6080zz")

    def test_call_signature_shape(self):
        with pytest.raises(ValidationError):
            CallFunction(from_address=ALICE, contract=BOB, signature="mint")

    def test_batch_needs_calls(self):
        with pytest.raises(ValidationError):
            BatchCall(calls=())

    def test_mutates_state(self):
        assert not ValidateAddress(address=ALICE).mutates_state
        assert not ReadState(address=ALICE).mutates_state
        assert TransferValue(from_address=ALICE, to_address=BOB, value=1).mutates_state
        assert DeployContract(from_address=ALICE, bytecode="0x00").mutates_state

    def test_batch_addresses_deduplicated(self):
        batch = BatchCall(
            calls=(
                CallFunction(from_address=ALICE, contract=BOB, signature="a()"),
                CallFunction(from_address=ALICE, contract=BOB, signature="b()"),
            )
        )
        assert batch.addresses() == (ALICE, BOB)


class TestAccounts:
    def test_resolve_known_name(self):
        assert resolve_name(" Alice ") == ALICE

    def test_resolve_unknown_name(self):
        assert resolve_name("mallory") is None

    def test_custom_book(self):
        assert resolve_name("dave", {"dave": BOB}) == BOB


# --- Plan ---


class TestPlan:
    def test_signature_ignores_id_and_request(self):
        actions = (ValidateAddress(address=ALICE), ReadState(address=ALICE))
        a = Plan(request="one", actions=actions)
        b = Plan(request="two", actions=actions, prior_failure="boom")
        assert a.id != b.id
        assert a.signature() == b.signature()

    def test_signature_depends_on_order(self):
        a = Plan(request="r", actions=(ReadState(address=ALICE), ReadState(address=BOB)))
        b = Plan(request="r", actions=(ReadState(address=BOB), ReadState(address=ALICE)))
        assert a.signature() != b.signature()

    def test_len(self):
        assert len(Plan(request="r", actions=(ReadState(address=ALICE),))) == 1


# --- Results ---


class TestStepResult:
    def test_success(self):
        action = ReadState(address=ALICE)
        result = StepResult.success(0, action, {"balance": 1})
        assert result.ok
        assert result.kind == "read_state"
        assert result.error is None

    def test_transient_failure(self):
        action = ReadState(address=ALICE)
        result = StepResult.failure(1, action, ErrorKind.TIMEOUT, "slow")
        assert result.status == StepStatus.FAILED
        assert result.is_transient_failure

    def test_remote_failure_not_transient(self):
        action = ReadState(address=ALICE)
        result = StepResult.failure(1, action, ErrorKind.REMOTE, "nope", code=-32000)
        assert not result.is_transient_failure
        assert result.error is not None and result.error.code == -32000

    def test_skipped(self):
        action = TransferValue(from_address=ALICE, to_address=BOB, value=1)
        result = StepResult.skipped(2, action, "address failed validation")
        assert result.status == StepStatus.SKIPPED
        assert result.error is not None and result.error.kind == ErrorKind.SKIPPED
        assert not result.is_transient_failure


class TestEvaluationVerdict:
    def test_score_bounds(self):
        with pytest.raises(ValidationError):
            EvaluationVerdict(plan_id="p", score=101, accepted=True, rationale="")


# --- RpcMessage ---


class TestRpcMessage:
    def test_request_needs_method(self):
        with pytest.raises(ValidationError):
            RpcMessage(kind=MessageKind.REQUEST)

    def test_response_needs_result_or_error(self):
        with pytest.raises(ValidationError):
            RpcMessage(kind=MessageKind.RESPONSE)

    def test_response_not_both(self):
        with pytest.raises(ValidationError):
            RpcMessage(kind=MessageKind.RESPONSE, result={}, error={"code": 1, "message": "x"})

    def test_response_rejects_method(self):
        with pytest.raises(ValidationError):
            RpcMessage(kind=MessageKind.RESPONSE, method="check_balance", result={})

    def test_ids_unique(self):
        a = RpcMessage(kind=MessageKind.REQUEST, method="list_capabilities")
        b = RpcMessage(kind=MessageKind.REQUEST, method="list_capabilities")
        assert a.id != b.id

    def test_error_flag(self):
        msg = RpcMessage(kind=MessageKind.RESPONSE, error={"code": -32601, "message": "no"})
        assert msg.is_error
        assert not msg.is_request
