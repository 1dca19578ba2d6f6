"""Capability handlers — pure functions over the devnet ledger.

Each handler takes validated params and the state, and returns a result
model. Failures the caller should see are raised as CapabilityError and
turned into structured error responses by the server.
"""

import re
from collections.abc import Callable
from typing import Any

from eth_abi import encode
from eth_abi.exceptions import EncodingError, ParseError
from eth_utils import function_signature_to_4byte_selector, is_address, is_hex_address, to_checksum_address

from ethagent.models.capabilities import (
    CAPABILITIES,
    CAPABILITY_VERSION,
    CheckBalanceParams,
    CheckBalanceResult,
    ComposeTransactionParams,
    ComposeTransactionResult,
    EncodeCallParams,
    EncodeCallResult,
    GetContractCodeParams,
    GetContractCodeResult,
    ListCapabilitiesParams,
    ListCapabilitiesResult,
    ValidateAddressParams,
    ValidateAddressResult,
)

from services.provider.state import DEV_ACCOUNTS, DevnetState, intrinsic_gas

_SIGNATURE_RE = re.compile(r"^(?P<name>[A-Za-z_][A-Za-z0-9_]*)\((?P<types>[^()]*)\)$")


class CapabilityError(Exception):
    """A capability refused or failed to perform the call."""


def check_address(address: str) -> str | None:
    """Return why an address is unacceptable, or None if it is valid.

    Mixed-case addresses must carry a correct EIP-55 checksum; all-lower
    and all-upper hex is accepted as unchecksummed.
    """
    if not isinstance(address, str) or not is_hex_address(address):
        return "not a 20-byte hex address"
    if not is_address(address):
        return "EIP-55 checksum mismatch"
    return None


def _require_address(address: str, role: str) -> str:
    problem = check_address(address)
    if problem is not None:
        raise CapabilityError(f"Invalid {role} address {address!r}: {problem}")
    return to_checksum_address(address)


def _decode_hex(data: str | None) -> bytes:
    if not data:
        return b""
    try:
        return bytes.fromhex(data.removeprefix("0x"))
    except ValueError as e:
        raise CapabilityError(f"Invalid data format: {e}") from e


# --- Handlers ---


def validate_address(params: ValidateAddressParams, state: DevnetState) -> ValidateAddressResult:
    problem = check_address(params.address)
    if problem is not None:
        return ValidateAddressResult(is_valid=False, reason=problem)
    return ValidateAddressResult(
        is_valid=True, checksummed_address=to_checksum_address(params.address)
    )


def check_balance(params: CheckBalanceParams, state: DevnetState) -> CheckBalanceResult:
    address = _require_address(params.address, "account")
    if params.token:
        token = params.token.upper()
        if token not in state.known_tokens():
            raise CapabilityError(f"Unknown token: {params.token}")
        return CheckBalanceResult(
            address=address,
            balance=state.token_balance_of(address, token),
            denomination=token,
        )
    return CheckBalanceResult(address=address, balance=state.balance_of(address), denomination="wei")


def get_contract_code(params: GetContractCodeParams, state: DevnetState) -> GetContractCodeResult:
    address = _require_address(params.address, "contract")
    code = state.code_at(address)
    if not code:
        raise CapabilityError(f"No contract code found at address {address}")
    return GetContractCodeResult(address=address, code="0x" + code.hex())


def _coerce_arg(abi_type: str, value: Any) -> Any:
    if abi_type.startswith(("uint", "int")) and isinstance(value, str):
        return int(value, 0)
    if abi_type == "bool" and isinstance(value, str):
        return value.lower() in ("true", "1", "yes")
    if abi_type == "address" and isinstance(value, str) and check_address(value) is None:
        return to_checksum_address(value)
    return value


def encode_call(params: EncodeCallParams, state: DevnetState) -> EncodeCallResult:
    match = _SIGNATURE_RE.match(params.signature.replace(" ", ""))
    if match is None:
        raise CapabilityError(f"Unsupported function signature: {params.signature!r}")
    signature = match.group(0)
    types = [t for t in match.group("types").split(",") if t]
    if len(types) != len(params.args):
        raise CapabilityError(
            f"{signature} takes {len(types)} arguments, got {len(params.args)}"
        )
    try:
        args = [_coerce_arg(t, a) for t, a in zip(types, params.args)]
        encoded = encode(types, args)
    except (EncodingError, ParseError, ValueError, TypeError) as e:
        raise CapabilityError(f"Cannot encode arguments for {signature}: {e}") from e
    selector = function_signature_to_4byte_selector(signature)
    return EncodeCallResult(selector="0x" + selector.hex(), data="0x" + (selector + encoded).hex())


def compose_transaction(
    params: ComposeTransactionParams, state: DevnetState
) -> ComposeTransactionResult:
    sender = _require_address(params.from_address or DEV_ACCOUNTS["alice"], "sender")
    to = _require_address(params.to, "recipient") if params.to is not None else None
    data = _decode_hex(params.data)

    if to is None and not data:
        raise CapabilityError("Contract creation requires bytecode in data")

    required_gas = intrinsic_gas(data, create=to is None)
    if params.gas is not None and params.gas < required_gas:
        raise CapabilityError(f"Intrinsic gas too low: need {required_gas}, got {params.gas}")

    balance = state.balance_of(sender)
    if balance < params.value:
        raise CapabilityError(
            f"Insufficient funds: {sender} has {balance} wei, needs {params.value}"
        )

    record = state.apply_transaction(sender, to, params.value, data, required_gas)
    return ComposeTransactionResult(
        transaction_hash=record.tx_hash,
        gas_used=record.gas_used,
        status="success",
        contract_address=record.contract_address,
    )


def list_capabilities(params: ListCapabilitiesParams, state: DevnetState) -> ListCapabilitiesResult:
    return ListCapabilitiesResult(
        version=CAPABILITY_VERSION,
        capabilities=[c.describe() for c in CAPABILITIES.values()],
    )


Handler = Callable[[Any, DevnetState], Any]

HANDLERS: dict[str, Handler] = {
    "validate_address": validate_address,
    "check_balance": check_balance,
    "get_contract_code": get_contract_code,
    "encode_call": encode_call,
    "compose_transaction": compose_transaction,
    "list_capabilities": list_capabilities,
}
