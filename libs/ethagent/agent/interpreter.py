"""Action interpreters — turn request text into typed Actions.

The control loop only depends on `ActionInterpreter`: any implementation
(regular expressions, a model call, a classifier) must return at least one
Action or raise InterpretationError.

RuleBasedInterpreter priority per clause:
1. batch: several `call ... on ...` clauses folded into one BatchCall
2. send/transfer/pay
3. deploy
4. call
5. validate address
6. balance / code reads
"""

import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from ethagent.errors import InterpretationError
from ethagent.helpers.units import parse_amount
from ethagent.models.accounts import KNOWN_ADDRESSES
from ethagent.models.actions import (
    Action,
    BatchCall,
    CallFunction,
    DeployContract,
    ReadState,
    ReadTarget,
    TransferValue,
    ValidateAddress,
)

logger = logging.getLogger(__name__)

# Minimal contract used when "deploy a contract" names no bytecode
DEFAULT_BYTECODE = "0x6080604052348015600f57600080fd5b50603f80601d6000396000f3fe6080604052600080fdfe"

NATIVE_SYMBOLS = {"eth", "ether"}


@dataclass(frozen=True)
class InterpretationContext:
    """What the interpreter knows beyond the request text."""

    prior_failure: str | None = None
    attempt: int = 1

    @property
    def is_replan(self) -> bool:
        return self.prior_failure is not None


class ActionInterpreter(ABC):
    """Converts a natural-language request into Actions."""

    @abstractmethod
    async def interpret(self, request: str, context: InterpretationContext) -> list[Action]:
        """Return the Actions for `request`, in execution order.

        Raises:
            InterpretationError: If no Action can be derived. An empty list
                is never a valid answer.
        """


# --- Rule-based interpreter ---

_CLAUSE_SPLIT = re.compile(
    r"\s*(?:;|,?\s+and\s+then\s+|,?\s+then\s+|,?\s+and\s+(?=(?:send|transfer|pay|deploy|call|check|"
    r"what|read|get|show|validate|verify)\b))\s*",
    re.IGNORECASE,
)
_ADDR = r"[\w.]+"
_TRANSFER = re.compile(
    r"^(?:please\s+)?(?:send|transfer|pay)\s+(?P<amount>\d+(?:\.\d+)?)\s*(?P<unit>eth|ether|gwei|wei)?"
    rf"(?:\s+from\s+(?P<src>{_ADDR}))?\s+to\s+(?P<dst>{_ADDR})(?:\s+from\s+(?P<src2>{_ADDR}))?$",
    re.IGNORECASE,
)
_DEPLOY = re.compile(
    r"^(?:please\s+)?deploy\b(?:\s+an?)?(?:\s+\w+)?(?:\s+contract)?"
    r"(?:\s+with\s+bytecode)?(?:\s+(?P<bytecode>0x[0-9a-fA-F]+))?"
    rf"(?:\s+from\s+(?P<src>{_ADDR}))?$",
    re.IGNORECASE,
)
_CALL = re.compile(
    r"^(?:please\s+)?call\s+(?:function\s+)?['\"]?(?P<fn>[A-Za-z_]\w*(?:\([^)]*\))?)['\"]?"
    rf"\s+on\s+(?:contract\s+)?(?P<contract>{_ADDR})"
    r"(?:\s+with\s+(?:args?|arguments)\s+(?P<args>.+?))?"
    rf"(?:\s+from\s+(?P<src>{_ADDR}))?$",
    re.IGNORECASE,
)
_VALIDATE = re.compile(
    rf"^(?:please\s+)?(?:validate|verify|check)\s+(?:the\s+)?address\s+(?:of\s+)?(?P<who>{_ADDR})$",
    re.IGNORECASE,
)
_BALANCE = re.compile(
    r"\b(?:(?P<token>[A-Za-z]{2,6})\s+)?balance\s+(?:of|for)\s+"
    rf"(?P<who>{_ADDR})$",
    re.IGNORECASE,
)
_POSSESSIVE_BALANCE = re.compile(
    rf"\b(?P<who>{_ADDR})'s\s+(?:(?P<token>[A-Za-z]{{2,6}})\s+)?balance\b",
    re.IGNORECASE,
)
_CODE = re.compile(
    rf"\b(?:contract\s+)?code\s+(?:at|of|for)\s+(?P<who>{_ADDR})$",
    re.IGNORECASE,
)
_BATCH = re.compile(r"^(?:please\s+)?batch\b\s*:?\s*(?P<body>.+)$", re.IGNORECASE)
_BATCH_SPLIT = re.compile(r"\s*(?:,|;|\band\b)\s*(?=call\b)", re.IGNORECASE)


class RuleBasedInterpreter(ActionInterpreter):
    """Deterministic interpreter built from regular expressions.

    Account names are resolved through an address book; literal `0x...`
    strings are passed through untouched so the provider can judge them.
    The prior failure is logged but does not change the parse: replanning
    with this interpreter yields the same Plan, which the planner reports.
    """

    def __init__(
        self,
        address_book: Mapping[str, str] | None = None,
        default_sender: str = "alice",
    ) -> None:
        self._book = {k.lower(): v for k, v in (address_book or KNOWN_ADDRESSES).items()}
        self._default_sender = default_sender

    async def interpret(self, request: str, context: InterpretationContext) -> list[Action]:
        text = request.strip()
        if not text:
            raise InterpretationError(request, "empty request")
        if context.is_replan:
            logger.info("Replanning (attempt %d) after: %s", context.attempt, context.prior_failure)

        batch = _BATCH.match(text.rstrip(".!?"))
        clauses = [batch.group(0)] if batch else [c for c in _CLAUSE_SPLIT.split(text) if c.strip()]

        actions: list[Action] = []
        for clause in clauses:
            actions.append(self._parse_clause(request, clause.strip().rstrip(".!?").strip()))
        logger.debug("Interpreted %r as %d actions", request, len(actions))
        return actions

    # --- Clause parsing ---

    def _parse_clause(self, request: str, clause: str) -> Action:
        try:
            if m := _BATCH.match(clause):
                return self._batch(request, m.group("body"))
            if m := _TRANSFER.match(clause):
                return self._transfer(request, m)
            if m := _DEPLOY.match(clause):
                return DeployContract(
                    from_address=self._resolve(request, m.group("src") or self._default_sender),
                    bytecode=m.group("bytecode") or DEFAULT_BYTECODE,
                )
            if m := _CALL.match(clause):
                return self._call(request, m)
            if m := _VALIDATE.match(clause):
                return ValidateAddress(address=self._resolve(request, m.group("who")))
            if m := _BALANCE.search(clause) or _POSSESSIVE_BALANCE.search(clause):
                return self._balance(request, m)
            if m := _CODE.search(clause):
                return ReadState(address=self._resolve(request, m.group("who")), target=ReadTarget.CODE)
        except ValidationError as e:
            raise InterpretationError(request, f"invalid parameters in {clause!r}: {e.error_count()} errors") from e
        raise InterpretationError(request, f"no supported action in {clause!r}")

    def _transfer(self, request: str, m: re.Match[str]) -> TransferValue:
        try:
            value = parse_amount(m.group("amount"), m.group("unit") or "eth")
        except ValueError as e:
            raise InterpretationError(request, str(e)) from e
        if value <= 0:
            raise InterpretationError(request, "transfer amount must be positive")
        sender = m.group("src") or m.group("src2") or self._default_sender
        return TransferValue(
            from_address=self._resolve(request, sender),
            to_address=self._resolve(request, m.group("dst")),
            value=value,
        )

    def _call(self, request: str, m: re.Match[str]) -> CallFunction:
        args = _split_args(m.group("args"))
        return CallFunction(
            from_address=self._resolve(request, m.group("src") or self._default_sender),
            contract=self._resolve(request, m.group("contract")),
            signature=_signature(m.group("fn"), [self._resolve_arg(a) for a in args]),
            args=tuple(self._resolve_arg(a) for a in args),
        )

    def _batch(self, request: str, body: str) -> BatchCall:
        calls: list[CallFunction] = []
        for part in _BATCH_SPLIT.split(body):
            m = _CALL.match(part.strip().rstrip(".!?"))
            if m is None:
                raise InterpretationError(request, f"batch entry is not a call: {part!r}")
            calls.append(self._call(request, m))
        return BatchCall(calls=tuple(calls))

    def _balance(self, request: str, m: re.Match[str]) -> ReadState:
        token = m.group("token")
        if token and (token.lower() in NATIVE_SYMBOLS or token.lower() in ("the", "current")):
            token = None
        return ReadState(
            address=self._resolve(request, m.group("who")),
            target=ReadTarget.BALANCE,
            token=token.upper() if token else None,
        )

    def _resolve(self, request: str, name: str) -> str:
        name = name.strip().strip("'\".,")
        if name.lower().startswith("0x"):
            return name
        address = self._book.get(name.lower())
        if address is None:
            raise InterpretationError(request, f"unknown account {name!r}")
        return address

    def _resolve_arg(self, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in self._book:
            return self._book[value.lower()]
        return value


def _split_args(raw: str | None) -> list[Any]:
    if not raw:
        return []
    values: list[Any] = []
    for part in re.split(r"\s*,\s*|\s+", raw.strip().strip("()[]")):
        if not part:
            continue
        part = part.strip("'\"")
        if re.fullmatch(r"-?\d+", part):
            values.append(int(part))
        elif part.lower() in ("true", "false"):
            values.append(part.lower() == "true")
        else:
            values.append(part)
    return values


def _abi_type(value: Any) -> str:
    if isinstance(value, bool):
        return "bool"
    if isinstance(value, int):
        return "uint256" if value >= 0 else "int256"
    if isinstance(value, str) and value.lower().startswith("0x") and len(value) == 42:
        return "address"
    return "string"


def _signature(fn: str, args: list[Any]) -> str:
    """Use an explicit signature as-is, otherwise infer ABI types from args."""
    if "(" in fn:
        return fn.replace(" ", "")
    return f"{fn}({','.join(_abi_type(a) for a in args)})"
