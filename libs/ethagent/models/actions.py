"""Action models — the typed operations a Plan is made of.

Every variant is a frozen Pydantic model tagged by `kind`, so a sequence of
Actions can be compared structurally and round-tripped through JSON.
"""

from enum import StrEnum
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, Field, TypeAdapter


class ActionKind(StrEnum):
    """All action kinds the executor knows how to run."""

    VALIDATE_ADDRESS = "validate_address"
    READ_STATE = "read_state"
    TRANSFER_VALUE = "transfer_value"
    DEPLOY_CONTRACT = "deploy_contract"
    CALL_FUNCTION = "call_function"
    BATCH_CALL = "batch_call"


class ReadTarget(StrEnum):
    """What a ReadState action reads."""

    BALANCE = "balance"
    CODE = "code"


class _ActionBase(BaseModel):
    model_config = {"frozen": True}

    # True for actions that compose a transaction (non-idempotent)
    MUTATES_STATE: ClassVar[bool] = False

    @property
    def mutates_state(self) -> bool:
        return self.MUTATES_STATE

    def addresses(self) -> tuple[str, ...]:
        """Return every address this action touches."""
        return ()

    def describe(self) -> str:
        return str(getattr(self, "kind", "action"))


class ValidateAddress(_ActionBase):
    """Check an address before anything is sent to it."""

    kind: Literal[ActionKind.VALIDATE_ADDRESS] = ActionKind.VALIDATE_ADDRESS
    address: str

    def addresses(self) -> tuple[str, ...]:
        return (self.address,)

    def describe(self) -> str:
        return f"validate {self.address}"


class ReadState(_ActionBase):
    """Read on-chain state (balance or code) for an address."""

    kind: Literal[ActionKind.READ_STATE] = ActionKind.READ_STATE
    address: str
    target: ReadTarget = ReadTarget.BALANCE
    token: str | None = None

    def addresses(self) -> tuple[str, ...]:
        return (self.address,)

    def describe(self) -> str:
        what = f"{self.token} balance" if self.token else str(self.target)
        return f"read {what} of {self.address}"


class TransferValue(_ActionBase):
    """Send native value (in wei) from one account to another."""

    MUTATES_STATE: ClassVar[bool] = True

    kind: Literal[ActionKind.TRANSFER_VALUE] = ActionKind.TRANSFER_VALUE
    from_address: str
    to_address: str
    value: int = Field(gt=0)  # wei

    def addresses(self) -> tuple[str, ...]:
        return (self.from_address, self.to_address)

    def describe(self) -> str:
        return f"transfer {self.value} wei {self.from_address} -> {self.to_address}"


class DeployContract(_ActionBase):
    """Deploy contract bytecode from an account."""

    MUTATES_STATE: ClassVar[bool] = True

    kind: Literal[ActionKind.DEPLOY_CONTRACT] = ActionKind.DEPLOY_CONTRACT
    from_address: str
    bytecode: str = Field(pattern=r"^0x[0-9a-fA-F]*$")
    value: int = Field(ge=0, default=0)

    def addresses(self) -> tuple[str, ...]:
        return (self.from_address,)

    def describe(self) -> str:
        return f"deploy {len(self.bytecode) // 2 - 1} bytes from {self.from_address}"


class CallFunction(_ActionBase):
    """Call a contract function, e.g. `mint(address,uint256)`."""

    MUTATES_STATE: ClassVar[bool] = True

    kind: Literal[ActionKind.CALL_FUNCTION] = ActionKind.CALL_FUNCTION
    from_address: str
    contract: str
    signature: str = Field(pattern=r"^[A-Za-z_][A-Za-z0-9_]*\(.*\)$")
    args: tuple[Any, ...] = ()
    value: int = Field(ge=0, default=0)

    def addresses(self) -> tuple[str, ...]:
        return (self.from_address, self.contract)

    def describe(self) -> str:
        return f"call {self.signature} on {self.contract}"


class BatchCall(_ActionBase):
    """Several contract calls executed back to back as one step."""

    MUTATES_STATE: ClassVar[bool] = True

    kind: Literal[ActionKind.BATCH_CALL] = ActionKind.BATCH_CALL
    calls: tuple[CallFunction, ...] = Field(min_length=1)

    def addresses(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for call in self.calls:
            for address in call.addresses():
                seen.setdefault(address, None)
        return tuple(seen)

    def describe(self) -> str:
        return f"batch of {len(self.calls)} calls"


Action = Annotated[
    ValidateAddress | ReadState | TransferValue | DeployContract | CallFunction | BatchCall,
    Field(discriminator="kind"),
]

_ACTION_ADAPTER: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(data: dict[str, Any] | str | bytes) -> Action:
    """Parse a dict or JSON document into the matching Action variant.

    Raises:
        ValidationError: If the data doesn't match any variant.
    """
    if isinstance(data, (str, bytes)):
        return _ACTION_ADAPTER.validate_json(data)
    return _ACTION_ADAPTER.validate_python(data)


def dump_action(action: Action) -> dict[str, Any]:
    """Serialize an Action to a JSON-compatible dict."""
    return action.model_dump(mode="json")
