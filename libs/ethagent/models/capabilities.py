"""Capability catalogue — the fixed, versioned method set of the tool provider."""

from typing import Any

from pydantic import BaseModel, Field

CAPABILITY_VERSION = "1.0"


# --- Parameter and result schemas ---


class ValidateAddressParams(BaseModel):
    address: str


class ValidateAddressResult(BaseModel):
    is_valid: bool
    checksummed_address: str | None = None
    reason: str | None = None


class CheckBalanceParams(BaseModel):
    address: str
    token: str | None = None


class CheckBalanceResult(BaseModel):
    address: str
    balance: int = Field(ge=0)
    denomination: str


class GetContractCodeParams(BaseModel):
    address: str


class GetContractCodeResult(BaseModel):
    address: str
    code: str


class EncodeCallParams(BaseModel):
    signature: str
    args: list[Any] = Field(default_factory=list)


class EncodeCallResult(BaseModel):
    selector: str
    data: str


class ComposeTransactionParams(BaseModel):
    from_address: str | None = None
    to: str | None = None  # None deploys `data` as a contract
    value: int = Field(ge=0, default=0)
    data: str | None = None
    gas: int | None = Field(gt=0, default=None)


class ComposeTransactionResult(BaseModel):
    transaction_hash: str
    gas_used: int
    status: str  # "success" or "reverted"
    contract_address: str | None = None


class ListCapabilitiesParams(BaseModel):
    pass


class ListCapabilitiesResult(BaseModel):
    version: str
    capabilities: list[dict[str, Any]]


# --- Catalogue ---


class Capability(BaseModel):
    """One invokable method exposed by the tool provider."""

    name: str
    description: str
    params_model: type[BaseModel]
    result_model: type[BaseModel]
    idempotent: bool = True

    def describe(self) -> dict[str, Any]:
        """JSON-friendly description, as returned by list_capabilities."""
        return {
            "name": self.name,
            "description": self.description,
            "idempotent": self.idempotent,
            "params": self.params_model.model_json_schema(),
        }


CAPABILITIES: dict[str, Capability] = {
    "validate_address": Capability(
        name="validate_address",
        description="Validate an Ethereum address and return its checksum form",
        params_model=ValidateAddressParams,
        result_model=ValidateAddressResult,
    ),
    "check_balance": Capability(
        name="check_balance",
        description="Get the balance of an account in wei, or of a token",
        params_model=CheckBalanceParams,
        result_model=CheckBalanceResult,
    ),
    "get_contract_code": Capability(
        name="get_contract_code",
        description="Get the deployed code at an address",
        params_model=GetContractCodeParams,
        result_model=GetContractCodeResult,
    ),
    "encode_call": Capability(
        name="encode_call",
        description="ABI-encode a function call into transaction data",
        params_model=EncodeCallParams,
        result_model=EncodeCallResult,
    ),
    "compose_transaction": Capability(
        name="compose_transaction",
        description="Compose and send a transaction",
        params_model=ComposeTransactionParams,
        result_model=ComposeTransactionResult,
        idempotent=False,
    ),
    "list_capabilities": Capability(
        name="list_capabilities",
        description="List the capabilities exposed by this provider",
        params_model=ListCapabilitiesParams,
        result_model=ListCapabilitiesResult,
    ),
}


def is_known_capability(name: str) -> bool:
    """Check if a method name exists in the catalogue."""
    return name in CAPABILITIES


def is_idempotent(name: str) -> bool:
    """Check whether a capability may be retried freely.

    Unknown methods are treated as non-idempotent.
    """
    capability = CAPABILITIES.get(name)
    return capability is not None and capability.idempotent
