from ethagent.models.accounts import KNOWN_ADDRESSES, resolve_name
from ethagent.models.actions import (
    Action,
    ActionKind,
    BatchCall,
    CallFunction,
    DeployContract,
    ReadState,
    ReadTarget,
    TransferValue,
    ValidateAddress,
    dump_action,
    parse_action,
)
from ethagent.models.capabilities import (
    CAPABILITIES,
    CAPABILITY_VERSION,
    Capability,
    is_idempotent,
    is_known_capability,
)
from ethagent.models.envelope import ErrorCode, MessageKind, RpcErrorBody, RpcMessage
from ethagent.models.results import (
    ErrorKind,
    EvaluationVerdict,
    OrchestratorOutcome,
    Plan,
    StepError,
    StepResult,
    StepStatus,
)

__all__ = [
    "Action",
    "ActionKind",
    "BatchCall",
    "CAPABILITIES",
    "CAPABILITY_VERSION",
    "CallFunction",
    "Capability",
    "DeployContract",
    "ErrorCode",
    "ErrorKind",
    "EvaluationVerdict",
    "KNOWN_ADDRESSES",
    "MessageKind",
    "OrchestratorOutcome",
    "Plan",
    "ReadState",
    "ReadTarget",
    "RpcErrorBody",
    "RpcMessage",
    "StepError",
    "StepResult",
    "StepStatus",
    "TransferValue",
    "ValidateAddress",
    "dump_action",
    "is_idempotent",
    "is_known_capability",
    "parse_action",
    "resolve_name",
]
