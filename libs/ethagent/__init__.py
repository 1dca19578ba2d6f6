"""ETH Agent — natural-language requests to blockchain operations."""

from ethagent.agent import (
    ActionInterpreter,
    Evaluator,
    Executor,
    InterpretationContext,
    Orchestrator,
    Planner,
    RuleBasedInterpreter,
    Session,
    SessionState,
)
from ethagent.client import ChannelFactory, FrameTransport, ToolChannel, channel_factory, memory_pipe
from ethagent.config import AgentConfig, ScoringPolicy
from ethagent.errors import (
    ActionError,
    ChannelLost,
    EthAgentError,
    InterpretationError,
    ProtocolError,
    ProtocolMalformed,
    ProtocolRemoteError,
    ProtocolTimeout,
    ProtocolTransportError,
    RepeatedPlanError,
)
from ethagent.helpers.factory import create_error, create_request, create_response, parse_frame
from ethagent.helpers.validation import validate_message
from ethagent.models import (
    Action,
    ActionKind,
    BatchCall,
    CallFunction,
    DeployContract,
    EvaluationVerdict,
    OrchestratorOutcome,
    Plan,
    ReadState,
    RpcMessage,
    StepResult,
    StepStatus,
    TransferValue,
    ValidateAddress,
)

__all__ = [
    # Agent
    "ActionInterpreter",
    "Evaluator",
    "Executor",
    "InterpretationContext",
    "Orchestrator",
    "Planner",
    "RuleBasedInterpreter",
    "Session",
    "SessionState",
    # Client
    "ChannelFactory",
    "FrameTransport",
    "ToolChannel",
    "channel_factory",
    "memory_pipe",
    # Config
    "AgentConfig",
    "ScoringPolicy",
    # Errors
    "ActionError",
    "ChannelLost",
    "EthAgentError",
    "InterpretationError",
    "ProtocolError",
    "ProtocolMalformed",
    "ProtocolRemoteError",
    "ProtocolTimeout",
    "ProtocolTransportError",
    "RepeatedPlanError",
    # Models
    "Action",
    "ActionKind",
    "BatchCall",
    "CallFunction",
    "DeployContract",
    "EvaluationVerdict",
    "OrchestratorOutcome",
    "Plan",
    "ReadState",
    "RpcMessage",
    "StepResult",
    "StepStatus",
    "TransferValue",
    "ValidateAddress",
    # Helpers
    "create_error",
    "create_request",
    "create_response",
    "parse_frame",
    "validate_message",
]
