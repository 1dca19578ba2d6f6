"""Error taxonomy for the ETH Agent core."""

from typing import Any


class EthAgentError(Exception):
    """Base class for every error raised by the agent core."""


class InterpretationError(EthAgentError):
    """A request could not be converted into any Action."""

    def __init__(self, request: str, reason: str) -> None:
        super().__init__(f"Could not interpret {request!r}: {reason}")
        self.request = request
        self.reason = reason


class ActionError(EthAgentError):
    """An Action's preconditions failed before anything was dispatched."""


class RepeatedPlanError(EthAgentError):
    """The planner produced a Plan identical to one already tried this Session."""

    def __init__(self, signature: str) -> None:
        super().__init__("Planner produced an identical plan twice")
        self.signature = signature


# --- Protocol errors ---


class ProtocolError(EthAgentError):
    """Channel-level failure of a single tool call.

    `partial` is set when the failed call was part of a multi-call step and
    earlier calls of that step had already been applied.
    """

    kind: str = "protocol"
    partial: dict[str, Any] | None = None


class ProtocolTimeout(ProtocolError):
    """No matching response arrived within the configured duration."""

    kind = "timeout"

    def __init__(self, method: str, request_id: str, timeout: float) -> None:
        super().__init__(f"{method} ({request_id}) timed out after {timeout:.1f}s")
        self.method = method
        self.request_id = request_id
        self.timeout = timeout


class ProtocolTransportError(ProtocolError):
    """The underlying stream closed or errored."""

    kind = "transport"


class ProtocolRemoteError(ProtocolError):
    """The provider answered with a structured error."""

    kind = "remote"

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(f"[{code}] {message}")
        self.code = code
        self.message = message
        self.data = data


class ProtocolMalformed(ProtocolError):
    """A response could not be parsed against the expected schema."""

    kind = "malformed"


class ChannelLost(EthAgentError):
    """Raised by the executor when the channel dies mid-plan.

    Carries the StepResults produced so far, the interrupted step included,
    so the orchestrator can resume on a fresh channel.
    """

    def __init__(self, results: list[Any], cause: ProtocolTransportError) -> None:
        super().__init__(f"Tool channel lost: {cause}")
        self.results = results
        self.cause = cause
