"""RpcMessage — the wire format for every frame on the tool channel.

One message is serialized as a single line of JSON. Requests carry `method`
and `params`; responses carry either `result` or `error`, never both.
"""

import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class MessageKind(StrEnum):
    """Direction of a frame."""

    REQUEST = "request"
    RESPONSE = "response"


class ErrorCode:
    """Error codes used in response `error` bodies (JSON-RPC numbering)."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    # Capability-level failures (address rejected, insufficient funds, ...)
    EXECUTION_FAILED = -32000


class RpcErrorBody(BaseModel):
    """Structured error carried by a failed response."""

    code: int
    message: str
    data: Any = None


class RpcMessage(BaseModel):
    """A request or response exchanged between orchestrator and provider."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    kind: MessageKind
    method: str | None = None
    params: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    error: RpcErrorBody | None = None

    @model_validator(mode="after")
    def _check_shape(self) -> "RpcMessage":
        if self.kind == MessageKind.REQUEST:
            if not self.method:
                raise ValueError("request must name a method")
            if self.result is not None or self.error is not None:
                raise ValueError("request must not carry result or error")
        else:
            if self.method is not None or self.params is not None:
                raise ValueError("response must not carry method or params")
            if (self.result is None) == (self.error is None):
                raise ValueError("response must carry exactly one of result or error")
        return self

    @property
    def is_request(self) -> bool:
        return self.kind == MessageKind.REQUEST

    @property
    def is_error(self) -> bool:
        return self.error is not None
