"""Factory functions for creating, framing and parsing RPC messages."""

import json
from typing import Any

from pydantic import BaseModel

from ethagent.models.envelope import MessageKind, RpcErrorBody, RpcMessage

FRAME_DELIMITER = b"\n"


def _as_dict(value: BaseModel | dict[str, Any] | None) -> dict[str, Any]:
    if value is None:
        return {}
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    return value


def create_request(
    method: str,
    params: BaseModel | dict[str, Any] | None = None,
    *,
    request_id: str | None = None,
) -> RpcMessage:
    """Create a request message with a fresh id unless one is given."""
    fields: dict[str, Any] = {
        "kind": MessageKind.REQUEST,
        "method": method,
        "params": _as_dict(params),
    }
    if request_id is not None:
        fields["id"] = request_id
    return RpcMessage(**fields)


def create_response(request_id: str, result: BaseModel | dict[str, Any]) -> RpcMessage:
    """Create a success response answering `request_id`."""
    return RpcMessage(id=request_id, kind=MessageKind.RESPONSE, result=_as_dict(result))


def create_error(request_id: str, code: int, message: str, data: Any = None) -> RpcMessage:
    """Create an error response answering `request_id`."""
    return RpcMessage(
        id=request_id,
        kind=MessageKind.RESPONSE,
        error=RpcErrorBody(code=code, message=message, data=data),
    )


def encode_frame(message: RpcMessage) -> bytes:
    """Serialize a message as one newline-terminated JSON frame.

    JSON never contains a raw newline outside strings and escapes the ones
    inside, so the delimiter is unambiguous.
    """
    return message.model_dump_json(exclude_none=True).encode("utf-8") + FRAME_DELIMITER


def parse_frame(data: str | bytes | dict[str, Any]) -> RpcMessage:
    """Parse one frame into an RpcMessage.

    Raises:
        ValueError: If the data is not JSON.
        ValidationError: If the data doesn't match the RpcMessage schema.
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    if isinstance(data, str):
        data = json.loads(data.strip())
    return RpcMessage.model_validate(data)


def peek_id(data: str | bytes) -> str | None:
    """Best-effort extraction of the `id` of a frame that failed to parse."""
    try:
        raw = json.loads(data)
    except (ValueError, UnicodeDecodeError):
        return None
    if isinstance(raw, dict) and isinstance(raw.get("id"), str):
        return raw["id"]
    return None
