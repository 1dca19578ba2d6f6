from ethagent.helpers.factory import (
    create_error,
    create_request,
    create_response,
    encode_frame,
    parse_frame,
    peek_id,
)
from ethagent.helpers.units import format_ether, parse_amount
from ethagent.helpers.validation import validate_message, validate_params, validate_result

__all__ = [
    "create_error",
    "create_request",
    "create_response",
    "encode_frame",
    "format_ether",
    "parse_amount",
    "parse_frame",
    "peek_id",
    "validate_message",
    "validate_params",
    "validate_result",
]
