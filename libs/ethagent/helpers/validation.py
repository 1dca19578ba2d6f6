"""Message validation utilities."""

from typing import Any

from pydantic import ValidationError

from ethagent.models.capabilities import CAPABILITIES
from ethagent.models.envelope import RpcMessage


def _format_errors(exc: ValidationError, prefix: str) -> list[str]:
    errors: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(x) for x in err["loc"])
        errors.append(f"{prefix}.{loc}: {err['msg']}" if loc else f"{prefix}: {err['msg']}")
    return errors


def validate_params(method: str, params: dict[str, Any] | None) -> list[str]:
    """Validate request params against the capability's schema.

    Returns a list of error strings. Empty list means valid.
    """
    capability = CAPABILITIES.get(method)
    if capability is None:
        return [f"Unknown method: {method}"]
    try:
        capability.params_model.model_validate(params or {})
    except ValidationError as e:
        return _format_errors(e, "params")
    return []


def validate_result(method: str, result: dict[str, Any] | None) -> list[str]:
    """Validate a response result against the capability's result schema."""
    capability = CAPABILITIES.get(method)
    if capability is None:
        return [f"Unknown method: {method}"]
    try:
        capability.result_model.model_validate(result or {})
    except ValidationError as e:
        return _format_errors(e, "result")
    return []


def validate_message(message: RpcMessage) -> list[str]:
    """Validate a request for correctness before dispatch.

    Returns a list of error strings. Empty list means valid.
    """
    errors: list[str] = []

    if not message.id or not message.id.strip():
        errors.append("'id' field must not be empty")

    if not message.is_request:
        errors.append("expected a request, got a response")
        return errors

    errors.extend(validate_params(message.method or "", message.params))
    return errors
