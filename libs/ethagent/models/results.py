"""Plan, StepResult and EvaluationVerdict — the values the control loop passes around."""

import hashlib
import json
import time
import uuid
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from ethagent.models.actions import Action, dump_action


class Plan(BaseModel):
    """An ordered sequence of Actions for one attempt at a request.

    Plans are never mutated: a replan builds a new Plan.
    """

    model_config = {"frozen": True}

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    request: str
    actions: tuple[Action, ...]
    prior_failure: str | None = None
    created_at: float = Field(default_factory=time.time)

    def __len__(self) -> int:
        return len(self.actions)

    def signature(self) -> str:
        """Structural fingerprint of the action sequence.

        Two plans with the same actions in the same order share a signature,
        whatever their id, request text or prior failure.
        """
        canonical = json.dumps(
            [dump_action(a) for a in self.actions], sort_keys=True, separators=(",", ":")
        )
        return hashlib.sha256(canonical.encode()).hexdigest()


class StepStatus(StrEnum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class ErrorKind(StrEnum):
    """Why a step did not succeed."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    REMOTE = "remote"
    MALFORMED = "malformed"
    ACTION = "action"
    SKIPPED = "skipped"


TRANSIENT_ERRORS = frozenset({ErrorKind.TIMEOUT, ErrorKind.TRANSPORT})


class StepError(BaseModel):
    model_config = {"frozen": True}

    kind: ErrorKind
    message: str
    code: int | None = None

    @property
    def is_transient(self) -> bool:
        return self.kind in TRANSIENT_ERRORS


class StepResult(BaseModel):
    """Outcome of executing one Action."""

    model_config = {"frozen": True}

    index: int = Field(ge=0)
    kind: str
    status: StepStatus
    payload: dict[str, Any] | None = None
    error: StepError | None = None

    @classmethod
    def success(cls, index: int, action: Action, payload: dict[str, Any]) -> "StepResult":
        return cls(index=index, kind=action.kind, status=StepStatus.SUCCEEDED, payload=payload)

    @classmethod
    def failure(
        cls,
        index: int,
        action: Action,
        kind: ErrorKind,
        message: str,
        code: int | None = None,
        payload: dict[str, Any] | None = None,
    ) -> "StepResult":
        return cls(
            index=index,
            kind=action.kind,
            status=StepStatus.FAILED,
            payload=payload,
            error=StepError(kind=kind, message=message, code=code),
        )

    @classmethod
    def skipped(cls, index: int, action: Action, reason: str) -> "StepResult":
        return cls(
            index=index,
            kind=action.kind,
            status=StepStatus.SKIPPED,
            error=StepError(kind=ErrorKind.SKIPPED, message=reason),
        )

    @property
    def ok(self) -> bool:
        return self.status == StepStatus.SUCCEEDED

    @property
    def is_transient_failure(self) -> bool:
        return self.status == StepStatus.FAILED and self.error is not None and self.error.is_transient


class EvaluationVerdict(BaseModel):
    """The evaluator's judgement on a completed Plan."""

    model_config = {"frozen": True}

    plan_id: str
    score: int = Field(ge=0, le=100)
    accepted: bool
    rationale: str


class OrchestratorOutcome(BaseModel):
    """What `Orchestrator.run()` hands back to its caller."""

    accepted: bool
    results: list[StepResult] = Field(default_factory=list)
    rationale: str
    attempts: int = Field(ge=0)
    plans: int = Field(ge=0, default=0)
    state: str
    score: int | None = None
