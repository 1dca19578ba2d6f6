"""Session — the state of one top-level request inside the orchestrator."""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum

from ethagent.models.results import EvaluationVerdict, OrchestratorOutcome, Plan, StepResult

logger = logging.getLogger(__name__)


class SessionState(StrEnum):
    PLANNING = "planning"
    EXECUTING = "executing"
    EVALUATING = "evaluating"
    RETRYING = "retrying"
    REPLANNING = "replanning"
    ACCEPTED = "accepted"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SessionState.ACCEPTED, SessionState.FAILED})

ALLOWED_TRANSITIONS: dict[SessionState, frozenset[SessionState]] = {
    SessionState.PLANNING: frozenset({SessionState.EXECUTING, SessionState.FAILED}),
    SessionState.EXECUTING: frozenset({SessionState.EVALUATING, SessionState.FAILED}),
    SessionState.EVALUATING: frozenset(
        {SessionState.ACCEPTED, SessionState.RETRYING, SessionState.REPLANNING, SessionState.FAILED}
    ),
    SessionState.RETRYING: frozenset({SessionState.EXECUTING}),
    SessionState.REPLANNING: frozenset({SessionState.PLANNING}),
    SessionState.ACCEPTED: frozenset(),
    SessionState.FAILED: frozenset(),
}


class InvalidTransition(RuntimeError):
    """The state machine was asked to make a move it does not allow."""


@dataclass
class Session:
    """Counters, history and the active Plan for one `run()`.

    `planning_entries` counts every entry to PLANNING, the first included.
    `executions` counts EXECUTING entries for the active Plan only;
    `total_executions` counts them across the whole Session.
    """

    request: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: SessionState = SessionState.PLANNING
    planning_entries: int = 1
    executions: int = 0
    total_executions: int = 0
    transport_losses: int = 0
    plan: Plan | None = None
    results: list[StepResult] = field(default_factory=list)
    verdict: EvaluationVerdict | None = None
    rationale: str = ""
    seen_signatures: set[str] = field(default_factory=set)
    history: list[SessionState] = field(default_factory=lambda: [SessionState.PLANNING])
    started_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, target: SessionState) -> None:
        if target not in ALLOWED_TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state} -> {target}")
        logger.info("Session %s: %s -> %s", self.id[:8], self.state, target)
        self.state = target
        self.history.append(target)
        if target == SessionState.PLANNING:
            self.planning_entries += 1
        elif target == SessionState.EXECUTING:
            self.executions += 1
            self.total_executions += 1

    def adopt_plan(self, plan: Plan) -> None:
        """Make `plan` the active Plan and reset its per-plan counters."""
        self.plan = plan
        self.results = []
        self.executions = 0
        self.verdict = None

    def fail(self, rationale: str) -> None:
        """Move to FAILED from any non-terminal state."""
        if self.is_terminal:
            return
        self.rationale = rationale
        logger.warning("Session %s failed: %s", self.id[:8], rationale)
        self.state = SessionState.FAILED
        self.history.append(SessionState.FAILED)

    def to_outcome(self) -> OrchestratorOutcome:
        return OrchestratorOutcome(
            accepted=self.state == SessionState.ACCEPTED,
            results=list(self.results),
            rationale=self.rationale,
            attempts=self.total_executions,
            plans=self.planning_entries,
            state=str(self.state),
            score=self.verdict.score if self.verdict else None,
        )
