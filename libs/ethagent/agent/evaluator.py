"""Evaluator — scores a completed Plan against the request it came from.

score = round(100 * (wc * coverage + wr * relevance) / (wc + wr))

coverage   succeeded steps / all steps
relevance  satisfied intent items / all intent items, where the items are
           the intent-bearing steps plus each verb the request asks for

A failed address validation forces the score to 0.
"""

import logging
import re
from collections.abc import Sequence
from typing import Any

from ethagent.config import DEFAULT_EVALUATION_THRESHOLD, ScoringPolicy
from ethagent.models.actions import Action, ActionKind, BatchCall, ReadState, ReadTarget
from ethagent.models.results import EvaluationVerdict, Plan, StepResult, StepStatus

logger = logging.getLogger(__name__)

# Verb in the request -> (kind, read target) that satisfies it
_REQUESTED_INTENTS: list[tuple[str, re.Pattern[str], set[ActionKind], ReadTarget | None]] = [
    ("transfer", re.compile(r"\b(?:send|transfer|pay)\b", re.IGNORECASE), {ActionKind.TRANSFER_VALUE}, None),
    ("deploy", re.compile(r"\bdeploy\b", re.IGNORECASE), {ActionKind.DEPLOY_CONTRACT}, None),
    (
        "call",
        re.compile(r"\b(?:call|batch)\b", re.IGNORECASE),
        {ActionKind.CALL_FUNCTION, ActionKind.BATCH_CALL},
        None,
    ),
    ("balance", re.compile(r"\bbalance\b", re.IGNORECASE), {ActionKind.READ_STATE}, ReadTarget.BALANCE),
    ("code", re.compile(r"\bcode\b", re.IGNORECASE), {ActionKind.READ_STATE}, ReadTarget.CODE),
]


def _is_success_tx(payload: dict[str, Any]) -> bool:
    return bool(payload.get("transaction_hash")) and payload.get("status") == "success"


def payload_problem(action: Action, payload: dict[str, Any] | None) -> str | None:
    """Why a succeeded step's payload doesn't deliver its intent, or None."""
    if payload is None:
        return "no payload"
    kind = action.kind
    if kind == ActionKind.VALIDATE_ADDRESS:
        return None if payload.get("is_valid") else "address not confirmed valid"
    if isinstance(action, ReadState):
        if action.target == ReadTarget.CODE:
            code = payload.get("code")
            return None if code and code != "0x" else "no code returned"
        return None if isinstance(payload.get("balance"), int) else "no balance returned"
    if kind == ActionKind.TRANSFER_VALUE:
        return None if _is_success_tx(payload) else "no successful transaction"
    if kind == ActionKind.DEPLOY_CONTRACT:
        if not _is_success_tx(payload):
            return "no successful transaction"
        return None if payload.get("contract_address") else "no contract address"
    if kind == ActionKind.CALL_FUNCTION:
        return None if _is_success_tx(payload) else "no successful transaction"
    if isinstance(action, BatchCall):
        transactions = payload.get("transactions") or []
        if len(transactions) != len(action.calls):
            return f"{len(transactions)} of {len(action.calls)} calls completed"
        return None if all(_is_success_tx(tx) for tx in transactions) else "a call did not succeed"
    return f"unknown kind {kind}"


class Evaluator:
    """Deterministic scorer: the same inputs always give the same verdict."""

    def __init__(
        self,
        threshold: int = DEFAULT_EVALUATION_THRESHOLD,
        policy: ScoringPolicy | None = None,
    ) -> None:
        self._threshold = threshold
        self._policy = policy or ScoringPolicy()
        if self._policy.total_weight <= 0:
            raise ValueError("Scoring weights must not both be zero")

    @property
    def threshold(self) -> int:
        return self._threshold

    def evaluate(self, request: str, plan: Plan, results: Sequence[StepResult]) -> EvaluationVerdict:
        if len(results) != len(plan.actions):
            raise ValueError(f"{len(results)} results for a plan of {len(plan.actions)} actions")

        notes: list[str] = []
        total = len(plan.actions)
        succeeded = 0
        validation_failed = False

        intent_bearing = [
            i for i, a in enumerate(plan.actions) if a.kind != ActionKind.VALIDATE_ADDRESS
        ] or list(range(total))
        satisfied_steps: set[int] = set()

        for index, (action, result) in enumerate(zip(plan.actions, results)):
            label = f"step {index + 1} ({action.kind})"
            if result.status == StepStatus.SUCCEEDED:
                succeeded += 1
                problem = payload_problem(action, result.payload)
                if problem is None:
                    satisfied_steps.add(index)
                elif index in intent_bearing:
                    notes.append(f"{label}: {problem}")
                continue

            if action.kind == ActionKind.VALIDATE_ADDRESS and result.status == StepStatus.FAILED:
                validation_failed = True
            reason = result.error.message if result.error else str(result.status)
            notes.append(f"{label}: {result.status} - {reason}")

        satisfied_items = sum(1 for i in intent_bearing if i in satisfied_steps)
        items = len(intent_bearing)
        for name, pattern, kinds, target in _REQUESTED_INTENTS:
            if not pattern.search(request):
                continue
            items += 1
            if any(
                i in satisfied_steps and _matches(plan.actions[i], kinds, target) for i in range(total)
            ):
                satisfied_items += 1
            else:
                notes.append(f"request asks to {name} but no step delivered it")

        coverage = succeeded / total if total else 0.0
        relevance = satisfied_items / items if items else 0.0
        policy = self._policy
        score = round(
            100 * (policy.coverage_weight * coverage + policy.relevance_weight * relevance) / policy.total_weight
        )
        if validation_failed:
            score = 0
            notes.append("address validation failed, score forced to 0")

        accepted = score >= self._threshold
        summary = f"score {score}/100 (threshold {self._threshold})"
        if notes:
            rationale = f"{summary}: " + "; ".join(notes)
        else:
            rationale = f"{summary}: all {total} steps succeeded"

        logger.info("Plan %s scored %d (%s)", plan.id, score, "accepted" if accepted else "rejected")
        return EvaluationVerdict(plan_id=plan.id, score=score, accepted=accepted, rationale=rationale)


def _matches(action: Action, kinds: set[ActionKind], target: ReadTarget | None) -> bool:
    if action.kind not in kinds:
        return False
    if target is not None:
        return isinstance(action, ReadState) and action.target == target
    return True
