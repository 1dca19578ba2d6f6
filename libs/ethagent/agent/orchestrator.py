"""Orchestrator — the Plan → Execute → Evaluate control loop.

    planning ──> executing ──> evaluating ──> accepted
        ^            ^             │
        │            └─ retrying <─┤
        └─────── replanning <──────┤
                                   └────────> failed

Retrying runs the same Plan again, keeping the steps that already
succeeded. Replanning asks the planner for a new Plan, passing the last
verdict's rationale as the prior failure.
"""

import asyncio
import logging

from ethagent.agent.evaluator import Evaluator
from ethagent.agent.executor import ConfirmHook, Executor, rerunnable_steps
from ethagent.agent.interpreter import ActionInterpreter, RuleBasedInterpreter
from ethagent.agent.planner import Planner
from ethagent.agent.session import Session, SessionState
from ethagent.client.channel import ChannelFactory, ToolChannel
from ethagent.client.connect import channel_factory as default_channel_factory
from ethagent.config import AgentConfig
from ethagent.errors import ChannelLost, InterpretationError, ProtocolTransportError, RepeatedPlanError
from ethagent.models.accounts import KNOWN_ADDRESSES
from ethagent.models.actions import Action
from ethagent.models.results import OrchestratorOutcome, Plan, StepResult, StepStatus

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs requests to completion against one tool provider.

    The orchestrator owns its channel for its whole lifetime and opens it
    lazily. Requests are serialized: two `run()` calls never share the
    channel at the same time.

    Usage:
        async with Orchestrator(AgentConfig.from_env()) as agent:
            outcome = await agent.run("send 1 eth to bob")
    """

    def __init__(
        self,
        config: AgentConfig | None = None,
        *,
        interpreter: ActionInterpreter | None = None,
        channel_factory: ChannelFactory | None = None,
        evaluator: Evaluator | None = None,
        confirm: ConfirmHook | None = None,
    ) -> None:
        self._config = config or AgentConfig()
        if interpreter is None:
            sender = self._config.default_sender
            if sender.lower() not in KNOWN_ADDRESSES and not sender.lower().startswith("0x"):
                raise ValueError(f"Unknown default sender: {sender}")
            interpreter = RuleBasedInterpreter(default_sender=sender)
        self._planner = Planner(interpreter)
        self._channel_factory = channel_factory or default_channel_factory(self._config)
        self._evaluator = evaluator or Evaluator(self._config.evaluation_threshold, self._config.scoring)
        self._confirm = confirm
        self._channel: ToolChannel | None = None
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: AgentConfig | None = None) -> "Orchestrator":
        """Build an orchestrator from `config`, or from the environment."""
        return cls(config or AgentConfig.from_env())

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def channel(self) -> ToolChannel | None:
        return self._channel

    async def __aenter__(self) -> "Orchestrator":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the tool channel (and stop the provider it spawned)."""
        if self._channel is not None:
            channel, self._channel = self._channel, None
            await channel.close()

    async def run(self, request: str) -> OrchestratorOutcome:
        """Drive one request to ACCEPTED or FAILED.

        Cancelling the caller waits for an in-flight transaction to settle,
        closes the channel and re-raises CancelledError.
        """
        async with self._lock:
            session = Session(request=request)
            logger.info("Session %s started: %r", session.id[:8], request)
            try:
                await self._drive(session)
            except asyncio.CancelledError:
                session.fail("cancelled")
                await self.close()
                raise
            outcome = session.to_outcome()
            logger.info(
                "Session %s finished %s after %d executions: %s",
                session.id[:8],
                outcome.state,
                outcome.attempts,
                outcome.rationale,
            )
            return outcome

    # --- State machine ---

    async def _drive(self, session: Session) -> None:
        prior_failure: str | None = None
        rerun: set[int] = set()
        while not session.is_terminal:
            if session.state == SessionState.PLANNING:
                await self._plan(session, prior_failure)
            elif session.state == SessionState.EXECUTING:
                await self._execute(session, rerun)
                rerun = set()
            elif session.state == SessionState.EVALUATING:
                rerun = await self._evaluate(session) or set()
            elif session.state == SessionState.RETRYING:
                session.transition(SessionState.EXECUTING)
            elif session.state == SessionState.REPLANNING:
                prior_failure = session.rationale
                session.transition(SessionState.PLANNING)

    async def _plan(self, session: Session, prior_failure: str | None) -> None:
        try:
            plan = await self._planner.plan(
                session.request,
                prior_failure,
                attempt=session.planning_entries,
                seen=session.seen_signatures,
            )
        except InterpretationError as e:
            if prior_failure is None:
                session.fail(f"Could not interpret request: {e.reason}")
            else:
                session.fail(f"{prior_failure}; replanning failed: {e.reason}")
            return
        except RepeatedPlanError:
            session.fail(f"{prior_failure}; replanning produced the same plan again")
            return
        session.adopt_plan(plan)
        session.transition(SessionState.EXECUTING)

    async def _execute(self, session: Session, rerun: set[int]) -> None:
        plan = _active_plan(session)
        prior: list[StepResult] = session.results

        try:
            channel = await self._ensure_channel()
        except (ProtocolTransportError, ValueError) as e:
            session.fail(f"Tool provider unavailable: {e}")
            return

        while True:
            try:
                session.results = await self._executor(channel).execute(plan, prior=prior, rerun=rerun)
                break
            except ChannelLost as lost:
                if _made_progress(prior, lost.results):
                    session.transport_losses = 0
                session.transport_losses += 1
                await self.close()
                if session.transport_losses > 1:
                    session.results = _pad(lost.results, plan.actions, "tool channel lost")
                    session.fail(f"Tool channel lost twice in a row: {lost.cause}")
                    return
                logger.warning("Tool channel lost at step %d; reconnecting", len(lost.results) - 1)
                try:
                    channel = await self._ensure_channel()
                except (ProtocolTransportError, ValueError) as e:
                    session.results = _pad(lost.results, plan.actions, "tool channel lost")
                    session.fail(f"Tool channel lost and could not be reopened: {e}")
                    return
                # Resume after the interrupted step
                prior, rerun = lost.results, set()

        if _made_progress(prior, session.results):
            session.transport_losses = 0
        session.transition(SessionState.EVALUATING)

    async def _evaluate(self, session: Session) -> set[int] | None:
        """Score the results and pick the next state. Returns steps to re-run."""
        plan = _active_plan(session)
        verdict = self._evaluator.evaluate(session.request, plan, session.results)
        session.verdict = verdict
        session.rationale = verdict.rationale

        if verdict.accepted:
            session.transition(SessionState.ACCEPTED)
            return None

        config = self._config
        failures = [r for r in session.results if r.status == StepStatus.FAILED]
        if failures and all(r.is_transient_failure for r in failures):
            if session.executions >= config.max_plan_retries + 1:
                session.fail(f"{verdict.rationale}; gave up after {session.executions} executions")
                return None
            rerun = await rerunnable_steps(plan, session.results, self._confirm)
            if rerun is None:
                session.fail(f"{verdict.rationale}; a transaction may have been sent and was not retried")
                return None
            session.transition(SessionState.RETRYING)
            return rerun

        if session.planning_entries >= config.replan_limit + 1:
            session.fail(f"{verdict.rationale}; gave up after {session.planning_entries} plans")
            return None
        session.transition(SessionState.REPLANNING)
        return None

    # --- Channel ---

    async def _ensure_channel(self) -> ToolChannel:
        if self._channel is not None and not self._channel.is_open:
            await self.close()
        if self._channel is None:
            self._channel = await self._channel_factory()
            logger.info("Tool channel opened")
        return self._channel

    def _executor(self, channel: ToolChannel) -> Executor:
        return Executor(channel)


def _active_plan(session: Session) -> Plan:
    if session.plan is None:
        raise RuntimeError(f"Session {session.id} has no active plan")
    return session.plan


def _pad(results: list[StepResult], actions: tuple[Action, ...], reason: str) -> list[StepResult]:
    """Fill in the steps a lost channel never reached."""
    padded = list(results)
    for index in range(len(padded), len(actions)):
        padded.append(StepResult.skipped(index, actions[index], reason))
    return padded


def _made_progress(prior: list[StepResult], results: list[StepResult]) -> bool:
    """True if `results` holds a success that was not carried over from `prior`."""
    return any(r.ok and (r.index >= len(prior) or prior[r.index] is not r) for r in results)
