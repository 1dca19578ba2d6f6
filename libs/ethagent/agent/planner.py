"""Planner — wraps the interpreter and turns its Actions into a guarded Plan."""

import logging
from collections.abc import MutableSet

from ethagent.agent.interpreter import ActionInterpreter, InterpretationContext
from ethagent.errors import InterpretationError, RepeatedPlanError
from ethagent.models.actions import Action, ValidateAddress
from ethagent.models.results import Plan

logger = logging.getLogger(__name__)


def insert_guards(actions: list[Action]) -> list[Action]:
    """Put a ValidateAddress before each state-mutating action.

    An address gets one guard, before the first mutating action that
    touches it; addresses already validated earlier in the sequence are not
    validated again.
    """
    validated: set[str] = set()
    guarded: list[Action] = []
    for action in actions:
        if isinstance(action, ValidateAddress):
            validated.add(action.address.lower())
        elif action.mutates_state:
            for address in action.addresses():
                if address.lower() not in validated:
                    guarded.append(ValidateAddress(address=address))
                    validated.add(address.lower())
        guarded.append(action)
    return guarded


class Planner:
    """Produces Plans for a request, first attempt or replan."""

    def __init__(self, interpreter: ActionInterpreter) -> None:
        self._interpreter = interpreter

    async def plan(
        self,
        request: str,
        prior_failure: str | None = None,
        *,
        attempt: int = 1,
        seen: MutableSet[str] | None = None,
    ) -> Plan:
        """Build the next Plan.

        Args:
            request: The user's request text.
            prior_failure: Rationale of the previous rejected Plan, if any.
            attempt: 1-based planning attempt within the Session.
            seen: Signatures of Plans already produced in this Session.
                The new signature is added to it.

        Raises:
            InterpretationError: The interpreter produced nothing usable.
            RepeatedPlanError: The Plan matches one already produced.
        """
        context = InterpretationContext(prior_failure=prior_failure, attempt=attempt)
        actions = await self._interpreter.interpret(request, context)
        if not actions:
            raise InterpretationError(request, "interpreter returned no actions")

        plan = Plan(request=request, actions=tuple(insert_guards(list(actions))), prior_failure=prior_failure)
        signature = plan.signature()
        if seen is not None:
            if signature in seen:
                logger.warning("Plan %s repeats an earlier plan (%s)", plan.id, signature[:12])
                raise RepeatedPlanError(signature)
            seen.add(signature)

        logger.info(
            "Plan %s (attempt %d): %s",
            plan.id,
            attempt,
            ", ".join(a.describe() for a in plan.actions),
        )
        return plan
