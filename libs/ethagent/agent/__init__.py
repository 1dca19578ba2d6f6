from ethagent.agent.evaluator import Evaluator
from ethagent.agent.executor import ConfirmHook, Executor, rerunnable_steps
from ethagent.agent.interpreter import ActionInterpreter, InterpretationContext, RuleBasedInterpreter
from ethagent.agent.orchestrator import Orchestrator
from ethagent.agent.planner import Planner, insert_guards
from ethagent.agent.session import Session, SessionState

__all__ = [
    "ActionInterpreter",
    "ConfirmHook",
    "Evaluator",
    "Executor",
    "InterpretationContext",
    "Orchestrator",
    "Planner",
    "RuleBasedInterpreter",
    "Session",
    "SessionState",
    "insert_guards",
    "rerunnable_steps",
]
