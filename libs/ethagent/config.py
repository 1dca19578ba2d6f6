"""AgentConfig — process-wide settings, fixed at startup.

Configuration is an explicit object passed to the Orchestrator rather than
module globals, so different policies can run side by side in tests.
"""

import os
import shlex
import sys
from collections.abc import Mapping

from pydantic import BaseModel, Field

DEFAULT_EVALUATION_THRESHOLD = 70
DEFAULT_MAX_PLAN_RETRIES = 3
DEFAULT_REPLAN_LIMIT = 3
DEFAULT_CALL_TIMEOUT = 30.0

ENV_PREFIX = "ETHAGENT_"


class ScoringPolicy(BaseModel):
    """Relative weights of the evaluator's scoring factors."""

    model_config = {"frozen": True}

    coverage_weight: float = Field(ge=0, default=0.5)
    relevance_weight: float = Field(ge=0, default=0.5)

    @property
    def total_weight(self) -> float:
        return self.coverage_weight + self.relevance_weight


def _default_provider_command() -> tuple[str, ...]:
    return (sys.executable, "-m", "services.provider")


class AgentConfig(BaseModel):
    """Read-only settings shared by every Session of one Orchestrator."""

    model_config = {"frozen": True}

    evaluation_threshold: int = Field(ge=0, le=100, default=DEFAULT_EVALUATION_THRESHOLD)
    max_plan_retries: int = Field(ge=0, default=DEFAULT_MAX_PLAN_RETRIES)
    replan_limit: int = Field(ge=0, default=DEFAULT_REPLAN_LIMIT)
    call_timeout: float = Field(gt=0, default=DEFAULT_CALL_TIMEOUT)
    provider_command: tuple[str, ...] = Field(default_factory=_default_provider_command)
    nats_url: str | None = None
    default_sender: str = "alice"
    scoring: ScoringPolicy = Field(default_factory=ScoringPolicy)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "AgentConfig":
        """Build a config from `ETHAGENT_*` environment variables.

        Unset variables keep their defaults. Invalid values raise
        `pydantic.ValidationError`.
        """
        env = os.environ if environ is None else environ
        fields: dict[str, object] = {}

        for name in (
            "evaluation_threshold",
            "max_plan_retries",
            "replan_limit",
            "call_timeout",
            "default_sender",
            "log_level",
        ):
            value = env.get(ENV_PREFIX + name.upper())
            if value is not None and value.strip():
                fields[name] = value.strip()

        command = env.get(ENV_PREFIX + "PROVIDER_COMMAND")
        if command:
            fields["provider_command"] = tuple(shlex.split(command))

        nats_url = env.get("NATS_URL")
        if nats_url:
            fields["nats_url"] = nats_url

        scoring: dict[str, str] = {}
        for name in ("coverage_weight", "relevance_weight"):
            value = env.get(ENV_PREFIX + name.upper())
            if value:
                scoring[name] = value
        if scoring:
            fields["scoring"] = ScoringPolicy.model_validate(scoring)

        return cls.model_validate(fields)
