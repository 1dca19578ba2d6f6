"""Tests for the REPL's command handling and output."""

import pytest

from ethagent.agent.orchestrator import Orchestrator
from ethagent.models import KNOWN_ADDRESSES, OrchestratorOutcome, ReadState, StepResult

from agents.repl.repl import CLEAR_SCREEN, HELP_TEXT, format_outcome, handle_line

ALICE = KNOWN_ADDRESSES["alice"]


@pytest.fixture
async def agent(config, provider):
    orchestrator = Orchestrator(config, channel_factory=provider.connect)
    yield orchestrator
    await orchestrator.close()


class TestCommands:
    @pytest.mark.parametrize("line", ["quit", "EXIT", " q "])
    async def test_quit(self, agent, line):
        out: list[str] = []
        assert await handle_line(agent, line, out.append) is False
        assert out == ["Goodbye!"]

    async def test_help(self, agent):
        out: list[str] = []
        assert await handle_line(agent, "help", out.append)
        assert out == [HELP_TEXT]

    async def test_clear(self, agent):
        out: list[str] = []
        assert await handle_line(agent, "cls", out.append)
        assert out == [CLEAR_SCREEN]

    async def test_blank_line_ignored(self, agent, provider):
        out: list[str] = []
        assert await handle_line(agent, "   ", out.append)
        assert out == []
        assert provider.connections == 0

    async def test_request_runs(self, agent):
        out: list[str] = []
        assert await handle_line(agent, "what is the balance of alice", out.append)
        (text,) = out
        assert text.startswith("Done (score 100, 1 execution(s))")
        assert f"{ALICE}: 10000 ETH" in text

    async def test_failed_request(self, agent):
        out: list[str] = []
        await handle_line(agent, "make me a sandwich", out.append)
        assert out[0].startswith("Failed after 0 execution(s)")
        assert "Could not interpret request" in out[0]


class TestFormatOutcome:
    def test_token_balance(self):
        action = ReadState(address=ALICE, token="USDC")
        outcome = OrchestratorOutcome(
            accepted=True,
            results=[StepResult.success(0, action, {"address": ALICE, "balance": 5, "denomination": "USDC"})],
            rationale="score 100/100 (threshold 70): all 1 steps succeeded",
            attempts=1,
            state="accepted",
            score=100,
        )
        assert f"{ALICE}: 5 USDC" in format_outcome(outcome)

    def test_failure_shows_rationale(self):
        outcome = OrchestratorOutcome(accepted=False, rationale="gave up", attempts=3, state="failed")
        assert format_outcome(outcome) == "Failed after 3 execution(s)\n  gave up"
