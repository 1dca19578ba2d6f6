"""Command handling for the ETH Agent REPL."""

import logging
from collections.abc import Callable

from ethagent.agent.orchestrator import Orchestrator
from ethagent.helpers.units import format_ether
from ethagent.models.results import OrchestratorOutcome

logger = logging.getLogger(__name__)

PROMPT = "agent> "

HELP_TEXT = """\
Available commands:
  help, h          - Show this help message
  quit, exit, q    - Exit the REPL
  clear, cls       - Clear the screen

Example requests:
  send 0.1 eth to bob
  what is the balance of alice
  deploy a contract
  call mint on 0x5FbDB2315678afecb367f032d93F642f64180aa3 with args bob, 100
  batch: call pause on <address>, call unpause on <address>
  check code at <address>"""

QUIT_COMMANDS = {"quit", "exit", "q"}
HELP_COMMANDS = {"help", "h"}
CLEAR_COMMANDS = {"clear", "cls"}
CLEAR_SCREEN = "\x1b[2J\x1b[1;1H"


def format_outcome(outcome: OrchestratorOutcome) -> str:
    """Render an outcome as a few lines of plain text."""
    lines: list[str] = []
    if outcome.accepted:
        lines.append(f"Done (score {outcome.score}, {outcome.attempts} execution(s))")
        for result in outcome.results:
            if result.kind == "validate_address" or not result.payload:
                continue
            payload = result.payload
            if "balance" in payload:
                unit = payload.get("denomination", "wei")
                shown = format_ether(payload["balance"]) if unit == "wei" else f"{payload['balance']} {unit}"
                lines.append(f"  {payload['address']}: {shown}")
            elif payload.get("contract_address"):
                lines.append(f"  contract deployed at {payload['contract_address']}")
            elif "transaction_hash" in payload:
                lines.append(f"  transaction {payload['transaction_hash']} ({payload.get('status')})")
            elif "transactions" in payload:
                lines.append(f"  {len(payload['transactions'])} transactions sent")
            elif "code" in payload:
                lines.append(f"  code: {payload['code'][:66]}{'...' if len(payload['code']) > 66 else ''}")
    else:
        lines.append(f"Failed after {outcome.attempts} execution(s)")
    lines.append(f"  {outcome.rationale}")
    return "\n".join(lines)


async def handle_line(agent: Orchestrator, line: str, write: Callable[[str], None] = print) -> bool:
    """Process one line of input. Returns False when the REPL should exit."""
    text = line.strip()
    command = text.lower()
    if not text:
        return True
    if command in QUIT_COMMANDS:
        write("Goodbye!")
        return False
    if command in HELP_COMMANDS:
        write(HELP_TEXT)
        return True
    if command in CLEAR_COMMANDS:
        write(CLEAR_SCREEN)
        return True

    logger.info("Processing request: %s", text)
    outcome = await agent.run(text)
    write(format_outcome(outcome))
    return True
