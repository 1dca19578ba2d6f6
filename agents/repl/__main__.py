"""Entry point: python -m agents.repl"""

import asyncio
import logging

from ethagent.agent.orchestrator import Orchestrator
from ethagent.config import AgentConfig

from agents.repl.repl import PROMPT, handle_line


async def main() -> None:
    config = AgentConfig.from_env()
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    print("ETH Agent REPL")
    print("Type 'help' for example requests, 'quit' to exit")
    print(f"Provider: {config.nats_url or ' '.join(config.provider_command)}")
    print()

    async with Orchestrator(config) as agent:
        while True:
            try:
                line = await asyncio.to_thread(input, PROMPT)
            except EOFError:
                break
            if not await handle_line(agent, line):
                break
            print()

    logging.info("Shutting down ETH Agent")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
