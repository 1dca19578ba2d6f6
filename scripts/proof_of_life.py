"""Proof of Life — standalone demo of the ETH Agent control loop.

Run with: python scripts/proof_of_life.py
Spawns the devnet tool provider as a child process (or uses NATS when
NATS_URL is set) and runs three requests through the orchestrator.
"""

import asyncio
import sys

from ethagent import AgentConfig, Orchestrator

REQUESTS = [
    "what is the balance of alice",
    "send 1.5 eth to bob and then check bob's balance",
    "send 1 eth to 0xdeadbeef",
]


async def main() -> None:
    config = AgentConfig.from_env()

    print("=" * 60)
    print("  ETH AGENT — Proof of Life")
    print("=" * 60)
    print()

    failures = 0
    async with Orchestrator(config) as agent:
        for step, request in enumerate(REQUESTS, start=1):
            print(f"[{step}/{len(REQUESTS)}] {request}")
            outcome = await agent.run(request)
            marker = "ACCEPTED" if outcome.accepted else "FAILED"
            print(f"       {marker} after {outcome.attempts} execution(s), {outcome.plans} plan(s)")
            print(f"       {outcome.rationale}")
            print()
            # The last request is expected to fail address validation
            if outcome.accepted != (step < len(REQUESTS)):
                failures += 1

    print("=" * 60)
    if failures:
        print(f"  {failures} request(s) did not behave as expected")
        print("=" * 60)
        sys.exit(1)
    print("  SUCCESS! The agent is alive.")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
