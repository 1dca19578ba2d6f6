"""Entry point: python -m services.provider [--nats URL]

Without --nats the provider speaks on stdin/stdout and exits when stdin
closes, which is how the agent runs it as a child process.
"""

import argparse
import asyncio
import logging
import os
import signal

from ethagent.client.transport import StdioTransport

from services.provider.server import ToolProviderServer, serve_nats


async def main() -> None:
    parser = argparse.ArgumentParser(prog="python -m services.provider")
    parser.add_argument(
        "--nats",
        nargs="?",
        const=os.environ.get("NATS_URL", "nats://localhost:4222"),
        default=None,
        metavar="URL",
        help="serve on NATS instead of stdio",
    )
    args = parser.parse_args()

    # stderr only: stdout carries frames
    logging.basicConfig(
        level=os.environ.get("ETHAGENT_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    server = ToolProviderServer()

    if args.nats is None:
        transport = await StdioTransport.open()
        await server.serve(transport)
        return

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    logging.getLogger(__name__).info("Tool provider is running on NATS. Press Ctrl+C to stop.")
    await serve_nats(server, args.nats, stop)


if __name__ == "__main__":
    asyncio.run(main())
