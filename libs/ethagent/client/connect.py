"""Channel factories — build a started ToolChannel from an AgentConfig."""

import logging
import os
from pathlib import Path

from ethagent.client.channel import ChannelFactory, ToolChannel
from ethagent.client.nats_transport import NatsTransport
from ethagent.client.transport import SubprocessTransport
from ethagent.config import AgentConfig

logger = logging.getLogger(__name__)

# Repository root: `python -m services.provider` resolves from here
PROJECT_ROOT = Path(__file__).resolve().parents[3]


def provider_env() -> dict[str, str]:
    """Environment for a provider child: ours, with the source roots importable."""
    env = dict(os.environ)
    roots = [str(PROJECT_ROOT), str(PROJECT_ROOT / "libs")]
    if env.get("PYTHONPATH"):
        roots.append(env["PYTHONPATH"])
    env["PYTHONPATH"] = os.pathsep.join(roots)
    return env


async def open_subprocess_channel(config: AgentConfig) -> ToolChannel:
    """Spawn the provider command and wrap its pipes in a channel."""
    transport = SubprocessTransport(config.provider_command, env=provider_env(), cwd=PROJECT_ROOT)
    await transport.start()
    channel = ToolChannel(transport, timeout=config.call_timeout, name="provider-stdio")
    await channel.start()
    return channel


async def open_nats_channel(config: AgentConfig) -> ToolChannel:
    """Connect to a provider serving on NATS."""
    if not config.nats_url:
        raise ValueError("nats_url is not configured")
    transport = NatsTransport(config.nats_url)
    await transport.connect()
    channel = ToolChannel(transport, timeout=config.call_timeout, name="provider-nats")
    await channel.start()
    return channel


def channel_factory(config: AgentConfig) -> ChannelFactory:
    """Pick the transport: NATS when `nats_url` is set, else a child process."""

    async def _open() -> ToolChannel:
        if config.nats_url:
            return await open_nats_channel(config)
        return await open_subprocess_channel(config)

    logger.debug("Using %s transport", "nats" if config.nats_url else "stdio")
    return _open
