from ethagent.client.channel import ChannelFactory, ToolChannel, call_with_retry
from ethagent.client.connect import channel_factory, open_nats_channel, open_subprocess_channel
from ethagent.client.nats_transport import NatsTransport, provider_subject
from ethagent.client.transport import (
    FrameTransport,
    MemoryTransport,
    StdioTransport,
    SubprocessTransport,
    memory_pipe,
)

__all__ = [
    "ChannelFactory",
    "FrameTransport",
    "MemoryTransport",
    "NatsTransport",
    "StdioTransport",
    "SubprocessTransport",
    "ToolChannel",
    "call_with_retry",
    "channel_factory",
    "memory_pipe",
    "open_nats_channel",
    "open_subprocess_channel",
    "provider_subject",
]
