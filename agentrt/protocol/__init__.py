"""Message envelope protocol."""

from agentrt.protocol.dispatcher import MessageDispatcher

__all__ = ["MessageDispatcher"]
