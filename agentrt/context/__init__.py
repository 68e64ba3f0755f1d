"""Context aggregation.

Providers each supply one slice (system, workspace, user, tools, memory). The
aggregator queries them concurrently and returns an immutable, possibly
partial ``ContextBundle``.
"""

from agentrt.context.aggregator import ContextAggregator
from agentrt.context.providers import (
    CallableProvider,
    ContextProvider,
    MemoryProvider,
    StaticProvider,
    ToolsProvider,
)

__all__ = [
    "CallableProvider",
    "ContextAggregator",
    "ContextProvider",
    "MemoryProvider",
    "StaticProvider",
    "ToolsProvider",
]
