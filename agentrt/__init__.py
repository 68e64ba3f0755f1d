"""AgentRT - tool invocation, context and memory runtime for AI agents."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("agentrt")
except PackageNotFoundError:
    __version__ = "0.0.0+local"
__app_name__ = "AgentRT"
