"""Core domain models and error taxonomy for agentrt."""

from agentrt.core.errors import (
    AccessDeniedError,
    AgentRTError,
    ContextProviderError,
    DuplicateTool,
    MemoryConflict,
    MemoryNotFound,
    ToolExecutionError,
    ToolNotFound,
    ToolTimeoutError,
    ToolValidationError,
)
from agentrt.core.types import (
    ContextBundle,
    ContextSlice,
    DiagnosticEvent,
    ErrorInfo,
    InvocationRequest,
    InvocationResult,
    InvocationState,
    MemoryEntry,
    MemoryInfo,
    MessageEnvelope,
    Sensitivity,
)

__all__ = [
    "AccessDeniedError",
    "AgentRTError",
    "ContextBundle",
    "ContextProviderError",
    "ContextSlice",
    "DiagnosticEvent",
    "DuplicateTool",
    "ErrorInfo",
    "InvocationRequest",
    "InvocationResult",
    "InvocationState",
    "MemoryConflict",
    "MemoryEntry",
    "MemoryInfo",
    "MemoryNotFound",
    "MessageEnvelope",
    "Sensitivity",
    "ToolExecutionError",
    "ToolNotFound",
    "ToolTimeoutError",
    "ToolValidationError",
]
