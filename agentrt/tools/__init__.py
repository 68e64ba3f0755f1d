"""Tool descriptors, registry and invocation engine."""

from agentrt.tools.base import CancelSignal, FunctionTool, Tool, ToolImplementation
from agentrt.tools.descriptor import (
    Constraint,
    ConstraintKind,
    ParameterSpec,
    ParamType,
    ReturnSpec,
    ToolDescriptor,
)
from agentrt.tools.engine import InvocationEngine
from agentrt.tools.registry import RegisteredTool, ToolRegistry

__all__ = [
    "CancelSignal",
    "Constraint",
    "ConstraintKind",
    "FunctionTool",
    "InvocationEngine",
    "ParamType",
    "ParameterSpec",
    "RegisteredTool",
    "ReturnSpec",
    "Tool",
    "ToolDescriptor",
    "ToolImplementation",
    "ToolRegistry",
]
