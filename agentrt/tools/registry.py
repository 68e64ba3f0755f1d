"""Tool registry for descriptor lifetime and discovery."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterator

from loguru import logger

from agentrt.core.errors import DuplicateTool, InvalidDescriptor, ToolNotFound
from agentrt.tools.base import FunctionTool, Tool, ToolImplementation
from agentrt.tools.descriptor import ToolDescriptor


@dataclass(frozen=True, slots=True)
class RegisteredTool:
    """A descriptor paired with the implementation that honors it."""

    descriptor: ToolDescriptor
    implementation: ToolImplementation

    @property
    def name(self) -> str:
        return self.descriptor.name


class ToolRegistry:
    """In-memory registry of tools, keyed by case-sensitive name.

    Descriptors are immutable once registered. Replacing one requires an
    explicit ``unregister`` followed by ``register``. Discovery walks the
    current state in insertion order on every call.
    """

    def __init__(self) -> None:
        self._tools: dict[str, RegisteredTool] = {}

    def register(
        self,
        descriptor: ToolDescriptor | Tool | dict[str, Any],
        implementation: ToolImplementation | Callable[..., Any] | None = None,
    ) -> ToolDescriptor:
        """Register a tool. Raises ``DuplicateTool`` when the name is taken."""
        if isinstance(descriptor, Tool):
            implementation = implementation or descriptor
            descriptor = descriptor.descriptor
        elif isinstance(descriptor, dict):
            descriptor = ToolDescriptor.from_dict(descriptor)

        if implementation is None:
            raise InvalidDescriptor(f"Tool '{descriptor.name}' has no implementation")
        if not isinstance(implementation, ToolImplementation):
            if not callable(implementation):
                raise InvalidDescriptor(
                    f"Implementation for '{descriptor.name}' is neither a tool nor callable"
                )
            implementation = FunctionTool(implementation)

        if descriptor.name in self._tools:
            raise DuplicateTool(descriptor.name)
        self._tools[descriptor.name] = RegisteredTool(descriptor, implementation)
        logger.info("Registered tool {}", descriptor.name)
        return descriptor

    def unregister(self, name: str) -> None:
        """Remove a tool. In-flight invocations that already resolved it finish normally."""
        if name not in self._tools:
            raise ToolNotFound(name)
        del self._tools[name]
        logger.info("Unregistered tool {}", name)

    def get(self, name: str) -> ToolDescriptor:
        return self.resolve(name).descriptor

    def resolve(self, name: str) -> RegisteredTool:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFound(name)
        return tool

    def discover(
        self,
        predicate: Callable[[ToolDescriptor], bool] | None = None,
        *,
        prefix: str | None = None,
    ) -> Iterator[ToolDescriptor]:
        """Lazily yield descriptors matching ``predicate`` and ``prefix`` in insertion order."""
        # Snapshot so concurrent register/unregister cannot break iteration.
        for tool in list(self._tools.values()):
            descriptor = tool.descriptor
            if prefix is not None and not descriptor.name.startswith(prefix):
                continue
            if predicate is not None and not predicate(descriptor):
                continue
            yield descriptor

    def names(self) -> list[str]:
        return list(self._tools)

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools
