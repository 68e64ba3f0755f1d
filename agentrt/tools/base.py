"""Tool implementation contracts."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from typing import Any, Callable, Protocol, runtime_checkable

from agentrt.tools.descriptor import ToolDescriptor


class CancelSignal:
    """Cooperative cancellation flag handed to every tool invocation.

    The engine sets it when the invocation times out. Tools running in a worker
    thread cannot be interrupted, so long-running ones should poll
    ``cancelled``.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@runtime_checkable
class ToolImplementation(Protocol):
    """Anything the engine can invoke with validated arguments."""

    def invoke(self, args: dict[str, Any], signal: CancelSignal) -> Any: ...


class Tool(ABC):
    """Base class for tools that carry their own descriptor."""

    @property
    @abstractmethod
    def descriptor(self) -> ToolDescriptor:
        """Schema the registry publishes for this tool."""

    @property
    def name(self) -> str:
        return self.descriptor.name

    @abstractmethod
    async def execute(self, signal: CancelSignal, **kwargs: Any) -> Any:
        """Run the tool. ``kwargs`` are already validated."""

    async def invoke(self, args: dict[str, Any], signal: CancelSignal) -> Any:
        return await self.execute(signal, **args)


class FunctionTool:
    """Adapts a plain sync or async callable to ``ToolImplementation``.

    The callable receives the validated arguments as keyword arguments, plus
    ``signal`` when its signature declares it.
    """

    def __init__(self, func: Callable[..., Any]):
        self.func = func
        try:
            params = inspect.signature(func).parameters
        except (TypeError, ValueError):
            params = {}
        self._wants_signal = "signal" in params

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self.func)

    def invoke(self, args: dict[str, Any], signal: CancelSignal) -> Any:
        if self._wants_signal:
            return self.func(signal=signal, **args)
        return self.func(**args)
