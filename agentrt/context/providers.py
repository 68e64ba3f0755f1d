"""Context providers: each supplies one typed slice of the context bundle."""

from __future__ import annotations

import asyncio
import inspect
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from agentrt.core.types import ContextSlice

if TYPE_CHECKING:
    from agentrt.memory.store import MemoryStore
    from agentrt.tools.registry import ToolRegistry


@runtime_checkable
class ContextProvider(Protocol):
    """Protocol for a source of one context slice.

    ``timeout`` overrides the aggregator default when not None. ``fetch`` may
    raise or hang; the aggregator records either as a provider failure.
    """

    @property
    def name(self) -> str: ...

    @property
    def slice(self) -> ContextSlice: ...

    @property
    def timeout(self) -> float | None: ...

    async def fetch(self) -> Any: ...


class StaticProvider:
    """Serves a fixed payload."""

    def __init__(
        self,
        name: str,
        slice: ContextSlice,
        data: Any,
        *,
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.slice = ContextSlice(slice)
        self.timeout = timeout
        self._data = data

    async def fetch(self) -> Any:
        return self._data


class CallableProvider:
    """Wraps a sync or async callable. Sync callables run in a worker thread."""

    def __init__(
        self,
        name: str,
        slice: ContextSlice,
        func: Callable[[], Any],
        *,
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.slice = ContextSlice(slice)
        self.timeout = timeout
        self._func = func

    async def fetch(self) -> Any:
        if inspect.iscoroutinefunction(self._func):
            return await self._func()
        result = await asyncio.to_thread(self._func)
        if inspect.isawaitable(result):
            result = await result
        return result


class ToolsProvider:
    """Snapshot of the tool registry."""

    slice = ContextSlice.TOOLS

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        prefix: str | None = None,
        name: str = "tools",
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.timeout = timeout
        self._registry = registry
        self._prefix = prefix

    async def fetch(self) -> list[Any]:
        return list(self._registry.discover(prefix=self._prefix))


class MemoryProvider:
    """Memory entries relevant to a session, read as ``identity``.

    Selects explicit ``keys`` when given, otherwise every readable key under
    ``prefix`` (all keys when both are None).
    """

    slice = ContextSlice.MEMORY

    def __init__(
        self,
        store: MemoryStore,
        *,
        identity: str = "anonymous",
        keys: list[str] | None = None,
        prefix: str | None = None,
        name: str = "memory",
        timeout: float | None = None,
    ) -> None:
        self.name = name
        self.timeout = timeout
        self._store = store
        self._identity = identity
        self._keys = list(keys) if keys is not None else None
        self._prefix = prefix

    async def fetch(self) -> dict[str, Any]:
        keys = self._keys
        if keys is None:
            keys = [
                info.key
                async for info in self._store.list(self._prefix, identity=self._identity)
            ]
        return await self._store.read_many(keys, identity=self._identity)
