"""Concurrent context aggregation that tolerates partial provider failure."""

from __future__ import annotations

import asyncio
import time
from types import MappingProxyType
from typing import Any, Iterable

from loguru import logger

from agentrt.context.providers import ContextProvider
from agentrt.core.errors import ContextProviderError
from agentrt.core.types import ContextBundle, ContextSlice, DiagnosticEvent, EventEmitter
from agentrt.observability.redaction import redact_payload

_MAPPING_SLICES = (ContextSlice.SYSTEM, ContextSlice.WORKSPACE, ContextSlice.USER, ContextSlice.MEMORY)
_REDACTED_SLICES = frozenset({ContextSlice.SYSTEM, ContextSlice.WORKSPACE, ContextSlice.USER})


class ContextAggregator:
    """Queries providers concurrently and merges their slices into one bundle.

    A failing or slow provider never aborts aggregation: it is recorded in
    ``failed_providers`` and the bundle is marked partial. Even when every
    provider fails, a (fully partial) bundle is returned.
    """

    def __init__(
        self,
        providers: Iterable[ContextProvider] | None = None,
        *,
        default_timeout: float = 5.0,
        redact: bool = True,
        event_emitter: EventEmitter | None = None,
    ) -> None:
        self._providers: dict[str, ContextProvider] = {}
        self.default_timeout = default_timeout
        self.redact = redact
        self._event_emitter = event_emitter
        for provider in providers or []:
            self.add_provider(provider)

    def add_provider(self, provider: ContextProvider) -> None:
        if provider.name in self._providers:
            raise ValueError(f"Context provider '{provider.name}' is already registered")
        self._providers[provider.name] = provider

    def remove_provider(self, name: str) -> None:
        self._providers.pop(name, None)

    @property
    def providers(self) -> list[ContextProvider]:
        return list(self._providers.values())

    def set_event_emitter(self, event_emitter: EventEmitter | None) -> None:
        self._event_emitter = event_emitter

    async def _emit(self, event: DiagnosticEvent) -> None:
        if not self._event_emitter:
            return
        try:
            await self._event_emitter(event)
        except Exception:
            return

    async def _fetch(self, provider: ContextProvider) -> Any:
        timeout = provider.timeout if provider.timeout is not None else self.default_timeout
        try:
            data = await asyncio.wait_for(provider.fetch(), timeout=timeout)
        except asyncio.TimeoutError:
            return ContextProviderError(provider.name, f"timed out after {timeout}s")
        except Exception as e:
            return ContextProviderError(provider.name, f"{type(e).__name__}: {e}")

        if provider.slice is ContextSlice.TOOLS:
            if not isinstance(data, (list, tuple)):
                return ContextProviderError(provider.name, "tools slice must be a sequence")
        elif not isinstance(data, dict):
            return ContextProviderError(
                provider.name, f"{provider.slice.value} slice must be a mapping"
            )
        return data

    async def aggregate(
        self, requested_slices: Iterable[ContextSlice | str] | None = None
    ) -> ContextBundle:
        """Build a fresh bundle for ``requested_slices`` (all slices when None)."""
        started = time.perf_counter()
        if requested_slices is None:
            wanted = list(ContextSlice)
        else:
            wanted = []
            for s in requested_slices:
                s = ContextSlice(s)
                if s not in wanted:
                    wanted.append(s)

        selected = [p for p in self._providers.values() if p.slice in wanted]
        outcomes = await asyncio.gather(*(self._fetch(p) for p in selected))

        failed: list[str] = []
        merged: dict[ContextSlice, dict[str, Any]] = {s: {} for s in _MAPPING_SLICES}
        tools: list[Any] = []

        for provider, outcome in zip(selected, outcomes):
            if isinstance(outcome, ContextProviderError):
                logger.warning("{}", outcome.message)
                failed.append(provider.name)
                continue
            if provider.slice is ContextSlice.TOOLS:
                tools.extend(outcome)
            else:
                merged[provider.slice].update(outcome)

        covered = {p.slice for p in selected}
        for s in wanted:
            if s not in covered:
                logger.warning("No context provider registered for slice '{}'", s.value)
                failed.append(s.value)

        if self.redact:
            for s in _REDACTED_SLICES:
                merged[s] = redact_payload(merged[s])

        bundle = ContextBundle(
            system=MappingProxyType(merged[ContextSlice.SYSTEM]),
            workspace=MappingProxyType(merged[ContextSlice.WORKSPACE]),
            user=MappingProxyType(merged[ContextSlice.USER]),
            tools=tuple(tools),
            memory=MappingProxyType(merged[ContextSlice.MEMORY]),
            partial=bool(failed),
            failed_providers=tuple(failed),
        )
        await self._emit(
            DiagnosticEvent(
                name="context.aggregated",
                component="context.aggregator",
                severity="warning" if failed else "info",
                operation="aggregate",
                status="partial" if failed else "ok",
                latency_ms=round((time.perf_counter() - started) * 1000, 3),
                attrs={
                    "slices": [s.value for s in wanted],
                    "failed_providers": list(failed),
                },
            )
        )
        return bundle
