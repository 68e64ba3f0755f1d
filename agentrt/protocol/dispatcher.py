"""Envelope dispatcher: routes request envelopes to the engine, memory store and aggregator.

Each request envelope yields exactly one response or error envelope carrying
the same ``id``, whatever happens while handling it.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from agentrt.core.errors import AgentRTError, InvalidEnvelope, UnknownOperation
from agentrt.core.types import (
    ContextSlice,
    ErrorInfo,
    InvocationRequest,
    MessageEnvelope,
    Sensitivity,
)

if TYPE_CHECKING:
    from agentrt.context.aggregator import ContextAggregator
    from agentrt.memory.store import MemoryStore
    from agentrt.tools.engine import InvocationEngine


class _Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    op: str


class ToolsListPayload(_Payload):
    prefix: str | None = None


class ToolsGetPayload(_Payload):
    name: str


class ToolsInvokePayload(_Payload):
    tool: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    caller: str = "anonymous"
    timeout: float | None = Field(default=None, gt=0)


class MemoryCreatePayload(_Payload):
    key: str
    value: Any
    owner: str
    sensitivity: Sensitivity = Sensitivity.INTERNAL


class MemoryReadPayload(_Payload):
    key: str
    identity: str = "anonymous"


class MemoryUpdatePayload(_Payload):
    key: str
    expected_version: int = Field(..., ge=1)
    value: Any
    identity: str = "anonymous"


class MemoryDeletePayload(_Payload):
    key: str
    expected_version: int | None = Field(default=None, ge=1)
    identity: str = "anonymous"


class MemoryListPayload(_Payload):
    prefix: str | None = None
    identity: str = "anonymous"


class ContextAggregatePayload(_Payload):
    slices: list[ContextSlice] | None = None


Handler = Callable[[Any], Awaitable[MessageEnvelope | dict[str, Any]]]


class MessageDispatcher:
    """Transport-agnostic request/response router."""

    def __init__(
        self,
        engine: InvocationEngine,
        memory: MemoryStore,
        aggregator: ContextAggregator,
    ) -> None:
        self.engine = engine
        self.memory = memory
        self.aggregator = aggregator
        self._routes: dict[str, tuple[type[_Payload], Handler]] = {
            "tools.list": (ToolsListPayload, self._tools_list),
            "tools.get": (ToolsGetPayload, self._tools_get),
            "tools.invoke": (ToolsInvokePayload, self._tools_invoke),
            "memory.create": (MemoryCreatePayload, self._memory_create),
            "memory.read": (MemoryReadPayload, self._memory_read),
            "memory.update": (MemoryUpdatePayload, self._memory_update),
            "memory.delete": (MemoryDeletePayload, self._memory_delete),
            "memory.list": (MemoryListPayload, self._memory_list),
            "context.aggregate": (ContextAggregatePayload, self._context_aggregate),
        }

    @property
    def operations(self) -> list[str]:
        return list(self._routes)

    async def handle(self, message: MessageEnvelope | dict[str, Any]) -> MessageEnvelope:
        """Process one request and return its single response or error envelope."""
        try:
            envelope = (
                message
                if isinstance(message, MessageEnvelope)
                else MessageEnvelope.model_validate(message)
            )
        except ValidationError as e:
            raw_id = message.get("id") if isinstance(message, dict) else None
            error = InvalidEnvelope(f"Malformed envelope: {e.error_count()} validation error(s)")
            if isinstance(raw_id, str) and raw_id.strip():
                return MessageEnvelope.failure(raw_id, error.to_info())
            return MessageEnvelope(type="error", error=error.to_info())

        try:
            return await self._dispatch(envelope)
        except AgentRTError as e:
            return MessageEnvelope.failure(envelope.id, e.to_info())
        except Exception as e:
            logger.exception("Unhandled error while processing envelope {}", envelope.id)
            return MessageEnvelope.failure(
                envelope.id,
                ErrorInfo(
                    code="internal_error",
                    message=f"Unexpected {type(e).__name__} while handling request",
                    recoverable=False,
                ),
            )

    async def _dispatch(self, envelope: MessageEnvelope) -> MessageEnvelope:
        if envelope.type != "request":
            raise InvalidEnvelope(f"Expected a request envelope, got '{envelope.type}'")

        op = envelope.payload.get("op")
        route = self._routes.get(op) if isinstance(op, str) else None
        if route is None:
            raise UnknownOperation(f"Unknown operation: {op!r}", details={"op": op})

        model, handler = route
        try:
            payload = model.model_validate(envelope.payload)
        except ValidationError as e:
            raise InvalidEnvelope(
                f"Invalid payload for '{op}': {e}",
                details={"op": op, "errors": [err["msg"] for err in e.errors()]},
            ) from e

        outcome = await handler(payload)
        if isinstance(outcome, MessageEnvelope):
            return outcome.model_copy(update={"id": envelope.id})
        return MessageEnvelope.response(envelope.id, outcome)

    # ---- tools ----

    async def _tools_list(self, p: ToolsListPayload) -> dict[str, Any]:
        registry = self.engine.registry
        return {"tools": [d.to_schema() for d in registry.discover(prefix=p.prefix)]}

    async def _tools_get(self, p: ToolsGetPayload) -> dict[str, Any]:
        return {"tool": self.engine.registry.get(p.name).to_schema()}

    async def _tools_invoke(self, p: ToolsInvokePayload) -> MessageEnvelope:
        result = await self.engine.invoke(
            InvocationRequest(
                tool=p.tool,
                arguments=p.arguments,
                caller=p.caller,
                timeout=p.timeout,
            )
        )
        body = {"result": result.to_dict()}
        if result.error is not None:
            return MessageEnvelope(type="error", payload=body, error=result.error)
        return MessageEnvelope(type="response", payload=body)

    # ---- memory ----

    async def _memory_create(self, p: MemoryCreatePayload) -> dict[str, Any]:
        entry = await self.memory.create(p.key, p.value, p.owner, p.sensitivity)
        return {"entry": entry.to_dict()}

    async def _memory_read(self, p: MemoryReadPayload) -> dict[str, Any]:
        entry = await self.memory.read(p.key, identity=p.identity)
        return {"entry": entry.to_dict()}

    async def _memory_update(self, p: MemoryUpdatePayload) -> dict[str, Any]:
        entry = await self.memory.update(
            p.key, p.expected_version, p.value, identity=p.identity
        )
        return {"entry": entry.to_dict()}

    async def _memory_delete(self, p: MemoryDeletePayload) -> dict[str, Any]:
        version = await self.memory.delete(
            p.key, p.expected_version, identity=p.identity
        )
        return {"key": p.key, "deleted_version": version}

    async def _memory_list(self, p: MemoryListPayload) -> dict[str, Any]:
        entries = [info.to_dict() async for info in self.memory.list(p.prefix, identity=p.identity)]
        return {"entries": entries}

    # ---- context ----

    async def _context_aggregate(self, p: ContextAggregatePayload) -> dict[str, Any]:
        bundle = await self.aggregator.aggregate(p.slices)
        return {"context": bundle.to_dict()}

    # ---- queue pump ----

    async def serve(
        self,
        inbound: asyncio.Queue[MessageEnvelope | dict[str, Any]],
        outbound: asyncio.Queue[MessageEnvelope],
    ) -> None:
        """Consume requests until cancelled, handling each concurrently.

        Every consumed request produces exactly one envelope on ``outbound``;
        in-flight requests are finished before this coroutine returns.
        """
        pending: set[asyncio.Task[None]] = set()

        async def _one(message: MessageEnvelope | dict[str, Any]) -> None:
            await outbound.put(await self.handle(message))

        logger.info("Dispatcher started")
        try:
            while True:
                message = await inbound.get()
                task = asyncio.create_task(_one(message))
                pending.add(task)
                task.add_done_callback(pending.discard)
        except asyncio.CancelledError:
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
            logger.info("Dispatcher stopped")
            raise
