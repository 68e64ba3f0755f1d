"""Wiring for one isolated runtime instance."""

from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from agentrt.access.control import AccessControl, AccessRule, PolicyAccessControl
from agentrt.config.schema import AccessConfig, Config
from agentrt.context.aggregator import ContextAggregator
from agentrt.context.providers import MemoryProvider, ToolsProvider
from agentrt.core.types import EventEmitter
from agentrt.memory.backend import InMemoryBackend, MemoryBackend
from agentrt.memory.codec import ValueCodec
from agentrt.memory.store import MemoryStore
from agentrt.observability.logging_sink import JsonlLoggingSink
from agentrt.protocol.dispatcher import MessageDispatcher
from agentrt.tools.engine import InvocationEngine
from agentrt.tools.registry import ToolRegistry


def build_access_control(config: AccessConfig) -> PolicyAccessControl:
    rules = [
        AccessRule(
            effect=r.effect,
            identity=r.identity,
            resource_kind=r.resource_kind,
            resource=r.resource,
            actions=frozenset(r.actions),
        )
        for r in config.rules
    ]
    return PolicyAccessControl(
        rules=rules,
        clearances=dict(config.clearances),
        default_clearance=config.default_clearance,
        default_effect=config.default_effect,
    )


@dataclass(slots=True)
class Runtime:
    """Owns the registry, memory store and everything that consumes them.

    Construct one per process (or per test) and pass it by reference; nothing
    here is a module-level singleton.
    """

    config: Config
    access: AccessControl
    registry: ToolRegistry
    engine: InvocationEngine
    memory: MemoryStore
    aggregator: ContextAggregator
    dispatcher: MessageDispatcher

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        *,
        access: AccessControl | None = None,
        backend: MemoryBackend | None = None,
        codec: ValueCodec | None = None,
        event_emitter: EventEmitter | None = None,
        memory_identity: str = "anonymous",
    ) -> Runtime:
        config = config or Config()
        access = access or build_access_control(config.access)

        if event_emitter is None:
            event_emitter = JsonlLoggingSink.from_config(config.observability)

        registry = ToolRegistry()
        engine = InvocationEngine(
            registry,
            access,
            default_timeout=config.tools.default_timeout,
            event_emitter=event_emitter,
        )
        memory = MemoryStore(
            backend or InMemoryBackend(),
            access,
            read_gate=config.memory.read_gate,
            codec=codec,
            encrypt_at=config.memory.encrypt_at,
            max_value_bytes=config.memory.max_value_bytes,
            event_emitter=event_emitter,
        )
        aggregator = ContextAggregator(
            [
                ToolsProvider(registry),
                MemoryProvider(memory, identity=memory_identity),
            ],
            default_timeout=config.context.provider_timeout,
            redact=config.context.redact,
            event_emitter=event_emitter,
        )
        dispatcher = MessageDispatcher(engine, memory, aggregator)
        logger.debug("Runtime assembled ({} access)", type(access).__name__)
        return cls(
            config=config,
            access=access,
            registry=registry,
            engine=engine,
            memory=memory,
            aggregator=aggregator,
            dispatcher=dispatcher,
        )
