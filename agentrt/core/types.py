"""Shared core DTOs used across the engine, memory store, context layer and protocol."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Mapping
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

if TYPE_CHECKING:
    from agentrt.tools.descriptor import ToolDescriptor


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Sensitivity(str, Enum):
    """Ordered sensitivity tags used for access and encryption policy."""

    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    SECRET = "secret"

    @property
    def rank(self) -> int:
        return _SENSITIVITY_ORDER.index(self)

    def at_least(self, other: Sensitivity) -> bool:
        return self.rank >= other.rank

    @classmethod
    def highest(cls, levels: list[Sensitivity], default: Sensitivity | None = None) -> Sensitivity:
        if not levels:
            return default if default is not None else cls.PUBLIC
        return max(levels, key=lambda s: s.rank)


_SENSITIVITY_ORDER = (
    Sensitivity.PUBLIC,
    Sensitivity.INTERNAL,
    Sensitivity.CONFIDENTIAL,
    Sensitivity.SECRET,
)


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------


class ErrorInfo(BaseModel):
    """Structured error carried by an error envelope."""

    code: str = Field(..., description="Machine-checkable error code")
    message: str = Field(..., description="Human readable message")
    recoverable: bool = Field(False, description="Whether the caller can fix and retry")
    suggestion: str | None = Field(None, description="Optional remediation hint")
    details: dict[str, Any] = Field(default_factory=dict)


class MessageEnvelope(BaseModel):
    """Uniform wrapper correlating one request to exactly one response or error."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    type: Literal["request", "response", "error"]
    payload: dict[str, Any] = Field(default_factory=dict)
    error: ErrorInfo | None = None

    @field_validator("id")
    @classmethod
    def id_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("envelope id must not be empty")
        return v

    @classmethod
    def request(cls, payload: dict[str, Any], id: str | None = None) -> MessageEnvelope:
        if id is None:
            return cls(type="request", payload=payload)
        return cls(id=id, type="request", payload=payload)

    @classmethod
    def response(cls, id: str, payload: dict[str, Any]) -> MessageEnvelope:
        return cls(id=id, type="response", payload=payload)

    @classmethod
    def failure(
        cls, id: str, error: ErrorInfo, payload: dict[str, Any] | None = None
    ) -> MessageEnvelope:
        return cls(id=id, type="error", payload=payload or {}, error=error)

    @property
    def ok(self) -> bool:
        return self.type == "response"


# ---------------------------------------------------------------------------
# Invocation
# ---------------------------------------------------------------------------


class InvocationState(str, Enum):
    RECEIVED = "received"
    VALIDATED = "validated"
    AUTHORIZED = "authorized"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {InvocationState.COMPLETED, InvocationState.FAILED, InvocationState.TIMED_OUT}
)


@dataclass(slots=True)
class InvocationRequest:
    """One tool call submitted to the engine."""

    tool: str
    arguments: dict[str, Any] = field(default_factory=dict)
    caller: str = "anonymous"
    timeout: float | None = None
    request_id: str = field(default_factory=lambda: uuid4().hex)


@dataclass(slots=True)
class InvocationResult:
    """Terminal outcome of one invocation request."""

    request_id: str
    tool: str
    state: InvocationState
    transitions: list[InvocationState] = field(default_factory=list)
    output: Any = None
    error: ErrorInfo | None = None
    latency_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.state is InvocationState.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "tool": self.tool,
            "state": self.state.value,
            "transitions": [s.value for s in self.transitions],
            "output": self.output,
            "error": self.error.model_dump() if self.error else None,
            "latency_ms": self.latency_ms,
        }


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class MemoryEntry:
    """One versioned memory record as seen by callers."""

    key: str
    value: Any
    version: int
    owner: str
    sensitivity: Sensitivity = Sensitivity.INTERNAL
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def info(self) -> MemoryInfo:
        return MemoryInfo(
            key=self.key,
            version=self.version,
            owner=self.owner,
            sensitivity=self.sensitivity,
            updated_at=self.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "version": self.version,
            "owner": self.owner,
            "sensitivity": self.sensitivity.value,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass(frozen=True, slots=True)
class MemoryInfo:
    """Metadata view of a memory entry; never carries the value."""

    key: str
    version: int
    owner: str
    sensitivity: Sensitivity
    updated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "version": self.version,
            "owner": self.owner,
            "sensitivity": self.sensitivity.value,
            "updated_at": self.updated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Context
# ---------------------------------------------------------------------------


class ContextSlice(str, Enum):
    SYSTEM = "system"
    WORKSPACE = "workspace"
    USER = "user"
    TOOLS = "tools"
    MEMORY = "memory"


def _empty() -> Mapping[str, Any]:
    return MappingProxyType({})


@dataclass(frozen=True, slots=True)
class ContextBundle:
    """One possibly-partial snapshot of the agent's environment."""

    system: Mapping[str, Any] = field(default_factory=_empty)
    workspace: Mapping[str, Any] = field(default_factory=_empty)
    user: Mapping[str, Any] = field(default_factory=_empty)
    tools: tuple[ToolDescriptor, ...] = ()
    memory: Mapping[str, Any] = field(default_factory=_empty)
    partial: bool = False
    failed_providers: tuple[str, ...] = ()
    generated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "system": dict(self.system),
            "workspace": dict(self.workspace),
            "user": dict(self.user),
            "tools": [t.to_schema() for t in self.tools],
            "memory": dict(self.memory),
            "partial": self.partial,
            "failed_providers": list(self.failed_providers),
            "generated_at": self.generated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DiagnosticEvent:
    """Structured observability event emitted by the runtime."""

    name: str
    component: str
    severity: str = "info"
    event_id: str = field(default_factory=lambda: uuid4().hex)
    ts: datetime = field(default_factory=utcnow)
    request_id: str | None = None
    identity: str | None = None
    resource: str | None = None
    operation: str | None = None
    status: str | None = None
    latency_ms: float | None = None
    error_code: str | None = None
    error_message: str | None = None
    attrs: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable payload."""
        return {
            "event_id": self.event_id,
            "ts": self.ts.isoformat(),
            "name": self.name,
            "component": self.component,
            "severity": self.severity,
            "request_id": self.request_id,
            "identity": self.identity,
            "resource": self.resource,
            "operation": self.operation,
            "status": self.status,
            "latency_ms": self.latency_ms,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "attrs": self.attrs,
        }


EventEmitter = Callable[[DiagnosticEvent], Awaitable[None]]
