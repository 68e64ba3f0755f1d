"""Typed error taxonomy shared by the registry, engine, memory store and context layer.

Every error carries a machine-checkable ``code``, a human ``message``, a
``recoverable`` flag and an optional remediation ``suggestion`` so it can be
rendered into an error envelope without loss.
"""

from __future__ import annotations

from typing import Any

from agentrt.core.types import ErrorInfo


class AgentRTError(Exception):
    """Base class for all runtime errors surfaced to callers."""

    code: str = "internal_error"
    recoverable: bool = False
    default_suggestion: str | None = None

    def __init__(
        self,
        message: str,
        *,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.suggestion = suggestion if suggestion is not None else self.default_suggestion
        self.details = details or {}

    def to_info(self) -> ErrorInfo:
        return ErrorInfo(
            code=self.code,
            message=self.message,
            recoverable=self.recoverable,
            suggestion=self.suggestion,
            details=self.details,
        )


# ---------------------------------------------------------------------------
# Tool registry / invocation
# ---------------------------------------------------------------------------


class ToolNotFound(AgentRTError):
    code = "tool_not_found"
    default_suggestion = "List available tools with tools.list and check the name."

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' is not registered", details={"tool": name})
        self.name = name


class DuplicateTool(AgentRTError):
    code = "duplicate_tool"
    default_suggestion = "Unregister the existing tool before registering a replacement."

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' is already registered", details={"tool": name})
        self.name = name


class InvalidDescriptor(AgentRTError):
    code = "invalid_descriptor"


class ToolValidationError(AgentRTError):
    """Arguments did not match the descriptor. Raised before any side effect."""

    code = "tool_validation_error"
    recoverable = True
    default_suggestion = "Fix the listed arguments and call the tool again."

    def __init__(self, tool: str, errors: list[str]) -> None:
        super().__init__(
            f"Invalid arguments for tool '{tool}': " + "; ".join(errors),
            details={"tool": tool, "errors": list(errors)},
        )
        self.tool = tool
        self.errors = list(errors)


class AccessDeniedError(AgentRTError):
    code = "access_denied"

    def __init__(
        self,
        identity: str,
        resource_kind: str,
        resource_id: str,
        action: str,
        reason: str | None = None,
    ) -> None:
        message = f"'{identity}' may not {action} {resource_kind} '{resource_id}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(
            message,
            details={
                "identity": identity,
                "resource_kind": resource_kind,
                "resource_id": resource_id,
                "action": action,
            },
        )


class ToolExecutionError(AgentRTError):
    """The tool failed internally or returned a value violating its contract."""

    code = "tool_execution_error"


class ToolTimeoutError(AgentRTError):
    code = "tool_timeout"
    recoverable = True
    default_suggestion = (
        "The tool may still be running; check its side effects before retrying "
        "with a longer timeout."
    )


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


class MemoryNotFound(AgentRTError):
    code = "memory_not_found"

    def __init__(self, key: str) -> None:
        super().__init__(f"Memory key '{key}' does not exist", details={"key": key})
        self.key = key


class MemoryConflict(AgentRTError):
    """Version race or duplicate create on one memory key."""

    code = "memory_conflict"
    recoverable = True
    default_suggestion = "Re-read the entry and retry with its current version."

    def __init__(
        self,
        key: str,
        message: str,
        *,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        super().__init__(
            message,
            details={
                "key": key,
                "expected_version": expected_version,
                "actual_version": actual_version,
            },
        )
        self.key = key
        self.expected_version = expected_version
        self.actual_version = actual_version


class MemoryValidationError(AgentRTError):
    code = "memory_validation_error"
    recoverable = True


# ---------------------------------------------------------------------------
# Context / protocol
# ---------------------------------------------------------------------------


class ContextProviderError(AgentRTError):
    """One provider failed; recorded by the aggregator, never raised to callers."""

    code = "context_provider_error"
    recoverable = True

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(
            f"Context provider '{provider}' failed: {message}",
            details={"provider": provider},
        )
        self.provider = provider


class InvalidEnvelope(AgentRTError):
    code = "invalid_request"


class UnknownOperation(AgentRTError):
    code = "unknown_operation"
    default_suggestion = "Use one of the tools.*, memory.* or context.* operations."
