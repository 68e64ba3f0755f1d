"""Invocation engine: resolve, validate, authorize, execute and shape tool results."""

from __future__ import annotations

import asyncio
import inspect
import time
from typing import Any

from loguru import logger

from agentrt.access.control import AccessControl, AllowAll, require
from agentrt.core.errors import (
    AgentRTError,
    ToolExecutionError,
    ToolTimeoutError,
)
from agentrt.core.types import (
    DiagnosticEvent,
    EventEmitter,
    InvocationRequest,
    InvocationResult,
    InvocationState,
    Sensitivity,
)
from agentrt.tools.base import CancelSignal, FunctionTool, ToolImplementation
from agentrt.tools.registry import RegisteredTool, ToolRegistry
from agentrt.tools.validation import check_result, validate_arguments

S = InvocationState

_ALLOWED_TRANSITIONS: dict[InvocationState, frozenset[InvocationState]] = {
    S.RECEIVED: frozenset({S.VALIDATED, S.FAILED}),
    S.VALIDATED: frozenset({S.AUTHORIZED, S.FAILED}),
    S.AUTHORIZED: frozenset({S.EXECUTING, S.FAILED}),
    S.EXECUTING: frozenset({S.COMPLETED, S.FAILED, S.TIMED_OUT}),
}


class InvocationTracker:
    """State machine for a single request. Terminal states are final."""

    def __init__(self, request: InvocationRequest) -> None:
        self.request = request
        self.history: list[InvocationState] = [S.RECEIVED]

    @property
    def state(self) -> InvocationState:
        return self.history[-1]

    def advance(self, target: InvocationState) -> None:
        allowed = _ALLOWED_TRANSITIONS.get(self.state, frozenset())
        if target not in allowed:
            raise RuntimeError(
                f"illegal transition {self.state.value} -> {target.value} "
                f"for request {self.request.request_id}"
            )
        self.history.append(target)


class InvocationEngine:
    """Runs tool calls through the validation/authorization/execution pipeline.

    ``invoke`` never raises for domain failures: every request ends in an
    ``InvocationResult`` in exactly one terminal state. The engine does not
    retry; tool side effects may not be idempotent.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        access: AccessControl | None = None,
        *,
        default_timeout: float | None = 30.0,
        event_emitter: EventEmitter | None = None,
    ) -> None:
        self.registry = registry
        self.access = access or AllowAll()
        self.default_timeout = default_timeout
        self._event_emitter = event_emitter
        self._stragglers: set[asyncio.Task[Any]] = set()

    def set_event_emitter(self, event_emitter: EventEmitter | None) -> None:
        self._event_emitter = event_emitter

    @property
    def straggler_count(self) -> int:
        """Timed-out executions that have not been observed to stop yet."""
        return sum(1 for t in self._stragglers if not t.done())

    async def _emit(self, event: DiagnosticEvent) -> None:
        if not self._event_emitter:
            return
        try:
            await self._event_emitter(event)
        except Exception:
            # Observability must never change an invocation outcome.
            return

    async def invoke(self, request: InvocationRequest) -> InvocationResult:
        tracker = InvocationTracker(request)
        started = time.perf_counter()
        output: Any = None
        error: AgentRTError | None = None

        try:
            output = await self._run(tracker)
        except AgentRTError as e:
            error = e
            if not tracker.state.is_terminal:
                tracker.advance(S.FAILED)

        latency_ms = round((time.perf_counter() - started) * 1000, 3)
        result = InvocationResult(
            request_id=request.request_id,
            tool=request.tool,
            state=tracker.state,
            transitions=list(tracker.history),
            output=output,
            error=error.to_info() if error else None,
            latency_ms=latency_ms,
        )
        await self._emit(
            DiagnosticEvent(
                name=f"tool.invoke.{result.state.value}",
                component="tools.engine",
                severity="info" if result.ok else "warning",
                request_id=request.request_id,
                identity=request.caller,
                resource=request.tool,
                operation="invoke",
                status="ok" if result.ok else "error",
                latency_ms=latency_ms,
                error_code=result.error.code if result.error else None,
                error_message=result.error.message if result.error else None,
            )
        )
        return result

    async def invoke_or_raise(self, request: InvocationRequest) -> Any:
        """Invoke and return the output, raising the typed error on failure."""
        tracker = InvocationTracker(request)
        try:
            return await self._run(tracker)
        finally:
            if not tracker.state.is_terminal:
                tracker.advance(S.FAILED)

    async def _run(self, tracker: InvocationTracker) -> Any:
        request = tracker.request
        tool = self.registry.resolve(request.tool)
        descriptor = tool.descriptor

        arguments = validate_arguments(descriptor, request.arguments)
        tracker.advance(S.VALIDATED)

        supplied = [
            p.sensitivity for p in descriptor.parameters if p.name in request.arguments
        ]
        require(
            self.access,
            request.caller,
            "tool",
            descriptor.name,
            "invoke",
            Sensitivity.highest(supplied),
        )
        tracker.advance(S.AUTHORIZED)

        tracker.advance(S.EXECUTING)
        output = await self._execute(tool, arguments, request, tracker)

        violations = check_result(descriptor, output)
        if violations:
            tracker.advance(S.FAILED)
            raise ToolExecutionError(
                f"Tool '{descriptor.name}' violated its return contract: "
                + "; ".join(violations),
                details={"tool": descriptor.name, "violations": violations},
            )
        tracker.advance(S.COMPLETED)
        logger.debug("Tool {} completed for {}", descriptor.name, request.caller)
        return output

    async def _execute(
        self,
        tool: RegisteredTool,
        arguments: dict[str, Any],
        request: InvocationRequest,
        tracker: InvocationTracker,
    ) -> Any:
        timeout = request.timeout if request.timeout is not None else self.default_timeout
        signal = CancelSignal()
        task = asyncio.create_task(_call(tool.implementation, arguments, signal))

        done, _ = await asyncio.wait({task}, timeout=timeout)
        if task not in done:
            signal.cancel()
            # A worker thread cannot be interrupted; keep its task tracked
            # until the thread returns.
            if not _runs_in_thread(tool.implementation):
                task.cancel()
            # Give the task one loop turn to observe cancellation.
            await asyncio.sleep(0)
            stopped = task.done()
            if not stopped:
                self._stragglers.add(task)
                task.add_done_callback(self._stragglers.discard)
            task.add_done_callback(_consume_outcome)
            tracker.advance(S.TIMED_OUT)
            logger.warning(
                "Tool {} timed out after {}s (stopped={})", tool.name, timeout, stopped
            )
            raise ToolTimeoutError(
                f"Tool '{tool.name}' did not finish within {timeout}s",
                details={"tool": tool.name, "timeout": timeout, "stopped": stopped},
            )

        try:
            return task.result()
        except asyncio.CancelledError as e:
            tracker.advance(S.FAILED)
            raise ToolExecutionError(
                f"Tool '{tool.name}' was cancelled", details={"tool": tool.name}
            ) from e
        except Exception as e:
            tracker.advance(S.FAILED)
            logger.warning("Tool {} raised {}: {}", tool.name, type(e).__name__, e)
            raise ToolExecutionError(
                f"Tool '{tool.name}' failed: {e}",
                details={"tool": tool.name, "exception": type(e).__name__},
            ) from e


def _runs_in_thread(impl: ToolImplementation) -> bool:
    """True when ``impl.invoke`` does its work synchronously."""
    if isinstance(impl, FunctionTool):
        return not impl.is_async
    return not inspect.iscoroutinefunction(impl.invoke)


async def _call(impl: ToolImplementation, arguments: dict[str, Any], signal: CancelSignal) -> Any:
    if _runs_in_thread(impl):
        result = await asyncio.to_thread(impl.invoke, arguments, signal)
    else:
        result = impl.invoke(arguments, signal)
    # A sync invoke may still hand back an awaitable.
    if inspect.isawaitable(result):
        result = await result
    return result


def _consume_outcome(task: asyncio.Task[Any]) -> None:
    # Retrieve late exceptions so asyncio does not log them as never retrieved.
    if not task.cancelled():
        task.exception()
