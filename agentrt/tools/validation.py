"""Argument and result validation against a ToolDescriptor.

Validation is pure: it never touches the tool implementation, so a failure
here guarantees the call had no side effects.
"""

from __future__ import annotations

import json
import re
from typing import Any

from agentrt.core.errors import ToolValidationError
from agentrt.tools.descriptor import (
    RESULT_TARGET,
    Constraint,
    ConstraintKind,
    ParamType,
    ToolDescriptor,
    type_conforms,
)

_MISSING = object()


def _describe(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    return type(value).__name__


def _size_of(value: Any) -> int | None:
    try:
        return len(json.dumps(value, ensure_ascii=False, default=str).encode("utf-8"))
    except (TypeError, ValueError):
        return None


def check_constraint(constraint: Constraint, value: Any) -> str | None:
    """Return an error message when ``value`` violates ``constraint``, else None."""
    kind, bound, target = constraint.kind, constraint.value, constraint.target

    if kind in (ConstraintKind.MINIMUM, ConstraintKind.MAXIMUM):
        if not type_conforms(value, ParamType.NUMBER):
            return f"'{target}' must be numeric for a {kind.value} constraint"
        if kind is ConstraintKind.MINIMUM and value < bound:
            return f"'{target}' must be >= {bound} (got {value})"
        if kind is ConstraintKind.MAXIMUM and value > bound:
            return f"'{target}' must be <= {bound} (got {value})"
        return None

    if kind in (ConstraintKind.MIN_LENGTH, ConstraintKind.MAX_LENGTH):
        if not isinstance(value, (str, list, tuple, dict)):
            return f"'{target}' has no length"
        if kind is ConstraintKind.MIN_LENGTH and len(value) < bound:
            return f"'{target}' must have length >= {bound} (got {len(value)})"
        if kind is ConstraintKind.MAX_LENGTH and len(value) > bound:
            return f"'{target}' must have length <= {bound} (got {len(value)})"
        return None

    if kind is ConstraintKind.PATTERN:
        if not isinstance(value, str):
            return f"'{target}' must be a string to match a pattern"
        if not re.fullmatch(bound, value):
            return f"'{target}' does not match pattern {bound!r}"
        return None

    if kind is ConstraintKind.ONE_OF:
        if value not in bound:
            return f"'{target}' must be one of {list(bound)!r}"
        return None

    if kind is ConstraintKind.MAX_BYTES:
        size = _size_of(value)
        if size is None:
            return f"'{target}' is not serializable"
        if size > bound:
            return f"'{target}' exceeds {bound} bytes (got {size})"
        return None

    return f"unsupported constraint kind: {kind}"


def validate_arguments(descriptor: ToolDescriptor, arguments: dict[str, Any]) -> dict[str, Any]:
    """Check arguments against the descriptor and return them with defaults filled.

    Raises ``ToolValidationError`` listing every problem found.
    """
    if not isinstance(arguments, dict):
        raise ToolValidationError(descriptor.name, ["arguments must be an object"])

    errors: list[str] = []
    resolved: dict[str, Any] = {}

    for param in descriptor.parameters:
        if param.name not in arguments:
            if param.required:
                errors.append(f"missing required parameter '{param.name}'")
            elif param.has_default:
                resolved[param.name] = param.default
            continue
        value = arguments[param.name]
        if not type_conforms(value, param.type):
            errors.append(
                f"'{param.name}' should be {param.type.value}, got {_describe(value)}"
            )
            continue
        resolved[param.name] = value

    declared = {p.name for p in descriptor.parameters}
    extras = [k for k in arguments if k not in declared]
    if extras and not descriptor.allow_extra:
        errors.extend(f"unknown parameter '{k}'" for k in extras)
    elif extras:
        for k in extras:
            resolved[k] = arguments[k]

    for constraint in descriptor.constraints_for("pre"):
        if constraint.target not in resolved:
            continue
        problem = check_constraint(constraint, resolved[constraint.target])
        if problem:
            errors.append(problem)

    if errors:
        raise ToolValidationError(descriptor.name, errors)
    return resolved


def _resolve_result_target(target: str, result: Any) -> Any:
    if target == RESULT_TARGET:
        return result
    field = target[len(RESULT_TARGET) + 1 :]
    if isinstance(result, dict):
        return result.get(field, _MISSING)
    return _MISSING


def check_result(descriptor: ToolDescriptor, result: Any) -> list[str]:
    """Return contract violations of ``result`` against ``returns`` and post constraints."""
    expected = descriptor.returns.type
    if not type_conforms(result, expected):
        return [f"result should be {expected.value}, got {_describe(result)}"]

    errors: list[str] = []
    for constraint in descriptor.constraints_for("post"):
        value = _resolve_result_target(constraint.target, result)
        if value is _MISSING:
            errors.append(f"result is missing '{constraint.target}'")
            continue
        problem = check_constraint(constraint, value)
        if problem:
            errors.append(problem)
    return errors
