"""Access control gate shared by the invocation engine and the memory store."""

from __future__ import annotations

from dataclasses import dataclass, field
from fnmatch import fnmatchcase
from typing import Literal, Protocol, runtime_checkable

from loguru import logger

from agentrt.core.errors import AccessDeniedError
from agentrt.core.types import Sensitivity

ResourceKind = Literal["tool", "memory"]


@dataclass(frozen=True, slots=True)
class AccessDecision:
    """Outcome of one authorization check."""

    allowed: bool
    reason: str | None = None


ALLOW = AccessDecision(allowed=True)


@runtime_checkable
class AccessControl(Protocol):
    """Synchronous allow/deny check consulted before mutation or sensitive reads."""

    def authorize(
        self,
        identity: str,
        resource_kind: str,
        resource_id: str,
        action: str,
        sensitivity: Sensitivity,
    ) -> AccessDecision: ...


def require(
    control: AccessControl,
    identity: str,
    resource_kind: str,
    resource_id: str,
    action: str,
    sensitivity: Sensitivity,
) -> None:
    """Raise ``AccessDeniedError`` unless ``control`` allows the action."""
    decision = control.authorize(identity, resource_kind, resource_id, action, sensitivity)
    if not decision.allowed:
        logger.warning(
            "Access denied: {} {} {} {} ({})",
            identity,
            action,
            resource_kind,
            resource_id,
            decision.reason or "no reason given",
        )
        raise AccessDeniedError(identity, resource_kind, resource_id, action, decision.reason)


class AllowAll:
    """Permits everything. Suitable for tests and single-user deployments."""

    def authorize(
        self,
        identity: str,
        resource_kind: str,
        resource_id: str,
        action: str,
        sensitivity: Sensitivity,
    ) -> AccessDecision:
        return ALLOW


@dataclass(slots=True)
class AccessRule:
    """One allow/deny rule matched with glob patterns."""

    effect: Literal["allow", "deny"]
    identity: str = "*"
    resource_kind: str = "*"
    resource: str = "*"
    actions: frozenset[str] = field(default_factory=lambda: frozenset({"*"}))

    def matches(self, identity: str, resource_kind: str, resource_id: str, action: str) -> bool:
        if not fnmatchcase(identity, self.identity):
            return False
        if not fnmatchcase(resource_kind, self.resource_kind):
            return False
        if not fnmatchcase(resource_id, self.resource):
            return False
        return "*" in self.actions or action in self.actions


class PolicyAccessControl:
    """Clearance levels plus ordered glob rules.

    An identity may only touch resources at or below its clearance. Among the
    rules matching a request, any ``deny`` wins over any ``allow``; when no rule
    matches, ``default_effect`` decides.
    """

    def __init__(
        self,
        *,
        rules: list[AccessRule] | None = None,
        clearances: dict[str, Sensitivity] | None = None,
        default_clearance: Sensitivity = Sensitivity.INTERNAL,
        default_effect: Literal["allow", "deny"] = "allow",
    ) -> None:
        self._rules = list(rules or [])
        self._clearances = dict(clearances or {})
        self._default_clearance = default_clearance
        self._default_effect = default_effect

    def add_rule(self, rule: AccessRule) -> None:
        self._rules.append(rule)

    def set_clearance(self, identity: str, level: Sensitivity) -> None:
        self._clearances[identity] = level

    def clearance_for(self, identity: str) -> Sensitivity:
        return self._clearances.get(identity, self._default_clearance)

    def authorize(
        self,
        identity: str,
        resource_kind: str,
        resource_id: str,
        action: str,
        sensitivity: Sensitivity,
    ) -> AccessDecision:
        clearance = self.clearance_for(identity)
        if not clearance.at_least(sensitivity):
            return AccessDecision(
                allowed=False,
                reason=f"clearance '{clearance.value}' is below '{sensitivity.value}'",
            )

        matched = [r for r in self._rules if r.matches(identity, resource_kind, resource_id, action)]
        if any(r.effect == "deny" for r in matched):
            return AccessDecision(allowed=False, reason="denied by policy rule")
        if matched:
            return ALLOW
        if self._default_effect == "allow":
            return ALLOW
        return AccessDecision(allowed=False, reason="no rule grants this action")
