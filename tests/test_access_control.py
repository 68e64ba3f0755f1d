"""Tests for the access control policies."""

import pytest

from agentrt.access import AccessRule, AllowAll, PolicyAccessControl, require
from agentrt.core.errors import AccessDeniedError
from agentrt.core.types import Sensitivity


def test_allow_all_permits_everything():
    decision = AllowAll().authorize("anyone", "memory", "k", "delete", Sensitivity.SECRET)
    assert decision.allowed


def test_clearance_gates_sensitivity():
    access = PolicyAccessControl(clearances={"root": Sensitivity.SECRET})

    low = access.authorize("guest", "memory", "k", "read", Sensitivity.CONFIDENTIAL)
    assert not low.allowed
    assert low.reason == "clearance 'internal' is below 'confidential'"

    assert access.authorize("guest", "memory", "k", "read", Sensitivity.INTERNAL).allowed
    assert access.authorize("root", "memory", "k", "read", Sensitivity.SECRET).allowed


def test_deny_rule_wins_over_allow():
    access = PolicyAccessControl(
        rules=[
            AccessRule(effect="allow", identity="*", resource_kind="tool"),
            AccessRule(effect="deny", identity="intern", resource="shell.*"),
        ]
    )

    assert access.authorize("intern", "tool", "fs.read", "invoke", Sensitivity.PUBLIC).allowed
    assert not access.authorize("intern", "tool", "shell.exec", "invoke", Sensitivity.PUBLIC).allowed


def test_default_deny_requires_matching_allow():
    access = PolicyAccessControl(
        default_effect="deny",
        rules=[AccessRule(effect="allow", resource_kind="memory", actions=frozenset({"read"}))],
    )

    assert access.authorize("bob", "memory", "k", "read", Sensitivity.PUBLIC).allowed
    assert not access.authorize("bob", "memory", "k", "update", Sensitivity.PUBLIC).allowed
    assert not access.authorize("bob", "tool", "t", "invoke", Sensitivity.PUBLIC).allowed


def test_rules_can_be_added_later():
    access = PolicyAccessControl()
    access.add_rule(AccessRule(effect="deny", resource_kind="memory", actions=frozenset({"delete"})))

    assert not access.authorize("bob", "memory", "k", "delete", Sensitivity.PUBLIC).allowed
    assert access.authorize("bob", "memory", "k", "update", Sensitivity.PUBLIC).allowed


def test_require_raises_with_details():
    access = PolicyAccessControl(rules=[AccessRule(effect="deny", identity="eve")])

    with pytest.raises(AccessDeniedError) as exc_info:
        require(access, "eve", "memory", "notes/1", "update", Sensitivity.PUBLIC)

    info = exc_info.value.to_info()
    assert info.code == "access_denied"
    assert info.recoverable is False
    assert info.details == {
        "identity": "eve",
        "resource_kind": "memory",
        "resource_id": "notes/1",
        "action": "update",
    }


def test_sensitivity_ordering():
    assert Sensitivity.SECRET.at_least(Sensitivity.CONFIDENTIAL)
    assert not Sensitivity.PUBLIC.at_least(Sensitivity.INTERNAL)
    assert Sensitivity.highest([Sensitivity.INTERNAL, Sensitivity.SECRET]) is Sensitivity.SECRET
    assert Sensitivity.highest([]) is Sensitivity.PUBLIC
