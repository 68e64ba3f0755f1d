"""Access control layer."""

from agentrt.access.control import (
    AccessControl,
    AccessDecision,
    AccessRule,
    AllowAll,
    PolicyAccessControl,
    require,
)

__all__ = [
    "AccessControl",
    "AccessDecision",
    "AccessRule",
    "AllowAll",
    "PolicyAccessControl",
    "require",
]
