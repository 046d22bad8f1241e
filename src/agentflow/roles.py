"""Agent roles - the tagged identifiers routed between by the workflow graph.

Roles are registered explicitly. A role never compares equal to a plain
string, so a typo in a topology fails loudly instead of creating an orphan
node.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Any, Final

from agentflow.errors import InvalidConfigurationError, UnknownRoleError

_ROLE_NAME = re.compile(r"^[a-z][a-z0-9_]*$")


@dataclass(frozen=True)
class AgentRole:
    """A specialist capability that can receive control of a conversation."""

    name: str

    def __str__(self) -> str:
        return self.name

    def __copy__(self) -> AgentRole:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> AgentRole:
        return self


class RoleRegistry:
    """Closed-but-extensible set of known agent roles."""

    def __init__(self) -> None:
        self._roles: dict[str, AgentRole] = {}

    def define(self, name: str) -> AgentRole:
        """Register a role (idempotent) and return its identifier."""
        if not isinstance(name, str) or not _ROLE_NAME.match(name):
            raise InvalidConfigurationError(
                f"Role names must be lowercase identifiers, got {name!r}"
            )
        role = self._roles.get(name)
        if role is None:
            role = AgentRole(name)
            self._roles[name] = role
        return role

    def get(self, name: str) -> AgentRole:
        """Look up a registered role by name."""
        try:
            return self._roles[name]
        except (KeyError, TypeError):
            raise UnknownRoleError(name) from None

    def require(self, role: object) -> AgentRole:
        """Return ``role`` if it is a registered AgentRole, else raise."""
        if not isinstance(role, AgentRole):
            raise UnknownRoleError(role)
        if self._roles.get(role.name) != role:
            raise UnknownRoleError(role.name)
        return role

    def __contains__(self, role: object) -> bool:
        return isinstance(role, AgentRole) and self._roles.get(role.name) == role

    def __iter__(self) -> Iterator[AgentRole]:
        return iter(self._roles.values())

    def __len__(self) -> int:
        return len(self._roles)

    def names(self) -> list[str]:
        return list(self._roles)


# Process-wide registry used when callers do not inject their own.
ROLES: Final[RoleRegistry] = RoleRegistry()

COORDINATOR: Final[AgentRole] = ROLES.define("coordinator")
DEVELOPER: Final[AgentRole] = ROLES.define("developer")
RESEARCH: Final[AgentRole] = ROLES.define("research")
SECURITY: Final[AgentRole] = ROLES.define("security")
DOCUMENTATION: Final[AgentRole] = ROLES.define("documentation")
TESTING: Final[AgentRole] = ROLES.define("testing")
EVALUATION: Final[AgentRole] = ROLES.define("evaluation")

# The role every abstention and cycle override escalates to.
ROOT_ROLE: Final[AgentRole] = COORDINATOR


def define_role(name: str) -> AgentRole:
    """Register a new role in the default registry."""
    return ROLES.define(name)


def get_role(name: str) -> AgentRole:
    """Resolve a role name against the default registry."""
    return ROLES.get(name)
