"""Context objects handed to decision rules.

``ExecutionContext`` is built fresh for every transition and never stored.
``ConversationContext`` is the adapter's cross-turn record of who said what,
used only to seed rule evaluation with history.
"""

from __future__ import annotations

import json
import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from agentflow.roles import ROLES, AgentRole, RoleRegistry


@dataclass(frozen=True)
class Message:
    """A role-tagged message text as seen by the core."""

    sender: str  # "user", "assistant", or an agent role name
    content: Any

    @property
    def text(self) -> str:
        if isinstance(self.content, str):
            return self.content
        return json.dumps(self.content, sort_keys=True, default=str)


@dataclass(frozen=True)
class ConversationTurn:
    """Messages produced while one role held control."""

    role: AgentRole
    messages: tuple[Message, ...]
    timestamp: float
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CycleReport:
    """Result of repeating-pattern detection over recent turns."""

    has_cycle: bool
    pattern: tuple[AgentRole, ...] = ()


class ConversationContext:
    """Cross-turn record of a conversation for one host message id."""

    # Turns inspected by detect_cycle (twice the longest pattern considered)
    CYCLE_DETECTION_LENGTH = 5

    def __init__(self, context_id: str | None = None) -> None:
        self.id = context_id or uuid.uuid4().hex
        self._turns: list[ConversationTurn] = []
        self._visits: dict[AgentRole, int] = {}
        self._metadata: dict[str, Any] = {}

    def add_turn(
        self,
        role: AgentRole,
        messages: Sequence[Message],
        metadata: dict[str, Any] | None = None,
    ) -> ConversationTurn:
        """Record the messages exchanged while ``role`` held control."""
        turn = ConversationTurn(
            role=role,
            messages=tuple(messages),
            timestamp=time.time(),
            metadata=dict(metadata or {}),
        )
        self._turns.append(turn)
        self._visits[role] = self._visits.get(role, 0) + 1
        return turn

    @property
    def current_role(self) -> AgentRole | None:
        return self._turns[-1].role if self._turns else None

    @property
    def turns(self) -> list[ConversationTurn]:
        return list(self._turns)

    def turns_for(self, role: AgentRole) -> list[ConversationTurn]:
        return [turn for turn in self._turns if turn.role == role]

    def recent_roles(self, limit: int) -> list[AgentRole]:
        return [turn.role for turn in self._turns[-limit:]]

    def all_messages(self) -> list[Message]:
        return [message for turn in self._turns for message in turn.messages]

    def visit_count(self, role: AgentRole) -> int:
        return self._visits.get(role, 0)

    def detect_cycle(self) -> CycleReport:
        """Check whether the most recent roles repeat a pattern back to back."""
        recent = self.recent_roles(self.CYCLE_DETECTION_LENGTH * 2)
        if len(recent) < 4:
            return CycleReport(has_cycle=False)

        for length in range(2, len(recent) // 2 + 1):
            pattern = recent[-length:]
            previous = recent[-2 * length : -length]
            if pattern == previous:
                return CycleReport(has_cycle=True, pattern=tuple(pattern))

        return CycleReport(has_cycle=False)

    def set_metadata(self, key: str, value: Any) -> None:
        self._metadata[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self._metadata.get(key, default)

    @property
    def metadata(self) -> dict[str, Any]:
        return dict(self._metadata)

    def summarize(self) -> dict[str, Any]:
        """Summary for debugging and diagnostics."""
        cycle = self.detect_cycle()
        current = self.current_role
        return {
            "id": self.id,
            "conversation_turns": len(self._turns),
            "total_messages": len(self.all_messages()),
            "agent_counts": {role.name: count for role, count in self._visits.items()},
            "current_agent": current.name if current else None,
            "cycle_detected": cycle.has_cycle,
            "cycle_pattern": [role.name for role in cycle.pattern],
            "metadata": self.metadata,
        }

    def to_json(self) -> str:
        return json.dumps(
            {
                "id": self.id,
                "turns": [
                    {
                        "role": turn.role.name,
                        "messages": [
                            {"sender": m.sender, "content": m.content} for m in turn.messages
                        ],
                        "timestamp": turn.timestamp,
                        "metadata": turn.metadata,
                    }
                    for turn in self._turns
                ],
                "metadata": self._metadata,
            },
            default=str,
        )

    @classmethod
    def from_json(cls, payload: str, registry: RoleRegistry = ROLES) -> ConversationContext:
        """Rebuild a context serialised with :meth:`to_json`.

        Role names are resolved against ``registry``; unknown names raise
        ``UnknownRoleError``.
        """
        data = json.loads(payload)
        context = cls(data["id"])
        for raw in data.get("turns", []):
            role = registry.get(raw["role"])
            turn = ConversationTurn(
                role=role,
                messages=tuple(Message(m["sender"], m["content"]) for m in raw["messages"]),
                timestamp=raw["timestamp"],
                metadata=raw.get("metadata", {}),
            )
            context._turns.append(turn)
            context._visits[role] = context._visits.get(role, 0) + 1
        context._metadata.update(data.get("metadata", {}))
        return context


@dataclass(frozen=True)
class ExecutionContext:
    """Snapshot of execution state passed to every decision rule."""

    current_role: AgentRole
    previous_roles: tuple[AgentRole, ...] = ()
    task_text: str = ""
    data: dict[str, Any] = field(default_factory=dict)
    conversation: ConversationContext | None = None

    def recent_roles(self, limit: int = 3) -> list[AgentRole]:
        """Last ``limit`` roles visited, current role included."""
        history = [*self.previous_roles, self.current_role]
        return history[-limit:]

    def message_texts(self) -> list[str]:
        """Texts of every message seen so far in the conversation."""
        if self.conversation is None:
            return []
        return [message.text for message in self.conversation.all_messages()]
