"""
Coordinator Integration - the single routing surface a multi-agent host needs.

The host passes the role currently speaking and the latest messages; the
adapter records the turn, routes through the WorkflowEngine and answers with
either "continue" or a redirect to another role. The host then performs the
actual model call for that role.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final

import structlog

from agentflow.config import WorkflowSettings
from agentflow.errors import InvalidConfigurationError, UnknownRoleError
from agentflow.roles import (
    COORDINATOR,
    DEVELOPER,
    RESEARCH,
    ROLES,
    ROOT_ROLE,
    SECURITY,
    AgentRole,
    RoleRegistry,
)
from agentflow.workflow.context import ConversationContext, Message
from agentflow.workflow.engine import WorkflowEngine
from agentflow.workflow.graph import RoutingDecision, WorkflowGraph
from agentflow.workflow.store import ContextStore

logger = structlog.get_logger()

TRANSITION_NOTICE: Final[str] = "[Workflow Engine] Transitioning from {from_role} to {to_role}"

# Specialist work continues more readily than it returns to the coordinator
DEFAULT_WEIGHTS: Final[dict[str, float]] = {
    "coordinator-developer": 1.0,
    "coordinator-research": 0.8,
    "coordinator-security": 0.6,
    "developer-coordinator": 0.7,
    "developer-security": 0.5,
    "research-coordinator": 0.7,
    "research-developer": 0.6,
    "security-coordinator": 0.7,
    "security-developer": 0.5,
}

EDGE_REASONS: Final[dict[str, str]] = {
    "coordinator-developer": "Task involves development or coding",
    "coordinator-research": "Task involves research or information gathering",
    "coordinator-security": "Task involves security concerns",
    "developer-coordinator": "Development task complete or needs coordination",
    "developer-security": "Development task requires security review",
    "research-coordinator": "Research task complete or needs coordination",
    "research-developer": "Research results need implementation",
    "security-coordinator": "Security review complete or needs coordination",
    "security-developer": "Security issues need to be addressed by developer",
}

NODE_METADATA: Final[dict[AgentRole, dict[str, Any]]] = {
    COORDINATOR: {"is_coordinator": True},
    DEVELOPER: {"specialty": "coding"},
    RESEARCH: {"specialty": "information"},
    SECURITY: {"specialty": "security"},
}


@dataclass(frozen=True)
class Continue:
    """Keep control with the current role; messages are unchanged."""

    messages: list[Message]


@dataclass(frozen=True)
class Redirect:
    """Hand control to ``goto`` with an annotated message list."""

    goto: AgentRole
    messages: list[Message]
    decision: RoutingDecision


def parse_weight_key(key: str, registry: RoleRegistry = ROLES) -> tuple[AgentRole, AgentRole]:
    """Split a ``"from-to"`` weight key into registered roles."""
    parts = key.split("-")
    if len(parts) != 2 or not all(parts):
        raise InvalidConfigurationError(f"Weight keys must look like 'from-to', got {key!r}")
    try:
        return registry.get(parts[0]), registry.get(parts[1])
    except UnknownRoleError as e:
        raise InvalidConfigurationError(f"Weight key {key!r} names an unregistered role") from e


def build_default_graph(
    weights: Mapping[str, float] | None = None,
    settings: WorkflowSettings | None = None,
    registry: RoleRegistry = ROLES,
) -> WorkflowGraph:
    """
    Canonical coordinator-rooted topology.

    Args:
        weights: Overrides keyed by ``"from-to"``; keys outside the default
            topology add extra edges between registered roles
        settings: Routing thresholds
        registry: Role registry used to resolve weight keys

    Returns:
        WorkflowGraph rooted at the coordinator
    """
    merged = {**DEFAULT_WEIGHTS, **(weights or {})}
    graph = WorkflowGraph(root_role=ROOT_ROLE, registry=registry, settings=settings)

    for role, metadata in NODE_METADATA.items():
        graph.add_node(role, metadata)

    for key, weight in merged.items():
        from_role, to_role = parse_weight_key(key, registry)
        reason = EDGE_REASONS.get(key)
        graph.add_edge(
            from_role,
            to_role,
            weight,
            metadata={"reason": reason} if reason else None,
        )
    return graph


def last_message_text(messages: Sequence[Message]) -> str:
    if not messages:
        raise ValueError("messages cannot be empty")
    return messages[-1].text


class CoordinatorIntegration:
    """
    Connects a multi-agent host to the workflow engine.

    Conversation contexts live in a bounded store; evicting or clearing a
    conversation also drops its execution record.
    """

    def __init__(
        self,
        weights: Mapping[str, float] | None = None,
        settings: WorkflowSettings | None = None,
        graph: WorkflowGraph | None = None,
        registry: RoleRegistry = ROLES,
        store: ContextStore[ConversationContext] | None = None,
    ) -> None:
        """Initialize the adapter.

        Args:
            weights: ``"from-to"`` weight overrides for the default topology
            settings: Routing and retention settings (defaults if None)
            graph: Prebuilt graph; replaces the default topology when given
            registry: Role registry for weight keys
            store: Custom context store (bounded by settings if None)
        """
        if graph is not None and weights:
            raise InvalidConfigurationError("Pass either weights or a prebuilt graph, not both")

        self.settings = settings or (graph.settings if graph else WorkflowSettings())
        self.graph = graph or build_default_graph(weights, self.settings, registry)
        self.engine = WorkflowEngine(self.graph, self.settings)
        if store is None:
            store = ContextStore(
                max_entries=self.settings.max_contexts,
                ttl=self.settings.context_ttl,
            )
        self._contexts: ContextStore[ConversationContext] = store
        # An injected store keeps its own eviction hook; ours runs after it
        self._host_on_evict = store.on_evict
        store.on_evict = self._on_evict

    def _on_evict(self, message_id: str, context: ConversationContext) -> None:
        if self._host_on_evict is not None:
            self._host_on_evict(message_id, context)
        self.engine.clear_execution(message_id)

    def initialize_context(
        self,
        message_id: str,
        starting_role: AgentRole | None = None,
        initial_messages: Sequence[Message] = (),
    ) -> ConversationContext:
        """Start (or restart) tracking a conversation."""
        starting_role = starting_role or self.graph.root_role
        context = ConversationContext(message_id)
        if initial_messages:
            context.add_turn(starting_role, initial_messages)

        self._contexts.put(message_id, context)
        self.engine.start_execution(message_id, starting_role, replace=True)
        return context

    def get_context(self, message_id: str) -> ConversationContext | None:
        return self._contexts.get(message_id)

    def clear_context(self, message_id: str) -> None:
        """Release everything held for a conversation."""
        self._contexts.pop(message_id)
        self.engine.clear_execution(message_id)

    def active_conversations(self) -> list[str]:
        self._contexts.purge_expired()
        return list(self._contexts)

    def route(
        self,
        message_id: str,
        current_role: AgentRole,
        messages: Sequence[Message],
    ) -> RoutingDecision:
        """Record the turn and return the full routing decision."""
        text = last_message_text(messages)
        context = self._contexts.get(message_id)
        if context is None or not self.engine.has_execution(message_id):
            context = self.initialize_context(message_id, current_role, messages)
        else:
            context.add_turn(current_role, messages)

        decision = self.engine.transition(
            message_id,
            text,
            {"current_agent": current_role.name, "message_id": message_id},
            conversation=context,
        )
        logger.info(
            "agent_transition",
            message_id=message_id,
            from_role=current_role.name,
            to_role=decision.next_role.name,
            confidence=round(decision.confidence, 2),
            reason=decision.reason,
        )
        return decision

    def determine_next_role(
        self,
        message_id: str,
        current_role: AgentRole,
        messages: Sequence[Message],
    ) -> AgentRole:
        """Where control goes next, for hosts that only need a destination."""
        return self.route(message_id, current_role, messages).next_role

    def process_agent_result(
        self,
        role: AgentRole,
        state: Mapping[str, Any],
        message_id: str | None = None,
    ) -> Continue | Redirect:
        """
        Decide whether ``role`` keeps control after producing its result.

        Args:
            role: Role that just replied
            state: Host state with a ``"messages"`` list of Message
            message_id: Conversation id (a fresh one if None)

        Returns:
            Continue with the unchanged messages, or Redirect carrying the
            target role and the messages plus a transition notice
        """
        message_id = message_id or uuid.uuid4().hex
        messages = list(state["messages"])
        decision = self.route(message_id, role, messages)

        if decision.next_role == role:
            return Continue(messages=messages)

        notice = TRANSITION_NOTICE.format(from_role=role.name, to_role=decision.next_role.name)
        logger.debug("agent_redirect", message_id=message_id, notice=notice)
        return Redirect(
            goto=decision.next_role,
            messages=[*messages, Message(sender="assistant", content=notice)],
            decision=decision,
        )

    def visualize_execution(self, message_id: str) -> str:
        """Execution overlay, or the static graph for an unknown id."""
        if not self.engine.has_execution(message_id):
            return self.graph.visualize()
        return self.engine.visualize_execution(message_id)
