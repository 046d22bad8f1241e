"""
Workflow Graph - weighted directed graph of agent roles.

Each edge carries a static prior weight and an optional rule set. Routing
blends the two:

    dynamic_weight = static_weight * (base_blend + rule_confidence * (1 - base_blend))

With the default blend of 0.3 every edge keeps at least 30% of its prior
even with zero contextual signal.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any

import structlog

from agentflow.config import WorkflowSettings
from agentflow.errors import DuplicateEdgeError, InvalidConfigurationError
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
from agentflow.rules.builtin import DEFAULT_RULE_SETS
from agentflow.rules.engine import RuleResult, RuleSet, apply_rules
from agentflow.workflow.context import ExecutionContext

logger = structlog.get_logger()

NO_RULE = "none"


@dataclass
class GraphNode:
    """An agent role registered in the graph."""

    role: AgentRole
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class GraphEdge:
    """Directed transition between two roles."""

    from_role: AgentRole
    to_role: AgentRole
    weight: float
    rules: RuleSet | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if isinstance(self.weight, bool) or not isinstance(self.weight, (int, float)):
            raise InvalidConfigurationError(f"weight must be a number, got {self.weight!r}")
        if not 0.0 <= self.weight <= 1.0:
            raise InvalidConfigurationError(
                f"weight must be in [0.0, 1.0], got {self.weight}"
            )
        self.weight = float(self.weight)


@dataclass(frozen=True)
class RoutingDecision:
    """Outcome of a routing step: where control goes next and why."""

    next_role: AgentRole
    confidence: float
    reason: str
    rule: str = NO_RULE

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {self.confidence}")


@dataclass(frozen=True)
class EdgeScore:
    """Scoring breakdown for one candidate transition."""

    to_role: AgentRole
    static_weight: float
    dynamic_weight: float
    rule: RuleResult


@dataclass(frozen=True)
class DotGraph:
    """Node names and edge weights recovered from DOT text."""

    nodes: list[str]
    edges: dict[tuple[str, str], float]


class WorkflowGraph:
    """
    Directed graph of agent roles with rule-adjusted transition weights.

    Features:
    - Idempotent node registration with metadata merging
    - Duplicate edges rejected unless explicitly replaced
    - Deterministic routing: ties go to the first edge added
    - Abstention to the root role when no transition is confident
    """

    def __init__(
        self,
        root_role: AgentRole = ROOT_ROLE,
        registry: RoleRegistry = ROLES,
        settings: WorkflowSettings | None = None,
        default_rule_sets: Mapping[AgentRole, RuleSet] | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Initialize an empty graph.

        Args:
            root_role: Role control escalates to on abstention
            registry: Roles accepted as nodes
            settings: Routing thresholds (defaults if None)
            default_rule_sets: Fallback rule sets keyed by target role
            executor: Optional executor for concurrent rule evaluation
        """
        self.registry = registry
        self.root_role = registry.require(root_role)
        self.settings = settings or WorkflowSettings()
        self.default_rule_sets = dict(
            DEFAULT_RULE_SETS if default_rule_sets is None else default_rule_sets
        )
        self.executor = executor
        self._nodes: dict[AgentRole, GraphNode] = {}
        self._edges: dict[AgentRole, dict[AgentRole, GraphEdge]] = {}
        self.add_node(self.root_role)

    # ───────────────────────────────────────────────────────────────────────
    # Topology
    # ───────────────────────────────────────────────────────────────────────

    def add_node(self, role: AgentRole, metadata: dict[str, Any] | None = None) -> GraphNode:
        """Register a role, merging metadata into an existing node."""
        role = self.registry.require(role)
        node = self._nodes.get(role)
        if node is None:
            node = GraphNode(role=role, metadata=dict(metadata or {}))
            self._nodes[role] = node
            self._edges[role] = {}
            logger.debug("graph_node_added", role=role.name)
        elif metadata:
            node.metadata.update(metadata)
        return node

    def add_edge(
        self,
        from_role: AgentRole,
        to_role: AgentRole,
        weight: float,
        rules: RuleSet | None = None,
        metadata: dict[str, Any] | None = None,
        replace: bool = False,
    ) -> GraphEdge:
        """
        Add a directed edge, creating missing endpoints.

        Raises:
            DuplicateEdgeError: The pair already has an edge and ``replace`` is False
            InvalidConfigurationError: Weight outside [0, 1]
        """
        edge = GraphEdge(
            from_role=self.registry.require(from_role),
            to_role=self.registry.require(to_role),
            weight=weight,
            rules=rules,
            metadata=dict(metadata or {}),
        )
        self.add_node(from_role)
        self.add_node(to_role)

        outgoing = self._edges[from_role]
        if to_role in outgoing:
            if not replace:
                raise DuplicateEdgeError(from_role, to_role)
            logger.info(
                "graph_edge_replaced",
                from_role=from_role.name,
                to_role=to_role.name,
                old_weight=outgoing[to_role].weight,
                new_weight=edge.weight,
            )
            # Keep the original insertion position so tie-breaking is stable
            outgoing[to_role] = edge
            return edge

        outgoing[to_role] = edge
        logger.debug(
            "graph_edge_added",
            from_role=from_role.name,
            to_role=to_role.name,
            weight=edge.weight,
        )
        return edge

    def has_node(self, role: AgentRole) -> bool:
        return role in self._nodes

    def get_node(self, role: AgentRole) -> GraphNode | None:
        return self._nodes.get(role)

    @property
    def nodes(self) -> list[GraphNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[GraphEdge]:
        return [edge for outgoing in self._edges.values() for edge in outgoing.values()]

    def get_next_roles(self, role: AgentRole) -> list[AgentRole]:
        """Outgoing targets of ``role`` in edge-insertion order."""
        outgoing = self._edges.get(role)
        if outgoing is None:
            logger.warning("graph_node_missing", role=str(role))
            return []
        return list(outgoing)

    def get_edge(self, from_role: AgentRole, to_role: AgentRole) -> GraphEdge | None:
        return self._edges.get(from_role, {}).get(to_role)

    def get_edge_weight(self, from_role: AgentRole, to_role: AgentRole) -> float:
        """Static weight of an edge, or the configured default when absent."""
        edge = self.get_edge(from_role, to_role)
        return edge.weight if edge else self.settings.default_edge_weight

    # ───────────────────────────────────────────────────────────────────────
    # Routing
    # ───────────────────────────────────────────────────────────────────────

    def _rules_for(self, edge: GraphEdge) -> RuleSet | None:
        if edge.rules is not None and len(edge.rules) > 0:
            return edge.rules
        return self.default_rule_sets.get(edge.to_role)

    def dynamic_weight(self, static_weight: float, confidence: float) -> float:
        blend = self.settings.base_blend
        return static_weight * (blend + confidence * (1.0 - blend))

    def score_edges(self, context: ExecutionContext) -> list[EdgeScore]:
        """Score every outgoing edge of the context's current role."""
        scores = []
        for edge in self._edges.get(context.current_role, {}).values():
            rule_set = self._rules_for(edge)
            if rule_set is None:
                logger.debug(
                    "edge_without_rules",
                    from_role=edge.from_role.name,
                    to_role=edge.to_role.name,
                )
                result = RuleResult(confidence=0.0, rule=NO_RULE)
            else:
                result = apply_rules(rule_set, context, context.task_text, self.executor)

            dynamic = self.dynamic_weight(edge.weight, result.confidence)
            logger.debug(
                "edge_scored",
                from_role=edge.from_role.name,
                to_role=edge.to_role.name,
                static_weight=edge.weight,
                dynamic_weight=round(dynamic, 4),
                rule=result.rule,
            )
            scores.append(
                EdgeScore(
                    to_role=edge.to_role,
                    static_weight=edge.weight,
                    dynamic_weight=dynamic,
                    rule=result,
                )
            )
        return scores

    def determine_next_role(self, context: ExecutionContext) -> RoutingDecision:
        """
        Pick the best next role for the context's current role.

        Returns:
            RoutingDecision naming a direct successor of the current role, or
            the root role when the graph abstains
        """
        current = context.current_role
        if current not in self._nodes:
            logger.warning("graph_node_missing", role=str(current))
            return RoutingDecision(
                next_role=self.root_role,
                confidence=1.0,
                reason=f"Default to {self.root_role}: no node found for current agent type",
            )

        best: EdgeScore | None = None
        for candidate in self.score_edges(context):
            if best is None or candidate.dynamic_weight > best.dynamic_weight:
                best = candidate

        threshold = self.settings.confidence_threshold
        highest = best.dynamic_weight if best else 0.0

        if highest < threshold and current != self.root_role:
            logger.debug("no_confident_transition", role=current.name, highest=round(highest, 4))
            return RoutingDecision(
                next_role=self.root_role,
                confidence=1.0,
                reason=f"No confident transition found, defaulting to {self.root_role}",
            )

        if best is None:
            return RoutingDecision(
                next_role=self.root_role,
                confidence=1.0,
                reason=f"No outgoing transitions from {current}",
            )

        confidence = self.settings.low_confidence_floor if highest < threshold else highest
        logger.debug(
            "transition_selected",
            from_role=current.name,
            to_role=best.to_role.name,
            confidence=round(confidence, 4),
            rule=best.rule.rule,
        )
        return RoutingDecision(
            next_role=best.to_role,
            confidence=min(1.0, confidence),
            reason=f"Selected based on rule: {best.rule.rule}",
            rule=best.rule.rule,
        )

    # ───────────────────────────────────────────────────────────────────────
    # Diagnostics
    # ───────────────────────────────────────────────────────────────────────

    def has_cycle(self) -> bool:
        """Static topology check: depth-first search with a recursion stack."""
        visited: set[AgentRole] = set()
        stack: set[AgentRole] = set()

        def visit(role: AgentRole) -> bool:
            visited.add(role)
            stack.add(role)
            for target in self._edges.get(role, {}):
                if target in stack:
                    return True
                if target not in visited and visit(target):
                    return True
            stack.discard(role)
            return False

        return any(role not in visited and visit(role) for role in self._nodes)

    def visualize(self) -> str:
        """Graphviz DOT description of nodes and weighted edges."""
        lines = [
            "digraph WorkflowGraph {",
            "  rankdir=LR;",
            "  node [shape=box, style=filled, fillcolor=lightblue];",
            "",
        ]
        lines.extend(f'  "{role.name}";' for role in self._nodes)
        lines.append("")
        for edge in self.edges:
            pen_width = 1 + 2 * edge.weight
            lines.append(
                f'  "{edge.from_role.name}" -> "{edge.to_role.name}" '
                f'[label="{edge.weight!r}", penwidth={pen_width:.2f}];'
            )
        lines.append("}")
        return "\n".join(lines) + "\n"

    @classmethod
    def from_dot(
        cls,
        text: str,
        root_role: AgentRole = ROOT_ROLE,
        registry: RoleRegistry = ROLES,
        settings: WorkflowSettings | None = None,
    ) -> WorkflowGraph:
        """Rebuild topology (without rule sets) from :meth:`visualize` output."""
        parsed = parse_dot(text)
        graph = cls(root_role=root_role, registry=registry, settings=settings)
        for name in parsed.nodes:
            graph.add_node(registry.get(name))
        for (from_name, to_name), weight in parsed.edges.items():
            graph.add_edge(registry.get(from_name), registry.get(to_name), weight)
        return graph

    @classmethod
    def create_default(
        cls,
        settings: WorkflowSettings | None = None,
        executor: Executor | None = None,
    ) -> WorkflowGraph:
        """Fully connected graph over the four core roles, self-loops included."""
        graph = cls(settings=settings, executor=executor)
        for role in (COORDINATOR, DEVELOPER, RESEARCH, SECURITY):
            graph.add_node(role)

        for from_role, to_role, weight in DEFAULT_TOPOLOGY:
            graph.add_edge(from_role, to_role, weight)
        return graph


DEFAULT_TOPOLOGY: list[tuple[AgentRole, AgentRole, float]] = [
    (COORDINATOR, DEVELOPER, 0.7),
    (COORDINATOR, RESEARCH, 0.7),
    (COORDINATOR, SECURITY, 0.6),
    (COORDINATOR, COORDINATOR, 0.8),
    (DEVELOPER, COORDINATOR, 0.8),
    (DEVELOPER, RESEARCH, 0.6),
    (DEVELOPER, SECURITY, 0.6),
    (DEVELOPER, DEVELOPER, 0.7),
    (RESEARCH, COORDINATOR, 0.8),
    (RESEARCH, DEVELOPER, 0.7),
    (RESEARCH, RESEARCH, 0.6),
    (RESEARCH, SECURITY, 0.4),
    (SECURITY, COORDINATOR, 0.8),
    (SECURITY, DEVELOPER, 0.7),
    (SECURITY, RESEARCH, 0.5),
    (SECURITY, SECURITY, 0.5),
]

_DOT_NODE = re.compile(r'^\s*"([^"]+)";\s*$')
_DOT_EDGE = re.compile(r'^\s*"([^"]+)"\s*->\s*"([^"]+)"\s*\[(.*)\];\s*$')
_DOT_LABEL = re.compile(r'label="([^"]*)"')


def parse_dot(text: str) -> DotGraph:
    """
    Parse the DOT dialect emitted by :meth:`WorkflowGraph.visualize`.

    Edges without a numeric label (such as the execution-path overlay) are
    ignored.
    """
    nodes: list[str] = []
    edges: dict[tuple[str, str], float] = {}
    for line in text.splitlines():
        node_match = _DOT_NODE.match(line)
        if node_match:
            if node_match.group(1) not in nodes:
                nodes.append(node_match.group(1))
            continue

        edge_match = _DOT_EDGE.match(line)
        if not edge_match:
            continue
        label = _DOT_LABEL.search(edge_match.group(3))
        if not label:
            continue
        try:
            weight = float(label.group(1))
        except ValueError:
            continue
        edges[(edge_match.group(1), edge_match.group(2))] = weight

    return DotGraph(nodes=nodes, edges=edges)
