"""Tests for the workflow graph."""

from __future__ import annotations

import pytest

from agentflow.errors import (
    DuplicateEdgeError,
    InvalidConfigurationError,
    UnknownRoleError,
)
from agentflow.roles import COORDINATOR, DEVELOPER, RESEARCH, SECURITY, TESTING
from agentflow.rules import RuleSet
from agentflow.rules.builtin import code_related_task
from agentflow.workflow import ExecutionContext, WorkflowGraph, parse_dot


def _context(role=COORDINATOR, text: str = "", previous=()) -> ExecutionContext:
    return ExecutionContext(current_role=role, previous_roles=tuple(previous), task_text=text)


@pytest.fixture
def bare_graph() -> WorkflowGraph:
    """Graph without fallback rule sets, so scores are pure static weights."""
    return WorkflowGraph(default_rule_sets={})


@pytest.fixture
def scenario_graph() -> WorkflowGraph:
    graph = WorkflowGraph()
    graph.add_edge(
        COORDINATOR,
        DEVELOPER,
        0.7,
        rules=RuleSet("code", {"code_related_task": code_related_task}),
    )
    graph.add_edge(COORDINATOR, RESEARCH, 0.7)
    graph.add_edge(COORDINATOR, SECURITY, 0.6)
    return graph


class TestTopology:
    """Tests for node and edge registration."""

    def test_root_registered_on_creation(self) -> None:
        graph = WorkflowGraph()
        assert graph.has_node(COORDINATOR)
        assert len(graph.nodes) == 1

    def test_add_node_idempotent(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_node(DEVELOPER)
        count = len(bare_graph.nodes)
        bare_graph.add_node(DEVELOPER)
        assert len(bare_graph.nodes) == count

    def test_add_node_merges_metadata(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_node(DEVELOPER, {"specialty": "coding"})
        bare_graph.add_node(DEVELOPER, {"model": "sonnet"})
        node = bare_graph.get_node(DEVELOPER)
        assert node is not None
        assert node.metadata == {"specialty": "coding", "model": "sonnet"}

    def test_add_node_rejects_strings(self, bare_graph: WorkflowGraph) -> None:
        with pytest.raises(UnknownRoleError):
            bare_graph.add_node("developer")  # type: ignore[arg-type]

    def test_add_edge_creates_endpoints(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(DEVELOPER, TESTING, 0.5)
        assert bare_graph.has_node(DEVELOPER)
        assert bare_graph.has_node(TESTING)

    def test_duplicate_edge_rejected(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.7)
        with pytest.raises(DuplicateEdgeError):
            bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.9)
        assert bare_graph.get_edge_weight(COORDINATOR, DEVELOPER) == 0.7

    def test_replace_edge_keeps_position(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.7)
        bare_graph.add_edge(COORDINATOR, RESEARCH, 0.7)
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.2, replace=True)

        assert bare_graph.get_edge_weight(COORDINATOR, DEVELOPER) == 0.2
        assert bare_graph.get_next_roles(COORDINATOR) == [DEVELOPER, RESEARCH]

    @pytest.mark.parametrize("weight", [-0.1, 1.01])
    def test_weight_out_of_range(self, bare_graph: WorkflowGraph, weight: float) -> None:
        with pytest.raises(InvalidConfigurationError, match="weight"):
            bare_graph.add_edge(COORDINATOR, DEVELOPER, weight)

    def test_self_loops_allowed(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(DEVELOPER, DEVELOPER, 0.7)
        assert bare_graph.get_next_roles(DEVELOPER) == [DEVELOPER]

    def test_next_roles_in_insertion_order(self, bare_graph: WorkflowGraph) -> None:
        for role in (SECURITY, DEVELOPER, RESEARCH):
            bare_graph.add_edge(COORDINATOR, role, 0.5)
        assert bare_graph.get_next_roles(COORDINATOR) == [SECURITY, DEVELOPER, RESEARCH]

    def test_next_roles_unknown_node(self, bare_graph: WorkflowGraph) -> None:
        assert bare_graph.get_next_roles(SECURITY) == []

    def test_edge_weight_default(self, bare_graph: WorkflowGraph) -> None:
        assert bare_graph.get_edge_weight(COORDINATOR, SECURITY) == 0.5


class TestDetermineNextRole:
    """Tests for rule-weighted routing."""

    def test_keyword_match_selects_developer(self, scenario_graph: WorkflowGraph) -> None:
        decision = scenario_graph.determine_next_role(
            _context(text="please implement a login function")
        )
        assert decision.next_role == DEVELOPER
        assert decision.rule == "code_related_task"
        assert "code_related_task" in decision.reason
        assert decision.confidence == pytest.approx(0.7 * (0.3 + 0.3 * 0.7))

    def test_abstains_to_root(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(DEVELOPER, RESEARCH, 0.2)
        decision = bare_graph.determine_next_role(_context(DEVELOPER, "anything"))

        assert decision.next_role == COORDINATOR
        assert decision.confidence == 1.0
        assert "no confident transition found" in decision.reason.lower()

    def test_root_keeps_weak_transition_with_floor(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, RESEARCH, 0.2)
        decision = bare_graph.determine_next_role(_context(COORDINATOR, "anything"))

        assert decision.next_role == RESEARCH
        assert decision.confidence == 0.5

    def test_missing_node_defaults_to_root(self, bare_graph: WorkflowGraph) -> None:
        decision = bare_graph.determine_next_role(_context(SECURITY, "anything"))
        assert decision.next_role == COORDINATOR
        assert decision.confidence == 1.0

    def test_ties_break_to_first_edge(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, RESEARCH, 0.8)
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.8)
        decision = bare_graph.determine_next_role(_context(COORDINATOR, "anything"))
        assert decision.next_role == RESEARCH

    def test_edge_without_rules_scores_base_blend(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 1.0)
        decision = bare_graph.determine_next_role(_context(COORDINATOR, "anything"))
        assert decision.confidence == pytest.approx(0.3)
        assert decision.rule == "none"

    def test_failing_edge_rule_does_not_abort(self, bare_graph: WorkflowGraph) -> None:
        def broken(ctx: ExecutionContext, text: str) -> float:
            raise ValueError("bad rule")

        bare_graph.add_edge(
            COORDINATOR,
            DEVELOPER,
            1.0,
            rules=RuleSet("mixed", {"broken": broken, "always": lambda c, t: 1.0}),
        )
        decision = bare_graph.determine_next_role(_context(COORDINATOR, "x"))
        assert decision.next_role == DEVELOPER
        assert decision.rule == "always"
        assert decision.confidence == pytest.approx(1.0)

    def test_dynamic_weight_bounds(self, bare_graph: WorkflowGraph) -> None:
        for weight in (0.0, 0.25, 0.6, 1.0):
            for confidence in (0.0, 0.5, 1.0):
                dynamic = bare_graph.dynamic_weight(weight, confidence)
                assert 0.3 * weight - 1e-12 <= dynamic <= weight + 1e-12

    @pytest.mark.parametrize(
        "text",
        [
            "please implement a login function",
            "research the best caching library",
            "audit the password hashing for security issues",
            "done, task complete",
            "",
        ],
    )
    def test_result_is_successor_or_root(self, text: str) -> None:
        graph = WorkflowGraph.create_default()
        for role in (COORDINATOR, DEVELOPER, RESEARCH, SECURITY):
            decision = graph.determine_next_role(_context(role, text))
            assert (
                decision.next_role in graph.get_next_roles(role)
                or decision.next_role == graph.root_role
            )
            assert 0.0 <= decision.confidence <= 1.0

    def test_deterministic(self) -> None:
        graph = WorkflowGraph.create_default()
        context = _context(RESEARCH, "now write the parser based on these docs", [COORDINATOR])
        first = graph.determine_next_role(context)
        second = graph.determine_next_role(context)
        assert first == second


class TestCycleCheck:
    """Tests for static cycle detection."""

    def test_acyclic_chain(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, RESEARCH, 0.5)
        bare_graph.add_edge(RESEARCH, DEVELOPER, 0.5)
        bare_graph.add_edge(DEVELOPER, SECURITY, 0.5)
        assert bare_graph.has_cycle() is False

    def test_diamond_is_acyclic(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, RESEARCH, 0.5)
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.5)
        bare_graph.add_edge(RESEARCH, SECURITY, 0.5)
        bare_graph.add_edge(DEVELOPER, SECURITY, 0.5)
        assert bare_graph.has_cycle() is False

    def test_back_edge_is_cycle(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, RESEARCH, 0.5)
        bare_graph.add_edge(RESEARCH, DEVELOPER, 0.5)
        bare_graph.add_edge(DEVELOPER, COORDINATOR, 0.5)
        assert bare_graph.has_cycle() is True

    def test_self_loop_is_cycle(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(DEVELOPER, DEVELOPER, 0.5)
        assert bare_graph.has_cycle() is True

    def test_default_graph_has_cycles(self) -> None:
        assert WorkflowGraph.create_default().has_cycle() is True


class TestVisualize:
    """Tests for DOT output."""

    def test_round_trip(self) -> None:
        graph = WorkflowGraph.create_default()
        graph.add_edge(DEVELOPER, TESTING, 0.123456789)
        parsed = parse_dot(graph.visualize())

        assert set(parsed.nodes) == {node.role.name for node in graph.nodes}
        expected = {(e.from_role.name, e.to_role.name): e.weight for e in graph.edges}
        assert parsed.edges.keys() == expected.keys()
        for key, weight in expected.items():
            assert parsed.edges[key] == pytest.approx(weight)

    def test_from_dot_rebuilds_graph(self) -> None:
        graph = WorkflowGraph.create_default()
        rebuilt = WorkflowGraph.from_dot(graph.visualize())

        assert rebuilt.visualize() == graph.visualize()

    def test_output_is_deterministic(self) -> None:
        assert WorkflowGraph.create_default().visualize() == WorkflowGraph.create_default().visualize()

    def test_dot_structure(self, bare_graph: WorkflowGraph) -> None:
        bare_graph.add_edge(COORDINATOR, DEVELOPER, 0.7)
        dot = bare_graph.visualize()

        assert dot.startswith("digraph WorkflowGraph {")
        assert dot.rstrip().endswith("}")
        assert '"coordinator" -> "developer" [label="0.7", penwidth=2.40];' in dot
