"""Tests for the host-facing coordinator integration."""

from __future__ import annotations

import pytest

from agentflow.config import WorkflowSettings
from agentflow.errors import InvalidConfigurationError, UnknownRoleError
from agentflow.integration import (
    DEFAULT_WEIGHTS,
    Continue,
    CoordinatorIntegration,
    Redirect,
    build_default_graph,
    parse_weight_key,
)
from agentflow.roles import COORDINATOR, DEVELOPER, RESEARCH, SECURITY, TESTING
from agentflow.workflow import Message, WorkflowGraph
from agentflow.workflow.store import ContextStore

CODING_TASK = [Message("user", "Please write a Python function to parse dates")]


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class TestDefaultGraph:
    """Tests for the canonical coordinator-rooted topology."""

    def test_default_weights(self) -> None:
        graph = build_default_graph()
        assert graph.root_role == COORDINATOR
        assert len(graph.edges) == len(DEFAULT_WEIGHTS)
        assert graph.get_edge_weight(COORDINATOR, DEVELOPER) == 1.0
        assert graph.get_edge_weight(RESEARCH, DEVELOPER) == 0.6
        assert graph.get_node(COORDINATOR).metadata == {"is_coordinator": True}

    def test_weight_override(self) -> None:
        graph = build_default_graph({"coordinator-security": 0.9})
        assert graph.get_edge_weight(COORDINATOR, SECURITY) == 0.9
        assert len(graph.edges) == len(DEFAULT_WEIGHTS)

    def test_extra_weight_adds_edge(self) -> None:
        graph = build_default_graph({"developer-testing": 0.4})
        assert TESTING in graph.get_next_roles(DEVELOPER)
        assert graph.get_edge_weight(DEVELOPER, TESTING) == 0.4

    def test_edge_reasons_attached(self) -> None:
        graph = build_default_graph()
        edge = graph.get_edge(DEVELOPER, SECURITY)
        assert edge.metadata["reason"] == "Development task requires security review"

    @pytest.mark.parametrize("key", ["coordinator", "a-b-c", "-developer"])
    def test_malformed_key(self, key: str) -> None:
        with pytest.raises(InvalidConfigurationError):
            parse_weight_key(key)

    def test_unknown_role_in_key(self) -> None:
        with pytest.raises(InvalidConfigurationError) as excinfo:
            build_default_graph({"coordinator-wizard": 0.5})
        assert isinstance(excinfo.value.__cause__, UnknownRoleError)

    def test_out_of_range_override(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            CoordinatorIntegration(weights={"coordinator-developer": 1.5})

    def test_graph_and_weights_exclusive(self) -> None:
        with pytest.raises(InvalidConfigurationError):
            CoordinatorIntegration(weights={"coordinator-developer": 0.5}, graph=WorkflowGraph())


class TestRouting:
    """Tests for determine_next_role and process_agent_result."""

    def test_coding_task_goes_to_developer(self) -> None:
        integration = CoordinatorIntegration()
        role = integration.determine_next_role("conv-1", COORDINATOR, CODING_TASK)
        assert role == DEVELOPER

    def test_route_records_turns(self) -> None:
        integration = CoordinatorIntegration()
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        integration.route("conv-1", DEVELOPER, [Message("assistant", "Implementation is done")])

        context = integration.get_context("conv-1")
        assert [turn.role for turn in context.turns] == [COORDINATOR, DEVELOPER]
        execution = integration.engine.get_execution("conv-1")
        assert execution.context["current_agent"] == "developer"
        assert execution.context["message_id"] == "conv-1"

    def test_finished_work_returns_to_coordinator(self) -> None:
        integration = CoordinatorIntegration()
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        decision = integration.route(
            "conv-1", DEVELOPER, [Message("assistant", "Implementation is done")]
        )
        assert decision.next_role == COORDINATOR
        assert decision.rule == "task_completion"

    def test_empty_messages_rejected(self) -> None:
        integration = CoordinatorIntegration()
        with pytest.raises(ValueError, match="empty"):
            integration.route("conv-1", COORDINATOR, [])

    def test_redirect_appends_notice(self) -> None:
        integration = CoordinatorIntegration()
        result = integration.process_agent_result(
            COORDINATOR, {"messages": CODING_TASK}, message_id="conv-1"
        )

        assert isinstance(result, Redirect)
        assert result.goto == DEVELOPER
        assert result.messages[:-1] == CODING_TASK
        assert result.messages[-1] == Message(
            "assistant", "[Workflow Engine] Transitioning from coordinator to developer"
        )
        assert result.decision.next_role == DEVELOPER

    def test_continue_keeps_messages(self) -> None:
        graph = WorkflowGraph(default_rule_sets={})
        graph.add_edge(DEVELOPER, DEVELOPER, 1.0)
        integration = CoordinatorIntegration(graph=graph)

        result = integration.process_agent_result(DEVELOPER, {"messages": CODING_TASK})
        assert result == Continue(messages=CODING_TASK)

    def test_structured_content_is_routable(self) -> None:
        integration = CoordinatorIntegration()
        messages = [Message("user", {"task": "write a function", "lang": "python"})]
        role = integration.determine_next_role("conv-1", COORDINATOR, messages)
        assert role == DEVELOPER


class TestContextLifecycle:
    """Tests for context storage, clearing and eviction."""

    def test_initialize_context(self) -> None:
        integration = CoordinatorIntegration()
        context = integration.initialize_context("conv-1", DEVELOPER, CODING_TASK)

        assert context.current_role == DEVELOPER
        assert integration.get_context("conv-1") is context
        assert integration.engine.get_execution("conv-1").current_role == DEVELOPER

    def test_initialize_defaults_to_root(self) -> None:
        integration = CoordinatorIntegration()
        context = integration.initialize_context("conv-1")
        assert context.turns == []
        assert integration.engine.get_execution("conv-1").current_role == COORDINATOR

    def test_reinitialize_restarts_execution(self) -> None:
        integration = CoordinatorIntegration()
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        integration.initialize_context("conv-1")
        assert integration.engine.get_execution("conv-1").history == [COORDINATOR]

    def test_clear_context(self) -> None:
        integration = CoordinatorIntegration()
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        integration.clear_context("conv-1")

        assert integration.get_context("conv-1") is None
        assert not integration.engine.has_execution("conv-1")
        assert integration.active_conversations() == []
        integration.clear_context("conv-1")

    def test_idle_conversations_expire(self) -> None:
        clock = FakeClock()
        integration = CoordinatorIntegration(store=ContextStore(max_entries=10, ttl=5.0, clock=clock))
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        assert integration.active_conversations() == ["conv-1"]

        clock.now = 10.0
        assert integration.active_conversations() == []
        assert not integration.engine.has_execution("conv-1")

    def test_injected_store_is_used(self) -> None:
        store: ContextStore = ContextStore(max_entries=3, ttl=5.0)
        integration = CoordinatorIntegration(store=store)

        integration.route("conv-1", COORDINATOR, CODING_TASK)
        assert "conv-1" in store

    def test_injected_eviction_hook_still_runs(self) -> None:
        evicted = []
        store: ContextStore = ContextStore(
            max_entries=1, on_evict=lambda key, context: evicted.append(key)
        )
        integration = CoordinatorIntegration(store=store)
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        integration.route("conv-2", COORDINATOR, CODING_TASK)

        assert evicted == ["conv-1"]
        assert not integration.engine.has_execution("conv-1")

    def test_capacity_eviction_clears_execution(self) -> None:
        integration = CoordinatorIntegration(settings=WorkflowSettings(max_contexts=1))
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        integration.route("conv-2", COORDINATOR, CODING_TASK)

        assert integration.active_conversations() == ["conv-2"]
        assert not integration.engine.has_execution("conv-1")
        assert integration.engine.has_execution("conv-2")

    def test_route_after_eviction_starts_over(self) -> None:
        integration = CoordinatorIntegration(settings=WorkflowSettings(max_contexts=1))
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        integration.route("conv-2", COORDINATOR, CODING_TASK)
        integration.route("conv-1", COORDINATOR, CODING_TASK)

        assert integration.engine.get_execution("conv-1").history == [COORDINATOR, DEVELOPER]

    def test_visualize_unknown_falls_back_to_graph(self) -> None:
        integration = CoordinatorIntegration()
        assert integration.visualize_execution("missing") == integration.graph.visualize()

    def test_visualize_execution_path(self) -> None:
        integration = CoordinatorIntegration()
        integration.route("conv-1", COORDINATOR, CODING_TASK)
        dot = integration.visualize_execution("conv-1")
        assert '"coordinator" -> "developer" [color=red' in dot
