"""Graph-based agent workflow coordination."""

from agentflow.workflow.context import (
    ConversationContext,
    ConversationTurn,
    CycleReport,
    ExecutionContext,
    Message,
)
from agentflow.workflow.engine import (
    EventKind,
    ExecutionState,
    WorkflowEngine,
    WorkflowEvent,
    WorkflowExecution,
)
from agentflow.workflow.graph import (
    DEFAULT_TOPOLOGY,
    DotGraph,
    EdgeScore,
    GraphEdge,
    GraphNode,
    RoutingDecision,
    WorkflowGraph,
    parse_dot,
)

__all__ = [
    "ConversationContext",
    "ConversationTurn",
    "CycleReport",
    "DEFAULT_TOPOLOGY",
    "DotGraph",
    "EdgeScore",
    "EventKind",
    "ExecutionContext",
    "ExecutionState",
    "GraphEdge",
    "GraphNode",
    "Message",
    "RoutingDecision",
    "WorkflowEngine",
    "WorkflowEvent",
    "WorkflowExecution",
    "WorkflowGraph",
    "parse_dot",
]
