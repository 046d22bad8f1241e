"""Workflow Engine - per-conversation execution state and transitions.

One ``WorkflowExecution`` per conversation id. Calls for the same id are
expected to be serialized by the host; distinct ids never share state.
"""

from __future__ import annotations

import copy
import dataclasses
import time
import traceback
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

import structlog

from agentflow.config import WorkflowSettings
from agentflow.errors import (
    DuplicateExecutionError,
    ExecutionCompletedError,
    ExecutionNotFoundError,
)
from agentflow.roles import AgentRole
from agentflow.workflow.context import ConversationContext, ExecutionContext
from agentflow.workflow.graph import RoutingDecision, WorkflowGraph

logger = structlog.get_logger()

CYCLE_REASON = "Potential workflow cycle detected, forcing coordinator intervention"
CYCLE_OVERRIDE_REASON = "Coordinator intervention due to potential workflow cycle"


class EventKind(StrEnum):
    """Workflow event types."""

    START = "start"
    TRANSITION = "transition"
    COMPLETE = "complete"
    ERROR = "error"
    CYCLE_DETECTED = "cycle-detected"


class ExecutionState(StrEnum):
    """Execution lifecycle states."""

    ACTIVE = "active"
    COMPLETED = "completed"


@dataclass(frozen=True)
class WorkflowEvent:
    """Immutable entry in an execution's event log."""

    timestamp: float
    kind: EventKind
    from_role: AgentRole | None = None
    to_role: AgentRole | None = None
    reason: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class WorkflowExecution:
    """Mutable record of one conversation's path through the graph."""

    id: str
    start_time: float
    current_role: AgentRole
    history: list[AgentRole]
    events: list[WorkflowEvent] = field(default_factory=list)
    context: dict[str, Any] = field(default_factory=dict)
    completed: bool = False

    @property
    def state(self) -> ExecutionState:
        return ExecutionState.COMPLETED if self.completed else ExecutionState.ACTIVE

    @property
    def transition_count(self) -> int:
        return len(self.history) - 1


def _snapshot(text: str, length: int) -> str:
    return text[:length] + ("..." if len(text) > length else "")


class WorkflowEngine:
    """
    Drives executions through a WorkflowGraph.

    Workflow:
    1. start_execution seeds history with the starting role
    2. transition asks the graph for the next role, then applies the cycle guard
    3. complete_execution seals the record against further transitions
    """

    def __init__(self, graph: WorkflowGraph, settings: WorkflowSettings | None = None) -> None:
        self.graph = graph
        self.settings = settings or graph.settings
        self._executions: dict[str, WorkflowExecution] = {}

    def _get(self, execution_id: str) -> WorkflowExecution:
        execution = self._executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFoundError(execution_id)
        return execution

    def start_execution(
        self,
        execution_id: str,
        starting_role: AgentRole,
        initial_context: dict[str, Any] | None = None,
        replace: bool = False,
    ) -> WorkflowExecution:
        """
        Start tracking a conversation.

        Args:
            execution_id: Conversation identifier
            starting_role: Role holding control at the start
            initial_context: Seed for the execution's context bag
            replace: Discard an existing execution with the same id instead of failing

        Raises:
            DuplicateExecutionError: The id is already tracked and ``replace`` is False
        """
        if execution_id in self._executions:
            if not replace:
                raise DuplicateExecutionError(execution_id)
            logger.info("execution_replaced", execution_id=execution_id)

        starting_role = self.graph.registry.require(starting_role)
        initial_context = dict(initial_context or {})
        now = time.time()
        execution = WorkflowExecution(
            id=execution_id,
            start_time=now,
            current_role=starting_role,
            history=[starting_role],
            events=[
                WorkflowEvent(
                    timestamp=now,
                    kind=EventKind.START,
                    to_role=starting_role,
                    metadata={"initial_context": dict(initial_context)},
                )
            ],
            context=initial_context,
        )
        self._executions[execution_id] = execution
        logger.debug("execution_started", execution_id=execution_id, role=starting_role.name)
        return execution

    def get_execution(self, execution_id: str) -> WorkflowExecution | None:
        return self._executions.get(execution_id)

    def has_execution(self, execution_id: str) -> bool:
        return execution_id in self._executions

    def execution_ids(self) -> list[str]:
        return list(self._executions)

    def clear_execution(self, execution_id: str) -> bool:
        """Forget an execution. Returns False if it was not tracked."""
        return self._executions.pop(execution_id, None) is not None

    def would_create_cycle(self, execution: WorkflowExecution, role: AgentRole) -> bool:
        """True if ``role`` already fills the visit budget of the recent window."""
        window = execution.history[-self.settings.cycle_window :]
        return window.count(role) >= self.settings.max_recent_visits

    def transition(
        self,
        execution_id: str,
        task_text: str,
        extra_data: dict[str, Any] | None = None,
        conversation: ConversationContext | None = None,
    ) -> RoutingDecision:
        """
        Route the execution to its next role.

        Raises:
            ExecutionNotFoundError: Unknown id
            ExecutionCompletedError: The execution was already completed
        """
        execution = self._get(execution_id)
        if execution.completed:
            raise ExecutionCompletedError(execution_id)

        extra_data = dict(extra_data or {})
        context = ExecutionContext(
            current_role=execution.current_role,
            previous_roles=tuple(execution.history[:-1]),
            task_text=task_text,
            data={**execution.context, **extra_data},
            conversation=conversation,
        )
        decision = self.graph.determine_next_role(context)
        from_role = execution.current_role

        if self.would_create_cycle(execution, decision.next_role):
            execution.events.append(
                WorkflowEvent(
                    timestamp=time.time(),
                    kind=EventKind.CYCLE_DETECTED,
                    from_role=from_role,
                    to_role=decision.next_role,
                    reason=CYCLE_REASON,
                )
            )
            logger.warning(
                "workflow_cycle_detected",
                execution_id=execution_id,
                from_role=from_role.name,
                proposed=decision.next_role.name,
            )
            root = self.graph.root_role
            if decision.next_role != root:
                decision = dataclasses.replace(
                    decision,
                    next_role=root,
                    confidence=1.0,
                    reason=CYCLE_OVERRIDE_REASON,
                )

        execution.events.append(
            WorkflowEvent(
                timestamp=time.time(),
                kind=EventKind.TRANSITION,
                from_role=from_role,
                to_role=decision.next_role,
                reason=decision.reason,
                metadata={
                    "confidence": decision.confidence,
                    "task_snapshot": _snapshot(task_text, self.settings.snapshot_length),
                },
            )
        )

        execution.current_role = decision.next_role
        execution.history.append(decision.next_role)
        execution.context.update(extra_data)

        logger.debug(
            "execution_transitioned",
            execution_id=execution_id,
            from_role=from_role.name,
            to_role=decision.next_role.name,
            confidence=round(decision.confidence, 4),
        )
        return decision

    def complete_execution(
        self, execution_id: str, final_context: dict[str, Any] | None = None
    ) -> WorkflowExecution:
        """Mark an execution completed."""
        execution = self._get(execution_id)
        final_context = dict(final_context or {})
        execution.completed = True
        execution.context.update(final_context)
        execution.events.append(
            WorkflowEvent(
                timestamp=time.time(),
                kind=EventKind.COMPLETE,
                from_role=execution.current_role,
                metadata={"final_context": final_context},
            )
        )
        logger.debug("execution_completed", execution_id=execution_id)
        return execution

    def record_error(
        self,
        execution_id: str,
        error: BaseException | str,
        metadata: dict[str, Any] | None = None,
    ) -> WorkflowEvent:
        """Annotate the execution with a non-fatal error."""
        execution = self._get(execution_id)
        details: dict[str, Any] = dict(metadata or {})
        details["error"] = repr(error)
        if isinstance(error, BaseException):
            details["error_type"] = type(error).__name__
            if error.__traceback__ is not None:
                details["stack"] = "".join(
                    traceback.format_exception(type(error), error, error.__traceback__)
                )

        event = WorkflowEvent(
            timestamp=time.time(),
            kind=EventKind.ERROR,
            from_role=execution.current_role,
            reason=str(error),
            metadata=details,
        )
        execution.events.append(event)
        logger.info("execution_error_recorded", execution_id=execution_id, error=str(error))
        return copy.deepcopy(event)

    def get_execution_history(self, execution_id: str) -> list[WorkflowEvent]:
        """Chronological deep copy of the event log."""
        return copy.deepcopy(self._get(execution_id).events)

    def visualize_execution(self, execution_id: str) -> str:
        """Static graph DOT overlaid with the path this execution took."""
        execution = self._get(execution_id)
        dot = self.graph.visualize().rstrip()
        if dot.endswith("}"):
            dot = dot[:-1].rstrip("\n")

        lines = [
            dot,
            "",
            "  subgraph cluster_execution {",
            '    label="Execution Path";',
            "    style=filled;",
            "    color=lightgrey;",
        ]
        for from_role, to_role in zip(execution.history, execution.history[1:]):
            lines.append(f'    "{from_role.name}" -> "{to_role.name}" [color=red, penwidth=3.0];')
        lines.append("  }")
        lines.append("}")
        return "\n".join(lines) + "\n"
