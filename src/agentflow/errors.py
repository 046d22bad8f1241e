"""Typed failures raised by the workflow engine."""

from __future__ import annotations


class WorkflowError(Exception):
    """Base class for all agentflow errors."""


class UnknownRoleError(WorkflowError, KeyError):
    """A role name was used without being registered first."""

    def __init__(self, name: object) -> None:
        super().__init__(f"Unknown agent role: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidConfigurationError(WorkflowError, ValueError):
    """Graph or adapter configuration is malformed."""


class DuplicateEdgeError(WorkflowError):
    """An edge for the same (from, to) pair already exists."""

    def __init__(self, from_role: object, to_role: object) -> None:
        super().__init__(
            f"Edge {from_role} -> {to_role} already exists; pass replace=True to overwrite"
        )
        self.from_role = from_role
        self.to_role = to_role


class ExecutionNotFoundError(WorkflowError, KeyError):
    """No workflow execution is registered under the given id."""

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"No workflow execution found with ID: {execution_id}")
        self.execution_id = execution_id

    def __str__(self) -> str:
        return str(self.args[0])


class ExecutionCompletedError(WorkflowError):
    """A transition was requested on an execution that already completed."""

    def __init__(self, execution_id: str) -> None:
        super().__init__(f"Workflow execution {execution_id} is already completed")
        self.execution_id = execution_id


class DuplicateExecutionError(WorkflowError):
    """An execution with the same id is already being tracked."""

    def __init__(self, execution_id: str) -> None:
        super().__init__(
            f"Workflow execution {execution_id} already exists; pass replace=True to restart it"
        )
        self.execution_id = execution_id
