"""agentflow: graph-based routing between specialist agents."""

__version__ = "0.1.0"

from agentflow.config import WorkflowSettings, load_settings
from agentflow.errors import (
    DuplicateEdgeError,
    DuplicateExecutionError,
    ExecutionCompletedError,
    ExecutionNotFoundError,
    InvalidConfigurationError,
    UnknownRoleError,
    WorkflowError,
)
from agentflow.integration import Continue, CoordinatorIntegration, Redirect
from agentflow.roles import (
    COORDINATOR,
    DEVELOPER,
    DOCUMENTATION,
    EVALUATION,
    RESEARCH,
    ROLES,
    ROOT_ROLE,
    SECURITY,
    TESTING,
    AgentRole,
    RoleRegistry,
    define_role,
    get_role,
)
from agentflow.rules import RuleResult, RuleSet, apply_rules
from agentflow.workflow import (
    ConversationContext,
    EventKind,
    ExecutionContext,
    Message,
    RoutingDecision,
    WorkflowEngine,
    WorkflowEvent,
    WorkflowExecution,
    WorkflowGraph,
)

__all__ = [
    "AgentRole",
    "COORDINATOR",
    "Continue",
    "ConversationContext",
    "CoordinatorIntegration",
    "DEVELOPER",
    "DOCUMENTATION",
    "DuplicateEdgeError",
    "DuplicateExecutionError",
    "EVALUATION",
    "EventKind",
    "ExecutionCompletedError",
    "ExecutionContext",
    "ExecutionNotFoundError",
    "InvalidConfigurationError",
    "Message",
    "RESEARCH",
    "ROLES",
    "ROOT_ROLE",
    "Redirect",
    "RoleRegistry",
    "RoutingDecision",
    "RuleResult",
    "RuleSet",
    "SECURITY",
    "TESTING",
    "UnknownRoleError",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowEvent",
    "WorkflowExecution",
    "WorkflowGraph",
    "WorkflowSettings",
    "apply_rules",
    "define_role",
    "get_role",
    "load_settings",
]
