"""Decision rules and rule-set evaluation."""

from .builtin import (
    COORDINATOR_RULES,
    DEFAULT_RULE_SETS,
    DEVELOPER_RULES,
    DOCUMENTATION_RULES,
    RESEARCH_RULES,
    SECURITY_RULES,
    TESTING_RULES,
    default_rule_set_for,
)
from .engine import (
    DEFAULT_RULE_NAME,
    DecisionRule,
    RuleFunction,
    RuleResult,
    RuleSet,
    apply_rules,
)

__all__ = [
    "COORDINATOR_RULES",
    "DEFAULT_RULE_NAME",
    "DEFAULT_RULE_SETS",
    "DEVELOPER_RULES",
    "DOCUMENTATION_RULES",
    "DecisionRule",
    "RESEARCH_RULES",
    "RuleFunction",
    "RuleResult",
    "RuleSet",
    "SECURITY_RULES",
    "TESTING_RULES",
    "apply_rules",
    "default_rule_set_for",
]
