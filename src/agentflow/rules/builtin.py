"""Built-in keyword heuristics for the default agent roles.

These rule sets are routing policy, not contract: swap them per edge or
replace the defaults entirely. Every rule is pure and returns a confidence
in [0, 1].
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from agentflow.roles import (
    COORDINATOR,
    DEVELOPER,
    DOCUMENTATION,
    RESEARCH,
    SECURITY,
    TESTING,
    AgentRole,
)
from agentflow.rules.engine import RuleSet

if TYPE_CHECKING:
    from agentflow.workflow.context import ExecutionContext

# How many recent roles the history-aware rules look back over
RECENT_ROLE_WINDOW: Final[int] = 3


def _count_terms(text: str, terms: list[str]) -> int:
    return sum(1 for term in terms if term in text)


def _has_any(text: str, terms: list[str]) -> bool:
    return any(term in text for term in terms)


def _recently_visited(context: ExecutionContext, role: AgentRole) -> bool:
    return role in context.recent_roles(RECENT_ROLE_WINDOW)


# ═══════════════════════════════════════════════════════════════════════════
# DEVELOPER
# ═══════════════════════════════════════════════════════════════════════════

CODE_INDICATORS: Final[list[str]] = [
    "code", "implement", "debug", "fix", "write", "function", "class",
    "method", "variable", "const", "let", "interface", "type", "enum",
    "programming", "syntax", "compiler", "runtime", "library", "framework",
    "api", "component", "module",
]

IMPLEMENTATION_INDICATORS: Final[list[str]] = [
    "implement", "code", "create", "build", "develop", "write",
    "based on", "using", "with", "now", "next",
]

_CODE_FENCE = re.compile(r"```[\w]*\n[\s\S]*?\n```")
_INLINE_CODE = re.compile(r"`[^`]+`")
_CODE_KEYWORDS = re.compile(r"\b(function|class|const|let|var|import|export|return|def)\b")


def code_related_task(context: ExecutionContext, text: str) -> float:
    """Code vocabulary in the task; 0.1 base plus 0.1 per indicator."""
    matches = _count_terms(text.lower(), CODE_INDICATORS)
    return min(0.1 + matches * 0.1, 1.0)


def contains_code_snippets(context: ExecutionContext, text: str) -> float:
    if _CODE_FENCE.search(text):
        return 0.9
    if _CODE_KEYWORDS.search(text):
        return 0.7
    if _INLINE_CODE.search(text):
        return 0.5
    return 0.0


def research_to_implementation(context: ExecutionContext, text: str) -> float:
    """Follow-up implementation work right after a research visit."""
    if not _recently_visited(context, RESEARCH):
        return 0.0
    return 0.8 if _has_any(text.lower(), IMPLEMENTATION_INDICATORS) else 0.3


DEVELOPER_RULES: Final[RuleSet] = RuleSet(
    "developer",
    {
        "code_related_task": code_related_task,
        "contains_code_snippets": contains_code_snippets,
        "research_to_implementation": research_to_implementation,
    },
)


# ═══════════════════════════════════════════════════════════════════════════
# RESEARCH
# ═══════════════════════════════════════════════════════════════════════════

RESEARCH_INDICATORS: Final[list[str]] = [
    "research", "find", "search", "look up", "investigate", "explore",
    "learn about", "information on", "information about", "details on",
    "tell me about", "what is", "how does", "explain", "why is",
]

API_INDICATORS: Final[list[str]] = [
    "api", "library", "package", "module", "framework", "sdk",
    "documentation", "docs", "reference", "examples",
]

HOW_TO_PATTERNS: Final[list[str]] = [
    "how to", "how do i", "can i", "is there a way", "what's the best way",
]


def information_seeking_task(context: ExecutionContext, text: str) -> float:
    matches = _count_terms(text.lower(), RESEARCH_INDICATORS)
    return min(0.1 + matches * 0.1, 1.0)


def unfamiliar_topics(context: ExecutionContext, text: str) -> float:
    """Substantive task words barely mentioned earlier in the conversation."""
    texts = context.message_texts()
    if not texts:
        return 0.0
    history = " ".join(texts).lower()
    unfamiliar = 0
    for token in text.lower().split():
        if len(token) <= 4:
            continue
        mentions = len(re.findall(rf"\b{re.escape(token)}\b", history))
        if mentions <= 1:
            unfamiliar += 1
    return min(unfamiliar * 0.1, 0.9)


def library_api_research(context: ExecutionContext, text: str) -> float:
    text_lower = text.lower()
    if not _has_any(text_lower, API_INDICATORS):
        return 0.0
    return 0.85 if _has_any(text_lower, HOW_TO_PATTERNS) else 0.6


RESEARCH_RULES: Final[RuleSet] = RuleSet(
    "research",
    {
        "information_seeking_task": information_seeking_task,
        "unfamiliar_topics": unfamiliar_topics,
        "library_api_research": library_api_research,
    },
)


# ═══════════════════════════════════════════════════════════════════════════
# SECURITY
# ═══════════════════════════════════════════════════════════════════════════

SECURITY_INDICATORS: Final[list[str]] = [
    "security", "vulnerability", "exploit", "attack", "threat", "risk",
    "breach", "hack", "malicious", "injection", "xss", "csrf",
    "sql injection", "authentication", "authorization", "encrypt",
    "decrypt", "hash", "salt", "password", "credentials", "token", "jwt",
    "oauth", "permission",
]

REVIEW_INDICATORS: Final[list[str]] = [
    "review", "check", "audit", "look at", "analyze", "validate", "verify",
    "assess", "evaluate",
]

SENSITIVE_CONTEXT_INDICATORS: Final[list[str]] = [
    "security", "auth", "user", "input", "validation", "credential",
    "sensitive", "data", "private", "secret", "key",
]

VERIFICATION_INDICATORS: Final[list[str]] = [
    "complete", "finished", "implemented", "done", "created", "verify",
    "check", "review", "secure", "validate",
]

AUTH_CONTEXT_INDICATORS: Final[list[str]] = [
    "auth", "login", "user", "password", "credential", "token",
    "sensitive", "private", "data", "input",
]


def security_related_task(context: ExecutionContext, text: str) -> float:
    matches = _count_terms(text.lower(), SECURITY_INDICATORS)
    return min(0.2 + matches * 0.15, 1.0)


def security_code_review(context: ExecutionContext, text: str) -> float:
    text_lower = text.lower()
    if not _has_any(text_lower, REVIEW_INDICATORS):
        return 0.0
    matches = _count_terms(text_lower, SENSITIVE_CONTEXT_INDICATORS)
    return min(0.4 + matches * 0.1, 0.9) if matches else 0.0


def implementation_verification(context: ExecutionContext, text: str) -> float:
    """Security pass over freshly finished developer work."""
    if not _recently_visited(context, DEVELOPER):
        return 0.0
    text_lower = text.lower()
    if not _has_any(text_lower, VERIFICATION_INDICATORS):
        return 0.0
    matches = _count_terms(text_lower, AUTH_CONTEXT_INDICATORS)
    return min(0.3 + matches * 0.1, 0.7)


SECURITY_RULES: Final[RuleSet] = RuleSet(
    "security",
    {
        "security_related_task": security_related_task,
        "security_code_review": security_code_review,
        "implementation_verification": implementation_verification,
    },
)


# ═══════════════════════════════════════════════════════════════════════════
# COORDINATOR
# ═══════════════════════════════════════════════════════════════════════════

COMPLETION_INDICATORS: Final[list[str]] = [
    "complete", "finished", "done", "implemented", "resolved", "fixed",
    "created", "added", "updated", "accomplished", "task complete",
    "here's the result", "here is the result", "the solution is",
]

CLARIFICATION_INDICATORS: Final[list[str]] = [
    "unclear", "ambiguous", "not sure", "clarify", "clarification",
    "what do you mean", "please explain", "could you provide more details",
    "need more information", "not enough context", "specify", "which",
    "what", "how", "when", "where", "why", "?",
]

MULTI_STEP_INDICATORS: Final[list[str]] = [
    "both", "and", "then", "multiple", "steps", "process", "workflow",
    "first", "next", "after", "finally", "followed by",
]


def task_completion(context: ExecutionContext, text: str) -> float:
    return 0.8 if _has_any(text.lower(), COMPLETION_INDICATORS) else 0.0


def needs_clarification(context: ExecutionContext, text: str) -> float:
    matches = _count_terms(text.lower(), CLARIFICATION_INDICATORS)
    return min(0.5 + matches * 0.1, 0.9) if matches else 0.0


def multi_agent_task(context: ExecutionContext, text: str) -> float:
    matches = _count_terms(text.lower(), MULTI_STEP_INDICATORS)
    if matches >= 3:
        return 0.7
    return 0.4 if matches else 0.1


COORDINATOR_RULES: Final[RuleSet] = RuleSet(
    "coordinator",
    {
        "task_completion": task_completion,
        "needs_clarification": needs_clarification,
        "multi_agent_task": multi_agent_task,
    },
)


# ═══════════════════════════════════════════════════════════════════════════
# DOCUMENTATION / TESTING
# ═══════════════════════════════════════════════════════════════════════════

DOCUMENTATION_INDICATORS: Final[list[str]] = [
    "document", "docs", "readme", "docstring", "comment", "changelog",
    "guide", "tutorial", "write up", "describe",
]

TESTING_INDICATORS: Final[list[str]] = [
    "test", "pytest", "unit test", "coverage", "assert", "regression",
    "fixture", "mock", "integration test", "flaky",
]


def documentation_request(context: ExecutionContext, text: str) -> float:
    matches = _count_terms(text.lower(), DOCUMENTATION_INDICATORS)
    return min(matches * 0.25, 0.9)


def testing_request(context: ExecutionContext, text: str) -> float:
    matches = _count_terms(text.lower(), TESTING_INDICATORS)
    return min(matches * 0.25, 0.9)


def implementation_needs_tests(context: ExecutionContext, text: str) -> float:
    if not _recently_visited(context, DEVELOPER):
        return 0.0
    return 0.5 if _has_any(text.lower(), VERIFICATION_INDICATORS) else 0.0


DOCUMENTATION_RULES: Final[RuleSet] = RuleSet(
    "documentation", {"documentation_request": documentation_request}
)

TESTING_RULES: Final[RuleSet] = RuleSet(
    "testing",
    {
        "testing_request": testing_request,
        "implementation_needs_tests": implementation_needs_tests,
    },
)


# Fallback rule set for edges that carry none, keyed by target role
DEFAULT_RULE_SETS: Final[dict[AgentRole, RuleSet]] = {
    DEVELOPER: DEVELOPER_RULES,
    RESEARCH: RESEARCH_RULES,
    SECURITY: SECURITY_RULES,
    COORDINATOR: COORDINATOR_RULES,
    DOCUMENTATION: DOCUMENTATION_RULES,
    TESTING: TESTING_RULES,
}


def default_rule_set_for(role: AgentRole) -> RuleSet | None:
    """Built-in rule set for transitions into ``role``, if one exists."""
    return DEFAULT_RULE_SETS.get(role)
