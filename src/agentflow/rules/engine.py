"""Rule evaluation - max-confidence scoring over an ordered rule set."""

from __future__ import annotations

import math
from collections.abc import Callable, Iterator, Mapping
from concurrent.futures import Executor
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

import structlog

if TYPE_CHECKING:
    from agentflow.workflow.context import ExecutionContext

logger = structlog.get_logger()

RuleFunction = Callable[["ExecutionContext", str], float]

# Rule name reported when no rule produced a positive confidence
DEFAULT_RULE_NAME: Final[str] = "default"


@dataclass(frozen=True)
class DecisionRule:
    """A named, pure scoring function."""

    name: str
    func: RuleFunction

    def __call__(self, context: ExecutionContext, text: str) -> float:
        return self.func(context, text)


@dataclass(frozen=True)
class RuleResult:
    """Winning confidence of a rule set and the rule that produced it."""

    confidence: float
    rule: str = DEFAULT_RULE_NAME

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be in [0.0, 1.0], got {self.confidence}")


class RuleSet:
    """Named collection of decision rules evaluated in insertion order."""

    def __init__(self, name: str, rules: Mapping[str, RuleFunction] | None = None) -> None:
        self.name = name
        self._rules: dict[str, DecisionRule] = {}
        for rule_name, func in (rules or {}).items():
            self.add(rule_name, func)

    def add(self, name: str, func: RuleFunction) -> RuleSet:
        """Append a rule. Re-adding a name replaces it in place."""
        self._rules[name] = DecisionRule(name, func)
        return self

    def rule(self, name: str) -> Callable[[RuleFunction], RuleFunction]:
        """Decorator form of :meth:`add`."""

        def register(func: RuleFunction) -> RuleFunction:
            self.add(name, func)
            return func

        return register

    def merged(self, other: RuleSet, name: str | None = None) -> RuleSet:
        """New rule set with ``other``'s rules appended after this one's."""
        combined = RuleSet(name or self.name)
        for rule in [*self, *other]:
            combined.add(rule.name, rule.func)
        return combined

    def names(self) -> list[str]:
        return list(self._rules)

    def __iter__(self) -> Iterator[DecisionRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, name: object) -> bool:
        return name in self._rules

    def __repr__(self) -> str:
        return f"RuleSet({self.name!r}, rules={self.names()!r})"


def _evaluate(rule: DecisionRule, context: ExecutionContext, text: str) -> float:
    """Run one rule, isolating failures and clamping into [0, 1]."""
    try:
        value = rule(context, text)
    except Exception as e:
        logger.warning("rule_evaluation_failed", rule=rule.name, error=str(e))
        return 0.0

    try:
        confidence = float(value)
    except (TypeError, ValueError):
        logger.warning("rule_confidence_clamped", rule=rule.name, value=repr(value))
        return 0.0

    if math.isnan(confidence):
        logger.warning("rule_confidence_clamped", rule=rule.name, value="nan")
        return 0.0
    if not 0.0 <= confidence <= 1.0:
        logger.warning("rule_confidence_clamped", rule=rule.name, value=confidence)
        confidence = min(1.0, max(0.0, confidence))
    return confidence


def apply_rules(
    rule_set: RuleSet | None,
    context: ExecutionContext,
    text: str,
    executor: Executor | None = None,
) -> RuleResult:
    """
    Evaluate every rule and return the highest confidence.

    Ties resolve to the earliest rule in the set. An empty (or missing) rule
    set scores 0 under the ``"default"`` rule name.

    Args:
        rule_set: Rules to evaluate
        context: Execution snapshot handed to each rule
        text: Task text being routed
        executor: Optional executor to evaluate rules concurrently; results are
            still reduced in rule-set order

    Returns:
        RuleResult with the winning confidence and rule name
    """
    if rule_set is None or len(rule_set) == 0:
        return RuleResult(confidence=0.0)

    rules = list(rule_set)
    if executor is not None:
        scores = list(executor.map(lambda r: _evaluate(r, context, text), rules))
    else:
        scores = [_evaluate(rule, context, text) for rule in rules]

    best = RuleResult(confidence=0.0)
    for rule, confidence in zip(rules, scores):
        if confidence > best.confidence:
            best = RuleResult(confidence=confidence, rule=rule.name)

    return best
