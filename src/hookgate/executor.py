"""
Chain executor for hookgate.

A Chain is the ordered, immutable list of rules bound to one action kind.
Evaluating it walks the rules in order and folds their outcomes into a
single Decision.

How it works:
    1. Each rule is evaluated against the request and the shared snapshot
    2. DENY or ASK stops the chain; that outcome is the verdict
    3. ADVISE records a message and evaluation continues
    4. PASS and ALLOW continue
    5. If nothing was terminal, the verdict is ALLOW with the advisories

The first terminal outcome wins, so rule order is policy: reordering a
chain can change verdicts.

Failure handling:
    A rule that raises StateUnavailableError, or any other exception, is
    converted by its declared failure policy. FAIL_OPEN becomes PASS and
    FAIL_SECURE becomes DENY. Nothing a rule raises reaches the caller.
"""

import logging
from collections.abc import Iterable

from hookgate.errors import ChainConfigError, MissingFailurePolicyError, StateUnavailableError
from hookgate.rules.base import Rule
from hookgate.schema import (
    ActionKind,
    ActionRequest,
    Decision,
    FailurePolicy,
    OutcomeType,
    RuleOutcome,
    RuleTrace,
    Verdict,
)
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


class Chain:
    """
    Ordered rules for one action kind.

    Usage:
        chain = Chain(ActionKind.FILE_WRITE, [DelegationRule(config), ...])
        decision = chain.evaluate(request, snapshot)

    Attributes:
        kind: The action kind this chain evaluates
        name: Display name (defaults to the kind value)
        rules: The rules, in evaluation order
    """

    def __init__(self, kind: ActionKind, rules: Iterable[Rule], name: str | None = None) -> None:
        """
        Build and validate a chain.

        Raises:
            MissingFailurePolicyError: If a rule declares no failure policy
            ChainConfigError: If a rule cannot evaluate this kind, or appears twice
        """
        self.kind = kind
        self.name = name or kind.value
        self.rules: tuple[Rule, ...] = tuple(rules)

        seen: set[str] = set()
        for rule in self.rules:
            if rule.failure_policy is None:
                raise MissingFailurePolicyError(chain=self.name, rule=rule.name)
            if not rule.applies_to(kind):
                raise ChainConfigError(
                    message=f"Rule {rule.name!r} does not handle {kind.value} actions",
                    chain=self.name,
                    rule=rule.name,
                )
            if rule.name in seen:
                raise ChainConfigError(
                    message=f"Rule {rule.name!r} appears more than once in chain {self.name!r}",
                    chain=self.name,
                    rule=rule.name,
                )
            seen.add(rule.name)

    @property
    def rule_names(self) -> list[str]:
        return [rule.name for rule in self.rules]

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> Decision:
        """
        Run the chain and return its decision.

        Args:
            request: Normalized request (its kind must match the chain's)
            snapshot: Per-invocation state snapshot

        Returns:
            Decision; never raises for rule failures
        """
        advisories: list[str] = []
        trace: list[RuleTrace] = []

        for rule in self.rules:
            outcome, note = self._run_rule(rule, request, snapshot)
            trace.append(RuleTrace(rule=rule.name, outcome=outcome, note=note))

            if outcome.type == OutcomeType.ADVISE:
                advisories.append(outcome.message)
            elif outcome.is_terminal:
                verdict = Verdict.DENY if outcome.type == OutcomeType.DENY else Verdict.ASK
                logger.info("%s: %s by %s", self.name, verdict.value, rule.name)
                return Decision(
                    verdict=verdict,
                    reason=outcome.message,
                    advisories=tuple(advisories),
                    rule=rule.name,
                    trace=tuple(trace),
                )

        return Decision(
            verdict=Verdict.ALLOW,
            advisories=tuple(advisories),
            trace=tuple(trace),
        )

    def _run_rule(
        self,
        rule: Rule,
        request: ActionRequest,
        snapshot: StateSnapshot,
    ) -> tuple[RuleOutcome, str | None]:
        try:
            outcome = rule.evaluate(request, snapshot)
        except StateUnavailableError as e:
            logger.info("%s: state unavailable (%s)", rule.name, e.message)
            return self._apply_policy(rule, e), f"state unavailable: {e.message}"
        except Exception as e:
            logger.exception("Rule %s raised while evaluating %s", rule.name, request.kind.value)
            return self._apply_policy(rule, e), f"internal error: {type(e).__name__}: {e}"

        if rule.advisory_only and outcome.is_terminal:
            logger.error("Advisory rule %s returned %s; ignored", rule.name, outcome.type.value)
            return RuleOutcome.passed(), f"advisory rule returned {outcome.type.value}"

        return outcome, None

    @staticmethod
    def _apply_policy(rule: Rule, error: Exception) -> RuleOutcome:
        if rule.failure_policy == FailurePolicy.FAIL_SECURE:
            return RuleOutcome.deny(rule.unavailable_reason(error))
        return RuleOutcome.passed()

    def __len__(self) -> int:
        return len(self.rules)

    def __repr__(self) -> str:
        return f"<Chain {self.name}: {' -> '.join(self.rule_names) or '(empty)'}>"
