"""
Base class for hookgate rules.

A rule is a pure function of (ActionRequest, StateSnapshot) -> RuleOutcome.
It may read external state only through the snapshot and never has side
effects.

Design Principles:
    - Every rule declares the action kinds it understands
    - Every rule declares a failure policy; a chain refuses rules that don't
    - A rule that needs absent state raises StateUnavailableError instead of
      guessing; the chain applies the declared policy
    - Advisory-only rules return ADVISE or PASS and nothing else
"""

from abc import ABC, abstractmethod
from typing import ClassVar

from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, GateConfig, RuleOutcome
from hookgate.snapshot import StateSnapshot


class Rule(ABC):
    """
    Abstract base class for all rules.

    Subclasses set the class attributes and implement evaluate().

    Attributes:
        name: Stable snake_case identifier used in chain configuration
        description: One-line summary shown by `hookgate chains`
        kinds: Action kinds this rule can evaluate
        failure_policy: Behavior when required state is unavailable
        advisory_only: True when the rule can never block
        config: The active configuration
    """

    name: ClassVar[str] = ""
    description: ClassVar[str] = ""
    kinds: ClassVar[frozenset[ActionKind]] = frozenset()
    failure_policy: ClassVar[FailurePolicy | None] = None
    advisory_only: ClassVar[bool] = False

    def __init__(self, config: GateConfig) -> None:
        self.config = config

    @abstractmethod
    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        """
        Evaluate the request.

        Raises:
            StateUnavailableError: When state the rule needs is absent
        """
        ...

    def applies_to(self, kind: ActionKind) -> bool:
        return kind in self.kinds

    def unavailable_reason(self, error: Exception) -> str:
        """
        Deny reason used when a fail-secure rule cannot evaluate.

        Subclasses override this to give a rule-specific remediation hint.
        """
        return (
            f"{self.name}: cannot verify this action ({error}). "
            "The rule is fail-secure, so the action is refused until the "
            "missing state is available."
        )

    def __repr__(self) -> str:
        policy = self.failure_policy.value if self.failure_policy else "undeclared"
        return f"<{self.__class__.__name__} {self.name} ({policy})>"
