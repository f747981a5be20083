"""
Gatekeeper: the hookgate pipeline.

The Gatekeeper ties the pieces together for one invocation:

    raw hook input -> normalize -> pick the chain for the kind
                   -> evaluate against a fresh StateSnapshot -> Decision

Design Principles:
    - Never raises on bad input: malformed input fails open with a warning,
      so a broken integration never locks the agent out
    - One snapshot per invocation; nothing is cached across calls
    - Same input and same external state give the same decision
"""

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from hookgate.chains import build_chains
from hookgate.errors import NormalizationError
from hookgate.executor import Chain
from hookgate.normalizer import normalize
from hookgate.rules.registry import RuleRegistry
from hookgate.schema import ActionKind, ActionRequest, Decision, GateConfig
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)

SnapshotFactory = Callable[[ActionRequest, GateConfig], StateSnapshot]


@dataclass
class Evaluation:
    """
    Result of one Gatekeeper invocation.

    Attributes:
        decision: The verdict, reason, advisories and trace
        request: The normalized request; None when normalization failed
        error: The normalization error message, when there was one
    """

    decision: Decision
    request: ActionRequest | None = None
    error: str | None = None

    @property
    def kind(self) -> ActionKind | None:
        return self.request.kind if self.request else None


class Gatekeeper:
    """
    Evaluates hook input against the configured chains.

    Usage:
        gatekeeper = Gatekeeper.from_config(config)
        evaluation = gatekeeper.check(raw)
        if not evaluation.decision.allowed:
            print(evaluation.decision.reason)

    Attributes:
        config: Active configuration
        chains: One Chain per action kind
    """

    def __init__(
        self,
        config: GateConfig,
        chains: Mapping[ActionKind, Chain],
        snapshot_factory: SnapshotFactory | None = None,
    ) -> None:
        self.config = config
        self.chains = dict(chains)
        self._snapshot_factory = snapshot_factory or StateSnapshot

    @classmethod
    def from_config(
        cls,
        config: GateConfig,
        registry: RuleRegistry | None = None,
        snapshot_factory: SnapshotFactory | None = None,
    ) -> "Gatekeeper":
        """
        Build a Gatekeeper with chains from the config.

        Raises:
            ChainConfigError: If the configured chains are invalid
        """
        return cls(config, build_chains(config, registry), snapshot_factory)

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot | None = None) -> Decision:
        """Run the chain for the request's kind."""
        chain = self.chains.get(request.kind)
        if chain is None or not len(chain):
            logger.debug("No rules for %s; allowing", request.kind.value)
            return Decision.allow()

        if snapshot is None:
            snapshot = self._snapshot_factory(request, self.config)
        return chain.evaluate(request, snapshot)

    def check(self, raw: Mapping[str, Any]) -> Evaluation:
        """Normalize raw hook input and evaluate it."""
        try:
            request = normalize(raw)
        except NormalizationError as e:
            logger.warning("Cannot evaluate hook input, allowing: %s", e.message)
            return Evaluation(decision=Decision.allow(), error=e.message)

        return Evaluation(decision=self.evaluate(request), request=request)

    def check_text(self, text: str) -> Evaluation:
        """Parse a JSON document and evaluate it."""
        try:
            raw = json.loads(text) if text.strip() else None
        except json.JSONDecodeError as e:
            logger.warning("Hook input is not valid JSON, allowing: %s", e)
            return Evaluation(decision=Decision.allow(), error=f"invalid JSON: {e}")

        if not isinstance(raw, dict):
            logger.warning("Hook input is not a JSON object, allowing")
            return Evaluation(decision=Decision.allow(), error="input is not a JSON object")

        return self.check(raw)
