"""
Hook directory protection.

An agent rewriting the hooks that police it is the one change hookgate
cannot evaluate after the fact, so every write into the hook directory
needs a human to confirm it. Reading and listing the directory is fine.
"""

import logging

from hookgate.rules.base import Rule
from hookgate.rules.commands import mutated_paths
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


@register_rule
class ProtectHooksRule(Rule):
    """Ask before anything writes into the hook directory."""

    name = "protect_hooks"
    description = "Writes to the hook directory need confirmation"
    kinds = frozenset({ActionKind.FILE_WRITE, ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_OPEN

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        if request.kind == ActionKind.FILE_WRITE:
            targets = [request.payload.path]
        else:
            targets = mutated_paths(request.payload.command)

        for target in targets:
            if self._in_hooks_dir(snapshot.relative_path(target)):
                logger.debug("Write to hook file %s", target)
                return RuleOutcome.ask(
                    f"protect_hooks: '{target}' is inside {self.config.hooks_dir}/. "
                    f"Changes to enforcement hooks need explicit approval."
                )
        return RuleOutcome.passed()

    def _in_hooks_dir(self, path: str) -> bool:
        hooks_dir = self.config.hooks_dir.strip("/")
        # Absolute paths outside the repo still match on the directory segment
        return path == hooks_dir or path.startswith(f"{hooks_dir}/") or f"/{hooks_dir}/" in path
