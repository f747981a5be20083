"""
Review gate.

Merge and publish commands are only allowed once every hunk in the range
being shipped has been marked reviewed with the external review tool
(`git-review`). When the tool is not installed the gate fails open. When it is
installed but fails, the merge is denied.
"""

import logging
import re

from hookgate.adapters.git import validate_ref
from hookgate.errors import ExternalToolMissingError, ReviewToolError
from hookgate.rules.base import Rule
from hookgate.rules.commands import git_calls, split_segments
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)

_MERGE_CONTROL = ("--abort", "--continue", "--quit")


@register_rule
class ReviewGateRule(Rule):
    """Deny merge/publish commands over unreviewed ranges."""

    name = "review_gate"
    description = "Merges and publishes require a fully reviewed range"
    kinds = frozenset({ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_OPEN

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        command = request.payload.command
        if not self._is_gated(command):
            return RuleOutcome.passed()

        range_spec = self._review_range(command, snapshot)
        if not validate_ref(range_spec):
            logger.warning("Cannot build a safe review range from %r", command)
            return RuleOutcome.passed()

        tool = self.config.review.tool
        try:
            state = snapshot.review_status(range_spec)
        except ReviewToolError as e:
            return RuleOutcome.deny(
                f"review_gate: cannot confirm {range_spec} is reviewed: {e.message}. "
                f"Fix {tool} (try '{tool} status {range_spec}') and retry the merge."
            )
        if state is None:
            raise ExternalToolMissingError(executable=tool)

        if state.fully_reviewed:
            logger.debug("Range %s fully reviewed (%d hunks)", range_spec, state.total)
            return RuleOutcome.passed()

        return RuleOutcome.deny(
            f"review_gate: {range_spec} is not fully reviewed "
            f"(reviewed {state.reviewed}/{state.total}, "
            f"unreviewed {state.unreviewed}, stale {state.stale}). "
            f"Run '{self.config.review.tool} {range_spec}' and mark every hunk reviewed."
        )

    def _is_gated(self, command: str) -> bool:
        for segment in split_segments(command):
            line = " ".join(segment)
            if line.startswith("git merge") and any(f in segment for f in _MERGE_CONTROL):
                continue
            if any(re.search(pattern, line) for pattern in self.config.review.commands):
                return True
        return False

    def _review_range(self, command: str, snapshot: StateSnapshot) -> str:
        """
        Range whose hunks must be reviewed.

        `git merge X` ships X into the current branch, so the range is
        current..X. Everything else (gh pr merge, publish) ships the current
        branch into the default branch.
        """
        current = snapshot.current_branch or "HEAD"
        for call in git_calls(command):
            if call.verb == "merge" and call.positionals:
                return f"{current}..{call.positionals[0]}"

        base = snapshot.default_branch or next(iter(self.config.protected_branches), "main")
        return f"{base}..{current}"
