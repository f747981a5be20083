"""
Branch discipline rules.

ticket_branch:
    Refuses prompt submission when the session is on a protected branch or
    on a branch that does not reference a ticket. Work should start on a
    ticket branch before the agent is asked to do anything.

branch_naming:
    Refuses `git commit` / `git push` from a branch that does not follow
    `<type>/<ticket>-<description>`.

Both rules are fail-open: outside a git repository (or with git missing)
there is no branch to check.
"""

import logging
import re

from hookgate.errors import StateUnavailableError
from hookgate.rules.base import Rule
from hookgate.rules.commands import git_calls
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


@register_rule
class TicketBranchRule(Rule):
    """Block prompts on protected or ticketless branches."""

    name = "ticket_branch"
    description = "Prompts must be submitted from a ticket branch"
    kinds = frozenset({ActionKind.PROMPT_SUBMIT})
    failure_policy = FailurePolicy.FAIL_OPEN

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        branch = snapshot.current_branch
        if branch is None:
            raise StateUnavailableError(state="current_branch")

        if branch in self.config.protected_branches:
            return RuleOutcome.deny(
                f"ticket_branch: you are on protected branch '{branch}'. "
                f"Create a ticket branch first, e.g. "
                f"'git checkout -b feat/eng-123-short-description'."
            )

        if not re.search(self.config.ticket_pattern, branch, re.IGNORECASE):
            return RuleOutcome.deny(
                f"ticket_branch: branch '{branch}' does not reference a ticket "
                f"(expected something matching '{self.config.ticket_pattern}'). "
                f"Rename it with 'git branch -m <type>/<ticket>-<description>'."
            )

        logger.debug("Branch %s carries a ticket id", branch)
        return RuleOutcome.passed()


@register_rule
class BranchNamingRule(Rule):
    """Enforce `<type>/<ticket>-<description>` on commit and push."""

    name = "branch_naming"
    description = "Commits and pushes must come from a conventionally named branch"
    kinds = frozenset({ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_OPEN

    def _pattern(self) -> re.Pattern[str]:
        types = "|".join(re.escape(t) for t in self.config.branch_types)
        return re.compile(
            rf"^(?:{types})/(?:{self.config.ticket_pattern})-[a-z0-9]+(?:-[a-z0-9]+)*$"
        )

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        calls = [c for c in git_calls(request.payload.command) if c.verb in ("commit", "push")]
        if not calls:
            return RuleOutcome.passed()

        branch = snapshot.current_branch
        # Detached HEAD and protected branches are handled by protected_refs
        if branch is None or branch in self.config.protected_branches:
            return RuleOutcome.passed()

        if self._pattern().match(branch):
            return RuleOutcome.passed()

        types = ", ".join(self.config.branch_types)
        return RuleOutcome.deny(
            f"branch_naming: branch '{branch}' does not match "
            f"<type>/<ticket>-<description> (types: {types}; lowercase, hyphenated). "
            f"Rename it with 'git branch -m feat/eng-123-short-description'."
        )
