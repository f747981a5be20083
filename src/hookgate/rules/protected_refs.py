"""
Protected ref rules.

protected_refs:
    Denies git commands that would mutate a protected branch, either by
    naming it (push to main, branch -D main, update-ref refs/heads/main) or
    by acting on the checked-out branch while it is protected (commit,
    reset, rebase). Read-only verbs (status, log, diff, fetch, ...) always
    pass. Merges are left to review_gate.

hook_bypass:
    Denies flags that skip git's own hooks (--no-verify, commit -n).

Matching is by name only; nothing is executed.
"""

import logging

from hookgate.adapters.git import is_protected_ref, short_ref
from hookgate.rules.base import Rule
from hookgate.rules.commands import GitCall, git_calls
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)

# Verbs that add commits to the current branch
_COMMITTING_VERBS = {"commit", "cherry-pick", "revert", "am"}
_BRANCH_DELETE_FLAGS = ("-D", "-d", "--delete")
_BRANCH_MOVE_FLAGS = ("-m", "-M", "--move")
_REBASE_CONTROL = ("--abort", "--continue", "--skip", "--quit", "--edit-todo", "--show-current-patch")


@register_rule
class ProtectedRefRule(Rule):
    """Deny mutating git verbs aimed at protected branches."""

    name = "protected_refs"
    description = "No direct commits, pushes, resets or rebases on protected branches"
    kinds = frozenset({ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_OPEN

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        for call in git_calls(request.payload.command):
            problem = self._check(call, snapshot)
            if problem:
                logger.debug("protected_refs matched git %s", call.verb)
                return RuleOutcome.deny(
                    f"protected_refs: {problem}. Protected branches "
                    f"({', '.join(self.config.protected_branches)}) only change "
                    f"through reviewed merges; work on a feature branch instead."
                )
        return RuleOutcome.passed()

    def _protected(self, name: str) -> bool:
        return is_protected_ref(name, self.config.protected_branches)

    def _current_if_protected(self, snapshot: StateSnapshot) -> str | None:
        branch = snapshot.current_branch
        if branch is not None and self._protected(branch):
            return branch
        return None

    def _check(self, call: GitCall, snapshot: StateSnapshot) -> str | None:
        verb = call.verb
        positionals = call.positionals

        if verb in _COMMITTING_VERBS:
            current = self._current_if_protected(snapshot)
            if current:
                return f"'git {verb}' on protected branch '{current}'"

        elif verb == "push":
            return self._check_push(call, snapshot)

        elif verb == "reset":
            # `git reset [<commit>] -- <paths>` only touches the index
            if "--" in call.args or len(positionals) > 1:
                return None
            target = positionals[0] if positionals else "HEAD"
            if call.has_flag("--hard") or target not in ("HEAD", "@"):
                current = self._current_if_protected(snapshot)
                if current:
                    return f"'git reset' would rewrite protected branch '{current}'"

        elif verb == "rebase":
            if call.has_flag(*_REBASE_CONTROL):
                return None
            # `git rebase <upstream> <branch>` checks out <branch> first
            if len(positionals) > 1 and self._protected(positionals[1]):
                return f"'git rebase' would rewrite protected branch '{short_ref(positionals[1])}'"
            current = self._current_if_protected(snapshot)
            if current and len(positionals) <= 1:
                return f"'git rebase' would rewrite protected branch '{current}'"

        elif verb == "branch":
            if call.has_flag(*_BRANCH_DELETE_FLAGS) or call.has_flag(*_BRANCH_MOVE_FLAGS):
                # every name is deleted, or is the old/new name of a rename
                targets = positionals
            elif call.has_flag("-f", "--force"):
                # `git branch -f <name> <start>` only moves <name>
                targets = positionals[:1]
            else:
                return None
            for name in targets:
                if self._protected(name):
                    return f"'git branch {' '.join(call.options)}' targets protected branch '{short_ref(name)}'"
            # `git branch -m <new>` renames the current branch
            if call.has_flag(*_BRANCH_MOVE_FLAGS) and len(positionals) == 1:
                current = self._current_if_protected(snapshot)
                if current:
                    return f"'git branch -m' would rename protected branch '{current}'"

        elif verb == "update-ref":
            for name in positionals[:1]:
                if self._protected(name):
                    return f"'git update-ref' targets protected branch '{short_ref(name)}'"

        elif verb in ("checkout", "switch"):
            force_create = ("-B",) if verb == "checkout" else ("-C", "--force-create")
            if call.has_flag(*force_create) and positionals and self._protected(positionals[0]):
                return f"'git {verb}' would reset protected branch '{short_ref(positionals[0])}'"

        return None

    def _check_push(self, call: GitCall, snapshot: StateSnapshot) -> str | None:
        if call.has_flag("--dry-run", "-n"):
            return None

        refspecs = list(call.positionals[1:])
        if not refspecs and call.has_flag("--tags"):
            return None
        if not refspecs or any(short_ref(r) in ("HEAD", "@") for r in refspecs):
            current = self._current_if_protected(snapshot)
            if current:
                return f"'git push' would update protected branch '{current}'"

        for refspec in refspecs:
            if self._protected(refspec):
                return f"'git push' targets protected branch '{short_ref(refspec)}'"
        return None


@register_rule
class HookBypassRule(Rule):
    """Deny commands that skip git hooks."""

    name = "hook_bypass"
    description = "No --no-verify on commit, push, merge, rebase or cherry-pick"
    kinds = frozenset({ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_OPEN

    _VERBS = frozenset({"commit", "push", "merge", "rebase", "cherry-pick"})

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        for call in git_calls(request.payload.command):
            if call.verb not in self._VERBS:
                continue
            if call.has_flag("--no-verify") or (call.verb == "commit" and _has_short_n(call)):
                return RuleOutcome.deny(
                    f"hook_bypass: 'git {call.verb}' with --no-verify skips the "
                    f"repository's hooks. Fix what the hooks report instead of "
                    f"bypassing them."
                )
        return RuleOutcome.passed()


def _has_short_n(call: GitCall) -> bool:
    """True for `-n` alone or inside a short-flag cluster such as `-an`."""
    for arg in call.args:
        if arg == "--":
            break
        if arg.startswith("-") and not arg.startswith("--") and arg[1:].isalpha() and "n" in arg[1:]:
            return True
    return False
