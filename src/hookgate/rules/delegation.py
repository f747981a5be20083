"""
Delegation rule.

In a multi-agent workflow the orchestrating session plans and reviews; code
is written by the sub-agents it spawns. This rule denies mutations of
guarded paths (source, tests, build manifests) until the session transcript
shows that at least one sub-agent was spawned.

Design Principles:
    - Fail-secure: if the transcript is absent or unreadable there is no
      evidence, and no evidence means deny
    - Allow-listed prefixes (.claude, docs) are never guarded
    - Guarding is by path segment, so absolute paths and paths outside the
      repo root are still recognized
"""

import logging
from pathlib import PurePosixPath

from hookgate.adapters.transcript import tool_names
from hookgate.rules.base import Rule
from hookgate.rules.commands import mutated_paths
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)


@register_rule
class DelegationRule(Rule):
    """Guarded paths may only change after a sub-agent has been spawned."""

    name = "delegation"
    description = "Source changes require spawn evidence in the transcript"
    kinds = frozenset({ActionKind.FILE_WRITE, ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_SECURE

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        guarded = [p for p in self._targets(request) if self.is_guarded(snapshot.relative_path(p))]
        if not guarded:
            return RuleOutcome.passed()

        names = tool_names(snapshot.require_transcript())
        markers = set(self.config.delegation.spawn_markers)
        if names & markers:
            logger.debug("Spawn evidence found for %s", guarded[0])
            return RuleOutcome.allow()

        return RuleOutcome.deny(
            f"delegation: '{guarded[0]}' is a guarded path and no sub-agent has "
            f"been spawned in this session. Spawn an agent "
            f"({', '.join(self.config.delegation.spawn_markers)}) to make this change."
        )

    def unavailable_reason(self, error: Exception) -> str:
        return (
            f"delegation: cannot verify that a sub-agent was spawned ({error}). "
            f"Guarded paths are refused without a readable session transcript."
        )

    def is_guarded(self, path: str) -> bool:
        """
        Decide whether a (repo-relative where possible) path is guarded.

        Examples:
            src/main.rs -> True
            /home/user/project/tests/a.rs -> True
            Cargo.toml -> True
            docs/src/notes.md -> False (allow-listed)
            README.md -> False
        """
        posix = PurePosixPath(path)
        if not posix.is_absolute():
            for prefix in self.config.delegation.allow_paths:
                prefix = prefix.strip("/")
                if path == prefix or path.startswith(f"{prefix}/"):
                    return False

        parts = posix.parts
        if not parts:
            return False
        if parts[-1] in self.config.delegation.guarded_files:
            return True
        return any(part in self.config.delegation.guarded_dirs for part in parts[:-1])

    def _targets(self, request: ActionRequest) -> list[str]:
        if request.kind == ActionKind.FILE_WRITE:
            return [request.payload.path]
        return mutated_paths(request.payload.command)
