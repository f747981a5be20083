"""
Quality gate for task completion and idle teammates.

When a task is marked complete, or a teammate goes idle with uncommitted
source changes, the project's own checks (by default clippy and the test
suite) must pass. A failing check blocks the lifecycle event, so the agent
is told to keep working.

Skipped:
    - projects without the marker file (not a cargo project by default)
    - tasks whose subject is about docs, planning or research
    - idle teammates with no changes to guarded paths

A missing build tool fails open.
"""

import logging
import re
from pathlib import PurePosixPath

from hookgate.errors import ExternalToolMissingError
from hookgate.rules.base import Rule
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)

_GATED_EVENTS = ("TaskCompleted", "TeammateIdle")
# Lines of failing check output quoted back to the agent
OUTPUT_TAIL_LINES = 20


@register_rule
class QualityGateRule(Rule):
    """Run project checks before a task may complete."""

    name = "quality_gate"
    description = "Project checks must pass before a task completes or a teammate idles"
    kinds = frozenset({ActionKind.SESSION_LIFECYCLE})
    failure_policy = FailurePolicy.FAIL_OPEN

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        payload = request.payload
        if payload.event not in _GATED_EVENTS:
            return RuleOutcome.passed()

        quality = self.config.quality
        if not snapshot.checks.has_marker(snapshot.cwd, quality.marker_file):
            logger.debug("No %s in %s; quality gate skipped", quality.marker_file, snapshot.cwd)
            return RuleOutcome.passed()

        if payload.event == "TaskCompleted" and self._is_exempt(payload.task_subject):
            logger.debug("Task %r exempt from quality gate", payload.task_subject)
            return RuleOutcome.passed()

        if payload.event == "TeammateIdle":
            changed: list[str] = snapshot.require("changed_paths")
            if not any(self._is_guarded(p) for p in changed):
                return RuleOutcome.passed()

        for command in quality.commands:
            result = snapshot.checks.run(command, snapshot.cwd)
            if result is None:
                raise ExternalToolMissingError(executable=command[0])
            if not result.ok:
                tail = "\n".join(result.output.splitlines()[-OUTPUT_TAIL_LINES:])
                who = payload.teammate_name or payload.task_subject or "this task"
                return RuleOutcome.deny(
                    f"quality_gate: '{' '.join(command)}' failed (exit {result.return_code}) "
                    f"for {who}. Fix the failures before finishing.\n{tail}"
                )

        return RuleOutcome.passed()

    def _is_exempt(self, subject: str | None) -> bool:
        if not subject:
            return False
        words = set(re.findall(r"[a-z0-9]+", subject.lower()))
        return bool(words & {k.lower() for k in self.config.quality.skip_keywords})

    def _is_guarded(self, path: str) -> bool:
        posix = PurePosixPath(path)
        if posix.name in self.config.delegation.guarded_files:
            return True
        return any(part in self.config.delegation.guarded_dirs for part in posix.parts[:-1])
