"""
Per-invocation state snapshot for hookgate.

The snapshot sits between rules and adapters. Each value is fetched lazily
the first time a rule asks for it and memoized for the rest of the
invocation, so a chain of ten rules reads the transcript at most once.
Snapshots are never shared across invocations.

Absence is always None and is distinct from an empty value: an empty
transcript is (), a missing one is None.
"""

import logging
import os
from functools import cached_property
from pathlib import Path
from typing import Any

from hookgate.adapters import GitAdapter, ProjectChecks, ReviewState, TeamDirectory, TranscriptReader
from hookgate.errors import StateUnavailableError, TeamsDirectoryMissingError, TranscriptUnavailableError
from hookgate.schema import ActionRequest, GateConfig

logger = logging.getLogger(__name__)


class StateSnapshot:
    """
    Lazily populated view of the external facts rules may need.

    Attributes:
        request: The request being evaluated
        config: Active configuration
        cwd: Working directory used for git and project checks
    """

    def __init__(
        self,
        request: ActionRequest,
        config: GateConfig,
        git: GitAdapter | None = None,
        transcripts: TranscriptReader | None = None,
        teams: TeamDirectory | None = None,
        checks: ProjectChecks | None = None,
    ) -> None:
        self.request = request
        self.config = config
        self.cwd = Path(request.context.cwd or os.getcwd())
        self.git = git or GitAdapter(
            self.cwd,
            protected_branches=config.protected_branches,
            review_tool=config.review.tool,
            review_timeout_seconds=config.review.timeout_seconds,
        )
        self.transcripts = transcripts or TranscriptReader()
        self.teams = teams or TeamDirectory(config.governor.teams_path)
        self.checks = checks or ProjectChecks(timeout_seconds=config.quality.timeout_seconds)
        self._review_cache: dict[str, ReviewState | None] = {}

    # =========================================================================
    # VCS
    # =========================================================================

    @cached_property
    def current_branch(self) -> str | None:
        return self.git.current_branch()

    @cached_property
    def repo_root(self) -> Path | None:
        return self.git.repo_root()

    @cached_property
    def default_branch(self) -> str | None:
        return self.git.default_branch()

    @cached_property
    def changed_paths(self) -> list[str] | None:
        return self.git.changed_paths()

    def review_status(self, range_spec: str) -> ReviewState | None:
        if range_spec not in self._review_cache:
            self._review_cache[range_spec] = self.git.review_status(range_spec)
        return self._review_cache[range_spec]

    # =========================================================================
    # Transcript
    # =========================================================================

    @cached_property
    def _transcript(self) -> tuple[str, ...] | TranscriptUnavailableError:
        try:
            return self.transcripts.read_lines(self.request.context.transcript_path)
        except TranscriptUnavailableError as e:
            return e

    @property
    def transcript_lines(self) -> tuple[str, ...] | None:
        result = self._transcript
        return None if isinstance(result, TranscriptUnavailableError) else result

    def require_transcript(self) -> tuple[str, ...]:
        """
        Transcript lines, or raise.

        Raises:
            TranscriptUnavailableError: If the transcript is absent or unreadable
        """
        result = self._transcript
        if isinstance(result, TranscriptUnavailableError):
            raise result
        return result

    # =========================================================================
    # Team membership
    # =========================================================================

    @cached_property
    def team_member_counts(self) -> dict[str, int] | None:
        try:
            return self.teams.member_counts()
        except TeamsDirectoryMissingError:
            logger.debug("Teams directory %s absent", self.teams.root)
            return None

    # =========================================================================
    # Helpers
    # =========================================================================

    def require(self, name: str) -> Any:
        """
        Return a snapshot attribute, raising when it is absent.

        Raises:
            StateUnavailableError: If the value is None
        """
        value = getattr(self, name)
        if value is None:
            raise StateUnavailableError(state=name)
        return value

    def relative_path(self, path: str) -> str:
        """
        Express a tool path relative to the repo root (or cwd) when possible.

        Absolute paths outside both are returned normalized but absolute.
        """
        candidate = Path(os.path.normpath(path))
        if not candidate.is_absolute():
            return candidate.as_posix()
        for base in (self.repo_root, self.cwd):
            if base is None:
                continue
            try:
                return candidate.relative_to(base).as_posix()
            except ValueError:
                continue
        return candidate.as_posix()
