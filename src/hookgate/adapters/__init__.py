"""
State adapters for hookgate.

Adapters are the only code that touches the outside world: git, the session
transcript, the team-membership directory and project check commands. They
are read-only and return a value or an explicit "unavailable" signal.
"""

from hookgate.adapters.checks import CheckResult, ProjectChecks
from hookgate.adapters.git import GitAdapter, ReviewState
from hookgate.adapters.teams import TeamDirectory
from hookgate.adapters.transcript import TranscriptReader

__all__ = [
    "CheckResult",
    "GitAdapter",
    "ProjectChecks",
    "ReviewState",
    "TeamDirectory",
    "TranscriptReader",
]
