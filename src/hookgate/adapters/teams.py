"""
Team-membership adapter for hookgate.

Each team lives in <teams_dir>/<team>/config.json:

    {"name": "team1", "members": [{"name": "agent1", "agentType": "coder"}, ...]}

Files are written by the host as agents join and leave. hookgate only reads
them, and takes no lock while doing so (see the governor rule).
"""

import json
import logging
from pathlib import Path

from hookgate.errors import TeamConfigUnreadableError, TeamsDirectoryMissingError

logger = logging.getLogger(__name__)


class TeamDirectory:
    """
    Read-only view of the team-membership directory.

    Attributes:
        root: Directory holding one sub-directory per team
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser()

    def list_team_configs(self) -> list[Path]:
        """
        List every team config file, sorted by path.

        Raises:
            TeamsDirectoryMissingError: If the teams directory does not exist
        """
        if not self.root.is_dir():
            raise TeamsDirectoryMissingError(path=str(self.root))
        return sorted(self.root.glob("*/config.json"))

    def active_count(self, config_path: Path) -> int:
        """
        Count members in one team config that are not marked inactive.

        Raises:
            TeamConfigUnreadableError: If the file cannot be read or has no
                members list
        """
        try:
            data = json.loads(config_path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise TeamConfigUnreadableError(path=str(config_path), underlying_error=str(e)) from e

        members = data.get("members") if isinstance(data, dict) else None
        if not isinstance(members, list):
            raise TeamConfigUnreadableError(
                path=str(config_path),
                underlying_error="'members' is not a list",
            )

        return sum(
            1 for m in members
            if not (isinstance(m, dict) and m.get("isActive") is False)
        )

    def member_counts(self) -> dict[str, int]:
        """
        Active member count per team, keyed by team directory name.

        Unreadable individual files count as zero.

        Raises:
            TeamsDirectoryMissingError: If the teams directory does not exist
        """
        counts: dict[str, int] = {}
        for config_path in self.list_team_configs():
            team = config_path.parent.name
            try:
                counts[team] = self.active_count(config_path)
            except TeamConfigUnreadableError as e:
                logger.warning("Skipping team %s: %s", team, e.message)
                counts[team] = 0
        return counts
