"""
Unit tests for StateSnapshot.

Tests cover:
- Lazy fetch and memoization
- Absent versus empty values
- require() and require_transcript()
- Path relativization
"""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from hookgate.errors import StateUnavailableError, TranscriptUnavailableError
from hookgate.normalizer import normalize
from hookgate.schema import ActionRequest
from hookgate.snapshot import StateSnapshot


def bash(command: str = "ls", **context: str) -> ActionRequest:
    return normalize({"tool_name": "Bash", "tool_input": {"command": command}, **context})


class TestMemoization:
    """Each value is fetched at most once per snapshot."""

    def test_branch_fetched_once(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        git = MagicMock()
        git.current_branch.return_value = "feat/eng-1-x"
        snapshot = make_snapshot(bash(), git=git)

        assert snapshot.current_branch == "feat/eng-1-x"
        assert snapshot.current_branch == "feat/eng-1-x"
        git.current_branch.assert_called_once()

    def test_nothing_fetched_until_asked(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        git = MagicMock()
        make_snapshot(bash(), git=git)
        git.current_branch.assert_not_called()
        git.changed_paths.assert_not_called()

    def test_review_status_cached_per_range(self, make_snapshot: Callable[..., StateSnapshot], make_git) -> None:
        git = make_git()
        snapshot = make_snapshot(bash(), git=git)
        snapshot.review_status("main..HEAD")
        snapshot.review_status("main..HEAD")
        snapshot.review_status("main..feat/x")
        assert git.review_calls == ["main..HEAD", "main..feat/x"]

    def test_transcript_read_once(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        snapshot = make_snapshot(bash(transcript_path="/t.jsonl"))
        reader = MagicMock()
        reader.read_lines.return_value = ("a",)
        snapshot.transcripts = reader

        assert snapshot.transcript_lines == ("a",)
        assert snapshot.require_transcript() == ("a",)
        reader.read_lines.assert_called_once_with("/t.jsonl")


class TestAbsence:
    """Absent values are None; empty values are not."""

    def test_missing_transcript(self, make_snapshot: Callable[..., StateSnapshot], temp_dir: Path) -> None:
        snapshot = make_snapshot(bash(transcript_path=str(temp_dir / "gone.jsonl")))
        assert snapshot.transcript_lines is None
        with pytest.raises(TranscriptUnavailableError):
            snapshot.require_transcript()

    def test_empty_transcript(self, make_snapshot: Callable[..., StateSnapshot], write_transcript) -> None:
        snapshot = make_snapshot(bash(transcript_path=write_transcript()))
        assert snapshot.transcript_lines == ()
        assert snapshot.require_transcript() == ()

    def test_missing_teams_dir(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        snapshot = make_snapshot(bash())
        assert snapshot.team_member_counts is None
        with pytest.raises(StateUnavailableError) as exc_info:
            snapshot.require("team_member_counts")
        assert exc_info.value.state == "team_member_counts"

    def test_empty_teams_dir(self, make_snapshot: Callable[..., StateSnapshot], make_teams) -> None:
        snapshot = make_snapshot(bash(), teams_dir=make_teams({}))
        assert snapshot.team_member_counts == {}
        assert snapshot.require("team_member_counts") == {}

    def test_clean_tree_is_not_absent(self, make_snapshot: Callable[..., StateSnapshot], make_git) -> None:
        snapshot = make_snapshot(bash(), git=make_git(changed=[]))
        assert snapshot.require("changed_paths") == []

    def test_detached_head(self, make_snapshot: Callable[..., StateSnapshot], make_git) -> None:
        snapshot = make_snapshot(bash(), git=make_git(branch=None))
        with pytest.raises(StateUnavailableError):
            snapshot.require("current_branch")


class TestRelativePath:
    """Tests for relative_path."""

    def test_relative_unchanged(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        snapshot = make_snapshot(bash(cwd="/repo"))
        assert snapshot.relative_path("src/main.rs") == "src/main.rs"
        assert snapshot.relative_path("./src/../src/main.rs") == "src/main.rs"

    def test_under_repo_root(self, make_snapshot: Callable[..., StateSnapshot], make_git) -> None:
        snapshot = make_snapshot(bash(cwd="/repo/sub"), git=make_git(root=Path("/repo")))
        assert snapshot.relative_path("/repo/src/main.rs") == "src/main.rs"

    def test_under_cwd_without_repo(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        snapshot = make_snapshot(bash(cwd="/work"))
        assert snapshot.relative_path("/work/.claude/hooks/a.sh") == ".claude/hooks/a.sh"

    def test_outside_both(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        snapshot = make_snapshot(bash(cwd="/work"))
        assert snapshot.relative_path("/etc/passwd") == "/etc/passwd"

    def test_cwd_defaults_to_process_cwd(self, make_snapshot: Callable[..., StateSnapshot]) -> None:
        snapshot = make_snapshot(bash())
        assert snapshot.cwd == Path.cwd()
