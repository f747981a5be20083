"""
Pytest configuration and fixtures for hookgate tests.

This module provides shared fixtures used across unit and integration
tests. External state (git, team directory, project checks) is replaced
with in-memory fakes so no test touches the real repository or home
directory.
"""

import json
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any, Generator

import pytest

from hookgate.adapters import CheckResult, ReviewState, TeamDirectory, TranscriptReader
from hookgate.engine import Gatekeeper
from hookgate.normalizer import normalize
from hookgate.rules.base import Rule
from hookgate.schema import ActionRequest, GateConfig, RuleOutcome
from hookgate.snapshot import StateSnapshot


# =============================================================================
# Fakes
# =============================================================================


class FakeGit:
    """In-memory stand-in for GitAdapter."""

    def __init__(
        self,
        branch: str | None = "feat/eng-1-add-gate",
        root: Path | None = None,
        default: str | None = "main",
        changed: list[str] | None = None,
        review: ReviewState | None = None,
        protected: tuple[str, ...] = ("main", "master"),
        review_error: Exception | None = None,
    ) -> None:
        self.branch = branch
        self.root = root
        self.default = default
        self.changed = changed
        self.review = review
        self.review_error = review_error
        self.protected = protected
        self.review_calls: list[str] = []

    def current_branch(self) -> str | None:
        return self.branch

    def repo_root(self) -> Path | None:
        return self.root

    def default_branch(self) -> str | None:
        return self.default

    def is_protected_ref(self, name: str) -> bool:
        return name in self.protected

    def changed_paths(self) -> list[str] | None:
        return self.changed

    def review_status(self, range_spec: str) -> ReviewState | None:
        self.review_calls.append(range_spec)
        if self.review_error is not None:
            raise self.review_error
        return self.review


class FakeChecks:
    """In-memory stand-in for ProjectChecks."""

    def __init__(self, marker: bool = True, results: dict[str, CheckResult | None] | None = None) -> None:
        self.marker = marker
        self.results = results or {}
        self.commands: list[list[str]] = []

    def has_marker(self, cwd: str | Path, marker_file: str) -> bool:
        return self.marker

    def run(self, command: list[str], cwd: str | Path) -> CheckResult | None:
        self.commands.append(command)
        key = command[1] if len(command) > 1 else command[0]
        if key in self.results:
            return self.results[key]
        return CheckResult(command=tuple(command), return_code=0, output="ok")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config() -> GateConfig:
    """Default configuration."""
    return GateConfig()


@pytest.fixture
def fake_git() -> FakeGit:
    """Git fake on a well-named feature branch."""
    return FakeGit()


@pytest.fixture
def fake_checks() -> FakeChecks:
    """Project checks fake where every command passes."""
    return FakeChecks()


@pytest.fixture
def write_transcript(temp_dir: Path) -> Callable[..., str]:
    """Write transcript lines (dicts or raw strings) and return the path."""
    counter = {"n": 0}

    def _write(*entries: dict[str, Any] | str) -> str:
        counter["n"] += 1
        path = temp_dir / f"transcript-{counter['n']}.jsonl"
        lines = [e if isinstance(e, str) else json.dumps(e) for e in entries]
        path.write_text("".join(f"{line}\n" for line in lines))
        return str(path)

    return _write


@pytest.fixture
def spawn_transcript(write_transcript: Callable[..., str]) -> str:
    """Transcript with sub-agent spawn evidence."""
    return write_transcript(
        {"name": "Task", "type": "tool_use"},
        {"name": "TeamCreate", "type": "tool_use"},
    )


@pytest.fixture
def make_teams(temp_dir: Path) -> Callable[[dict[str, list[dict[str, Any]]]], Path]:
    """Create a teams directory from {team: [member, ...]}."""

    def _make(teams: dict[str, list[dict[str, Any]]]) -> Path:
        root = temp_dir / "teams"
        root.mkdir(exist_ok=True)
        for team, members in teams.items():
            team_dir = root / team
            team_dir.mkdir(exist_ok=True)
            (team_dir / "config.json").write_text(json.dumps({"name": team, "members": members}))
        return root

    return _make


@pytest.fixture
def make_snapshot(
    config: GateConfig,
    fake_git: FakeGit,
    fake_checks: FakeChecks,
    temp_dir: Path,
) -> Callable[..., StateSnapshot]:
    """Build a StateSnapshot wired to fakes."""

    def _make(
        request: ActionRequest,
        gate_config: GateConfig | None = None,
        git: FakeGit | None = None,
        teams_dir: Path | None = None,
        checks: FakeChecks | None = None,
    ) -> StateSnapshot:
        return StateSnapshot(
            request,
            gate_config or config,
            git=git or fake_git,
            transcripts=TranscriptReader(),
            teams=TeamDirectory(teams_dir or temp_dir / "missing-teams"),
            checks=checks or fake_checks,
        )

    return _make


@pytest.fixture
def run_rule(config: GateConfig, make_snapshot: Callable[..., StateSnapshot]) -> Callable[..., RuleOutcome]:
    """Normalize a raw record and evaluate one rule class against it."""

    def _run(rule_cls: type[Rule], raw: dict[str, Any], gate_config: GateConfig | None = None, **snapshot_kwargs: Any) -> RuleOutcome:
        request = normalize(raw)
        cfg = gate_config or config
        snapshot = make_snapshot(request, gate_config=cfg, **snapshot_kwargs)
        return rule_cls(cfg).evaluate(request, snapshot)

    return _run


@pytest.fixture
def make_gatekeeper(config: GateConfig, make_snapshot: Callable[..., StateSnapshot]) -> Callable[..., Gatekeeper]:
    """Build a Gatekeeper whose snapshots use the fakes."""

    def _make(gate_config: GateConfig | None = None, **snapshot_kwargs: Any) -> Gatekeeper:
        cfg = gate_config or config

        def factory(request: ActionRequest, active: GateConfig) -> StateSnapshot:
            return make_snapshot(request, gate_config=active, **snapshot_kwargs)

        return Gatekeeper.from_config(cfg, snapshot_factory=factory)

    return _make


@pytest.fixture
def make_git() -> type[FakeGit]:
    """The git fake class, for tests that need a non-default repository state."""
    return FakeGit


@pytest.fixture
def make_checks() -> type[FakeChecks]:
    """The project checks fake class."""
    return FakeChecks
