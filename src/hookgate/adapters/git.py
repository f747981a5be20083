"""
Git state adapter for hookgate.

Read-only accessors for branch and ref state, plus the optional external
review tool. Git accessors return a value or None ("unavailable") and never
raise for an expected failure. The review tool raises ReviewToolError when it
is installed but cannot answer. Nothing here mutates the repository.

Security Note:
    Commands are always passed as a list (shell=False). Ref names coming
    from agent-controlled input are validated before they reach a subprocess.
"""

import logging
import re
import shutil
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from hookgate.errors import ReviewToolError

logger = logging.getLogger(__name__)

_REF_CHARS = re.compile(r"^[A-Za-z0-9._/~^@:+-]+$")
_REF_PREFIXES = ("refs/heads/", "refs/remotes/origin/", "heads/", "origin/")


@dataclass(frozen=True)
class ReviewState:
    """
    Per-hunk review progress reported by the external review tool.

    Attributes:
        reviewed: Hunks marked reviewed
        total: Total hunks in the range
        unreviewed: Hunks never reviewed
        stale: Hunks reviewed before the code changed again
    """

    reviewed: int
    total: int
    unreviewed: int
    stale: int

    @property
    def fully_reviewed(self) -> bool:
        return self.unreviewed == 0 and self.stale == 0


def validate_ref(ref: str) -> bool:
    """
    Check that a ref or range spec is safe to hand to git.

    Examples:
        main -> True
        main..feat/eng-1-x -> True
        --upload-pack=evil -> False
    """
    if not ref or ref.startswith("-"):
        return False
    return bool(_REF_CHARS.match(ref))


def short_ref(name: str) -> str:
    """
    Reduce a ref spelling to its branch name.

    Examples:
        +refs/heads/main -> main
        origin/main -> main
        HEAD:main -> main
    """
    name = name.lstrip("+")
    if ":" in name:
        name = name.rsplit(":", 1)[1]
    for prefix in _REF_PREFIXES:
        if name.startswith(prefix):
            return name[len(prefix):]
    return name


def is_protected_ref(name: str, protected: Iterable[str]) -> bool:
    """Return True when `name` spells one of the protected branches."""
    return short_ref(name) in set(protected)


def parse_review_status(output: str) -> ReviewState | None:
    """
    Parse the progress summary printed by `git-review status <range>`.

    Returns None when the output is not recognized.
    """
    if "No changes to review" in output:
        return ReviewState(reviewed=0, total=0, unreviewed=0, stale=0)

    reviewed = re.search(r"Reviewed:\s+(\d+)/(\d+)", output)
    unreviewed = re.search(r"Unreviewed:\s+(\d+)", output)
    stale = re.search(r"Stale:\s+(\d+)", output)
    if not (reviewed and unreviewed and stale):
        return None

    return ReviewState(
        reviewed=int(reviewed.group(1)),
        total=int(reviewed.group(2)),
        unreviewed=int(unreviewed.group(1)),
        stale=int(stale.group(1)),
    )


class GitAdapter:
    """
    Read-only view of a git working tree.

    Attributes:
        cwd: Directory git commands run in
        protected_branches: Branch names treated as protected
        review_tool: Executable name of the external review tool
        timeout_seconds: Timeout for plain git commands
        review_timeout_seconds: Timeout for the review tool
    """

    def __init__(
        self,
        cwd: str | Path,
        protected_branches: Iterable[str] = ("main", "master"),
        review_tool: str = "git-review",
        timeout_seconds: int = 10,
        review_timeout_seconds: int = 30,
    ) -> None:
        self.cwd = Path(cwd)
        self.protected_branches = tuple(protected_branches)
        self.review_tool = review_tool
        self.timeout_seconds = timeout_seconds
        self.review_timeout_seconds = review_timeout_seconds

    def current_branch(self) -> str | None:
        """
        Name of the checked-out branch.

        None when detached, outside a repository, or git is missing.
        Works on an unborn branch (fresh repo with no commits).
        """
        return self._git("symbolic-ref", "--short", "-q", "HEAD")

    def repo_root(self) -> Path | None:
        out = self._git("rev-parse", "--show-toplevel")
        return Path(out) if out else None

    def default_branch(self) -> str | None:
        """Detect the default branch (origin/HEAD, then the protected names in order)."""
        out = self._git("symbolic-ref", "--short", "-q", "refs/remotes/origin/HEAD")
        if out:
            return short_ref(out)
        for name in self.protected_branches:
            if self._git("rev-parse", "--verify", "--quiet", f"refs/heads/{name}") is not None:
                return name
        return None

    def is_protected_ref(self, name: str) -> bool:
        return is_protected_ref(name, self.protected_branches)

    def changed_paths(self) -> list[str] | None:
        """Paths with uncommitted changes, relative to the repo root."""
        out = self._git("status", "--porcelain", strip=False)
        if out is None:
            return None
        paths = []
        for line in out.splitlines():
            if len(line) < 4:
                continue
            entry = line[3:]
            # Renames are reported as "old -> new"
            if " -> " in entry:
                entry = entry.split(" -> ", 1)[1]
            paths.append(entry.strip('"'))
        return paths

    def review_status(self, range_spec: str) -> ReviewState | None:
        """
        Ask the external review tool for progress over `range_spec`.

        Returns None only when the tool is not installed.

        Raises:
            ValueError: If `range_spec` is not a safe ref range
            ReviewToolError: If the tool times out, cannot start, exits
                non-zero, or prints output that is not recognized
        """
        if not validate_ref(range_spec):
            raise ValueError(f"unsafe review range: {range_spec!r}")

        executable = shutil.which(self.review_tool)
        if executable is None:
            logger.info("Review tool %s not installed", self.review_tool)
            return None

        def failed(detail: str) -> ReviewToolError:
            logger.warning("Review tool %s failed for %s: %s", self.review_tool, range_spec, detail)
            return ReviewToolError(executable=self.review_tool, range_spec=range_spec, detail=detail)

        try:
            result = subprocess.run(
                [executable, "status", range_spec],
                cwd=str(self.cwd),
                capture_output=True,
                text=True,
                timeout=self.review_timeout_seconds,
                shell=False,
            )
        except subprocess.TimeoutExpired as e:
            raise failed(f"timed out after {self.review_timeout_seconds}s") from e
        except OSError as e:
            raise failed(f"could not start: {e}") from e

        if result.returncode != 0:
            raise failed(f"exited {result.returncode}: {result.stderr.strip()}")

        state = parse_review_status(result.stdout)
        if state is None:
            raise failed("unrecognized output")
        return state

    def _git(self, *args: str, strip: bool = True) -> str | None:
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=str(self.cwd),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                shell=False,
            )
        except FileNotFoundError:
            logger.info("git not found on PATH")
            return None
        except subprocess.TimeoutExpired:
            logger.warning("git %s timed out after %ss", " ".join(args), self.timeout_seconds)
            return None
        except OSError as e:
            # Includes a cwd that does not exist
            logger.debug("git %s could not run: %s", " ".join(args), e)
            return None

        if result.returncode != 0:
            return None
        out = result.stdout.strip() if strip else result.stdout
        return out if out or not strip else None
