"""
Project check adapter for hookgate.

Runs the project's own build/test commands for the quality gate. A missing
executable is reported as None so the calling rule can fail open.
"""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

# Keep the tail of the output; the head of a cargo/pytest log is rarely useful
MAX_OUTPUT_CHARS = 2000


@dataclass(frozen=True)
class CheckResult:
    """
    Outcome of one project check command.

    Attributes:
        command: The argv that was run
        return_code: Process exit status
        output: Tail of combined stdout/stderr
    """

    command: tuple[str, ...]
    return_code: int
    output: str

    @property
    def ok(self) -> bool:
        return self.return_code == 0


class ProjectChecks:
    """Runs project check commands in a working directory."""

    def __init__(self, timeout_seconds: int = 600) -> None:
        self.timeout_seconds = timeout_seconds

    def has_marker(self, cwd: str | Path, marker_file: str) -> bool:
        return (Path(cwd) / marker_file).is_file()

    def run(self, command: list[str], cwd: str | Path) -> CheckResult | None:
        """
        Run one check command.

        Returns None when the executable is missing or the command cannot be
        completed (timeout, OS error).
        """
        if not command:
            return None
        if shutil.which(command[0]) is None:
            logger.info("Check executable %s not installed", command[0])
            return None

        try:
            result = subprocess.run(
                command,
                cwd=str(cwd),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                shell=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning("%s timed out after %ss", " ".join(command), self.timeout_seconds)
            return None
        except OSError as e:
            logger.warning("%s could not run: %s", " ".join(command), e)
            return None

        output = (result.stdout + result.stderr).strip()
        return CheckResult(
            command=tuple(command),
            return_code=result.returncode,
            output=output[-MAX_OUTPUT_CHARS:],
        )
