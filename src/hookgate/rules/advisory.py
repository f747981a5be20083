"""
Advisory-only rules.

These rules never block. They attach a message to an otherwise-allowed
decision so the agent can correct course on its own:

    - secret_scan: credential-shaped strings in written content
    - panic_patterns: panic-prone constructs in non-test source
    - navigation_hint: reading whole source files or grepping for a symbol
      when a symbol-aware navigation tool is available
    - memory_checkpoint: source edits in a session that never stored a memory

Secret detection is heuristic. It exists to catch accidents, not
adversaries, and is not a security boundary.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePosixPath

from hookgate.adapters.transcript import iter_tool_uses
from hookgate.rules.base import Rule
from hookgate.rules.commands import program, split_segments
from hookgate.rules.registry import register_rule
from hookgate.schema import ActionKind, ActionRequest, FailurePolicy, RuleOutcome
from hookgate.snapshot import StateSnapshot

logger = logging.getLogger(__name__)

_TEST_DIRS = {"tests", "test", "__tests__", "spec", "testdata", "fixtures"}
_TEST_NAME = re.compile(r"(^test_|_test\.|\.test\.|_spec\.|\.spec\.)")
_EDIT_TOOLS = {"Write", "Edit", "MultiEdit", "NotebookEdit"}
_READ_COMMANDS = {"cat", "head", "tail", "less", "more", "bat"}
_SEARCH_COMMANDS = {"grep", "rg", "ag"}
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def is_test_path(path: str) -> bool:
    """True for files under a test directory or named like a test."""
    posix = PurePosixPath(path)
    if any(part in _TEST_DIRS for part in posix.parts[:-1]):
        return True
    return bool(_TEST_NAME.search(posix.name))


def has_extension(path: str, extensions: list[str]) -> bool:
    return PurePosixPath(path).suffix.lower() in {e.lower() for e in extensions}


# =============================================================================
# Secret scanning
# =============================================================================


@dataclass(frozen=True)
class SecretMatcher:
    """
    One independent credential detector.

    Attributes:
        label: Short description used in the advisory
        pattern: Compiled regex; any match flags the content
    """

    label: str
    pattern: re.Pattern[str]

    def matches(self, content: str) -> bool:
        return self.pattern.search(content) is not None


DEFAULT_SECRET_MATCHERS: tuple[SecretMatcher, ...] = (
    SecretMatcher("AWS access key id", re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}")),
    SecretMatcher("private key", re.compile(r"-----BEGIN (?:[A-Z]+ )?PRIVATE KEY-----")),
    SecretMatcher(
        "hard-coded credential",
        re.compile(
            r"(?i)\b(?:password|passwd|pwd|secret|api[_-]?key|access[_-]?token|auth[_-]?token|token)\b"
            r"\s*[:=]\s*[\"'][^\"'\s]{8,}[\"']"
        ),
    ),
    SecretMatcher(
        "connection string with embedded password",
        re.compile(r"\b[a-z][a-z0-9+.-]*://[^/\s:@]+:[^/\s@]+@"),
    ),
    SecretMatcher("GitHub token", re.compile(r"\bgh[pousr]_[A-Za-z0-9]{36,}")),
    SecretMatcher("Slack token", re.compile(r"\bxox[abposr]-[A-Za-z0-9-]{10,}")),
    SecretMatcher("JSON web token", re.compile(r"\beyJ[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}\.[A-Za-z0-9_-]{10,}")),
)


@register_rule
class SecretScanRule(Rule):
    """Flag credential-shaped strings in written content."""

    name = "secret_scan"
    description = "Advise when written content looks like it contains a secret"
    kinds = frozenset({ActionKind.FILE_WRITE})
    failure_policy = FailurePolicy.FAIL_OPEN
    advisory_only = True

    matchers: tuple[SecretMatcher, ...] = DEFAULT_SECRET_MATCHERS

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        payload = request.payload
        if not payload.content:
            return RuleOutcome.passed()
        if is_test_path(payload.path) or has_extension(payload.path, self.config.advisories.skip_extensions):
            return RuleOutcome.passed()

        found = [m.label for m in self.matchers if m.matches(payload.content)]
        if not found:
            return RuleOutcome.passed()

        logger.info("Possible secret in %s: %s", payload.path, ", ".join(found))
        return RuleOutcome.advise(
            f"secret_scan: {payload.path} may contain a {', '.join(found)}. "
            f"Load secrets from the environment or a secret store instead of "
            f"committing them."
        )


# =============================================================================
# Panic-prone patterns
# =============================================================================

_PANIC_PATTERNS: dict[str, tuple[tuple[str, re.Pattern[str]], ...]] = {
    ".rs": (
        (".unwrap()", re.compile(r"\.unwrap\(\)")),
        (".expect(", re.compile(r"\.expect\(")),
        ("panic!", re.compile(r"\bpanic!\s*\(")),
        ("unreachable!", re.compile(r"\bunreachable!\s*\(")),
        ("todo!", re.compile(r"\btodo!\s*\(")),
        ("unimplemented!", re.compile(r"\bunimplemented!\s*\(")),
    ),
    ".go": (("panic(", re.compile(r"\bpanic\(")),),
}


@register_rule
class PanicPatternRule(Rule):
    """Flag panic-prone constructs in non-test source."""

    name = "panic_patterns"
    description = "Advise on unwrap/expect/panic in non-test source"
    kinds = frozenset({ActionKind.FILE_WRITE})
    failure_policy = FailurePolicy.FAIL_OPEN
    advisory_only = True

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        payload = request.payload
        patterns = _PANIC_PATTERNS.get(PurePosixPath(payload.path).suffix)
        if not payload.content or not patterns or is_test_path(payload.path):
            return RuleOutcome.passed()

        found = [label for label, pattern in patterns if pattern.search(payload.content)]
        if not found:
            return RuleOutcome.passed()

        return RuleOutcome.advise(
            f"panic_patterns: {payload.path} uses {', '.join(found)}. "
            f"Prefer propagating errors in library code."
        )


# =============================================================================
# Navigation hints
# =============================================================================


@register_rule
class NavigationHintRule(Rule):
    """Suggest symbol-aware navigation over whole-file reads."""

    name = "navigation_hint"
    description = "Advise using symbol navigation instead of reading or grepping source"
    kinds = frozenset({ActionKind.FILE_READ, ActionKind.SHELL_COMMAND})
    failure_policy = FailurePolicy.FAIL_OPEN
    advisory_only = True

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        if request.kind == ActionKind.FILE_READ:
            hint = self._read_hint(request.tool_name, request.payload.path, request.payload.pattern)
        else:
            hint = self._shell_hint(request.payload.command)
        return RuleOutcome.advise(f"navigation_hint: {hint}") if hint else RuleOutcome.passed()

    def _is_source(self, path: str | None) -> bool:
        return bool(path) and has_extension(path, self.config.advisories.source_extensions)

    def _read_hint(self, tool_name: str | None, path: str | None, pattern: str | None) -> str | None:
        if pattern is not None:
            if tool_name == "Glob" or not _IDENTIFIER.match(pattern):
                return None
            return (
                f"searching for the identifier '{pattern}'? A symbol lookup "
                f"(find_symbol / find_referencing_symbols) returns definitions "
                f"and references directly."
            )
        if self._is_source(path):
            return (
                f"reading all of {path}. Get a symbols overview first and read "
                f"only the bodies you need."
            )
        return None

    def _shell_hint(self, command: str) -> str | None:
        for segment in split_segments(command):
            name = program(segment)
            args = [a for a in segment[1:] if not a.startswith("-")]
            if name in _READ_COMMANDS and any(self._is_source(a) for a in args):
                source = next(a for a in args if self._is_source(a))
                return self._read_hint(None, source, None)
            if name in _SEARCH_COMMANDS and args and _IDENTIFIER.match(args[0]):
                return self._read_hint(None, None, args[0])
        return None


# =============================================================================
# Memory checkpoint
# =============================================================================


@register_rule
class MemoryCheckpointRule(Rule):
    """Remind the agent to store a memory after editing source."""

    name = "memory_checkpoint"
    description = "Advise storing a memory when a session edited source without one"
    kinds = frozenset({ActionKind.SESSION_LIFECYCLE})
    failure_policy = FailurePolicy.FAIL_OPEN
    advisory_only = True

    def evaluate(self, request: ActionRequest, snapshot: StateSnapshot) -> RuleOutcome:
        payload = request.payload
        # stop_hook_active means we are already continuing because of a stop hook
        if payload.event != "Stop" or payload.stop_hook_active:
            return RuleOutcome.passed()

        edited: list[str] = []
        stored = False
        markers = self.config.advisories.memory_markers
        for name, tool_input in iter_tool_uses(snapshot.require_transcript()):
            if any(marker in name for marker in markers):
                stored = True
            elif name in _EDIT_TOOLS:
                path = tool_input.get("file_path") or tool_input.get("notebook_path")
                if isinstance(path, str) and self._is_source_edit(path):
                    edited.append(path)

        if not edited or stored:
            return RuleOutcome.passed()

        return RuleOutcome.advise(
            f"memory_checkpoint: this session edited {len(edited)} source file(s) "
            f"(e.g. {edited[0]}) but stored no memory. Record what changed and why "
            f"before stopping."
        )

    def _is_source_edit(self, path: str) -> bool:
        if has_extension(path, self.config.advisories.source_extensions):
            return True
        parts = PurePosixPath(path).parts
        return any(part in self.config.delegation.guarded_dirs for part in parts[:-1])
