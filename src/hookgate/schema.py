"""
Schema definitions for hookgate.

This module defines all the Pydantic models used throughout hookgate:
- ActionRequest and its kind-specific payloads: what the agent wants to do
- RuleOutcome: what a single rule thinks about it
- Decision: what the chain decided
- GateConfig: which branches, paths and limits the rules enforce

Design Decisions:
    - All models reject unknown fields (extra="forbid")
    - Request, outcome and decision models are immutable (frozen=True)
    - Optional request fields are None when absent, never silently defaulted
    - Config has sensible defaults so an empty YAML file is a valid config
"""

import re
from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from hookgate.errors import ConfigError


# =============================================================================
# Enums
# =============================================================================


class ActionKind(str, Enum):
    """The closed set of action categories a request can belong to."""

    FILE_WRITE = "file_write"
    FILE_READ = "file_read"
    SHELL_COMMAND = "shell_command"
    AGENT_SPAWN = "agent_spawn"
    SESSION_LIFECYCLE = "session_lifecycle"
    PROMPT_SUBMIT = "prompt_submit"


class OutcomeType(str, Enum):
    """What a single rule concluded."""

    PASS = "pass"
    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"
    ADVISE = "advise"


class Verdict(str, Enum):
    """The terminal decision for a request."""

    ALLOW = "allow"
    DENY = "deny"
    ASK = "ask"


class FailurePolicy(str, Enum):
    """
    How a rule behaves when state it needs is unavailable.

    FAIL_OPEN treats absence as PASS; FAIL_SECURE treats absence as DENY.
    """

    FAIL_OPEN = "fail_open"
    FAIL_SECURE = "fail_secure"


# =============================================================================
# Request Models
# =============================================================================


class FileWritePayload(BaseModel):
    """
    A proposed mutation of a single file.

    Attributes:
        path: Target path exactly as the tool supplied it
        content: New text being written (joined for multi-edit tools)
        operation: "write", "edit" or "notebook_edit"
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str = Field(..., min_length=1, description="Target file path")
    content: str | None = Field(default=None, description="New content, if any")
    operation: str = Field(default="write", description="Kind of mutation")


class FileReadPayload(BaseModel):
    """A read or search over files."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    path: str | None = Field(default=None, description="File or directory being read")
    pattern: str | None = Field(default=None, description="Search pattern, if a search")


class ShellCommandPayload(BaseModel):
    """A shell command line proposed for execution."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: str = Field(..., description="Full command string")
    description: str | None = Field(default=None, description="Agent-supplied summary")


class AgentSpawnPayload(BaseModel):
    """
    A request to start a sub-agent.

    Attributes:
        subagent_type: Requested agent identity; None for in-process tasks
        team_name: Team label the agent will be registered under
        prompt: Instructions for the sub-agent
        name: Optional display name
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    subagent_type: str | None = None
    team_name: str | None = None
    prompt: str | None = None
    name: str | None = None


class LifecyclePayload(BaseModel):
    """A session lifecycle event (stop, task completed, teammate idle, ...)."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    event: str = Field(..., min_length=1, description="Lifecycle event name")
    task_subject: str | None = None
    teammate_name: str | None = None
    stop_hook_active: bool | None = None


class PromptPayload(BaseModel):
    """A user prompt submitted to the agent."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    prompt: str | None = None


Payload = Union[
    FileWritePayload,
    FileReadPayload,
    ShellCommandPayload,
    AgentSpawnPayload,
    LifecyclePayload,
    PromptPayload,
]

PAYLOAD_TYPES: dict[ActionKind, type[BaseModel]] = {
    ActionKind.FILE_WRITE: FileWritePayload,
    ActionKind.FILE_READ: FileReadPayload,
    ActionKind.SHELL_COMMAND: ShellCommandPayload,
    ActionKind.AGENT_SPAWN: AgentSpawnPayload,
    ActionKind.SESSION_LIFECYCLE: LifecyclePayload,
    ActionKind.PROMPT_SUBMIT: PromptPayload,
}


class RequestContext(BaseModel):
    """
    Ambient fields available regardless of kind.

    Attributes:
        cwd: Working directory of the agent session
        session_id: Host session identifier
        transcript_path: Path to the session transcript log (may be absent)
        event_name: Host hook event name (e.g. "PreToolUse")
        extra: Every raw field the normalizer did not consume
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    cwd: str | None = None
    session_id: str | None = None
    transcript_path: str | None = None
    event_name: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)


class ActionRequest(BaseModel):
    """
    A normalized, immutable description of a proposed action.

    Built once per invocation by the normalizer. Downstream code looks at
    `kind` and the typed payload, never at raw field names.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ActionKind
    tool_name: str | None = None
    payload: Payload
    context: RequestContext = Field(default_factory=RequestContext)

    @model_validator(mode="after")
    def check_payload_matches_kind(self) -> "ActionRequest":
        """The payload type must be the one bound to the kind."""
        expected = PAYLOAD_TYPES[self.kind]
        if not isinstance(self.payload, expected):
            msg = f"{self.kind.value} requires {expected.__name__}, got {type(self.payload).__name__}"
            raise ValueError(msg)
        return self


# =============================================================================
# Outcome and Decision Models
# =============================================================================


class RuleOutcome(BaseModel):
    """
    Result of evaluating one rule.

    PASS and ALLOW carry no message; DENY, ASK and ADVISE must carry one.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: OutcomeType
    message: str | None = None

    @model_validator(mode="after")
    def check_message(self) -> "RuleOutcome":
        """Blocking and advisory outcomes must explain themselves."""
        needs_message = (OutcomeType.DENY, OutcomeType.ASK, OutcomeType.ADVISE)
        if self.type in needs_message and not self.message:
            msg = f"{self.type.value} outcome requires a message"
            raise ValueError(msg)
        return self

    @property
    def is_terminal(self) -> bool:
        return self.type in (OutcomeType.DENY, OutcomeType.ASK)

    @classmethod
    def passed(cls) -> "RuleOutcome":
        """The rule has no opinion."""
        return cls(type=OutcomeType.PASS)

    @classmethod
    def allow(cls) -> "RuleOutcome":
        """Explicit allow; later rules still run."""
        return cls(type=OutcomeType.ALLOW)

    @classmethod
    def deny(cls, reason: str) -> "RuleOutcome":
        return cls(type=OutcomeType.DENY, message=reason)

    @classmethod
    def ask(cls, reason: str) -> "RuleOutcome":
        return cls(type=OutcomeType.ASK, message=reason)

    @classmethod
    def advise(cls, message: str) -> "RuleOutcome":
        return cls(type=OutcomeType.ADVISE, message=message)


class RuleTrace(BaseModel):
    """One evaluated rule and what it returned."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rule: str
    outcome: RuleOutcome
    note: str | None = Field(
        default=None,
        description="Set when the outcome came from a failure policy, not the rule",
    )


class Decision(BaseModel):
    """
    The outcome of running a chain.

    Attributes:
        verdict: allow, deny or ask
        reason: Human-readable explanation (always set for deny/ask)
        advisories: Non-blocking messages, in rule order
        rule: Name of the rule that produced the terminal outcome
        trace: Every rule evaluated, in order
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    verdict: Verdict
    reason: str | None = None
    advisories: tuple[str, ...] = ()
    rule: str | None = None
    trace: tuple[RuleTrace, ...] = ()

    @model_validator(mode="after")
    def check_reason(self) -> "Decision":
        if self.verdict != Verdict.ALLOW and not self.reason:
            msg = f"{self.verdict.value} decision requires a reason"
            raise ValueError(msg)
        return self

    @property
    def allowed(self) -> bool:
        return self.verdict == Verdict.ALLOW

    @classmethod
    def allow(cls, advisories: tuple[str, ...] = (), reason: str | None = None) -> "Decision":
        """Create an ALLOW decision."""
        return cls(verdict=Verdict.ALLOW, reason=reason, advisories=advisories)


# =============================================================================
# Configuration Models
# =============================================================================


def _check_regex(pattern: str) -> None:
    """Raise ValueError (which pydantic reports) for a pattern that does not compile."""
    try:
        re.compile(pattern)
    except re.error as e:
        msg = f"invalid regex {pattern!r}: {e}"
        raise ValueError(msg) from e


class DelegationConfig(BaseModel):
    """
    Paths that may only be changed after a sub-agent has been spawned.

    Attributes:
        guarded_dirs: Directory names whose contents are guarded (any depth)
        guarded_files: File names that are guarded wherever they appear
        allow_paths: Repo-relative prefixes that bypass the rule entirely
        spawn_markers: Tool names in the transcript that count as spawn evidence
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    guarded_dirs: list[str] = Field(default_factory=lambda: ["src", "tests", "benches", "examples"])
    guarded_files: list[str] = Field(default_factory=lambda: ["Cargo.toml", "Cargo.lock", "build.rs"])
    allow_paths: list[str] = Field(default_factory=lambda: [".claude", "docs"])
    spawn_markers: list[str] = Field(default_factory=lambda: ["Task", "Agent", "TeamCreate"])


class ReviewConfig(BaseModel):
    """
    External review gate settings.

    Attributes:
        tool: Executable that reports review progress
        commands: Regexes for merge/publish-like shell commands
        timeout_seconds: Timeout for the review tool
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool: str = "git-review"
    commands: list[str] = Field(
        default_factory=lambda: [
            r"\bgit\s+merge\b",
            r"\bgh\s+pr\s+merge\b",
            r"\bcargo\s+publish\b",
            r"\bnpm\s+publish\b",
        ]
    )
    timeout_seconds: int = Field(default=30, gt=0, le=300)

    @field_validator("commands")
    @classmethod
    def validate_patterns(cls, v: list[str]) -> list[str]:
        for pattern in v:
            _check_regex(pattern)
        return v


class GovernorConfig(BaseModel):
    """
    Resource governor (concurrent agent cap) settings.

    Attributes:
        agent_cap: Maximum number of concurrently active team members
        teams_dir: Directory holding one sub-directory per team with config.json
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    agent_cap: int = Field(default=3, gt=0)
    teams_dir: str = "~/.claude/teams"

    @property
    def teams_path(self) -> Path:
        return Path(self.teams_dir).expanduser()


class AdvisoryConfig(BaseModel):
    """Toggles and file filters for the advisory-only rules."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    secret_scan: bool = True
    panic_patterns: bool = True
    navigation_hint: bool = True
    memory_checkpoint: bool = True
    source_extensions: list[str] = Field(
        default_factory=lambda: [".rs", ".py", ".ts", ".tsx", ".js", ".go", ".java", ".c", ".cpp", ".h"]
    )
    skip_extensions: list[str] = Field(
        default_factory=lambda: [".md", ".txt", ".png", ".jpg", ".jpeg", ".gif", ".svg", ".ico", ".lock"]
    )
    memory_markers: list[str] = Field(default_factory=lambda: ["memory_store"])


class QualityConfig(BaseModel):
    """
    Quality gate run on task completion and teammate idle.

    Attributes:
        marker_file: File whose presence in cwd enables the gate
        commands: Commands to run, in order; the first failure blocks
        skip_keywords: Task subject words that exempt a task (docs, plans, research)
        timeout_seconds: Per-command timeout
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    marker_file: str = "Cargo.toml"
    commands: list[list[str]] = Field(
        default_factory=lambda: [
            ["cargo", "clippy", "--quiet", "--", "-D", "warnings"],
            ["cargo", "test", "--quiet"],
        ]
    )
    skip_keywords: list[str] = Field(
        default_factory=lambda: ["doc", "docs", "documentation", "plan", "research", "readme"]
    )
    timeout_seconds: int = Field(default=600, gt=0)


class GateConfig(BaseModel):
    """
    Complete hookgate configuration.

    Attributes:
        version: Config schema version
        protected_branches: Branches that may never be mutated directly
        branch_types: Allowed `<type>` tokens in branch names
        ticket_pattern: Regex for a ticket id inside a branch name
        hooks_dir: Repo-relative directory holding the hook scripts
        chains: Optional per-kind override of the rule order
        log_file: Optional path for a diagnostic log file
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    version: str = "1"
    protected_branches: list[str] = Field(default_factory=lambda: ["main", "master"])
    branch_types: list[str] = Field(
        default_factory=lambda: ["feat", "fix", "chore", "docs", "refactor", "test", "perf", "ci", "build"]
    )
    ticket_pattern: str = r"[a-z]+-\d+"
    hooks_dir: str = ".claude/hooks"
    delegation: DelegationConfig = Field(default_factory=DelegationConfig)
    review: ReviewConfig = Field(default_factory=ReviewConfig)
    governor: GovernorConfig = Field(default_factory=GovernorConfig)
    advisories: AdvisoryConfig = Field(default_factory=AdvisoryConfig)
    quality: QualityConfig = Field(default_factory=QualityConfig)
    chains: dict[ActionKind, list[str]] | None = None
    log_file: str | None = None

    @field_validator("ticket_pattern")
    @classmethod
    def validate_ticket_pattern(cls, v: str) -> str:
        _check_regex(v)
        return v

    @field_validator("protected_branches")
    @classmethod
    def validate_protected(cls, v: list[str]) -> list[str]:
        if any(not name.strip() for name in v):
            msg = "protected branch names cannot be blank"
            raise ValueError(msg)
        return v


# =============================================================================
# YAML Loading Helpers
# =============================================================================


def load_config(path: Path | str) -> GateConfig:
    """
    Load a config from a YAML file.

    Args:
        path: Path to the YAML file

    Returns:
        Validated GateConfig

    Raises:
        ConfigError: If the file is unreadable, not YAML, or fails validation
    """
    path = Path(path)
    try:
        with path.open() as f:
            content = f.read()
    except OSError as e:
        raise ConfigError(message=f"Cannot read config {path}: {e}", path=str(path)) from e

    return _parse_config(content, str(path))


def load_config_from_string(content: str) -> GateConfig:
    """Load a config from a YAML string."""
    return _parse_config(content, None)


def _parse_config(content: str, source: str | None) -> GateConfig:
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(message=f"Config is not valid YAML: {e}", path=source) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(message="Config must be a YAML mapping", path=source)

    try:
        return GateConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            message=f"Config failed validation: {e.error_count()} error(s)",
            path=source,
            suggestion=str(e),
        ) from e
