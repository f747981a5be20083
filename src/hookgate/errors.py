"""
Exception hierarchy for hookgate.

All hookgate exceptions inherit from HookgateError, allowing callers to catch
all hookgate-specific exceptions with a single except clause.

Exception Categories:
    - NormalizationError: Raw hook input cannot be turned into an ActionRequest
    - StateUnavailableError: An external fact a rule needs is absent
    - ConfigError: Invalid configuration or chain wiring

Design Principles:
    - All errors have error codes for programmatic handling
    - All errors include context (field, path, rule where applicable)
    - All errors provide actionable suggestions where possible
    - None of these ever escape Gatekeeper.check(); they are converted
      into decisions according to each rule's failure policy
"""

from dataclasses import dataclass, field
from typing import Any


# =============================================================================
# Error Codes
# =============================================================================

# Normalization errors: 1xxx
ERROR_NORMALIZATION = 1001
ERROR_UNKNOWN_KIND = 1002
ERROR_MALFORMED_PAYLOAD = 1003

# State/adapter errors: 2xxx
ERROR_STATE_UNAVAILABLE = 2001
ERROR_TRANSCRIPT_UNAVAILABLE = 2002
ERROR_TEAMS_DIR_MISSING = 2003
ERROR_TEAM_CONFIG_UNREADABLE = 2004
ERROR_EXTERNAL_TOOL_MISSING = 2005
ERROR_REVIEW_TOOL_FAILED = 2006

# Configuration errors: 3xxx
ERROR_CONFIG_INVALID = 3001
ERROR_CHAIN_CONFIG = 3002
ERROR_MISSING_FAILURE_POLICY = 3003
ERROR_UNKNOWN_RULE = 3004


# =============================================================================
# Base Exception
# =============================================================================


@dataclass
class HookgateError(Exception):
    """
    Base exception for all hookgate errors.

    Attributes:
        message: Human-readable error description
        code: Numeric error code for programmatic handling
        suggestion: Optional hint for how to resolve the error
        context: Optional dict with additional debugging info
    """

    message: str = ""
    code: int = 0
    suggestion: str | None = None
    context: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        """Format error for display."""
        parts = [f"[E{self.code}] {self.message}"]
        if self.suggestion:
            parts.append(f"\nSuggestion: {self.suggestion}")
        return "".join(parts)

    def __repr__(self) -> str:
        """Format error for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"code={self.code}, "
            f"context={self.context!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
            "suggestion": self.suggestion,
            "context": self.context,
        }


# =============================================================================
# Normalization Errors
# =============================================================================


@dataclass
class NormalizationError(HookgateError):
    """
    Raised when a raw hook record cannot be normalized.

    The engine treats this as "too malformed to evaluate" and fails open,
    so a broken integration never becomes a blocking outage.

    Attributes:
        field_name: The raw field that caused the failure (if known)
    """

    field_name: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Cannot normalize hook input"
        if self.code == 0:
            self.code = ERROR_NORMALIZATION
        self.context["field"] = self.field_name


@dataclass
class UnknownKindError(NormalizationError):
    """Raised when no action kind can be determined from the record."""

    tool_name: str | None = None
    event_name: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = (
                f"Cannot determine action kind "
                f"(tool={self.tool_name!r}, event={self.event_name!r})"
            )
        if self.code == 0:
            self.code = ERROR_UNKNOWN_KIND
        super().__post_init__()
        self.context.update({
            "tool_name": self.tool_name,
            "event_name": self.event_name,
        })


@dataclass
class MalformedPayloadError(NormalizationError):
    """Raised when a required payload field has the wrong structure."""

    expected: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Malformed field {self.field_name!r}: expected {self.expected}"
        if self.code == 0:
            self.code = ERROR_MALFORMED_PAYLOAD
        super().__post_init__()
        self.context["expected"] = self.expected


# =============================================================================
# State / Adapter Errors
# =============================================================================


@dataclass
class StateUnavailableError(HookgateError):
    """
    Raised when an external fact a rule depends on is absent.

    Rules raise this instead of guessing; the chain executor converts it
    according to the rule's declared failure policy.

    Attributes:
        state: Name of the missing snapshot value (e.g. "transcript_lines")
    """

    state: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Required state unavailable: {self.state}"
        if self.code == 0:
            self.code = ERROR_STATE_UNAVAILABLE
        self.context["state"] = self.state


@dataclass
class TranscriptUnavailableError(StateUnavailableError):
    """Raised when the session transcript is absent or unreadable."""

    path: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.state:
            self.state = "transcript_lines"
        if not self.message:
            if self.path:
                self.message = f"Transcript unreadable: {self.path}"
            else:
                self.message = "No transcript path provided"
        if self.code == 0:
            self.code = ERROR_TRANSCRIPT_UNAVAILABLE
        super().__post_init__()
        self.context["path"] = self.path


@dataclass
class TeamsDirectoryMissingError(StateUnavailableError):
    """Raised when the team-membership directory does not exist."""

    path: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.state:
            self.state = "team_member_counts"
        if not self.message:
            self.message = f"Teams directory not found: {self.path}"
        if self.code == 0:
            self.code = ERROR_TEAMS_DIR_MISSING
        super().__post_init__()
        self.context["path"] = self.path


@dataclass
class TeamConfigUnreadableError(HookgateError):
    """Raised when a single team config file cannot be read or parsed."""

    path: str = ""
    underlying_error: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Team config unreadable: {self.path}: {self.underlying_error}"
        if self.code == 0:
            self.code = ERROR_TEAM_CONFIG_UNREADABLE
        self.context.update({
            "path": self.path,
            "underlying_error": self.underlying_error,
        })


@dataclass
class ExternalToolMissingError(StateUnavailableError):
    """Raised when an optional external executable is not installed."""

    executable: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.state:
            self.state = f"external_tool[{self.executable}]"
        if not self.message:
            self.message = f"Executable not found on PATH: {self.executable}"
        if self.code == 0:
            self.code = ERROR_EXTERNAL_TOOL_MISSING
        if not self.suggestion:
            self.suggestion = f"Install {self.executable} or remove the rule that needs it"
        super().__post_init__()
        self.context["executable"] = self.executable


@dataclass
class ReviewToolError(HookgateError):
    """
    Raised when the installed review tool cannot report on a range.

    Unlike ExternalToolMissingError this is not a missing-state condition:
    the tool is present but timed out, exited non-zero, or printed output
    that could not be parsed.

    Attributes:
        executable: The review tool that failed
        range_spec: The range that was being queried
        detail: What went wrong
    """

    executable: str = ""
    range_spec: str = ""
    detail: str = ""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"{self.executable} failed for {self.range_spec}: {self.detail}"
        if self.code == 0:
            self.code = ERROR_REVIEW_TOOL_FAILED
        if not self.suggestion:
            self.suggestion = f"Run '{self.executable} status {self.range_spec}' by hand and fix the tool"
        self.context.update({
            "executable": self.executable,
            "range_spec": self.range_spec,
            "detail": self.detail,
        })


# =============================================================================
# Configuration Errors
# =============================================================================


@dataclass
class ConfigError(HookgateError):
    """
    Raised when the hookgate configuration cannot be loaded.

    Attributes:
        path: Path of the offending config file (if any)
    """

    path: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = "Invalid hookgate configuration"
        if self.code == 0:
            self.code = ERROR_CONFIG_INVALID
        self.context["path"] = self.path


@dataclass
class ChainConfigError(ConfigError):
    """Raised when a chain is wired incorrectly."""

    chain: str = ""
    rule: str | None = None

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Invalid chain {self.chain!r}"
        if self.code == 0:
            self.code = ERROR_CHAIN_CONFIG
        super().__post_init__()
        self.context.update({
            "chain": self.chain,
            "rule": self.rule,
        })


@dataclass
class MissingFailurePolicyError(ChainConfigError):
    """Raised when a rule does not declare fail-open or fail-secure."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Rule {self.rule!r} in chain {self.chain!r} declares no failure policy"
        if self.code == 0:
            self.code = ERROR_MISSING_FAILURE_POLICY
        if not self.suggestion:
            self.suggestion = "Set failure_policy = FailurePolicy.FAIL_OPEN or FAIL_SECURE on the rule"
        super().__post_init__()


@dataclass
class UnknownRuleError(ChainConfigError):
    """Raised when a chain references a rule name that is not registered."""

    def __post_init__(self) -> None:
        """Set defaults after dataclass init."""
        if not self.message:
            self.message = f"Unknown rule {self.rule!r} in chain {self.chain!r}"
        if self.code == 0:
            self.code = ERROR_UNKNOWN_RULE
        if not self.suggestion:
            self.suggestion = "Run 'hookgate chains' to list registered rules"
        super().__post_init__()
