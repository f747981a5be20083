"""
Decision serializer for hookgate.

Converts a Decision into what the host reads back: stdout text, stderr text
and an exit status. Two formats are supported:

    hook: the host's hook protocol, which differs by action kind
        - tool kinds: hookSpecificOutput with permissionDecision; a plain
          allow prints nothing
        - prompt submission: {"decision": "block", "reason": ...}
        - session lifecycle: exit status 2 blocks, reason on stderr
    json: a generic {"verdict", "reason", "advisories", "rule"} record

Output is deterministic: keys are sorted and separators fixed, so equal
decisions serialize to identical bytes.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from hookgate.schema import ActionKind, Decision, Verdict

# Exit status that tells the host to block a lifecycle event
BLOCK_EXIT_CODE = 2
# Exit status for hookgate's own errors (bad config); non-blocking for the host
ERROR_EXIT_CODE = 1

_TOOL_KINDS = {
    ActionKind.FILE_WRITE,
    ActionKind.FILE_READ,
    ActionKind.SHELL_COMMAND,
    ActionKind.AGENT_SPAWN,
}


class OutputFormat(str, Enum):
    """Wire format for decisions."""

    HOOK = "hook"
    JSON = "json"


@dataclass(frozen=True)
class HookResponse:
    """
    Everything the host reads from one invocation.

    Attributes:
        stdout: Text for standard output (may be empty)
        stderr: Text for standard error (may be empty)
        exit_code: Process exit status
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


def dumps(data: Any) -> str:
    """Serialize to JSON deterministically."""
    return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def decision_to_dict(decision: Decision) -> dict[str, Any]:
    """Generic record for a decision."""
    return {
        "verdict": decision.verdict.value,
        "reason": decision.reason,
        "advisories": list(decision.advisories),
        "rule": decision.rule,
    }


def render(
    decision: Decision,
    kind: ActionKind | None,
    fmt: OutputFormat = OutputFormat.HOOK,
) -> HookResponse:
    """
    Serialize a decision for the host.

    Args:
        decision: The decision to emit
        kind: Kind of the evaluated request; None when normalization failed
        fmt: Output format

    Returns:
        HookResponse with stdout, stderr and exit code
    """
    if fmt == OutputFormat.JSON:
        return HookResponse(stdout=dumps(decision_to_dict(decision)))

    if kind is None:
        # Nothing was evaluated; the host proceeds as if no hook ran
        return HookResponse()
    if kind in _TOOL_KINDS:
        return _render_tool(decision)
    if kind == ActionKind.PROMPT_SUBMIT:
        return _render_prompt(decision)
    return _render_lifecycle(decision)


def _context(decision: Decision) -> str | None:
    return "\n".join(decision.advisories) if decision.advisories else None


def _render_tool(decision: Decision) -> HookResponse:
    context = _context(decision)
    if decision.verdict == Verdict.ALLOW and context is None:
        return HookResponse()

    output: dict[str, Any] = {"hookEventName": "PreToolUse"}
    if decision.verdict != Verdict.ALLOW:
        output["permissionDecision"] = decision.verdict.value
        output["permissionDecisionReason"] = decision.reason
    if context is not None:
        output["additionalContext"] = context
    return HookResponse(stdout=dumps({"hookSpecificOutput": output}))


def _render_prompt(decision: Decision) -> HookResponse:
    data: dict[str, Any] = {}
    if decision.verdict != Verdict.ALLOW:
        data["decision"] = "block"
        data["reason"] = decision.reason
    context = _context(decision)
    if context is not None:
        data["hookSpecificOutput"] = {
            "hookEventName": "UserPromptSubmit",
            "additionalContext": context,
        }
    return HookResponse(stdout=dumps(data) if data else "")


def _render_lifecycle(decision: Decision) -> HookResponse:
    if decision.verdict != Verdict.ALLOW:
        return HookResponse(stderr=decision.reason or "", exit_code=BLOCK_EXIT_CODE)
    context = _context(decision)
    if context is None:
        return HookResponse()
    return HookResponse(stdout=dumps({"additionalContext": context}))
