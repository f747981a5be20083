"""
Unit tests for the decision serializer.

Tests cover:
- Tool kinds: permissionDecision, advisory context, silent allow
- Prompt submission: decision/reason blocks
- Lifecycle events: exit status 2 with stderr
- Generic JSON format
- Deterministic output
"""

import json

import pytest

from hookgate.schema import ActionKind, Decision, Verdict
from hookgate.serializer import (
    BLOCK_EXIT_CODE,
    HookResponse,
    OutputFormat,
    decision_to_dict,
    dumps,
    render,
)

DENY = Decision(verdict=Verdict.DENY, reason="delegation: no agent", rule="delegation")
ASK = Decision(verdict=Verdict.ASK, reason="protect_hooks: confirm", rule="protect_hooks")
ADVISED = Decision.allow(advisories=("secret_scan: key", "panic_patterns: unwrap"))

TOOL_KINDS = [ActionKind.FILE_WRITE, ActionKind.FILE_READ, ActionKind.SHELL_COMMAND, ActionKind.AGENT_SPAWN]


class TestToolKinds:
    """Rendering for tool-call kinds."""

    @pytest.mark.parametrize("kind", TOOL_KINDS)
    def test_plain_allow_is_silent(self, kind: ActionKind) -> None:
        assert render(Decision.allow(), kind) == HookResponse()

    def test_deny(self) -> None:
        response = render(DENY, ActionKind.FILE_WRITE)
        assert response.exit_code == 0
        assert response.stderr == ""
        assert json.loads(response.stdout) == {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "deny",
                "permissionDecisionReason": "delegation: no agent",
            }
        }

    def test_ask(self) -> None:
        output = json.loads(render(ASK, ActionKind.SHELL_COMMAND).stdout)["hookSpecificOutput"]
        assert output["permissionDecision"] == "ask"

    def test_advisory_allow(self) -> None:
        output = json.loads(render(ADVISED, ActionKind.FILE_WRITE).stdout)["hookSpecificOutput"]
        assert "permissionDecision" not in output
        assert output["additionalContext"] == "secret_scan: key\npanic_patterns: unwrap"

    def test_deny_keeps_advisories(self) -> None:
        decision = Decision(verdict=Verdict.DENY, reason="no", advisories=("fyi",))
        output = json.loads(render(decision, ActionKind.SHELL_COMMAND).stdout)["hookSpecificOutput"]
        assert output["permissionDecision"] == "deny"
        assert output["additionalContext"] == "fyi"


class TestPromptSubmit:
    """Rendering for prompt submission."""

    def test_allow_is_silent(self) -> None:
        assert render(Decision.allow(), ActionKind.PROMPT_SUBMIT) == HookResponse()

    def test_block(self) -> None:
        decision = Decision(verdict=Verdict.DENY, reason="ticket_branch: on main")
        response = render(decision, ActionKind.PROMPT_SUBMIT)
        assert response.exit_code == 0
        assert json.loads(response.stdout) == {"decision": "block", "reason": "ticket_branch: on main"}

    def test_advisory(self) -> None:
        data = json.loads(render(Decision.allow(advisories=("hint",)), ActionKind.PROMPT_SUBMIT).stdout)
        assert "decision" not in data
        assert data["hookSpecificOutput"] == {"hookEventName": "UserPromptSubmit", "additionalContext": "hint"}


class TestLifecycle:
    """Rendering for session lifecycle events."""

    def test_allow_is_silent(self) -> None:
        assert render(Decision.allow(), ActionKind.SESSION_LIFECYCLE) == HookResponse()

    @pytest.mark.parametrize("verdict", [Verdict.DENY, Verdict.ASK])
    def test_block_uses_exit_code(self, verdict: Verdict) -> None:
        decision = Decision(verdict=verdict, reason="quality_gate: tests failed")
        response = render(decision, ActionKind.SESSION_LIFECYCLE)
        assert response.exit_code == BLOCK_EXIT_CODE
        assert response.stderr == "quality_gate: tests failed"
        assert response.stdout == ""

    def test_advisory(self) -> None:
        response = render(Decision.allow(advisories=("store a memory",)), ActionKind.SESSION_LIFECYCLE)
        assert response.exit_code == 0
        assert json.loads(response.stdout) == {"additionalContext": "store a memory"}


class TestGenericFormat:
    """The json output format."""

    def test_decision_to_dict(self) -> None:
        assert decision_to_dict(DENY) == {
            "verdict": "deny",
            "reason": "delegation: no agent",
            "advisories": [],
            "rule": "delegation",
        }

    @pytest.mark.parametrize("kind", [*TOOL_KINDS, ActionKind.SESSION_LIFECYCLE, None])
    def test_json_always_exits_zero(self, kind: ActionKind | None) -> None:
        response = render(DENY, kind, OutputFormat.JSON)
        assert response.exit_code == 0
        assert json.loads(response.stdout)["verdict"] == "deny"

    def test_no_kind_in_hook_format(self) -> None:
        assert render(Decision.allow(), None) == HookResponse()


class TestDeterminism:
    """Equal decisions serialize to identical bytes."""

    def test_sorted_compact(self) -> None:
        assert dumps({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_non_ascii_preserved(self) -> None:
        assert dumps({"reason": "café"}) == '{"reason":"café"}'

    def test_repeatable(self) -> None:
        first = render(ADVISED, ActionKind.FILE_WRITE)
        second = render(ADVISED, ActionKind.FILE_WRITE)
        assert first.stdout == second.stdout
