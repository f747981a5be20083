"""
Request normalizer for hookgate.

Turns a raw hook record into a typed ActionRequest. Two input shapes are
accepted:

    Host hook shape:
        {"tool_name": "Write", "tool_input": {...}, "hook_event_name": "PreToolUse",
         "cwd": "...", "session_id": "...", "transcript_path": "..."}

    Generic shape:
        {"kind": "shell_command", "payload": {...}, "context": {...}}

The kind is resolved exactly once here. Fields the normalizer does not
consume are preserved under context.extra so rules can reach them without
the normalizer knowing about them in advance.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from hookgate.errors import MalformedPayloadError, NormalizationError, UnknownKindError
from hookgate.schema import (
    PAYLOAD_TYPES,
    ActionKind,
    ActionRequest,
    AgentSpawnPayload,
    FileReadPayload,
    FileWritePayload,
    LifecyclePayload,
    PromptPayload,
    RequestContext,
    ShellCommandPayload,
)

TOOL_KINDS: dict[str, ActionKind] = {
    "Write": ActionKind.FILE_WRITE,
    "Edit": ActionKind.FILE_WRITE,
    "MultiEdit": ActionKind.FILE_WRITE,
    "NotebookEdit": ActionKind.FILE_WRITE,
    "Read": ActionKind.FILE_READ,
    "Grep": ActionKind.FILE_READ,
    "Glob": ActionKind.FILE_READ,
    "Bash": ActionKind.SHELL_COMMAND,
    "Task": ActionKind.AGENT_SPAWN,
    "Agent": ActionKind.AGENT_SPAWN,
    # Some hosts report lifecycle events through tool_name
    "Stop": ActionKind.SESSION_LIFECYCLE,
    "SubagentStop": ActionKind.SESSION_LIFECYCLE,
    "TaskCompleted": ActionKind.SESSION_LIFECYCLE,
    "TeammateIdle": ActionKind.SESSION_LIFECYCLE,
}

EVENT_KINDS: dict[str, ActionKind] = {
    "UserPromptSubmit": ActionKind.PROMPT_SUBMIT,
    "Stop": ActionKind.SESSION_LIFECYCLE,
    "SubagentStop": ActionKind.SESSION_LIFECYCLE,
    "TaskCompleted": ActionKind.SESSION_LIFECYCLE,
    "TeammateIdle": ActionKind.SESSION_LIFECYCLE,
    "SessionStart": ActionKind.SESSION_LIFECYCLE,
    "SessionEnd": ActionKind.SESSION_LIFECYCLE,
}

# Top-level fields consumed into context or payload for the host shape
_CONTEXT_FIELDS = ("cwd", "session_id", "transcript_path", "hook_event_name")
_CONSUMED_FIELDS = {"tool_name", "tool_input", *_CONTEXT_FIELDS}
_LIFECYCLE_FIELDS = ("task_subject", "teammate_name", "stop_hook_active")


def normalize(raw: Mapping[str, Any]) -> ActionRequest:
    """
    Normalize a raw hook record.

    Args:
        raw: Parsed JSON object from the host

    Returns:
        Immutable ActionRequest

    Raises:
        NormalizationError: If the kind cannot be determined or a required
            payload field is structurally malformed
    """
    if not isinstance(raw, Mapping):
        raise NormalizationError(message="Hook input must be a JSON object")

    if "kind" in raw:
        return _normalize_generic(raw)
    return _normalize_hook(raw)


def resolve_kind(tool_name: str | None, event_name: str | None) -> ActionKind:
    """
    Determine the action kind from host tool and event names.

    Tool name wins when both are present, except for prompt submission
    which has no tool.
    """
    if tool_name and tool_name in TOOL_KINDS:
        return TOOL_KINDS[tool_name]
    if event_name and event_name in EVENT_KINDS:
        return EVENT_KINDS[event_name]
    raise UnknownKindError(tool_name=tool_name, event_name=event_name)


# =============================================================================
# Host hook shape
# =============================================================================


def _normalize_hook(raw: Mapping[str, Any]) -> ActionRequest:
    tool_name = _optional_str(raw, "tool_name")
    event_name = _optional_str(raw, "hook_event_name")
    kind = resolve_kind(tool_name, event_name)

    tool_input = raw.get("tool_input")
    if tool_input is None:
        tool_input = {}
    if not isinstance(tool_input, Mapping):
        raise MalformedPayloadError(field_name="tool_input", expected="object")

    consumed = set(_CONSUMED_FIELDS)
    if kind == ActionKind.FILE_WRITE:
        payload = _file_write_payload(tool_name, tool_input)
    elif kind == ActionKind.FILE_READ:
        payload = FileReadPayload(
            path=_optional_str(tool_input, "file_path") or _optional_str(tool_input, "path"),
            pattern=_optional_str(tool_input, "pattern"),
        )
    elif kind == ActionKind.SHELL_COMMAND:
        command = tool_input.get("command")
        if not isinstance(command, str):
            raise MalformedPayloadError(field_name="tool_input.command", expected="string")
        payload = ShellCommandPayload(
            command=command,
            description=_optional_str(tool_input, "description"),
        )
    elif kind == ActionKind.AGENT_SPAWN:
        payload = AgentSpawnPayload(
            subagent_type=_optional_str(tool_input, "subagent_type"),
            team_name=_optional_str(tool_input, "team_name"),
            prompt=_optional_str(tool_input, "prompt"),
            name=_optional_str(tool_input, "name"),
        )
    elif kind == ActionKind.SESSION_LIFECYCLE:
        stop_active = raw.get("stop_hook_active")
        if stop_active is not None and not isinstance(stop_active, bool):
            raise MalformedPayloadError(field_name="stop_hook_active", expected="boolean")
        payload = LifecyclePayload(
            event=event_name or tool_name or "",
            task_subject=_optional_str(raw, "task_subject"),
            teammate_name=_optional_str(raw, "teammate_name"),
            stop_hook_active=stop_active,
        )
        consumed.update(_LIFECYCLE_FIELDS)
    else:
        payload = PromptPayload(prompt=_optional_str(raw, "prompt"))
        consumed.add("prompt")

    extra = {k: v for k, v in raw.items() if k not in consumed}
    context = RequestContext(
        cwd=_optional_str(raw, "cwd"),
        session_id=_optional_str(raw, "session_id"),
        transcript_path=_optional_str(raw, "transcript_path"),
        event_name=event_name,
        extra=extra,
    )
    return ActionRequest(kind=kind, tool_name=tool_name, payload=payload, context=context)


def _file_write_payload(tool_name: str | None, tool_input: Mapping[str, Any]) -> FileWritePayload:
    path = _optional_str(tool_input, "file_path") or _optional_str(tool_input, "notebook_path")
    if not path:
        raise MalformedPayloadError(field_name="tool_input.file_path", expected="non-empty string")

    if tool_name == "Edit":
        return FileWritePayload(path=path, content=_optional_str(tool_input, "new_string"), operation="edit")

    if tool_name == "MultiEdit":
        edits = tool_input.get("edits")
        if not isinstance(edits, list):
            raise MalformedPayloadError(field_name="tool_input.edits", expected="list")
        parts = [e.get("new_string") for e in edits if isinstance(e, Mapping)]
        content = "\n".join(p for p in parts if isinstance(p, str))
        return FileWritePayload(path=path, content=content, operation="edit")

    if tool_name == "NotebookEdit":
        return FileWritePayload(
            path=path,
            content=_optional_str(tool_input, "new_source"),
            operation="notebook_edit",
        )

    return FileWritePayload(path=path, content=_optional_str(tool_input, "content"), operation="write")


# =============================================================================
# Generic shape
# =============================================================================


def _normalize_generic(raw: Mapping[str, Any]) -> ActionRequest:
    try:
        kind = ActionKind(raw["kind"])
    except ValueError as e:
        raise UnknownKindError(message=f"Unknown action kind: {raw['kind']!r}") from e

    payload_data = raw.get("payload") or {}
    context_data = raw.get("context") or {}
    if not isinstance(payload_data, Mapping):
        raise MalformedPayloadError(field_name="payload", expected="object")
    if not isinstance(context_data, Mapping):
        raise MalformedPayloadError(field_name="context", expected="object")

    context_extra = context_data.get("extra") or {}
    if not isinstance(context_extra, Mapping):
        raise MalformedPayloadError(field_name="context.extra", expected="object")

    known_context = set(RequestContext.model_fields) - {"extra"}
    extra = {k: v for k, v in context_data.items() if k not in known_context}
    extra.update(context_extra)
    extra.update({k: v for k, v in raw.items() if k not in ("kind", "payload", "context", "tool_name")})

    try:
        payload = PAYLOAD_TYPES[kind].model_validate(dict(payload_data))
        context = RequestContext(
            **{k: context_data.get(k) for k in known_context},
            extra=extra,
        )
    except ValidationError as e:
        raise MalformedPayloadError(
            message=f"Invalid {kind.value} request: {e.error_count()} error(s)",
            field_name="payload",
            expected=PAYLOAD_TYPES[kind].__name__,
        ) from e

    return ActionRequest(
        kind=kind,
        tool_name=_optional_str(raw, "tool_name"),
        payload=payload,
        context=context,
    )


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    """Return a string field, None when absent or empty, error when mistyped."""
    value = data.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise MalformedPayloadError(field_name=key, expected="string")
    return value
