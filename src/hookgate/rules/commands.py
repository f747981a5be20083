"""
Shell command inspection helpers shared by the shell-command rules.

Commands are inspected by name matching only; nothing is executed. The
parser splits a command line into simple commands on ; && || | and
newlines, drops leading environment assignments and wrappers (sudo, env,
nohup, ...), and exposes:

    - git invocations (verb + arguments)
    - paths a simple command would mutate (sed -i, tee, cp, mv, rm,
      shell redirections, ...)

This is heuristic. Quoting tricks, eval, subshells and scripts can hide
intent from it; it is not a sandbox.
"""

import shlex
from dataclasses import dataclass
from pathlib import PurePosixPath

_SEPARATORS = {";", "&&", "||", "|", "&", "(", ")"}
_REDIRECTS = {">", ">>", ">|", "&>", "&>>"}
_DUPS = {">&", "<&", "<", "<<", "<<<"}
_WRAPPERS = {"sudo", "env", "nohup", "time", "command", "exec", "xargs", "nice"}

# git global options that take a separate value
_GIT_VALUE_OPTIONS = {"-C", "-c", "--git-dir", "--work-tree", "--namespace"}

# Commands whose every non-option argument is a mutated path
_PATH_MUTATORS = {"rm", "rmdir", "touch", "truncate", "mkdir", "shred", "unlink", "tee"}
# Commands whose first non-option argument is not a path (mode, owner, script)
_SKIP_FIRST = {"chmod", "chown", "chgrp"}
# Commands that write their last argument
_COPIERS = {"cp", "install", "ln", "rsync"}


@dataclass(frozen=True)
class GitCall:
    """
    One `git <verb> ...` invocation.

    Attributes:
        verb: Subcommand (commit, push, ...)
        args: Arguments after the verb, as tokenized
    """

    verb: str
    args: tuple[str, ...]

    @property
    def options(self) -> tuple[str, ...]:
        return tuple(a for a in self.args if a.startswith("-"))

    @property
    def positionals(self) -> tuple[str, ...]:
        """Non-option arguments, stopping at a `--` separator."""
        result = []
        for arg in self.args:
            if arg == "--":
                break
            if not arg.startswith("-"):
                result.append(arg)
        return tuple(result)

    def has_flag(self, *flags: str) -> bool:
        return any(a in flags or a.split("=", 1)[0] in flags for a in self.args)


def tokenize(command: str) -> list[str]:
    """Split a command line into shell tokens, keeping operators separate."""
    # Newlines separate commands like ';' does
    lexer = shlex.shlex(command.replace("\n", " ; "), posix=True, punctuation_chars=";&|()<>")
    lexer.whitespace_split = True
    try:
        return list(lexer)
    except ValueError:
        # Unbalanced quotes: fall back to plain whitespace splitting
        return command.split()


def split_segments(command: str) -> list[list[str]]:
    """
    Split a command line into simple commands.

    Examples:
        "cd x && git push origin main" -> [["cd", "x"], ["git", "push", "origin", "main"]]
    """
    segments: list[list[str]] = []
    current: list[str] = []
    for token in tokenize(command):
        if token in _SEPARATORS:
            if current:
                segments.append(current)
            current = []
        else:
            current.append(token)
    if current:
        segments.append(current)
    stripped = (_strip_prefix(seg) for seg in segments)
    return [seg for seg in stripped if seg]


def program(segment: list[str]) -> str:
    """Base name of the program a simple command runs."""
    return PurePosixPath(segment[0]).name if segment else ""


def git_calls(command: str) -> list[GitCall]:
    """Every git invocation in a command line, in order."""
    calls = []
    for segment in split_segments(command):
        if program(segment) != "git":
            continue
        rest = segment[1:]
        i = 0
        while i < len(rest) and rest[i].startswith("-"):
            i += 2 if rest[i] in _GIT_VALUE_OPTIONS else 1
        if i < len(rest):
            calls.append(GitCall(verb=rest[i], args=tuple(rest[i + 1:])))
    return calls


def redirect_targets(segment: list[str]) -> list[str]:
    """Files a simple command writes through shell redirection."""
    targets = []
    for i, token in enumerate(segment[:-1]):
        if token in _REDIRECTS:
            target = segment[i + 1]
            if target != "/dev/null":
                targets.append(target)
    return targets


def mutated_paths(command: str) -> list[str]:
    """
    Paths a command line would create, modify or delete.

    Examples:
        "sed -i 's/x/y/' src/main.rs" -> ["src/main.rs"]
        "cp a.sh .claude/hooks/b.sh" -> [".claude/hooks/b.sh"]
        "cat src/main.rs" -> []
    """
    paths: list[str] = []
    for segment in split_segments(command):
        paths.extend(redirect_targets(segment))
        name = program(segment)
        args = _plain_args(segment[1:])

        if name in _PATH_MUTATORS:
            paths.extend(args)
        elif name in _SKIP_FIRST:
            paths.extend(args[1:])
        elif name in _COPIERS:
            paths.extend(args[-1:] if len(args) > 1 else [])
        elif name == "mv":
            paths.extend(args)
        elif name in ("sed", "perl") and _in_place(segment[1:]):
            # Leading plain arguments are scripts, one per -e or a single bare one
            scripts = sum(1 for a in segment[1:] if a in ("-e", "--expression"))
            paths.extend(args[max(scripts, 1):])
        elif name == "dd":
            paths.extend(a[3:] for a in segment[1:] if a.startswith("of="))
    return paths


def _in_place(args: list[str]) -> bool:
    for arg in args:
        if arg == "--in-place" or arg.startswith("--in-place="):
            return True
        if arg.startswith("--") or not arg.startswith("-"):
            continue
        # -i, -i.bak, or a flag cluster such as -pi / -Ei
        if arg.startswith("-i") or (arg[1:].isalpha() and "i" in arg[1:]):
            return True
    return False


def _plain_args(args: list[str]) -> list[str]:
    """Arguments that are neither options nor part of a redirection."""
    result = []
    skip_next = False
    for i, token in enumerate(args):
        if skip_next:
            skip_next = False
            continue
        if token in _REDIRECTS or token in _DUPS:
            skip_next = True
            continue
        following = args[i + 1] if i + 1 < len(args) else ""
        # file descriptor number of a redirection such as 2>/dev/null
        if token.isdigit() and (following in _REDIRECTS or following in _DUPS):
            continue
        if token.startswith("-"):
            continue
        result.append(token)
    return result


def _strip_prefix(segment: list[str]) -> list[str]:
    """Drop leading VAR=value assignments and wrapper programs."""
    i = 0
    while i < len(segment):
        token = segment[i]
        if "=" in token and not token.startswith("-") and token.split("=", 1)[0].isidentifier():
            i += 1
        elif PurePosixPath(token).name in _WRAPPERS or (i > 0 and token.startswith("-") and _is_wrapper(segment[i - 1])):
            i += 1
        else:
            break
    return segment[i:]


def _is_wrapper(token: str) -> bool:
    return PurePosixPath(token).name in _WRAPPERS
