"""
CLI entry point for hookgate.

This module provides the Typer-based command-line interface for hookgate.
The host invokes `hookgate check` once per proposed action; the other
commands are for people configuring and debugging the gate.

Commands:
    check       Evaluate one hook record from stdin and answer the host
    explain     Show how every rule in the chain judged a record
    chains      List the rule chains and their failure policies
    teams       Show the resource governor's view of active agents
    doctor      Check the environment hookgate depends on

Exit Codes (check):
    0   Decision emitted on stdout (allow, deny and ask for tool calls)
    1   hookgate's own configuration is invalid (non-blocking for the host)
    2   Lifecycle event blocked; reason on stderr

Architecture Note:
    stdout carries only the host protocol. Logs always go to stderr (and
    optionally a log file) so they can never corrupt a decision.
"""

import json
import logging
import os
import shutil
import sys
import traceback
from pathlib import Path
from typing import Annotated, Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from hookgate import __version__
from hookgate.adapters import GitAdapter, TeamDirectory
from hookgate.chains import CHAINS_VERSION
from hookgate.engine import Evaluation, Gatekeeper
from hookgate.errors import ConfigError, TeamsDirectoryMissingError
from hookgate.schema import ActionKind, GateConfig, OutcomeType, Verdict, load_config
from hookgate.serializer import ERROR_EXIT_CODE, OutputFormat, decision_to_dict, render

# Initialize Typer app with metadata
app = typer.Typer(
    name="hookgate",
    help="Admission control for coding-agent tool calls.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich consoles: stdout for human output, stderr for logs
console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DEFAULT_CONFIG_FILE = Path(".claude") / "hookgate.yaml"

_OUTCOME_STYLES = {
    OutcomeType.PASS: "dim",
    OutcomeType.ALLOW: "green",
    OutcomeType.ADVISE: "yellow",
    OutcomeType.ASK: "magenta",
    OutcomeType.DENY: "red",
}
_VERDICT_STYLES = {
    Verdict.ALLOW: "green",
    Verdict.ASK: "magenta",
    Verdict.DENY: "red",
}


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]hookgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    hookgate - Admission control for coding-agent tool calls.

    Reads a proposed action from the agent host and answers allow, deny or
    ask, with optional advisories.
    """
    pass


# =============================================================================
# Shared options and helpers
# =============================================================================

ConfigOption = Annotated[
    Optional[Path],
    typer.Option(
        "--config",
        "-c",
        help="Path to a hookgate YAML config. Defaults to .claude/hookgate.yaml in the repo.",
        envvar="HOOKGATE_CONFIG",
    ),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", help="Log rule decisions to stderr."),
]
DebugOption = Annotated[
    bool,
    typer.Option("--debug", help="Enable debug logging with full tracebacks."),
]
LogFileOption = Annotated[
    Optional[Path],
    typer.Option(
        "--log-file",
        help="Also write logs to this file.",
        envvar="HOOKGATE_LOG_FILE",
    ),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output results in JSON format."),
]


def configure_logging(verbose: bool = False, debug: bool = False, log_file: str | Path | None = None) -> None:
    """
    Route hookgate's loggers to stderr (and optionally a file).

    Safe to call more than once; previously installed handlers are replaced.
    """
    level = logging.DEBUG if debug else logging.INFO if verbose else logging.WARNING
    package_logger = logging.getLogger("hookgate")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=err_console,
        rich_tracebacks=debug,
        show_time=debug,
        show_path=debug,
    )
    rich_handler.setLevel(level)
    package_logger.addHandler(rich_handler)
    package_logger.setLevel(level)

    if log_file:
        try:
            file_handler = logging.FileHandler(Path(log_file).expanduser(), encoding="utf-8")
        except OSError as e:
            package_logger.warning("Cannot open log file %s: %s", log_file, e)
            return
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        file_handler.setLevel(logging.DEBUG if debug else logging.INFO)
        package_logger.addHandler(file_handler)
        package_logger.setLevel(min(level, file_handler.level))


def find_config(start: Path) -> Path | None:
    """
    Locate the default config file for a working directory.

    Looks in `start` first, then at the root of the git repository
    containing it.
    """
    candidate = start / DEFAULT_CONFIG_FILE
    if candidate.is_file():
        return candidate

    root = GitAdapter(start).repo_root()
    if root is not None and root != start:
        candidate = root / DEFAULT_CONFIG_FILE
        if candidate.is_file():
            return candidate
    return None


def resolve_config(config_path: Path | None, start: Path) -> tuple[GateConfig, Path | None]:
    """
    Load the active configuration.

    Resolution order: explicit path (or HOOKGATE_CONFIG), then the repo's
    .claude/hookgate.yaml, then built-in defaults.

    Raises:
        ConfigError: If the selected file is unreadable or invalid
    """
    path = config_path or find_config(start)
    if path is None:
        return GateConfig(), None
    return load_config(path), path


def _input_cwd(text: str) -> Path:
    """Working directory named in a hook record, falling back to the process cwd."""
    try:
        raw = json.loads(text)
    except json.JSONDecodeError:
        return Path.cwd()
    if isinstance(raw, dict) and isinstance(raw.get("cwd"), str) and raw["cwd"]:
        return Path(raw["cwd"])
    return Path.cwd()


def _load_gatekeeper(config_path: Path | None, start: Path, debug: bool) -> Gatekeeper:
    """Load config and build chains, exiting with the non-blocking error code on failure."""
    try:
        config, _ = resolve_config(config_path, start)
        return Gatekeeper.from_config(config)
    except ConfigError as e:
        typer.echo(f"hookgate: {e}", err=True)
        if debug:
            typer.echo(traceback.format_exc(), err=True)
        raise typer.Exit(code=ERROR_EXIT_CODE)


# =============================================================================
# check
# =============================================================================


@app.command()
def check(
    config: ConfigOption = None,
    fmt: Annotated[
        OutputFormat,
        typer.Option(
            "--format",
            "-f",
            help="Output protocol: the host's hook format, or a generic JSON record.",
        ),
    ] = OutputFormat.HOOK,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
    log_file: LogFileOption = None,
) -> None:
    """
    Evaluate one hook record read from stdin.

    Prints the host response on stdout and exits with the status the host
    expects. Malformed input is allowed (with a warning on stderr).

    Example:
        $ echo '{"tool_name": "Bash", "tool_input": {"command": "ls"}}' | hookgate check
    """
    text = sys.stdin.read()
    start = _input_cwd(text)

    configure_logging(verbose, debug, log_file)
    gatekeeper = _load_gatekeeper(config, start, debug)
    if log_file is None and gatekeeper.config.log_file:
        configure_logging(verbose, debug, gatekeeper.config.log_file)

    try:
        evaluation = gatekeeper.check_text(text)
    except Exception as e:
        logger.exception("Unexpected error while evaluating hook input")
        typer.echo(f"hookgate: internal error: {e}", err=True)
        raise typer.Exit(code=ERROR_EXIT_CODE)

    response = render(evaluation.decision, evaluation.kind, fmt)
    if response.stdout:
        typer.echo(response.stdout)
    if response.stderr:
        typer.echo(response.stderr, err=True)
    raise typer.Exit(code=response.exit_code)


# =============================================================================
# explain
# =============================================================================


@app.command()
def explain(
    config: ConfigOption = None,
    json_output: JsonOption = False,
    verbose: VerboseOption = False,
    debug: DebugOption = False,
) -> None:
    """
    Show how each rule judged a hook record read from stdin.

    Runs the same evaluation as `check` and prints the per-rule trace and
    the final decision instead of the host response.

    Example:
        $ hookgate explain < record.json
    """
    text = sys.stdin.read()
    start = _input_cwd(text)

    configure_logging(verbose, debug)
    gatekeeper = _load_gatekeeper(config, start, debug)
    evaluation = gatekeeper.check_text(text)

    if json_output:
        _output_explain_json(evaluation)
    else:
        _display_explanation(evaluation, gatekeeper)


def _output_explain_json(evaluation: Evaluation) -> None:
    request = evaluation.request
    output: dict[str, Any] = {
        "kind": request.kind.value if request else None,
        "tool_name": request.tool_name if request else None,
        "error": evaluation.error,
        "decision": decision_to_dict(evaluation.decision),
        "trace": [
            {
                "rule": step.rule,
                "outcome": step.outcome.type.value,
                "message": step.outcome.message,
                "note": step.note,
            }
            for step in evaluation.decision.trace
        ],
    }
    print(json.dumps(output, indent=2))


def _display_explanation(evaluation: Evaluation, gatekeeper: Gatekeeper) -> None:
    request = evaluation.request
    if request is None:
        console.print(f"[yellow]Input not evaluated:[/yellow] {evaluation.error}")
        console.print("[dim]Malformed input is allowed (fail-open).[/dim]")
        return

    chain = gatekeeper.chains.get(request.kind)
    console.print(f"[bold]Kind:[/bold] {request.kind.value}")
    if request.tool_name:
        console.print(f"[bold]Tool:[/bold] {request.tool_name}")
    if chain is not None:
        console.print(f"[bold]Chain:[/bold] {' -> '.join(chain.rule_names) or '(empty)'}")
    console.print()

    decision = evaluation.decision
    if decision.trace:
        table = Table(show_header=True, header_style="bold")
        table.add_column("#", justify="right", width=3)
        table.add_column("Rule", style="cyan")
        table.add_column("Outcome", width=8)
        table.add_column("Message")

        for i, step in enumerate(decision.trace, 1):
            style = _OUTCOME_STYLES[step.outcome.type]
            message = step.outcome.message or ""
            if step.note:
                message = f"{message}\n[dim]({step.note})[/dim]" if message else f"[dim]({step.note})[/dim]"
            table.add_row(str(i), step.rule, f"[{style}]{step.outcome.type.value}[/{style}]", message)

        console.print(table)
        console.print()

    style = _VERDICT_STYLES[decision.verdict]
    console.print(f"[bold]Verdict:[/bold] [{style}]{decision.verdict.value}[/{style}]")
    if decision.rule:
        console.print(f"[bold]Decided by:[/bold] {decision.rule}")
    if decision.reason:
        console.print(f"[bold]Reason:[/bold] {decision.reason}")
    for advisory in decision.advisories:
        console.print(f"[yellow]Advisory:[/yellow] {advisory}")


# =============================================================================
# chains
# =============================================================================


@app.command()
def chains(
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    List the rule chain for every action kind.

    Rules run top to bottom; the first deny or ask wins.

    Example:
        $ hookgate chains --config .claude/hookgate.yaml
    """
    gatekeeper = _load_gatekeeper(config, Path.cwd(), debug=False)

    if json_output:
        output = {
            "version": CHAINS_VERSION,
            "chains": {
                kind.value: [
                    {
                        "name": rule.name,
                        "failure_policy": rule.failure_policy.value,
                        "advisory_only": rule.advisory_only,
                        "description": rule.description,
                    }
                    for rule in gatekeeper.chains[kind].rules
                ]
                for kind in ActionKind
            },
        }
        print(json.dumps(output, indent=2))
        return

    console.print(f"[bold]hookgate chains[/bold] (version {CHAINS_VERSION})")
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Kind", style="cyan")
    table.add_column("#", justify="right", width=3)
    table.add_column("Rule")
    table.add_column("Policy", width=11)
    table.add_column("Description")

    for kind in ActionKind:
        chain = gatekeeper.chains[kind]
        if not len(chain):
            table.add_row(kind.value, "-", "[dim](no rules)[/dim]", "", "")
            continue
        for i, rule in enumerate(chain.rules, 1):
            policy = rule.failure_policy.value
            policy_display = f"[red]{policy}[/red]" if policy == "fail_secure" else policy
            name = f"{rule.name} [dim](advisory)[/dim]" if rule.advisory_only else rule.name
            table.add_row(kind.value if i == 1 else "", str(i), name, policy_display, rule.description)

    console.print(table)


# =============================================================================
# teams
# =============================================================================


@app.command()
def teams(
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Show active agents per team and the remaining headroom under the cap.

    Example:
        $ hookgate teams
    """
    gatekeeper = _load_gatekeeper(config, Path.cwd(), debug=False)
    governor = gatekeeper.config.governor
    directory = TeamDirectory(governor.teams_path)

    try:
        counts = directory.member_counts()
    except TeamsDirectoryMissingError:
        if json_output:
            print(json.dumps({"teams_dir": str(directory.root), "exists": False, "cap": governor.agent_cap}, indent=2))
        else:
            console.print(f"[yellow]No teams directory at {directory.root}[/yellow]")
            console.print("[dim]The agent cap is not enforced until it exists (fail-open).[/dim]")
        raise typer.Exit(code=0)

    total = sum(counts.values())
    headroom = max(governor.agent_cap - total, 0)

    if json_output:
        output = {
            "teams_dir": str(directory.root),
            "exists": True,
            "teams": counts,
            "total": total,
            "cap": governor.agent_cap,
            "headroom": headroom,
        }
        print(json.dumps(output, indent=2))
        return

    if counts:
        table = Table(show_header=True, header_style="bold")
        table.add_column("Team", style="cyan")
        table.add_column("Active", justify="right")
        for team, active in sorted(counts.items()):
            table.add_row(team, str(active))
        console.print(table)
    else:
        console.print("[dim]No teams found.[/dim]")

    style = "red" if headroom == 0 else "green"
    console.print(
        f"Active agents: [bold]{total}[/bold] / cap {governor.agent_cap} "
        f"([{style}]{headroom} slot(s) free[/{style}])"
    )


# =============================================================================
# doctor
# =============================================================================


@app.command()
def doctor(
    config: ConfigOption = None,
    json_output: JsonOption = False,
) -> None:
    """
    Check system environment and dependencies.

    Verifies what hookgate needs to evaluate actions:
    - Python version (3.11+)
    - git on PATH
    - The external review tool (optional; the review gate fails open without it)
    - The teams directory (optional; the agent cap fails open without it)
    - The configuration file

    Example:
        $ hookgate doctor
    """
    checks: list[dict[str, Any]] = []

    # Check 1: Python version
    py_version = sys.version_info
    py_ok = py_version >= (3, 11)
    checks.append({
        "name": "Python version",
        "ok": py_ok,
        "required": True,
        "value": f"{py_version.major}.{py_version.minor}.{py_version.micro}",
        "message": "OK" if py_ok else "Requires Python 3.11+",
    })

    # Check 2: Configuration
    gate_config = GateConfig()
    try:
        gate_config, source = resolve_config(config, Path.cwd())
        checks.append({
            "name": "Config",
            "ok": True,
            "required": True,
            "value": str(source) if source else "(built-in defaults)",
            "message": "Valid",
        })
    except ConfigError as e:
        checks.append({
            "name": "Config",
            "ok": False,
            "required": True,
            "value": str(config or os.environ.get("HOOKGATE_CONFIG") or DEFAULT_CONFIG_FILE),
            "message": e.message,
        })

    # Check 3: git
    git_path = shutil.which("git")
    checks.append({
        "name": "git",
        "ok": git_path is not None,
        "required": True,
        "value": git_path or "not found",
        "message": "OK" if git_path else "Branch and ref rules cannot run without git",
    })

    # Check 4: review tool
    review_tool = gate_config.review.tool
    review_path = shutil.which(review_tool)
    checks.append({
        "name": review_tool,
        "ok": review_path is not None,
        "required": False,
        "value": review_path or "not found",
        "message": "OK" if review_path else "Optional; review_gate allows merges without it",
    })

    # Check 5: teams directory
    teams_path = gate_config.governor.teams_path
    teams_ok = teams_path.is_dir()
    checks.append({
        "name": "Teams directory",
        "ok": teams_ok,
        "required": False,
        "value": str(teams_path),
        "message": "OK" if teams_ok else "Optional; agent_cap is not enforced until it exists",
    })

    all_ok = all(c["ok"] for c in checks if c["required"])

    if json_output:
        output = {
            "ok": all_ok,
            "version": __version__,
            "checks": checks,
        }
        print(json.dumps(output, indent=2))
    else:
        console.print(f"[bold]hookgate doctor[/bold] v{__version__}")
        console.print()

        for c in checks:
            if c["ok"]:
                icon = "[green]✓[/green]"
            elif c["required"]:
                icon = "[red]✗[/red]"
            else:
                icon = "[yellow]![/yellow]"

            console.print(f"{icon} {c['name']}: [dim]{c['value']}[/dim] - {c['message']}")

        console.print()
        if all_ok:
            console.print("[green]All required checks passed![/green]")
        else:
            console.print("[yellow]Some checks failed. See above for details.[/yellow]")

    raise typer.Exit(code=0 if all_ok else 1)


if __name__ == "__main__":
    app()
