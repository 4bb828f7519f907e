"""
instance_agent.main
------------
AUTHOR: carter-vin

Operator CLI for the persisted instance record.

Local-only: nothing here talks to the coordinator. State written with
`set-state` is recorded locally and reported as not synced.

Key contract:
- `instance-agent --help` shows a Commands section.
- `instance-agent show` exits 1 when no record exists for the identity.
"""

from __future__ import annotations

import json
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from instance_agent.config import AGENT_VERSION, AgentSettings
from instance_agent.identity import resolve_identity
from instance_agent.logging import OperationalLog
from instance_agent.state import KNOWN_STATES, InstanceState, StateConflictError, StatePersistenceError, load_record

app = typer.Typer(
    add_completion=False,
    help="instance-agent: inspect and repair the local instance state record",
)

# -----------------------------
# DATA CLASSES
# -----------------------------
@dataclass(frozen=True)
class AgentInfo:
    """
    What this agent would act on if started here: version, identity, settings
    """

    agent_version: str
    identity: str
    state_dir: str
    log_path: Optional[str]
    max_audit_delay: float
    python_version: str


def collect_agent_info(identity: Optional[str] = None, state_dir: Optional[str] = None) -> AgentInfo:
    settings = AgentSettings.from_env(state_dir=Path(state_dir) if state_dir else None)
    return AgentInfo(
        agent_version=AGENT_VERSION,
        identity=resolve_identity(identity),
        state_dir=str(settings.state_dir),
        log_path=str(settings.log_path) if settings.log_path else None,
        max_audit_delay=settings.max_audit_delay,
        python_version=sys.version.split()[0],
    )


def _open_state(identity: Optional[str], state_dir: Optional[str], log_path: Optional[str]) -> InstanceState:
    settings = AgentSettings.from_env(
        state_dir=Path(state_dir) if state_dir else None,
        log_path=Path(log_path) if log_path else None,
    )
    log = OperationalLog.from_settings(settings)
    return InstanceState(None, state_dir=settings.state_dir, log=log).init(resolve_identity(identity))


# -----------------------------
# ROOT COMMAND BEHAVIOR
# -----------------------------
@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """
    Root command behavior: print a hint when no subcommand is given
    """
    if ctx.invoked_subcommand is None:
        typer.echo("No command provided. Try: instance-agent --help")


# -----------------------------
# CLI COMMANDS
# -----------------------------
@app.command()
def version(
    identity: Optional[str] = typer.Option(None, help="Instance identity (default: env or hostname)."),
    state_dir: Optional[str] = typer.Option(None, help="Directory holding instance state records."),
) -> None:
    """
    Print agent version and the identity/settings it resolves here
    """
    info = collect_agent_info(identity, state_dir)

    typer.echo(f"instance-agent v{info.agent_version}")
    typer.echo(f"identity={info.identity}")
    typer.echo(f"state_dir={info.state_dir}")
    typer.echo(f"log_path={info.log_path or '-'}")
    typer.echo(f"max_audit_delay={info.max_audit_delay}")
    typer.echo(f"python={info.python_version}")


@app.command("show")
def show(
    identity: Optional[str] = typer.Option(None, help="Instance identity (default: env or hostname)."),
    state_dir: Optional[str] = typer.Option(None, help="Directory holding instance state records."),
    as_json: bool = typer.Option(False, "--json", help="Print the record as JSON."),
) -> None:
    """
    Show current lifecycle state and script history
    """
    settings = AgentSettings.from_env(state_dir=Path(state_dir) if state_dir else None)
    resolved = resolve_identity(identity)

    try:
        record = load_record(resolved, state_dir=settings.state_dir)
    except (OSError, ValueError) as e:
        typer.echo(f"** unreadable state record for {resolved}: {e}", err=True)
        raise typer.Exit(code=1)

    if record is None:
        typer.echo(f"** no state record for {resolved} in {settings.state_dir}", err=True)
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(json.dumps(record.to_dict(), sort_keys=True, separators=(",", ":")))
        return

    typer.echo(f"identity: {record.identity}")
    typer.echo(f"state: {record.state}")
    if record.past_scripts:
        typer.echo("past_scripts: " + ", ".join(record.past_scripts))
    else:
        typer.echo("past_scripts: none")


@app.command("set-state")
def set_state(
    state: str = typer.Argument(..., help="New lifecycle state, e.g. operational."),
    identity: Optional[str] = typer.Option(None, help="Instance identity (default: env or hostname)."),
    state_dir: Optional[str] = typer.Option(None, help="Directory holding instance state records."),
    log_path: Optional[str] = typer.Option(None, help="Also append operational log lines to this file."),
    force: bool = typer.Option(False, "--force", help=f"Allow states other than {', '.join(KNOWN_STATES)}."),
) -> None:
    """
    Overwrite the local lifecycle state (manual recovery)
    """
    if state not in KNOWN_STATES and not force:
        raise typer.BadParameter(f"unknown state {state!r}; use --force to write it anyway")

    try:
        instance = _open_state(identity, state_dir, log_path)
        instance.set_value(state)
    except (StateConflictError, StatePersistenceError) as e:
        typer.echo(f"** {e}", err=True)
        raise typer.Exit(code=1)


@app.command("record-script")
def record_script(
    script_id: str = typer.Argument(..., help="Identifier of the executed script."),
    identity: Optional[str] = typer.Option(None, help="Instance identity (default: env or hostname)."),
    state_dir: Optional[str] = typer.Option(None, help="Directory holding instance state records."),
    log_path: Optional[str] = typer.Option(None, help="Also append operational log lines to this file."),
) -> None:
    """
    Append a script to the persisted execution history
    """
    try:
        instance = _open_state(identity, state_dir, log_path)
        instance.record_script_execution(script_id)
    except (StateConflictError, StatePersistenceError) as e:
        typer.echo(f"** {e}", err=True)
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
