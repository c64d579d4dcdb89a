"""CLI entry point for netdrive."""

import io
import json
import sys
import time
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from netdrive import __version__
from netdrive.config import (
    DEFAULT_CONFIG,
    default_config_path,
    load_config,
    retry_policy,
    save_config,
    shares_path,
    validate_config,
)
from netdrive.errors import ConfigNotFoundError, NetdriveError, UserAbort, ValidationError
from netdrive.lock import DriveLock
from netdrive.logging_setup import setup_logging
from netdrive.models import Action, Command
from netdrive.mount_manager import MountManager
from netdrive.mounters import create_mounter
from netdrive.orchestrator import ConnectionOrchestrator, exit_code, parse_scope
from netdrive.probe import ReachabilityProbe, tcp_probe
from netdrive.shares import load_shares
from netdrive.status import StatusReporter


def _get_config(ctx) -> dict:
    """Load settings using the path from context (or default)."""
    path = ctx.obj.get("config_path")
    if path:
        path = Path(path)
    return load_config(path)


def _get_valid_config(ctx, console: Console) -> dict:
    """Load settings and exit 1 on any validation error, before network I/O."""
    cfg = _get_config(ctx)
    errors = validate_config(cfg)
    if errors:
        for err in errors:
            console.print(f"[red]\u2718[/red] {escape(err)}")
        console.print("[red]Invalid settings; run 'netdrive validate' for details.[/red]")
        raise SystemExit(1)
    return cfg


def _get_console(ctx) -> Console:
    """Create a Rich console respecting --no-color, with UTF-8 forced on Windows."""
    no_color = ctx.obj.get("no_color", False)
    # Force UTF-8 output to avoid Windows cp1252 encoding errors with Rich
    if sys.platform == "win32":
        out = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8", errors="replace")
        return Console(file=out, no_color=no_color, force_terminal=True)
    return Console(no_color=no_color)


def _load_specs(ctx, cfg: dict, console: Console, quiet_warnings: bool = False):
    """Load the share file, printing warnings.  Exits 1 if it is missing."""
    path = shares_path(cfg, ctx.obj.get("shares_path"))
    try:
        specs, warnings = load_shares(path)
    except ConfigNotFoundError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)
    if not quiet_warnings:
        for w in warnings:
            console.print(f"[yellow]\u26a0[/yellow] {path}: {escape(str(w))}")
    return specs


def _build_probe(cfg: dict) -> ReachabilityProbe:
    return ReachabilityProbe(
        policy=retry_policy(cfg, "probe"),
        timeout=cfg.get("probe", {}).get("timeout", 3),
        probe_fn=tcp_probe,
        sleep=time.sleep,
    )


def _build_orchestrator(cfg: dict, specs) -> ConnectionOrchestrator:
    mounter = create_mounter(cfg)
    manager = MountManager(mounter, retry_policy(cfg, "mount"), sleep=time.sleep)
    return ConnectionOrchestrator(
        specs,
        manager,
        _build_probe(cfg),
        confirm=lambda prompt: click.confirm(prompt, default=False),
        settle_delay=cfg.get("reconnect_settle_seconds", 2),
        sleep=time.sleep,
        probe_workers=cfg.get("probe", {}).get("workers", 1),
        lock_factory=DriveLock,
    )


def _run_action(ctx, action: Action, drive: str, yes: bool, as_json: bool) -> None:
    console = _get_console(ctx)
    logger = setup_logging(ctx.obj.get("verbose", False))
    cfg = _get_valid_config(ctx, console)

    try:
        scope = parse_scope(drive)
    except ValidationError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    specs = _load_specs(ctx, cfg, console, quiet_warnings=as_json)
    command = Command(action=action, scope=scope, auto_confirm=yes)

    try:
        orchestrator = _build_orchestrator(cfg, specs)
        results = orchestrator.run(command)
    except UserAbort:
        console.print("[dim]Cancelled.[/dim]")
        return
    except NetdriveError as e:
        logger.error("%s %s: %s", action.value, scope, e)
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps([r.to_dict() for r in results], indent=2))
    elif not results:
        if action == Action.DISCONNECT:
            console.print("[dim]nothing to disconnect[/dim]")
        else:
            console.print("[dim]No shares configured.[/dim]")
    else:
        table = Table(title=f"netdrive {action.value}")
        table.add_column("Drive", style="cyan")
        table.add_column("Result")
        table.add_column("Detail")
        for r in results:
            table.add_row(f"{r.drive_letter}:", r.outcome.icon, escape(r.detail))
        console.print(table)

    code = exit_code(results)
    if code:
        raise SystemExit(code)


@click.group()
@click.option("--config", "config_path", type=click.Path(), default=None,
              help="Path to settings file.")
@click.option("--shares", "shares_path", type=click.Path(), default=None,
              help="Path to share definition file.")
@click.option("--no-color", is_flag=True, help="Disable colored output.")
@click.option("--verbose", "-v", is_flag=True, help="Log every probe and mount attempt.")
@click.pass_context
def cli(ctx, config_path, shares_path, no_color, verbose):
    """netdrive - connect and manage SMB/WebDAV network drives."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["shares_path"] = shares_path
    ctx.obj["no_color"] = no_color
    ctx.obj["verbose"] = verbose


@cli.command()
def version():
    """Show netdrive version."""
    click.echo(f"netdrive {__version__}")


_yes_option = click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
_json_option = click.option("--json", "as_json", is_flag=True, help="Output as JSON.")


@cli.command("connect")
@click.argument("drive")
@_yes_option
@_json_option
@click.pass_context
def connect_cmd(ctx, drive, yes, as_json):
    """Connect DRIVE (a letter) or 'all' configured shares."""
    _run_action(ctx, Action.CONNECT, drive, yes, as_json)


@cli.command("disconnect")
@click.argument("drive")
@_yes_option
@_json_option
@click.pass_context
def disconnect_cmd(ctx, drive, yes, as_json):
    """Disconnect DRIVE or 'all' mounted network drives."""
    _run_action(ctx, Action.DISCONNECT, drive, yes, as_json)


@cli.command("reconnect")
@click.argument("drive")
@_yes_option
@_json_option
@click.pass_context
def reconnect_cmd(ctx, drive, yes, as_json):
    """Disconnect then connect DRIVE or 'all' configured shares."""
    _run_action(ctx, Action.RECONNECT, drive, yes, as_json)


@cli.command("list")
@click.pass_context
def list_cmd(ctx):
    """List configured shares."""
    console = _get_console(ctx)
    cfg = _get_config(ctx)
    specs = _load_specs(ctx, cfg, console)

    if not specs:
        console.print("[dim]No shares configured.[/dim]")
        return

    table = Table(title="Configured shares")
    table.add_column("Drive", style="cyan")
    table.add_column("Name")
    table.add_column("Target")
    table.add_column("Description")
    table.add_column("User")
    for s in specs:
        user = s.credential.username if s.credential else "[dim]anonymous[/dim]"
        table.add_row(f"{s.drive_letter}:", escape(s.id), escape(s.target.path),
                      escape(s.description), user)
    console.print(table)


@cli.command("status")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status_cmd(ctx, as_json):
    """Show connection and server status for every configured share."""
    console = _get_console(ctx)
    setup_logging(ctx.obj.get("verbose", False))
    cfg = _get_valid_config(ctx, console)
    specs = _load_specs(ctx, cfg, console, quiet_warnings=as_json)

    try:
        reporter = StatusReporter(specs, create_mounter(cfg), _build_probe(cfg))
        entries = reporter.report()
    except NetdriveError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise SystemExit(1)

    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return

    if not entries:
        console.print("[dim]No shares configured.[/dim]")
        return

    table = Table(title="netdrive status")
    table.add_column("Drive", style="cyan")
    table.add_column("Path")
    table.add_column("Status")
    for e in entries:
        table.add_row(f"{e.drive_letter}:", escape(e.path), e.tier.icon)
    console.print(table)


@cli.command("validate")
@click.option("--write-defaults", is_flag=True,
              help="Write a default settings file if none exists.")
@click.pass_context
def validate_cmd(ctx, write_defaults):
    """Validate the settings and share files."""
    console = _get_console(ctx)
    path = Path(ctx.obj["config_path"]) if ctx.obj.get("config_path") else default_config_path()

    if write_defaults:
        if path.exists():
            console.print(f"[dim]{path} already exists, not overwritten.[/dim]")
        else:
            save_config(DEFAULT_CONFIG, path)
            console.print(f"[green]\u2714[/green] Wrote {path}")

    cfg = _get_config(ctx)
    errors = validate_config(cfg)
    for err in errors:
        console.print(f"[red]\u2718[/red] {escape(err)}")

    specs_file = shares_path(cfg, ctx.obj.get("shares_path"))
    try:
        specs, warnings = load_shares(specs_file)
    except ConfigNotFoundError as e:
        console.print(f"[red]\u2718[/red] {escape(str(e))}")
        raise SystemExit(1)
    for w in warnings:
        console.print(f"[yellow]\u26a0[/yellow] {specs_file}: {escape(str(w))}")

    if errors or warnings:
        raise SystemExit(1)
    console.print(f"[green]\u2714[/green] Settings valid, {len(specs)} share(s) in {specs_file}")
