"""
CLI commands for the environment's daemon: start, stop, restart, status, logs.

Thin wrappers over ``sbenv.core.use_cases.daemon``.
"""

from __future__ import annotations

import json
import sys

import click

from sbenv.core.observability.health import HEALTHY, UNHEALTHY, UNREACHABLE, ProbeResult
from sbenv.core.services.supervisor.daemon import RUNNING, STALE, DaemonStatus
from sbenv.core.use_cases.daemon import DaemonResult
from sbenv.ui.cli.common import fail, get_context

_HEALTH_STYLE = {
    HEALTHY: ("💚", "green"),
    UNHEALTHY: ("🟡", "yellow"),
    UNREACHABLE: ("🔴", "red"),
}


def echo_probe(probe: ProbeResult) -> None:
    icon, color = _HEALTH_STYLE.get(probe.status, ("❔", "white"))
    click.secho(f"   {icon} HTTP: {probe.status}", fg=color, nl=False)
    detail = f" ({probe.message})" if probe.message else ""
    click.echo(f"{detail}  {probe.url}".rstrip())


def echo_status(status: DaemonStatus) -> None:
    if status.state == RUNNING:
        click.secho(f"   ● Daemon running (PID {status.pid})", fg="green", bold=True)
    else:
        click.secho("   ○ Daemon not running", fg="white", bold=True)
        if status.state == STALE:
            click.secho(f"     (removed stale PID file for PID {status.pid})", fg="yellow")
    if status.health:
        echo_probe(status.health)
    if status.log_path:
        click.echo(f"   Log: {status.log_path}")


def _emit_json(result: DaemonResult) -> None:
    click.echo(json.dumps(result.to_dict(), indent=2))
    sys.exit(1 if result.error else 0)


def _echo_started(ctx: click.Context, result: DaemonResult) -> None:
    started = result.start
    assert started is not None
    if started.already_running:
        click.secho(f"✅ Daemon already running (PID {started.pid})", fg="green")
        return

    click.secho(f"✅ Daemon started (PID {started.pid})", fg="green", bold=True)
    if result.binary:
        version = f" {result.binary.version}" if result.binary.version else ""
        click.echo(f"   Binary:{version} {result.binary.path} [{result.binary.source}]")
    if started.orphans_killed:
        click.secho(
            f"   Killed orphaned daemon(s): {', '.join(map(str, started.orphans_killed))}",
            fg="yellow",
        )
    if started.probe:
        echo_probe(started.probe)
    if started.log_path:
        click.echo(f"   Log: {started.log_path}")
    if ctx.obj.get("verbose") and started.argv:
        click.echo(f"   │ {' '.join(started.argv)}")


@click.command()
@click.option("--force", "-f", is_flag=True, help="Restart if already running.")
@click.option("--no-probe", is_flag=True, help="Skip the HTTP health check.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def start(ctx: click.Context, force: bool, no_probe: bool, as_json: bool) -> None:
    """Start the daemon for the current environment."""
    from sbenv.core.use_cases.daemon import start_daemon

    result = start_daemon(
        get_context(ctx), ctx.obj.get("config_path"), force=force, probe=not no_probe,
    )
    if as_json:
        _emit_json(result)
    if result.error:
        fail(result.error)
    _echo_started(ctx, result)


@click.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def stop(ctx: click.Context, as_json: bool) -> None:
    """Stop the daemon for the current environment."""
    from sbenv.core.use_cases.daemon import stop_daemon

    result = stop_daemon(get_context(ctx), ctx.obj.get("config_path"))
    if as_json:
        _emit_json(result)
    if result.error:
        fail(result.error)

    stopped = result.stop
    assert stopped is not None
    if not stopped.was_running:
        click.echo("Daemon is not running.")
        if stopped.stale_cleaned:
            click.secho(f"   (removed stale PID file for PID {stopped.pid})", fg="yellow")
        return
    how = " (killed)" if stopped.forced else ""
    click.secho(f"🛑 Daemon stopped (PID {stopped.pid}){how}", fg="green")


@click.command()
@click.option("--no-probe", is_flag=True, help="Skip the HTTP health check.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def restart(ctx: click.Context, no_probe: bool, as_json: bool) -> None:
    """Stop and start the daemon for the current environment."""
    from sbenv.core.use_cases.daemon import restart_daemon

    result = restart_daemon(get_context(ctx), ctx.obj.get("config_path"), probe=not no_probe)
    if as_json:
        _emit_json(result)
    if result.error:
        fail(result.error)
    _echo_started(ctx, result)


@click.command()
@click.option("--no-probe", is_flag=True, help="Don't contact the daemon.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, no_probe: bool, as_json: bool) -> None:
    """Show whether the daemon is running and answering."""
    from sbenv.core.use_cases.daemon import daemon_status

    result = daemon_status(get_context(ctx), ctx.obj.get("config_path"), probe=not no_probe)
    if as_json:
        _emit_json(result)
    if result.error:
        fail(result.error)

    assert result.status is not None
    click.secho(f"\n📡 {result.root}", fg="cyan", bold=True)
    echo_status(result.status)
    click.echo()


@click.command()
@click.option("--lines", "-n", default=50, show_default=True, help="Number of lines.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def logs(ctx: click.Context, lines: int, as_json: bool) -> None:
    """Show the tail of the daemon's log file."""
    from sbenv.core.use_cases.daemon import daemon_logs

    result = daemon_logs(get_context(ctx), ctx.obj.get("config_path"), lines=lines)
    if as_json:
        _emit_json(result)
    if result.error:
        fail(result.error)

    if not result.log_lines:
        click.echo(f"No log output yet ({result.log_path}).")
        return
    for line in result.log_lines:
        click.echo(line)
