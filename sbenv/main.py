"""
sbenv — CLI entrypoint.

Usage:
    sbenv --help
    sbenv init --email alice@example.com
    eval "$(sbenv activate)"
    sbenv start
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from sbenv import __version__
from sbenv.core.observability.logging_config import level_from_flags, setup_logging
from sbenv.ui.cli.common import fail, get_context


@click.group()
@click.version_option(version=__version__, prog_name="sbenv")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to the environment's .syftbox/config.json (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """sbenv — virtualenv-style environments for the SyftBox daemon."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=level_from_flags(verbose=verbose, quiet=quiet, debug=debug),
        log_file=os.environ.get("SBENV_LOG_FILE"),
        log_file_level=os.environ.get("SBENV_LOG_FILE_LEVEL"),
    )


# ── Environments ────────────────────────────────────────────────


@cli.command()
@click.argument("path", type=click.Path(file_okay=False), default=".")
@click.option("--email", "-e", default=None, help="Principal for this environment.")
@click.option("--name", "-n", default=None, help="Display name.")
@click.option("--server-url", default=None, help="Server the daemon connects to.")
@click.option("--binary", "-b", "binary_spec", default=None, help="Version or path of the daemon to pin.")
@click.option("--dev/--no-dev", "dev_mode", default=None, help="Daemon dev mode.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def init(
    ctx: click.Context,
    path: str,
    email: str | None,
    name: str | None,
    server_url: str | None,
    binary_spec: str | None,
    dev_mode: bool | None,
    as_json: bool,
) -> None:
    """Initialize a SyftBox environment at PATH (default: current directory).

    Running it again on an existing environment updates it in place; the
    port and control token are kept.
    """
    from sbenv.core.use_cases.environments import init_environment

    result = init_environment(
        get_context(ctx),
        Path(path),
        email,
        server_url=server_url,
        name=name,
        binary_spec=binary_spec,
        dev_mode=dev_mode,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        fail(result.error)

    record = result.record
    assert record is not None
    verb = "Created" if result.created else "Updated"
    click.secho(f"✅ {verb} environment {record.display_name}", fg="green", bold=True)
    click.echo(f"   Root:    {result.root}")
    click.echo(f"   Email:   {record.email}")
    click.echo(f"   Port:    {record.port}")
    click.echo(f"   Server:  {record.server_url}")
    if record.binary:
        click.echo(f"   Binary:  {record.binary.label()}")
    if not ctx.obj.get("quiet"):
        click.echo()
        click.echo('   Activate with:  eval "$(sbenv activate)"')


@cli.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List registered environments."""
    from sbenv.core.use_cases.environments import list_environments

    result = list_environments(get_context(ctx))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    if not result.entries:
        click.echo("No environments registered. Create one with 'sbenv init'.")
        return

    active = os.environ.get("SBENV_ROOT")
    click.secho(f"\n📦 Environments: {len(result.entries)}", fg="cyan", bold=True)
    for entry in result.entries:
        record = entry.record
        marker = " ← active" if active and active == record.path else ""
        if entry.running:
            click.secho(f"   ● {record.display_name}", fg="green", nl=False)
        else:
            click.secho(f"   ○ {record.display_name}", fg="white", nl=False)
        click.echo(f"  {record.email}  :{record.port}  → {record.path}{marker}")
        if record.binary:
            click.echo(f"       binary: {record.binary.label()}")
    if result.default_binary:
        click.echo()
        click.echo(f"   Default binary: {result.default_binary}")
    click.echo()


@cli.command()
@click.option("--no-probe", is_flag=True, help="Don't contact the daemon.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def info(ctx: click.Context, no_probe: bool, as_json: bool) -> None:
    """Show details of the current environment."""
    from sbenv.core.use_cases.environments import environment_info
    from sbenv.ui.cli.daemon import echo_status

    result = environment_info(
        get_context(ctx), ctx.obj.get("config_path"), probe=not no_probe,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.error:
        fail(result.error)

    config = result.config
    assert config is not None
    record = result.record
    title = record.display_name if record else result.root.name if result.root else "?"
    click.secho(f"\n📋 {title}", fg="cyan", bold=True)
    click.echo(f"   Root:     {result.root}")
    click.echo(f"   Config:   {result.config_path}")
    click.echo(f"   Email:    {config.email}")
    click.echo(f"   Server:   {config.server_url}")
    if config.client_url:
        click.echo(f"   Client:   {config.client_url}")
    if record:
        click.echo(f"   Port:     {record.port}")
        binary = record.binary.label() if record.binary else "(not pinned)"
        click.echo(f"   Binary:   {binary}")
    else:
        click.secho("   ⚠️  Not registered — run 'sbenv init' here", fg="yellow")
    if result.defaults and result.defaults.binary:
        click.echo(f"   Default:  {result.defaults.binary}")
    for name, status in result.adapters.items():
        if not status["available"]:
            click.secho(f"   ⚠️  Host adapter unavailable: {name} ({status['type']})", fg="yellow")
    if result.daemon:
        click.echo()
        echo_status(result.daemon)
    click.echo()


@cli.command()
@click.argument("path", type=click.Path(file_okay=False), default=".")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def remove(ctx: click.Context, path: str, yes: bool, as_json: bool) -> None:
    """Unregister the environment at PATH (files are kept).

    A running daemon is stopped first.
    """
    from sbenv.core.use_cases.environments import remove_environment

    root = Path(path).expanduser().absolute()
    if not yes and not as_json:
        click.confirm(f"Remove environment at {root}?", abort=True)

    result = remove_environment(get_context(ctx), root)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)

    if result.stop and result.stop.was_running:
        click.echo(f"   Stopped daemon (PID {result.stop.pid})")
    if result.error:
        fail(result.error)
    for key in result.removed_keys:
        click.secho(f"🗑️  Removed {key}", fg="green")


# ── Shell integration ───────────────────────────────────────────


@cli.command()
@click.option(
    "--shell", "-s",
    type=click.Choice(["sh", "bash", "zsh", "fish"]),
    default="sh",
    help="Syntax of the emitted script.",
)
@click.pass_context
def activate(ctx: click.Context, shell: str) -> None:
    """Print shell commands that activate the current environment.

    Use as:  eval "$(sbenv activate)"
    """
    from sbenv.core.config.loader import ConfigError, env_root, load_env_config
    from sbenv.core.services.registry import find_record
    from sbenv.core.use_cases.environments import activation_script

    sbenv_ctx = get_context(ctx)
    try:
        config_path, _ = load_env_config(ctx.obj.get("config_path"), sbenv_ctx.paths)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)

    root = env_root(config_path)
    _, record = find_record(sbenv_ctx.load_registry(), root)
    name = record.display_name if record else root.name
    click.echo(activation_script(root, config_path.absolute(), shell, name), nl=False)


@cli.command()
@click.option(
    "--shell", "-s",
    type=click.Choice(["sh", "bash", "zsh", "fish"]),
    default="sh",
    help="Syntax of the emitted script.",
)
def deactivate(shell: str) -> None:
    """Print shell commands that deactivate the active environment.

    Use as:  eval "$(sbenv deactivate)"
    """
    from sbenv.core.use_cases.environments import deactivation_script

    click.echo(deactivation_script(shell), nl=False)


# ── Register sub-command groups from sbenv/ui/cli/ ──────────────

from sbenv.ui.cli.binary import binary  # noqa: E402
from sbenv.ui.cli.daemon import logs, restart, start, status, stop  # noqa: E402

cli.add_command(start)
cli.add_command(stop)
cli.add_command(restart)
cli.add_command(status)
cli.add_command(logs)
cli.add_command(binary)


if __name__ == "__main__":
    cli()
