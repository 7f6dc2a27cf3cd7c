"""
CLI commands for daemon binaries.

Thin wrappers over ``sbenv.core.use_cases.binary``.
"""

from __future__ import annotations

import json
import sys

import click

from sbenv.core.use_cases.binary import BinaryResult
from sbenv.ui.cli.common import fail, get_context


@click.group()
def binary() -> None:
    """Daemon binaries — resolve, pin, host default, cache."""


def _echo_resolved(result: BinaryResult) -> None:
    resolved = result.resolved
    if resolved is None:
        return
    version = resolved.version or "unknown version"
    click.echo(f"   {resolved.path}")
    click.echo(f"   {version}  [{resolved.source}]")
    build = resolved.build
    if build and (build.os or build.hash):
        platform = f"{build.os}/{build.arch}" if build.os else ""
        click.echo(f"   {platform} {build.hash or ''}".rstrip())


@binary.command()
@click.argument("spec", required=False)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def resolve(ctx: click.Context, spec: str | None, as_json: bool) -> None:
    """Show the binary SPEC (or the current environment) resolves to.

    SPEC is a version (0.8.5, v0.8.5) or a path / command name.  Versions
    missing from the cache are downloaded.
    """
    from sbenv.core.use_cases.binary import resolve_environment_binary

    result = resolve_environment_binary(
        get_context(ctx), spec, ctx.obj.get("config_path"),
    )
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)
    if result.error:
        fail(result.error)

    click.secho("🔧 Resolved binary", fg="cyan", bold=True)
    _echo_resolved(result)


@binary.command()
@click.argument("spec")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def pin(ctx: click.Context, spec: str, as_json: bool) -> None:
    """Pin the current environment to SPEC (version or path)."""
    from sbenv.core.use_cases.binary import pin_binary

    result = pin_binary(get_context(ctx), spec, ctx.obj.get("config_path"))
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)
    if result.error:
        fail(result.error)

    assert result.pinned is not None
    click.secho(f"📌 Pinned {result.root} to {result.pinned.label()}", fg="green")


@binary.command("default")
@click.argument("spec")
@click.option("--no-check", is_flag=True, help="Store SPEC without resolving it.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def default_cmd(ctx: click.Context, spec: str, no_check: bool, as_json: bool) -> None:
    """Set the host-wide default binary to SPEC."""
    from sbenv.core.use_cases.binary import set_default_binary

    result = set_default_binary(get_context(ctx), spec, check=not no_check)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)
    if result.error:
        fail(result.error)

    click.secho(f"✅ Default binary: {spec}", fg="green")
    _echo_resolved(result)


@binary.command("clear-default")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def clear_default(ctx: click.Context, as_json: bool) -> None:
    """Remove the host-wide default binary."""
    from sbenv.core.use_cases.binary import clear_default_binary

    result = clear_default_binary(get_context(ctx))
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return
    if result.spec:
        click.secho(f"🗑️  Cleared default binary ({result.spec})", fg="green")
    else:
        click.echo("No default binary was set.")


@binary.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_cmd(ctx: click.Context, as_json: bool) -> None:
    """List cached daemon versions."""
    from sbenv.core.use_cases.binary import list_binaries

    result = list_binaries(get_context(ctx))
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    click.secho(f"\n📦 Cached binaries ({result.cache_dir})", fg="cyan", bold=True)
    if not result.versions:
        click.echo("   (none)")
    for version, path in result.versions.items():
        marker = " ← default" if result.default and result.default.lstrip("v") == version else ""
        click.echo(f"   • {version}  → {path}{marker}")
    if result.default:
        click.echo()
        click.echo(f"   Default: {result.default}")
    click.echo()


@binary.command("remove")
@click.argument("version")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def remove_cmd(ctx: click.Context, version: str, as_json: bool) -> None:
    """Delete VERSION from the binary cache."""
    from sbenv.core.use_cases.binary import remove_binary

    result = remove_binary(get_context(ctx), version)
    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(1 if result.error else 0)
    if result.error:
        fail(result.error)

    click.secho(f"🗑️  Removed {result.version} from the cache", fg="green")
    if result.pinned_by:
        click.secho("   ⚠️  Still pinned by (will be downloaded again on start):", fg="yellow")
        for key in result.pinned_by:
            click.echo(f"     • {key}")
