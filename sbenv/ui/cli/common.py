"""
Helpers shared by the CLI command modules.
"""

from __future__ import annotations

import sys
from typing import NoReturn

import click

from sbenv.core.context import SbenvContext


def get_context(ctx: click.Context) -> SbenvContext:
    """The invocation's ``SbenvContext`` (built from the environment on first use).

    Tests pass a prepared one via ``CliRunner.invoke(..., obj={"sbenv": ...})``.
    """
    root = ctx.find_root()
    root.ensure_object(dict)
    if root.obj.get("sbenv") is None:
        root.obj["sbenv"] = SbenvContext.from_env()
    return root.obj["sbenv"]


def fail(message: str) -> NoReturn:
    click.secho(f"❌ {message}", fg="red")
    sys.exit(1)
