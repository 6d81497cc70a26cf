"""
binpin — CLI entrypoint.

Usage:
    binpin --help
    binpin get github.com/golangci/golangci-lint/cmd/golangci-lint@v1.55.2
    binpin get            # install every pinned tool
    binpin list
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from binpin import __version__
from binpin.core.observability.logging_config import resolve_level, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="binpin")
@click.option("--verbose", "-v", is_flag=True, help="Print what is being done.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to binpin.yml (default: auto-detect).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool, config_path: str | None) -> None:
    """binpin — pin Go tools as per-tool module files in your project."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(verbose, debug, os.environ.get("BINPIN_LOG_LEVEL")),
        log_file=os.environ.get("BINPIN_LOG_FILE"),
        log_file_level=os.environ.get("BINPIN_LOG_FILE_LEVEL"),
    )


def _load(ctx: click.Context, **overrides: object):
    from binpin.core.config.loader import ConfigError, load_settings

    try:
        return load_settings(ctx.obj.get("config_path"), **overrides)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


@cli.command()
@click.argument("target", required=False, default="")
@click.option("-u", "update", is_flag=True, help="Update to the newest minor or patch release (go get -u).")
@click.option("--upatch", is_flag=True, help="Update to the newest patch release (go get -u=patch).")
@click.option("-n", "--name", default="", help="Install under this name instead of the one derived from the path.")
@click.option("-r", "--rename", "rename_to", default="", help="Rename the installed tool TARGET to this name.")
@click.option("-l", "--link", is_flag=True, help="Also symlink <name> to the versioned binary.")
@click.option("--moddir", default=None, help="Directory holding the pinned module files (default: .binpin).")
@click.pass_context
def get(
    ctx: click.Context,
    target: str,
    update: bool,
    upatch: bool,
    name: str,
    rename_to: str,
    link: bool,
    moddir: str | None,
) -> None:
    """Pin and install TARGET: a package path or tool name, optionally @version[,version...].

    \b
    Examples:
        binpin get github.com/x/tool/cmd/tool@v1.2.3
        binpin get tool@v1.2.3,v1.3.0     # several versions side by side
        binpin get -u tool                # update
        binpin get tool@none              # stop pinning
        binpin get                        # install everything pinned
    """
    from binpin.adapters.toolchain.go import GoAdapter
    from binpin.core.errors import PinError
    from binpin.core.services.pinning import UpdatePolicy, pin

    if update and upatch:
        click.secho("❌ -u and --upatch cannot be used together", fg="red", err=True)
        sys.exit(1)
    policy = UpdatePolicy.UPDATE if update else UpdatePolicy.PATCH if upatch else UpdatePolicy.NONE

    settings = _load(ctx, mod_dir=moddir)
    adapter = GoAdapter(go_binary=settings.go_binary)
    if not adapter.is_available():
        click.secho(f"❌ Go binary {settings.go_binary!r} not found in PATH", fg="red", err=True)
        sys.exit(1)

    try:
        pinned = pin(settings, adapter, target, update=policy, name=name, rename_to=rename_to, link=link)
    except PinError as e:
        click.secho(f"❌ {_chain(e)}", fg="red", err=True)
        sys.exit(1)

    if not pinned:
        if target.endswith("@none"):
            click.secho(f"🗑️  Removed {target.split('@', 1)[0]} (binaries left in place)", fg="yellow")
        return
    for pkg in pinned:
        click.secho(f"✅ {pkg}", fg="green")


@cli.command(name="list")
@click.argument("tool", required=False, default="")
@click.option("--moddir", default=None, help="Directory holding the pinned module files (default: .binpin).")
@click.pass_context
def list_cmd(ctx: click.Context, tool: str, moddir: str | None) -> None:
    """List pinned tools (or the versions of one TOOL)."""
    from binpin.core.errors import PinError
    from binpin.core.services.pinning import format_pinned_table, list_pinned, sort_pinned

    settings = _load(ctx, mod_dir=moddir)
    mod_dir = Path(settings.mod_dir)
    if not mod_dir.is_dir():
        click.secho(f"❌ No pinned tools: {mod_dir} does not exist. Run 'binpin get <tool>' first.", fg="red", err=True)
        sys.exit(1)

    tools = sort_pinned(list_pinned(mod_dir))
    try:
        click.echo(format_pinned_table(tools, target=tool.lower()), nl=False)
    except PinError as e:
        click.secho(f"❌ {e}", fg="red", err=True)
        sys.exit(1)


def _chain(err: BaseException) -> str:
    """Outermost message, plus any cause not already part of it."""
    parts = [str(err)]
    cause = err.__cause__
    while cause is not None:
        if str(cause) not in parts[-1]:
            parts.append(str(cause))
        cause = cause.__cause__
    return ": ".join(parts)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
