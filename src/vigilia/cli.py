"""
Vigilia CLI

Command-line interface for watching an Ethereum node's filters.

Commands:
  watch      - Install a filter and stream its changes
  call       - Send a raw JSON-RPC call
  status     - Show node status
  uninstall  - Remove a filter from the node by id
  info       - Show effective configuration
"""

from __future__ import annotations

import logging
import sys

import click

from . import __version__ as VERSION
from .config import WatchConfig, get_rpc_url, load_env


# ============ Banner ============


def _print_banner() -> None:
    border = click.style("  ◇ ─────────────────────────────── ◇", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo(
        click.style("        V I G I L I A", fg="bright_white", bold=True)
        + click.style(f"    v{VERSION}", dim=True)
    )
    click.secho("        ─── filters, watched ───", fg="cyan")
    click.echo(border)
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="vigilia")
@click.option("-v", "--verbose", count=True, help="Log more (-v info, -vv debug)")
@click.pass_context
def cli(ctx: click.Context, verbose: int) -> None:
    """Vigilia: push-style filters for Ethereum JSON-RPC nodes."""
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose > 1:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    load_env()

    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.call import call
from .theurgy.status import status
from .theurgy.watch import uninstall, watch

cli.add_command(watch)
cli.add_command(call)
cli.add_command(status)
cli.add_command(uninstall)


# ============ Info ============


@cli.command()
def info() -> None:
    """Show effective configuration."""
    try:
        config = WatchConfig.from_env()
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    click.echo(f"Vigilia v{VERSION}")
    click.echo(f"  RPC URL:           {get_rpc_url()}")
    click.echo(f"  Poll interval:     {config.poll_interval}s")
    click.echo(f"  Queue size:        {config.queue_size}")
    click.echo(f"  Backpressure:      {config.backpressure.value}")
    click.echo(f"  Delivery timeout:  {config.delivery_timeout}s")
    poll_timeout = "transport default" if config.poll_timeout is None else f"{config.poll_timeout}s"
    click.echo(f"  Poll timeout:      {poll_timeout}")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
