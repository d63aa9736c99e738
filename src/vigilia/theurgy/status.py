"""
Theurgy Status - summarize what the node reports about itself.
"""

from __future__ import annotations

import sys

import click

from ..client import Vigilia
from ..pneuma.errors import RpcError


@click.command()
@click.option("--rpc-url", envvar="VIGILIA_RPC_URL", default=None, help="Node RPC URL")
def status(rpc_url: str) -> None:
    """Show chain id, head block, peers and sync state."""
    click.echo("=== Vigilia Status ===")
    click.echo("")

    client = Vigilia.from_url(rpc_url)
    try:
        chain_id = client.eth.chain_id()
        head = client.eth.block_number()
        gas_price = client.eth.gas_price()
        syncing = client.eth.syncing()
    except RpcError as exc:
        click.secho(f"ERROR: Failed to query node: {exc}", fg="red")
        client.close()
        sys.exit(exc.exit_code)

    click.echo(f"  Chain ID:     {chain_id}")
    click.echo(f"  Head block:   {head}")
    click.echo(f"  Gas price:    {gas_price / 1e9:.3f} gwei")

    # net_* is disabled on many hosted endpoints
    try:
        click.echo(f"  Peers:        {client.net.peer_count()}")
    except RpcError:
        click.echo("  Peers:        (unavailable)")
    finally:
        client.close()

    if syncing is False:
        click.secho("  Sync:         in sync", fg="green")
    else:
        remaining = syncing.highest_block - syncing.current_block
        click.secho(
            f"  Sync:         {syncing.current_block}/{syncing.highest_block} ({remaining} behind)",
            fg="yellow",
        )
