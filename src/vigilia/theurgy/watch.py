"""
Theurgy Watch - install a filter and stream its changes.

The filter is uninstalled from the node when the stream ends, whether
that is after --count items or on Ctrl-C.
"""

from __future__ import annotations

import json
import sys
from typing import Any, Optional

import click

from ..client import Vigilia
from ..config import WatchConfig
from ..custodia.channel import BackpressurePolicy
from ..pneuma.errors import RpcError
from ..pneuma.types import FilterOption, Log, event_topic

KINDS = ("logs", "blocks", "pending")


def _parse_block(value: Optional[str]) -> Optional[Any]:
    if value is None:
        return None
    if value.isdigit():
        return int(value)
    return value


def _render(item: Any, as_json: bool) -> str:
    if isinstance(item, Log):
        if as_json:
            return json.dumps(item.to_dict())
        return (
            f"block {item.block_number}  log {item.log_index}  "
            f"{item.address}  {item.event or '(anonymous)'}"
        )
    if as_json:
        return json.dumps(item)
    return str(item)


@click.command()
@click.argument("kind", type=click.Choice(KINDS))
@click.option("--address", multiple=True, help="Contract address (repeatable)")
@click.option("--event", "events", multiple=True, help="Event signature, e.g. 'Transfer(address,address,uint256)'")
@click.option("--topic", "topics", multiple=True, help="Raw topic0 hash (repeatable)")
@click.option("--from-block", default=None, help="Block number or tag")
@click.option("--count", default=0, type=int, help="Stop after N items (0 = forever)")
@click.option("--interval", default=None, type=float, help="Poll interval in seconds")
@click.option("--queue-size", default=None, type=int, help="Buffered items before backpressure applies")
@click.option(
    "--backpressure",
    type=click.Choice([p.value for p in BackpressurePolicy]),
    default=None,
    help="What to do when output falls behind",
)
@click.option("--json", "as_json", is_flag=True, help="Print one JSON document per item")
@click.option("--rpc-url", envvar="VIGILIA_RPC_URL", default=None, help="Node RPC URL")
def watch(
    kind: str,
    address: tuple[str, ...],
    events: tuple[str, ...],
    topics: tuple[str, ...],
    from_block: Optional[str],
    count: int,
    interval: Optional[float],
    queue_size: Optional[int],
    backpressure: Optional[str],
    as_json: bool,
    rpc_url: Optional[str],
) -> None:
    """Stream new logs, block hashes or pending transaction hashes."""
    if kind != "logs" and (address or events or topics or from_block):
        click.secho("ERROR: --address/--event/--topic/--from-block only apply to 'logs'", fg="red")
        sys.exit(1)

    try:
        config = WatchConfig.from_env(
            poll_interval=interval,
            queue_size=queue_size,
            backpressure=backpressure,
        )
    except ValueError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(1)

    client = Vigilia.from_url(rpc_url, config=config)
    try:
        if kind == "logs":
            topic0 = [event_topic(sig) for sig in events] + list(topics)
            option = FilterOption(
                from_block=_parse_block(from_block),
                address=list(address) or None,
                topics=[topic0] if topic0 else None,
            )
            installed = client.eth.new_filter(option)
        elif kind == "blocks":
            installed = client.eth.new_block_filter()
        else:
            installed = client.eth.new_pending_transaction_filter()
    except RpcError as exc:
        click.secho(f"ERROR: Could not install filter: {exc}", fg="red")
        client.close()
        sys.exit(exc.exit_code)

    click.echo(f"Watching {kind} (filter {installed.id:#x}); Ctrl-C to stop.", err=True)

    seen = 0
    try:
        for item in installed.watch():
            click.echo(_render(item, as_json))
            seen += 1
            if count and seen >= count:
                break
    except KeyboardInterrupt:
        pass
    finally:
        try:
            installed.uninstall()
        except RpcError as exc:
            click.secho(f"WARNING: Could not uninstall filter {installed.id:#x}: {exc}", fg="yellow", err=True)
        client.close()

    click.echo(f"{seen} item(s) received.", err=True)


@click.command()
@click.argument("filter_id")
@click.option("--rpc-url", envvar="VIGILIA_RPC_URL", default=None, help="Node RPC URL")
def uninstall(filter_id: str, rpc_url: Optional[str]) -> None:
    """Remove filter FILTER_ID (hex or decimal) from the node."""
    try:
        ident = int(filter_id, 0)
    except ValueError:
        ident = -1
    if ident < 0:
        click.secho(f"ERROR: Invalid filter id: {filter_id}", fg="red")
        sys.exit(1)

    client = Vigilia.from_url(rpc_url)
    try:
        removed = client.eth.uninstall_filter_id(ident)
    except RpcError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)
    finally:
        client.close()

    if removed:
        click.secho(f"Filter {ident:#x} uninstalled.", fg="green")
    else:
        click.secho(f"Filter {ident:#x} was not installed.", fg="yellow")
