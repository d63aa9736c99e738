"""
Theurgy Call - send a raw JSON-RPC call and print the result.
"""

from __future__ import annotations

import json
import sys

import click

from ..client import Vigilia
from ..pneuma.errors import RpcError


@click.command()
@click.argument("method")
@click.option("--params", "params_json", default="[]", help="Params as JSON array")
@click.option("--rpc-url", envvar="VIGILIA_RPC_URL", default=None, help="Node RPC URL")
def call(method: str, params_json: str, rpc_url: str) -> None:
    """
    Send METHOD to the node and print the JSON result.

    Example: vigilia call eth_getBalance --params '["0xabc...", "latest"]'
    """
    try:
        params = json.loads(params_json)
        if not isinstance(params, list):
            raise ValueError("Params must be a JSON array")
    except (json.JSONDecodeError, ValueError) as exc:
        click.secho(f"ERROR: Invalid params: {exc}", fg="red")
        sys.exit(1)

    client = Vigilia.from_url(rpc_url)
    try:
        result = client.manager.call(method, *params)
    except RpcError as exc:
        click.secho(f"ERROR: {exc}", fg="red")
        sys.exit(exc.exit_code)
    finally:
        client.close()

    click.echo(json.dumps(result.value, indent=2))
