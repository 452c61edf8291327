# leafsync/cli/commands/tree.py

"""
Tree tracking commands
"""

import click
from web3 import Web3


def _validate_address(ctx, param, value):
    if not Web3.is_address(value):
        raise click.BadParameter(f"Not an address: {value}")
    return value.lower()


@click.group()
def tree():
    """Manage tracked tree contracts"""
    pass


@tree.command('track')
@click.argument('address', callback=_validate_address)
@click.pass_context
def track(ctx, address):
    """Mark ADDRESS active so its leaves are mirrored"""
    tracked = ctx.obj['cli_context'].store.track_contract(address)
    click.echo(f"Tracking {tracked.contract_address} (last block: {tracked.last_block_number})")


@tree.command('untrack')
@click.argument('address', callback=_validate_address)
@click.pass_context
def untrack(ctx, address):
    """Stop mirroring ADDRESS. Recorded leaves are kept."""
    if not ctx.obj['cli_context'].store.set_active(address, False):
        raise click.ClickException(f"Tree not found: {address}")
    click.echo(f"Stopped tracking {address}")


@tree.command('status')
@click.pass_context
def status(ctx):
    """List tracked trees with their latest leaf"""
    store = ctx.obj['cli_context'].store
    trees = store.get_trees()
    if not trees:
        click.echo("No trees tracked")
        return

    for merkle_tree in trees:
        state = "active" if merkle_tree.active else "inactive"
        click.echo(
            f"{merkle_tree.contract_address}  {state:<8}  "
            f"leaves={store.count_leaves(merkle_tree.contract_address)}  "
            f"latest_index={merkle_tree.latest_leaf_index}  "
            f"latest_block={merkle_tree.latest_leaf_block_number}"
        )
