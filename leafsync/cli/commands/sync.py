# leafsync/cli/commands/sync.py

import signal
import threading

import click
import requests

from ...core.exceptions import RpcError
from ...pipeline.coordinator import RestartCoordinator
from ...pipeline.replayer import LogReplayer
from ...stream.manager import ConnectionManager
from ...stream.subscriber import EventSubscriber


@click.command()
@click.pass_context
def run(ctx):
    """Catch up every active tree, then follow new leaves until interrupted"""
    cli_context = ctx.obj['cli_context']
    container = cli_context.container

    coordinator = container.get(RestartCoordinator)
    stop_event = threading.Event()

    def _stop(signum, frame):
        click.echo(f"Received signal {signum}, shutting down...")
        stop_event.set()

    signal.signal(signal.SIGTERM, _stop)

    try:
        coordinator.run(stop_event)
    except KeyboardInterrupt:
        click.echo("Interrupted by user, shutting down...")
    finally:
        stop_event.set()
        container.get(EventSubscriber).close()
        container.get(ConnectionManager).close()


@click.command()
@click.argument('address')
@click.option('--from-block', type=int, default=None,
              help='Last block already mirrored (default: the tree\'s latest leaf block)')
@click.pass_context
def replay(ctx, address, from_block):
    """Replay historical NewLeaf logs for ADDRESS into the store"""
    cli_context = ctx.obj['cli_context']
    store = cli_context.store

    if from_block is None:
        tracked = store.get_tracked(address)
        from_block = tracked.last_block_number if tracked else None

    replayer = cli_context.container.get(LogReplayer)
    try:
        result = replayer.replay(address, from_block)
    except (RpcError, requests.RequestException) as e:
        raise click.ClickException(f"Catch-up failed: {e}")

    click.echo(f"Replayed {result.leaf_count} leaves from block {result.start_block}"
               f" ({result.skipped} skipped)")
