# leafsync/cli/__main__.py

"""
leafsync CLI

Usage: python -m leafsync.cli [command] [options]
"""

import click

from .context import CLIContext
from .commands.sync import run, replay
from .commands.tree import tree


@click.group()
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.pass_context
def cli(ctx, verbose):
    """leafsync - mirror NewLeaf events from tree contracts into a local store"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose

    cli_context = CLIContext(verbose=verbose)
    ctx.obj['cli_context'] = cli_context
    ctx.call_on_close(cli_context.shutdown)


cli.add_command(run)
cli.add_command(replay)
cli.add_command(tree)


if __name__ == '__main__':
    cli()
