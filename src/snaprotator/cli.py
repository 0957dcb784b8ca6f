"""Command-line interface for snaprotator."""

import json
import sys
from typing import Callable, Optional

import click

from . import __version__
from .context import AppContext
from .errors import RotatorError, format_error
from .utils import generate_snapshot_name


def initialize_context(config_file: Optional[str] = None) -> AppContext:
    """Build the application context.

    The reporting pipeline depends on the context itself, so failures here
    are printed directly and the process exits.
    """
    try:
        return AppContext.create(config_file)
    except Exception as e:
        click.echo(f"Error: Failed to initialize: {format_error(RotatorError.wrap(e))}", err=True)
        sys.exit(1)


def handle_fatal_error(app: AppContext, error: RotatorError) -> None:
    """Send an unexpected error through every reporting channel."""
    try:
        app.dispatcher.dispatch_fatal(error)
    except RotatorError as report_error:
        click.echo(
            f"An error occurred while handling an error.\n{format_error(error)}\n\n{format_error(report_error)}",
            err=True,
        )


def run_command(app: AppContext, action: Callable, *args) -> None:
    """Run a command body and route any failure.

    User errors are logged as a one-line message. Anything else goes
    through the fatal reporting path. Both exit with status 1.
    """
    try:
        action(app, *args)
    except Exception as e:
        error = RotatorError.wrap(e)

        if error.is_user_error:
            try:
                app.log_sink.log(f"Error: {error.message}")
            except RotatorError:
                click.echo(f"Error: {error.message}", err=True)
        else:
            handle_fatal_error(app, error)

        sys.exit(1)


def vm_name_option(func):
    return click.option('--vm-name', '-n', required=True, help='The name of virtual machine.')(func)


@click.group()
@click.option('--config', '-c', type=click.Path(dir_okay=False),
              help='Path to configuration file')
@click.version_option(__version__, prog_name='snaprotator')
@click.pass_context
def cli(ctx, config: Optional[str]):
    """snaprotator - creates and rotates virtual machine snapshots."""
    ctx.ensure_object(dict)

    if 'app' not in ctx.obj:
        ctx.obj['app'] = initialize_context(config)


def create_snapshot(app: AppContext, vm_name: str) -> None:
    policy = app.config.policy_for(vm_name)
    snapshot_name = generate_snapshot_name(policy.vm_name, app.start_time)

    app.log_sink.log(f"Creating snapshot `{snapshot_name}` ...")
    app.runner.run(app.tool.create_snapshot_command(policy.vm_name, snapshot_name)).as_result()

    app.retention.prune(policy)

    app.email_reporter.send_success_report(policy)


def list_snapshots(app: AppContext, vm_name: str) -> None:
    policy = app.config.policy_for(vm_name)

    for snapshot in app.catalog.list(policy.vm_name):
        app.log_sink.log(f"{snapshot.vm_name} {snapshot.created_at}")


def clear_cache(app: AppContext, vm_name: str) -> None:
    policy = app.config.policy_for(vm_name)
    app.retention.prune(policy)


def show_config(app: AppContext) -> None:
    click.echo(json.dumps(app.config.redacted(), indent=2, default=str))


@cli.command('create')
@vm_name_option
@click.pass_context
def create_command(ctx, vm_name: str):
    """Create a snapshot, prune old ones and send a success report."""
    run_command(ctx.obj['app'], create_snapshot, vm_name)


@cli.command('list')
@vm_name_option
@click.pass_context
def list_command(ctx, vm_name: str):
    """List the snapshots of a virtual machine."""
    run_command(ctx.obj['app'], list_snapshots, vm_name)


@cli.command('clear-cache')
@vm_name_option
@click.pass_context
def clear_cache_command(ctx, vm_name: str):
    """Delete the oldest snapshots beyond the retention minimum."""
    run_command(ctx.obj['app'], clear_cache, vm_name)


@cli.command('config')
@click.pass_context
def config_command(ctx):
    """Print the configuration with credentials masked."""
    run_command(ctx.obj['app'], show_config)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == '__main__':
    main()
