"""
envlocal CLI - deployed Lambda environments for local invocation

Main entry point for the envlocal command-line tool.
"""

import click
import re
import shlex
import subprocess
import sys
from rich.console import Console
from rich.table import Table
from rich import box

from .core.config import ConfigError, load_config
from .core.masking import mask_value
from .core.remote import RemoteFetchError
from .core.syncer import CaptureError, SyncCoordinator
from .core import reporting


console = Console()

SHELL_NAME_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


def common_options(func):
    """Options shared by every command that resolves an address."""
    func = click.option('--project-root', default=None, help='Project root directory (contains serverless.yml)')(func)
    func = click.option('--region', '-r', default=None, help='Region of the deployed stack')(func)
    func = click.option('--stage', '-s', default=None, help='Stage of the deployed stack')(func)
    return func


def build_coordinator(project_root, stage, region) -> SyncCoordinator:
    """Load the service file and wire up a coordinator, exiting on config errors."""
    try:
        config = load_config(project_root)
        return SyncCoordinator(config, stage=stage, region=region)
    except ConfigError as err:
        reporting.error(str(err))
        sys.exit(1)


def _check_function(coordinator: SyncCoordinator, function_name: str) -> None:
    try:
        coordinator.config.get_function(function_name)
    except ConfigError as err:
        reporting.error(str(err))
        sys.exit(1)


@click.group()
def cli():
    """
    envlocal - pull deployed Lambda environments into local invocations
    """


@cli.command()
@common_options
@click.option('--function', '-f', 'functions', multiple=True, help='Function to capture (repeatable, default: all)')
def capture(stage, region, project_root, functions):
    """
    Capture deployed environments after a deploy.

    Fetches each function's resolved environment variables from Lambda and
    writes them to the local store.
    """
    coordinator = build_coordinator(project_root, stage, region)
    for name in functions:
        _check_function(coordinator, name)

    try:
        result = coordinator.on_deployed(functions or None)
    except (NotADirectoryError, ValueError) as err:
        reporting.error(str(err))
        sys.exit(1)
    except CaptureError as err:
        for name, failure in sorted(err.failures.items()):
            hint = "" if isinstance(failure, RemoteFetchError) else f" ({type(failure).__name__})"
            reporting.error(f"{name}: {failure}{hint}")
        console.print(
            f"[yellow]Captured {len(err.written)} of {len(err.written) + len(err.failures)} functions[/yellow]",
        )
        sys.exit(1)

    console.print(f"[green]✓ Captured {len(result.written)} functions for stage "
                  f"{coordinator.stage} in {coordinator.region}[/green]")


@cli.command(context_settings={'ignore_unknown_options': True})
@common_options
@click.option('--function', '-f', 'function_name', required=True, help='Function about to be invoked')
@click.argument('command', nargs=-1, type=click.UNPROCESSED)
def inject(stage, region, project_root, function_name, command):
    """
    Inject a captured environment before a local invocation.

    With COMMAND, runs it with the environment applied and exits with its
    status. Without, prints shell export lines:

        eval "$(envlocal inject -f hello)"
    """
    coordinator = build_coordinator(project_root, stage, region)
    _check_function(coordinator, function_name)

    try:
        env = coordinator.on_before_invoke(function_name)
    except ValueError as err:
        reporting.error(str(err))
        sys.exit(1)

    if not command:
        for key, value in env.items():
            if not SHELL_NAME_RE.fullmatch(key):
                reporting.warn(f"Skipping {key!r}: not a valid shell variable name")
                continue
            click.echo(f"export {key}={shlex.quote(value)}")
        return

    try:
        completed = subprocess.run(list(command))
    except FileNotFoundError:
        reporting.error(f"Command not found: {command[0]}")
        sys.exit(127)
    sys.exit(completed.returncode)


@cli.command()
@common_options
@click.option('--function', '-f', 'function_name', required=True, help='Function to show')
@click.option('--reveal', is_flag=True, help='Show secret-looking values unmasked')
def show(stage, region, project_root, function_name, reveal):
    """
    Show the captured environment for a function.
    """
    coordinator = build_coordinator(project_root, stage, region)
    _check_function(coordinator, function_name)

    address = coordinator.address_for(function_name)
    if not coordinator.store.exists(address):
        console.print(f"[yellow]No captured environment at {address}[/yellow]")
        console.print("[dim]Run 'envlocal capture' after deploying.[/dim]")
        return

    env = coordinator.store.read(address)

    table = Table(title=f"{function_name} ({coordinator.stage}, {coordinator.region})", box=box.ROUNDED)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="green")

    for key in sorted(env):
        value = env[key].replace("\n", "\\n") if reveal else mask_value(key, env[key])
        table.add_row(key, value)

    console.print(table)
    console.print(f"[dim]{address}[/dim]")


@cli.command()
@common_options
@click.option('--function', '-f', 'function_name', required=True, help='Function to locate')
def path(stage, region, project_root, function_name):
    """
    Print the file a function's environment is stored in.
    """
    coordinator = build_coordinator(project_root, stage, region)
    _check_function(coordinator, function_name)
    click.echo(str(coordinator.address_for(function_name)))



def main():
    """Main entry point."""
    cli()


if __name__ == '__main__':
    main()
