"""Output command for showing stack outputs."""

import sys

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

from oculus_deploy.deploy.outputs import StackOutputs
from oculus_deploy.utils.aws_client import AWSClientManager
from oculus_deploy.utils.errors import DeploymentError
from oculus_deploy.utils.logging import get_logger
from oculus_deploy.cli.render import render_error

logger = get_logger(__name__)
console = Console()


@click.command()
@click.option('--format', 'fmt', type=click.Choice(['table', 'json', 'env']), default='table',
              help='Output format')
@click.option('--output-name', help='Show specific output value')
@click.pass_context
def outputs(ctx, fmt: str, output_name: str):
    """Show stack outputs (API URL, site URL, etc.)."""
    cfg = ctx.obj['config']
    clients = AWSClientManager(profile=cfg.project.profile, region=cfg.project.region)

    try:
        stack_outputs = StackOutputs.fetch(clients.get_client('cloudformation'), cfg.project.stack_name)
    except DeploymentError as e:
        render_error(console, e)
        sys.exit(1)

    values = dict(stack_outputs.values)
    if stack_outputs.api_url:
        values.setdefault('ApiUrl', stack_outputs.api_url)

    if not values:
        console.print("[dim]No outputs found[/dim]")
        return

    if output_name:
        if output_name in values:
            click.echo(values[output_name])
        else:
            console.print(f"[red]Output '{output_name}' not found[/red]")
            sys.exit(1)
        return

    if fmt == 'table':
        _output_table(values, stack_outputs.stack_name)
    elif fmt == 'json':
        click.echo(_to_json(values))
    elif fmt == 'env':
        _output_env(values)


def _output_table(values: dict, stack_name: str):
    """Output in table format."""
    console.print(Panel(f"Stack Outputs - {stack_name}", style="bold blue"))
    console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Output Name", style="cyan")
    table.add_column("Value", style="white")

    for name, value in sorted(values.items()):
        table.add_row(name, value)

    console.print(table)


def _to_json(values: dict) -> str:
    import json
    return json.dumps(values, indent=2, sort_keys=True)


def _output_env(values: dict):
    """Output in environment variable format."""
    for name, value in sorted(values.items()):
        # Convert to uppercase and replace special chars
        env_name = name.upper().replace('-', '_').replace('.', '_')
        click.echo(f'export {env_name}="{value}"')
