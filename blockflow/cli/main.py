"""
CLI interface for Blockflow
"""
import asyncio
import json
import sys

import click
import uvicorn
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core.config import Config
from ..core.execution.engine import ExecutionEngine
from ..core.execution.errors import ConstructionError, ExecutionError
from ..core.execution.nodes import create_default_registry
from ..core.execution.options import ExecutionOptions
from ..core.execution.report import check_program
from ..core.program import load_program
from ..core.types import BlockCategory
from ..utils.serialization import make_serializable

console = Console()


def _parse_variables(pairs):
    """key=value pairs; values are read as JSON when they parse, else kept as text"""
    variables = {}
    for pair in pairs:
        key, sep, raw = pair.partition('=')
        if not sep or not key.strip():
            raise click.BadParameter(f"Expected key=value, got {pair!r}", param_hint='--var')
        try:
            variables[key.strip()] = json.loads(raw)
        except json.JSONDecodeError:
            variables[key.strip()] = raw
    return variables


def _load(path):
    try:
        return load_program(path)
    except (OSError, ValueError) as e:
        console.print(f"[bold red]❌ Could not load program:[/bold red] {e}")
        sys.exit(1)


@click.group()
def cli():
    """Blockflow - run visual block programs"""
    pass


@cli.command()
@click.option('--category', type=click.Choice(BlockCategory.values()), default=None, help='Only list this category')
def blocks(category):
    """List the built-in block types"""
    registry = create_default_registry()
    entries = registry.get_by_category(category) if category else registry.get_all()

    table = Table(title="Block types", box=box.ROUNDED, border_style="cyan")
    table.add_column("Type", style="bold")
    table.add_column("Category")
    table.add_column("Inputs")
    table.add_column("Outputs")
    table.add_column("Description", style="dim")
    for block_type, definition in entries:
        table.add_row(
            block_type,
            definition.category.value,
            ", ".join(definition.inputs) or "-",
            ", ".join(definition.outputs) or "-",
            definition.description,
        )
    console.print(table)


@cli.command()
def stats():
    """Show block registry statistics"""
    registry_stats = create_default_registry().get_stats()
    click.echo("Registry:")
    click.echo(f"   Total blocks: {registry_stats['total_blocks']}")
    for category, count in registry_stats['category_counts'].items():
        click.echo(f"   {category}: {count}")
    click.echo(f"   Average inputs: {registry_stats['average_inputs']}")
    click.echo(f"   Average outputs: {registry_stats['average_outputs']}")


@cli.command()
def config():
    """Show current configuration"""
    click.echo("Configuration:")
    click.echo(f"   Debug: {Config.DEBUG}")
    click.echo(f"   Max execution time: {Config.MAX_EXECUTION_TIME:g}ms")
    click.echo(f"   Max steps: {Config.MAX_STEPS}")
    click.echo(f"   Step delay: {Config.STEP_DELAY:g}ms")
    click.echo(f"   Block timeout: {Config.BLOCK_TIMEOUT:g}ms")
    click.echo(f"   API Host: {Config.API_HOST}")
    click.echo(f"   API Port: {Config.API_PORT}")


@cli.command()
@click.argument('program_path', type=click.Path(exists=True, dir_okay=False))
def validate(program_path):
    """Check a program file without running it"""
    program = _load(program_path)
    report = check_program(program.elements, program.connections, create_default_registry())

    for warning in report.warnings:
        console.print(f"[yellow]⚠️  {warning}[/yellow]")
    for error in report.errors:
        console.print(f"[red]❌ {error}[/red]")

    if not report.is_valid:
        click.echo(f"Program is invalid ({len(report.errors)} error(s))")
        sys.exit(1)
    click.echo(
        f"✅ Program is valid: {len(program.elements)} elements, {len(program.connections)} connections, "
        f"entry points: {', '.join(report.entry_points) or 'none'}"
    )


@cli.command()
@click.argument('program_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--max-steps', type=int, default=None, help='Maximum element visit attempts')
@click.option('--max-time', type=float, default=None, help='Time budget for the run (ms)')
@click.option('--step-delay', type=float, default=None, help='Pause after each element (ms)')
@click.option('--var', 'variables', multiple=True, help='Runtime variable as key=value (repeatable)')
@click.option('--json', 'as_json', is_flag=True, help='Print the final state as JSON')
def run(program_path, max_steps, max_time, step_delay, variables, as_json):
    """Execute a program file"""
    program = _load(program_path)
    option_values = {
        'max_steps': max_steps,
        'max_execution_time': max_time,
        'step_delay': step_delay,
    }
    try:
        options = ExecutionOptions(**{k: v for k, v in option_values.items() if v is not None})
    except ValueError as e:
        raise click.BadParameter(str(e))

    try:
        engine = ExecutionEngine(program.elements, program.connections, create_default_registry())
    except ConstructionError as e:
        console.print(f"[bold red]❌ Invalid program:[/bold red] {e}")
        sys.exit(1)

    failure = None
    try:
        asyncio.run(engine.execute(options, variables=_parse_variables(variables)))
    except ExecutionError as e:
        failure = e
    state = engine.get_execution_state()

    if as_json:
        click.echo(json.dumps(state.to_dict(), indent=2))
    else:
        for entry in state.execution_log:
            console.print(entry, markup=False, highlight=False)
        console.print()
        table = Table(title="Element states", box=box.ROUNDED, border_style="cyan")
        table.add_column("Element", style="bold")
        table.add_column("State")
        for element_id in state.execution_order:
            values = make_serializable(state.element_states.get(element_id, {}))
            table.add_row(element_id, json.dumps(values))
        console.print(table)

    if failure is not None:
        console.print(Panel(
            f"{type(failure).__name__}: {failure}",
            title="[bold red]Execution failed[/bold red]",
            box=box.ROUNDED,
            border_style="red",
        ))
        sys.exit(1)
    if not as_json:
        console.print(
            f"[bold green]✓[/bold green] {state.status.value}: {len(state.processed_elements)} elements "
            f"in {state.step_count} steps"
        )


@cli.command()
@click.option('--port', default=None, type=int, help='Port to run the API server on')
@click.option('--host', default=None, help='Host to bind to')
def serve(port, host):
    """Run the API server"""
    if not Config.validate():
        click.echo("❌ Configuration validation failed. Please check your environment variables.")
        sys.exit(1)

    from ..api.server import create_app

    host = host or Config.API_HOST
    port = port or Config.API_PORT
    click.echo("🚀 Starting Blockflow API server...")
    click.echo(f"   Host: {host}")
    click.echo(f"   Port: {port}")

    uvicorn.run(create_app(), host=host, port=port)


if __name__ == '__main__':
    cli()
