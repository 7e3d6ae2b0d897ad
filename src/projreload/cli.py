"""Projreload CLI entry point."""

import asyncio
import logging

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from projreload import __version__
from projreload.document import ProjectCollection
from projreload.errors import InvalidProjectFileError
from projreload.events import Event, EventBus, EventType
from projreload.reload import (
    ProjectReloadManager,
    ReloadableProject,
    ReloadAttempt,
    ReloadResult,
    WatchConfig,
)
from projreload.reload.manager import ReloadableUnit
from projreload.services import ProjectServices, ProjectTree

console = Console()


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich handler."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )


def print_tree(tree: ProjectTree) -> None:
    """Render an evaluated project tree as tables."""
    table = Table(title=f"Properties (v{tree.version})")
    table.add_column("Name", style="cyan")
    table.add_column("Value", style="green")
    for name, value in tree.properties.items():
        table.add_row(name, value)
    console.print(table)

    table = Table(title="Items")
    table.add_column("Type", style="cyan")
    table.add_column("Include")
    for item_type, includes in tree.items.items():
        for include in includes:
            table.add_row(item_type, include)
    console.print(table)


def _open_services(project_file: str, bus: EventBus) -> ProjectServices:
    try:
        return ProjectServices.open(project_file, collection=ProjectCollection("global"), bus=bus)
    except InvalidProjectFileError as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1) from e


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging")
@click.version_option(__version__, prog_name="projreload")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Projreload - in-place reload of project definition files."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose)


@cli.command()
@click.argument("project_file", type=click.Path(dir_okay=False))
def check(project_file: str) -> None:
    """Check that a project file parses."""
    try:
        ProjectCollection().open(project_file)
    except InvalidProjectFileError as e:
        console.print(f"[red]✗[/red] {e}")
        raise SystemExit(1) from e
    console.print(f"[green]✓[/green] {project_file} is a valid project file")


@cli.command()
@click.argument("project_file", type=click.Path(dir_okay=False))
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def show(project_file: str, as_json: bool) -> None:
    """Evaluate a project file and show its properties and items."""
    if as_json:
        logging.getLogger().setLevel(logging.WARNING)

    services = _open_services(project_file, EventBus())

    async def evaluate() -> ProjectTree | None:
        await services.tree_service.publish_latest_tree(block_during_loading_tree=True)
        return services.tree_service.current_tree

    tree = asyncio.run(evaluate())
    if tree is None:
        raise SystemExit(1)

    if as_json:
        print(tree.model_dump_json(indent=2))
    else:
        print_tree(tree)


@cli.command()
@click.argument("project_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--poll-interval", default=1.0, help="Seconds between file polls")
@click.option("--debounce", default=0.5, help="Seconds to wait for changes to settle")
@click.option("--no-hash", is_flag=True, help="Detect changes by modification time only")
def watch(project_file: str, poll_interval: float, debounce: float, no_hash: bool) -> None:
    """Watch a project file and reload it in place when it changes."""
    bus = EventBus()
    services = _open_services(project_file, bus)
    config = WatchConfig(poll_interval=poll_interval, debounce_seconds=debounce, use_hash=not no_hash)

    async def report_fallback(unit: ReloadableUnit, attempt: ReloadAttempt) -> None:
        if attempt.result == ReloadResult.RELOAD_FAILED_PROJECT_DIRTY:
            console.print(f"[yellow]→[/yellow] {unit.project_file} has unsaved changes, not reloaded")
        else:
            console.print(f"[red]✗[/red] Reload of {unit.project_file} failed: {attempt.error_message}")

    def on_event(event: Event) -> None:
        if event.type == EventType.TREE_PUBLISHED and services.tree_service.current_tree:
            print_tree(services.tree_service.current_tree)

    async def run_watch() -> None:
        manager = ProjectReloadManager(fallback=report_fallback, watch_config=config, bus=bus)
        project = ReloadableProject(services, manager)
        bus.add_callback(on_event)

        await project.initialize()
        await services.tree_service.publish_latest_tree(block_during_loading_tree=True)
        console.print(f"[bold green]Watching {services.project_file}[/bold green]")
        try:
            await manager.watch_loop()
        finally:
            await project.dispose()
            await manager.close()

    try:
        asyncio.run(run_watch())
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped watching[/yellow]")


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
