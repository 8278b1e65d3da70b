"""CLI commands for imagelink.

`watch` is the long-running sync loop; `push` and `find` are one-shot helpers
against the same link endpoint.
"""

import asyncio
import signal
from pathlib import Path

import typer
from rich.console import Console

from imagelink import __logo__, __version__
from imagelink.cli.logging_utils import configure_console, ensure_rotating_log_file
from imagelink.config.loader import load_config
from imagelink.config.schema import Config
from imagelink.link.lookup import find_node_by_name
from imagelink.runtime import SyncRuntime
from imagelink.sync.events import FileEvent, FileEventKind, is_image_file
from imagelink.utils.exceptions import ImageLinkError, describe_exception

app = typer.Typer(
    name="imagelink",
    help=f"{__logo__} imagelink - sync a folder of images into a live host world",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} imagelink v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
):
    """imagelink - image folder to host world sync."""
    pass


def _load(config_path: Path | None, verbose: bool, log_name: str) -> Config:
    try:
        config = load_config(config_path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    level = "DEBUG" if verbose else config.logging.level
    configure_console(level)
    if config.logging.file:
        log_path = ensure_rotating_log_file(log_name, level=level)
        console.print(f"[dim]Logs: {log_path}[/dim]")
    return config


def _install_stop_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Windows event loops: fall back to KeyboardInterrupt.
            pass


# ============================================================================
# Watch
# ============================================================================


@app.command()
def watch(
    url: str = typer.Argument(None, help="Link endpoint, e.g. ws://localhost:22345"),
    directory: Path = typer.Argument(None, help="Directory to watch (default: ./images)"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Watch a directory and mirror its images into the host world."""
    config = _load(config_path, verbose, "watch")
    watch_dir = (directory or Path.cwd() / config.watch.directory).expanduser().resolve()
    runtime = SyncRuntime.from_config(config, url=url)

    console.print(f"{__logo__} imagelink - image sync")
    console.print(f"Link URL: [cyan]{runtime.client.url}[/cyan]")
    console.print(f"Watch directory: [cyan]{watch_dir}[/cyan]")

    if not watch_dir.exists():
        watch_dir.mkdir(parents=True, exist_ok=True)
        console.print(f"[green]✓[/green] Created watch directory: {watch_dir}")

    async def run() -> None:
        try:
            await runtime.client.connect()
        except ImageLinkError as e:
            console.print(f"[red]Failed to connect:[/red] {describe_exception(e)}")
            raise typer.Exit(1) from e

        stop_event = asyncio.Event()
        _install_stop_handlers(stop_event)
        console.print("\nWatching for image changes... Press Ctrl+C to stop\n")
        try:
            await runtime.watch(watch_dir, stop_event)
        finally:
            console.print("\n[yellow]Shutting down...[/yellow]")
            stop_event.set()
            await runtime.client.close()

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")


# ============================================================================
# One-shot helpers
# ============================================================================


@app.command()
def push(
    file: Path = typer.Argument(..., help="Image file to create or refresh"),
    url: str = typer.Argument(None, help="Link endpoint"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """Upload one image and create or refresh its object."""
    config = _load(config_path, verbose, "push")
    path = file.expanduser().resolve()
    if not path.is_file():
        console.print(f"[red]No such file:[/red] {path}")
        raise typer.Exit(1)
    if not is_image_file(path, config.watch.extensions):
        console.print(f"[red]Not a supported image type:[/red] {path.suffix}")
        raise typer.Exit(1)
    runtime = SyncRuntime.from_config(config, url=url)

    async def run() -> None:
        try:
            await runtime.client.connect()
        except ImageLinkError as e:
            console.print(f"[red]Failed to connect:[/red] {describe_exception(e)}")
            raise typer.Exit(1) from e
        try:
            outcome = await runtime.router.handle(FileEvent(FileEventKind.MODIFIED, path))
        finally:
            await runtime.client.close()
        if outcome is None:
            console.print(f"[red]✗[/red] {path.name} was not synced (see log)")
            raise typer.Exit(1)
        console.print(f"[green]✓[/green] {path.name}: {outcome.value}")

    asyncio.run(run())


@app.command()
def find(
    name: str = typer.Argument(..., help="Node name to look up"),
    url: str = typer.Argument(None, help="Link endpoint"),
    depth: int = typer.Option(10, "--depth", "-d", help="Search depth below the root"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Print the id of the first node with the given name."""
    config = _load(config_path, False, "find")
    runtime = SyncRuntime.from_config(config, url=url)

    async def run() -> None:
        try:
            await runtime.client.connect()
        except ImageLinkError as e:
            console.print(f"[red]Failed to connect:[/red] {describe_exception(e)}")
            raise typer.Exit(1) from e
        try:
            node = await find_node_by_name(
                runtime.client, name, root_id=config.builder.root_id, max_depth=depth
            )
        except ImageLinkError as e:
            console.print(f"[red]Lookup failed:[/red] {describe_exception(e)}")
            raise typer.Exit(1) from e
        finally:
            await runtime.client.close()
        if node is None:
            console.print(f"[yellow]Not found:[/yellow] {name}")
            raise typer.Exit(1)
        console.print(f"{node.name}: [cyan]{node.id}[/cyan]")

    asyncio.run(run())
