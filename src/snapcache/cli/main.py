"""Main CLI entry point for snapcache.

Provides a command-line settings surface for inspecting and managing the
local image cache.
"""

import dataclasses
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from snapcache.cache import CacheConfig, CacheError, ImageCache
from snapcache.utils import format_size

# Global console for Rich output
console = Console()


def build_cache(cache_dir: Optional[str], storage_dir: Optional[str]) -> ImageCache:
    """Build an ImageCache from environment defaults and CLI overrides.

    Priority:
    1. Explicit --cache-dir/--storage-dir flags
    2. SNAPCACHE_* environment variables
    3. Built-in defaults
    """
    config = CacheConfig.from_env()
    overrides = {}
    if cache_dir:
        overrides["cache_dir"] = Path(cache_dir)
    if storage_dir:
        overrides["storage_dir"] = Path(storage_dir)
    return ImageCache(dataclasses.replace(config, **overrides))


def format_timestamp(value) -> str:
    if value is None:
        return "-"
    return value.astimezone().strftime("%Y-%m-%d %H:%M")


@click.group()
@click.option(
    "--cache-dir",
    type=click.Path(),
    help="Directory holding cached images (default: SNAPCACHE_DIR or ~/.snapcache/image-cache)",
)
@click.option(
    "--storage-dir",
    type=click.Path(),
    help="Directory holding the cache index (default: SNAPCACHE_STORAGE_DIR or ~/.snapcache/storage)",
)
@click.option("--verbose", "-v", is_flag=True, help="Show cache log messages")
@click.pass_context
def cli(ctx, cache_dir, storage_dir, verbose):
    """snapcache CLI - Inspect and manage the local image cache."""
    if verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )
    ctx.ensure_object(dict)
    ctx.obj["cache_dir"] = cache_dir
    ctx.obj["storage_dir"] = storage_dir


def _cache(ctx) -> ImageCache:
    try:
        return build_cache(ctx.obj.get("cache_dir"), ctx.obj.get("storage_dir"))
    except ValueError as e:
        console.print(f"[red]✗[/red] Invalid configuration: {e}", style="red")
        sys.exit(1)


@cli.command("stats")
@click.pass_context
def stats_command(ctx):
    """Show cache statistics.

    Example:
        snapcache stats
    """
    try:
        cache = _cache(ctx)
        stats = cache.stats()

        table = Table(title="Image cache")
        table.add_column("Property", style="cyan", no_wrap=True)
        table.add_column("Value", style="white")

        table.add_row("Directory", str(cache.config.cache_dir))
        table.add_row("Entries", str(stats["entry_count"]))
        table.add_row(
            "Total size",
            f"{format_size(stats['total_size_bytes'])} of "
            f"{format_size(cache.config.max_total_size)}",
        )
        table.add_row("Oldest entry", format_timestamp(stats["oldest_created_at"]))
        table.add_row("Newest entry", format_timestamp(stats["newest_created_at"]))

        console.print(table)

    except CacheError as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("fetch")
@click.argument("source")
@click.pass_context
def fetch_command(ctx, source):
    """Cache an image and print its local path.

    Example:
        snapcache fetch https://example.com/avatar.png
    """
    try:
        cache = _cache(ctx)
        local_path = cache.resolve(source)
        console.print(f"[green]✓[/green] {local_path}")

    except (CacheError, ValueError) as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("preload")
@click.argument("sources", nargs=-1, required=True)
@click.pass_context
def preload_command(ctx, sources):
    """Cache several images at once.

    Example:
        snapcache preload https://example.com/a.png https://example.com/b.png
    """
    try:
        cache = _cache(ctx)
        results = cache.preload(sources)

    except CacheError as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)

    table = Table(title=f"Preloaded ({len(results)})")
    table.add_column("Source", style="cyan")
    table.add_column("Result")

    for result in results:
        if result.success:
            table.add_row(result.source, f"[green]{result.local_path}[/green]")
        else:
            table.add_row(result.source, f"[red]{result.error}[/red]")

    console.print(table)

    failed = sum(1 for result in results if not result.success)
    if failed:
        console.print(f"[yellow]{failed} of {len(results)} images failed[/yellow]")
        sys.exit(1)


@cli.command("status")
@click.argument("source")
@click.pass_context
def status_command(ctx, source):
    """Show cache status of one image.

    Example:
        snapcache status https://example.com/avatar.png
    """
    try:
        cache = _cache(ctx)
        if not cache.is_cached(source):
            console.print("[yellow]Not cached[/yellow]")
            return

        entry = cache.get_entry(source)
        console.print(f"\n[bold cyan]{entry.source}[/bold cyan]")
        console.print(f"[bold]Key:[/bold] {entry.cache_key}")
        console.print(f"[bold]Path:[/bold] {entry.local_path}")
        console.print(f"[bold]Size:[/bold] {format_size(entry.size_bytes)}")
        console.print(f"[bold]Type:[/bold] {entry.content_type}")
        console.print(f"[bold]Created:[/bold] {format_timestamp(entry.created_at)}")
        console.print(
            f"[bold]Last accessed:[/bold] {format_timestamp(entry.last_accessed_at)}"
        )

    except (CacheError, ValueError) as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("remove")
@click.argument("source")
@click.pass_context
def remove_command(ctx, source):
    """Remove one image from the cache.

    Example:
        snapcache remove https://example.com/avatar.png
    """
    try:
        cache = _cache(ctx)
        if cache.remove(source):
            console.print(f"[green]✓[/green] Removed {source}")
        else:
            console.print(f"[yellow]Not cached:[/yellow] {source}")

    except (CacheError, ValueError) as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("sweep")
@click.pass_context
def sweep_command(ctx):
    """Evict expired entries and trim the cache to its size limit.

    Example:
        snapcache sweep
    """
    try:
        cache = _cache(ctx)
        evicted = cache.sweep()
        console.print(f"[green]✓[/green] Evicted {evicted} entries")

    except CacheError as e:
        console.print(f"[red]✗[/red] Error: {e}", style="red")
        sys.exit(1)


@cli.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt")
@click.pass_context
def clear_command(ctx, yes):
    """Delete every cached image.

    Example:
        snapcache clear -y
    """
    cache = _cache(ctx)

    if not yes:
        if not click.confirm(f"Delete all cached images in {cache.config.cache_dir}?"):
            console.print("[yellow]Cancelled[/yellow]")
            return

    cache.clear()
    console.print("[green]✓[/green] Image cache cleared")


if __name__ == "__main__":
    cli()
