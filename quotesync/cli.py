"""Command line interface for the quote store.

Each command opens the store from the configured data directory, performs
one user intent and prints the outcome with rich.
"""

import asyncio
import logging
import os
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Annotated, Any, Literal, Optional

import cyclopts
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table
from rich.text import Text

from quotesync.client import RemoteQuoteClient
from quotesync.config import QuoteSyncConfig
from quotesync.exceptions import ImportFormatError, ValidationError
from quotesync.models import ALL_CATEGORIES, Disposition, Quote
from quotesync.reconcile import ReconciliationEngine
from quotesync.selection import QuotePicker
from quotesync.storage import LocalDiskStorage
from quotesync.store import QuoteStore
from quotesync.sync import SyncEngine, SyncResult

app = cyclopts.App(name="quotesync", help="Browse, add and sync quotes")


def _get_console() -> Console:
    """Get a Rich console for output."""
    return Console()


def _get_config() -> QuoteSyncConfig:
    return QuoteSyncConfig.from_env()


def _open_store(config: QuoteSyncConfig) -> QuoteStore:
    return QuoteStore(LocalDiskStorage(config.data_dir)).open()


def _make_client(config: QuoteSyncConfig, store: QuoteStore) -> RemoteQuoteClient:
    return RemoteQuoteClient(
        base_url=config.remote_url,
        timeout=config.timeout,
        fetch_limit=config.fetch_limit,
        clock=store.clock,
    )


def _run_with_engine(
    config: QuoteSyncConfig,
    store: QuoteStore,
    action: Callable[[SyncEngine], Awaitable[Any]],
) -> Any:
    async def runner():
        async with _make_client(config, store) as client:
            engine = SyncEngine(store, client, interval=config.sync_interval)
            try:
                return await action(engine)
            finally:
                await engine.aclose()

    return asyncio.run(runner())


def _render_quote(quote: Quote) -> Panel:
    return Panel(
        Text.assemble(
            (f"“{quote.text}”\n", "white"),
            (f" - {quote.category}", "italic dim"),
        ),
        title=quote.id,
        border_style="cyan",
    )


def _quote_table(quotes: tuple[Quote, ...], title: str) -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Text", style="white")
    table.add_column("Category", style="magenta")
    table.add_column("Source", style="green")
    for quote in quotes:
        table.add_row(quote.id, quote.text, quote.category, quote.source.value)
    return table


def _time_ago(delta: timedelta) -> str:
    seconds = delta.total_seconds()
    if seconds < 60:
        return f"{int(seconds)} seconds ago"
    elif seconds < 3600:
        return f"{int(seconds / 60)} minutes ago"
    elif seconds < 86400:
        return f"{int(seconds / 3600)} hours ago"
    else:
        return f"{int(seconds / 86400)} days ago"


def _sync_summary(result: SyncResult) -> Panel:
    if result.ok:
        return Panel(
            Text.assemble(
                ("✓ ", "green bold"),
                ("Sync complete\n\n", "green"),
                ("Fetched: ", "cyan"),
                (str(result.fetched), "white"),
                ("\nAdded: ", "cyan"),
                (str(result.added), "white"),
                ("\nMerged: ", "cyan"),
                (str(result.merged), "white"),
                ("\nConflicts: ", "cyan"),
                (str(result.conflicted), "white"),
            ),
            title="Sync",
            border_style="green",
        )
    return Panel(
        Text.assemble(
            ("✗ ", "red bold"),
            ("Remote unavailable, nothing merged\n\n", "red"),
            ("Error: ", "cyan"),
            (str(result.error), "white"),
        ),
        title="Sync",
        border_style="red",
    )


@app.command
def show(
    *,
    category: Annotated[
        Optional[str], cyclopts.Parameter(help="Category to pick from")
    ] = None,
):
    """Show one random quote from the selected category.

    Example:
        quotesync show
        quotesync show --category Wisdom
    """
    console = _get_console()
    store = _open_store(_get_config())

    quote = QuotePicker(store).pick(category)
    if quote is None:
        console.print("[yellow]No quotes in this category[/yellow]")
        return
    console.print(_render_quote(quote))


@app.command(name="list")
def list_quotes(
    *,
    category: Annotated[
        Optional[str], cyclopts.Parameter(help="Only list this category")
    ] = None,
):
    """List every quote in the selected (or given) category."""
    console = _get_console()
    store = _open_store(_get_config())

    category = category or store.preferences.selected_category
    view = store.filter(category)
    if not view:
        console.print(f"[yellow]No quotes in {category}[/yellow]")
        return
    console.print(_quote_table(view, title=f"Quotes ({category})"))


@app.command
def categories():
    """List the categories available for filtering."""
    console = _get_console()
    store = _open_store(_get_config())

    selected = store.preferences.selected_category
    for name in [ALL_CATEGORIES, *store.list_categories()]:
        marker = "[green]*[/green] " if name == selected else "  "
        console.print(f"{marker}{name}")


@app.command
def select(
    category: Annotated[str, cyclopts.Parameter(help="Category, or 'all'")],
):
    """Remember a category filter for show and list."""
    console = _get_console()
    store = _open_store(_get_config())

    selected = store.select_category(category)
    count = len(store.filter(selected))
    console.print(f"[green]✓ Selected {selected} ({count} quotes)[/green]")


@app.command
def add(
    text: Annotated[str, cyclopts.Parameter(help="Quote text")],
    category: Annotated[str, cyclopts.Parameter(help="Quote category")],
):
    """Add a new quote.

    Example:
        quotesync add "Stay hungry, stay foolish." Inspiration
    """
    console = _get_console()
    store = _open_store(_get_config())

    try:
        quote = store.add(text, category)
    except ValidationError as e:
        console.print(f"[red]Error: {e}[/red]")
        return

    console.print("[green]✓ Quote added[/green]")
    console.print(_render_quote(quote))


@app.command
def remove(
    quote_id: Annotated[str, cyclopts.Parameter(help="Id of the quote to delete")],
):
    """Delete a quote by id."""
    console = _get_console()
    store = _open_store(_get_config())

    if store.remove(quote_id):
        console.print(f"[green]✓ Removed {quote_id}[/green]")
    else:
        console.print(f"[yellow]No quote with id {quote_id}[/yellow]")


@app.command
def sync(
    *,
    keep: Annotated[
        Optional[Literal["local", "remote"]],
        cyclopts.Parameter(help="Resolve every conflict the same way"),
    ] = None,
    ask: Annotated[
        bool, cyclopts.Parameter(help="Ask how to resolve each conflict")
    ] = False,
):
    """Fetch remote quotes and merge them into the local collection.

    On conflict the remote version is applied. Use --keep local to revert
    every conflict, or --ask to decide one by one.

    Example:
        quotesync sync
        quotesync sync --ask
    """
    console = _get_console()
    config = _get_config()
    store = _open_store(config)

    with console.status("[cyan]Syncing...[/cyan]"):
        result = _run_with_engine(config, store, lambda engine: engine.sync_now())

    console.print(_sync_summary(result))

    conflicts = result.reconcile.conflicts
    if not conflicts:
        return

    reconciler = ReconciliationEngine(store)
    for conflict in conflicts:
        console.print(
            Panel(
                Text.assemble(
                    ("Local:  ", "cyan"),
                    (f"{conflict.local.text} ({conflict.local.category})\n", "white"),
                    ("Remote: ", "cyan"),
                    (f"{conflict.remote.text} ({conflict.remote.category})", "white"),
                ),
                title=f"Conflict {conflict.key}",
                border_style="yellow",
            )
        )

        choice = keep
        if choice is None and ask:
            choice = Prompt.ask(
                "Keep which version?",
                choices=["local", "remote"],
                default="remote",
                console=console,
            )
        if choice is None:
            continue

        reconciler.resolve(conflict.key, Disposition(choice))
        console.print(f"[green]✓ Kept {choice} version of {conflict.key}[/green]")


@app.command
def push():
    """Push every local-only quote to the remote source."""
    console = _get_console()
    config = _get_config()
    store = _open_store(config)

    pending = len(store.local_only())
    if not pending:
        console.print("[green]Nothing to push[/green]")
        return

    with console.status(f"[cyan]Pushing {pending} quotes...[/cyan]"):
        result = _run_with_engine(config, store, lambda engine: engine.push_all())

    console.print(f"[green]✓ Pushed {len(result.pushed)}[/green]")
    if result.failed:
        console.print(
            f"[yellow]{len(result.failed)} failed and stay local for retry[/yellow]"
        )


@app.command(name="auto-sync")
def auto_sync(
    enabled: Annotated[bool, cyclopts.Parameter(help="Turn auto-sync on or off")],
):
    """Enable or disable periodic sync for `quotesync watch`."""
    console = _get_console()
    store = _open_store(_get_config())

    store.set_auto_sync(enabled)
    if enabled:
        console.print("[green]✓ Auto-sync enabled[/green]")
    else:
        console.print("[yellow]Auto-sync disabled[/yellow]")


@app.command
def watch(
    *,
    duration: Annotated[
        Optional[float],
        cyclopts.Parameter(help="Stop after this many seconds (default: run until Ctrl-C)"),
    ] = None,
):
    """Run periodic sync in the foreground while auto-sync is enabled."""
    console = _get_console()
    config = _get_config()
    store = _open_store(config)

    if not store.preferences.auto_sync_enabled:
        console.print(
            "[red]Auto-sync is disabled. Run 'quotesync auto-sync true' first.[/red]"
        )
        return

    async def run(engine: SyncEngine):
        async def report():
            result = await engine.sync_now()
            if result is not None:
                console.print(_sync_summary(result))
            return result

        engine.scheduler.trigger = report
        engine.start()
        console.print(f"[dim]Syncing every {config.sync_interval}s[/dim]")
        if duration is None:
            await asyncio.Event().wait()
        else:
            await asyncio.sleep(duration)

    try:
        _run_with_engine(config, store, run)
    except KeyboardInterrupt:
        console.print("[yellow]Stopped[/yellow]")


@app.command
def export(
    path: Annotated[
        Optional[Path], cyclopts.Parameter(help="Output file (default: stdout)")
    ] = None,
):
    """Export every quote as JSON."""
    console = _get_console()
    store = _open_store(_get_config())

    data = store.export_bytes()
    if path is None:
        sys.stdout.write(data.decode("utf-8") + "\n")
        return

    path.write_bytes(data)
    console.print(f"[green]✓ Exported {len(store)} quotes to {path}[/green]")


@app.command(name="import")
def import_quotes(
    path: Annotated[Path, cyclopts.Parameter(help="JSON file produced by export")],
):
    """Append quotes from a JSON export."""
    console = _get_console()
    store = _open_store(_get_config())

    try:
        imported = store.import_bytes(path.read_bytes())
    except (ImportFormatError, OSError) as e:
        console.print(f"[red]Import failed: {e}[/red]")
        return

    console.print(f"[green]✓ Imported {len(imported)} quotes[/green]")


@app.command
def reset():
    """Replace every quote with the built-in defaults (preferences are kept)."""
    console = _get_console()
    store = _open_store(_get_config())

    store.reset_to_defaults()
    console.print(f"[yellow]Reset to {len(store)} default quotes[/yellow]")


@app.command
def status():
    """Show store and sync status."""
    console = _get_console()
    config = _get_config()
    store = _open_store(config)
    prefs = store.preferences

    table = Table(title="Quote Sync Status", show_header=False, box=None)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")

    table.add_row("Data directory", str(config.data_dir))
    table.add_row("Remote URL", config.remote_url)
    table.add_row("Quotes", str(len(store)))
    table.add_row("Local only", str(len(store.local_only())))
    table.add_row("Categories", ", ".join(store.list_categories()) or "-")
    table.add_row("Selected", prefs.selected_category)
    table.add_row("Auto-sync", "✓ Enabled" if prefs.auto_sync_enabled else "✗ Disabled")

    if prefs.last_sync:
        time_ago = _time_ago(datetime.now(timezone.utc) - prefs.last_sync)
        table.add_row(
            "Last Sync",
            f"{prefs.last_sync.strftime('%Y-%m-%d %H:%M:%S UTC')} ({time_ago})",
        )
    else:
        table.add_row("Last Sync", "Never")

    console.print(table)


def main():
    load_dotenv()
    logging.basicConfig(
        level=os.environ.get("QUOTESYNC_LOG_LEVEL", "WARNING").upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    app()


if __name__ == "__main__":
    main()
