"""Command-line interface for bookmark-archiver."""

import asyncio
import signal
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bookmark_archiver import __version__
from bookmark_archiver.config import AppConfig
from bookmark_archiver.errors import ArchiveCancelled, ArchiveError, RecordNotFound
from bookmark_archiver.fetcher import UserAgentRotator
from bookmark_archiver.normalizer import ArchivedDocument
from bookmark_archiver.orchestrator import Archiver, RunProgress
from bookmark_archiver.sources import BaseSource, Bookmark, JsonBookmarkSource, ManualSource
from bookmark_archiver.store import BookmarkStore
from bookmark_archiver.utils.log_setup import configure_logging
from bookmark_archiver.utils.url_utils import is_web_url

app = typer.Typer(
    name="bookmark-archiver",
    help="Fetch bookmarked pages and archive their readable content.",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"bookmark-archiver version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
):
    """Bookmark archiving tool."""
    pass


def _load_config(config_file: Optional[Path]) -> AppConfig:
    if config_file is None:
        return AppConfig()
    try:
        return AppConfig.from_toml(config_file)
    except Exception as e:
        console.print(f"[red]Invalid config {config_file}: {e}[/red]")
        raise typer.Exit(1)


def _make_source(config: AppConfig) -> BaseSource:
    if config.source.urls_file:
        return ManualSource(config.source.urls_file)
    return JsonBookmarkSource(config.source.bookmarks_file)


def _make_identities(config: AppConfig) -> UserAgentRotator:
    if config.source.user_agents_file:
        return UserAgentRotator.from_csv(config.source.user_agents_file)
    return UserAgentRotator.default()


async def _archive(
    config: AppConfig,
    bookmark: Bookmark | None,
    force: bool,
) -> RunProgress | ArchivedDocument | None:
    """Run one archive invocation with SIGINT/SIGTERM wired to cancellation."""
    with BookmarkStore.open(config.store.path, config.store.map_size) as store:
        archiver = Archiver(
            config,
            store,
            source=_make_source(config),
            identities=_make_identities(config),
            console=console,
        )
        async with archiver:
            loop = asyncio.get_running_loop()
            installed: list[signal.Signals] = []
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, archiver.cancel)
                    installed.append(sig)
                except (NotImplementedError, RuntimeError):
                    pass
            try:
                if bookmark is not None:
                    return await archiver.archive(bookmark, force=force)
                return await archiver.run_all(force=force)
            finally:
                for sig in installed:
                    loop.remove_signal_handler(sig)


@app.command()
def archive(
    url: Optional[str] = typer.Argument(None, help="Archive only this bookmark URL"),
    folder: str = typer.Argument("", help="Folder path for the single bookmark"),
    title: str = typer.Argument("", help="Original title for the single bookmark"),
    bookmarks_file: Optional[Path] = typer.Option(
        None,
        "--bookmarks",
        "-f",
        help="JSON file containing the bookmarks",
    ),
    urls_file: Optional[Path] = typer.Option(
        None,
        "--urls-file",
        help="File with one URL per line (overrides --bookmarks)",
    ),
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-c",
        help="Number of concurrent workers",
    ),
    rps: Optional[float] = typer.Option(
        None,
        "--rps",
        help="Requests per second allowed per host",
    ),
    force: bool = typer.Option(
        False,
        "--force",
        "-F",
        help="Archive bookmarks even if they already exist",
    ),
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        "-s",
        help="Directory containing the database files",
    ),
    log_dir: Optional[Path] = typer.Option(
        None,
        "--log-dir",
        "-l",
        help="Directory for log files",
    ),
    user_agents: Optional[Path] = typer.Option(
        None,
        "--user-agents",
        "-u",
        help="CSV file with user agents to rotate through",
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        help="TOML config file",
    ),
    save_config: Optional[Path] = typer.Option(
        None,
        "--save-config",
        help="Write the effective settings to this TOML file",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose output",
    ),
):
    """
    Save bookmarks to the local database.

    With no URL, every bookmark from the bookmarks file is archived. With a
    URL, only that bookmark is archived and any error is reported.

    Examples:

        bookmark-archiver archive -f bookmarks.json

        bookmark-archiver archive -f bookmarks.json -c 20 -F

        bookmark-archiver archive https://example.com/post "Reading::Later" "A post"
    """
    config = _load_config(config_file)

    if bookmarks_file:
        config.source.bookmarks_file = bookmarks_file
    if urls_file:
        config.source.urls_file = urls_file
    if user_agents:
        config.source.user_agents_file = user_agents
    if concurrency is not None:
        config.rate_limit.pool_size = concurrency
    if rps is not None:
        config.rate_limit.requests_per_second = rps
    if db:
        config.store.path = db
    if log_dir:
        config.log_dir = log_dir
    config.verbose = verbose or config.verbose

    if save_config:
        save_config.write_text(config.to_toml(), encoding="utf-8")
        console.print(f"[dim]Settings written to {save_config}[/dim]")

    configure_logging("archive", config.log_dir, config.verbose, console)

    if url and not is_web_url(url):
        console.print(f"[red]Not an http(s) URL: {url}[/red]")
        raise typer.Exit(1)

    bookmark = Bookmark(url=url, folder=folder, title=title) if url else None

    try:
        outcome = asyncio.run(_archive(config, bookmark, force))
    except (KeyboardInterrupt, ArchiveCancelled):
        console.print("\n[yellow]Archiving cancelled.[/yellow]")
        raise typer.Exit(130)
    except ArchiveError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if config.verbose:
            console.print_exception()
        raise typer.Exit(1)

    if isinstance(outcome, RunProgress):
        _print_summary(outcome)
        if outcome.cancelled:
            raise typer.Exit(130)
    elif outcome is None:
        console.print(f"[dim]{url} is already archived (use -F to refresh)[/dim]")
    else:
        console.print(
            f"[green]Archived {outcome.url}[/green] [dim]({outcome.lang}, "
            f"{len(outcome.text)} chars)[/dim]"
        )


@app.command()
def show(
    url: str = typer.Argument(..., help="Bookmark URL to look up"),
    db: Path = typer.Option(
        Path("./db"),
        "--db",
        "-s",
        help="Directory containing the database files",
    ),
    html: bool = typer.Option(False, "--html", help="Include the stored HTML"),
):
    """Print the stored record for a bookmark."""
    try:
        with BookmarkStore.open(db, readonly=True) as store:
            record = store.get(url)
    except RecordNotFound:
        console.print(f"[yellow]Not archived: {url}[/yellow]")
        raise typer.Exit(1)
    except ArchiveError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=url, show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value", overflow="fold")
    for key, value in record.items():
        if key.endswith("_html") and not html:
            value = f"[dim]{len(value)} chars[/dim]"
        elif key.endswith("_text") and len(value) > 500:
            value = value[:500] + "…"
        table.add_row(key, value)
    console.print(table)


def _print_summary(progress: RunProgress) -> None:
    """Print a post-run summary report."""
    console.print()
    console.print("[bold]Archive complete[/bold]" if not progress.cancelled
                  else "[bold yellow]Archive cancelled[/bold yellow]")
    console.print()
    console.print(f"  Bookmarks:  {progress.total}")
    console.print(f"  Archived:   [green]{progress.archived}[/green]")
    if progress.skipped:
        console.print(f"  Skipped:    [yellow]{progress.skipped}[/yellow]")
    if progress.failed:
        console.print(f"  Failed:     [red]{progress.failed}[/red]")
    console.print(f"  Total time: {progress.duration:.1f}s")

    if progress.errors:
        console.print()
        console.print("[bold red]Errors[/bold red]")
        for url, error in progress.errors[:10]:
            console.print(f"  [red]{url}[/red]: {error}")
        if len(progress.errors) > 10:
            console.print(
                f"  [dim]... and {len(progress.errors) - 10} more errors[/dim]"
            )


if __name__ == "__main__":
    app()
