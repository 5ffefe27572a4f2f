"""
Command-line interface for vaultrag.

Commands:
    index      - Index every document in the vault
    index-file - Index a single document
    search     - Run a semantic search
    stats      - Show index statistics
    version    - Show version information
"""

import logging
import threading
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vaultrag.config import settings
from vaultrag.errors import VaultRagError

app = typer.Typer(
    name="vaultrag",
    help="Incremental indexing and semantic search for markdown vaults",
    add_completion=False,
)
console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Configure logging and tracing for every command."""
    from vaultrag.tracing import setup_tracing

    logging.basicConfig(
        level="DEBUG" if verbose else settings.log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    setup_tracing()


@app.command()
def index(
    all_files: bool = typer.Option(False, "--all", "-a", help="Reindex files even if unchanged"),
    workers: Optional[int] = typer.Option(None, help="Number of files indexed concurrently"),
) -> None:
    """Index every document in the vault."""
    from vaultrag.retrieval.resources import get_indexer, save_store

    try:
        indexer = get_indexer()
        if workers:
            indexer.max_workers = workers

        cancel = threading.Event()
        with console.status(f"[bold green]Indexing {settings.vault_dir}..."):
            try:
                summary = indexer.index_vault(changed_only=not all_files, cancel_event=cancel)
            except KeyboardInterrupt:
                console.print("[yellow]Cancelled; saving files indexed so far.[/yellow]")
                save_store()
                raise typer.Exit(130)

        save_store()
    except VaultRagError as e:
        console.print(f"[red]Indexing failed: {e}[/red]")
        raise typer.Exit(1)

    console.print("[bold green]✓ Indexing complete[/bold green]")
    console.print(f"  Files indexed: {summary.files_indexed}")
    console.print(f"  Total chunks: {summary.total_chunks}")
    console.print(f"  Duration: {summary.duration_ms:.0f}ms")
    if summary.failed:
        console.print(f"[yellow]  Failed ({len(summary.failed)}):[/yellow]")
        for path in summary.failed:
            console.print(f"    • {path}")
        raise typer.Exit(1)


@app.command("index-file")
def index_file(
    file_path: str = typer.Argument(..., help="Path of the document relative to the vault"),
    force: bool = typer.Option(False, "--force", "-f", help="Reindex even if unchanged"),
) -> None:
    """Index a single document."""
    from vaultrag.retrieval.resources import get_indexer, save_store

    try:
        result = get_indexer().index_file(file_path, force=force)
        if result.indexed:
            save_store()
    except VaultRagError as e:
        console.print(f"[red]Indexing {file_path} failed: {e}[/red]")
        raise typer.Exit(1)

    if result.indexed:
        console.print(f"[green]✓ {file_path}: {result.chunks} chunks[/green]")
    else:
        console.print(f"[yellow]{file_path}: {result.reason}[/yellow]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", help="Maximum number of results"),
    threshold: Optional[float] = typer.Option(None, "--threshold", "-t", help="Minimum similarity"),
) -> None:
    """Run a semantic search over the vault."""
    from vaultrag.retrieval.resources import get_retriever

    try:
        results = get_retriever().search_vault(query, limit=limit, threshold=threshold)
    except (VaultRagError, ValueError) as e:
        console.print(f"[red]Search failed: {e}[/red]")
        raise typer.Exit(1)

    if not results:
        console.print("[yellow]No results.[/yellow]")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("Score", style="green", justify="right")
    table.add_column("File", style="cyan")
    table.add_column("Heading")
    table.add_column("Excerpt", overflow="fold")

    for result in results:
        excerpt = " ".join(result.content.split())[:160]
        table.add_row(
            f"{result.similarity:.3f}",
            f"{result.file_path}#{result.chunk_index}",
            str(result.metadata.get("heading", "")),
            excerpt,
        )

    console.print(table)


@app.command()
def stats() -> None:
    """Show index statistics."""
    from vaultrag.retrieval.resources import get_retriever

    try:
        vault_stats = get_retriever().vault_stats()
    except VaultRagError as e:
        console.print(f"[red]Failed to read stats: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[blue]Collection:[/blue] {settings.collection_id}")
    console.print(f"  Files: {vault_stats.total_files}")
    console.print(f"  Chunks: {vault_stats.total_chunks}")
    last = vault_stats.last_indexed.isoformat() if vault_stats.last_indexed else "never"
    console.print(f"  Last indexed: {last}")

    if vault_stats.top_directories:
        table = Table(title="Top directories")
        table.add_column("Directory", style="cyan")
        table.add_column("Chunks", style="green", justify="right")
        for directory in vault_stats.top_directories:
            table.add_row(directory.path, str(directory.chunks))
        console.print(table)


@app.command()
def version() -> None:
    """Show version information."""
    from vaultrag import __version__

    console.print(f"vaultrag v{__version__}")


if __name__ == "__main__":
    app()
