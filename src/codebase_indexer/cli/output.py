"""Rich console output helpers for the CLI."""

from rich.console import Console
from rich.table import Table

from ..core.models import IndexStatus, SearchResult

console = Console()


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")


def print_warning(message: str) -> None:
    console.print(f"[yellow]⚠[/yellow] {message}")


def print_info(message: str) -> None:
    console.print(f"[blue]ℹ[/blue] {message}")


def format_progress(status: IndexStatus) -> str:
    """One-line progress summary of an indexing run."""
    return (
        f"Indexed {status.indexed_files}/{status.total_files} files "
        f"({status.total_chunks} chunks)"
    )


def print_status(status: IndexStatus, has_index: bool) -> None:
    """Render the index status as a table."""
    table = Table(title="Index Status")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Index present", "yes" if has_index else "no")
    table.add_row("Indexing", "yes" if status.is_indexing else "no")
    table.add_row("Files", str(status.total_files))
    table.add_row("Chunks", str(status.total_chunks))
    if status.error:
        table.add_row("Last error", f"[red]{status.error}[/red]")
    console.print(table)


def print_search_results(results: list[SearchResult], query: str) -> None:
    """Render search hits as a table, best match first."""
    if not results:
        print_warning(f"No results for: {query}")
        return

    table = Table(title=f"Results for: {query}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Location", style="cyan", no_wrap=True)
    table.add_column("Type")
    table.add_column("Symbols", style="magenta")

    for rank, result in enumerate(results, start=1):
        chunk = result.chunk
        table.add_row(
            str(rank),
            f"{result.score:.3f}",
            f"{chunk.relative_path}:{chunk.start_line}-{chunk.end_line}",
            chunk.type,
            ", ".join(chunk.symbols),
        )
    console.print(table)
