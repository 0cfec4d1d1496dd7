"""Command-line interface for codebase-indexer."""

import asyncio
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger

from .. import __version__
from ..config.settings import IndexConfig, load_index_config
from ..core.embeddings import create_embedding_client
from ..core.exceptions import CodebaseIndexerError
from ..core.models import IndexStatus
from ..service.orchestrator import IndexOrchestrator
from ..worker.handles import ProcessWorker, ThreadWorker
from .output import (
    console,
    format_progress,
    print_error,
    print_info,
    print_search_results,
    print_status,
    print_success,
    print_warning,
)

app = typer.Typer(
    name="codebase-indexer",
    help="Semantic code indexing and search for a workspace",
    no_args_is_help=True,
)


def setup_logging(verbose: bool) -> str:
    """Route loguru output to stderr at the level chosen on the command line."""
    level = "DEBUG" if verbose else "WARNING"
    logger.remove()
    logger.add(sys.stderr, level=level)
    return level


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"codebase-indexer {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    path: Path | None = typer.Option(
        None,
        "--path",
        "-p",
        help="Workspace root directory",
        file_okay=False,
        resolve_path=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """🔍 Index a codebase into a vector store and search it semantically."""
    log_level = setup_logging(verbose)
    ctx.obj = {"workspace": path or Path.cwd(), "log_level": log_level}


def _build_config(provider: str | None, model: str | None) -> IndexConfig:
    embedding: dict[str, Any] = {}
    if provider:
        embedding["provider"] = provider
    if model:
        embedding["model"] = model
    return load_index_config(embedding=embedding) if embedding else load_index_config()


def _create_orchestrator(
    ctx: typer.Context,
    provider: str | None = None,
    model: str | None = None,
    use_thread: bool = False,
    progress_callback: Any = None,
) -> IndexOrchestrator:
    log_level = ctx.obj["log_level"]
    if use_thread:
        worker_factory: Any = lambda: ThreadWorker(create_embedding_client)  # noqa: E731
    else:
        worker_factory = lambda: ProcessWorker(log_level=log_level)  # noqa: E731

    return IndexOrchestrator(
        ctx.obj["workspace"],
        config=_build_config(provider, model),
        embedder_factory=create_embedding_client,
        worker_factory=worker_factory,
        progress_callback=progress_callback,
    )


def _run(coro: Any, action: str) -> Any:
    try:
        return asyncio.run(coro)
    except CodebaseIndexerError as e:
        logger.error(f"{action} failed: {e}")
        print_error(f"{action} failed: {e}")
        raise typer.Exit(1)


ProviderOption = typer.Option(
    None, "--provider", help="Embedding provider (openai, jina, voyage, cohere, huggingface, ollama, local)"
)
ModelOption = typer.Option(None, "--model", "-m", help="Embedding model name")
ThreadOption = typer.Option(
    False, "--thread", help="Run the worker on a thread instead of a separate process"
)


@app.command()
def index(
    ctx: typer.Context,
    provider: str | None = ProviderOption,
    model: str | None = ModelOption,
    thread: bool = ThreadOption,
) -> None:
    """Index the workspace (only changed files are re-embedded).

    [bold cyan]Examples:[/bold cyan]

    [green]Index the current directory:[/green]
        $ codebase-indexer index

    [green]Use a local model:[/green]
        $ codebase-indexer index --provider local
    """

    async def _index() -> IndexStatus:
        with console.status("Indexing...") as spinner:

            def on_progress(status: IndexStatus) -> None:
                spinner.update(format_progress(status))

            orchestrator = _create_orchestrator(
                ctx, provider, model, thread, progress_callback=on_progress
            )
            async with orchestrator:
                await orchestrator.index_workspace()
                await orchestrator.wait_until_idle()
                return orchestrator.get_status()

    status = _run(_index(), "Indexing")
    if status.error:
        print_error(f"Indexing failed: {status.error}")
        raise typer.Exit(1)
    print_success(format_progress(status))


@app.command()
def update(
    ctx: typer.Context,
    files: list[Path] = typer.Argument(..., help="Files to re-index (relative to the workspace)"),
    provider: str | None = ProviderOption,
    model: str | None = ModelOption,
    thread: bool = ThreadOption,
) -> None:
    """Re-index specific files."""

    async def _update() -> IndexStatus:
        async with _create_orchestrator(ctx, provider, model, thread) as orchestrator:
            await orchestrator.update_files([str(f) for f in files])
            await orchestrator.wait_until_idle()
            return orchestrator.get_status()

    status = _run(_update(), "Update")
    if status.error:
        print_error(f"Update failed: {status.error}")
        raise typer.Exit(1)
    print_success(f"Updated {len(files)} file(s)")


@app.command()
def search(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="Natural-language or code query"),
    top_k: int = typer.Option(10, "--top-k", "-k", min=1, help="Number of results"),
    hybrid: bool = typer.Option(
        False, "--hybrid", help="Use the wider candidate pool of hybrid search"
    ),
    provider: str | None = ProviderOption,
    model: str | None = ModelOption,
) -> None:
    """Search the index."""

    async def _search() -> list:
        async with _create_orchestrator(ctx, provider, model) as orchestrator:
            if not await orchestrator.has_index():
                print_warning("No index found. Run 'codebase-indexer index' first.")
                return []
            if hybrid:
                return await orchestrator.hybrid_search(query, top_k)
            return await orchestrator.search(query, top_k)

    results = _run(_search(), "Search")
    print_search_results(results, query)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show the index status."""

    async def _status() -> tuple[IndexStatus, bool]:
        async with _create_orchestrator(ctx) as orchestrator:
            return orchestrator.get_status(), await orchestrator.has_index()

    current, has_index = _run(_status(), "Status")
    print_status(current, has_index)


@app.command()
def clear(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
) -> None:
    """Delete the whole index."""
    if not yes and not typer.confirm("Delete the index for this workspace?"):
        print_info("Aborted")
        raise typer.Exit()

    async def _clear() -> None:
        async with _create_orchestrator(ctx) as orchestrator:
            await orchestrator.clear_index()

    _run(_clear(), "Clear")
    print_success("Index cleared")


@app.command("test-embedding")
def test_embedding(
    ctx: typer.Context,
    provider: str | None = ProviderOption,
    model: str | None = ModelOption,
) -> None:
    """Check that the embedding provider is reachable."""

    async def _test() -> Any:
        orchestrator = _create_orchestrator(ctx, provider, model)
        try:
            return await orchestrator.test_embedding_connection()
        finally:
            await orchestrator.destroy()

    result = _run(_test(), "Embedding test")
    if not result.success:
        print_error(f"Embedding provider unreachable: {result.error}")
        raise typer.Exit(1)
    print_success(f"Embedding provider OK ({result.latency:.0f} ms)")


if __name__ == "__main__":
    app()
