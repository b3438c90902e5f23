import asyncio
import logging
from pathlib import Path
from typing import Annotated, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from typer import Argument, Exit, Option, Typer

from .config import IndexingConfig, resolve_index_dir
from .embeddings import EmbeddingProvider, RetryPolicy
from .errors import RepoSearchError
from .indexing import IndexOrchestrator, IndexState
from .storage import IndexMetadata, JsonIndexStore

app = Typer(help="Semantic code search over a local repository.")
console = Console()

IndexDirOption = Annotated[
    Optional[str],
    Option(
        "--index-dir",
        help="Directory holding index files (defaults to REPO_SEARCH_INDEX_DIR or ~/.repo_search/indexes).",
    ),
]


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            RichHandler(
                console=Console(stderr=True),
                show_path=False,
                rich_tracebacks=True,
            )
        ],
        force=True,
    )


def build_embedding_provider(config: IndexingConfig) -> EmbeddingProvider:
    return EmbeddingProvider(retry_policy=RetryPolicy(max_attempts=config.max_retries))


def build_orchestrator(index_dir: str | None) -> IndexOrchestrator:
    config = IndexingConfig()
    store = JsonIndexStore(resolve_index_dir(index_dir))
    return IndexOrchestrator(store, build_embedding_provider(config), config=config)


def _open_orchestrator(index_dir: str | None) -> IndexOrchestrator:
    try:
        return build_orchestrator(index_dir)
    except ValueError as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        raise Exit(code=1) from exc


def _run(coro):
    try:
        return asyncio.run(coro)
    except (RepoSearchError, ValueError, OSError) as exc:
        console.print(f"[bold red]Error:[/] {exc}")
        raise Exit(code=1) from exc


def _metadata_table(metadata: IndexMetadata) -> Table:
    table = Table(show_header=False, box=None)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("Repository", metadata.repo_path)
    table.add_row("Chunks", str(metadata.total_chunks))
    table.add_row("Model", metadata.model)
    table.add_row("Indexed at", metadata.indexed_at.isoformat())
    table.add_row("Schema version", metadata.version)
    return table


@app.callback()
def main(
    verbose: Annotated[
        bool, Option("--verbose", "-v", help="Enable debug logging.")
    ] = False,
) -> None:
    configure_logging(verbose)


@app.command()
def index(
    path: Annotated[str, Argument(help="Repository to index.")] = ".",
    force: Annotated[bool, Option("--force", help="Re-index even if an index exists.")] = False,
    max_chunk_size: Annotated[
        Optional[int], Option("--max-chunk-size", help="Maximum chunk size in characters.")
    ] = None,
    overlap: Annotated[
        Optional[int], Option("--overlap", help="Characters of overlap between chunks.")
    ] = None,
    model: Annotated[Optional[str], Option("--model", help="Embedding model id.")] = None,
    exclude: Annotated[
        Optional[list[str]],
        Option("--exclude", "-e", help="Gitignore-style pattern to skip (repeatable)."),
    ] = None,
    respect_boundaries: Annotated[
        bool,
        Option("--respect-boundaries", help="Split at function and class declarations."),
    ] = False,
    index_dir: IndexDirOption = None,
) -> None:
    """Build the semantic index for a repository."""
    orchestrator = _open_orchestrator(index_dir)
    with console.status("Indexing repository..."):
        result = _run(
            orchestrator.run_indexing(
                path,
                force=force,
                max_chunk_size=max_chunk_size,
                overlap=overlap,
                model=model,
                exclude_patterns=exclude or [],
                respect_boundaries=respect_boundaries,
            )
        )

    table = _metadata_table(result.metadata)
    if result.from_cache:
        title = "Using Existing Index"
    else:
        title = "Index Complete"
        table.add_row("Files indexed", str(result.indexed_files))
        table.add_row("Files skipped", str(result.failed_files))
    console.print(Panel(table, title=title, title_align="left", border_style="bold green"))


@app.command()
def search(
    query: Annotated[str, Argument(help="Natural-language query.")],
    path: Annotated[str, Option("--path", "-p", help="Indexed repository.")] = ".",
    top_k: Annotated[int, Option("--top-k", "-k", help="Maximum number of results.")] = 5,
    min_score: Annotated[
        float, Option("--min-score", help="Minimum cosine similarity to report.")
    ] = 0.5,
    context: Annotated[
        bool, Option("--context", help="Show the file:line range of each hit.")
    ] = False,
    index_dir: IndexDirOption = None,
) -> None:
    """Search an indexed repository."""
    orchestrator = _open_orchestrator(index_dir)
    with console.status("Searching..."):
        results = _run(
            orchestrator.search(
                path,
                query,
                top_k=top_k,
                min_score=min_score,
                include_context=context,
            )
        )

    if not results:
        console.print(f"[bold yellow]No results scored at least {min_score}.[/]")
        return

    for rank, result in enumerate(results, start=1):
        title = f"#{rank} {result.file_path}:{result.start_line}-{result.end_line}"
        subtitle = f"score {result.score:.3f}"
        if result.context:
            subtitle += f" | {result.context}"
        console.print(
            Panel(
                Syntax(
                    result.content,
                    lexer=result.language.lower(),
                    line_numbers=True,
                    start_line=result.start_line,
                ),
                title=title,
                subtitle=subtitle,
                title_align="left",
                border_style="bold cyan",
            )
        )


@app.command()
def update(
    files: Annotated[list[str], Argument(help="Changed files, relative to the repository.")],
    path: Annotated[str, Option("--path", "-p", help="Indexed repository.")] = ".",
    keep_stale: Annotated[
        bool,
        Option(
            "--keep-stale",
            help="Only upsert by chunk id; keep chunks of the old file version.",
        ),
    ] = False,
    index_dir: IndexDirOption = None,
) -> None:
    """Re-embed changed files and merge them into an existing index."""
    orchestrator = _open_orchestrator(index_dir)
    with console.status("Updating index..."):
        metadata = _run(
            orchestrator.update_index(path, files, purge_stale=not keep_stale)
        )
    console.print(
        Panel(
            _metadata_table(metadata),
            title="Index Updated",
            title_align="left",
            border_style="bold green",
        )
    )


@app.command()
def status(
    path: Annotated[str, Argument(help="Repository to inspect.")] = ".",
    index_dir: IndexDirOption = None,
) -> None:
    """Show whether a repository is indexed."""
    store = JsonIndexStore(resolve_index_dir(index_dir))
    metadata = store.get_metadata(path)
    if metadata is None:
        console.print(f"[bold yellow]{IndexState.NOT_INDEXED.value}[/]: {Path(path).resolve()}")
        return
    table = _metadata_table(metadata)
    table.add_row("Index file", str(store.index_path(path)))
    table.add_row("Size", f"{store.index_size(path)} bytes")
    console.print(
        Panel(
            table,
            title=IndexState.INDEXED.value,
            title_align="left",
            border_style="bold green",
        )
    )


@app.command()
def clear(
    path: Annotated[str, Argument(help="Repository whose index to delete.")] = ".",
    index_dir: IndexDirOption = None,
) -> None:
    """Delete the index of a repository."""
    store = JsonIndexStore(resolve_index_dir(index_dir))
    store.clear(path)
    console.print(f"[bold green]Index cleared[/] for {Path(path).resolve()}")
