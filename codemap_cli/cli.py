"""Typer-based CLI for CodeMap dependency analysis and semantic code search."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from . import __version__, config, config_manager
from .analyzer import AmbiguousCallError, ScanError
from .config_manager import load_settings
from .indexer import EmbeddingError
from .models import DependencyTree
from .service import CodeMapService, IndexingError

app = typer.Typer(
    help="CodeMap CLI: lexical dependency maps and semantic search for source repositories.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
config_app = typer.Typer(help="Show or change settings in ~/.codemap/config.toml.", no_args_is_help=True)
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"CodeMap CLI v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
):
    """CodeMap CLI: map imports and calls, then search code by meaning."""
    level = "DEBUG" if verbose else load_settings().log_level.upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _state_paths(state_dir: Optional[Path], collection: str):
    root = state_dir or (config.STATE_DIR / collection)
    return root / config.ANALYZER_STATE_FILE, root / config.VECTOR_STATE_FILE


def _render_tree(node: DependencyTree, branch: Optional[Tree] = None) -> Tree:
    label = f"[bold]{node.name}[/bold]"
    if node.line_number > 0:
        label += f" [dim]:{node.line_number}[/dim]"
    if node.is_cyclic:
        label += " [yellow](cycle)[/yellow]"
    current = Tree(label) if branch is None else branch.add(label)
    for fn in node.functions:
        current.add(f"[cyan]ƒ {fn.name}[/cyan] [dim]:{fn.line_number}[/dim]")
    for child in node.children:
        _render_tree(child, current)
    return current


@app.command("index")
def index_repository(
    repo_path: Path = typer.Argument(..., exists=True, file_okay=False, help="Repository to index."),
    collection: str = typer.Option("default", "--collection", "-c", help="Collection id for the indexed chunks."),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir", help="Where analyzer/vector state is kept."),
):
    """Analyze dependencies, embed every source file and persist the state."""
    settings = load_settings()
    code_state, vector_state = _state_paths(state_dir, collection)
    service = CodeMapService(str(repo_path), settings=settings)

    if code_state.exists() and vector_state.exists():
        service.load_from_file(str(code_state), str(vector_state))

    try:
        indexed = service.index_repository(str(repo_path), collection)
    except (IndexingError, ScanError) as exc:
        typer.echo(f"Indexing failed: {exc}", err=True)
        raise typer.Exit(code=1)

    if not indexed:
        typer.echo(f"'{repo_path}' is already indexed in collection '{collection}'.")
        raise typer.Exit(code=0)

    service.save_to_file(str(code_state), str(vector_state))
    typer.echo(f"Indexed '{repo_path}' into collection '{collection}'.")
    typer.echo(f"Files: {len(service.analyzer.list_files())} | Chunks: {service.store.count()}")


@app.command("search")
def search(
    query: str = typer.Argument(..., help="Natural-language or code query."),
    collection: str = typer.Option("default", "--collection", "-c", help="Collection to search."),
    limit: int = typer.Option(config.DEFAULT_SEARCH_LIMIT, "--limit", "-n", min=1, help="Maximum number of results."),
    min_relevance: Optional[float] = typer.Option(None, "--min-relevance", help="Minimum cosine similarity."),
    state_dir: Optional[Path] = typer.Option(None, "--state-dir", help="Where analyzer/vector state is kept."),
):
    """Semantic search over a previously indexed collection."""
    code_state, vector_state = _state_paths(state_dir, collection)
    if not vector_state.exists():
        raise typer.BadParameter(f"Collection '{collection}' has not been indexed. Run 'codemap index' first.")

    service = CodeMapService(".", settings=load_settings())
    service.load_from_file(str(code_state) if code_state.exists() else None, str(vector_state))
    try:
        results = service.search_code(query, collection, limit=limit, min_relevance=min_relevance)
    except EmbeddingError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)

    if not results:
        typer.echo("No matches found.")
        raise typer.Exit(code=0)

    for result in results:
        typer.echo(f"{result.description}  score={result.relevance:.3f}")
        typer.echo(f"  {result.file_path}")
        snippet = result.code.strip().splitlines()
        if snippet:
            typer.echo(f"  {snippet[0][:120]}")


@app.command("deps")
def deps(
    file: str = typer.Argument(..., help="File to analyze (relative to --path or absolute)."),
    function: Optional[str] = typer.Option(None, "--function", "-f", help="Show the call tree of this function."),
    repo_path: Path = typer.Option(Path("."), "--path", "-p", exists=True, file_okay=False, help="Repository root."),
):
    """Print the import tree of a file, or the call tree of a function."""
    settings = load_settings()
    service = CodeMapService(str(repo_path), settings=settings)
    try:
        if function:
            tree = service.analyze_function_dependencies(file, function)
        else:
            tree = service.analyze_file_dependencies(file)
    except ScanError as exc:
        typer.echo(f"Scan failed: {exc}", err=True)
        raise typer.Exit(code=1)
    except AmbiguousCallError as exc:
        raise typer.BadParameter(str(exc))

    console.print(_render_tree(tree))


@app.command("languages")
def languages():
    """List the languages CodeMap recognises."""
    for name in CodeMapService.get_supported_languages():
        typer.echo(name)


@config_app.command("show")
def config_show():
    """Print the effective settings."""
    settings = load_settings()
    table = Table(title="CodeMap settings", show_header=True)
    table.add_column("Key", style="cyan")
    table.add_column("Value")
    for key, value in asdict(settings).items():
        table.add_row(key, "" if value is None else str(value))
    console.print(table)
    typer.echo(f"Config file: {config.CONFIG_FILE}")


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help="Setting name, e.g. chunk_size or model."),
    value: str = typer.Argument(..., help="New value."),
):
    """Change one setting and save it."""
    try:
        config_manager.set_value(key, value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    typer.echo(f"Set {key} = {value}")
