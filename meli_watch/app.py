"""Typer CLI entrypoint for meli-watch."""

from __future__ import annotations

import signal
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigRepository
from .engine import QueryStats, Registry, Result
from .errors import StateLoadError, UnknownEndpointError
from .infra import StateStore
from .logging_conf import configure_logging, tail_log
from .models import QueryRecord, StateDocument
from .orchestrator import WatchService

app = typer.Typer(
    help="Watch Mercado Libre searches and track which results were already seen.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    verbose: bool = False

    def store(self) -> StateStore:
        return StateStore(self.repository.state_path())


def build_state(verbose: bool) -> AppState:
    configure_logging(verbose=verbose)
    return AppState(repository=ConfigRepository(), verbose=verbose)


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state(verbose=False)
        ctx.obj = state
    return state


def _load_registry(store: StateStore) -> Registry:
    try:
        return Registry.from_document(store.load())
    except StateLoadError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc


def _parse_params(values: Iterable[str]) -> dict[str, str]:
    params: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"Expected key=value, got {value!r}", param_hint="--param")
        params[key.strip()] = item.strip()
    return params


def _format_params(params: dict[str, str]) -> str:
    return " ".join(f"{key}={value}" for key, value in sorted(params.items())) or "-"


def _render_queries_table(registry: Registry, stats: Sequence[QueryStats]) -> Table:
    table = Table(title=f"Queries · {len(stats)} total", box=box.SIMPLE_HEAD)
    table.add_column("Endpoint", style="cyan", no_wrap=True)
    table.add_column("Params", style="magenta", overflow="fold")
    table.add_column("Available", style="green", justify="right")
    table.add_column("Visited", style="yellow", justify="right")
    for item in stats:
        table.add_row(
            item.endpoint,
            _format_params(dict(registry.get(item.endpoint).params)),
            str(item.available),
            str(item.visited),
        )
    return table


def _render_results_table(endpoint: str, results: Sequence[Result]) -> Table:
    table = Table(title=f"{endpoint} · {len(results)} available", box=box.SIMPLE_HEAD)
    table.add_column("Id", style="cyan", no_wrap=True)
    table.add_column("Title", overflow="fold")
    table.add_column("Price", style="green", justify="right")
    table.add_column("Link", style="dim", overflow="fold")
    for result in results:
        table.add_row(result.id, result.title, f"{result.price:,.2f}", result.permalink)
    return table


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", help="Enable debug logging.", is_flag=True),
) -> None:
    ctx.obj = build_state(verbose)


@app.command("run", help="Poll every query and snapshot state until interrupted.")
def run(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    try:
        service = WatchService.from_repository(state.repository)
    except StateLoadError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc

    signal.signal(signal.SIGTERM, lambda *_: service.stop_event.set())
    service.start()
    console.print(
        f"Watching {len(service.registry)} queries; state file {service.store.path}",
        style="green",
    )
    try:
        while not service.wait(1.0):
            pass
    except KeyboardInterrupt:
        console.print("Stopping…", style="yellow")
    finally:
        service.stop()


@app.command("queries", help="Show configured queries with their counts.")
def queries(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    registry = _load_registry(state.store())
    if not len(registry):
        console.print("No queries configured. Use `meli-watch add` to create one.", style="yellow")
        raise typer.Exit(code=0)
    console.print(_render_queries_table(registry, registry.stats()))


@app.command("listing", help="List the available results of a query.")
def listing(
    ctx: typer.Context,
    endpoint: str = typer.Argument(..., help="Query endpoint name."),
    limit: Optional[int] = typer.Option(None, "--limit", "-n", min=1, help="Maximum rows."),
) -> None:
    state = _get_state(ctx)
    registry = _load_registry(state.store())
    cap = limit or state.repository.load_config().listing_limit
    try:
        results = registry.list(endpoint, cap)
    except UnknownEndpointError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    console.print(_render_results_table(endpoint, results))


@app.command("visit", help="Mark results as visited in the state file.")
def visit(
    ctx: typer.Context,
    endpoint: str = typer.Argument(..., help="Query endpoint name."),
    ids: List[str] = typer.Argument(..., help="Result ids to mark."),
) -> None:
    state = _get_state(ctx)
    store = state.store()
    registry = _load_registry(store)
    try:
        moved = registry.mark_visited_batch(endpoint, ids)
    except UnknownEndpointError as exc:
        console.print(str(exc), style="red")
        raise typer.Exit(code=1) from exc
    store.save(registry.to_document())
    console.print(f"Marked {moved} of {len(ids)} results as visited in {endpoint}.")


@app.command("add", help="Add a new query to the state file.")
def add(
    ctx: typer.Context,
    endpoint: str = typer.Argument(..., help="Unique name for the query."),
    param: List[str] = typer.Option(
        ..., "--param", "-p", help="Search parameter as key=value; repeatable."
    ),
) -> None:
    state = _get_state(ctx)
    store = state.store()
    params = _parse_params(param)
    document = _load_registry(store).to_document() if store.exists() else StateDocument({})
    if endpoint in document.root:
        console.print(f"Query {endpoint!r} already exists.", style="red")
        raise typer.Exit(code=1)
    document.root[endpoint] = QueryRecord(params=params)
    store.save(document)
    console.print(f"Added query {endpoint} ({_format_params(params)}).", style="green")


@app.command("log", help="Show the tail of the application log.")
def log(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", min=1, help="Number of lines."),
) -> None:
    for line in tail_log(_get_state(ctx).repository.locator.logs_dir / "watcher.log", lines):
        console.print(line.rstrip("\n"), markup=False, highlight=False)


__all__ = ["AppState", "app", "build_state"]
