"""Command line interface for RelayFlow."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from relayflow.config import settings
from relayflow.core.logging import setup_logging
from relayflow.executions import ExecutionRecord, InMemoryExecutionStore
from relayflow.executor import CycleError, order
from relayflow.workflows import InMemoryWorkflowStore, WorkflowGraph, validate_workflow_structure

app = typer.Typer(
    name="relayflow",
    help="RelayFlow - workflow execution engine",
    add_completion=False,
)

console = Console()

STATUS_STYLES = {
    "success": "green",
    "failed": "red",
    "skipped": "yellow",
    "running": "blue",
    "pending": "white",
}


def load_graph_file(path: Path) -> WorkflowGraph:
    """Read a workflow graph from a JSON file, exiting on bad input."""
    try:
        return WorkflowGraph.model_validate(json.loads(path.read_text()))
    except FileNotFoundError:
        console.print(f"[red]File not found: {path}[/red]")
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {path}: {e}[/red]")
    except PydanticValidationError as e:
        console.print(f"[red]Invalid workflow graph: {e}[/red]")
    raise typer.Exit(code=1)


def render_record(record: ExecutionRecord) -> None:
    table = Table(title=f"Execution {record.id}")
    table.add_column("#", justify="right")
    table.add_column("Node")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Iteration", justify="right")
    table.add_column("Duration (ms)", justify="right")
    table.add_column("Error")

    for position, log in enumerate(record.logs, start=1):
        style = STATUS_STYLES.get(log.status.value, "white")
        table.add_row(
            str(position),
            log.node_label or log.node_id,
            log.node_type,
            f"[{style}]{log.status.value}[/{style}]",
            "" if log.iteration is None else str(log.iteration),
            str(log.duration),
            log.error or "",
        )

    console.print(table)
    style = STATUS_STYLES.get(record.status.value, "white")
    console.print(f"Status: [{style}]{record.status.value}[/{style}]")


@app.command("version")
def version():
    """Show version information."""
    version_info = f"""
RelayFlow v{settings.app_version}
Workflow execution engine

Environment: {settings.environment}
Python: {sys.version}
"""
    console.print(
        Panel(
            version_info.strip(),
            title="Version Information",
            border_style="green",
        )
    )


@app.command("validate")
def validate(path: Path = typer.Argument(..., help="Workflow graph JSON file")):
    """Check a workflow graph for structural problems."""
    graph = load_graph_file(path)
    valid, errors = validate_workflow_structure(graph)
    if valid:
        try:
            order(graph.nodes, graph.edges)
        except CycleError as e:
            valid = False
            errors.append(f"{e.message}: {' -> '.join(e.cycle_path)}")

    if valid:
        console.print(f"[green]Workflow '{graph.name}' is valid[/green]")
        return

    console.print(f"[red]Workflow '{graph.name}' is invalid:[/red]")
    for error in errors:
        console.print(f"  - {error}")
    raise typer.Exit(code=1)


@app.command("order")
def show_order(path: Path = typer.Argument(..., help="Workflow graph JSON file")):
    """Print the order in which nodes would execute."""
    graph = load_graph_file(path)
    try:
        node_order = order(graph.nodes, graph.edges)
    except CycleError as e:
        console.print(f"[red]{e.message}: {' -> '.join(e.cycle_path)}[/red]")
        raise typer.Exit(code=1)

    for position, node_id in enumerate(node_order, start=1):
        node = graph.get_node(node_id)
        label = f" ({node.label})" if node and node.label else ""
        console.print(f"{position}. {node_id} [dim]{node.type if node else '?'}[/dim]{label}")


@app.command("run")
def run(
    path: Path = typer.Argument(..., help="Workflow graph JSON file"),
    trigger: Optional[str] = typer.Option(None, "--trigger", "-t", help="Trigger payload as JSON"),
    user_id: str = typer.Option("local", "--user-id", "-u", help="Owning user id"),
):
    """Execute a workflow graph once with in-memory stores."""
    from relayflow.dependencies import build_executor

    setup_logging()
    graph = load_graph_file(path)

    try:
        trigger_payload = json.loads(trigger) if trigger else {}
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid trigger payload: {e}[/red]")
        raise typer.Exit(code=1)

    workflow_store = InMemoryWorkflowStore()
    workflow_id = path.stem
    workflow_store.save(workflow_id, user_id, graph)
    execution_store = InMemoryExecutionStore()
    executor = build_executor(workflow_store, execution_store)

    failed = False
    try:
        execution_id = asyncio.run(
            executor.execute_workflow(workflow_id, user_id, trigger_payload=trigger_payload)
        )
    except Exception as e:
        failed = True
        execution_id = getattr(e, "execution_id", None)
        console.print(Panel(str(e), title=e.__class__.__name__, border_style="red"))

    if execution_id:
        render_record(asyncio.run(execution_store.get_record(execution_id)))
    if failed:
        raise typer.Exit(code=1)


@app.command("worker")
def start_worker(
    concurrency: int = typer.Option(4, "--concurrency", "-c", help="Worker concurrency"),
    loglevel: str = typer.Option("info", "--loglevel", "-l", help="Log level"),
):
    """Start a Celery worker for queued workflow runs."""
    from relayflow.worker import main as worker_main

    setup_logging(loglevel.upper())
    worker_main(concurrency=concurrency, loglevel=loglevel)


def main():
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
