"""
Franchise Ledger CLI

Command-line interface for the franchise ledger.
Submits commands and inspects aggregate logs and replayed state.

Usage:
    franchise-ledger init --db franchises.db
    franchise-ledger submit '{"type": "CreateFranchise", "franchiseId": "STB1", "franchiseName": "Starbucks"}'
    franchise-ledger history STB1
    franchise-ledger state STB1 --json
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from franchise_ledger.kernel.config import LedgerSettings
from franchise_ledger.kernel.errors import LedgerError
from franchise_ledger.kernel.logging import configure_logging
from franchise_ledger.ledger import FranchiseLedger

_settings = LedgerSettings()

# Configure logging to stderr (avoids polluting stdout for JSON output)
configure_logging(json_output=_settings.json_logs, log_level=_settings.log_level)

app = typer.Typer(
    name="franchise-ledger",
    help="Franchise Ledger - Event-sourced franchise, branch and stock management",
    add_completion=False,
)

DEFAULT_DB = _settings.db_path


def get_ledger(db_path: Optional[Path] = None) -> FranchiseLedger:
    """Get ledger instance for an existing database"""
    db = db_path or DEFAULT_DB
    if not db.exists():
        typer.echo(f"Error: Database not found: {db}", err=True)
        typer.echo(f"Run 'franchise-ledger init --db {db}' to initialize", err=True)
        raise typer.Exit(1)
    return FranchiseLedger(_settings.model_copy(update={"db_path": db}))


@app.command()
def init(
    db: Annotated[
        Path,
        typer.Option(help="Database path"),
    ] = DEFAULT_DB,
) -> None:
    """Initialize a new ledger database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    FranchiseLedger(_settings.model_copy(update={"db_path": db}))
    typer.echo(f"✓ Initialized ledger database: {db}")


@app.command()
def submit(
    command: Annotated[str, typer.Argument(help="Command as a JSON object")],
    retry: Annotated[
        bool,
        typer.Option("--retry/--no-retry", help="Re-run on version conflicts"),
    ] = True,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Submit one command and print the committed events or the error"""
    try:
        raw = json.loads(command)
    except json.JSONDecodeError as e:
        typer.echo(f"Error: Invalid JSON: {e}", err=True)
        raise typer.Exit(2)

    ledger = get_ledger(db)
    operation = ledger.submit_with_retry if retry else ledger.submit
    result = asyncio.run(operation(raw))

    typer.echo(json.dumps(result, indent=2))
    if "error" in result:
        raise typer.Exit(1)


@app.command()
def history(
    reference: Annotated[str, typer.Argument(help="Franchise id or aggregate id")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Show the event log of a franchise"""
    ledger = get_ledger(db)
    try:
        events = asyncio.run(ledger.history(reference))
    except LedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps([event.to_wire() for event in events], indent=2))
        return

    if not events:
        typer.echo(f"No events for {reference}")
        return

    typer.echo(f"Events for {events[0].aggregate_id} ({len(events)}):")
    for event in events:
        typer.echo(f"  v{event.version} {event.event_type} @ {event.timestamp.isoformat()}")
        typer.echo(f"    {json.dumps(event.payload)}")


@app.command()
def state(
    reference: Annotated[str, typer.Argument(help="Franchise id or aggregate id")],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
    db: Annotated[
        Optional[Path],
        typer.Option("--db", help="Database path"),
    ] = None,
) -> None:
    """Replay a franchise's log and show its current state"""
    ledger = get_ledger(db)
    try:
        snapshot = asyncio.run(ledger.state(reference))
    except LedgerError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if json_output:
        typer.echo(json.dumps(snapshot.model_dump(mode="json"), indent=2))
        return

    if not snapshot.franchise_exists:
        typer.echo(f"Franchise {snapshot.franchise_id or reference} does not exist")
        return

    typer.echo(f"Franchise {snapshot.franchise_id}: {snapshot.franchise_name} (v{snapshot.version})")
    for branch_id, branch in snapshot.branches.items():
        typer.echo(f"  {branch_id}: {branch.branch_name}")
        for product_id, product in branch.products.items():
            typer.echo(f"    {product_id}: {product.product_name} (stock: {product.current_stock})")


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
