# assetledger/cli/main.py
"""
CLI for running asset ledger transactions and inspecting their history.
"""

import os
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from assetledger.chain.session import LedgerSession
from assetledger.core.errors import LedgerError
from assetledger.core.types import Asset
from assetledger.storage import SQLiteStore
from assetledger.verify.verifier import StateVerifier

app = typer.Typer(
    name="assetledger",
    help="Create, update and audit dealer asset records on an append-only ledger",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()


def get_db_path(db_flag: Optional[Path] = None) -> Path:
    """Resolve DB path in this order:
    1. --db flag
    2. ASSETLEDGER_DB_PATH environment variable
    3. Default: ~/.assetledger/assetledger.db
    """
    if db_flag:
        path = db_flag.resolve()
    else:
        env_path = os.environ.get("ASSETLEDGER_DB_PATH")
        if env_path:
            path = Path(env_path).resolve()
        else:
            path = Path.home() / ".assetledger" / "assetledger.db"

    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def open_session(db: Optional[Path]) -> LedgerSession:
    db_path = get_db_path(db)
    try:
        return LedgerSession(SQLiteStore(db_path))
    except LedgerError as e:
        console.print(f"[red]Failed to open database: {e.reason}[/]")
        raise typer.Exit(1)


def fail(error: LedgerError) -> None:
    console.print(f"[red]✗ {error.kind}: {escape(error.reason)}[/]")
    raise typer.Exit(1)


def print_asset(asset: Asset) -> None:
    table = Table(title=f"Asset {asset.id}", show_header=False)
    table.add_column("Field", style="bold cyan")
    table.add_column("Value")
    for name, value in asset.to_record().items():
        table.add_row(name, str(value))
    console.print(table)


@app.callback()
def main(
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="Path to SQLite database (overrides ASSETLEDGER_DB_PATH env var)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log committed transactions"),
):
    """Manage dealer asset records."""
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")


@app.command()
def init(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    overwrite: bool = typer.Option(False, "--overwrite", help="Re-seed bootstrap assets even if present"),
):
    """Seed the ledger with the bootstrap assets."""
    with open_session(db) as session:
        try:
            message = session.submit("InitLedger", overwrite=overwrite)
        except LedgerError as e:
            fail(e)
    console.print(f"[green]{message}[/]")


@app.command()
def create(
    asset_id: str = typer.Argument(..., help="Asset id (store key)"),
    dealer_id: str = typer.Option(..., "--dealer-id"),
    msisdn: str = typer.Option(..., "--msisdn"),
    mpin: str = typer.Option(..., "--mpin"),
    balance: str = typer.Option(..., "--balance"),
    status: str = typer.Option("active", "--status"),
    trans_amount: str = typer.Option("0", "--trans-amount"),
    trans_type: str = typer.Option("NA", "--trans-type"),
    remarks: str = typer.Option("", "--remarks"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Create a new asset."""
    with open_session(db) as session:
        try:
            message = session.submit(
                "CreateAsset", asset_id, dealer_id, msisdn, mpin,
                balance, status, trans_amount, trans_type, remarks,
            )
        except LedgerError as e:
            fail(e)
    console.print(f"[green]{message}[/]")


@app.command()
def read(
    asset_id: str = typer.Argument(..., help="Asset id to read"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    as_json: bool = typer.Option(False, "--json", help="Print the stored canonical JSON"),
):
    """Show the current state of an asset."""
    with open_session(db) as session:
        try:
            asset = session.evaluate("ReadAsset", asset_id)
        except LedgerError as e:
            fail(e)

    if as_json:
        console.print_json(json.dumps(asset.to_record()))
    else:
        print_asset(asset)


@app.command()
def update(
    asset_id: str = typer.Argument(..., help="Asset id to update"),
    balance: str = typer.Option(..., "--balance"),
    status: str = typer.Option(..., "--status"),
    trans_amount: str = typer.Option(..., "--trans-amount"),
    trans_type: str = typer.Option(..., "--trans-type"),
    remarks: str = typer.Option("", "--remarks"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Replace balance, status and transaction fields of an asset."""
    with open_session(db) as session:
        try:
            message = session.submit("UpdateAsset", asset_id, balance, status, trans_amount, trans_type, remarks)
        except LedgerError as e:
            fail(e)
    console.print(f"[green]{message}[/]")


@app.command()
def delete(
    asset_id: str = typer.Argument(..., help="Asset id to delete"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Delete an asset (its history is kept)."""
    with open_session(db) as session:
        try:
            message = session.submit("DeleteAsset", asset_id)
        except LedgerError as e:
            fail(e)
    console.print(f"[green]{message}[/]")


@app.command()
def transfer(
    asset_id: str = typer.Argument(..., help="Asset id"),
    new_mpin: str = typer.Argument(..., help="New MPIN credential"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Change the MPIN of an asset."""
    with open_session(db) as session:
        try:
            message = session.submit("TransferAsset", asset_id, new_mpin)
        except LedgerError as e:
            fail(e)
    console.print(f"[green]{message}[/]")


@app.command()
def history(
    asset_id: str = typer.Argument(..., help="Asset id"),
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
    as_json: bool = typer.Option(False, "--json", help="Print history as a JSON array"),
):
    """Show every committed change of an asset, oldest first."""
    with open_session(db) as session:
        try:
            records = session.evaluate("GetAssetHistory", asset_id)
        except LedgerError as e:
            fail(e)

    if as_json:
        console.print_json(json.dumps([r.to_dict() for r in records]))
        return

    table = Table(title=f"History of {asset_id}")
    table.add_column("#")
    table.add_column("Tx ID")
    table.add_column("Timestamp")
    table.add_column("Balance")
    table.add_column("Status")
    table.add_column("Type")
    table.add_column("Remarks")

    for i, record in enumerate(records):
        if record.is_delete:
            table.add_row(str(i), record.tx_id, record.timestamp, "[red]Deleted[/]", "", "", "")
            continue
        data = record.data.to_record()
        table.add_row(
            str(i), record.tx_id, record.timestamp,
            str(data["BALANCE"]), data["STATUS"], data["TRANSTYPE"], data["REMARKS"],
        )

    console.print(table)


@app.command()
def assets(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """List all live assets."""
    with open_session(db) as session:
        try:
            live = session.evaluate("GetAllAssets")
        except LedgerError as e:
            fail(e)

    if not live:
        console.print("[yellow]No assets found in ledger.[/]")
        console.print("  Run `assetledger init` or `assetledger create` first.")
        return

    table = Table(title="Assets")
    table.add_column("ID")
    table.add_column("Dealer")
    table.add_column("MSISDN")
    table.add_column("Balance")
    table.add_column("Status")

    for asset in live:
        record = asset.to_record()
        table.add_row(asset.id, asset.dealer_id, asset.msisdn, str(record["BALANCE"]), asset.status)

    console.print(table)


@app.command()
def verify(
    db: Optional[Path] = typer.Option(None, "--db", hidden=True),
):
    """Check that world state agrees with the history log."""
    with open_session(db) as session:
        result = StateVerifier().verify(session.store)

    if result.is_valid:
        console.print("[green]✓ Ledger is consistent[/]")
        console.print(f"  {result.message}")
    else:
        console.print("[red]✗ Ledger verification failed[/]")
        for failure in result.failures:
            console.print(f"  • {escape(f'[{failure.key}]')} {failure.category}: {escape(failure.message)}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
