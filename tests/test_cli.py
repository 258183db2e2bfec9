# tests/test_cli.py
import json
from pathlib import Path
from typing import Generator

import pytest
from typer.testing import CliRunner

from assetledger.cli.main import app, get_db_path
from assetledger.chain.session import LedgerSession

runner = CliRunner()


@pytest.fixture
def temp_db(tmp_path: Path) -> Generator[Path, None, None]:
    """Temporary DB file + auto-cleanup."""
    db_path = tmp_path / "test-cli.db"
    yield db_path
    if db_path.exists():
        db_path.unlink()


@pytest.fixture
def populated_db(temp_db: Path) -> Path:
    """DB with ASSET1 created and updated once."""
    with LedgerSession(str(temp_db)) as sess:
        sess.submit("CreateAsset", "ASSET1", "D1", "9876543210", "1212", 10000, "active", 0, "NA", "Initial Balance")
        sess.submit("UpdateAsset", "ASSET1", 15000, "active", 5000, "credit", "Top-up")
    return temp_db


def test_get_db_path_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("ASSETLEDGER_DB_PATH", str(tmp_path / "env" / "x.db"))
    assert get_db_path() == (tmp_path / "env" / "x.db").resolve()
    assert get_db_path(tmp_path / "flag.db") == (tmp_path / "flag.db").resolve()


def test_init_and_list(temp_db: Path):
    result = runner.invoke(app, ["init", "--db", str(temp_db)])
    assert result.exit_code == 0
    assert "Ledger Initialized Successfully" in result.stdout

    result = runner.invoke(app, ["assets", "--db", str(temp_db)])
    assert result.exit_code == 0
    assert "ASSET0" in result.stdout


def test_init_twice_fails(temp_db: Path):
    runner.invoke(app, ["init", "--db", str(temp_db)])
    result = runner.invoke(app, ["init", "--db", str(temp_db)])
    assert result.exit_code == 1
    assert "already_exists" in result.stdout

    result = runner.invoke(app, ["init", "--overwrite", "--db", str(temp_db)])
    assert result.exit_code == 0


def test_assets_empty_db(temp_db: Path):
    result = runner.invoke(app, ["assets", "--db", str(temp_db)])
    assert result.exit_code == 0
    assert "no assets found" in result.stdout.lower()


def test_create_and_read_json(temp_db: Path):
    result = runner.invoke(app, [
        "create", "ASSET1",
        "--dealer-id", "D1", "--msisdn", "9876543210", "--mpin", "1212",
        "--balance", "10000", "--remarks", "Initial Balance",
        "--db", str(temp_db),
    ])
    assert result.exit_code == 0, result.stdout
    assert "Asset ASSET1 created successfully" in result.stdout

    result = runner.invoke(app, ["read", "ASSET1", "--json", "--db", str(temp_db)])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == {
        "DEALERID": "D1",
        "MSISDN": "9876543210",
        "MPIN": "1212",
        "BALANCE": 10000,
        "STATUS": "active",
        "TRANSAMOUNT": 0,
        "TRANSTYPE": "NA",
        "REMARKS": "Initial Balance",
    }


def test_create_rejects_bad_balance(temp_db: Path):
    result = runner.invoke(app, [
        "create", "ASSET1",
        "--dealer-id", "D1", "--msisdn", "9876543210", "--mpin", "1212",
        "--balance", "ten", "--db", str(temp_db),
    ])
    assert result.exit_code == 1
    assert "validation" in result.stdout


def test_read_table(populated_db: Path):
    result = runner.invoke(app, ["read", "ASSET1", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "15000" in result.stdout
    assert "Top-up" in result.stdout


def test_read_missing(populated_db: Path):
    result = runner.invoke(app, ["read", "asset2", "--db", str(populated_db)])
    assert result.exit_code == 1
    assert "not_found" in result.stdout
    assert "does not exist" in result.stdout


def test_update_transfer_delete_history(populated_db: Path):
    db = ["--db", str(populated_db)]

    result = runner.invoke(app, ["transfer", "ASSET1", "9999", *db])
    assert result.exit_code == 0
    assert "transferred" in result.stdout

    result = runner.invoke(app, [
        "update", "ASSET1", "--balance", "14000", "--status", "inactive",
        "--trans-amount", "1000", "--trans-type", "debit", "--remarks", "Withdrawal", *db,
    ])
    assert result.exit_code == 0

    result = runner.invoke(app, ["delete", "ASSET1", *db])
    assert result.exit_code == 0
    assert "deleted" in result.stdout

    result = runner.invoke(app, ["history", "ASSET1", "--json", *db])
    assert result.exit_code == 0
    entries = json.loads(result.stdout)
    assert len(entries) == 5
    assert entries[0]["data"]["BALANCE"] == 10000
    assert entries[2]["data"]["MPIN"] == "9999"
    assert entries[3]["data"]["STATUS"] == "inactive"
    assert entries[-1]["data"] == "Deleted"
    assert all({"txId", "timestamp", "data"} == set(e) for e in entries)


def test_history_table(populated_db: Path):
    result = runner.invoke(app, ["history", "ASSET1", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "History of ASSET1" in result.stdout


def test_history_never_written(populated_db: Path):
    result = runner.invoke(app, ["history", "GHOST", "--db", str(populated_db)])
    assert result.exit_code == 1
    assert "not_found" in result.stdout


def test_verify_clean_ledger(populated_db: Path):
    result = runner.invoke(app, ["verify", "--db", str(populated_db)])
    assert result.exit_code == 0
    assert "consistent" in result.stdout.lower()


def test_verify_tampered_ledger(populated_db: Path):
    import sqlite3
    conn = sqlite3.connect(populated_db)
    conn.execute("DELETE FROM world_state WHERE key = 'ASSET1'")
    conn.commit()
    conn.close()

    result = runner.invoke(app, ["verify", "--db", str(populated_db)])
    assert result.exit_code == 1
    assert "state_mismatch" in result.stdout
