# tests/test_storage.py
import pytest
import sqlite3
from pathlib import Path
from tempfile import TemporaryDirectory

from assetledger.core.errors import PersistenceError
from assetledger.storage import MemoryStore, SQLiteStore, StateStore, create_storage


@pytest.fixture
def temp_db_path(tmp_path: Path) -> Path:
    return tmp_path / "test.db"


@pytest.fixture(params=["memory", "sqlite"])
def store(request, temp_db_path: Path) -> StateStore:
    s = MemoryStore() if request.param == "memory" else SQLiteStore(db_path=temp_db_path)
    yield s
    s.close()


def test_create_storage_dynamic_routing(temp_db_path: Path):
    storage = create_storage(f"sqlite://{temp_db_path}")
    assert isinstance(storage, SQLiteStore)
    assert str(storage.db_path) == str(temp_db_path.resolve())
    storage.close()

    assert isinstance(create_storage("memory:"), MemoryStore)

    with pytest.raises(ValueError, match="Unsupported"):
        create_storage("jsonl:whatever")


def test_sqlite_init_default_and_env(monkeypatch):
    with TemporaryDirectory() as tmpdir:
        monkeypatch.chdir(tmpdir)
        monkeypatch.delenv("ASSETLEDGER_DB_PATH", raising=False)
        default_storage = SQLiteStore()
        assert default_storage.db_path.name == "assetledger.db"
        default_storage.close()

        env_path = Path(tmpdir) / "env" / "env-test.db"
        monkeypatch.setenv("ASSETLEDGER_DB_PATH", str(env_path))
        env_storage = SQLiteStore()
        assert env_storage.db_path == env_path.resolve()
        env_storage.close()


def test_sqlite_schema_creation(temp_db_path: Path):
    with SQLiteStore(temp_db_path) as storage:
        cursor = storage.conn.cursor()
        cursor.execute("PRAGMA table_info(history)")
        columns = {row[1] for row in cursor.fetchall()}
        assert columns == {"seq", "key", "tx_id", "timestamp", "value", "is_delete"}
        cursor.execute("PRAGMA table_info(world_state)")
        assert {row[1] for row in cursor.fetchall()} == {"key", "value", "tx_id"}


def test_get_missing_key(store: StateStore):
    assert store.get("nope") is None
    assert store.exists("nope") is False


def test_commit_writes_state_and_history(store: StateStore):
    store.commit("tx1", "2026-01-01T00:00:00.000Z", {"A": b"one", "B": b"two"})

    assert store.get("A") == b"one"
    assert store.exists("B")

    history = list(store.history("A"))
    assert len(history) == 1
    assert history[0].tx_id == "tx1"
    assert history[0].value == b"one"
    assert history[0].is_delete is False


def test_delete_appends_marker(store: StateStore):
    store.commit("tx1", "t1", {"A": b"one"})
    store.commit("tx2", "t2", {"A": None})

    assert store.get("A") is None
    history = list(store.history("A"))
    assert [h.tx_id for h in history] == ["tx1", "tx2"]
    assert history[-1].is_delete is True
    assert history[-1].value is None


def test_history_follows_commit_order_not_timestamps(store: StateStore):
    store.commit("late", "2030-01-01T00:00:00.000Z", {"A": b"1"})
    store.commit("early", "2000-01-01T00:00:00.000Z", {"A": b"2"})

    history = list(store.history("A"))
    assert [h.tx_id for h in history] == ["late", "early"]
    assert history[0].seq < history[1].seq


def test_history_is_per_key(store: StateStore):
    store.commit("tx1", "t", {"A": b"1", "B": b"1"})
    store.commit("tx2", "t", {"B": b"2"})
    assert len(list(store.history("A"))) == 1
    assert len(list(store.history("B"))) == 2
    assert list(store.history("C")) == []
    assert store.history_keys() == ["A", "B"]


def test_get_range(store: StateStore):
    store.commit("tx1", "t", {"ASSET2": b"2", "ASSET0": b"0", "ASSET1": b"1", "OTHER": b"x"})
    store.commit("tx2", "t", {"ASSET1": None})

    assert [k for k, _ in store.get_range()] == ["ASSET0", "ASSET2", "OTHER"]
    assert [k for k, _ in store.get_range("ASSET", "ASSET~")] == ["ASSET0", "ASSET2"]
    assert [k for k, _ in store.get_range("ASSET1", "")] == ["ASSET2", "OTHER"]


def test_duplicate_tx_id_rejected(store: StateStore):
    store.commit("tx1", "t", {"A": b"1"})
    with pytest.raises(PersistenceError, match="already committed"):
        store.commit("tx1", "t", {"B": b"1"})
    assert store.get("B") is None
    assert list(store.history("B")) == []


def test_history_iterator_is_lazy_and_single_pass(store: StateStore):
    store.commit("tx1", "t", {"A": b"1"})
    store.commit("tx2", "t", {"A": b"2"})
    it = store.history("A")
    assert next(it).tx_id == "tx1"
    assert [h.tx_id for h in it] == ["tx2"]
    assert list(it) == []


def test_history_iterator_ignores_later_commits(store: StateStore):
    store.commit("tx1", "t", {"A": b"1"})
    store.commit("tx2", "t", {"A": b"2"})
    it = store.history("A")
    assert next(it).tx_id == "tx1"

    store.commit("tx3", "t", {"A": b"3"})
    assert [h.tx_id for h in it] == ["tx2"]
    assert [h.tx_id for h in store.history("A")] == ["tx1", "tx2", "tx3"]


def test_sqlite_history_read_after_close_is_persistence_error(temp_db_path: Path):
    storage = SQLiteStore(temp_db_path)
    storage.commit("tx1", "t", {"A": b"1"})
    storage.commit("tx2", "t", {"A": b"2"})
    it = storage.history("A")
    storage.close()

    with pytest.raises(PersistenceError) as exc:
        list(it)
    assert exc.value.key == "A"
    assert exc.value.kind == "persistence"

    with pytest.raises(PersistenceError, match="closed"):
        storage.history_keys()


def test_sqlite_history_keys_wraps_driver_errors(temp_db_path: Path):
    with SQLiteStore(temp_db_path) as storage:
        storage.conn.execute("DROP TABLE history")
        with pytest.raises(PersistenceError, match="history keys"):
            storage.history_keys()
        with pytest.raises(PersistenceError, match="history for A"):
            storage.history("A")


def test_sqlite_commit_rolls_back_on_failure(temp_db_path: Path):
    with SQLiteStore(temp_db_path) as storage:
        storage.commit("tx1", "t", {"A": b"1"})
        storage.conn.execute("CREATE TRIGGER boom BEFORE INSERT ON history WHEN NEW.key = 'B' "
                             "BEGIN SELECT RAISE(ABORT, 'boom'); END")
        with pytest.raises(PersistenceError, match="boom"):
            storage.commit("tx2", "t", {"A": b"2", "B": b"x"})

        assert storage.get("A") == b"1"
        assert [h.tx_id for h in storage.history("A")] == ["tx1"]


def test_sqlite_persists_across_reopen(temp_db_path: Path):
    with SQLiteStore(temp_db_path) as storage:
        storage.commit("tx1", "t", {"A": b"1"})

    with SQLiteStore(temp_db_path) as reopened:
        assert reopened.get("A") == b"1"
        assert [k for k, _ in reopened.get_range()] == ["A"]
        assert [h.tx_id for h in reopened.history("A")] == ["tx1"]


def test_close_releases_resources(temp_db_path: Path):
    storage = SQLiteStore(temp_db_path)
    assert storage._conn is not None
    storage.close()

    with pytest.raises(PersistenceError, match="closed"):
        storage.get("A")


def test_context_manager(temp_db_path: Path):
    with MemoryStore() as mem:
        mem.commit("tx1", "t", {"A": b"1"})
    with pytest.raises(PersistenceError, match="closed"):
        mem.get("A")

    with SQLiteStore(temp_db_path) as storage:
        assert storage._conn is not None
    with pytest.raises(PersistenceError, match="closed"):
        storage.history("A")


def test_raw_sqlite_sees_deletion_rows(temp_db_path: Path):
    with SQLiteStore(temp_db_path) as storage:
        storage.commit("tx1", "t", {"A": b"1"})
        storage.commit("tx2", "t", {"A": None})

    conn = sqlite3.connect(temp_db_path)
    rows = conn.execute("SELECT tx_id, is_delete FROM history ORDER BY seq").fetchall()
    conn.close()
    assert rows == [("tx1", 0), ("tx2", 1)]
