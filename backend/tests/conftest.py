import sqlite3
from typing import Dict, List, Optional

import pytest

from connectors import EngineRegistry
from engine.models import FieldAlias, TableReference
from services.credential_store import StoredDatasource, StoredTable


def make_sqlite(path, statements, rows=None):
    """Create a SQLite file from DDL statements plus {table: [row, ...]} inserts."""
    con = sqlite3.connect(str(path))
    try:
        for stmt in statements:
            con.execute(stmt)
        for table, values in (rows or {}).items():
            if not values:
                continue
            marks = ",".join("?" * len(values[0]))
            con.executemany(f"INSERT INTO {table} VALUES ({marks})", values)
        con.commit()
    finally:
        con.close()
    return str(path)


@pytest.fixture
def orders_db(tmp_path):
    rows = [(i, f"order-{i}", i * 1.5, f"2024-01-{(i % 28) + 1:02d} 10:00:00") for i in range(1, 651)]
    return make_sqlite(
        tmp_path / "orders.db",
        ["CREATE TABLE orders (id INTEGER PRIMARY KEY, name TEXT, amount DECIMAL(10,2), created_at DATETIME)"],
        {"orders": rows},
    )


@pytest.fixture
def engines():
    registry = EngineRegistry(idle_timeout=600, connect_timeout=5)
    yield registry
    registry.dispose_all()


def inline_ref(database: str, **kw) -> TableReference:
    kw.setdefault("driver", "sqlite")
    return TableReference(database=database, **kw)


class InMemoryStore:
    """Credential store fake: dict-backed, with a reversible 'encryption'."""

    def __init__(self):
        self.tables: Dict[int, StoredTable] = {}
        self.datasources: Dict[int, StoredDatasource] = {}
        self.aliases: Dict[int, List[FieldAlias]] = {}
        self.grants: Dict[int, List[str]] = {}
        self.calls: List[str] = []

    def get_table(self, table_id: int) -> Optional[StoredTable]:
        self.calls.append("get_table")
        return self.tables.get(table_id)

    def get_datasource(self, datasource_id: int) -> Optional[StoredDatasource]:
        self.calls.append("get_datasource")
        return self.datasources.get(datasource_id)

    def list_aliases(self, table_id: int) -> List[FieldAlias]:
        self.calls.append("list_aliases")
        return list(self.aliases.get(table_id, []))

    def is_authorized(self, table_id: int, principal: Optional[str]) -> bool:
        granted = self.grants.get(table_id)
        if not granted:
            return True
        return principal in granted

    def decrypt(self, secret: str) -> str:
        if not secret.startswith("enc:"):
            raise ValueError("bad ciphertext")
        return secret[len("enc:"):]


@pytest.fixture
def store():
    return InMemoryStore()
