import pytest
from sqlalchemy.exc import OperationalError

from engine.errors import AuthorizationError, ConfigurationError, ResolutionError
from engine.models import FieldAlias, TableReference
from engine.resolver import normalize_driver, resolve
from services.credential_store import StoredDatasource, StoredTable


def seed(store, **table_kw):
    store.datasources[7] = StoredDatasource(
        id=7, driver="mysql", database="shop", host="db.local", port=3307,
        username="reader", password_encrypted="enc:s3cret",
    )
    table_kw.setdefault("table_name", "orders")
    store.tables[42] = StoredTable(id=42, datasource_id=7, **table_kw)
    store.aliases[42] = [FieldAlias("amount", "Amount (CNY)")]


def test_identifier_form_decrypts_and_loads_aliases(store):
    seed(store, table_alias="Orders")
    resolved = resolve(TableReference(table_id=42), store)
    d = resolved.descriptor
    assert (d.driver, d.host, d.port, d.database, d.username) == ("mysql", "db.local", 3307, "shop", "reader")
    assert d.password == "s3cret"
    assert d.table == "orders"
    assert not d.is_custom_query
    assert resolved.aliases == [FieldAlias("amount", "Amount (CNY)")]
    assert resolved.table_name == "Orders"
    assert store.calls == ["get_table", "get_datasource", "list_aliases"]


def test_identifier_wins_over_inline_fields(store):
    seed(store)
    ref = TableReference(table_id=42, driver="sqlite", database="/tmp/ignored.db", table="other")
    assert resolve(ref, store).descriptor.table == "orders"


def test_password_never_in_repr(store):
    seed(store)
    resolved = resolve(TableReference(table_id=42), store)
    assert "s3cret" not in repr(resolved)
    assert "s3cret" not in resolved.descriptor.summary()


def test_custom_query_table_name_defaults(store):
    seed(store, table_name="", query_mode="sql", custom_sql="SELECT 1 AS one")
    resolved = resolve(TableReference(table_id=42), store)
    assert resolved.descriptor.is_custom_query
    assert resolved.table_name == "query_result"


def test_missing_table_is_resolution_error(store):
    with pytest.raises(ResolutionError):
        resolve(TableReference(table_id=99), store)


def test_missing_datasource_is_resolution_error(store):
    store.tables[42] = StoredTable(id=42, datasource_id=8, table_name="orders")
    with pytest.raises(ResolutionError):
        resolve(TableReference(table_id=42), store)


def test_failed_decryption_is_resolution_error(store):
    seed(store)
    store.datasources[7] = StoredDatasource(id=7, driver="mysql", database="shop", host="h", username="u", password_encrypted="garbage")
    with pytest.raises(ResolutionError) as exc:
        resolve(TableReference(table_id=42), store)
    assert "garbage" not in str(exc.value)


def test_grants_deny_unlisted_principal(store):
    seed(store)
    store.grants[42] = ["ou_alice"]
    assert resolve(TableReference(table_id=42), store, principal="ou_alice").descriptor.table == "orders"
    with pytest.raises(AuthorizationError):
        resolve(TableReference(table_id=42), store, principal="ou_bob")
    with pytest.raises(AuthorizationError):
        resolve(TableReference(table_id=42), store)


def test_identifier_without_store_is_configuration_error():
    with pytest.raises(ConfigurationError):
        resolve(TableReference(table_id=1), None)


def test_inline_form_is_used_verbatim():
    ref = TableReference(
        host="h", database="d", username="u", password="p", table="t",
        aliases=[FieldAlias("a", "A")],
    )
    resolved = resolve(ref)
    assert resolved.descriptor.driver == "mysql"
    assert resolved.descriptor.effective_port == 3306
    assert resolved.aliases == [FieldAlias("a", "A")]
    assert resolved.table_name == "t"


@pytest.mark.parametrize(
    "kw",
    [
        dict(driver="oracle", host="h", database="d", username="u", table="t"),
        dict(host="h", database="d", username="u", table="t", query_mode="view"),
        dict(host="h", database="d", username="u"),
        dict(host="h", database="d", username="u", query_mode="sql", custom_sql="   "),
        dict(database="d", username="u", table="t"),
        dict(driver="sqlite", table="t"),
    ],
)
def test_inline_form_structural_validation(kw):
    with pytest.raises(ConfigurationError):
        resolve(TableReference(**kw))


def test_normalize_driver_aliases():
    assert normalize_driver("") == "mysql"
    assert normalize_driver("MariaDB") == "mysql"
    assert normalize_driver("postgresql") == "postgres"


class UnreachableStore:
    def get_table(self, table_id):
        raise OperationalError("SELECT datasource_tables", {}, Exception("connection refused"))


def test_credential_store_failure_is_resolution_error():
    with pytest.raises(ResolutionError) as exc:
        resolve(TableReference(table_id=42), UnreachableStore())
    assert exc.value.stage == "resolve"
    assert isinstance(exc.value.cause, OperationalError)


def test_alias_lookup_failure_is_resolution_error(store, monkeypatch):
    seed(store)

    def broken(table_id):
        raise OperationalError("SELECT datasource_field_mappings", {}, Exception("gone away"))

    monkeypatch.setattr(store, "list_aliases", broken)
    with pytest.raises(ResolutionError):
        resolve(TableReference(table_id=42), store)
