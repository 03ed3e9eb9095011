"""
Schema introspector.

Named tables are read from catalog metadata through the SQLAlchemy Inspector.
Custom queries are probed with ``SELECT * FROM (<query>) AS t LIMIT 1`` and typed
from the driver's cursor description, since the query may project, alias or join
arbitrarily. Field order is the column order; identifiers are derived from it.
"""
from __future__ import annotations
import datetime as dt
import logging
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import bindparam, inspect, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import CompileError, NoSuchTableError, SQLAlchemyError

from engine.errors import IntrospectionError, redact
from engine.fields import field_identifier
from engine.models import ConnectionDescriptor, FieldDescriptor
from engine.values import classify, type_properties

logger = logging.getLogger(__name__)

# pymysql reports wire-level type names; map them onto SQL type names
_MYSQL_TYPE_ALIASES: Dict[str, str] = {
    "tiny": "tinyint",
    "short": "smallint",
    "long": "int",
    "longlong": "bigint",
    "int24": "mediumint",
    "newdecimal": "decimal",
    "newdate": "date",
    "var_string": "varchar",
    "string": "char",
}

NO_PARAMS = {"no_parameters": True}


def clean_query(sql: str) -> str:
    s = (sql or "").strip()
    while s.endswith(";"):
        s = s[:-1].rstrip()
    return s


def wrap_query(sql: str) -> str:
    return f"SELECT * FROM ({clean_query(sql)}) AS t"


def introspect(conn: Connection, descriptor: ConnectionDescriptor) -> List[FieldDescriptor]:
    if descriptor.is_custom_query:
        return introspect_query(conn, descriptor)
    return introspect_table(conn, descriptor)


def introspect_table(conn: Connection, descriptor: ConnectionDescriptor) -> List[FieldDescriptor]:
    try:
        inspector = inspect(conn)
        columns = inspector.get_columns(descriptor.table, schema=descriptor.schema)
        pk = inspector.get_pk_constraint(descriptor.table, schema=descriptor.schema) or {}
    except NoSuchTableError as e:
        raise IntrospectionError(f"Table not found: {descriptor.table}", stage="introspect", cause=e) from e
    except SQLAlchemyError as e:
        raise IntrospectionError(
            redact(f"Failed to read table schema: {e}", descriptor.password), stage="introspect", cause=e
        ) from e
    if not columns:
        raise IntrospectionError(f"Table has no columns: {descriptor.table}", stage="introspect")

    keys = set(pk.get("constrained_columns") or [])
    return [
        make_field(i, col["name"], _type_name(col["type"]), col["name"] in keys, col.get("comment") or "")
        for i, col in enumerate(columns)
    ]


def introspect_query(conn: Connection, descriptor: ConnectionDescriptor) -> List[FieldDescriptor]:
    probe = f"{wrap_query(descriptor.custom_sql)} LIMIT 1"
    try:
        result = conn.exec_driver_sql(probe, execution_options=NO_PARAMS)
        cursor = getattr(result, "cursor", None)
        description = cursor.description if cursor is not None else None
        names = list(result.keys())
        row = result.first()
        native_types = native_type_names(conn, description, row, len(names))
    except SQLAlchemyError as e:
        raise IntrospectionError(
            redact(f"Failed to execute custom query: {e}", descriptor.password), stage="introspect", cause=e
        ) from e

    comments = lookup_comments(conn, descriptor, names)
    return [
        make_field(i, name, native_types[i], False, comments.get(name, ""))
        for i, name in enumerate(names)
    ]


def make_field(ordinal: int, name: str, native_type: str, is_primary: bool, comment: str) -> FieldDescriptor:
    category = classify(native_type)
    return FieldDescriptor(
        identifier=field_identifier(ordinal),
        source_name=name,
        display_name=name,
        type_category=category,
        is_primary=is_primary,
        description=comment,
        native_type=native_type,
        properties=type_properties(native_type, category),
    )


def native_type_names(
    conn: Connection,
    description: Optional[Sequence[Sequence[Any]]],
    row: Optional[Sequence[Any]],
    width: int,
) -> List[str]:
    codes: List[Any] = [d[1] for d in description] if description else [None] * width
    dialect = conn.dialect.name
    if dialect == "mysql":
        names = _mysql_type_names(codes)
    elif dialect == "postgresql":
        names = _pg_type_names(conn, codes)
    else:
        names = [c if isinstance(c, str) and c else None for c in codes]

    out: List[str] = []
    for i in range(width):
        name = names[i] if i < len(names) else None
        if not name:
            name = type_from_value(row[i] if row is not None and i < len(row) else None)
        out.append(name)
    return out


def type_from_value(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, (float, Decimal)):
        return "real"
    if isinstance(value, dt.datetime):
        return "datetime"
    if isinstance(value, dt.date):
        return "date"
    if isinstance(value, dt.time):
        return "time"
    return "text"


def _mysql_type_names(codes: Sequence[Any]) -> List[Optional[str]]:
    from pymysql.constants import FIELD_TYPE

    # FIELD_TYPE declares aliases (CHAR = TINY, INTERVAL = ENUM); the first name wins
    by_code: Dict[int, str] = {}
    for k, v in vars(FIELD_TYPE).items():
        if k.isupper() and isinstance(v, int):
            by_code.setdefault(v, k.lower())
    out: List[Optional[str]] = []
    for c in codes:
        name = by_code.get(c)
        out.append(_MYSQL_TYPE_ALIASES.get(name, name) if name else None)
    return out


def _pg_type_names(conn: Connection, codes: Sequence[Any]) -> List[Optional[str]]:
    oids = sorted({c for c in codes if isinstance(c, int)})
    if not oids:
        return [None] * len(codes)
    stmt = text("SELECT oid, typname FROM pg_catalog.pg_type WHERE oid IN :oids").bindparams(
        bindparam("oids", expanding=True)
    )
    by_oid = {int(oid): name for oid, name in conn.execute(stmt, {"oids": oids})}
    return [by_oid.get(c) if isinstance(c, int) else None for c in codes]


def lookup_comments(conn: Connection, descriptor: ConnectionDescriptor, names: Sequence[str]) -> Dict[str, str]:
    """Best-effort column comments for a custom query. Missing comments are not an error."""
    if not names:
        return {}
    try:
        if descriptor.table:
            columns = inspect(conn).get_columns(descriptor.table, schema=descriptor.schema)
            return {c["name"]: c["comment"] for c in columns if c.get("comment")}
        if conn.dialect.name == "mysql":
            stmt = text(
                "SELECT COLUMN_NAME, COLUMN_COMMENT FROM INFORMATION_SCHEMA.COLUMNS "
                "WHERE TABLE_SCHEMA = :db AND COLUMN_NAME IN :names AND COLUMN_COMMENT <> '' "
                "ORDER BY TABLE_NAME, ORDINAL_POSITION"
            ).bindparams(bindparam("names", expanding=True))
            out: Dict[str, str] = {}
            for name, comment in conn.execute(stmt, {"db": descriptor.database, "names": sorted(set(names))}):
                out.setdefault(name, comment)
            return out
    except SQLAlchemyError as e:
        logger.warning("Column comment lookup skipped for %s: %s", descriptor.summary(), redact(str(e), descriptor.password))
        # a failed statement can poison the open transaction on some backends
        conn.rollback()
    return {}


def _type_name(col_type: Any) -> str:
    try:
        return str(col_type)
    except CompileError:
        return type(col_type).__name__
