"""
Bitable service: the two operations both platforms call, plus the source explorer helpers.

get_schema:  resolve -> introspect -> alias overlay -> single primary
get_records: resolve -> introspect -> count -> fetch window -> records
"""
from __future__ import annotations
import logging
import time
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from connectors import EngineRegistry
from constants import QUERY_MODE_SQL, SYSTEM_SCHEMAS
from engine.errors import BitableSyncError, ConfigurationError, ParameterError, SourceError, redact
from engine.fields import apply_aliases, build_records, ensure_single_primary
from engine.introspection import introspect
from engine.models import (
    ConnectionDescriptor,
    FieldDescriptor,
    RecordPage,
    ResolvedTable,
    TableReference,
    TableSchema,
)
from engine.pagination import PageWindow, count_rows, fetch_rows
from engine.resolver import display_table_name, inline_descriptor, resolve, validate_descriptor

logger = logging.getLogger(__name__)


class BitableService:
    def __init__(self, store=None, engines: Optional[EngineRegistry] = None):
        self.store = store
        self.engines = engines or EngineRegistry()

    # --- platform operations ---

    def get_schema(self, reference: TableReference, principal: Optional[str] = None) -> TableSchema:
        with self._timed("schema") as ctx:
            resolved = resolve(reference, self.store, principal)
            ctx["target"] = resolved.descriptor.summary()
            with self.engines.connect(resolved.descriptor) as conn:
                fields = introspect(conn, resolved.descriptor)
            schema = shape_schema(resolved, fields)
            ctx["fields"] = len(schema.fields)
        return schema

    def get_records(
        self,
        reference: TableReference,
        cursor: Optional[str] = None,
        page_size: Any = None,
        principal: Optional[str] = None,
    ) -> RecordPage:
        window = PageWindow.from_request(cursor, page_size)
        with self._timed("records") as ctx:
            resolved = resolve(reference, self.store, principal)
            descriptor = resolved.descriptor
            ctx["target"] = descriptor.summary()
            with self.engines.connect(descriptor) as conn:
                fields = introspect(conn, descriptor)
                total = count_rows(conn, descriptor)
                if window.is_past_end(total):
                    rows: Sequence[Sequence[Any]] = []
                else:
                    keys = [f.source_name for f in fields if f.is_primary]
                    rows = fetch_rows(conn, descriptor, fields, window, order_by=keys)
            schema = shape_schema(resolved, fields)
            keyed = any(f.is_primary for f in fields)
            records = build_records(rows, schema.fields, window.offset, keyed=keyed)
            has_more, next_cursor = window.finish(total)
            ctx["rows"] = len(records)
            ctx["offset"] = window.offset
        return RecordPage(
            schema=schema,
            records=records,
            has_more=has_more,
            next_cursor=next_cursor,
            total=total,
            offset=window.offset,
            page_size=window.page_size,
        )

    # --- source explorer helpers (inline descriptors only) ---

    def list_databases(self, reference: TableReference) -> List[str]:
        descriptor = self._explorer_descriptor(reference, need_database=False)
        with self._timed("databases"):
            with self.engines.connect(descriptor) as conn:
                try:
                    names = inspect(conn).get_schema_names()
                except SQLAlchemyError as e:
                    raise SourceError(
                        redact(f"Failed to list databases: {e}", descriptor.password), stage="introspect", cause=e
                    ) from e
        return [n for n in names if n.lower() not in SYSTEM_SCHEMAS]

    def list_tables(self, reference: TableReference) -> List[str]:
        descriptor = self._explorer_descriptor(reference)
        with self._timed("tables"):
            with self.engines.connect(descriptor) as conn:
                try:
                    inspector = inspect(conn)
                    names = inspector.get_table_names(schema=descriptor.schema)
                    names += inspector.get_view_names(schema=descriptor.schema)
                except SQLAlchemyError as e:
                    raise SourceError(
                        redact(f"Failed to list tables: {e}", descriptor.password), stage="introspect", cause=e
                    ) from e
        return sorted(set(names))

    def preview_fields(self, reference: TableReference) -> TableSchema:
        """Fields of an inline reference, named table or custom query, without reading rows."""
        descriptor = self._explorer_descriptor(reference)
        if descriptor.query_mode == QUERY_MODE_SQL and not descriptor.custom_sql.strip():
            raise ParameterError("Custom query must not be empty", stage="parse")
        validate_descriptor(descriptor)
        resolved = ResolvedTable(
            descriptor=descriptor,
            aliases=list(reference.aliases),
            table_name=display_table_name("", descriptor),
        )
        with self._timed("fields") as ctx:
            ctx["target"] = descriptor.summary()
            with self.engines.connect(descriptor) as conn:
                fields = introspect(conn, descriptor)
        return shape_schema(resolved, fields)

    def _explorer_descriptor(self, reference: TableReference, need_database: bool = True) -> ConnectionDescriptor:
        if reference.uses_identifier:
            raise ParameterError("Explorer endpoints take an inline connection, not a table identifier", stage="parse")
        descriptor = inline_descriptor(reference)
        if descriptor.driver != "sqlite" and not (descriptor.host and descriptor.username):
            raise ConfigurationError("Missing host or username", stage="resolve")
        if need_database and not descriptor.database:
            raise ConfigurationError("Missing database", stage="resolve")
        return descriptor

    @contextmanager
    def _timed(self, action: str) -> Iterator[dict]:
        ctx: dict = {}
        started = time.perf_counter()
        try:
            yield ctx
        except BitableSyncError as e:
            logger.warning(
                "action=%s outcome=error kind=%s stage=%s duration_ms=%.1f error=%s",
                action, e.kind, e.stage, (time.perf_counter() - started) * 1000, e.message,
            )
            raise
        logger.info(
            "action=%s outcome=ok duration_ms=%.1f %s",
            action, (time.perf_counter() - started) * 1000,
            " ".join(f"{k}={v}" for k, v in ctx.items()),
        )


def shape_schema(resolved: ResolvedTable, fields: Sequence[FieldDescriptor]) -> TableSchema:
    shaped = ensure_single_primary(apply_aliases(fields, resolved.aliases))
    return TableSchema(table_name=resolved.table_name, fields=shaped)
