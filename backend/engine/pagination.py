"""
Pagination engine.
Offset/limit windows over a named table or a custom query, addressed by an opaque
"offset:<n>" cursor. Count and row queries run on the same connection but are not
isolated from each other; rows changing in between can shift page contents.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from sqlalchemy import column, func, select, table
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from constants import CURSOR_PREFIX, DEFAULT_PAGE_SIZE
from engine.errors import SourceError, redact
from engine.introspection import NO_PARAMS, clean_query, wrap_query
from engine.models import ConnectionDescriptor, FieldDescriptor

logger = logging.getLogger(__name__)


def encode_cursor(offset: int) -> str:
    return f"{CURSOR_PREFIX}:{int(offset)}"


def decode_cursor(cursor: Optional[str]) -> int:
    """Offset encoded in a cursor. Absent, malformed or negative cursors mean 0."""
    if not cursor or not isinstance(cursor, str):
        return 0
    prefix, sep, value = cursor.strip().partition(":")
    if not sep or prefix != CURSOR_PREFIX:
        return 0
    try:
        offset = int(value.strip())
    except ValueError:
        return 0
    return offset if offset > 0 else 0


def normalize_page_size(size: Any) -> int:
    try:
        n = int(size)
    except (TypeError, ValueError):
        return DEFAULT_PAGE_SIZE
    return n if n > 0 else DEFAULT_PAGE_SIZE


@dataclass(frozen=True)
class PageWindow:
    offset: int
    page_size: int

    @classmethod
    def from_request(cls, cursor: Optional[str], page_size: Any) -> "PageWindow":
        return cls(offset=decode_cursor(cursor), page_size=normalize_page_size(page_size))

    def finish(self, total: int) -> Tuple[bool, Optional[str]]:
        end = self.offset + self.page_size
        has_more = end < total
        return has_more, encode_cursor(end) if has_more else None

    def is_past_end(self, total: int) -> bool:
        return self.offset >= total


def _source_table(descriptor: ConnectionDescriptor, columns: Sequence[str] = ()):
    return table(descriptor.table, *[column(c) for c in columns], schema=descriptor.schema)


def count_rows(conn: Connection, descriptor: ConnectionDescriptor) -> int:
    try:
        if descriptor.is_custom_query:
            result = conn.exec_driver_sql(
                f"SELECT COUNT(*) FROM ({clean_query(descriptor.custom_sql)}) AS t",
                execution_options=NO_PARAMS,
            )
            total = result.scalar()
        else:
            total = conn.execute(select(func.count()).select_from(_source_table(descriptor))).scalar()
    except SQLAlchemyError as e:
        raise SourceError(redact(f"Failed to count rows: {e}", descriptor.password), stage="count", cause=e) from e
    return int(total or 0)


def fetch_rows(
    conn: Connection,
    descriptor: ConnectionDescriptor,
    fields: Sequence[FieldDescriptor],
    window: PageWindow,
    order_by: Sequence[str] = (),
) -> List[Sequence[Any]]:
    """
    Rows of one window, each a sequence aligned with ``fields`` by ordinal.

    Named tables select exactly the introspected columns and are ordered by
    ``order_by`` (the primary-key columns) when given. Custom queries keep the
    order the query itself declares.
    """
    try:
        if descriptor.is_custom_query:
            sql = f"{wrap_query(descriptor.custom_sql)} LIMIT {int(window.page_size)} OFFSET {int(window.offset)}"
            result = conn.exec_driver_sql(sql, execution_options=NO_PARAMS)
        else:
            names = [f.source_name for f in sorted(fields, key=lambda f: f.ordinal)]
            src = _source_table(descriptor, names)
            stmt = select(*[src.c[n] for n in names])
            if order_by:
                stmt = stmt.order_by(*[src.c[n] for n in order_by if n in src.c])
            stmt = stmt.limit(window.page_size).offset(window.offset)
            result = conn.execute(stmt)
        rows = result.all()
    except SQLAlchemyError as e:
        raise SourceError(redact(f"Failed to fetch rows: {e}", descriptor.password), stage="fetch", cause=e) from e
    logger.debug("Fetched %d row(s) at offset %d for %s", len(rows), window.offset, descriptor.summary())
    return rows
