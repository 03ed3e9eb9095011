"""
Internal data model of the translation engine.
Adapters receive these and shape them into each platform's JSON contract.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from constants import DEFAULT_PORTS, QUERY_MODE_SQL, QUERY_MODE_TABLE


@dataclass(frozen=True)
class ConnectionDescriptor:
    driver: str
    database: str
    host: str = ""
    port: Optional[int] = None
    username: str = ""
    password: str = field(default="", repr=False)
    schema: Optional[str] = None
    table: str = ""
    query_mode: str = QUERY_MODE_TABLE
    custom_sql: str = ""

    @property
    def is_custom_query(self) -> bool:
        return self.query_mode == QUERY_MODE_SQL

    @property
    def effective_port(self) -> Optional[int]:
        return self.port or DEFAULT_PORTS.get(self.driver)

    def summary(self) -> str:
        """One-line description for logs. Never includes the password."""
        target = self.custom_sql if self.is_custom_query else self.table
        return (
            f"driver={self.driver} host={self.host}:{self.effective_port or ''} "
            f"database={self.database} mode={self.query_mode} target={target}"
        )


@dataclass(frozen=True)
class FieldAlias:
    source_name: str
    display_name: str


@dataclass
class TableReference:
    """A request's table reference before resolution: an identifier or an inline descriptor."""
    table_id: Optional[int] = None
    driver: str = ""
    host: str = ""
    port: Optional[int] = None
    database: str = ""
    schema: Optional[str] = None
    username: str = ""
    password: str = field(default="", repr=False)
    table: str = ""
    query_mode: str = ""
    custom_sql: str = ""
    aliases: List[FieldAlias] = field(default_factory=list)

    @property
    def uses_identifier(self) -> bool:
        return bool(self.table_id) and self.table_id > 0


# --- type properties (tagged union keyed by category) ---

@dataclass(frozen=True)
class NumberProperties:
    formatter: str
    tag: str = "number"


@dataclass(frozen=True)
class DateProperties:
    formatter: str
    tag: str = "date"


@dataclass(frozen=True)
class CurrencyProperties:
    formatter: str
    currency_code: str
    tag: str = "currency"


TypeProperties = Union[NumberProperties, DateProperties, CurrencyProperties]


@dataclass(frozen=True)
class FieldDescriptor:
    identifier: str
    source_name: str
    display_name: str
    type_category: str
    is_primary: bool = False
    description: str = ""
    native_type: str = ""
    properties: Optional[TypeProperties] = None

    @property
    def ordinal(self) -> int:
        return int(self.identifier.rsplit("_", 1)[-1])


@dataclass
class ResolvedTable:
    descriptor: ConnectionDescriptor
    aliases: List[FieldAlias]
    table_name: str


@dataclass
class TableSchema:
    table_name: str
    fields: List[FieldDescriptor]

    @property
    def primary_field(self) -> Optional[FieldDescriptor]:
        return next((f for f in self.fields if f.is_primary), None)


@dataclass
class Record:
    record_id: str
    values: Dict[str, Any]
    position: int


@dataclass
class RecordPage:
    schema: TableSchema
    records: List[Record]
    has_more: bool
    next_cursor: Optional[str]
    total: int
    offset: int
    page_size: int


@dataclass
class PlatformRequest:
    """A platform call after envelope parsing: what to read, where from, and for whom."""
    reference: TableReference
    cursor: Optional[str] = None
    page_size: Optional[int] = None
    principal: Optional[str] = None
    request_id: str = ""
    tenant: str = ""
