"""
Connection resolver.
Turns a table reference (stored identifier or inline descriptor) into a connection
descriptor plus the field aliases that apply to it.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy.exc import SQLAlchemyError

from constants import (
    DEFAULT_QUERY_TABLE_NAME,
    DEFAULT_SOURCE_DRIVER,
    QUERY_MODE_SQL,
    QUERY_MODE_TABLE,
    QUERY_MODES,
    SOURCE_DRIVER_ALIASES,
    SOURCE_DRIVERS,
)
from engine.errors import AuthorizationError, ConfigurationError, ResolutionError
from engine.models import ConnectionDescriptor, ResolvedTable, TableReference

logger = logging.getLogger(__name__)


def normalize_driver(driver: Optional[str]) -> str:
    d = (driver or "").strip().lower() or DEFAULT_SOURCE_DRIVER
    return SOURCE_DRIVER_ALIASES.get(d, d)


def normalize_query_mode(mode: Optional[str]) -> str:
    return (mode or "").strip().lower() or QUERY_MODE_TABLE


def validate_descriptor(descriptor: ConnectionDescriptor) -> None:
    """Structural checks only; nothing here touches the network."""
    if descriptor.driver not in SOURCE_DRIVERS:
        raise ConfigurationError(f"Unsupported driver: {descriptor.driver}", stage="resolve")
    if descriptor.query_mode not in QUERY_MODES:
        raise ConfigurationError(f"Unsupported query mode: {descriptor.query_mode}", stage="resolve")
    if not descriptor.database:
        raise ConfigurationError("Missing database", stage="resolve")
    if descriptor.driver != "sqlite":
        if not descriptor.host:
            raise ConfigurationError("Missing host", stage="resolve")
        if not descriptor.username:
            raise ConfigurationError("Missing username", stage="resolve")
    if descriptor.query_mode == QUERY_MODE_SQL:
        if not descriptor.custom_sql.strip():
            raise ConfigurationError("Custom query mode requires a non-empty query", stage="resolve")
    elif not descriptor.table:
        raise ConfigurationError("Named table mode requires a table name", stage="resolve")


def display_table_name(alias: str, descriptor: ConnectionDescriptor) -> str:
    return alias or descriptor.table or DEFAULT_QUERY_TABLE_NAME


def resolve(reference: TableReference, store=None, principal: Optional[str] = None) -> ResolvedTable:
    if reference.uses_identifier:
        return _resolve_identifier(reference.table_id, store, principal)
    return _resolve_inline(reference)


def inline_descriptor(reference: TableReference) -> ConnectionDescriptor:
    """Descriptor built verbatim from an inline reference, without validation."""
    return ConnectionDescriptor(
        driver=normalize_driver(reference.driver),
        database=(reference.database or "").strip(),
        host=(reference.host or "").strip(),
        port=reference.port or None,
        username=reference.username or "",
        password=reference.password or "",
        schema=reference.schema or None,
        table=(reference.table or "").strip(),
        query_mode=normalize_query_mode(reference.query_mode),
        custom_sql=reference.custom_sql or "",
    )


def _resolve_inline(reference: TableReference) -> ResolvedTable:
    descriptor = inline_descriptor(reference)
    validate_descriptor(descriptor)
    return ResolvedTable(
        descriptor=descriptor,
        aliases=list(reference.aliases),
        table_name=display_table_name("", descriptor),
    )


def _resolve_identifier(table_id: int, store, principal: Optional[str]) -> ResolvedTable:
    if store is None:
        raise ConfigurationError("No credential store configured for table identifiers", stage="resolve")

    with _store_access(table_id):
        table = store.get_table(table_id)
        if table is None:
            raise ResolutionError(f"Table configuration not found: {table_id}", stage="resolve")
        if not store.is_authorized(table_id, principal):
            raise AuthorizationError(f"Not authorized to read table {table_id}", stage="resolve")

        ds = store.get_datasource(table.datasource_id)
        if ds is None:
            raise ResolutionError(f"Datasource not found: {table.datasource_id}", stage="resolve")
        try:
            password = store.decrypt(ds.password_encrypted)
        except ValueError as e:
            raise ResolutionError(
                f"Failed to decrypt credentials of datasource {ds.id}", stage="resolve", cause=e
            ) from e

        descriptor = ConnectionDescriptor(
            driver=normalize_driver(ds.driver),
            database=ds.database,
            host=ds.host,
            port=ds.port or None,
            username=ds.username,
            password=password,
            schema=ds.schema or None,
            table=table.table_name,
            query_mode=normalize_query_mode(table.query_mode),
            custom_sql=table.custom_sql,
        )
        validate_descriptor(descriptor)
        aliases = store.list_aliases(table_id)
    logger.debug("Resolved table %s to %s (%d alias(es))", table_id, descriptor.summary(), len(aliases))
    return ResolvedTable(
        descriptor=descriptor,
        aliases=list(aliases),
        table_name=display_table_name(table.table_alias, descriptor),
    )


@contextmanager
def _store_access(table_id: int) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as e:
        logger.error("Credential store read failed for table %s: %s", table_id, e)
        raise ResolutionError(
            f"Credential store unavailable while resolving table {table_id}", stage="resolve", cause=e
        ) from e
