"""
Credential store: read-only access to datasource and table configuration.

The engine only depends on the ``CredentialStore`` protocol; ``SqlCredentialStore``
implements it over the config-store tables with one short-lived session per call.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from engine.models import FieldAlias
from models.datasource import (
    Datasource,
    DatasourceFieldMapping,
    DatasourceTable,
    DatasourceTableGrant,
)
from services.crypto import CryptoService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredTable:
    id: int
    datasource_id: int
    table_name: str = ""
    table_alias: str = ""
    query_mode: str = ""
    custom_sql: str = ""


@dataclass(frozen=True)
class StoredDatasource:
    id: int
    driver: str
    database: str
    host: str = ""
    port: Optional[int] = None
    schema: Optional[str] = None
    username: str = ""
    password_encrypted: str = field(default="", repr=False)


class CredentialStore(Protocol):
    def get_table(self, table_id: int) -> Optional[StoredTable]: ...

    def get_datasource(self, datasource_id: int) -> Optional[StoredDatasource]: ...

    def list_aliases(self, table_id: int) -> List[FieldAlias]: ...

    def is_authorized(self, table_id: int, principal: Optional[str]) -> bool: ...

    def decrypt(self, secret: str) -> str: ...


class SqlCredentialStore:
    def __init__(self, session_factory: Callable[[], Session], crypto: CryptoService):
        self.session_factory = session_factory
        self.crypto = crypto

    def get_table(self, table_id: int) -> Optional[StoredTable]:
        with self.session_factory() as db:
            t = db.get(DatasourceTable, table_id)
            if t is None:
                return None
            return StoredTable(
                id=t.id,
                datasource_id=t.datasource_id,
                table_name=t.table_name or "",
                table_alias=t.table_alias or "",
                query_mode=t.query_mode or "",
                custom_sql=t.custom_sql or "",
            )

    def get_datasource(self, datasource_id: int) -> Optional[StoredDatasource]:
        with self.session_factory() as db:
            ds = db.get(Datasource, datasource_id)
            if ds is None:
                return None
            return StoredDatasource(
                id=ds.id,
                driver=ds.driver or "",
                database=ds.database_name,
                host=ds.host or "",
                port=ds.port,
                schema=ds.schema_name,
                username=ds.username or "",
                password_encrypted=ds.password_encrypted or "",
            )

    def list_aliases(self, table_id: int) -> List[FieldAlias]:
        stmt = (
            select(DatasourceFieldMapping.field_name, DatasourceFieldMapping.field_alias)
            .where(
                DatasourceFieldMapping.datasource_table_id == table_id,
                DatasourceFieldMapping.enabled.is_(True),
            )
            .order_by(DatasourceFieldMapping.id)
        )
        with self.session_factory() as db:
            return [FieldAlias(source_name=name, display_name=alias or "") for name, alias in db.execute(stmt)]

    def is_authorized(self, table_id: int, principal: Optional[str]) -> bool:
        count_stmt = (
            select(func.count())
            .select_from(DatasourceTableGrant)
            .where(DatasourceTableGrant.datasource_table_id == table_id)
        )
        with self.session_factory() as db:
            if not db.scalar(count_stmt):
                return True
            if not principal:
                return False
            granted = db.scalar(
                select(DatasourceTableGrant.id).where(
                    DatasourceTableGrant.datasource_table_id == table_id,
                    DatasourceTableGrant.principal == principal,
                )
            )
        if granted is None:
            logger.info("Principal denied read on table %s", table_id)
        return granted is not None

    def decrypt(self, secret: str) -> str:
        return self.crypto.decrypt(secret)
