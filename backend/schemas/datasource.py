"""
Datasource config Pydantic schema: the table reference both platforms send.
Field names follow the plugin wire format (camelCase).
"""
from typing import List, Optional
from pydantic import BaseModel, Field

from engine.models import FieldAlias, TableReference


class FieldMapping(BaseModel):
    mysqlField: str = ""
    aliasField: str = ""


class DatasourceConfig(BaseModel):
    tableId: Optional[int] = None
    driver: str = ""
    host: str = ""
    port: Optional[int] = None
    database: str = ""
    db_schema: Optional[str] = Field(default=None, alias="schema")
    username: str = ""
    password: str = ""
    table: str = ""
    queryMode: str = ""
    customSQL: str = ""
    fieldMappings: List[FieldMapping] = Field(default_factory=list)

    class Config:
        populate_by_name = True
        extra = "ignore"

    def to_reference(self) -> TableReference:
        return TableReference(
            table_id=self.tableId,
            driver=self.driver,
            host=self.host,
            port=self.port,
            database=self.database,
            schema=self.db_schema,
            username=self.username,
            password=self.password,
            table=self.table,
            query_mode=self.queryMode,
            custom_sql=self.customSQL,
            aliases=[FieldAlias(source_name=m.mysqlField, display_name=m.aliasField) for m in self.fieldMappings],
        )
