"""
Source explorer helpers used by the plugin config pages: list databases and tables,
preview fields of a table or a custom query. Inline connection configs only.
Answers in the DingTalk envelope under both platform prefixes.
"""
from enum import Enum
from fastapi import APIRouter, Depends

from adapters import HELPER_PLATFORM, get_adapter
from constants import QUERY_MODE_SQL
from engine.service import BitableService
from routers.deps import get_bitable_service
from schemas.datasource import DatasourceConfig

router = APIRouter(tags=["explorer"])


class Platform(str, Enum):
    FEISHU = "feishu"
    DINGTALK = "dingtalk"


@router.post("/{platform}/api/databases")
def databases(platform: Platform, config: DatasourceConfig, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter(HELPER_PLATFORM)
    return adapter.success(service.list_databases(config.to_reference()))


@router.post("/{platform}/api/tables")
def tables(platform: Platform, config: DatasourceConfig, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter(HELPER_PLATFORM)
    return adapter.success(service.list_tables(config.to_reference()))


@router.post("/{platform}/api/fields")
def fields(platform: Platform, config: DatasourceConfig, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter(HELPER_PLATFORM)
    schema = service.preview_fields(config.to_reference())
    return adapter.success(adapter.fields_response(schema))


@router.post("/{platform}/api/preview_sql")
def preview_sql(platform: Platform, config: DatasourceConfig, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter(HELPER_PLATFORM)
    reference = config.to_reference()
    reference.query_mode = QUERY_MODE_SQL
    schema = service.preview_fields(reference)
    return adapter.success(adapter.fields_response(schema))
