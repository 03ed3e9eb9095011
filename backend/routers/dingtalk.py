"""
DingTalk AI Table data-source endpoints.
"""
from fastapi import APIRouter, Depends

from adapters import get_adapter
from engine.service import BitableService
from routers.deps import get_bitable_service
from schemas.dingtalk import RecordsRequest, SheetMetaRequest

router = APIRouter(prefix="/dingtalk/api", tags=["dingtalk"])


@router.post("/sheet_meta")
def sheet_meta(body: SheetMetaRequest, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter("dingtalk")
    req = adapter.parse_request(body)
    schema = service.get_schema(req.reference, principal=req.principal)
    return adapter.success(adapter.schema_response(schema))


@router.post("/records")
def records(body: RecordsRequest, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter("dingtalk")
    req = adapter.parse_request(body)
    page = service.get_records(req.reference, cursor=req.cursor, page_size=req.page_size, principal=req.principal)
    return adapter.success(adapter.records_response(page))
