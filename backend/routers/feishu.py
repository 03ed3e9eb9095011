"""
Feishu Bitable data-connector endpoints.
Errors propagate to the exception handlers in main.py, which answer HTTP 200 with
a Feishu error envelope.
"""
from fastapi import APIRouter, Depends

from adapters import get_adapter
from engine.service import BitableService
from routers.deps import get_bitable_service, verify_feishu_request
from schemas.feishu import FeishuRequest

router = APIRouter(prefix="/feishu/api", tags=["feishu"], dependencies=[Depends(verify_feishu_request)])


@router.post("/table_meta")
def table_meta(body: FeishuRequest, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter("feishu")
    req = adapter.parse_request(body)
    schema = service.get_schema(req.reference, principal=req.principal)
    return adapter.success(adapter.schema_response(schema))


@router.post("/records")
def records(body: FeishuRequest, service: BitableService = Depends(get_bitable_service)):
    adapter = get_adapter("feishu")
    req = adapter.parse_request(body)
    page = service.get_records(req.reference, cursor=req.cursor, page_size=req.page_size, principal=req.principal)
    return adapter.success(adapter.records_response(page))
