"""
DingTalk AI Table adapter (sheet_meta / records and the source explorer helpers).
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from adapters import error_code_for
from constants import DEFAULT_CURRENCY_CODE
from engine.errors import (
    AuthorizationError,
    BitableSyncError,
    ConfigurationError,
    ParameterError,
    ResolutionError,
    SourceError,
)
from engine.models import CurrencyProperties, FieldDescriptor, PlatformRequest, RecordPage, TableSchema
from schemas.datasource import DatasourceConfig
from schemas.dingtalk import DingTalkContext, RecordsRequest, SheetMetaRequest
from utils.json_safe import make_json_safe

logger = logging.getLogger(__name__)

CODE_SUCCESS = 0
CODE_PARAM_ERROR = 10001
CODE_CONFIG_ERROR = 10002
CODE_AUTH_FAILED = 10004
CODE_THIRD_PARTY_ERROR = 10005

ERROR_CODES: Dict[type, int] = {
    ParameterError: CODE_PARAM_ERROR,
    ConfigurationError: CODE_CONFIG_ERROR,
    ResolutionError: CODE_CONFIG_ERROR,
    AuthorizationError: CODE_AUTH_FAILED,
    SourceError: CODE_THIRD_PARTY_ERROR,
}

FIELD_TYPE_CURRENCY = "currency"


def parse_config(raw: Any) -> DatasourceConfig:
    """Decode a datasource config sent as a JSON string or an object."""
    try:
        if isinstance(raw, (str, bytes)):
            return DatasourceConfig.model_validate_json(raw)
        return DatasourceConfig.model_validate(raw or {})
    except ValidationError as e:
        errors = e.errors()
        detail = errors[0].get("msg", "") if errors else str(e)
        raise ParameterError(f"Invalid datasource config: {detail}", stage="parse", cause=e) from e


def property_map(f: FieldDescriptor) -> Optional[Dict[str, Any]]:
    props = f.properties
    if props is None:
        return None
    out: Dict[str, Any] = {"formatter": props.formatter}
    if isinstance(props, CurrencyProperties):
        out["currencyCode"] = props.currency_code or DEFAULT_CURRENCY_CODE
    return out


class DingTalkAdapter:
    name = "dingtalk"

    def parse_request(self, body: SheetMetaRequest) -> PlatformRequest:
        config = parse_config(body.params)
        context = body.context or DingTalkContext()
        is_records = isinstance(body, RecordsRequest)
        return PlatformRequest(
            reference=config.to_reference(),
            cursor=(body.nextToken or None) if is_records else None,
            page_size=(body.maxResults or None) if is_records else None,
            principal=context.unionId or None,
            request_id=body.requestId or "",
            tenant=context.corpId or "",
        )

    def field(self, f: FieldDescriptor) -> Dict[str, Any]:
        item: Dict[str, Any] = {
            "id": f.identifier,
            "name": f.display_name,
            "type": FIELD_TYPE_CURRENCY if isinstance(f.properties, CurrencyProperties) else f.type_category,
            "isPrimary": f.is_primary,
        }
        prop = property_map(f)
        if prop:
            item["property"] = prop
        if f.description:
            item["description"] = f.description
        return item

    def schema_response(self, schema: TableSchema) -> Dict[str, Any]:
        return {"sheetName": schema.table_name, "fields": self.fields_response(schema)}

    def fields_response(self, schema: TableSchema) -> List[Dict[str, Any]]:
        return [self.field(f) for f in schema.fields]

    def records_response(self, page: RecordPage) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "records": [{"id": r.record_id, "fields": r.values} for r in page.records],
            "hasMore": page.has_more,
            "total": page.total,
        }
        if page.next_cursor:
            out["nextToken"] = page.next_cursor
        return out

    def success(self, data: Any) -> Dict[str, Any]:
        return {"code": CODE_SUCCESS, "data": make_json_safe(data)}

    def failure(self, exc: BitableSyncError) -> Dict[str, Any]:
        return {"code": self.error_code(exc), "msg": exc.message}

    def error_code(self, exc: BaseException) -> int:
        return error_code_for(ERROR_CODES, exc, CODE_THIRD_PARTY_ERROR)
