"""
Feishu Bitable adapter (table_meta / records).

Pure shaping: request envelopes in, engine results out as Feishu JSON. Feishu
restricts field and record ids to [A-Za-z0-9_] and expects bilingual error text.
"""
from __future__ import annotations
import datetime as dt
import json
import logging
import re
import time
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from adapters import error_code_for
from constants import DEFAULT_CURRENCY_CODE, RECORD_ID_FALLBACK_PREFIX, TYPE_DATE, TYPE_NUMBER
from engine.errors import (
    AuthorizationError,
    BitableSyncError,
    ConfigurationError,
    IntrospectionError,
    ParameterError,
    ResolutionError,
    SourceError,
)
from engine.models import (
    CurrencyProperties,
    DateProperties,
    FieldDescriptor,
    PlatformRequest,
    RecordPage,
    TableSchema,
)
from schemas.feishu import FeishuContext, FeishuParams, FeishuRequest
from utils.json_safe import make_json_safe

logger = logging.getLogger(__name__)

FIELD_TYPE_TEXT = 1
FIELD_TYPE_NUMBER = 2
FIELD_TYPE_DATE = 5
FIELD_TYPE_CURRENCY = 8

CODE_SUCCESS = 0
CODE_CONFIG_ERROR = 1254400
CODE_AUTH_ERROR = 1254403
CODE_SYSTEM_ERROR = 1254500

ERROR_CODES: Dict[type, int] = {
    ParameterError: CODE_CONFIG_ERROR,
    ConfigurationError: CODE_CONFIG_ERROR,
    ResolutionError: CODE_CONFIG_ERROR,
    AuthorizationError: CODE_AUTH_ERROR,
    SourceError: CODE_SYSTEM_ERROR,
}

# (zh, en) prefixes of the error message, most specific class first
_ERROR_TEXT = [
    (ParameterError, "请求参数错误", "Invalid request parameters"),
    (ConfigurationError, "数据源配置错误", "Invalid datasource config"),
    (ResolutionError, "配置解析失败", "Failed to resolve config"),
    (AuthorizationError, "无权访问该表", "Not authorized to read this table"),
    (IntrospectionError, "获取表结构失败", "Failed to get table meta"),
    (SourceError, "获取表记录失败", "Failed to get records"),
]

NATIVE_NUMBER_FORMATTERS = {"0", "0.0", "0.00", "0.000", "0.0000", "#,##0", "#,##0.00", "0%", "0.00%"}
_NUMBER_FORMATTER_TOKENS = {"INT": "0", "FLOAT": "0.00", "FLOAT_2": "0.00", "DECIMAL": "0.00"}
DEFAULT_NUMBER_FORMATTER = "0"
DEFAULT_DATE_FORMATTER = "yyyy/MM/dd"

HEADER_TIMESTAMP = "X-Base-Request-Timestamp"
HEADER_NONCE = "X-Base-Request-Nonce"

_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_]")


def sanitize_id(value: str) -> str:
    return _UNSAFE_ID_CHARS.sub("", value or "")


def number_formatter(token: Optional[str]) -> str:
    if token in NATIVE_NUMBER_FORMATTERS:
        return token
    return _NUMBER_FORMATTER_TOKENS.get((token or "").upper(), DEFAULT_NUMBER_FORMATTER)


_DATE_PART_TOKENS = ("date", "timestamp")


def has_date_part(f: FieldDescriptor) -> bool:
    """TIME columns classify as dates but carry no calendar day."""
    native = (f.native_type or "").lower()
    return not native or any(tok in native for tok in _DATE_PART_TOKENS)


def to_epoch_millis(value: Any) -> Optional[int]:
    """Feishu date cells take epoch milliseconds; naive values are read as UTC."""
    if isinstance(value, str):
        try:
            value = dt.datetime.fromisoformat(value.strip())
        except ValueError:
            return None
    if isinstance(value, dt.datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=dt.timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, dt.date):
        return int(dt.datetime(value.year, value.month, value.day, tzinfo=dt.timezone.utc).timestamp() * 1000)
    return None


def field_type_of(f: FieldDescriptor) -> int:
    if isinstance(f.properties, CurrencyProperties):
        return FIELD_TYPE_CURRENCY
    if f.type_category == TYPE_NUMBER:
        return FIELD_TYPE_NUMBER
    if f.type_category == TYPE_DATE and has_date_part(f):
        return FIELD_TYPE_DATE
    return FIELD_TYPE_TEXT


def field_property(f: FieldDescriptor, field_type: int) -> Optional[Dict[str, Any]]:
    props = f.properties
    if field_type == FIELD_TYPE_CURRENCY:
        return {
            "formatter": number_formatter(props.formatter),
            "currencyCode": props.currency_code or DEFAULT_CURRENCY_CODE,
        }
    if field_type == FIELD_TYPE_NUMBER:
        return {"formatter": number_formatter(getattr(props, "formatter", None))}
    if field_type == FIELD_TYPE_DATE:
        formatter = props.formatter if isinstance(props, DateProperties) and props.formatter else DEFAULT_DATE_FORMATTER
        return {"formatter": formatter}
    return None


def verify_request(headers: Mapping[str, str], max_skew: int, now: Optional[float] = None) -> None:
    """Reject calls without a fresh timestamp/nonce pair."""
    timestamp = headers.get(HEADER_TIMESTAMP, "")
    nonce = headers.get(HEADER_NONCE, "")
    if not timestamp or not nonce:
        raise AuthorizationError("Missing request signature headers", stage="verify")
    try:
        ts = int(timestamp)
    except ValueError as e:
        raise AuthorizationError("Invalid request timestamp", stage="verify", cause=e) from e
    current = time.time() if now is None else now
    if abs(current - ts) > max_skew:
        raise AuthorizationError("Request timestamp expired", stage="verify")


class FeishuAdapter:
    name = "feishu"

    # --- requests ---

    def parse_request(self, body: FeishuRequest) -> PlatformRequest:
        try:
            params = FeishuParams.model_validate_json(body.params)
        except ValidationError as e:
            raise ParameterError(f"Invalid params: {_first_error(e)}", stage="parse", cause=e) from e
        context = self.parse_context(body.context)
        return PlatformRequest(
            reference=params.datasourceConfig.to_reference(),
            cursor=params.pageToken or None,
            page_size=params.maxPageSize,
            principal=context.scriptArgs.baseOpenID or None,
            request_id=context.bitable.logID or "",
            tenant=context.tenantKey or "",
        )

    def parse_context(self, raw: Any) -> FeishuContext:
        if not raw:
            return FeishuContext()
        try:
            if isinstance(raw, (str, bytes)):
                return FeishuContext.model_validate_json(raw)
            return FeishuContext.model_validate(raw)
        except ValidationError as e:
            logger.warning("Unparsable Feishu context, continuing without one: %s", _first_error(e))
            return FeishuContext()

    # --- responses ---

    def schema_response(self, schema: TableSchema) -> Dict[str, Any]:
        fields = []
        for f in schema.fields:
            field_type = field_type_of(f)
            item: Dict[str, Any] = {
                "fieldID": self._field_id(f),
                "fieldName": f.display_name,
                "fieldType": field_type,
                "isPrimary": f.is_primary,
            }
            if f.description:
                item["description"] = f.description
            prop = field_property(f, field_type)
            if prop:
                item["property"] = prop
            fields.append(item)
        return {"tableName": schema.table_name, "fields": fields}

    def records_response(self, page: RecordPage) -> Dict[str, Any]:
        keys = {f.identifier: self._field_id(f) for f in page.schema.fields}
        date_keys = {f.identifier for f in page.schema.fields if field_type_of(f) == FIELD_TYPE_DATE}
        used = set()
        records = []
        for r in page.records:
            primary_id = sanitize_id(r.record_id)
            if not primary_id or primary_id in used:
                primary_id = f"{RECORD_ID_FALLBACK_PREFIX}{r.position}"
                while primary_id in used:
                    primary_id += "_"
            used.add(primary_id)
            records.append({
                "primaryID": primary_id,
                "data": {
                    keys.get(k, sanitize_id(k)): to_epoch_millis(v) if k in date_keys else v
                    for k, v in r.values.items()
                },
            })
        out: Dict[str, Any] = {"records": records, "hasMore": page.has_more}
        if page.next_cursor:
            out["nextPageToken"] = page.next_cursor
        return out

    def success(self, data: Any) -> Dict[str, Any]:
        return {"code": CODE_SUCCESS, "data": make_json_safe(data)}

    def failure(self, exc: BitableSyncError) -> Dict[str, Any]:
        zh, en = next(((z, e) for cls, z, e in _ERROR_TEXT if isinstance(exc, cls)), ("系统错误", "System error"))
        msg = json.dumps({"zh": f"{zh}: {exc.message}", "en": f"{en}: {exc.message}"}, ensure_ascii=False)
        return {"code": self.error_code(exc), "msg": msg}

    def error_code(self, exc: BaseException) -> int:
        return error_code_for(ERROR_CODES, exc, CODE_SYSTEM_ERROR)

    @staticmethod
    def _field_id(f: FieldDescriptor) -> str:
        return sanitize_id(f.identifier) or f"field_{f.ordinal}"


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return str(e)
    loc = ".".join(str(p) for p in errors[0].get("loc", ()))
    return f"{loc}: {errors[0].get('msg', '')}" if loc else errors[0].get("msg", "")
