import datetime as dt
import json
from decimal import Decimal

import pytest

from adapters import adapter_for_path, get_adapter
from adapters.feishu import number_formatter, sanitize_id, to_epoch_millis, verify_request
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
    FieldDescriptor,
    NumberProperties,
    Record,
    RecordPage,
    TableSchema,
)
from schemas.dingtalk import RecordsRequest, SheetMetaRequest
from schemas.feishu import FeishuRequest

FIELDS = [
    FieldDescriptor("fid_0", "id", "ID", "number", True, "order id", "int", NumberProperties("INT")),
    FieldDescriptor("fid_1", "name", "name", "text"),
    FieldDescriptor("fid_2", "price", "Price", "number", properties=CurrencyProperties("FLOAT_2", "CNY")),
    FieldDescriptor("fid_3", "created_at", "created_at", "date", native_type="datetime"),
]
SCHEMA = TableSchema(table_name="orders", fields=FIELDS)


def page(records, has_more=False, next_cursor=None, total=2):
    return RecordPage(SCHEMA, records, has_more, next_cursor, total, 0, 300)


def test_registry():
    assert get_adapter("feishu").name == "feishu"
    assert get_adapter("dingtalk").name == "dingtalk"
    with pytest.raises(ValueError):
        get_adapter("lark")


def test_adapter_for_path():
    assert adapter_for_path("/feishu/api/records").name == "feishu"
    assert adapter_for_path("/dingtalk/api/sheet_meta").name == "dingtalk"
    # explorer helpers answer in the DingTalk envelope on both prefixes
    assert adapter_for_path("/feishu/api/preview_sql").name == "dingtalk"
    assert adapter_for_path("/health") is None


@pytest.mark.parametrize(
    "exc, feishu_code, dingtalk_code",
    [
        (ParameterError("x"), 1254400, 10001),
        (ConfigurationError("x"), 1254400, 10002),
        (ResolutionError("x"), 1254400, 10002),
        (AuthorizationError("x"), 1254403, 10004),
        (SourceError("x"), 1254500, 10005),
        (IntrospectionError("x"), 1254500, 10005),
        (BitableSyncError("x"), 1254500, 10005),
    ],
)
def test_error_code_tables_are_total(exc, feishu_code, dingtalk_code):
    assert get_adapter("feishu").error_code(exc) == feishu_code
    assert get_adapter("dingtalk").error_code(exc) == dingtalk_code


# --- Feishu ---

def test_feishu_parse_request():
    config = {"tableId": 42, "fieldMappings": [{"mysqlField": "a", "aliasField": "A"}]}
    body = FeishuRequest(
        params=json.dumps({"datasourceConfig": json.dumps(config), "pageToken": "offset:300", "maxPageSize": 100}),
        context=json.dumps({"bitable": {"logID": "log-1"}, "tenantKey": "t1", "scriptArgs": {"baseOpenID": "ou_1"}}),
    )
    req = get_adapter("feishu").parse_request(body)
    assert req.reference.table_id == 42
    assert req.reference.aliases[0].display_name == "A"
    assert (req.cursor, req.page_size, req.principal, req.request_id, req.tenant) == ("offset:300", 100, "ou_1", "log-1", "t1")


def test_feishu_bad_context_is_ignored():
    body = FeishuRequest(params=json.dumps({"datasourceConfig": "{}"}), context="{not json")
    req = get_adapter("feishu").parse_request(body)
    assert req.principal is None


@pytest.mark.parametrize("params", ["not json", json.dumps({"datasourceConfig": "{broken"}), json.dumps({})])
def test_feishu_bad_params_is_parameter_error(params):
    with pytest.raises(ParameterError):
        get_adapter("feishu").parse_request(FeishuRequest(params=params))


def test_feishu_schema_response():
    out = get_adapter("feishu").schema_response(SCHEMA)
    assert out["tableName"] == "orders"
    f0, f1, f2, f3 = out["fields"]
    assert f0 == {"fieldID": "fid_0", "fieldName": "ID", "fieldType": 2, "isPrimary": True,
                  "description": "order id", "property": {"formatter": "0"}}
    assert f1 == {"fieldID": "fid_1", "fieldName": "name", "fieldType": 1, "isPrimary": False}
    assert f2["fieldType"] == 8
    assert f2["property"] == {"formatter": "0.00", "currencyCode": "CNY"}
    assert f3["fieldType"] == 5
    assert f3["property"] == {"formatter": "yyyy/MM/dd"}


@pytest.mark.parametrize(
    "token, expected",
    [("INT", "0"), ("FLOAT_2", "0.00"), ("DECIMAL", "0.00"), ("#,##0.00", "#,##0.00"), ("0%", "0%"), ("PERCENT", "0"), (None, "0")],
)
def test_feishu_number_formatter(token, expected):
    assert number_formatter(token) == expected


def test_sanitize_id():
    assert sanitize_id("fid_0") == "fid_0"
    assert sanitize_id("订单-1") == "1"
    assert sanitize_id("订单") == ""


def test_feishu_records_response():
    records = [
        Record("A-1", {"fid_0": 1.0, "fid_1": "x", "fid_2": Decimal("9.5"), "fid_3": dt.datetime(2024, 1, 2, 3, 4, 5)}, 0),
        Record("A1", {"fid_0": 2.0, "fid_1": None, "fid_2": 0, "fid_3": None}, 1),
        Record("订单", {"fid_0": 3.0, "fid_1": "z", "fid_2": 0, "fid_3": None}, 2),
    ]
    adapter = get_adapter("feishu")
    out = adapter.success(adapter.records_response(page(records, True, "offset:300")))
    data = out["data"]
    assert out["code"] == 0
    assert data["hasMore"] is True
    assert data["nextPageToken"] == "offset:300"
    # "A-1" sanitizes to "A1", which then collides with the next record
    assert [r["primaryID"] for r in data["records"]] == ["A1", "row_1", "row_2"]
    assert data["records"][0]["data"]["fid_3"] == 1704164645000
    assert data["records"][1]["data"]["fid_3"] is None
    assert data["records"][0]["data"]["fid_2"] == 9.5


def test_feishu_last_page_has_no_token():
    adapter = get_adapter("feishu")
    out = adapter.records_response(page([], False, None))
    assert "nextPageToken" not in out
    assert out == {"records": [], "hasMore": False}


def test_feishu_failure_envelope():
    out = get_adapter("feishu").failure(AuthorizationError("Not authorized to read table 42"))
    assert out["code"] == 1254403
    msg = json.loads(out["msg"])
    assert set(msg) == {"zh", "en"}
    assert "table 42" in msg["en"]


def test_verify_request():
    headers = {"X-Base-Request-Timestamp": "1000", "X-Base-Request-Nonce": "n"}
    verify_request(headers, 300, now=1200)
    with pytest.raises(AuthorizationError):
        verify_request(headers, 300, now=1301)
    with pytest.raises(AuthorizationError):
        verify_request({"X-Base-Request-Timestamp": "1000"}, 300, now=1000)
    with pytest.raises(AuthorizationError):
        verify_request({"X-Base-Request-Timestamp": "soon", "X-Base-Request-Nonce": "n"}, 300, now=1000)


# --- DingTalk ---

def test_dingtalk_parse_request_accepts_string_or_object_params():
    adapter = get_adapter("dingtalk")
    config = {"host": "h", "database": "d", "username": "u", "table": "t", "schema": "public", "driver": "postgres"}
    a = adapter.parse_request(SheetMetaRequest(requestId="r1", params=json.dumps(config), context={"unionId": "u1", "corpId": "c1"}))
    b = adapter.parse_request(RecordsRequest(params=config, maxResults=50, nextToken="offset:50"))
    assert a.reference.schema == "public"
    assert (a.principal, a.request_id, a.tenant, a.cursor) == ("u1", "r1", "c1", None)
    assert (b.cursor, b.page_size, b.principal) == ("offset:50", 50, None)


def test_dingtalk_bad_params_is_parameter_error():
    with pytest.raises(ParameterError):
        get_adapter("dingtalk").parse_request(SheetMetaRequest(params="{nope"))


def test_dingtalk_schema_response():
    out = get_adapter("dingtalk").schema_response(SCHEMA)
    assert out["sheetName"] == "orders"
    f0, f1, f2, f3 = out["fields"]
    assert f0 == {"id": "fid_0", "name": "ID", "type": "number", "isPrimary": True,
                  "property": {"formatter": "INT"}, "description": "order id"}
    assert f1 == {"id": "fid_1", "name": "name", "type": "text", "isPrimary": False}
    assert f2["type"] == "currency"
    assert f2["property"] == {"formatter": "FLOAT_2", "currencyCode": "CNY"}
    assert f3["type"] == "date"


def test_dingtalk_records_response():
    adapter = get_adapter("dingtalk")
    records = [Record("7", {"fid_0": 7.0, "fid_1": "x", "fid_2": 0, "fid_3": dt.date(2024, 5, 6)}, 0)]
    out = adapter.success(adapter.records_response(page(records, True, "offset:1", total=9)))
    assert out["data"] == {
        "records": [{"id": "7", "fields": {"fid_0": 7.0, "fid_1": "x", "fid_2": 0, "fid_3": "2024-05-06"}}],
        "hasMore": True,
        "total": 9,
        "nextToken": "offset:1",
    }


def test_dingtalk_failure_envelope():
    assert get_adapter("dingtalk").failure(SourceError("boom", stage="fetch")) == {"code": 10005, "msg": "boom"}


def test_dingtalk_parse_request_accepts_nulls():
    body = RecordsRequest.model_validate({
        "requestId": None,
        "params": {"tableId": 3},
        "context": None,
        "maxResults": None,
        "nextToken": None,
    })
    req = get_adapter("dingtalk").parse_request(body)
    assert (req.cursor, req.page_size, req.principal, req.request_id, req.tenant) == (None, None, None, "", "")
    ctx = SheetMetaRequest.model_validate({"params": "{}", "context": {"unionId": None, "corpId": None}})
    assert get_adapter("dingtalk").parse_request(ctx).principal is None


# --- Feishu dates ---

@pytest.mark.parametrize(
    "value, expected",
    [
        (dt.datetime(2024, 1, 2, 3, 4, 5), 1704164645000),
        (dt.datetime(2024, 1, 2, 11, 4, 5, tzinfo=dt.timezone(dt.timedelta(hours=8))), 1704164645000),
        (dt.date(2024, 1, 2), 1704153600000),
        ("2024-01-02 03:04:05", 1704164645000),
        ("2024-01-02", 1704153600000),
        ("not a date", None),
        (None, None),
    ],
)
def test_to_epoch_millis(value, expected):
    assert to_epoch_millis(value) == expected


def test_feishu_time_columns_are_text():
    fields = [
        FieldDescriptor("fid_0", "day", "day", "date", native_type="DATE"),
        FieldDescriptor("fid_1", "opens", "opens", "date", native_type="TIME"),
        FieldDescriptor("fid_2", "seen", "seen", "date", native_type="timestamp with time zone"),
    ]
    schema = TableSchema(table_name="shops", fields=fields)
    adapter = get_adapter("feishu")
    assert [f["fieldType"] for f in adapter.schema_response(schema)["fields"]] == [5, 1, 5]

    record = Record("r", {"fid_0": dt.date(2024, 1, 2), "fid_1": dt.time(9, 30), "fid_2": None}, 0)
    out = adapter.success(adapter.records_response(RecordPage(schema, [record], False, None, 1, 0, 300)))
    assert out["data"]["records"][0]["data"] == {"fid_0": 1704153600000, "fid_1": "09:30:00", "fid_2": None}


def test_feishu_parse_request_accepts_nulls():
    body = FeishuRequest(
        params=json.dumps({"datasourceConfig": "{}", "pageToken": None, "maxPageSize": None, "transactionID": None}),
        context=json.dumps({"tenantKey": None, "bitable": {"logID": None}, "scriptArgs": {"baseOpenID": None}}),
    )
    req = get_adapter("feishu").parse_request(body)
    assert (req.cursor, req.page_size, req.principal, req.request_id, req.tenant) == (None, None, None, "", "")
