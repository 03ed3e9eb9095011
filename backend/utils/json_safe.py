import datetime as dt
import math
from decimal import Decimal
from uuid import UUID


def make_json_safe(obj):
    """
    Recursively convert values a JSON encoder cannot handle: UUIDs to strings,
    dates and times to ISO-8601, Decimals to floats, bytes to UTF-8 text.
    Non-finite floats become None.
    """
    if isinstance(obj, dict):
        return {k: make_json_safe(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [make_json_safe(x) for x in obj]
    elif isinstance(obj, UUID):
        return str(obj)
    elif isinstance(obj, (dt.datetime, dt.date, dt.time)):
        return obj.isoformat()
    elif isinstance(obj, dt.timedelta):
        return str(obj)
    elif isinstance(obj, Decimal):
        return make_json_safe(float(obj))
    elif isinstance(obj, float):
        return obj if math.isfinite(obj) else None
    elif isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", errors="replace")
    else:
        return obj
