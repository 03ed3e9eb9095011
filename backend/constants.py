"""
Global constants for the bitable sync service: wire formats, defaults and settings keys.
"""
from typing import Final, Set, Tuple

# Query modes of a table reference
QUERY_MODE_TABLE: Final[str] = "table"
QUERY_MODE_SQL: Final[str] = "sql"
QUERY_MODES: Final[Set[str]] = {QUERY_MODE_TABLE, QUERY_MODE_SQL}

# Coarse type taxonomy shared by both platforms
TYPE_TEXT: Final[str] = "text"
TYPE_NUMBER: Final[str] = "number"
TYPE_DATE: Final[str] = "date"

NUMBER_TYPE_TOKENS: Final[Tuple[str, ...]] = (
    "int", "decimal", "float", "double", "numeric", "real", "money", "bit",
)
DATE_TYPE_TOKENS: Final[Tuple[str, ...]] = ("date", "time")

# Wire formats
FIELD_ID_PREFIX: Final[str] = "fid_"
CURSOR_PREFIX: Final[str] = "offset"
RECORD_ID_FALLBACK_PREFIX: Final[str] = "row_"
DEFAULT_PAGE_SIZE: Final[int] = 300
DEFAULT_QUERY_TABLE_NAME: Final[str] = "query_result"
DEFAULT_CURRENCY_CODE: Final[str] = "CNY"

# Source drivers -> SQLAlchemy driver names
SOURCE_DRIVERS: Final[dict] = {
    "mysql": "mysql+pymysql",
    "postgres": "postgresql+psycopg2",
    "sqlite": "sqlite",
}
SOURCE_DRIVER_ALIASES: Final[dict] = {
    "mariadb": "mysql",
    "postgresql": "postgres",
    "pg": "postgres",
}
DEFAULT_SOURCE_DRIVER: Final[str] = "mysql"
DEFAULT_PORTS: Final[dict] = {"mysql": 3306, "postgres": 5432}
SYSTEM_SCHEMAS: Final[Set[str]] = {
    "information_schema", "mysql", "performance_schema", "sys", "pg_catalog", "pg_toast",
}

SERVICE_NAME_DEFAULT: Final[str] = "bitable-sync"

SETTINGS_DEFAULT: Final[dict] = {
    "DATABASE_URL": "sqlite:///./bitable_sync.db",
    "ENCRYPTION_KEY": "",
    "LOG_LEVEL": "INFO",
    "SERVICE_NAME": SERVICE_NAME_DEFAULT,
    "ENGINE_IDLE_TIMEOUT_SECONDS": 600,
    "SOURCE_CONNECT_TIMEOUT_SECONDS": 10,
    "FEISHU_VERIFY_REQUEST": False,
    "FEISHU_REQUEST_MAX_SKEW_SECONDS": 300,
    "CORS_ALLOW_ORIGINS": "*",
}

# Settings keys (avoid string literals elsewhere)
DATABASE_URL: Final[str] = "DATABASE_URL"
ENCRYPTION_KEY: Final[str] = "ENCRYPTION_KEY"
LOG_LEVEL: Final[str] = "LOG_LEVEL"
SERVICE_NAME: Final[str] = "SERVICE_NAME"
ENGINE_IDLE_TIMEOUT_SECONDS: Final[str] = "ENGINE_IDLE_TIMEOUT_SECONDS"
SOURCE_CONNECT_TIMEOUT_SECONDS: Final[str] = "SOURCE_CONNECT_TIMEOUT_SECONDS"
FEISHU_VERIFY_REQUEST: Final[str] = "FEISHU_VERIFY_REQUEST"
FEISHU_REQUEST_MAX_SKEW_SECONDS: Final[str] = "FEISHU_REQUEST_MAX_SKEW_SECONDS"
CORS_ALLOW_ORIGINS: Final[str] = "CORS_ALLOW_ORIGINS"
