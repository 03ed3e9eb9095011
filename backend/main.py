import logging
import time
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters import adapter_for_path
from connectors import EngineRegistry
from constants import (
    CORS_ALLOW_ORIGINS,
    ENCRYPTION_KEY,
    ENGINE_IDLE_TIMEOUT_SECONDS,
    LOG_LEVEL,
    SERVICE_NAME,
    SOURCE_CONNECT_TIMEOUT_SECONDS,
)
from db import SessionLocal
from engine.errors import BitableSyncError, ParameterError, SourceError
from engine.service import BitableService
from routers.dingtalk import router as dingtalk_router
from routers.explorer import router as explorer_router
from routers.feishu import router as feishu_router
from services.credential_store import SqlCredentialStore
from services.crypto import CryptoService
from services.settings import get_setting, load_settings

settings = load_settings()

# Configure root logging (stdout handler) with level from env
log_level = str(get_setting(settings, LOG_LEVEL, "INFO")).upper()
level = getattr(logging, log_level, logging.INFO)
if not isinstance(level, int):
    level = logging.INFO
logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger("bitable_sync")


def build_service(settings: dict) -> BitableService:
    store = SqlCredentialStore(SessionLocal, CryptoService(get_setting(settings, ENCRYPTION_KEY, "")))
    engines = EngineRegistry(
        idle_timeout=get_setting(settings, ENGINE_IDLE_TIMEOUT_SECONDS, 600),
        connect_timeout=get_setting(settings, SOURCE_CONNECT_TIMEOUT_SECONDS, 10),
    )
    return BitableService(store=store, engines=engines)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    app.state.bitable_service.engines.dispose_all()


app = FastAPI(lifespan=lifespan)
app.state.settings = settings
app.state.bitable_service = build_service(settings)

origins = [o.strip() for o in str(get_setting(settings, CORS_ALLOW_ORIGINS, "*")).split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(feishu_router)
app.include_router(dingtalk_router)
app.include_router(explorer_router)


# --- platform error envelopes: every platform endpoint answers HTTP 200 ---

@app.exception_handler(BitableSyncError)
async def bitable_error_handler(request: Request, exc: BitableSyncError):
    adapter = adapter_for_path(request.url.path)
    if adapter is None:
        return JSONResponse(status_code=500, content={"detail": exc.message})
    return JSONResponse(status_code=200, content=adapter.failure(exc))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    adapter = adapter_for_path(request.url.path)
    if adapter is None:
        return JSONResponse(status_code=422, content={"detail": exc.errors()})
    errors = exc.errors()
    detail = errors[0].get("msg", "") if errors else "invalid body"
    loc = ".".join(str(p) for p in errors[0].get("loc", ())) if errors else ""
    error = ParameterError(f"{loc}: {detail}" if loc else detail, stage="parse")
    logger.warning("Rejected request %s: %s", request.url.path, error.message)
    return JSONResponse(status_code=200, content=adapter.failure(error))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    adapter = adapter_for_path(request.url.path)
    if adapter is None:
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
    error = SourceError(f"Internal error: {type(exc).__name__}", stage="internal", cause=exc)
    return JSONResponse(status_code=200, content=adapter.failure(error))


@app.middleware("http")
async def request_log_middleware(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    if adapter_for_path(request.url.path) is not None:
        logger.info(
            "%s %s status=%s duration_ms=%.1f ip=%s ua=%s",
            request.method,
            request.url.path,
            response.status_code,
            (time.perf_counter() - started) * 1000,
            request.client.host if request.client else "",
            request.headers.get("user-agent", ""),
        )
    return response


@app.get("/health")
def health():
    return {"status": "ok", "service": get_setting(settings, SERVICE_NAME)}
