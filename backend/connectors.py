"""
Source database connections.
Builds SQLAlchemy URLs from resolved connection descriptors and keeps one pooled
engine per distinct URL, disposing engines that sit idle past a timeout.
"""
import logging
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from constants import SOURCE_DRIVERS
from engine.errors import ConfigurationError, SourceError, redact
from engine.models import ConnectionDescriptor

logger = logging.getLogger(__name__)


def build_url(descriptor: ConnectionDescriptor) -> URL:
    drivername = SOURCE_DRIVERS.get(descriptor.driver)
    if drivername is None:
        raise ConfigurationError(f"Unsupported driver: {descriptor.driver}", stage="connect")
    if descriptor.driver == "sqlite":
        return URL.create(drivername, database=descriptor.database)
    query = {"charset": "utf8mb4"} if descriptor.driver == "mysql" else {}
    return URL.create(
        drivername,
        username=descriptor.username or None,
        password=descriptor.password or None,
        host=descriptor.host or None,
        port=descriptor.effective_port,
        database=descriptor.database or None,
        query=query,
    )


def _connect_args(descriptor: ConnectionDescriptor, connect_timeout: int) -> Dict[str, Any]:
    if descriptor.driver == "sqlite":
        # pooled engines are shared between worker threads
        return {"check_same_thread": False}
    return {"connect_timeout": int(connect_timeout)}


class EngineRegistry:
    """Keyed engine pool: one engine per connection URL, evicted after idling."""

    def __init__(self, idle_timeout: float = 600, connect_timeout: int = 10):
        self.idle_timeout = float(idle_timeout)
        self.connect_timeout = int(connect_timeout)
        self._engines: Dict[str, Tuple[Engine, float]] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._engines)

    def get_engine(self, descriptor: ConnectionDescriptor) -> Engine:
        url = build_url(descriptor)
        key = url.render_as_string(hide_password=False)
        now = time.monotonic()
        with self._lock:
            self._evict_idle_locked(now)
            entry = self._engines.get(key)
            if entry is None:
                engine = create_engine(
                    url,
                    pool_pre_ping=True,
                    connect_args=_connect_args(descriptor, self.connect_timeout),
                )
                logger.info("Created source engine %s", descriptor.summary())
            else:
                engine = entry[0]
            self._engines[key] = (engine, now)
        return engine

    @contextmanager
    def connect(self, descriptor: ConnectionDescriptor) -> Iterator[Connection]:
        engine = self.get_engine(descriptor)
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            raise SourceError(
                redact(f"Could not connect to source database: {e}", descriptor.password),
                stage="connect",
                cause=e,
            ) from e
        try:
            yield conn
        finally:
            conn.close()

    def evict_idle(self, now: Optional[float] = None) -> int:
        with self._lock:
            return self._evict_idle_locked(time.monotonic() if now is None else now)

    def _evict_idle_locked(self, now: float) -> int:
        stale = [k for k, (_, last_used) in self._engines.items() if now - last_used > self.idle_timeout]
        for k in stale:
            engine, _ = self._engines.pop(k)
            engine.dispose()
        if stale:
            logger.info("Disposed %d idle source engine(s)", len(stale))
        return len(stale)

    def dispose_all(self) -> None:
        with self._lock:
            for engine, _ in self._engines.values():
                engine.dispose()
            self._engines.clear()
