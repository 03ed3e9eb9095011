"""
Config-store database initialization and session management (SQLAlchemy 2.0+).
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from constants import DATABASE_URL as DATABASE_URL_KEY
from services.settings import load_settings

DATABASE_URL = load_settings()[DATABASE_URL_KEY]

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    pool_pre_ping=True,
)
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)

def get_db():
    """Yield a DB session and close it after use (FastAPI dependency style)"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
