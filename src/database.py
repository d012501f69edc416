import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from src.config import settings

logger = logging.getLogger(__name__)

def _engine_kwargs(database_url: str) -> dict:
    """SQLite needs cross-thread access since sync handlers run in a threadpool"""
    if not database_url.startswith("sqlite"):
        return {"pool_pre_ping": True}

    kwargs = {"connect_args": {"check_same_thread": False}}
    if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
        kwargs["poolclass"] = StaticPool
    return kwargs

engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.DATABASE_ECHO,
    **_engine_kwargs(settings.DATABASE_URL)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def init_db():
    """Create all tables that do not exist yet"""
    import src.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")

def get_db():
    """Request-scoped database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
