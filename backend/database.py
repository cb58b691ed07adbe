# backend/database.py
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
import logging

from config import Config

logger = logging.getLogger(__name__)

Base = declarative_base()


def build_engine(database_url: str = Config.DATABASE_URL, **kwargs):
    """Create an engine; SQLite connections get foreign keys and a busy timeout"""
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        kwargs["connect_args"] = connect_args

    engine = create_engine(database_url, echo=False, **kwargs)

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Cascading deletes of abilities/history rely on foreign keys"""
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.execute("PRAGMA busy_timeout=5000")
            cursor.close()

    logger.info(f"Database engine created for {engine.url.render_as_string(hide_password=True)}")
    return engine


def build_session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)


def init_db(bind=None):
    """Create all tables"""
    import models  # noqa: F401  registers the mappers on Base
    Base.metadata.create_all(bind=bind or engine)


def get_db():
    """Get database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
