from typing import Dict

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker, declarative_base

from . import config

Base = declarative_base()

# Engines are built on first use, one per DATABASE_URL, so config.configure() can repoint them
_engines: Dict[str, Engine] = {}
SessionLocal = sessionmaker(autocommit=False, autoflush=False, future=True)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine() -> Engine:
    url = config.state.database_url
    engine = _engines.get(url)
    if engine is None:
        # For SQLite, enable check_same_thread=False for multithreading in FastAPI
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(url, connect_args=connect_args, future=True)
        if url.startswith("sqlite"):
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        _engines[url] = engine
    return engine


def open_session() -> Session:
    return SessionLocal(bind=get_engine())


def create_tables() -> None:
    Base.metadata.create_all(bind=get_engine())
