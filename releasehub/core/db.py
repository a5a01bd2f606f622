from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .config import get_settings


Base = declarative_base()


def _ensure_parent_directory(db_url: str) -> None:
    if db_url.startswith("sqlite:"):
        # sqlite:////abs/path.db
        file_path = db_url.split("sqlite:///")[-1]
        parent = Path(file_path).parent
        parent.mkdir(parents=True, exist_ok=True)


def _set_sqlite_pragmas(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL;")
    cursor.execute("PRAGMA synchronous=NORMAL;")
    cursor.close()


def get_engine(sqlite_path: str | None = None) -> Engine:
    path = sqlite_path or get_settings().sqlite_path
    db_url = f"sqlite:///{path}"
    _ensure_parent_directory(db_url)
    engine = create_engine(db_url, connect_args={"check_same_thread": False, "timeout": 30})
    # Enable WAL and reasonable sync on each new DB connection
    event.listen(engine, "connect", _set_sqlite_pragmas)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    # 导入模型以注册到 Base.metadata
    from releasehub.models import version  # noqa: F401

    Base.metadata.create_all(bind=engine)


