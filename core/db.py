# core/db.py
from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Optional
from sqlalchemy import create_engine, event, text as sa_text
from sqlalchemy.engine import Engine

from core.schema_registry import auto_discover, run_all

def get_engine(db_url: str) -> Engine:
    if db_url.startswith("sqlite:///"):
        db_file = db_url.replace("sqlite:///", "")
        if db_file and db_file != ":memory:":
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(db_url, future=True)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _sqlite_pragmas)
    return engine

def _sqlite_pragmas(dbapi_conn, _record):
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA foreign_keys=ON")
    cur.close()

def init_db(engine: Engine):
    # 1) auto-discover schema modules (schemas/*.py)
    auto_discover("schemas")

    # 2) run all registered installer functions
    run_all(engine)

def table_exists(conn, table_name: str) -> bool:
    """Check if a table OR view exists in the database."""
    row = conn.execute(sa_text(
        "SELECT name FROM sqlite_master WHERE (type='table' OR type='view') AND name=:t"
    ), {"t": table_name}).fetchone()
    return bool(row)

def parse_timestamp(value) -> Optional[datetime]:
    """SQLite hands TIMESTAMP columns back as text; turn them into datetimes."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        return None
