# File: opskit/database/engine.py

import contextlib
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import URL, Engine

from opskit.database.profile import DatabaseProfile, DbType

# Database used when a command is not scoped to one (connection test, listing)
ADMIN_DATABASE = {DbType.POSTGRES: "postgres", DbType.MYSQL: None}


def build_url(profile: DatabaseProfile, database: Optional[str] = None) -> URL:
    """SQLAlchemy URL for the profile, optionally scoped to one database."""
    return URL.create(
        profile.db_type.driver,
        username=profile.user or None,
        password=profile.password or None,
        host=profile.host,
        port=profile.port,
        database=database or ADMIN_DATABASE[profile.db_type],
    )


def get_engine(profile: DatabaseProfile, database: Optional[str] = None, timeout: int = 10) -> Engine:
    """Return an engine for one invocation; no pooling across commands."""
    connect_args = {"connect_timeout": timeout}
    return create_engine(build_url(profile, database), future=True, connect_args=connect_args)


@contextlib.contextmanager
def get_connection(profile: DatabaseProfile, database: Optional[str] = None):
    """
    Use as:
        with get_connection(profile, "app") as conn:
            conn.execute(text("SELECT 1"))
    """
    engine = get_engine(profile, database)
    try:
        with engine.connect() as conn:
            yield conn
    finally:
        engine.dispose()
