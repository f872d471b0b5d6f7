"""
Controller database initialization.

Holds the durable volume records (volumes.db, SQLite by default).
"""

from pathlib import Path
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from controller.models import Base

logger = logging.getLogger(__name__)


def init_controller_database(database_url: str) -> tuple:
    """
    Create the controller engine and session factory, creating tables if needed.

    Returns:
        (engine, SessionLocal) tuple
    """
    url = make_url(database_url)
    engine_kwargs = {}
    if url.get_backend_name() == "sqlite":
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            # In-memory databases live in a single connection
            engine_kwargs["poolclass"] = StaticPool
        else:
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(database_url, **engine_kwargs)
    Base.metadata.create_all(bind=engine)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    logger.info(f"Controller database initialized at {url.render_as_string(hide_password=True)}")
    return engine, SessionLocal
