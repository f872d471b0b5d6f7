"""
Node Local Database Initialization

Manages <node_id>.db (SQLite) for node-specific state.
Each node plugin instance has its own database file.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool
import logging
from pathlib import Path
from typing import Optional

from node.models import Base

logger = logging.getLogger(__name__)


def get_node_db_path(node_id: str, storage_root: Path) -> Path:
    """Get database path for this node instance"""
    storage_root = Path(storage_root)
    storage_root.mkdir(parents=True, exist_ok=True)
    return storage_root / f"{node_id}.db"


def init_node_database(node_id: str, storage_root: Optional[Path] = None) -> tuple:
    """
    Initialize the node local database and return engine + session factory.

    Passing storage_root=None keeps the database in memory.

    Returns:
        (engine, SessionLocal) tuple
    """
    if storage_root is None:
        db_url = "sqlite://"
        logger.info(f"Initializing in-memory node database for {node_id}")
    else:
        db_path = get_node_db_path(node_id, storage_root)
        db_url = f"sqlite:///{db_path}"
        logger.info(f"Initializing node database at {db_path}")

    # Handlers run on a thread pool, share one connection
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )

    Base.metadata.create_all(bind=engine)

    session_factory = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    SessionLocal = scoped_session(session_factory)

    logger.info(f"Node database initialized with {len(Base.metadata.tables)} tables")

    return engine, SessionLocal
