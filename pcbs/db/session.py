"""
Database session management for the Pool Contract Billing System.

This module provides functions for creating and managing database sessions,
including creating the database engine and session factory.
"""

import os
import logging
from typing import Optional, Dict, Any, Generator
from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.engine import Engine

from pcbs.config import get_config

logger = logging.getLogger(__name__)


def get_database_engine(config: Optional[Dict[str, Any]] = None) -> Engine:
    """Get SQLAlchemy engine based on configuration.

    Args:
        config: Database configuration section (defaults to global config if None)

    Returns:
        SQLAlchemy engine
    """
    if config is None:
        config = get_config().get('database', {})

    db_type = config.get('db_type', 'sqlite')

    if db_type != 'sqlite':
        raise ValueError(f"Unsupported database type: {db_type}")

    db_path = config.get('db_path', 'pcbs.db')
    if db_path != ':memory:':
        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)

    return create_engine(
        f"sqlite:///{db_path}",
        echo=config.get('echo', False),
        connect_args={'check_same_thread': False}
    )


# Global engine and session factory
_engine = None
_SessionFactory = None


def init_db(config: Optional[Dict[str, Any]] = None) -> None:
    """Initialize the database engine and session factory.

    Args:
        config: Database configuration section (defaults to global config if None)
    """
    global _engine, _SessionFactory
    _engine = get_database_engine(config)
    _SessionFactory = sessionmaker(bind=_engine)


def get_engine() -> Engine:
    """Get the database engine, initializing it on first use."""
    if _engine is None:
        init_db()
    return _engine


def get_session() -> Session:
    """Get a new database session."""
    if _SessionFactory is None:
        init_db()
    return _SessionFactory()


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create every table of the schema that does not exist yet.

    Args:
        engine: SQLAlchemy engine (defaults to the global engine if None)
    """
    from pcbs.db.models import Base

    if engine is None:
        engine = get_engine()

    logger.info("Creating database tables")
    Base.metadata.create_all(engine)
    logger.info("Database tables created successfully")


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations.

    Yields:
        SQLAlchemy session
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
