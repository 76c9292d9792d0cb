"""
Pytest fixtures for database tests.
"""

import os
import tempfile
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from pcbs.db.models import Base


@pytest.fixture(scope="session")
def test_db_path():
    """Create a temporary database file."""
    handle, path = tempfile.mkstemp(suffix='.db')
    yield path
    os.close(handle)
    os.unlink(path)


@pytest.fixture(scope="session")
def test_engine(test_db_path):
    """Create a test database engine."""
    engine = create_engine(f"sqlite:///{test_db_path}")
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_session(test_engine):
    """Create a test database session."""
    Session = sessionmaker(bind=test_engine)
    session = Session()

    yield session

    # Operations only flush, so rolling back leaves the database empty
    session.rollback()
    session.close()


@pytest.fixture(scope="function")
def sample_order(test_session):
    """Create a customer with one empty order."""
    from pcbs.db.operations import create_order, upsert_customer
    from pcbs.document_processor.interfaces import Location

    customer = upsert_customer(test_session, Location(dbx_customer_id='90001', client_name='Sample Customer'))
    return create_order(test_session, customer.dbx_customer_id, 'SAMPLE-1', None)
