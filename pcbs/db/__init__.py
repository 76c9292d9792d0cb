"""
Database package.
"""
from pcbs.db.models import Base, Customer, Order, OrderLineItem, Invoice
from pcbs.db.session import get_engine, get_session, init_db, create_tables, session_scope

__all__ = [
    'Base',
    'Customer',
    'Order',
    'OrderLineItem',
    'Invoice',
    'get_engine',
    'get_session',
    'init_db',
    'create_tables',
    'session_scope'
]
