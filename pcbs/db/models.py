"""
Database models for the Pool Contract Billing System.

This module defines the SQLAlchemy models that persist extracted customers,
orders, their positional item tables and the invoices billed against them.
"""

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, ForeignKey,
    Text, Numeric, Date, UniqueConstraint, Index
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, UTC

Base = declarative_base()


class Customer(Base):
    """Customer (job location) keyed by its DBX customer id."""

    __tablename__ = 'customers'

    dbx_customer_id = Column(String(64), primary_key=True)
    client_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(50))
    street_address = Column(String(255))
    city = Column(String(100))
    state = Column(String(20))
    zip = Column(String(20))
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))
    updated_at = Column(DateTime, default=lambda: datetime.now(UTC), onupdate=lambda: datetime.now(UTC))

    # Relationships
    orders = relationship("Order", back_populates="customer", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Customer(dbx_customer_id='{self.dbx_customer_id}', client_name='{self.client_name}')>"


class Order(Base):
    """Order created from one contract email."""

    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True)
    customer_id = Column(String(64), ForeignKey('customers.dbx_customer_id', ondelete='CASCADE'), nullable=False)
    order_no = Column(String(100), nullable=False, unique=True)
    order_grand_total = Column(Numeric(15, 2))
    created_at = Column(DateTime, default=lambda: datetime.now(UTC))

    # Relationships
    customer = relationship("Customer", back_populates="orders")
    items = relationship(
        "OrderLineItem", back_populates="order",
        cascade="all, delete-orphan", order_by="OrderLineItem.row_index"
    )
    invoices = relationship(
        "Invoice", back_populates="order",
        cascade="all, delete-orphan", order_by="Invoice.row_index"
    )

    __table_args__ = (
        Index('idx_orders_customer_id', 'customer_id'),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, order_no='{self.order_no}', order_grand_total={self.order_grand_total})>"


class OrderLineItem(Base):
    """One row of an order's item table; ``row_index`` is its table position."""

    __tablename__ = 'order_items'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    row_index = Column(Integer, nullable=False)
    item_type = Column(String(20), nullable=False)
    product_service = Column(Text, nullable=False)
    qty = Column(Numeric(15, 4))
    rate = Column(Numeric(15, 4))
    amount = Column(Numeric(15, 2))
    main_category = Column(Text)
    sub_category = Column(Text)
    progress_overall_pct = Column(Numeric(10, 4))
    previously_invoiced_pct = Column(Numeric(10, 4))
    is_optional = Column(Boolean, default=False)
    optional_package_number = Column(Integer)

    # Relationships
    order = relationship("Order", back_populates="items")

    __table_args__ = (
        UniqueConstraint('order_id', 'row_index', name='uq_order_items_position'),
    )

    def __repr__(self):
        return f"<OrderLineItem(order_id={self.order_id}, row_index={self.row_index}, item_type='{self.item_type}')>"


class Invoice(Base):
    """Invoice billed against an order."""

    __tablename__ = 'invoices'

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    invoice_number = Column(String(100))
    invoice_date = Column(Date)
    invoice_amount = Column(Numeric(15, 2))
    payments_received = Column(Numeric(15, 2), default=0)
    exclude = Column(Boolean, default=False)
    row_index = Column(Integer)

    # Relationships
    order = relationship("Order", back_populates="invoices")

    __table_args__ = (
        Index('idx_invoices_order_id', 'order_id'),
    )

    def __repr__(self):
        return f"<Invoice(id={self.id}, order_id={self.order_id}, invoice_amount={self.invoice_amount})>"
