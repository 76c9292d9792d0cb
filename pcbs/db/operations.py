"""
Database operations for the Pool Contract Billing System.

This module provides functions for storing extracted contracts (customer,
order, positional item rows), recording invoices and reading the aggregates
the invoice summary is computed from.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Iterable, Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pcbs.db.models import Customer, Order, OrderLineItem, Invoice
from pcbs.document_processor.interfaces import Location, OrderItem
from pcbs.financial_analysis.invoice_summary import InvoiceSummary, compute_invoice_summary

logger = logging.getLogger(__name__)


def upsert_customer(session: Session, location: Location) -> Customer:
    """Create or update the customer a contract belongs to.

    Blank fields of ``location`` never overwrite stored values.

    Args:
        session: SQLAlchemy session
        location: Extracted location

    Returns:
        Customer object

    Raises:
        ValueError: If the location has no DBX customer id
    """
    if not location.is_location_parsed:
        raise ValueError("Cannot store a customer without a DBX Customer ID")

    customer = session.get(Customer, location.dbx_customer_id)
    if customer is None:
        customer = Customer(dbx_customer_id=location.dbx_customer_id)
        session.add(customer)
        logger.info(f"Creating customer {location.dbx_customer_id}")

    for field_name in ('client_name', 'email', 'phone', 'street_address', 'city', 'state', 'zip'):
        value = getattr(location, field_name)
        if value:
            setattr(customer, field_name, value)

    session.flush()
    return customer


def create_order(
    session: Session,
    customer_id: str,
    order_no: str,
    order_grand_total: Optional[Decimal] = None
) -> Order:
    """Create an order, or return the existing one with the same order number.

    Args:
        session: SQLAlchemy session
        customer_id: DBX customer id
        order_no: Order number printed on the contract
        order_grand_total: Grand total printed on the contract

    Returns:
        Order object
    """
    order = session.execute(select(Order).where(Order.order_no == order_no)).scalar_one_or_none()
    if order is None:
        order = Order(customer_id=customer_id, order_no=order_no)
        session.add(order)

    if order_grand_total is not None:
        order.order_grand_total = order_grand_total

    session.flush()
    return order


def _next_row_index(session: Session, order_id: int) -> int:
    last = session.execute(
        select(func.max(OrderLineItem.row_index)).where(OrderLineItem.order_id == order_id)
    ).scalar()
    return 0 if last is None else last + 1


def store_order_items(session: Session, order_id: int, items: Iterable[OrderItem]) -> List[OrderLineItem]:
    """Append item rows to an order, after any rows it already has.

    Args:
        session: SQLAlchemy session
        order_id: Order ID
        items: Extracted items in table order

    Returns:
        List of OrderLineItem objects
    """
    row_index = _next_row_index(session, order_id)
    result = []

    for item in items:
        line_item = OrderLineItem(
            order_id=order_id,
            row_index=row_index,
            item_type=item.type.value,
            product_service=item.product_service,
            qty=item.qty,
            rate=item.rate,
            amount=item.amount,
            main_category=item.main_category,
            sub_category=item.sub_category,
            progress_overall_pct=item.progress_overall_pct,
            previously_invoiced_pct=item.previously_invoiced_pct,
            is_optional=item.is_optional,
            optional_package_number=item.optional_package_number
        )
        session.add(line_item)
        result.append(line_item)
        row_index += 1

    session.flush()
    logger.debug(f"Stored {len(result)} rows for order {order_id}")
    return result


def get_order_items(session: Session, order_id: int) -> List[OrderLineItem]:
    """Get an order's item rows in table order."""
    return list(session.execute(
        select(OrderLineItem)
        .where(OrderLineItem.order_id == order_id)
        .order_by(OrderLineItem.row_index)
    ).scalars())


def replace_order_items(session: Session, order_id: int, items: Iterable[OrderItem]) -> List[OrderLineItem]:
    """Replace all of an order's item rows, as when a contract is saved again.

    Args:
        session: SQLAlchemy session
        order_id: Order ID
        items: Extracted items in table order

    Returns:
        List of the new OrderLineItem objects
    """
    existing = get_order_items(session, order_id)
    for line_item in existing:
        session.delete(line_item)
    session.flush()

    order = session.get(Order, order_id)
    if order is not None:
        session.expire(order, ['items'])

    if existing:
        logger.info(f"Replacing {len(existing)} rows of order {order_id}")
    return store_order_items(session, order_id, items)


def update_item_progress(session: Session, item_id: int, progress_overall_pct: Any) -> OrderLineItem:
    """Set the overall progress percentage of one item row."""
    item = session.get(OrderLineItem, item_id)
    if item is None:
        raise ValueError(f"Order item not found: {item_id}")
    item.progress_overall_pct = progress_overall_pct
    session.flush()
    return item


def add_invoice(
    session: Session,
    order_id: int,
    invoice_amount: Any,
    payments_received: Any = 0,
    invoice_number: Optional[str] = None,
    invoice_date: Optional[date] = None,
    exclude: bool = False
) -> Invoice:
    """Record an invoice against an order.

    Args:
        session: SQLAlchemy session
        order_id: Order ID
        invoice_amount: Invoiced amount
        payments_received: Payments received for this invoice
        invoice_number: Optional invoice number
        invoice_date: Optional invoice date
        exclude: Leave the invoice out of the invoice summary

    Returns:
        Invoice object
    """
    last = session.execute(
        select(func.max(Invoice.row_index)).where(Invoice.order_id == order_id)
    ).scalar()

    invoice = Invoice(
        order_id=order_id,
        invoice_number=invoice_number,
        invoice_date=invoice_date,
        invoice_amount=invoice_amount,
        payments_received=payments_received,
        exclude=exclude,
        row_index=0 if last is None else last + 1
    )
    session.add(invoice)
    session.flush()
    return invoice


def get_order(session: Session, order_id: int) -> Optional[Order]:
    """Get an order by ID."""
    return session.get(Order, order_id)


def get_invoice_summary(session: Session, order_id: int) -> InvoiceSummary:
    """Compute the invoice summary of a stored order.

    Raises:
        ValueError: If the order does not exist
    """
    order = get_order(session, order_id)
    if order is None:
        raise ValueError(f"Order not found: {order_id}")

    invoices = list(session.execute(
        select(Invoice).where(Invoice.order_id == order_id)
    ).scalars())
    return compute_invoice_summary(order, get_order_items(session, order_id), invoices)
