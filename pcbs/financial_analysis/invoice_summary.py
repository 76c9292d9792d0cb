"""
Invoice summary reconciliation.

Derives the billing totals of an order from its grand total, its items'
progress percentages and its invoices, following the cell formulas of the
legacy billing spreadsheet:

    Original Invoice          = order grand total
    Total Completed           = SUM(progress % / 100 * amount) over item rows
    Balance Remaining         = Original Invoice - Total Completed
    Less Payments Received    = -SUM(payments received)
    Total Due Upon Receipt    = Total Completed + Less Payments Received
    Percent Completed         = Total Completed / Original Invoice * 100

Invoices flagged ``exclude`` take part in none of the sums. Everything is
computed in full Decimal precision; rounding happens only in ``to_dict()``.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from pcbs.config import get_section
from pcbs.utils.common import ZERO, calculate_percentage, round_money, to_decimal

logger = logging.getLogger(__name__)


def _get(obj: Any, *names: str) -> Any:
    """Read the first present field of an ORM row, dataclass or dict."""
    for name in names:
        if isinstance(obj, dict):
            if name in obj:
                return obj[name]
        elif hasattr(obj, name):
            return getattr(obj, name)
    return None


def _item_type(item: Any) -> Optional[str]:
    value = _get(item, 'type', 'item_type', 'itemType')
    if isinstance(value, Enum):
        return value.value
    return value


def _is_excluded(invoice: Any) -> bool:
    # Only an explicit True excludes; None counts as included
    return _get(invoice, 'exclude') is True


@dataclass(frozen=True)
class InvoiceSummary:
    """Derived billing totals of one order."""

    original_invoice: Decimal
    total_completed: Decimal
    balance_remaining: Decimal
    percent_completed: Decimal
    total_invoice_amounts: Decimal
    less_payments_received: Decimal
    total_due_upon_receipt: Decimal

    def to_dict(self) -> Dict[str, float]:
        """Spreadsheet field names, rounded to cents."""
        return {
            'originalInvoice': float(round_money(self.original_invoice)),
            'balanceRemaining': float(round_money(self.balance_remaining)),
            'totalCompleted': float(round_money(self.total_completed)),
            'percentCompleted': float(round_money(self.percent_completed)),
            'lessPaymentsReceived': float(round_money(self.less_payments_received)),
            'totalDueUponReceipt': float(round_money(self.total_due_upon_receipt)),
        }


def calculate_total_completed(items: Iterable[Any]) -> Decimal:
    """
    Sum the completed value of an order's item rows.

    A row without a progress percentage contributes nothing, whatever its
    amount; header rows never contribute.
    """
    total = ZERO
    for item in items:
        if _item_type(item) != 'item':
            continue
        amount = to_decimal(_get(item, 'amount'))
        progress = to_decimal(_get(item, 'progress_overall_pct', 'progressOverallPct'))
        if amount > 0 and progress > 0:
            total += progress / 100 * amount
    return total


def compute_invoice_summary(order: Any, items: Iterable[Any], invoices: Iterable[Any]) -> InvoiceSummary:
    """
    Compute the invoice summary of an order.

    Pure function: repeated calls on unchanged input give identical output.

    Args:
        order: Order row, dataclass or dict with ``order_grand_total``
        items: The order's item rows (headers are ignored)
        invoices: The order's invoices

    Returns:
        InvoiceSummary with full-precision values
    """
    original_invoice = to_decimal(_get(order, 'order_grand_total', 'orderGrandTotal'))
    total_completed = calculate_total_completed(items)
    balance_remaining = original_invoice - total_completed

    included = [invoice for invoice in invoices if not _is_excluded(invoice)]
    total_invoice_amounts = sum(
        (to_decimal(_get(invoice, 'invoice_amount', 'invoiceAmount')) for invoice in included), ZERO
    )
    total_payments = sum(
        (to_decimal(_get(invoice, 'payments_received', 'paymentsReceived')) for invoice in included), ZERO
    )
    less_payments_received = -total_payments
    total_due_upon_receipt = total_completed + less_payments_received

    percent_completed = calculate_percentage(total_completed, original_invoice)

    logger.debug(
        f"Invoice summary: original={original_invoice} completed={total_completed} "
        f"payments={total_payments} ({len(included)} invoices included)"
    )

    return InvoiceSummary(
        original_invoice=original_invoice,
        total_completed=total_completed,
        balance_remaining=balance_remaining,
        percent_completed=percent_completed,
        total_invoice_amounts=total_invoice_amounts,
        less_payments_received=less_payments_received,
        total_due_upon_receipt=total_due_upon_receipt,
    )


def calculate_order_items_total(items: Iterable[Any]) -> Decimal:
    """Sum of the positive amounts of the item rows."""
    total = ZERO
    for item in items:
        if _item_type(item) != 'item':
            continue
        amount = to_decimal(_get(item, 'amount'))
        if amount > 0:
            total += amount
    return total


def validate_order_items_total(items: List[Any], order_grand_total: Any,
                               tolerance: Optional[Any] = None) -> Dict[str, Any]:
    """
    Check that extracted item amounts add up to the order's grand total.

    Args:
        items: Extracted order items
        order_grand_total: Grand total printed on the contract
        tolerance: Allowed absolute difference, defaults to
            ``analysis.amount_matching_tolerance``

    Returns:
        Dictionary with ``isValid``, ``itemsTotal``, ``orderGrandTotal``,
        ``difference`` and a human readable ``message``
    """
    if tolerance is None:
        tolerance = get_section('analysis').get('amount_matching_tolerance', 0.01)
    tolerance = to_decimal(tolerance)

    items_total = calculate_order_items_total(items)
    grand_total = to_decimal(order_grand_total)

    if grand_total == 0:
        return {
            'isValid': False,
            'itemsTotal': float(round_money(items_total)),
            'orderGrandTotal': 0.0,
            'difference': float(round_money(items_total)),
            'message': 'Order Grand Total is missing or zero',
        }

    difference = abs(items_total - grand_total)
    is_valid = difference <= tolerance

    if is_valid:
        message = f"Items total matches Order Grand Total ({round_money(grand_total)})"
    else:
        message = (
            f"Items total ({round_money(items_total)}) does not match "
            f"Order Grand Total ({round_money(grand_total)}); difference {round_money(difference)}"
        )
        logger.warning(message)

    return {
        'isValid': is_valid,
        'itemsTotal': float(round_money(items_total)),
        'orderGrandTotal': float(round_money(grand_total)),
        'difference': float(round_money(difference)),
        'message': message,
    }
