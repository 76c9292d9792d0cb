"""
Financial analysis package.
"""
from pcbs.financial_analysis.invoice_summary import (
    InvoiceSummary,
    compute_invoice_summary,
    calculate_total_completed,
    calculate_order_items_total,
    validate_order_items_total
)

__all__ = [
    'InvoiceSummary',
    'compute_invoice_summary',
    'calculate_total_completed',
    'calculate_order_items_total',
    'validate_order_items_total'
]
