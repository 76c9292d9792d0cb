"""
Common utility functions for the Pool Contract Billing System.

This module provides shared functionality used across the extractors and the
invoice reconciler: numeric coercion of spreadsheet-style cells, text cleanup
and JSON serialization helpers.
"""

from typing import Any, Optional, Union
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from datetime import datetime, date
import html
import json
import logging
import re

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]

ZERO = Decimal('0')
CENT = Decimal('0.01')

_CURRENCY_CHARS = ['$', '€', '£', '¥', ',', ' ', '\u00a0', '*']
_LEADING_NUMBER = re.compile(r'^-?\d+(?:\.\d+)?')


def clean_text(text: Optional[str]) -> str:
    """
    Clean HTML entities and formatting marks from a cell or line.

    Args:
        text: Raw text, possibly containing entities or markdown emphasis

    Returns:
        Text with entities decoded, asterisks removed and whitespace collapsed
    """
    if not text:
        return ''

    text = html.unescape(text)
    text = text.replace('*', '')
    return re.sub(r'\s+', ' ', text).strip()


def normalize_amount(amount_str: Any) -> Optional[Decimal]:
    """
    Convert an amount string to a Decimal, handling various formats.

    Args:
        amount_str: String representation of an amount

    Returns:
        Normalized Decimal amount or None if conversion fails
    """
    if amount_str is None or amount_str == '':
        return None

    # If already a number, return it
    if isinstance(amount_str, Decimal):
        return amount_str
    if isinstance(amount_str, bool):
        return None
    if isinstance(amount_str, int):
        return Decimal(amount_str)
    if isinstance(amount_str, float):
        return Decimal(str(amount_str))

    amount_str = str(amount_str).strip()

    # Handle parentheses for negative numbers (accounting notation)
    if amount_str.startswith('(') and amount_str.endswith(')'):
        amount_str = '-' + amount_str[1:-1]

    for char in _CURRENCY_CHARS:
        amount_str = amount_str.replace(char, '')

    # "$-2,000.00" and "-$2,000.00" both end up here as "-2000.00"
    match = _LEADING_NUMBER.match(amount_str)
    if not match:
        return None

    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        logger.debug(f"Failed to normalize amount string: {amount_str}")
        return None


def to_decimal(value: Any) -> Decimal:
    """
    Coerce a value to Decimal, treating None and unparsable input as zero.

    Spreadsheet-origin documents routinely leave numeric cells blank, so a
    blank cell contributes 0 instead of failing the row.
    """
    amount = normalize_amount(value)
    return amount if amount is not None else ZERO


def extract_quantity(qty_str: Any) -> Decimal:
    """
    Extract the numeric quantity from a quantity cell.

    Args:
        qty_str: Quantity string like "162 SF", "1 EA", "50 LF"

    Returns:
        Leading number of the cell, or 1 when the cell has no number
    """
    if isinstance(qty_str, (int, float, Decimal)) and not isinstance(qty_str, bool):
        return to_decimal(qty_str)
    if not qty_str:
        return Decimal('1')

    cleaned = str(qty_str).replace('\u00a0', ' ').replace(',', '').strip()
    match = re.match(r'^(\d+(?:\.\d+)?)', cleaned)
    if match:
        return Decimal(match.group(1))

    return Decimal('1')


def is_numeric_cell(cell: Optional[str]) -> bool:
    """Return True when a cell holds a money or quantity value."""
    if not cell:
        return False
    return normalize_amount(cell) is not None


def round_money(value: Optional[Number], places: Decimal = CENT) -> Optional[Decimal]:
    """
    Round a monetary value half-up to cents.

    Only used at the presentation boundary; internal sums keep full precision.
    """
    if value is None:
        return None
    return to_decimal(value).quantize(places, rounding=ROUND_HALF_UP)


def calculate_percentage(part: Number, whole: Number) -> Decimal:
    """
    Calculate a percentage safely.

    Args:
        part: Numerator
        whole: Denominator

    Returns:
        Percentage (0-100), or 0 when the denominator is not positive
    """
    whole = to_decimal(whole)
    if whole <= 0:
        return ZERO
    return to_decimal(part) / whole * 100


def safe_json_serialize(obj: Any) -> Any:
    """
    Convert an object to a JSON-serializable format.

    Args:
        obj: Object to serialize

    Returns:
        JSON-serializable representation of the object
    """
    if isinstance(obj, Decimal):
        return float(obj)
    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()
    elif isinstance(obj, Enum):
        return obj.value
    elif hasattr(obj, 'to_dict'):
        return obj.to_dict()
    return str(obj)


def safe_json_dumps(data: Any, **kwargs) -> str:
    """
    Convert data to a JSON string, handling non-serializable types.

    Args:
        data: Data to convert to JSON
        **kwargs: Passed through to json.dumps

    Returns:
        JSON string
    """
    return json.dumps(data, default=safe_json_serialize, **kwargs)
