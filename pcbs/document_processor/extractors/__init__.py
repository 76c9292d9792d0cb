"""
Document extractors package.
"""
from pcbs.document_processor.extractors.table import (
    extract_location,
    extract_order_items,
    extract_order_items_html,
    extract_contract
)
from pcbs.document_processor.extractors.addendum import (
    validate_addendum_url,
    fetch_addendum_html,
    extract_addendum_number,
    parse_addendum,
    parse_original_contract,
    fetch_and_parse_addenda,
    merge_addendum_items
)
from pcbs.document_processor.extractors.links import extract_contract_links

__all__ = [
    'extract_location',
    'extract_order_items',
    'extract_order_items_html',
    'extract_contract',
    'validate_addendum_url',
    'fetch_addendum_html',
    'extract_addendum_number',
    'parse_addendum',
    'parse_original_contract',
    'fetch_and_parse_addenda',
    'merge_addendum_items',
    'extract_contract_links'
]
