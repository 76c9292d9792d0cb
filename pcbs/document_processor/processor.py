"""
Contract processor: the request-level operations of the billing system.

Each method takes what an upload form or link field provides (a base64 .eml
upload, a URL) and returns a JSON-ready dictionary using the field names the
billing front end and spreadsheet export expect.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import httpx
from bs4 import BeautifulSoup
from sqlalchemy.orm import Session

from pcbs.db.models import Order
from pcbs.db.operations import create_order, replace_order_items, upsert_customer
from pcbs.document_processor.email_parser import decode_upload, parse_email_document
from pcbs.document_processor.exceptions import (
    ExtractionError, MalformedInputError, UnreachableError
)
from pcbs.document_processor.extractors.addendum import (
    extract_addendum_number, fetch_addendum_html, fetch_and_parse_addenda,
    merge_addendum_items, validate_addendum_url
)
from pcbs.document_processor.extractors.links import extract_contract_links
from pcbs.document_processor.extractors.table import extract_contract, extract_location
from pcbs.document_processor.interfaces import ContractTable, ParsedEmail
from pcbs.document_processor.sections import (
    detect_email_sections, detect_sections, sort_sections
)
from pcbs.financial_analysis.invoice_summary import validate_order_items_total
from pcbs.utils.result import Result

logger = logging.getLogger(__name__)

INVALID_URL_MESSAGE = 'Invalid URL format. Expected format: https://l1.prodbx.com/go/view/?...'


class ContractProcessor:
    """
    Orchestrates extraction, link checking and addendum import.
    """

    def __init__(self, session: Optional[Session] = None, client: Optional[httpx.Client] = None):
        """
        Initialize the contract processor.

        Args:
            session: SQLAlchemy session, required only for ``save_contract``
            client: Shared ``httpx.Client`` for page fetches
        """
        self.session = session
        self.client = client

    def load_email(self, upload: Union[str, bytes]) -> ParsedEmail:
        """Decode a base64 upload (or raw .eml bytes) into a ParsedEmail."""
        if isinstance(upload, bytes) and not upload.lstrip().startswith(b'data:'):
            try:
                raw = decode_upload(upload)
            except MalformedInputError:
                # Already raw .eml bytes
                raw = upload
        else:
            raw = decode_upload(upload)
        return parse_email_document(raw)

    @staticmethod
    def _body_text(email: ParsedEmail) -> str:
        if email.text and email.text.strip():
            return email.text
        if email.html:
            return BeautifulSoup(email.html, 'html.parser').get_text('\n')
        return ''

    def extract_dbx_customer_id(self, upload: Union[str, bytes]) -> Dict[str, Any]:
        """Return ``{dbxCustomerId}``; None when the email carries no customer id."""
        email = self.load_email(upload)
        text = self._body_text(email)
        if not text.strip():
            logger.warning("Email has no text content, cannot look for DBX Customer ID")
            return {'dbxCustomerId': None}
        return {'dbxCustomerId': extract_location(text).dbx_customer_id}

    def extract_contract_links(self, upload: Union[str, bytes]) -> Dict[str, Any]:
        """Return ``{success, links{originalContractUrl, addendumUrls}}``."""
        links = extract_contract_links(self.load_email(upload))
        return {'success': True, 'links': links.to_dict()}

    def detect_email_sections(self, upload: Union[str, bytes]) -> Dict[str, Any]:
        """Return ``{sections, hasTable}`` for a contract email."""
        email = self.load_email(upload)
        sections, has_table = detect_email_sections(email.html)
        return {
            'sections': [section.to_dict() for section in sort_sections(sections)],
            'hasTable': has_table,
        }

    def check_link(self, url: Optional[str]) -> Result:
        """
        Validate, fetch and inspect an addendum or contract link.

        Returns:
            Result with ``{sections, addendumNumber}`` data, or a failure whose
            error code is ``MALFORMED_URL`` or ``UNREACHABLE``
        """
        url = (url or '').strip()
        if not validate_addendum_url(url):
            return Result.fail(INVALID_URL_MESSAGE, error_code='MALFORMED_URL', url=url)

        try:
            html = fetch_addendum_html(url, client=self.client)
        except UnreachableError as e:
            logger.info(f"Link unreachable: {url}: {e}")
            return Result.fail(
                str(e), error_code='UNREACHABLE', url=url,
                addendum_number=self._addendum_number(url)
            )

        data: Dict[str, Any] = {
            'sections': [section.to_dict() for section in sort_sections(detect_sections(html))],
        }
        addendum_number = self._addendum_number(url, html)
        if addendum_number is not None:
            data['addendumNumber'] = addendum_number

        return Result.ok(data, url=url)

    @staticmethod
    def _addendum_number(url: str, html: Optional[str] = None) -> Optional[str]:
        try:
            return extract_addendum_number(url, html)
        except MalformedInputError:
            logger.debug(f"No addendum number for {url}")
            return None

    def validate_link(self, url: Optional[str]) -> Dict[str, Any]:
        """Return ``{valid, error?, errorCode?, sections?, addendumNumber?}``."""
        result = self.check_link(url)
        if not result.success:
            response = {'valid': False, 'error': result.error, 'errorCode': result.error_code}
            if result.metadata.get('addendum_number') is not None:
                response['addendumNumber'] = result.metadata['addendum_number']
            return response
        return {'valid': True, **result.data}

    def parse_contract(self, upload: Union[str, bytes]) -> Dict[str, Any]:
        """
        Extract the location and item table of a contract email.

        Returns:
            ``{location, items, validation}`` where ``validation`` compares the
            item amounts with the printed grand total

        Raises:
            ExtractionError: If the email body holds no recognizable contract
        """
        table = self.extract_table(upload)
        response = table.to_dict()
        response['validation'] = validate_order_items_total(table.items, table.location.order_grand_total)
        return response

    def extract_table(self, upload: Union[str, bytes]) -> ContractTable:
        email = self.load_email(upload)
        text = self._body_text(email)
        if not text.strip():
            raise ExtractionError("Email has no text or HTML content")
        return extract_contract(text, email.html or None)

    def import_addenda(self, urls: List[str], max_workers: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch and parse addenda, merging their items in URL order.

        Returns:
            ``{addenda, items, errors}``

        Raises:
            UnreachableError: If every URL failed
        """
        batch = fetch_and_parse_addenda(urls, max_workers=max_workers, client=self.client)
        addenda = [result.data for result in batch.successes]
        return {
            'addenda': [addendum.to_dict() for addendum in addenda],
            'items': [item.to_dict() for item in merge_addendum_items(addenda)],
            'errors': [
                {'url': failure.metadata.get('url'), 'error': failure.error, 'errorCode': failure.error_code}
                for failure in batch.failures
            ],
        }

    def save_contract(self, table: ContractTable) -> Order:
        """
        Persist an extracted contract: customer, order and item rows.

        Saving a contract again replaces the rows stored for its order.

        Raises:
            ValueError: If no session was given or the contract has no DBX
                customer id
        """
        if self.session is None:
            raise ValueError("ContractProcessor needs a database session to save contracts")

        location = table.location
        customer = upsert_customer(self.session, location)
        order_no = location.order_no or customer.dbx_customer_id
        order = create_order(self.session, customer.dbx_customer_id, order_no, location.order_grand_total)
        replace_order_items(self.session, order.id, table.items)

        logger.info(f"Saved order {order_no} with {len(table.items)} rows")
        return order
