"""
Tests for addendum fetching and parsing.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from pcbs.config import set_config
from pcbs.document_processor.exceptions import (
    ExtractionError, MalformedInputError, UnreachableError
)
from pcbs.document_processor.extractors.addendum import (
    DEFAULT_USER_AGENT, extract_addendum_number, fetch_addendum_html,
    fetch_and_parse_addenda, merge_addendum_items, parse_addendum,
    parse_original_contract, validate_addendum_url
)
from pcbs.document_processor.interfaces import ItemType


ADDENDUM_URL = 'https://l1.prodbx.com/go/view/?35587.426.20251112100816'
SECOND_URL = 'https://l1.prodbx.com/go/view/?35901.426.20251201090000'

SECOND_HTML = """\
<html><body>
<p>Addendum # : 4</p>
<table class="pos">
<tr><td>Description</td><td>Qty</td><td>Extended</td></tr>
<tr><td>Upgrade heater</td><td>1</td><td>$900.00</td></tr>
</table>
</body></html>
"""

ORIGINAL_HTML = """\
<html><body>
<table class="pos">
<tr><td><strong>0020 Calimingo - Pools and Spas</strong></td><td>1</td><td>$30,000.00</td></tr>
<tr><td></td><td style="border-top: solid 1px #BBB; letter-spacing: 2px"><strong>SHELL</strong></td></tr>
<tr><td>Gunite</td><td>1</td><td>$30,000.00</td></tr>
<tr><td>-OPTIONAL PACKAGE 1-</td></tr>
<tr><td><strong>0500 Calimingo - Water Features</strong></td><td>1</td><td>$2,000.00</td></tr>
<tr><td>Spillway</td><td>1</td><td>$2,000.00</td></tr>
<tr><td>Subtotal</td><td></td><td>$32,000.00</td></tr>
</table>
</body></html>
"""


class TestValidateAddendumUrl:
    """Tests for the URL format check."""

    @pytest.mark.parametrize('url', [
        ADDENDUM_URL,
        'http://login.prodbx.com/go/view/?1.2.3',
    ])
    def test_valid(self, url):
        assert validate_addendum_url(url)

    @pytest.mark.parametrize('url', [
        None,
        '',
        'not a url',
        'https://example.com/go/view/?1.2',
        'https://l1.prodbx.com/go/view/',
        'ftp://l1.prodbx.com/go/view/?1.2',
    ])
    def test_invalid(self, url):
        assert not validate_addendum_url(url)

    def test_allowed_hosts_from_config(self):
        set_config({'fetch': {'allowed_hosts': ['staging.prodbx.com']}})

        assert validate_addendum_url('https://staging.prodbx.com/go/view/?1.2')
        assert not validate_addendum_url(ADDENDUM_URL)


class TestFetchAddendumHtml:
    """Tests for fetching hosted pages over HTTP."""

    def test_success_sends_browser_headers(self, mock_client, addendum_html):
        requests = []
        client = mock_client({'?35587.': addendum_html}, requests)

        html = fetch_addendum_html(ADDENDUM_URL, client=client)

        assert 'Addendum # : 3' in html
        assert requests[0].headers['User-Agent'] == DEFAULT_USER_AGENT
        assert 'text/html' in requests[0].headers['Accept']

    def test_user_agent_from_config(self, mock_client, addendum_html):
        set_config({'fetch': {'user_agent': 'pcbs-test/1.0'}})
        requests = []
        client = mock_client({'?35587.': addendum_html}, requests)

        fetch_addendum_html(ADDENDUM_URL, client=client)

        assert requests[0].headers['User-Agent'] == 'pcbs-test/1.0'

    def test_malformed_url_is_not_fetched(self):
        client = MagicMock()

        with pytest.raises(MalformedInputError, match='Invalid addendum URL format'):
            fetch_addendum_html('https://example.com/page', client=client)

        client.get.assert_not_called()

    def test_http_error_status(self, mock_client):
        client = mock_client({})

        with pytest.raises(UnreachableError, match='404 Not Found') as exc_info:
            fetch_addendum_html(ADDENDUM_URL, client=client)

        assert exc_info.value.status_code == 404
        assert exc_info.value.url == ADDENDUM_URL

    def test_timeout(self, mock_client):
        client = mock_client({'?35587.': httpx.ReadTimeout('timed out')})

        with pytest.raises(UnreachableError, match='Timeout while fetching addendum URL after 5'):
            fetch_addendum_html(ADDENDUM_URL, client=client, timeout=5)

    def test_connection_error(self, mock_client):
        client = mock_client({'?35587.': httpx.ConnectError('connection refused')})

        with pytest.raises(UnreachableError, match='Failed to fetch addendum HTML: connection refused') as exc_info:
            fetch_addendum_html(ADDENDUM_URL, client=client)

        assert isinstance(exc_info.value.original_error, httpx.ConnectError)

    def test_empty_body(self, mock_client):
        client = mock_client({'?35587.': '   '})

        with pytest.raises(UnreachableError, match='Empty HTML content'):
            fetch_addendum_html(ADDENDUM_URL, client=client)


class TestAddendumNumber:
    """Tests for addendum number resolution."""

    def test_page_number_wins(self, addendum_html):
        assert extract_addendum_number(ADDENDUM_URL, addendum_html) == '3'

    def test_url_number_fallback(self):
        assert extract_addendum_number(ADDENDUM_URL) == '35587'
        assert extract_addendum_number(ADDENDUM_URL, '<p>No number here</p>') == '35587'

    def test_no_number(self):
        with pytest.raises(MalformedInputError):
            extract_addendum_number('https://l1.prodbx.com/go/view/?abc')


class TestParseAddendum:
    """Tests for parsing a hosted addendum page."""

    def test_items(self, addendum_html):
        addendum = parse_addendum(addendum_html, ADDENDUM_URL)

        assert addendum.addendum_number == '3'
        assert addendum.url_id == '35587'
        assert [(item.type, item.product_service) for item in addendum.items] == [
            (ItemType.SUBCATEGORY, 'LIGHTING'),
            (ItemType.ITEM, 'Add pool light'),
            (ItemType.ITEM, 'Remove spa light'),
        ]

    def test_amounts_and_context(self, addendum_html):
        items = parse_addendum(addendum_html, ADDENDUM_URL).items

        light = items[1]
        assert light.qty == Decimal('2')
        assert light.amount == Decimal('1400.00')
        assert light.rate is None
        assert light.main_category == '0400 Calimingo - Electrical:'
        assert light.sub_category == 'LIGHTING'
        # Credits keep their sign
        assert items[2].amount == Decimal('-250.00')

    def test_no_items_table(self):
        with pytest.raises(ExtractionError):
            parse_addendum('<p>Addendum # : 2</p>', ADDENDUM_URL)

    def test_empty_page(self):
        with pytest.raises(ExtractionError):
            parse_addendum('', ADDENDUM_URL)

    def test_to_dict(self, addendum_html):
        data = parse_addendum(addendum_html, ADDENDUM_URL).to_dict()

        assert data['addendumNumber'] == '3'
        assert data['urlId'] == '35587'
        assert data['url'] == ADDENDUM_URL
        assert data['items'][2]['amount'] == -250.0


class TestParseOriginalContract:
    """Tests for parsing the hosted original contract."""

    def test_hierarchy_and_optional_packages(self):
        items = parse_original_contract(ORIGINAL_HTML)

        assert [(item.type.value, item.product_service, item.is_optional) for item in items] == [
            ('maincategory', '0020 Calimingo - Pools and Spas:', False),
            ('subcategory', 'SHELL', False),
            ('item', 'Gunite', False),
            ('maincategory', '0500 Calimingo - Water Features:', True),
            ('item', 'Spillway', True),
        ]
        assert items[4].optional_package_number == 1
        assert items[4].to_dict()['isOptional'] is True
        assert 'isOptional' not in items[2].to_dict()

    def test_empty_page(self):
        with pytest.raises(ExtractionError):
            parse_original_contract('  ')


class TestFetchAndParseAddenda:
    """Tests for the parallel addendum import."""

    def test_results_in_input_order(self, mock_client, addendum_html):
        client = mock_client({'?35587.': addendum_html, '?35901.': SECOND_HTML})

        batch = fetch_and_parse_addenda([SECOND_URL, ADDENDUM_URL], client=client)

        assert batch.success
        assert batch.total == 2
        assert batch.succeeded == 2
        assert [r.data.addendum_number for r in batch.data] == ['4', '3']

    def test_merge_keeps_each_addendum_contiguous(self, mock_client, addendum_html):
        client = mock_client({'?35587.': addendum_html, '?35901.': SECOND_HTML})

        batch = fetch_and_parse_addenda([ADDENDUM_URL, SECOND_URL], max_workers=2, client=client)
        merged = merge_addendum_items(r.data for r in batch.successes)

        assert [item.product_service for item in merged] == [
            'LIGHTING', 'Add pool light', 'Remove spa light', 'Upgrade heater'
        ]

    def test_partial_failure(self, mock_client, addendum_html):
        client = mock_client({'?35587.': addendum_html})

        batch = fetch_and_parse_addenda([ADDENDUM_URL, SECOND_URL, 'https://example.com/x'], client=client)

        assert batch.succeeded == 1
        assert batch.failed == 2
        codes = {r.metadata['url']: r.error_code for r in batch.failures}
        assert codes == {SECOND_URL: 'UNREACHABLE', 'https://example.com/x': 'MALFORMED_URL'}

    def test_extraction_failure_code(self, mock_client, addendum_html):
        client = mock_client({'?35587.': addendum_html, '?35901.': '<p>Addendum # : 4</p>'})

        batch = fetch_and_parse_addenda([ADDENDUM_URL, SECOND_URL], client=client)

        assert batch.failures[0].error_code == 'EXTRACTION_FAILED'

    def test_all_failed(self, mock_client):
        client = mock_client({})

        with pytest.raises(UnreachableError, match='All addendum URLs failed to process'):
            fetch_and_parse_addenda([ADDENDUM_URL, SECOND_URL], client=client)

    def test_empty_input(self):
        batch = fetch_and_parse_addenda([])

        assert batch.success
        assert batch.total == 0
