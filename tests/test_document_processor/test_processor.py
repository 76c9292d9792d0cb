"""
Tests for the contract processor operations.
"""

from unittest.mock import MagicMock

import httpx
import pytest

from pcbs.document_processor.exceptions import (
    ExtractionError, MalformedInputError, UnreachableError
)
from pcbs.document_processor.extractors.table import extract_contract
from pcbs.document_processor.processor import INVALID_URL_MESSAGE, ContractProcessor


ORIGINAL_URL = 'https://l1.prodbx.com/go/view/?33047.426.20250801132906'
ADDENDUM_URL = 'https://l1.prodbx.com/go/view/?35587.426.20251112100816'
MISSING_URL = 'https://l1.prodbx.com/go/view/?40000.426.20251201090000'


@pytest.fixture
def processor():
    return ContractProcessor()


class TestLoadEmail:
    """Tests for upload decoding."""

    def test_base64_upload(self, processor, make_upload, contract_text):
        email = processor.load_email(make_upload(text=contract_text))

        assert 'DBX Customer ID: 10452' in email.text
        assert email.subject == 'Contract for John Smith'

    def test_raw_eml_bytes(self, processor, make_eml):
        email = processor.load_email(make_eml(text='Raw body'))

        assert 'Raw body' in email.text

    def test_invalid_upload(self, processor):
        with pytest.raises(MalformedInputError):
            processor.load_email('not base64 at all!')


class TestExtractDbxCustomerId:
    def test_from_text_body(self, processor, make_upload, contract_text):
        assert processor.extract_dbx_customer_id(make_upload(text=contract_text)) == {'dbxCustomerId': '10452'}

    def test_from_html_body(self, processor, make_upload, contract_email_html):
        assert processor.extract_dbx_customer_id(make_upload(html=contract_email_html)) == {'dbxCustomerId': '30001'}

    def test_missing_id(self, processor, make_upload):
        assert processor.extract_dbx_customer_id(make_upload(text='Hello there')) == {'dbxCustomerId': None}


class TestParseContract:
    """Tests for contract extraction with grand-total validation."""

    def test_text_contract(self, processor, make_upload, contract_text):
        response = processor.parse_contract(make_upload(text=contract_text))

        assert response['location']['dbxCustomerId'] == '10452'
        assert response['location']['orderGrandTotal'] == 12800.0
        assert len(response['items']) == 9
        assert response['validation']['isValid'] is True
        assert response['validation']['itemsTotal'] == 12800.0

    def test_html_table_preferred(self, processor, make_upload, contract_text, contract_email_html):
        response = processor.parse_contract(make_upload(text=contract_text, html=contract_email_html))

        assert response['location']['dbxCustomerId'] == '10452'
        assert [item['productService'] for item in response['items']][:2] == [
            '0020 Calimingo - Pools and Spas - Pool package:', 'EXCAVATION'
        ]

    def test_total_mismatch(self, processor, make_upload, contract_text):
        text = contract_text.replace('Grand Total: $12,800.00', 'Grand Total: $13,000.00')
        validation = processor.parse_contract(make_upload(text=text))['validation']

        assert validation['isValid'] is False
        assert validation['difference'] == 200.0

    def test_missing_grand_total(self, processor, make_upload, contract_text):
        text = contract_text.replace('Grand Total: $12,800.00', '')
        validation = processor.parse_contract(make_upload(text=text))['validation']

        assert validation['isValid'] is False
        assert validation['message'] == 'Order Grand Total is missing or zero'

    def test_no_contract(self, processor, make_upload):
        with pytest.raises(ExtractionError):
            processor.parse_contract(make_upload(text='Thanks for your business.'))


class TestEmailLinksAndSections:
    def test_links(self, processor, make_upload, contract_email_html):
        response = processor.extract_contract_links(make_upload(text='See below', html=contract_email_html))

        assert response == {
            'success': True,
            'links': {'originalContractUrl': ORIGINAL_URL, 'addendumUrls': [ADDENDUM_URL]},
        }

    def test_sections_with_table(self, processor, make_upload, contract_email_html):
        response = processor.detect_email_sections(make_upload(text='See below', html=contract_email_html))

        assert response == {'sections': [{'type': 'original', 'selected': True}], 'hasTable': True}

    def test_sections_text_only(self, processor, make_upload):
        assert processor.detect_email_sections(make_upload(text='No table')) == {'sections': [], 'hasTable': False}


class TestValidateLink:
    """Tests for link validation against the hosted page."""

    def test_malformed_url_is_not_fetched(self):
        client = MagicMock()
        processor = ContractProcessor(client=client)

        assert processor.validate_link('https://example.com/contract') == {
            'valid': False,
            'error': INVALID_URL_MESSAGE,
            'errorCode': 'MALFORMED_URL',
        }
        assert processor.validate_link(None)['errorCode'] == 'MALFORMED_URL'
        client.get.assert_not_called()

    def test_unreachable(self, mock_client):
        processor = ContractProcessor(client=mock_client({}))

        response = processor.validate_link(MISSING_URL)

        assert response['valid'] is False
        assert response['errorCode'] == 'UNREACHABLE'
        assert '404' in response['error']
        assert response['addendumNumber'] == '40000'

    def test_unreachable_addendum_keeps_url_number(self, mock_client):
        processor = ContractProcessor(client=mock_client({'?35587.': httpx.Response(503)}))

        assert processor.validate_link(ADDENDUM_URL) == {
            'valid': False,
            'error': 'Failed to fetch addendum URL: 503 Service Unavailable',
            'errorCode': 'UNREACHABLE',
            'addendumNumber': '35587',
        }

    def test_unreachable_without_url_number(self, mock_client):
        processor = ContractProcessor(client=mock_client({}))

        response = processor.validate_link('https://l1.prodbx.com/go/view/?abc')

        assert response['errorCode'] == 'UNREACHABLE'
        assert 'addendumNumber' not in response

    def test_addendum_page(self, mock_client, addendum_html):
        processor = ContractProcessor(client=mock_client({'?35587.': addendum_html}))

        response = processor.validate_link(ADDENDUM_URL)

        assert response['valid'] is True
        assert response['addendumNumber'] == '3'
        assert {'type': 'addendum', 'number': 3, 'selected': True} in response['sections']

    def test_page_without_addendum_number(self, mock_client):
        url = 'https://l1.prodbx.com/go/view/?abc'
        processor = ContractProcessor(client=mock_client({'?abc': '<h1>Contract # 7</h1>'}))

        result = processor.check_link(url)

        assert result.success
        assert result.metadata['url'] == url
        assert result.data == {'sections': [{'type': 'original', 'selected': True}]}


class TestImportAddenda:
    def test_partial_import(self, mock_client, addendum_html):
        processor = ContractProcessor(client=mock_client({'?35587.': addendum_html}))

        response = processor.import_addenda([ADDENDUM_URL, MISSING_URL])

        assert [addendum['addendumNumber'] for addendum in response['addenda']] == ['3']
        assert [item['productService'] for item in response['items']] == [
            'LIGHTING', 'Add pool light', 'Remove spa light'
        ]
        assert response['errors'] == [{
            'url': MISSING_URL,
            'error': 'Failed to fetch addendum URL: 404 Not Found',
            'errorCode': 'UNREACHABLE',
        }]

    def test_all_failed(self, mock_client):
        processor = ContractProcessor(client=mock_client({}))

        with pytest.raises(UnreachableError):
            processor.import_addenda([MISSING_URL])


class TestSaveContract:
    def test_requires_session(self, processor, contract_text):
        with pytest.raises(ValueError, match='database session'):
            processor.save_contract(extract_contract(contract_text))
