"""
Tests for .eml upload decoding.
"""

import base64

import pytest

from pcbs.document_processor.email_parser import decode_upload, parse_email_document
from pcbs.document_processor.exceptions import MalformedInputError


class TestDecodeUpload:
    """Tests for base64 upload decoding."""

    def test_plain_base64(self):
        assert decode_upload(base64.b64encode(b'Subject: hi\r\n\r\nbody').decode('ascii')) == b'Subject: hi\r\n\r\nbody'

    def test_data_url_prefix(self):
        encoded = base64.b64encode(b'raw message').decode('ascii')
        assert decode_upload(f"data:message/rfc822;base64,{encoded}") == b'raw message'

    def test_bytes_with_line_breaks(self):
        encoded = base64.encodebytes(b'x' * 120)
        assert b'\n' in encoded.strip()
        assert decode_upload(encoded) == b'x' * 120

    @pytest.mark.parametrize('payload', ['', None, b''])
    def test_missing(self, payload):
        with pytest.raises(MalformedInputError, match='Missing file'):
            decode_upload(payload)

    @pytest.mark.parametrize('payload', ['!!! not base64 !!!', b'\xff\xfe', 'abc'])
    def test_invalid(self, payload):
        with pytest.raises(MalformedInputError, match='not valid base64'):
            decode_upload(payload)


class TestParseEmailDocument:
    """Tests for MIME parsing."""

    def test_multipart_alternative(self, make_eml):
        parsed = parse_email_document(make_eml(text='Plain body', html='<p>HTML body</p>'))

        assert 'Plain body' in parsed.text
        assert '<p>HTML body</p>' in parsed.html
        assert parsed.subject == 'Contract for John Smith'
        assert parsed.sender == 'Calimingo Pools <contracts@example.com>'
        assert parsed.date.year == 2025
        assert parsed.date.month == 11
        assert parsed.date.utcoffset().total_seconds() == -8 * 3600

    def test_html_only(self, make_eml):
        parsed = parse_email_document(make_eml(html='<p>Only HTML</p>'))

        assert parsed.text == ''
        assert 'Only HTML' in parsed.html

    def test_unparsable_date(self):
        raw = b'Subject: Contract\r\nDate: sometime last week\r\n\r\nContract body\r\n'
        parsed = parse_email_document(raw)

        assert parsed.date is None
        assert 'Contract body' in parsed.text
        assert parsed.html == ''

    def test_empty(self):
        with pytest.raises(MalformedInputError):
            parse_email_document(b'')
