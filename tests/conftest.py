"""
Shared pytest fixtures: sample contract documents and email builders.
"""

import base64
from email.message import EmailMessage

import httpx
import pytest

from pcbs.config import reset_config


CONTRACT_TEXT = """\
DBX Customer ID: 10452
Order Id: 2024-117
Client: John Smith
Address: 123 Main St
City: Irvine
State: CA
Zip: 92618
Email: john@example.com
Phone: (949) 555-0100

DESCRIPTION          QTY        RATE          AMOUNT
POOL CONSTRUCTION
-EXCAVATION-
Dig and haul          1 EA      $5,000.00     $5,000.00
Rebar                 1         2,500.00      2,500.00
-PLUMBING-
Main drain            2         $150.00       $300.00
DECKING
Travertine pavers     400 SF    $12.50        $5,000.00
Permit fee            1 EA      -             -
Subtotal                                      $12,800.00
Grand Total: $12,800.00
"""

CONTRACT_EMAIL_HTML = """\
<html><body>
<p>DBX Customer ID: 30001</p>
<table class="pos">
<tr><td>DESCRIPTION</td><td>QTY</td><td>EXTENDED</td></tr>
<tr><td><span style="font-weight: bold; font-size: 14px">0020 Calimingo - Pools and Spas</span><br><em>Pool package</em></td><td>1</td><td>$40,000.00</td></tr>
<tr class="ssg_title"><td>EXCAVATION</td><td></td><td></td></tr>
<tr><td style="padding-left: 30px">Dig and haul</td><td>1 EA</td><td>$4,000.00</td></tr>
<tr><td style="padding-left: 30px">Soil test</td><td>1 EA</td><td></td></tr>
<tr><td>Gunite shell</td><td>1</td><td>$36,000.00</td></tr>
<tr><td>Placeholder</td><td>1</td><td>$0.00</td></tr>
<tr><td>Subtotal</td><td></td><td>$40,000.00</td></tr>
<tr><td>Never reached</td><td>1</td><td>$5.00</td></tr>
</table>
<div><strong>Original Contract:</strong></div>
<div><a href="https://l1.prodbx.com/go/view/?33047.426.20250801132906">https://l1.prodbx.com/go/view/?33047.426.20250801132906</a></div>
<div><strong>Addendums:</strong></div>
<div><a href="https://l1.prodbx.com/go/view/?35587.426.20251112100816">https://l1.prodbx.com/go/view/?35587.426.20251112100816</a></div>
</body></html>
"""

ADDENDUM_URL = 'https://l1.prodbx.com/go/view/?35587.426.20251112100816'

ADDENDUM_HTML = """\
<html><body>
<h2>Addendum # : 3</h2>
<table class="pos">
<tr><td>Description</td><td>Qty</td><td>Extended</td></tr>
<tr><td><strong>0400 Calimingo - Electrical</strong></td><td>1</td><td>$1,150.00</td></tr>
<tr class="ssg_title"><td>LIGHTING</td><td></td><td></td></tr>
<tr><td>Add pool light</td><td>2 EA</td><td>$1,400.00</td></tr>
<tr><td>Remove spa light</td><td>1 EA</td><td>-$250.00</td></tr>
<tr><td>No charge adjustment</td><td>1</td><td>$0.00</td></tr>
<tr><td>Subtotal</td><td></td><td>$1,150.00</td></tr>
</table>
</body></html>
"""


@pytest.fixture(autouse=True)
def clean_config():
    """Start every test from the default configuration."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def contract_text():
    """Plain-text contract body with labelled customer fields."""
    return CONTRACT_TEXT


@pytest.fixture
def contract_email_html():
    """HTML contract body with a ProDBX items table and contract links."""
    return CONTRACT_EMAIL_HTML


@pytest.fixture
def addendum_html():
    """Hosted addendum page."""
    return ADDENDUM_HTML


@pytest.fixture
def make_eml():
    """Build raw .eml bytes from a text body and an optional HTML body."""
    def _make(text=None, html=None, subject='Contract for John Smith'):
        message = EmailMessage()
        message['Subject'] = subject
        message['From'] = 'Calimingo Pools <contracts@example.com>'
        message['To'] = 'billing@example.com'
        message['Date'] = 'Mon, 03 Nov 2025 10:15:00 -0800'
        if text is not None:
            message.set_content(text)
            if html is not None:
                message.add_alternative(html, subtype='html')
        elif html is not None:
            message.set_content(html, subtype='html')
        return bytes(message)
    return _make


@pytest.fixture
def make_upload(make_eml):
    """Build a base64 upload the way the upload form sends it."""
    def _make(text=None, html=None):
        return base64.b64encode(make_eml(text=text, html=html)).decode('ascii')
    return _make


@pytest.fixture
def mock_client():
    """Build an httpx client whose responses come from a URL → response map."""
    def _make(pages, requests=None):
        def handler(request):
            if requests is not None:
                requests.append(request)
            for fragment, response in pages.items():
                if fragment in str(request.url):
                    if isinstance(response, Exception):
                        raise response
                    if isinstance(response, httpx.Response):
                        return response
                    return httpx.Response(200, text=response)
            return httpx.Response(404)
        return httpx.Client(transport=httpx.MockTransport(handler))
    return _make
