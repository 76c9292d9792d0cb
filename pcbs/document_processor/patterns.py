"""
Pattern library shared by the contract extractors.

Every regular expression used to recognize customer fields, table rows,
contract links and page sections lives here under a stable name, so that the
extractors only reference patterns by name and new document variants can be
supported by editing this module.
"""

import re
from typing import Dict, Iterable, Pattern

_I = re.IGNORECASE
_M = re.MULTILINE

# Customer / job fields. Labelled lines are anchored to the start of a line so
# that "Email Address:" is never read as the street address.
LABEL_PATTERNS: Dict[str, Pattern] = {
    "dbx_customer_id": re.compile(r'DBX\s+Customer\s+ID\s*[:：#]\s*([A-Za-z0-9][A-Za-z0-9\-]*)', _I),
    "order_no": re.compile(r'^[ \t]*Order[ \t]*(?:ID|No\.?|Number)[ \t]*[:：#][ \t]*(.+?)[ \t]*$', _I | _M),
    "client_name": re.compile(r'^[ \t]*(?:Client|Customer)(?:[ \t]+Name)?[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "street_address": re.compile(r'^[ \t]*(?:Street[ \t]+|Job[ \t]+|Site[ \t]+)?Address[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "city": re.compile(r'^[ \t]*City[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "state": re.compile(r'^[ \t]*State[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "zip": re.compile(r'^[ \t]*Zip(?:[ \t]*Code)?[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "email": re.compile(r'^[ \t]*E-?mail(?:[ \t]+Address)?[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "phone": re.compile(r'^[ \t]*(?:Phone|Tel(?:ephone)?|Cell|Mobile)(?:[ \t]+(?:No\.?|Number))?[ \t]*[:：][ \t]*(.+?)[ \t]*$', _I | _M),
    "order_grand_total": re.compile(r'^[ \t]*(?:Order[ \t]+)?Grand[ \t]+Total[ \t]*[:：]?[ \t]*(-?\$?[ \t]*[\d,]+(?:\.\d+)?)', _I | _M),
}

# Positional fallbacks for a mailing-address block without labels.
CITY_STATE_ZIP = re.compile(r"^\s*([A-Za-z][A-Za-z .'\-]*?)\s*,\s*([A-Z]{2})\.?\s+(\d{5}(?:-\d{4})?)\s*$")
STREET_LINE = re.compile(r'^\s*\d+[A-Za-z]?\s+[A-Za-z0-9]')
PERSON_NAME_LINE = re.compile(r"^\s*[A-Za-z][A-Za-z.'\-]*(?:\s+(?:&|and|[A-Za-z][A-Za-z.'\-]*)){1,5}\s*$")
EMAIL_TOKEN = re.compile(r'[\w.+\-]+@[\w\-]+(?:\.[\w\-]+)+')
PHONE_TOKEN = re.compile(r'(?<!\d)(?:\+?1[\s.\-]?)?\(?\d{3}\)?[\s.\-]?\d{3}[\s.\-]\d{4}(?!\d)')

# Item table rows
COLUMN_SPLIT = re.compile(r'\t+|\s{2,}|\s*\|\s*')
COLUMN_HEADER = re.compile(r'\bDESCRIPTION\b.*\bQTY\b', _I)
SUMMARY_TOTAL = re.compile(r'\b(?:sub[\s\-]*total|tax|grand\s+total|current\s+(?:job\s+)?balance)\b', _I)
PACKAGE_TOTAL = re.compile(r'\bPACKAGE\s+TOTAL\b', _I)
OPTIONAL_PACKAGE = re.compile(r'-\s*OPTIONAL\s+PACKAGE\s+(\d+)\s*-', _I)
OPTIONAL_PACKAGE_NAME = re.compile(r'-\s*OPTIONAL\s+PACKAGE\s+\d+\s*-\s*([^\n]*)', _I)
SUBCATEGORY_DASHED = re.compile(r'^-\s*([^\-\s][^\n]*?)\s*-$')
SUBCATEGORY_BRACKETED = re.compile(r'^\[\s*([^\]\n]+?)\s*\]$')
CATEGORY_CODE = re.compile(r'^\s*\d{4}\s+\S')
CAPS_HEADING = re.compile(r"^(?=(?:.*[A-Z]){2})[A-Z0-9][A-Z0-9 &/,.'()\-:#]*$")
PROGRESS_ADDENDUM = re.compile(r'addendum\s*#\s*(\d+)', _I)
PROGRESS_HEADER = re.compile(r'\bphase\b.*\b(?:completed|amt\s+paid|date\s+paid)\b', _I)

# Contract links
PRODBX_URL = re.compile(r'https?://(?:l1|login)\.prodbx\.com/go/view/\?[^\s"<>]+', _I)
TRACKING_URL = re.compile(r'https?://track\.pstmrk\.it/[^\s"<>]+', _I)
ENCODED_PRODBX_URL = re.compile(r'((?:l1|login)\.prodbx\.com)%2Fgo%2Fview%2F%3F([^%/\s"<>]+)', _I)
# base64 of "https://l1.prodbx.com"
BASE64_PRODBX_PREFIX = 'aHR0cHM6Ly9sMS5wcm9kYnguY29t'
TRAILING_PUNCTUATION = re.compile(r'[.,;!?)\]]+$')
# A section label stands alone on its line ("Addendums") or ends it with a colon.
LINK_SECTION_LABEL = re.compile(r'\b(original\s+contract|addend(?:um|ums|a))(?:\s*#\s*\d+)?\s*(:)?\s*$', _I)
ADDENDUM_LABEL = re.compile(r'\baddend(?:um|ums|a)\b', _I)

# Page sections
CONTRACT_IDENTITY_MARKERS: Dict[str, Pattern] = {
    "contract_number": re.compile(r'\bContract\s*(?:#|No\.?\s|Number\b)', _I),
    "project_information": re.compile(r'\bPROJECT\s+INFORMATION\b', _I),
    "contract_price": re.compile(r'\bCONTRACT\s+PRICE\b', _I),
    "description_qty": re.compile(r'\bDESCRIPTION\s+QTY\b', _I),
}
ADDENDUM_NUMBER = re.compile(r'Addendum\s*#\s*:?\s*(\d+)', _I)
URL_NUMBER = re.compile(r'[?&](\d+)\.')


def addendum_url_pattern(hosts: Iterable[str]) -> Pattern:
    """
    Build the addendum URL format check for a set of allowed hosts.

    Args:
        hosts: Host names such as ``l1.prodbx.com``

    Returns:
        Compiled pattern matching ``http(s)://<host>/go/view/?<query>``
    """
    host_group = '|'.join(re.escape(host) for host in hosts)
    return re.compile(rf'^https?://(?:{host_group})/go/view/\?\S+$', _I)


DEFAULT_HOSTS = ('l1.prodbx.com', 'login.prodbx.com')
ADDENDUM_URL = addendum_url_pattern(DEFAULT_HOSTS)
