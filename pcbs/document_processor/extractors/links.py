"""
Contract link extraction.

Contract emails link the hosted original contract and any addenda, either
directly or through click-tracking redirects. Links are collected in document
order: the first link not labelled as an addendum is the original contract,
every later link is an addendum.
"""

import base64
import binascii
import logging
import re
from typing import List, Optional
from urllib.parse import unquote

from bs4 import BeautifulSoup, Comment, NavigableString, Tag

from pcbs.document_processor import patterns
from pcbs.document_processor.extractors.addendum import validate_addendum_url
from pcbs.document_processor.interfaces import ExtractedLinks, ParsedEmail

logger = logging.getLogger(__name__)

_ORIGINAL = 'original'
_ADDENDUM = 'addendum'


def _clean_candidate(url: str) -> Optional[str]:
    """Cut a ProDBX URL at the end of its query and drop trailing punctuation."""
    base, _, query = url.partition('?')
    query = query.split('/')[0]
    url = patterns.TRAILING_PUNCTUATION.sub('', f"{base}?{query}")
    return url if validate_addendum_url(url) else None


def _from_base64_redirect(href: str) -> Optional[str]:
    # https://l2511a.prodbx.com/go?l=426-427947-<base64 of the target URL>
    if patterns.BASE64_PRODBX_PREFIX not in href:
        return None
    encoded = unquote(href.rsplit('-', 1)[-1]).split('&')[0]
    encoded += '=' * (-len(encoded) % 4)
    try:
        decoded = base64.b64decode(encoded).decode('utf-8', errors='ignore')
    except (binascii.Error, ValueError):
        logger.debug(f"Could not decode tracking redirect: {href[:80]}")
        return None
    match = patterns.PRODBX_URL.search(decoded)
    return _clean_candidate(match.group(0)) if match else None


def _from_tracking_wrapper(href: str) -> Optional[str]:
    # https://track.pstmrk.it/3ts/l1.prodbx.com%2Fgo%2Fview%2F%3F33047.426.2025./jrqS/...
    match = patterns.PRODBX_URL.search(unquote(href))
    if match:
        return _clean_candidate(match.group(0))

    match = patterns.ENCODED_PRODBX_URL.search(href)
    if match:
        return _clean_candidate(f"https://{match.group(1).lower()}/go/view/?{unquote(match.group(2))}")
    return None


def resolve_link_url(href: Optional[str], text: Optional[str] = None) -> Optional[str]:
    """
    Resolve the ProDBX view URL behind a link.

    Tried in order: the ``href`` itself, a URL shown as the link text, a
    base64-wrapped redirect and a URL-encoded click-tracking wrapper.

    Args:
        href: The anchor's href attribute
        text: The anchor's visible text

    Returns:
        Validated ProDBX view URL or None
    """
    href = (href or '').strip()
    if href and validate_addendum_url(href):
        return href

    if text:
        match = patterns.PRODBX_URL.search(text)
        if match:
            url = _clean_candidate(match.group(0))
            if url:
                return url

    if href:
        return _from_base64_redirect(href) or _from_tracking_wrapper(href)
    return None


def urls_in_text(text: str) -> List[str]:
    """Direct and tracking-wrapped ProDBX URLs in a run of text, in order of appearance."""
    found = []
    for match in patterns.PRODBX_URL.finditer(text):
        found.append((match.start(), _clean_candidate(match.group(0))))
    for match in patterns.TRACKING_URL.finditer(text):
        found.append((match.start(), _from_tracking_wrapper(match.group(0))))
    return [url for _, url in sorted(found, key=lambda pair: pair[0]) if url]


def _label_of(text: str) -> Optional[str]:
    """Which section label the text ends on, if any; prose mentioning an addendum is no label."""
    label = None
    for line in text.splitlines():
        match = patterns.LINK_SECTION_LABEL.search(line)
        if match is None:
            continue
        if match.group(2) or not line[:match.start()].strip():
            label = _ADDENDUM if match.group(1).lower().startswith('addend') else _ORIGINAL
    return label


def _assign(links: ExtractedLinks, url: str, labelled_addendum: bool) -> None:
    if not labelled_addendum and links.original_contract_url is None:
        links.original_contract_url = url
    else:
        links.addendum_urls.append(url)


def _collect_from_html(html: str, links: ExtractedLinks) -> None:
    soup = BeautifulSoup(html, 'html.parser')
    label = None

    for element in soup.descendants:
        if isinstance(element, Comment):
            continue

        if isinstance(element, NavigableString):
            if element.find_parent('a') is not None:
                continue
            label = _label_of(str(element)) or label
            continue

        if not isinstance(element, Tag) or element.name != 'a':
            continue

        link_text = element.get_text(' ', strip=True)
        url = resolve_link_url(element.get('href'), link_text)
        if url is None:
            continue

        labelled_addendum = label == _ADDENDUM or bool(patterns.ADDENDUM_LABEL.search(link_text))
        _assign(links, url, labelled_addendum)


def _collect_from_text(text: str, links: ExtractedLinks) -> None:
    label = None
    for line in text.replace('\r\n', '\n').split('\n'):
        label = _label_of(re.sub(r'https?://\S+', ' ', line)) or label
        for url in urls_in_text(line):
            _assign(links, url, label == _ADDENDUM)


def extract_contract_links(parsed_email: ParsedEmail) -> ExtractedLinks:
    """
    Find the original-contract and addendum links of a contract email.

    The HTML body is preferred; the text body is scanned only when the HTML
    yields no link at all. Duplicate addendum links are kept.

    Args:
        parsed_email: Decoded email

    Returns:
        ExtractedLinks, empty when the email carries no contract links
    """
    links = ExtractedLinks()

    if parsed_email.html:
        _collect_from_html(parsed_email.html, links)

    if links.original_contract_url is None and not links.addendum_urls and parsed_email.text:
        logger.debug("No contract links in HTML body, scanning text body")
        _collect_from_text(parsed_email.text, links)

    logger.info(
        f"Found original contract link: {links.original_contract_url is not None}, "
        f"{len(links.addendum_urls)} addendum link(s)"
    )
    return links
