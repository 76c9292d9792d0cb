"""
Addendum and original-contract page handling.

Addenda (and the original contract) are hosted on ProDBX and linked from the
contract email. This module validates those links, fetches the pages with
``httpx`` and parses their item tables with the shared table matchers.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, Tuple

import httpx
from bs4 import BeautifulSoup

from pcbs.config import get_section
from pcbs.document_processor import patterns
from pcbs.document_processor.exceptions import (
    ExtractionError, MalformedInputError, UnreachableError
)
from pcbs.document_processor.extractors.table import (
    ScanOptions, direct_rows, find_items_table, row_from_html, scan_rows
)
from pcbs.document_processor.interfaces import AddendumData, OrderItem
from pcbs.utils.result import BatchResult, Result

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36'
DEFAULT_TIMEOUT = 30.0

# Hosted pages list every non-zero row; credits keep their negative amount.
ADDENDUM_SCAN = ScanOptions(
    stop_at_totals=False,
    emit_main_categories=False,
    item_filter='nonzero',
    derive_rate=False,
    category_amount_fallback=False,
)
ORIGINAL_CONTRACT_SCAN = ScanOptions(stop_at_totals=False)


def validate_addendum_url(url: Optional[str], hosts: Optional[Iterable[str]] = None) -> bool:
    """
    Check that a URL has the ProDBX view-link shape.

    Pure format check; nothing is fetched.

    Args:
        url: Candidate URL
        hosts: Allowed host names, defaults to ``fetch.allowed_hosts``

    Returns:
        True if the URL is ``http(s)://<allowed host>/go/view/?<query>``
    """
    if not url or not isinstance(url, str):
        return False

    if hosts is None:
        hosts = get_section('fetch').get('allowed_hosts') or patterns.DEFAULT_HOSTS
    hosts = tuple(hosts)

    pattern = patterns.ADDENDUM_URL if hosts == patterns.DEFAULT_HOSTS else patterns.addendum_url_pattern(hosts)
    return bool(pattern.match(url.strip()))


def fetch_addendum_html(url: str, client: Optional[httpx.Client] = None,
                        timeout: Optional[float] = None) -> str:
    """
    Fetch the HTML of an addendum or original-contract page.

    Args:
        url: ProDBX view URL
        client: Optional shared ``httpx.Client``; a short-lived one is created
            when omitted
        timeout: Seconds before giving up, defaults to ``fetch.timeout``

    Returns:
        Page HTML

    Raises:
        MalformedInputError: If the URL fails validation (nothing is fetched)
        UnreachableError: On transport failure, timeout, non-2xx status or an
            empty body
    """
    if not validate_addendum_url(url):
        raise MalformedInputError(
            f"Invalid addendum URL format: {url}. Expected format: https://l1.prodbx.com/go/view/?..."
        )

    fetch_config = get_section('fetch')
    if timeout is None:
        timeout = fetch_config.get('timeout', DEFAULT_TIMEOUT)
    headers = {
        'User-Agent': fetch_config.get('user_agent', DEFAULT_USER_AGENT),
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
    }

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout)

    try:
        response = client.get(url, headers=headers, timeout=timeout, follow_redirects=True)
    except httpx.TimeoutException as e:
        raise UnreachableError(
            f"Timeout while fetching addendum URL after {timeout} seconds: {url}",
            url=url, original_error=e
        ) from e
    except httpx.HTTPError as e:
        raise UnreachableError(
            f"Failed to fetch addendum HTML: {e}", url=url, original_error=e
        ) from e
    finally:
        if owns_client:
            client.close()

    if not response.is_success:
        raise UnreachableError(
            f"Failed to fetch addendum URL: {response.status_code} {response.reason_phrase}",
            url=url, status_code=response.status_code
        )

    html = response.text
    if not html or not html.strip():
        raise UnreachableError("Empty HTML content received from addendum URL", url=url)

    logger.debug(f"Fetched {len(html)} characters from {url}")
    return html


# Addendum number strategies, tried in order.

def _number_from_page(url: str, page_text: str) -> Optional[str]:
    match = patterns.ADDENDUM_NUMBER.search(page_text or '')
    return match.group(1) if match else None


def _number_from_url(url: str, page_text: str) -> Optional[str]:
    match = patterns.URL_NUMBER.search(url or '')
    return match.group(1) if match else None


ADDENDUM_NUMBER_STRATEGIES: List[Tuple[str, Callable[[str, str], Optional[str]]]] = [
    ('page', _number_from_page),
    ('url', _number_from_url),
]


def _resolve_addendum_number(url: str, page_text: str) -> str:
    for name, strategy in ADDENDUM_NUMBER_STRATEGIES:
        number = strategy(url, page_text)
        if number:
            logger.debug(f"Addendum number {number} taken from {name}")
            return number
    raise MalformedInputError(f"Could not extract addendum number from URL: {url}")


def extract_addendum_number(url: str, page_html: Optional[str] = None) -> str:
    """
    Determine an addendum's display number.

    The number printed on the page ("Addendum # : 3") wins; otherwise the
    numeric query prefix of the URL (``?35587.426...`` gives ``35587``) is used.

    Args:
        url: Addendum URL
        page_html: Fetched page, if available

    Returns:
        Addendum number as a string

    Raises:
        MalformedInputError: If neither source yields a number
    """
    page_text = BeautifulSoup(page_html, 'html.parser').get_text(' ') if page_html else ''
    return _resolve_addendum_number(url, page_text)


def _items_table_rows(soup: BeautifulSoup, label: str):
    table = find_items_table(soup, fallback_first=True)
    if table is None:
        raise ExtractionError(f"Order Items Table not found in {label} HTML")

    rows = direct_rows(table)
    if not rows:
        raise ExtractionError(f"No rows found in {label} table")
    return [row_from_html(tr) for tr in rows]


def parse_addendum(html: str, url: str, url_number: Optional[str] = None) -> AddendumData:
    """
    Parse the items of one addendum page.

    Main-category rows only provide context; zero-amount rows are dropped and
    credits (negative amounts) kept. Addendum tables have no rate column.

    Args:
        html: Page HTML
        url: URL the page was fetched from
        url_number: Number taken from the URL, derived when omitted

    Returns:
        AddendumData with the page's addendum number and items

    Raises:
        ExtractionError: If the page has no items table or no items
    """
    if not html or not html.strip():
        raise ExtractionError(f"Empty addendum page: {url}")

    soup = BeautifulSoup(html, 'html.parser')
    if url_number is None:
        url_number = _number_from_url(url, '')
    addendum_number = _resolve_addendum_number(url, soup.get_text(' '))
    if url_number and addendum_number != url_number:
        logger.info(f"Using addendum number {addendum_number} from page (URL ID {url_number})")

    items = scan_rows(_items_table_rows(soup, 'addendum'), ADDENDUM_SCAN)
    if not items:
        raise ExtractionError(
            f"No order items found in addendum {addendum_number}. Please verify the HTML structure."
        )

    logger.info(f"Parsed addendum {addendum_number}: {len(items)} items found")
    return AddendumData(addendum_number=addendum_number, url=url, items=items, url_id=url_number)


def parse_original_contract(html: str) -> List[OrderItem]:
    """
    Parse the hosted original-contract page.

    Rows following a ``-OPTIONAL PACKAGE n-`` marker are flagged optional with
    their package number.
    """
    if not html or not html.strip():
        raise ExtractionError("Empty original contract page")

    soup = BeautifulSoup(html, 'html.parser')
    items = scan_rows(_items_table_rows(soup, 'Original Contract'), ORIGINAL_CONTRACT_SCAN)
    if not items:
        raise ExtractionError("No order items found in Original Contract. Please verify the HTML structure.")

    optional = sum(1 for item in items if item.is_optional)
    logger.info(f"Parsed original contract: {len(items)} rows ({optional} optional)")
    return items


def fetch_and_parse_addendum(url: str, client: Optional[httpx.Client] = None) -> Result:
    """
    Validate, fetch and parse one addendum URL.

    Returns:
        Result carrying AddendumData, or the error message with an error code
        of ``MALFORMED_URL``, ``UNREACHABLE`` or ``EXTRACTION_FAILED``
    """
    try:
        html = fetch_addendum_html(url, client=client)
        return Result.ok(parse_addendum(html, url), url=url)
    except MalformedInputError as e:
        return Result.fail(str(e), error_code='MALFORMED_URL', url=url)
    except UnreachableError as e:
        return Result.fail(str(e), error_code='UNREACHABLE', url=url)
    except ExtractionError as e:
        return Result.fail(str(e), error_code='EXTRACTION_FAILED', url=url)


def fetch_and_parse_addenda(urls: List[str], max_workers: Optional[int] = None,
                            client: Optional[httpx.Client] = None) -> BatchResult:
    """
    Fetch and parse several addenda in parallel.

    Args:
        urls: Addendum URLs in the order they should be merged
        max_workers: Thread pool size, defaults to ``fetch.max_workers``
        client: Optional shared ``httpx.Client``

    Returns:
        BatchResult whose ``data`` holds one Result per URL, in input order

    Raises:
        UnreachableError: If every URL failed
    """
    if not urls:
        return BatchResult.from_results([])

    if max_workers is None:
        max_workers = get_section('fetch').get('max_workers', 4)

    with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(urls)))) as executor:
        results = list(executor.map(lambda url: fetch_and_parse_addendum(url, client=client), urls))

    batch = BatchResult.from_results(results)
    for failure in batch.failures:
        logger.warning(f"Addendum {failure.metadata.get('url')} failed: {failure.error}")

    if batch.succeeded == 0:
        raise UnreachableError(
            f"All addendum URLs failed to process. Errors: {'; '.join(r.error for r in results)}"
        )
    return batch


def merge_addendum_items(addenda: Iterable[AddendumData]) -> List[OrderItem]:
    """Concatenate addendum items, each addendum's rows kept contiguous and in order."""
    merged: List[OrderItem] = []
    for addendum in addenda:
        merged.extend(addendum.items)
    return merged
