"""
Table extractor for pool-construction contracts.

Contracts arrive as email bodies whose item table is laid out either with
whitespace/line-break conventions (plain-text body) or with table markup
(HTML body, addendum pages). Both renditions are reduced to ``Row`` objects
and classified by the same ordered list of named matchers, so the category →
subcategory → item hierarchy is recognized identically everywhere.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Tag

from pcbs.config import get_section
from pcbs.document_processor import patterns
from pcbs.document_processor.exceptions import ExtractionError
from pcbs.document_processor.interfaces import ContractTable, ItemType, Location, OrderItem
from pcbs.utils.common import (
    ZERO, clean_text, extract_quantity, is_numeric_cell, normalize_amount, to_decimal
)

logger = logging.getLogger(__name__)


@dataclass
class Row:
    """A table row reduced to its cell texts plus markup hints."""

    cells: List[str]
    text: str = ''
    hints: Dict[str, Any] = field(default_factory=dict)
    markup: bool = False

    @property
    def description(self) -> str:
        return self.cells[0] if self.cells else ''

    @property
    def filled_cells(self) -> List[str]:
        return [cell for cell in self.cells if cell]

    @property
    def is_single_cell(self) -> bool:
        return len(self.filled_cells) == 1


@dataclass
class Classification:
    """Outcome of a matcher for one row."""

    kind: str
    matcher: str = ''
    name: Optional[str] = None
    number: Optional[int] = None
    qty: Optional[Decimal] = None
    rate: Optional[Decimal] = None
    amount: Optional[Decimal] = None
    indented: bool = False
    entries: List[Tuple[int, Decimal]] = field(default_factory=list)


@dataclass
class ScanOptions:
    """
    Knobs that differ between the email table and the hosted pages.

    Attributes:
        stop_at_totals: End the scan at the first subtotal/tax/balance row
            instead of skipping it
        emit_main_categories: Emit main-category header rows; when False they
            only provide context for the items that follow
        item_filter: ``all``, ``nonzero`` (credits kept, zero rows dropped) or
            ``positive_or_indented`` (email table placeholder rows)
        derive_rate: Fill ``rate`` as amount / qty when no rate column exists
        category_amount_fallback: Emit a category heading that carries its own
            amount as an item when no item rows follow it
    """

    stop_at_totals: bool = True
    emit_main_categories: bool = True
    item_filter: str = 'all'
    derive_rate: bool = True
    category_amount_fallback: bool = True


@dataclass
class ScanState:
    """Running category context while walking the rows of one table."""

    items: List[OrderItem] = field(default_factory=list)
    main_category: Optional[str] = None
    sub_category: Optional[str] = None
    package_number: Optional[int] = None
    pending: Optional[OrderItem] = None
    stopped: bool = False

    def emit(self, item: OrderItem) -> None:
        if self.package_number is not None:
            item.is_optional = True
            item.optional_package_number = self.package_number
        self.items.append(item)

    def flush_pending(self) -> None:
        if self.pending is not None:
            self.emit(self.pending)
            self.pending = None


# ---------------------------------------------------------------------------
# Row construction
# ---------------------------------------------------------------------------

def row_from_line(line: str) -> Row:
    """
    Split a plain-text line into cells on tabs, pipes or runs of 2+ spaces.

    Args:
        line: One line of the contract body

    Returns:
        Row without markup hints
    """
    stripped = line.replace('\u00a0', ' ').strip()
    if not stripped:
        return Row(cells=[], text='')

    cells = [clean_text(cell) for cell in patterns.COLUMN_SPLIT.split(stripped)]
    cells = [cell for cell in cells if cell]
    return Row(cells=cells, text=clean_text(stripped))


def _style_of(tag: Optional[Tag]) -> str:
    if tag is None:
        return ''
    return (tag.get('style') or '').replace(' ', '').lower()


def _classes_of(tag: Optional[Tag]) -> List[str]:
    if tag is None:
        return []
    classes = tag.get('class') or []
    if isinstance(classes, str):
        classes = classes.split()
    return [c.lower() for c in classes]


def _heading_name(cell: Tag) -> str:
    """Category code and name of a bold heading cell, with its <em> description."""
    heading = cell.find(
        lambda tag: tag.name == 'span' and (
            'font-weight:bold' in _style_of(tag) or 'font-size:14px' in _style_of(tag)
        )
    )
    if heading is None:
        heading = cell.find(['strong', 'b'])

    if heading is not None:
        base = clean_text(heading.get_text(' '))
    else:
        # New layout: the name is the text before the first <br> or <em>
        parts = []
        for child in cell.children:
            if isinstance(child, Tag) and child.name in ('br', 'em'):
                break
            parts.append(child.get_text(' ') if isinstance(child, Tag) else str(child))
        base = clean_text(' '.join(parts))

    name = re.sub(r':\s*$', '', base).strip()
    em = cell.find('em')
    description = clean_text(em.get_text(' ')) if em is not None else ''
    if description and description not in name:
        name = f"{name} - {description}"
    return name


def _progress_addenda(nested: Tag) -> List[Tuple[int, Decimal]]:
    """Addendum entries of a nested progress-payments table."""
    entries = []
    for tr in nested.find_all('tr'):
        row_text = clean_text(tr.get_text(' '))
        match = patterns.PROGRESS_ADDENDUM.search(row_text)
        if not match:
            continue

        cells = [clean_text(td.get_text(' ')) for td in tr.find_all('td')]
        if len(cells) < 3:
            continue

        # AMT column first, then the largest plausible amount in the row
        amount = to_decimal(cells[2])
        if amount < 1:
            candidates = [to_decimal(cell) for cell in cells]
            candidates = [c for c in candidates if 1 <= c <= 1000000]
            amount = max(candidates) if candidates else ZERO

        if amount > 0:
            entries.append((int(match.group(1)), amount))
        else:
            logger.debug(f"Progress payment row without amount skipped: {row_text[:80]}")
    return entries


def row_from_html(tr: Tag) -> Row:
    """
    Reduce a ``<tr>`` to a Row, recording layout hints from the markup.

    Hints:
        subcategory: name of a ``ssg_title`` row or a border-top/letter-spacing
            styled subheading
        bold, heading: first cell is a bold/bordered category heading
        indented: first cell is an indented line item
        progress_addenda: the row wraps a nested progress-payments table
    """
    cells = tr.find_all(['td', 'th'], recursive=False)
    texts = [clean_text(cell.get_text(' ')) for cell in cells]
    row = Row(cells=texts, text=clean_text(tr.get_text(' ')), markup=True)
    if not cells:
        return row

    nested = tr.find('table')
    if nested is not None:
        row.hints['progress_addenda'] = _progress_addenda(nested)
        return row

    first = cells[0]
    second = cells[1] if len(cells) > 1 else None

    if any('ssg_title' in c or 'subcategory' in c for c in _classes_of(tr) + _classes_of(first)):
        row.hints['subcategory'] = texts[0]
    elif second is not None and not texts[0]:
        style = _style_of(second)
        strong = second.find('strong')
        if 'border-top:solid1px#bbb' in style and 'letter-spacing:2px' in style and strong is not None:
            row.hints['subcategory'] = clean_text(strong.get_text(' '))

    first_style = _style_of(first)
    first_html = str(first).replace(' ', '').lower()
    if ('font-weight:bold' in first_html or 'font-size:14px' in first_html
            or first.find(['strong', 'b']) is not None
            or 'border-top:solid1px#666' in first_style):
        row.hints['bold'] = True
        row.hints['heading'] = _heading_name(first)

    if 'padding-left:30px' in first_style:
        row.hints['indented'] = True

    return row


def direct_rows(table: Tag) -> List[Tag]:
    """Rows that belong to ``table`` itself, not to tables nested inside it."""
    return [tr for tr in table.find_all('tr') if tr.find_parent('table') is table]


def find_items_table(soup: BeautifulSoup, fallback_first: bool = False) -> Optional[Tag]:
    """
    Locate the order items table of a contract or addendum page.

    Args:
        soup: Parsed HTML document
        fallback_first: Return the first table when no items table is recognized

    Returns:
        The ``table.pos`` table, else the table whose header row reads
        DESCRIPTION / QTY / EXTENDED, else the first table or None
    """
    table = soup.find('table', class_='pos')
    if table is not None:
        return table

    for tr in soup.find_all('tr'):
        cells = tr.find_all(['td', 'th'], recursive=False)
        if len(cells) < 3:
            continue
        first, second, third = (clean_text(c.get_text(' ')).upper() for c in cells[:3])
        if 'DESCRIPTION' in first and 'QTY' in second and 'EXTENDED' in third:
            return tr.find_parent('table')

    if fallback_first:
        table = soup.find('table')
        if table is not None:
            logger.warning("Items table not recognized, using first table in document")
        return table
    return None


# ---------------------------------------------------------------------------
# Matchers. Evaluated top to bottom; the first one returning a
# Classification wins.
# ---------------------------------------------------------------------------

def match_blank(row: Row) -> Optional[Classification]:
    if not row.filled_cells and 'progress_addenda' not in row.hints:
        return Classification('skip')
    return None


def match_column_header(row: Row) -> Optional[Classification]:
    if row.cells and patterns.COLUMN_HEADER.search(row.text) and not is_numeric_cell(row.cells[-1]):
        return Classification('skip')
    return None


def match_progress_addenda(row: Row) -> Optional[Classification]:
    if 'progress_addenda' in row.hints:
        return Classification('progress_addenda', entries=row.hints['progress_addenda'])
    return None


def match_progress_header(row: Row) -> Optional[Classification]:
    if patterns.PROGRESS_HEADER.search(row.text):
        return Classification('stop')
    return None


def match_summary_total(row: Row) -> Optional[Classification]:
    if patterns.SUMMARY_TOTAL.search(row.text):
        return Classification('stop')
    return None


def match_package_total(row: Row) -> Optional[Classification]:
    if patterns.PACKAGE_TOTAL.search(row.text):
        return Classification('skip')
    return None


def match_optional_package(row: Row) -> Optional[Classification]:
    match = patterns.OPTIONAL_PACKAGE.search(row.text)
    if match and int(match.group(1)) > 0:
        return Classification('package', number=int(match.group(1)))
    return None


def match_label_line(row: Row) -> Optional[Classification]:
    # "Client: John Smith" style lines above the table
    if row.markup or not row.is_single_cell:
        return None
    if re.match(r'^[^:]{1,40}:\s+\S', row.text):
        return Classification('skip')
    return None


def match_subcategory(row: Row) -> Optional[Classification]:
    name = row.hints.get('subcategory')
    if name is None and row.is_single_cell:
        match = (patterns.SUBCATEGORY_DASHED.match(row.filled_cells[0])
                 or patterns.SUBCATEGORY_BRACKETED.match(row.filled_cells[0]))
        if match:
            name = match.group(1)
    if name:
        return Classification('subcategory', name=clean_text(name))
    return None


def _trailing_values(row: Row) -> Tuple[Optional[str], Optional[str]]:
    """Quantity and extended-amount cells of a heading row."""
    if len(row.cells) < 3:
        return None, None
    return row.cells[1] or None, row.cells[-1] or None


def _main_category(row: Row, name: str) -> Classification:
    qty_text, amount_text = _trailing_values(row)
    amount = normalize_amount(amount_text) if amount_text else None
    return Classification(
        'maincategory',
        name=name,
        qty=extract_quantity(qty_text) if qty_text else None,
        amount=amount,
    )


def match_category_code(row: Row) -> Optional[Classification]:
    # "0020 Calimingo - Pools and Spas" with or without its own amount
    if not row.cells or not patterns.CATEGORY_CODE.match(row.description):
        return None
    name = row.hints.get('heading') or row.description
    return _main_category(row, name)


def match_bold_heading(row: Row) -> Optional[Classification]:
    if not row.hints.get('bold') or len(row.cells) < 3:
        return None
    qty_text, amount_text = _trailing_values(row)
    if not (qty_text and amount_text):
        return None
    return _main_category(row, row.hints.get('heading') or row.description)


def match_caps_heading(row: Row) -> Optional[Classification]:
    if not row.is_single_cell:
        return None
    text = row.filled_cells[0]
    if is_numeric_cell(text) or not patterns.CAPS_HEADING.match(text):
        return None
    return Classification('maincategory', name=text)


def match_line_item(row: Row) -> Optional[Classification]:
    indented = bool(row.hints.get('indented'))
    if len(row.cells) < 3 and not (indented and row.cells):
        return None

    description = row.description
    if not description:
        return None

    trailing = row.cells[1:]
    if not indented and not any(is_numeric_cell(cell) for cell in trailing):
        return None

    if len(row.cells) >= 4 and not row.markup:
        # description, qty, rate, amount (extra leading columns belong to the description)
        description = ' '.join(row.cells[:-3])
        qty_text, rate_text, amount_text = row.cells[-3:]
        rate = to_decimal(rate_text)
    else:
        qty_text = row.cells[1] if len(row.cells) > 1 else ''
        amount_text = row.cells[2] if len(row.cells) > 2 else ''
        rate = None

    return Classification(
        'item',
        name=description,
        qty=extract_quantity(qty_text),
        rate=rate,
        amount=to_decimal(amount_text),
        indented=indented,
    )


ROW_MATCHERS: List[Tuple[str, Callable[[Row], Optional[Classification]]]] = [
    ('blank', match_blank),
    ('progress_addenda', match_progress_addenda),
    ('column_header', match_column_header),
    ('progress_header', match_progress_header),
    ('summary_total', match_summary_total),
    ('package_total', match_package_total),
    ('optional_package', match_optional_package),
    ('label_line', match_label_line),
    ('subcategory', match_subcategory),
    ('category_code', match_category_code),
    ('bold_heading', match_bold_heading),
    ('caps_heading', match_caps_heading),
    ('line_item', match_line_item),
]


def classify_row(row: Row) -> Optional[Classification]:
    """
    Run the matchers over a row.

    Args:
        row: Row to classify

    Returns:
        Classification of the first matcher that recognized the row, or None
    """
    for name, matcher in ROW_MATCHERS:
        classification = matcher(row)
        if classification is not None:
            classification.matcher = name
            return classification
    return None


# ---------------------------------------------------------------------------
# Scanner
# ---------------------------------------------------------------------------

def _category_label(name: str) -> str:
    return re.sub(r':\s*$', '', name).strip() + ':'


def _keep_item(classification: Classification, options: ScanOptions) -> bool:
    amount = classification.amount or ZERO
    if options.item_filter == 'nonzero':
        return amount != 0
    if options.item_filter == 'positive_or_indented':
        return amount > 0 or classification.indented
    return True


def _apply(classification: Classification, state: ScanState, options: ScanOptions) -> None:
    kind = classification.kind

    if kind == 'skip':
        return

    if kind == 'stop':
        if options.stop_at_totals:
            state.flush_pending()
            state.stopped = True
        return

    if kind == 'package':
        state.flush_pending()
        state.package_number = classification.number
        logger.debug(f"Entering optional package {classification.number}")
        return

    if kind == 'subcategory':
        state.pending = None
        state.sub_category = classification.name
        state.emit(OrderItem(
            type=ItemType.SUBCATEGORY,
            product_service=classification.name,
            main_category=state.main_category,
            sub_category=classification.name,
        ))
        return

    if kind == 'maincategory':
        state.flush_pending()
        label = _category_label(classification.name)
        state.main_category = label
        state.sub_category = None
        if options.emit_main_categories:
            state.emit(OrderItem(
                type=ItemType.MAIN_CATEGORY,
                product_service=label,
                main_category=label,
            ))
        amount = classification.amount
        if options.category_amount_fallback and amount is not None and amount > 0:
            qty = classification.qty or Decimal('1')
            state.pending = OrderItem(
                type=ItemType.ITEM,
                product_service=label[:-1],
                qty=qty,
                rate=amount / qty if qty > 0 else amount,
                amount=amount,
                main_category=label,
            )
        return

    if kind == 'progress_addenda':
        # Progress payments only summarize addenda inside the contract email
        if not options.stop_at_totals:
            return
        state.flush_pending()
        for number, amount in classification.entries:
            name = f"Addendum #{number}"
            state.emit(OrderItem(
                type=ItemType.MAIN_CATEGORY,
                product_service=f"{name}:",
                main_category=f"{name}:",
            ))
            state.emit(OrderItem(
                type=ItemType.ITEM,
                product_service=name,
                qty=Decimal('1'),
                rate=amount,
                amount=amount,
                main_category=f"{name}:",
            ))
        state.stopped = True
        return

    if kind == 'item':
        state.pending = None
        if not _keep_item(classification, options):
            logger.debug(f"Dropping zero-amount row: {classification.name[:60]}")
            return

        qty = classification.qty
        amount = classification.amount
        rate = None
        if options.derive_rate:
            if classification.rate is not None:
                rate = classification.rate
            else:
                rate = amount / qty if qty and qty > 0 else ZERO

        state.emit(OrderItem(
            type=ItemType.ITEM,
            product_service=classification.name,
            qty=qty,
            rate=rate,
            amount=amount,
            main_category=state.main_category,
            sub_category=state.sub_category,
        ))


def scan_rows(rows: List[Row], options: Optional[ScanOptions] = None) -> List[OrderItem]:
    """
    Walk rows in order and build the item hierarchy.

    Category assignment persists until a new header overrides it; a new main
    category clears the current subcategory.

    Args:
        rows: Rows in table order
        options: Scan behaviour, defaults to the email-table behaviour

    Returns:
        Order items in positional order
    """
    options = options or ScanOptions()
    state = ScanState()

    for row in rows:
        classification = classify_row(row)
        if classification is None:
            logger.debug(f"Unclassified row ignored: {row.text[:80]}")
            continue

        _apply(classification, state, options)
        if state.stopped:
            break

    state.flush_pending()
    return state.items


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def _normalize_newlines(text: str) -> str:
    return text.replace('\r\n', '\n').replace('\r', '\n')


def extract_order_items(text: str) -> List[OrderItem]:
    """
    Extract the ordered item hierarchy from a contract's plain-text body.

    Scanning starts after the DESCRIPTION/QTY column header when the body has
    one. Blank or non-numeric amount cells count as 0.

    Args:
        text: Plain-text rendering of the email body

    Returns:
        Order items in table order

    Raises:
        ExtractionError: If the text is empty or has no heading and no
            item-shaped line at all
    """
    if not text or not text.strip():
        raise ExtractionError("Cannot extract order items from empty text")

    lines = _normalize_newlines(text).split('\n')
    start = 0
    for index, line in enumerate(lines):
        if patterns.COLUMN_HEADER.search(line):
            start = index + 1
            break

    items = scan_rows([row_from_line(line) for line in lines[start:]])
    if not items:
        raise ExtractionError("No category heading or line item found in document text")

    logger.info(f"Extracted {len(items)} rows from contract text")
    return items


def extract_order_items_html(html: str) -> List[OrderItem]:
    """
    Extract the ordered item hierarchy from a contract email's HTML body.

    Args:
        html: HTML body of the contract email

    Returns:
        Order items in table order, including ``Addendum #n`` rows taken from
        the progress-payments table

    Raises:
        ExtractionError: If no items table exists or it yields no rows
    """
    if not html or not html.strip():
        raise ExtractionError("Cannot extract order items from empty HTML")

    soup = BeautifulSoup(html, 'html.parser')
    table = find_items_table(soup)
    if table is None:
        raise ExtractionError("Order items table not found")

    rows = [row_from_html(tr) for tr in direct_rows(table)]
    items = scan_rows(rows, ScanOptions(item_filter='positive_or_indented'))
    if not items:
        raise ExtractionError("Order items table contained no recognizable rows")

    logger.info(f"Extracted {len(items)} rows from contract HTML")
    return items


# Location strategies, tried in order; earlier strategies win per field. A
# one-line "Address: street, city, ST zip" is split before the labelled pass
# would take the whole line as the street.

def _labelled_fields(lines: List[str]) -> Dict[str, Any]:
    header = '\n'.join(lines)
    fields: Dict[str, Any] = {}
    for name, pattern in patterns.LABEL_PATTERNS.items():
        if name == 'order_grand_total':
            continue
        match = pattern.search(header)
        if match:
            fields[name] = clean_text(match.group(1))
    return fields


def _combined_address_fields(lines: List[str]) -> Dict[str, Any]:
    # "Address: 123 Main St, Irvine, CA 92618"
    match = patterns.LABEL_PATTERNS['street_address'].search('\n'.join(lines))
    if not match:
        return {}
    parts = [part.strip() for part in match.group(1).split(',')]
    if len(parts) < 3:
        return {}
    tail = patterns.CITY_STATE_ZIP.match(f"{parts[-2]}, {parts[-1]}")
    if not tail:
        return {}
    return {
        'street_address': ', '.join(parts[:-2]),
        'city': tail.group(1).strip(),
        'state': tail.group(2),
        'zip': tail.group(3),
    }


def _positional_fields(lines: List[str]) -> Dict[str, Any]:
    fields: Dict[str, Any] = {}
    for index, line in enumerate(lines):
        match = patterns.CITY_STATE_ZIP.match(line)
        if not match:
            continue
        fields.update(city=match.group(1).strip(), state=match.group(2), zip=match.group(3))

        previous = [(i, l.strip()) for i, l in enumerate(lines[:index]) if l.strip()]
        if previous and patterns.STREET_LINE.match(previous[-1][1]):
            fields['street_address'] = previous[-1][1]
            if len(previous) > 1 and patterns.PERSON_NAME_LINE.match(previous[-2][1]):
                fields['client_name'] = previous[-2][1]
        break

    header = '\n'.join(lines)
    email = patterns.EMAIL_TOKEN.search(header)
    if email:
        fields['email'] = email.group(0)
    phone = patterns.PHONE_TOKEN.search(header)
    if phone:
        fields['phone'] = phone.group(0).strip()
    return fields


LOCATION_STRATEGIES: List[Tuple[str, Callable[[List[str]], Dict[str, Any]]]] = [
    ('combined_address', _combined_address_fields),
    ('labelled', _labelled_fields),
    ('positional', _positional_fields),
]


def extract_location(text: str, scan_lines: Optional[int] = None) -> Location:
    """
    Extract customer and job-site fields from a contract's plain-text body.

    Labelled lines ("Client:", "Address:" ...) win over positional guesses.
    A missing DBX customer id is not an error: the returned Location simply
    reports ``is_location_parsed == False``.

    Args:
        text: Plain-text rendering of the email body
        scan_lines: Number of leading lines searched for customer fields

    Returns:
        Location with every field that could be recognized

    Raises:
        ExtractionError: If the text is empty
    """
    if not text or not text.strip():
        raise ExtractionError("Cannot extract location from empty text")

    if scan_lines is None:
        scan_lines = get_section('document_processor').get('location_scan_lines', 80)

    lines = _normalize_newlines(text).split('\n')
    header_lines = lines[:scan_lines]

    fields: Dict[str, Any] = {}
    for name, strategy in LOCATION_STRATEGIES:
        for key, value in strategy(header_lines).items():
            if value and not fields.get(key):
                fields[key] = value

    # The grand total sits below the item table, outside the header region
    total_match = patterns.LABEL_PATTERNS['order_grand_total'].search(_normalize_newlines(text))

    location = Location(
        dbx_customer_id=fields.get('dbx_customer_id'),
        client_name=fields.get('client_name', ''),
        email=fields.get('email'),
        phone=fields.get('phone'),
        street_address=fields.get('street_address', ''),
        city=fields.get('city', ''),
        state=fields.get('state', ''),
        zip=fields.get('zip', ''),
        order_no=fields.get('order_no', ''),
        order_grand_total=normalize_amount(total_match.group(1)) if total_match else None,
    )

    if not location.is_location_parsed:
        logger.warning("DBX Customer ID not found; document treated as unparsed")
    if not (location.client_name or location.street_address):
        logger.warning(f"Could not extract client name or address. Text sample: {text[:200]!r}")

    return location


def extract_contract(text: str, html: Optional[str] = None) -> ContractTable:
    """
    Extract location and items from one contract email.

    The HTML items table is preferred when present; otherwise the plain-text
    body is scanned.

    Args:
        text: Plain-text body
        html: Optional HTML body

    Returns:
        ContractTable with the location and ordered items
    """
    if (not text or not text.strip()) and html:
        text = BeautifulSoup(html, 'html.parser').get_text('\n')

    location = extract_location(text)

    items = None
    if html and html.strip():
        soup = BeautifulSoup(html, 'html.parser')
        if find_items_table(soup) is not None:
            items = extract_order_items_html(html)

    if items is None:
        items = extract_order_items(text)

    return ContractTable(location=location, items=items)
