"""
Section detection for contract and addendum pages.

Decides which importable sections (original contract, optional packages,
addendum) a fetched page or contract email contains. Detection is advisory:
any failure degrades to a single ``original`` section and is only logged.
"""

import logging
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from pcbs.config import get_section
from pcbs.document_processor import patterns
from pcbs.document_processor.interfaces import DetectedSection, SectionType

logger = logging.getLogger(__name__)

_SECTION_ORDER = {
    SectionType.ORIGINAL: 0,
    SectionType.OPTIONAL_PACKAGE: 1,
    SectionType.ADDENDUM: 2,
}


def _page_text(html: str) -> str:
    return BeautifulSoup(html, 'html.parser').get_text('\n')


def _package_name(text: str, start: int, max_length: int) -> Optional[str]:
    """Text following the marker, on its line or the next, cut to ``max_length``."""
    match = patterns.OPTIONAL_PACKAGE_NAME.match(text, start)
    if not match:
        return None
    name = match.group(1).strip()
    if not name or patterns.OPTIONAL_PACKAGE.match(name):
        return None
    return name[:max_length]


def _optional_packages(text: str) -> List[DetectedSection]:
    max_length = get_section('document_processor').get('package_name_max_length', 100)
    sections = []
    for match in patterns.OPTIONAL_PACKAGE.finditer(text):
        number = int(match.group(1))
        if number <= 0:
            continue
        sections.append(DetectedSection(
            type=SectionType.OPTIONAL_PACKAGE,
            number=number,
            name=_package_name(text, match.start(), max_length),
        ))
    return sections


def _addendum(text: str) -> Optional[DetectedSection]:
    match = patterns.ADDENDUM_NUMBER.search(text)
    if match and int(match.group(1)) > 0:
        return DetectedSection(type=SectionType.ADDENDUM, number=int(match.group(1)))
    return None


def _fallback() -> List[DetectedSection]:
    return [DetectedSection(type=SectionType.ORIGINAL)]


def detect_sections(html: str) -> List[DetectedSection]:
    """
    Detect the sections of a fetched contract or addendum page.

    Args:
        html: Page HTML

    Returns:
        Original section first (when identity markers exist), then one section
        per optional package, then the addendum section. Never empty: a page
        without markers, or one that cannot be read, yields a single
        ``original`` section.
    """
    try:
        text = _page_text(html or '')

        sections = []
        if any(marker.search(text) for marker in patterns.CONTRACT_IDENTITY_MARKERS.values()):
            sections.append(DetectedSection(type=SectionType.ORIGINAL))
        sections.extend(_optional_packages(text))

        addendum = _addendum(text)
        if addendum is not None:
            sections.append(addendum)

        if not sections:
            logger.info("No section markers found, defaulting to original contract")
            return _fallback()
        return sections
    except Exception as e:
        logger.warning(f"Section detection failed, defaulting to original contract: {e}")
        return _fallback()


def detect_email_sections(html: Optional[str]) -> Tuple[List[DetectedSection], bool]:
    """
    Detect the sections of a contract email body.

    Any table in the email counts as the original contract.

    Args:
        html: HTML body of the email

    Returns:
        Tuple of (sections, has_table); an empty body yields ``([], False)``
    """
    if not html or not html.strip():
        return [], False

    try:
        soup = BeautifulSoup(html, 'html.parser')
        has_table = soup.find('table') is not None
        text = soup.get_text('\n')

        sections = []
        if has_table:
            sections.append(DetectedSection(type=SectionType.ORIGINAL))
        sections.extend(_optional_packages(text))

        addendum = _addendum(text)
        if addendum is not None:
            sections.append(addendum)
        return sections, has_table
    except Exception as e:
        logger.warning(f"Email section detection failed, defaulting to original contract: {e}")
        return _fallback(), True


def sort_sections(sections: List[DetectedSection]) -> List[DetectedSection]:
    """Order sections original, optional packages, addenda; by number within a type."""
    return sorted(
        sections,
        key=lambda section: (_SECTION_ORDER[section.type], section.number or 0)
    )
