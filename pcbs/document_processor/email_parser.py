"""
Email (.eml) decoding for contract uploads.
"""

import base64
import binascii
import logging
from email import message_from_bytes, policy
from email.message import EmailMessage
from email.utils import parsedate_to_datetime
from typing import Optional, Union

from pcbs.document_processor.exceptions import MalformedInputError
from pcbs.document_processor.interfaces import ParsedEmail

logger = logging.getLogger(__name__)


def decode_upload(file_b64: Union[str, bytes]) -> bytes:
    """
    Decode a base64-encoded upload to raw bytes.

    Accepts data-URL prefixes (``data:message/rfc822;base64,...``).

    Raises:
        MalformedInputError: If the payload is missing or not valid base64
    """
    if not file_b64:
        raise MalformedInputError("Missing file")

    try:
        if isinstance(file_b64, bytes):
            file_b64 = file_b64.decode('ascii')
        if file_b64.startswith('data:') and ',' in file_b64:
            file_b64 = file_b64.split(',', 1)[1]
        return base64.b64decode(''.join(file_b64.split()), validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedInputError(f"File is not valid base64: {e}") from e


def _part_content(message: EmailMessage, subtype: str) -> str:
    part = message.get_body(preferencelist=(subtype,))
    if part is None:
        return ''
    try:
        return part.get_content()
    except (LookupError, UnicodeDecodeError) as e:
        logger.warning(f"Could not decode text/{subtype} part: {e}")
        payload = part.get_payload(decode=True) or b''
        return payload.decode('utf-8', errors='replace')


def _header(message: EmailMessage, name: str) -> Optional[str]:
    value = message.get(name)
    return str(value) if value is not None else None


def parse_email_document(raw: bytes) -> ParsedEmail:
    """
    Parse raw .eml bytes into text and HTML bodies plus headers.

    Args:
        raw: Raw RFC 822 message bytes

    Returns:
        ParsedEmail; missing parts are empty strings / None

    Raises:
        MalformedInputError: If ``raw`` is empty
    """
    if not raw:
        raise MalformedInputError("Empty email document")

    message = message_from_bytes(raw, policy=policy.default)

    date = None
    try:
        date_header = _header(message, 'Date')
        if date_header:
            date = parsedate_to_datetime(date_header)
    except (TypeError, ValueError) as e:
        logger.debug(f"Unparsable Date header: {e}")

    parsed = ParsedEmail(
        text=_part_content(message, 'plain'),
        html=_part_content(message, 'html'),
        subject=_header(message, 'Subject'),
        sender=_header(message, 'From'),
        date=date,
    )
    logger.debug(
        f"Parsed email '{parsed.subject}': {len(parsed.text)} text chars, {len(parsed.html)} HTML chars"
    )
    return parsed
