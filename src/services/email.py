"""
Email parsing utilities.

This module turns raw MIME content fetched from S3 into a ParsedEmail.
"""

import logging
from email import policy
from email.message import EmailMessage
from email.parser import BytesParser
from typing import Dict, Any, List, Union

from domain.errors import ParseError
from domain.models import Attachment, ParsedEmail

logger = logging.getLogger(__name__)


def _decode_part(part: EmailMessage) -> str:
    try:
        # get_content() handles quoted-printable, base64, etc automatically
        return part.get_content()
    except (LookupError, UnicodeError, KeyError) as e:
        logger.warning(f"Failed to decode {part.get_content_type()} part with get_content(): {e}")
        payload = part.get_payload(decode=True)
        if payload:
            return payload.decode('utf-8', errors='ignore')
        return ''


def _is_attachment(part: EmailMessage) -> bool:
    content_disposition = str(part.get('Content-Disposition', ''))
    if not part.get_filename():
        return False
    # Images are often sent as "inline" in HTML emails; some clients set
    # no Content-Disposition at all
    return (
        'attachment' in content_disposition
        or 'inline' in content_disposition
        or part.get_content_type().startswith(('image/', 'application/'))
    )


def extract_email_body(msg: EmailMessage) -> Dict[str, Any]:
    """
    Extract text body, HTML body and attachments from a parsed message.

    Args:
        msg: Message parsed with policy.default

    Returns:
        Dictionary with text_body, html_body, and attachments
    """
    result = {
        'text_body': '',
        'html_body': '',
        'attachments': []
    }

    if not msg.is_multipart():
        content_type = msg.get_content_type()
        if content_type == 'text/plain':
            result['text_body'] = _decode_part(msg)
        elif content_type == 'text/html':
            result['html_body'] = _decode_part(msg)
        else:
            logger.warning(
                f"Unknown content type for non-multipart email: {content_type}. "
                f"Email body will be empty."
            )
        return result

    for part in msg.walk():
        if part.is_multipart():
            continue

        content_type = part.get_content_type()

        if _is_attachment(part):
            content = part.get_payload(decode=True) or b''
            result['attachments'].append(Attachment(
                filename=part.get_filename(),
                content_type=content_type,
                size=len(content),
                content=content
            ))
        elif content_type == 'text/plain' and not result['text_body']:
            result['text_body'] = _decode_part(part)
        elif content_type == 'text/html' and not result['html_body']:
            result['html_body'] = _decode_part(part)

    return result


def _address_list(msg: EmailMessage, header: str) -> List[str]:
    value = msg.get(header)
    if value is None:
        return []
    addresses = getattr(value, 'addresses', None)
    if addresses:
        return [str(address) for address in addresses]
    return [str(value)] if str(value) else []


def parse_email(content: Union[bytes, str]) -> ParsedEmail:
    """
    Parse raw email (MIME format) into a ParsedEmail.

    Args:
        content: Raw email bytes (str is accepted and UTF-8 encoded)

    Returns:
        ParsedEmail: Subject, addresses, date, bodies and attachments

    Raises:
        ParseError: If the content is empty, cannot be parsed, or has
            neither body text nor subject

    Example:
        >>> parsed = parse_email(b"From: a@example.com\\r\\nSubject: Hi\\r\\n\\r\\nHello")
        >>> parsed.text_body
        'Hello\\n'
    """
    if not content:
        raise ParseError("Email content is empty")

    if isinstance(content, str):
        content = content.encode('utf-8')

    try:
        msg = BytesParser(policy=policy.default).parsebytes(content)
        body = extract_email_body(msg)

        date_header = msg.get('Date')
        date = getattr(date_header, 'datetime', None) if date_header is not None else None

        parsed = ParsedEmail(
            subject=str(msg.get('Subject', '') or ''),
            from_address=str(msg.get('From', '') or ''),
            to_addresses=_address_list(msg, 'To'),
            cc_addresses=_address_list(msg, 'Cc'),
            date=date,
            message_id=str(msg.get('Message-ID', '') or ''),
            text_body=body['text_body'],
            html_body=body['html_body'],
            attachments=body['attachments'],
        )
    except (ValueError, TypeError, AttributeError, IndexError) as e:
        logger.error(f"Failed to parse email: {e}")
        raise ParseError(f"Failed to parse email: {e}") from e

    if not parsed.text_for_classifier.strip():
        raise ParseError("Email has no body content or subject")

    logger.info(
        f"Parsed email: subject={parsed.subject!r}, text={len(parsed.text_body)}, "
        f"html={len(parsed.html_body)}, attachments={len(parsed.attachments)}"
    )
    return parsed
