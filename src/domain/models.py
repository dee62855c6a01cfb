"""
Data models for email processing domain.

These type-safe data structures define clear contracts between components.
The validated ticket itself lives in domain.ticket.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Dict, Any

from bs4 import BeautifulSoup

from .ticket import Ticket


def html_to_text(html: str) -> str:
    """Visible text of an HTML body (script and style removed, entities decoded)."""
    soup = BeautifulSoup(html, "html.parser")

    for element in soup(["script", "style"]):
        element.decompose()

    lines = (line.strip() for line in soup.get_text(separator=" ").splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    return " ".join(chunk for chunk in chunks if chunk)


class ProcessingStatus(str, Enum):
    """Pipeline states, in order. ERROR is terminal."""
    STARTED = 'started'
    PARSED = 'parsed'
    ANALYZED = 'analyzed'
    COMPLETED = 'completed'
    ERROR = 'error'


@dataclass
class Attachment:
    """
    Email attachment.

    Attributes:
        filename: Original filename
        content_type: MIME type (e.g., "image/png", "application/pdf")
        size: Size in bytes
        content: Binary content (may be None if not extracted)
    """
    filename: str
    content_type: str
    size: int
    content: Optional[bytes] = None

    def to_dict(self) -> Dict[str, Any]:
        """Metadata only; binary content is never serialized."""
        return {
            'filename': self.filename,
            'content_type': self.content_type,
            'size': self.size,
        }


@dataclass(frozen=True)
class ParsedEmail:
    """
    Structured fields derived once from a raw email.

    Attributes:
        subject: Subject line (empty string if absent)
        from_address: Sender as it appears in the From header
        to_addresses: Recipients from the To header
        cc_addresses: Recipients from the Cc header
        date: Parsed Date header (None if absent or unparseable)
        message_id: Message-ID header (empty string if absent)
        text_body: Plain text body (empty string if not present)
        html_body: HTML body (empty string if not present)
        attachments: Attachments found in the message
    """
    subject: str
    from_address: str
    to_addresses: List[str]
    text_body: str
    html_body: str
    cc_addresses: List[str] = field(default_factory=list)
    date: Optional[datetime] = None
    message_id: str = ''
    attachments: List[Attachment] = field(default_factory=list)

    @property
    def text_for_classifier(self) -> str:
        """
        Best available text to send to the classifier.

        Priority: text_body > visible text of html_body > subject
        """
        if self.text_body.strip():
            return self.text_body
        if self.html_body.strip():
            text = html_to_text(self.html_body)
            if text:
                return text
        return self.subject

    def to_dict(self) -> Dict[str, Any]:
        return {
            'subject': self.subject,
            'from': self.from_address,
            'to': list(self.to_addresses),
            'cc': list(self.cc_addresses),
            'date': self.date.isoformat() if self.date else None,
            'message_id': self.message_id,
            'text': self.text_body,
            'html': self.html_body,
            'attachments': [a.to_dict() for a in self.attachments],
        }


@dataclass(frozen=True)
class StoredObject:
    """An object listed from the store."""
    key: str
    last_modified: Optional[datetime]
    size: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'key': self.key,
            'last_modified': self.last_modified.isoformat() if self.last_modified else None,
            'size': self.size,
        }


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of notifying one recipient."""
    destination: str
    success: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'destination': self.destination, 'success': self.success}
        if self.error is not None:
            result['error'] = self.error
        return result


@dataclass(frozen=True)
class ProcessingRecord:
    """
    Audit/metrics record emitted once per processed email.

    On the error path destination_key is None, status is "error" and
    failed_at holds the last status reached before the failure.
    """
    source_key: str
    status: ProcessingStatus
    duration_ms: int
    destination_key: Optional[str] = None
    ticket_type: Optional[str] = None
    delivery_results: List[DeliveryResult] = field(default_factory=list)
    failed_at: Optional[ProcessingStatus] = None
    error: Optional[str] = None

    @property
    def is_error(self) -> bool:
        return self.status == ProcessingStatus.ERROR

    def to_log_dict(self) -> Dict[str, Any]:
        if self.is_error:
            return {
                'event': 'email_processing_error',
                'error': self.error,
                'status': self.failed_at.value if self.failed_at else None,
                'ticket_type': self.ticket_type,
                'message_delivery_status': [d.to_dict() for d in self.delivery_results],
                'processing_time_ms': self.duration_ms,
                'source_key': self.source_key,
            }
        return {
            'event': 'email_processed',
            'processing_time_ms': self.duration_ms,
            'status': self.status.value,
            'ticket_type': self.ticket_type,
            'message_delivery_status': [d.to_dict() for d in self.delivery_results],
            'source_key': self.source_key,
            'destination_key': self.destination_key,
        }


@dataclass
class PipelineResult:
    """
    Result of a successful pipeline run for one email.

    Attributes:
        source_key: Original object key
        email: Parsed email
        ticket: Validated classification
        processed_location: Key the email was archived to
        processing_time_ms: Elapsed time for the whole run
        delivery_status: One DeliveryResult per notified recipient
    """
    source_key: str
    email: ParsedEmail
    ticket: Ticket
    processed_location: str
    processing_time_ms: int
    delivery_status: List[DeliveryResult] = field(default_factory=list)

    @property
    def successful_deliveries(self) -> int:
        return sum(1 for d in self.delivery_status if d.success)

    @property
    def failed_deliveries(self) -> int:
        return sum(1 for d in self.delivery_status if not d.success)

    def to_dict(self) -> Dict[str, Any]:
        result = {'key': self.source_key}
        result.update(self.email.to_dict())
        result.update({
            'parsed_content': self.ticket.to_dict(),
            'processed_location': self.processed_location,
            'processing_time_ms': self.processing_time_ms,
            'message_delivery_status': [d.to_dict() for d in self.delivery_status],
        })
        return result

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        return (
            f"PipelineResult(source_key={self.source_key}, type={self.ticket.type.value}, "
            f"processed_location={self.processed_location})"
        )
