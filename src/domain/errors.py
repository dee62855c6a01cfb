"""
Exception types for the email intake pipeline.

Per-recipient errors (InvalidPhoneNumber, InvalidMessage,
NotificationTransportError) are contained and recorded as failed
deliveries. Every other error aborts processing of the email it was
raised for, and is reported by the batch as a keyed failure.
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""
    pass


class InvalidInput(PipelineError):
    """Raised when required inputs (content, source key) are missing."""
    pass


class ParseError(PipelineError):
    """Raised when raw email content cannot be parsed."""
    pass


class ObjectNotFoundError(PipelineError):
    """Raised when an S3 object or bucket does not exist."""
    pass


class ClassifierError(PipelineError):
    """Raised when the classifier returns no usable response."""
    pass


class SchemaValidationError(PipelineError):
    """
    Raised when classifier output does not match the ticket schema.

    Attributes:
        path: Dotted path of the offending field ("$" for the root value)
    """

    def __init__(self, message: str, path: str = '$'):
        super().__init__(message)
        self.path = path


class InvalidPhoneNumber(PipelineError):
    """Raised when a phone number cannot be normalized to +<11-15 digits>."""

    def __init__(self, number):
        super().__init__(f"Invalid phone number format: {number}")
        self.number = number


class InvalidMessage(PipelineError):
    """Raised when a notification message is empty or not a string."""
    pass


class NotificationTransportError(PipelineError):
    """
    Raised when the SMS transport rejects a send or cannot be reached.

    Attributes:
        status_code: HTTP status (None when no response was received)
        body: Response body or transport error description
    """

    def __init__(self, status_code: Optional[int], body: str):
        if status_code is None:
            message = f"OpenPhone API unreachable: {body}"
        else:
            message = f"OpenPhone API error: {status_code} {body}"
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ArchivalError(PipelineError):
    """
    Raised when an email could not be moved to its processed location.

    Attributes:
        source_key: Key of the email that failed to move
        error_key: Key of the best-effort error copy (None if that copy failed too)
    """

    def __init__(self, message: str, source_key: str, error_key: Optional[str] = None):
        super().__init__(message)
        self.source_key = source_key
        self.error_key = error_key
