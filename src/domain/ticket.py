"""
Service ticket schema.

The classifier's output is untrusted; validate_ticket() is the only way
to turn it into a Ticket. Absent optional fields always come back as
explicit None, never as missing keys.
"""

import json
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .errors import SchemaValidationError


class TicketType(str, Enum):
    SERVICE_REQUEST = 'service_request'
    NOT_SERVICE_REQUEST = 'not_service_request'


class Urgency(str, Enum):
    LOW = 'low'
    MEDIUM = 'medium'
    HIGH = 'high'
    EMERGENCY = 'emergency'


class SystemType(str, Enum):
    HEATING = 'heating'
    COOLING = 'cooling'
    PLUMBING = 'plumbing'
    OTHER = 'other'


class Location(BaseModel):
    """Service location; every part is optional."""
    model_config = ConfigDict(frozen=True)

    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None


class Ticket(BaseModel):
    """Validated classification result for one email."""
    model_config = ConfigDict(frozen=True)

    type: TicketType
    customer_name: Optional[str] = None
    location: Optional[Location] = None
    description: Optional[str] = None
    source: Optional[str] = None
    ticket_link: Optional[str] = None
    urgency: Optional[Urgency] = None
    system_type: Optional[SystemType] = None
    requested_date: Optional[str] = None
    contact_phone: Optional[str] = None
    notes: Optional[str] = None

    @property
    def is_service_request(self) -> bool:
        return self.type == TicketType.SERVICE_REQUEST

    def to_dict(self) -> Dict[str, Any]:
        """JSON-safe dict with every field present (None for unset)."""
        return self.model_dump(mode='json')


def _error_path(loc) -> str:
    parts = [str(part) for part in loc]
    return '.'.join(parts) if parts else '$'


def validate_ticket(raw: Any) -> Ticket:
    """
    Validate raw classifier output against the ticket schema.

    Args:
        raw: Decoded JSON value returned by the classifier

    Returns:
        Ticket: Validated ticket

    Raises:
        SchemaValidationError: If the value is not an object, "type" is
            missing or invalid, or any field has the wrong type or an
            enum value outside its allowed set. The error's path names
            the first offending field.
    """
    if not isinstance(raw, dict):
        raise SchemaValidationError(
            f"Classifier output must be a JSON object, got {type(raw).__name__}",
            path='$'
        )

    try:
        return Ticket.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        path = _error_path(first.get('loc', ()))
        raise SchemaValidationError(
            f"Invalid ticket field '{path}': {first.get('msg', 'invalid value')}",
            path=path
        ) from e


def parse_classifier_output(text: str) -> Ticket:
    """
    Decode the classifier's raw JSON text and validate it.

    Raises:
        SchemaValidationError: If the text is not valid JSON or fails validation
    """
    try:
        raw = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SchemaValidationError(f"Classifier output is not valid JSON: {e}", path='$') from e

    return validate_ticket(raw)
