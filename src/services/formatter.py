"""
Plain-text SMS rendering of service tickets.
"""

from typing import Optional

from domain.ticket import SystemType, Ticket, Urgency

URGENCY_EMOJIS = {
    Urgency.EMERGENCY: '🚨',
    Urgency.HIGH: '❗',
    Urgency.MEDIUM: '⚠️',
    Urgency.LOW: '📝',
}

SYSTEM_EMOJIS = {
    SystemType.HEATING: '🔥',
    SystemType.COOLING: '❄️',
    SystemType.PLUMBING: '🚰',
    SystemType.OTHER: '🔧',
}


def format_location(ticket: Ticket) -> str:
    """Comma-joined non-empty location parts (street, city, state, zip)."""
    if ticket.location is None:
        return ''
    parts = [
        ticket.location.street_address,
        ticket.location.city,
        ticket.location.state,
        ticket.location.zip,
    ]
    return ', '.join(part for part in parts if part)


def format_service_ticket_message(ticket: Optional[Ticket]) -> Optional[str]:
    """
    Render a ticket as an SMS body.

    Args:
        ticket: Validated ticket

    Returns:
        The message text, or None if the ticket is not a service request
    """
    if ticket is None or not ticket.is_service_request:
        return None

    parts = []

    parts.append(f"{URGENCY_EMOJIS.get(ticket.urgency, '')} New Service Request")
    parts.append('')

    if ticket.source:
        parts.append(f"Source: {ticket.source}")
        parts.append('')

    if ticket.customer_name:
        parts.append(f"Customer: {ticket.customer_name}")

    location = format_location(ticket)
    if location:
        parts.append(f"Location: {location}")

    if ticket.system_type:
        parts.append(f"System: {SYSTEM_EMOJIS[ticket.system_type]} {ticket.system_type.value}")

    if ticket.description:
        parts.append('')
        parts.append(f"Issue: {ticket.description}")

    if ticket.requested_date:
        parts.append('')
        parts.append(f"Requested Date: {ticket.requested_date}")

    if ticket.contact_phone:
        parts.append(f"Contact: {ticket.contact_phone}")

    if ticket.notes:
        parts.append('')
        parts.append(f"Notes: {ticket.notes}")

    if ticket.ticket_link:
        parts.append('')
        parts.append(ticket.ticket_link)

    return '\n'.join(parts)
