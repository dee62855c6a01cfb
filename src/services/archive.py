"""
Archival of processed emails.

An email is moved out of the incoming prefix by copying it to its
processed key and only then deleting the original. Until that move
succeeds the incoming object is the only copy of record. A crash between
copy and delete leaves a duplicate, never a loss; duplicates are not
reconciled on restart.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Callable, Optional

from domain.errors import ArchivalError
from domain.ticket import Ticket

logger = logging.getLogger(__name__)

SERVICE_REQUESTS_DIR = 'service_requests'
NON_SERVICE_REQUESTS_DIR = 'non_service_requests'
ERRORS_PREFIX = 'errors/'

_UNSAFE_CHARS = re.compile(r'[^a-z0-9\-_.]')
_UNDERSCORE_RUNS = re.compile(r'_+')


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def key_tail(key: str) -> str:
    """Last path segment of an object key."""
    return key.rsplit('/', 1)[-1]


def slugify(filename: str) -> str:
    """Lower-case; anything outside [a-z0-9-_.] becomes "_"; collapse "_" runs."""
    filename = _UNSAFE_CHARS.sub('_', filename.lower())
    return _UNDERSCORE_RUNS.sub('_', filename)


def _location_segment(ticket: Ticket) -> str:
    if ticket.location is not None:
        parts = [part for part in (ticket.location.city, ticket.location.state) if part]
        if parts:
            return '_'.join(parts)
    return 'unknown_location'


def build_archive_key(
    source_key: str,
    is_service_request: bool,
    ticket: Optional[Ticket],
    now: datetime,
    tenant: str
) -> str:
    """
    Compute the processed key for an email.

    Layout:
        processed/<tenant>/<service_requests|non_service_requests>/<YYYY-MM>/<slug>

    Service-request slugs encode date, city_state, system type and urgency
    before the original filename; other emails get date and filename only.

    Example:
        >>> build_archive_key("incoming/acme/abc123", True, ticket, now, "acme")
        'processed/acme/service_requests/2025-01/2025-01-15_salt_lake_city_ut_heating_emergency_abc123'
    """
    request_dir = SERVICE_REQUESTS_DIR if is_service_request else NON_SERVICE_REQUESTS_DIR
    month_dir = now.strftime('%Y-%m')
    date = now.strftime('%Y-%m-%d')
    tail = key_tail(source_key)

    if is_service_request and ticket is not None:
        system_type = ticket.system_type.value if ticket.system_type else 'general'
        urgency = ticket.urgency.value if ticket.urgency else 'normal'
        filename = f"{date}_{_location_segment(ticket)}_{system_type}_{urgency}_{tail}"
    else:
        filename = f"{date}_{tail}"

    return f"processed/{tenant}/{request_dir}/{month_dir}/{slugify(filename)}"


def build_error_key(source_key: str, now: datetime) -> str:
    epoch_millis = int(now.timestamp() * 1000)
    return f"{ERRORS_PREFIX}{key_tail(source_key)}_{epoch_millis}"


class ArchiveMover:
    """
    Moves processed emails to their archive location.

    Args:
        store: Object store with async copy_object/delete_object
        tenant: Tenant segment of the processed prefix
        clock: Returns the current time (UTC)
    """

    def __init__(self, store, tenant: str, clock: Callable[[], datetime] = _utc_now):
        self.store = store
        self.tenant = tenant
        self.clock = clock

    async def move_to_processed(
        self,
        source_key: str,
        is_service_request: bool,
        ticket: Optional[Ticket] = None
    ) -> str:
        """
        Copy the email to its processed key, then delete the original.

        Args:
            source_key: Key of the incoming email
            is_service_request: Selects the service_requests directory
            ticket: Validated ticket used to build the filename

        Returns:
            str: The processed key

        Raises:
            ArchivalError: If the copy or the delete fails. A best-effort
                copy to errors/<name>_<epochMillis> is attempted first.
        """
        now = self.clock()
        destination_key = build_archive_key(
            source_key, is_service_request, ticket, now, self.tenant
        )

        try:
            await self.store.copy_object(source_key, destination_key)
            await self.store.delete_object(source_key)
        except Exception as e:
            logger.error(f"Error moving {source_key} to processed folder: {e}")
            error_key = await self._copy_to_error_location(source_key)
            raise ArchivalError(
                f"Failed to archive {source_key}: {e}",
                source_key=source_key,
                error_key=error_key
            ) from e

        logger.info(f"Email archived: {'/'.join(destination_key.split('/')[-3:])}")
        return destination_key

    async def _copy_to_error_location(self, source_key: str) -> Optional[str]:
        error_key = build_error_key(source_key, self.clock())
        try:
            await self.store.copy_object(source_key, error_key)
        except Exception as e:
            logger.error(f"Failed to copy {source_key} to error location {error_key}: {e}")
            return None

        logger.warning(f"Copied {source_key} to error location {error_key}")
        return error_key
