"""
Email processing pipeline - core business logic.

This module handles end-to-end processing of one incoming email:
1. Validate inputs (status: started)
2. Parse the raw MIME content (status: parsed)
3. Classify the body with retries and validate the ticket (status: analyzed)
4. Notify every recipient in parallel if it is a service request
5. Archive the email once all notifications have resolved (status: completed)
6. Emit a ProcessingRecord on success and on failure

Per-recipient notification failures are recorded, never raised.
Per-email failures propagate from process_email(); the batch methods
contain them and report them per key.
"""

import asyncio
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

import httpx

from config import Settings
from .errors import InvalidInput, NotificationTransportError
from .models import (
    DeliveryResult,
    ParsedEmail,
    PipelineResult,
    ProcessingRecord,
    ProcessingStatus,
    StoredObject,
)
from .ticket import Ticket, parse_classifier_output
from services import email as email_service
from services.archive import ArchiveMover
from services.formatter import format_service_ticket_message
from services.retry import retry_async
from integrations.openai_classifier import TicketClassifier

logger = logging.getLogger(__name__)

# Invalid numbers and messages are not retried
RETRYABLE_DELIVERY_ERRORS = (NotificationTransportError, httpx.HTTPError)


def _elapsed_ms(start_time: float) -> int:
    return int((time.monotonic() - start_time) * 1000)


def log_processing_record(record: ProcessingRecord) -> None:
    """Default record sink: one JSON line per email."""
    line = json.dumps(record.to_log_dict())
    if record.is_error:
        logger.error(line)
    else:
        logger.info(line)


class EmailProcessor:
    """
    Handles end-to-end email processing pipeline.

    Args:
        settings: Process-wide configuration
        store: Object store (list/get/copy/delete coroutines)
        classifier: TicketClassifier returning raw JSON text
        notifier: Sender with an async send(message, number) method
        archiver: ArchiveMover (built from store and settings if None)
        record_sink: Receives one ProcessingRecord per email
        sleep: Awaitable sleep used between retries
    """

    def __init__(
        self,
        settings: Settings,
        store,
        classifier: TicketClassifier,
        notifier,
        archiver: Optional[ArchiveMover] = None,
        record_sink: Callable[[ProcessingRecord], None] = log_processing_record,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.settings = settings
        self.store = store
        self.classifier = classifier
        self.notifier = notifier
        self.archiver = archiver if archiver is not None else ArchiveMover(store, settings.tenant)
        self.record_sink = record_sink
        self._sleep = sleep

    async def process_email(
        self,
        content: Union[bytes, str],
        source_key: str,
        notification_numbers: Optional[Sequence[str]] = None
    ) -> PipelineResult:
        """
        Run the full pipeline for one email.

        Args:
            content: Raw MIME content
            source_key: Object key of the email in the incoming prefix
            notification_numbers: Recipients (defaults to settings)

        Returns:
            PipelineResult: Parsed email, ticket, archive key, timing and
                per-recipient delivery results

        Raises:
            InvalidInput: If content or source_key is empty
            ParseError: If the email cannot be parsed
            SchemaValidationError: If the classifier output is invalid
            ArchivalError: If the email could not be archived
            Exception: The classifier's last error after all retries
        """
        start_time = time.monotonic()
        status = ProcessingStatus.STARTED
        ticket = None
        delivery_results: List[DeliveryResult] = []

        if notification_numbers is None:
            notification_numbers = self.settings.notification_numbers

        try:
            if not content:
                raise InvalidInput("Email content is required")
            if not source_key:
                raise InvalidInput("Source key is required")

            parsed = email_service.parse_email(content)
            status = ProcessingStatus.PARSED

            ticket = await self._classify(parsed, source_key)
            status = ProcessingStatus.ANALYZED
            logger.info(f"Classified {source_key}: type={ticket.type.value}")

            if ticket.is_service_request:
                delivery_results = await self._notify_all(ticket, notification_numbers)

            # Archive only after every notification attempt has resolved
            destination_key = await self.archiver.move_to_processed(
                source_key, ticket.is_service_request, ticket
            )
            status = ProcessingStatus.COMPLETED

        except Exception as e:
            self._emit(ProcessingRecord(
                source_key=source_key,
                status=ProcessingStatus.ERROR,
                failed_at=status,
                duration_ms=_elapsed_ms(start_time),
                ticket_type=ticket.type.value if ticket is not None else None,
                delivery_results=list(delivery_results),
                error=str(e),
            ))
            raise

        duration_ms = _elapsed_ms(start_time)
        self._emit(ProcessingRecord(
            source_key=source_key,
            destination_key=destination_key,
            status=status,
            ticket_type=ticket.type.value,
            delivery_results=list(delivery_results),
            duration_ms=duration_ms,
        ))

        return PipelineResult(
            source_key=source_key,
            email=parsed,
            ticket=ticket,
            processed_location=destination_key,
            processing_time_ms=duration_ms,
            delivery_status=delivery_results,
        )

    async def close(self) -> None:
        """Release the classifier's client; call once per event loop."""
        await self.classifier.close()

    async def process_key(self, key: str) -> PipelineResult:
        """
        Fetch one email from the store and process it.

        Used for single-email diagnostics; no listing is required.
        """
        if not key:
            raise InvalidInput("Source key is required")

        logger.info(f"Processing email: {key}")
        content = await self.store.get_object(key)
        return await self.process_email(content, key)

    async def list_pending(self) -> List[StoredObject]:
        """List emails waiting under the incoming prefix (folder markers skipped)."""
        objects = await self.store.list_objects(self.settings.incoming_prefix)
        return [obj for obj in objects if not obj.key.endswith('/')]

    async def process_pending(self) -> Dict[str, Any]:
        """
        Process every pending email concurrently.

        One email's failure never affects another. Errors from the listing
        call itself propagate to the caller.

        Returns:
            Dict: {message, successful, failed, results: {successful, failed}}
        """
        pending = await self.list_pending()
        logger.info(f"Found {len(pending)} emails to process")

        outcomes = await asyncio.gather(*(self._process_contained(obj.key) for obj in pending))

        successful = []
        failed = []
        for key, result, error in outcomes:
            if error is None:
                successful.append(result.to_dict())
            else:
                failed.append({'key': key, 'error': error})

        return {
            'message': f"Successfully processed {len(successful)} out of {len(pending)} emails",
            'successful': len(successful),
            'failed': len(failed),
            'results': {
                'successful': successful,
                'failed': failed,
            },
        }

    async def _process_contained(self, key: str) -> Tuple[str, Optional[PipelineResult], Optional[str]]:
        try:
            result = await self.process_key(key)
        except Exception as e:
            logger.error(f"Error processing email {key}: {e}", exc_info=True)
            return key, None, str(e) or type(e).__name__
        logger.info(f"Successfully processed email: {key}")
        return key, result, None

    async def _classify(self, parsed: ParsedEmail, source_key: str) -> Ticket:
        text = parsed.text_for_classifier
        raw = await retry_async(
            lambda: self.classifier.classify(text),
            max_attempts=self.settings.max_retries,
            base_delay=self.settings.retry_delay_seconds,
            description=f"classification of {source_key}",
            sleep=self._sleep,
        )
        # Validation failures are not retried
        return parse_classifier_output(raw)

    async def _notify_all(
        self,
        ticket: Ticket,
        notification_numbers: Sequence[str]
    ) -> List[DeliveryResult]:
        message = format_service_ticket_message(ticket)
        if not message:
            return []

        logger.info(f"Sending notifications to: {', '.join(notification_numbers)}")
        return list(await asyncio.gather(
            *(self._notify_one(message, number) for number in notification_numbers)
        ))

    async def _notify_one(self, message: str, number: str) -> DeliveryResult:
        try:
            await retry_async(
                lambda: self.notifier.send(message, number),
                max_attempts=self.settings.max_retries,
                base_delay=self.settings.retry_delay_seconds,
                retry_on=RETRYABLE_DELIVERY_ERRORS,
                description=f"notification to {number}",
                sleep=self._sleep,
            )
        except Exception as e:
            logger.error(f"Failed to deliver message to {number}: {e}")
            return DeliveryResult(destination=number, success=False, error=str(e))

        logger.info(f"Message delivered successfully to {number}")
        return DeliveryResult(destination=number, success=True)

    def _emit(self, record: ProcessingRecord) -> None:
        try:
            self.record_sink(record)
        except Exception as e:
            logger.warning(f"Failed to emit processing record for {record.source_key}: {e}")
