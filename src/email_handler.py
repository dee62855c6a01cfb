"""
AWS Lambda handlers for the service-request email pipeline.

Thin orchestration layer that delegates to EmailProcessor.
Policy: one email's failure never fails the batch; only a failed listing
returns a 500.
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Dict

from config import Settings, load_settings
from domain.email_processor import EmailProcessor
from integrations.openai_classifier import OpenAITicketClassifier
from integrations.openphone import OpenPhoneNotifier
from services.s3 import S3ObjectStore

# Load configuration once; fail fast if anything required is missing
settings = load_settings()

# Configure logging
logger = logging.getLogger()
logger.setLevel(settings.log_level)

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    console_handler.setLevel(settings.log_level)
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

# Initialize object store once at module level (reused across invocations)
object_store = S3ObjectStore(settings.bucket_name)


def build_processor(settings: Settings, store) -> EmailProcessor:
    """
    Build an EmailProcessor with fresh API clients.

    Async HTTP clients are bound to the event loop that first uses them,
    and each invocation runs its own loop, so they are built per call and
    closed before that loop ends.
    """
    classifier = OpenAITicketClassifier(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        company_name=settings.company_name
    )
    notifier = OpenPhoneNotifier(
        api_key=settings.openphone_api_key,
        from_number=settings.openphone_from_number,
        api_url=settings.openphone_api_url,
        timeout=settings.http_timeout_seconds
    )
    return EmailProcessor(settings, store, classifier, notifier)


async def _run_and_close(processor: EmailProcessor, operation: Awaitable[Any]) -> Any:
    try:
        return await operation
    finally:
        await processor.close()


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'body': json.dumps(body, default=str)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process every pending email under the incoming prefix.

    Args:
        event: Lambda event (ignored; scheduled invocations send no input)
        context: Lambda context

    Returns:
        Dict with statusCode 200 and a per-email success/failure breakdown,
        or statusCode 500 if the pending emails could not be listed
    """
    logger.info("=" * 70)
    logger.info("Service Request Email Processor - Started")
    logger.info("=" * 70)

    processor = build_processor(settings, object_store)

    try:
        body = asyncio.run(_run_and_close(processor, processor.process_pending()))
    except Exception as e:
        logger.error(f"Error processing emails: {e}", exc_info=True)
        return _response(500, {
            'message': 'Error processing emails',
            'error': str(e)
        })

    logger.info("=" * 70)
    logger.info(f"Batch processing complete: {body['successful'] + body['failed']} email(s)")
    logger.info(f"  Success: {body['successful']}")
    logger.info(f"  Errors: {body['failed']}")
    logger.info("=" * 70)

    return _response(200, body)


def single_email_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Process one email by key (diagnostics).

    Expected event format:
    {
        "key": "incoming/<tenant>/<id>"
    }
    """
    key = (event or {}).get('key')
    if not key:
        return _response(400, {'error': 'key is required'})

    processor = build_processor(settings, object_store)

    try:
        result = asyncio.run(_run_and_close(processor, processor.process_key(key)))
    except Exception as e:
        logger.error(f"Error processing email {key}: {e}", exc_info=True)
        return _response(500, {
            'message': 'Error processing email',
            'key': key,
            'error': str(e)
        })

    logger.info(f"Processed {key}: {result!r}")
    return _response(200, result.to_dict())


def list_emails_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """List pending emails without processing them."""
    processor = build_processor(settings, object_store)

    try:
        pending = asyncio.run(_run_and_close(processor, processor.list_pending()))
    except Exception as e:
        logger.error(f"Error listing emails: {e}", exc_info=True)
        return _response(500, {
            'message': 'Error listing emails',
            'error': str(e)
        })

    logger.info(f"Found {len(pending)} emails to process")
    return _response(200, {
        'count': len(pending),
        'emails': [obj.to_dict() for obj in pending]
    })
