"""
OpenPhone SMS transport.

Sends one text message per call. Retries are the caller's responsibility;
this module only validates inputs, performs the request and reports
failures as NotificationTransportError.

Usage:
    notifier = OpenPhoneNotifier(api_key="...", from_number="+18015550100")
    await notifier.send("New Service Request", "+18015550199")
"""

import logging
from typing import Any, Dict, Optional

import httpx

from config import DEFAULT_OPENPHONE_API_URL
from domain.errors import InvalidMessage, NotificationTransportError
from services.phone import validate_phone_number

logger = logging.getLogger(__name__)


class OpenPhoneNotifier:
    """
    Client for the OpenPhone messages API.

    Args:
        api_key: OpenPhone API key (sent as-is in the Authorization header)
        from_number: Origin number
        api_url: Messages endpoint
        timeout: Request timeout in seconds
        client: Shared httpx.AsyncClient; a short-lived client is used per
            send when None
    """

    def __init__(
        self,
        api_key: str,
        from_number: str,
        api_url: str = DEFAULT_OPENPHONE_API_URL,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.api_key = api_key
        self.from_number = from_number
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    async def send(self, message: str, to_number: str) -> Dict[str, Any]:
        """
        Send a text message to one recipient.

        Args:
            message: Message body (non-empty string)
            to_number: Destination number in any common notation

        Returns:
            Dict: Decoded JSON response from OpenPhone

        Raises:
            InvalidMessage: If message is empty or not a string
            InvalidPhoneNumber: If either number is invalid
            NotificationTransportError: On a non-2xx response or network error
        """
        if not message or not isinstance(message, str):
            raise InvalidMessage("Message is required and must be a string")

        formatted_to = validate_phone_number(to_number)
        formatted_from = validate_phone_number(self.from_number)

        payload = {
            'content': message,
            'from': formatted_from,
            'to': [formatted_to],
            'setInboxStatus': 'done',
        }
        headers = {
            'Content-Type': 'application/json',
            'Authorization': self.api_key,
        }

        logger.info(
            f"Sending OpenPhone request: from={formatted_from}, to={formatted_to}, "
            f"message_length={len(message)}"
        )

        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"OpenPhone request to {formatted_to} failed: {e}")
            raise NotificationTransportError(None, str(e)) from e

        if not response.is_success:
            logger.error(
                f"OpenPhone API error: status={response.status_code}, "
                f"reason={response.reason_phrase}, body={response.text[:500]}"
            )
            raise NotificationTransportError(response.status_code, response.text)

        try:
            return response.json()
        except ValueError:
            return {}
