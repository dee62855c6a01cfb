"""
Email classification with the OpenAI chat completions API.

The pipeline depends only on the TicketClassifier protocol: a coroutine
taking email text and returning the model's raw JSON text. Validation of
that text happens in domain.ticket, outside any retry.
"""

import logging
import time
from typing import Optional, Protocol

from openai import AsyncOpenAI

from config import DEFAULT_COMPANY_NAME, DEFAULT_OPENAI_MODEL
from domain.errors import ClassifierError, InvalidInput

logger = logging.getLogger(__name__)


SYSTEM_PROMPT_TEMPLATE = """You are a service coordinator for {company_name}. Your job is to parse emails and determine if they contain service requests.
Extract the information and return it in JSON format matching this schema:
{{
  "type": "service_request" or "not_service_request",
  "customer_name": "string (optional)",
  "location": {{
    "street_address": "string (optional)",
    "city": "string (optional)",
    "state": "string (optional)",
    "zip": "string (optional)"
  }},
  "source": "string (optional)",
  "description": "string (optional)",
  "urgency": "low" | "medium" | "high" | "emergency" (optional),
  "system_type": "heating" | "cooling" | "plumbing" | "other" (optional),
  "requested_date": "string (optional)",
  "contact_phone": "string (optional)",
  "notes": "string (optional)",
  "ticket_link": "string (optional)"
}}

For urgency levels:
- emergency: No heat/AC in extreme weather, flooding, gas leaks
- high: System not working but weather is mild
- medium: System working poorly
- low: Maintenance or future scheduling

Return ONLY valid JSON without any additional text or explanation.
For any optional fields that don't apply, use null instead of omitting them."""


def build_system_prompt(company_name: str = DEFAULT_COMPANY_NAME) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(company_name=company_name)


class TicketClassifier(Protocol):
    async def classify(self, text: str) -> str:
        ...

    async def close(self) -> None:
        ...


class OpenAITicketClassifier:
    """
    TicketClassifier backed by an OpenAI chat model in JSON mode.

    Args:
        api_key: OpenAI API key
        model: Chat completion model name
        company_name: Company named in the system prompt
        client: Pre-built AsyncOpenAI client (built from api_key if None)
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        company_name: str = DEFAULT_COMPANY_NAME,
        client: Optional[AsyncOpenAI] = None
    ):
        self.model = model
        self.system_prompt = build_system_prompt(company_name)
        # SDK retries disabled; the pipeline owns retry policy
        self._client = client if client is not None else AsyncOpenAI(api_key=api_key, max_retries=0)

    async def close(self) -> None:
        """Release the HTTP connection pool of the underlying client."""
        await self._client.close()

    async def classify(self, text: str) -> str:
        """
        Classify email text.

        Args:
            text: Plain-text email body

        Returns:
            str: Raw JSON text produced by the model (not yet validated)

        Raises:
            InvalidInput: If text is empty
            ClassifierError: If the model returns no content
            openai.APIError: For API failures
        """
        if not text or not text.strip():
            raise InvalidInput("Email text to classify cannot be empty")

        start_time = time.time()
        completion = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {'role': 'system', 'content': self.system_prompt},
                {'role': 'user', 'content': text},
            ],
            response_format={'type': 'json_object'},
        )

        if not completion.choices:
            raise ClassifierError("Classifier returned no choices")

        content = completion.choices[0].message.content
        if not content:
            raise ClassifierError("Classifier returned an empty response")

        logger.info(
            f"Classification completed: model={self.model}, "
            f"response_length={len(content)}, execution_time={time.time() - start_time:.2f}s"
        )
        return content
