"""
Tests for the OpenAI ticket classifier.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import ClassifierError, InvalidInput
from integrations.openai_classifier import OpenAITicketClassifier, build_system_prompt


def _completion(content):
    completion = MagicMock()
    completion.choices = [MagicMock(message=MagicMock(content=content))]
    return completion


@pytest.fixture
def mock_openai_client():
    client = MagicMock()
    client.chat.completions.create = AsyncMock()
    client.close = AsyncMock()
    return client


@pytest.fixture
def classifier(mock_openai_client):
    return OpenAITicketClassifier(
        api_key='sk-test',
        model='gpt-4o-mini',
        company_name='Acme Heating',
        client=mock_openai_client
    )


class TestBuildSystemPrompt:

    def test_prompt_names_company_and_schema(self):
        prompt = build_system_prompt('Acme Heating')

        assert 'service coordinator for Acme Heating' in prompt
        assert '"type": "service_request" or "not_service_request"' in prompt
        assert 'use null instead of omitting them' in prompt


class TestClassify:
    """Test the classify() call."""

    @pytest.mark.asyncio
    async def test_returns_raw_json_text(self, classifier, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion(
            '{"type": "service_request", "urgency": "emergency"}'
        )

        result = await classifier.classify('No heat, pipe frozen')

        assert result == '{"type": "service_request", "urgency": "emergency"}'
        kwargs = mock_openai_client.chat.completions.create.await_args.kwargs
        assert kwargs['model'] == 'gpt-4o-mini'
        assert kwargs['response_format'] == {'type': 'json_object'}
        assert kwargs['messages'][0]['role'] == 'system'
        assert 'Acme Heating' in kwargs['messages'][0]['content']
        assert kwargs['messages'][1] == {'role': 'user', 'content': 'No heat, pipe frozen'}

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, classifier, mock_openai_client):
        with pytest.raises(InvalidInput):
            await classifier.classify('   ')

        mock_openai_client.chat.completions.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_empty_response(self, classifier, mock_openai_client):
        mock_openai_client.chat.completions.create.return_value = _completion(None)

        with pytest.raises(ClassifierError, match="empty response"):
            await classifier.classify('hello')

    @pytest.mark.asyncio
    async def test_no_choices(self, classifier, mock_openai_client):
        completion = MagicMock()
        completion.choices = []
        mock_openai_client.chat.completions.create.return_value = completion

        with pytest.raises(ClassifierError, match="no choices"):
            await classifier.classify('hello')

    @pytest.mark.asyncio
    async def test_api_errors_propagate(self, classifier, mock_openai_client):
        mock_openai_client.chat.completions.create.side_effect = RuntimeError('rate limited')

        with pytest.raises(RuntimeError, match='rate limited'):
            await classifier.classify('hello')

    @pytest.mark.asyncio
    async def test_close_releases_client(self, classifier, mock_openai_client):
        await classifier.close()
        mock_openai_client.close.assert_awaited_once()
