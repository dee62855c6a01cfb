"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
from datetime import datetime, timezone

import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('OPENAI_API_KEY', 'sk-test')
os.environ.setdefault('OPENPHONE_API_KEY', 'op-test')
os.environ.setdefault('OPENPHONE_FROM_NUMBER', '+18015550100')
os.environ.setdefault('DEFAULT_NOTIFICATION_NUMBERS', '+18015550101,+18015550102')
os.environ.setdefault('S3_BUCKET_NAME', 'test-emails-bucket')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-west-2')
os.environ.setdefault('LOG_LEVEL', 'INFO')

from config import Settings  # noqa: E402
from domain.errors import ObjectNotFoundError  # noqa: E402
from domain.models import StoredObject  # noqa: E402

FIXED_NOW = datetime(2025, 1, 15, 14, 30, 0, tzinfo=timezone.utc)

RECIPIENTS = ('+18015550101', '+18015550102', '+18015550103')

SERVICE_REQUEST_EMAIL = b"""From: Jane Customer <jane@example.com>
To: service@utahmechanical.example
Subject: No heat!
Date: Wed, 15 Jan 2025 07:12:00 -0700
Message-ID: <abc123@example.com>
Content-Type: text/plain; charset="UTF-8"

No heat, pipe frozen at 123 Main St, SLC, emergency
"""

NON_SERVICE_EMAIL = b"""From: Vendor <sales@vendor.example>
To: service@utahmechanical.example
Subject: Spring catalog
Content-Type: text/plain; charset="UTF-8"

Check out our new line of thermostats.
"""


class FakeObjectStore:
    """In-memory object store with optional per-operation failures."""

    def __init__(self, objects=None):
        self.objects = dict(objects or {})
        self.calls = []
        self.fail_copy_to = set()
        self.fail_delete = set()
        self.fail_list = None

    async def list_objects(self, prefix):
        self.calls.append(('list', prefix))
        if self.fail_list is not None:
            raise self.fail_list
        return [
            StoredObject(key=key, last_modified=FIXED_NOW, size=len(content))
            for key, content in sorted(self.objects.items())
            if key.startswith(prefix)
        ]

    async def get_object(self, key):
        self.calls.append(('get', key))
        if key not in self.objects:
            raise ObjectNotFoundError(f"Email file not found in S3: {key}")
        return self.objects[key]

    async def copy_object(self, source_key, destination_key):
        self.calls.append(('copy', source_key, destination_key))
        if any(destination_key.startswith(prefix) for prefix in self.fail_copy_to):
            raise RuntimeError(f"copy to {destination_key} failed")
        self.objects[destination_key] = self.objects[source_key]

    async def delete_object(self, key):
        self.calls.append(('delete', key))
        if key in self.fail_delete:
            raise RuntimeError(f"delete of {key} failed")
        del self.objects[key]


class FakeClassifier:
    """Returns queued responses; exceptions in the queue are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.closed = False

    async def close(self):
        self.closed = True

    async def classify(self, text):
        self.calls.append(text)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class FakeNotifier:
    """Records sends; numbers in `failing` always raise the given error."""

    def __init__(self, failing=None):
        self.failing = dict(failing or {})
        self.sent = []
        self.attempts = []

    async def send(self, message, to_number):
        self.attempts.append(to_number)
        if to_number in self.failing:
            raise self.failing[to_number]
        self.sent.append((to_number, message))
        return {'data': {'id': f"msg-{len(self.sent)}"}}


async def no_sleep(delay):
    return None


@pytest.fixture
def settings():
    """Settings with fast retries and three recipients."""
    return Settings(
        openai_api_key='sk-test',
        openphone_api_key='op-test',
        openphone_from_number='+18015550100',
        notification_numbers=RECIPIENTS,
        bucket_name='test-emails-bucket',
        tenant='utah_mechanical_systems',
        retry_delay_seconds=0.0,
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW
