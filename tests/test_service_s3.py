"""
Tests for the S3 object store.
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import MagicMock
from botocore.exceptions import ClientError
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import ObjectNotFoundError
from services.s3 import S3ObjectStore


def _client_error(code, operation):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


@pytest.fixture
def mock_s3_client():
    return MagicMock()


@pytest.fixture
def store(mock_s3_client):
    return S3ObjectStore('test-bucket', client=mock_s3_client)


class TestListObjects:
    """Test listing objects under a prefix."""

    @pytest.mark.asyncio
    async def test_list_all_pages(self, store, mock_s3_client):
        modified = datetime(2025, 1, 15, tzinfo=timezone.utc)
        mock_s3_client.get_paginator.return_value.paginate.return_value = [
            {'Contents': [{'Key': 'incoming/t/a', 'LastModified': modified, 'Size': 10}]},
            {'Contents': [{'Key': 'incoming/t/b', 'LastModified': modified, 'Size': 20}]},
            {},
        ]

        objects = await store.list_objects('incoming/t/')

        assert [o.key for o in objects] == ['incoming/t/a', 'incoming/t/b']
        assert objects[1].size == 20
        assert objects[0].last_modified == modified
        mock_s3_client.get_paginator.assert_called_once_with('list_objects_v2')
        mock_s3_client.get_paginator.return_value.paginate.assert_called_once_with(
            Bucket='test-bucket',
            Prefix='incoming/t/'
        )

    @pytest.mark.asyncio
    async def test_list_missing_bucket(self, store, mock_s3_client):
        mock_s3_client.get_paginator.return_value.paginate.side_effect = _client_error(
            'NoSuchBucket', 'ListObjectsV2'
        )

        with pytest.raises(ObjectNotFoundError, match="S3 bucket not found"):
            await store.list_objects('incoming/t/')

    @pytest.mark.asyncio
    async def test_list_access_denied_propagates(self, store, mock_s3_client):
        mock_s3_client.get_paginator.return_value.paginate.side_effect = _client_error(
            'AccessDenied', 'ListObjectsV2'
        )

        with pytest.raises(ClientError):
            await store.list_objects('incoming/t/')


class TestGetObject:
    """Test fetching email content from S3."""

    @pytest.mark.asyncio
    async def test_get_object_success(self, store, mock_s3_client):
        sample_email = b"From: test@example.com\r\nSubject: Test\r\n\r\nBody content"
        mock_s3_client.get_object.return_value = {
            'Body': MagicMock(read=lambda: sample_email)
        }

        result = await store.get_object('incoming/t/test')

        assert result == sample_email
        mock_s3_client.get_object.assert_called_once_with(
            Bucket='test-bucket',
            Key='incoming/t/test'
        )

    @pytest.mark.asyncio
    async def test_get_object_no_such_key(self, store, mock_s3_client):
        mock_s3_client.get_object.side_effect = _client_error('NoSuchKey', 'GetObject')

        with pytest.raises(ObjectNotFoundError, match="Email file not found in S3"):
            await store.get_object('incoming/t/missing')

    @pytest.mark.asyncio
    async def test_get_object_no_such_bucket(self, store, mock_s3_client):
        mock_s3_client.get_object.side_effect = _client_error('NoSuchBucket', 'GetObject')

        with pytest.raises(ObjectNotFoundError, match="S3 bucket not found"):
            await store.get_object('incoming/t/test')

    @pytest.mark.asyncio
    async def test_get_object_generic_error(self, store, mock_s3_client):
        mock_s3_client.get_object.side_effect = RuntimeError("S3 connection error")

        with pytest.raises(RuntimeError, match="S3 connection error"):
            await store.get_object('incoming/t/test')


class TestCopyAndDelete:
    """Test copy and delete calls."""

    @pytest.mark.asyncio
    async def test_copy_object(self, store, mock_s3_client):
        await store.copy_object('incoming/t/a', 'processed/t/a')

        mock_s3_client.copy_object.assert_called_once_with(
            Bucket='test-bucket',
            CopySource={'Bucket': 'test-bucket', 'Key': 'incoming/t/a'},
            Key='processed/t/a'
        )

    @pytest.mark.asyncio
    async def test_copy_error_propagates(self, store, mock_s3_client):
        mock_s3_client.copy_object.side_effect = _client_error('AccessDenied', 'CopyObject')

        with pytest.raises(ClientError):
            await store.copy_object('incoming/t/a', 'processed/t/a')

    @pytest.mark.asyncio
    async def test_delete_object(self, store, mock_s3_client):
        await store.delete_object('incoming/t/a')

        mock_s3_client.delete_object.assert_called_once_with(
            Bucket='test-bucket',
            Key='incoming/t/a'
        )


class TestConstruction:

    def test_empty_bucket_rejected(self):
        with pytest.raises(ValueError, match="bucket name cannot be empty"):
            S3ObjectStore('', client=MagicMock())
