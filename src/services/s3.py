"""
S3 object store for the email pipeline.

Exposes the four operations the pipeline needs (list, get, copy, delete)
as coroutines. boto3 is synchronous, so each call runs in a worker thread.
"""

import asyncio
import logging
from typing import List

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from domain.errors import ObjectNotFoundError
from domain.models import StoredObject

logger = logging.getLogger(__name__)

# Configure S3 client with timeouts to prevent infinite hangs.
# Retry policy lives in the pipeline, not the SDK.
s3_config = Config(
    retries={
        'max_attempts': 1,  # 1 attempt total (no retries)
        'mode': 'standard'
    },
    connect_timeout=10,  # 10 seconds to establish connection
    read_timeout=60      # 60 seconds max for reading response
)


def create_s3_client():
    """Create a boto3 S3 client with pipeline timeouts."""
    client = boto3.client('s3', config=s3_config)
    logger.info("S3 client initialized with timeouts: connect=10s, read=60s, max_attempts=1")
    return client


def _error_code(error: ClientError) -> str:
    return error.response.get('Error', {}).get('Code', '')


class S3ObjectStore:
    """
    Object store backed by a single S3 bucket.

    Args:
        bucket: S3 bucket name
        client: boto3 S3 client (created with create_s3_client() if None)
    """

    def __init__(self, bucket: str, client=None):
        if not bucket:
            raise ValueError("S3 bucket name cannot be empty")
        self.bucket = bucket
        self._client = client if client is not None else create_s3_client()

    def _list_objects_sync(self, prefix: str) -> List[StoredObject]:
        paginator = self._client.get_paginator('list_objects_v2')
        objects = []
        for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
            for item in page.get('Contents', []):
                objects.append(StoredObject(
                    key=item['Key'],
                    last_modified=item.get('LastModified'),
                    size=item.get('Size', 0)
                ))
        return objects

    async def list_objects(self, prefix: str) -> List[StoredObject]:
        """
        List every object under a prefix (all pages).

        Raises:
            ObjectNotFoundError: If the bucket does not exist
            ClientError: For other S3 errors
        """
        try:
            objects = await asyncio.to_thread(self._list_objects_sync, prefix)
        except ClientError as e:
            if _error_code(e) == 'NoSuchBucket':
                logger.error(f"S3 bucket not found: {self.bucket}")
                raise ObjectNotFoundError(f"S3 bucket not found: {self.bucket}") from e
            logger.error(f"Failed to list s3://{self.bucket}/{prefix}: {e}")
            raise

        logger.info(f"Listed {len(objects)} object(s) under s3://{self.bucket}/{prefix}")
        return objects

    def _get_object_sync(self, key: str) -> bytes:
        response = self._client.get_object(Bucket=self.bucket, Key=key)
        return response['Body'].read()

    async def get_object(self, key: str) -> bytes:
        """
        Fetch raw object content.

        Raises:
            ObjectNotFoundError: If the key or bucket does not exist
            ClientError: For other S3 errors
        """
        try:
            content = await asyncio.to_thread(self._get_object_sync, key)
        except ClientError as e:
            error_code = _error_code(e)
            if error_code == 'NoSuchKey':
                logger.error(f"S3 object not found: s3://{self.bucket}/{key}")
                raise ObjectNotFoundError(f"Email file not found in S3: {key}") from e
            elif error_code == 'NoSuchBucket':
                logger.error(f"S3 bucket not found: {self.bucket}")
                raise ObjectNotFoundError(f"S3 bucket not found: {self.bucket}") from e
            logger.error(f"Failed to fetch from S3 s3://{self.bucket}/{key}: {e}")
            raise

        logger.info(f"Fetched {len(content):,} bytes from s3://{self.bucket}/{key}")
        return content

    async def copy_object(self, source_key: str, destination_key: str) -> None:
        """Server-side copy within the bucket."""
        await asyncio.to_thread(
            self._client.copy_object,
            Bucket=self.bucket,
            CopySource={'Bucket': self.bucket, 'Key': source_key},
            Key=destination_key
        )
        logger.info(f"Copied s3://{self.bucket}/{source_key} -> {destination_key}")

    async def delete_object(self, key: str) -> None:
        await asyncio.to_thread(self._client.delete_object, Bucket=self.bucket, Key=key)
        logger.info(f"Deleted s3://{self.bucket}/{key}")

