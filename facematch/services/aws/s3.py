"""
S3 service for artifact storage operations using aioboto3.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

import aioboto3
from botocore.exceptions import ClientError, NoCredentialsError

from facematch.core.config import settings
from facematch.core.exceptions import StorageError
from facematch.core.logging import get_logger
from facematch.domain.interfaces.storage.artifact_store import ArtifactStore

logger = get_logger(__name__)


class S3Service(ArtifactStore):
    """Service for interacting with AWS S3 using aioboto3.

    Stores face thumbnails and fetches photo bytes for reprocessing.
    """

    def __init__(
        self,
        bucket_name: Optional[str] = None,
        region_name: Optional[str] = None,
        access_key_id: Optional[str] = None,
        secret_access_key: Optional[str] = None
    ):
        """Store configuration; clients are opened per operation."""
        self.bucket_name = bucket_name or settings.AWS_S3_BUCKET
        self.region_name = region_name or settings.AWS_REGION
        self.access_key_id = access_key_id or settings.AWS_ACCESS_KEY_ID
        self.secret_access_key = secret_access_key or settings.AWS_SECRET_ACCESS_KEY
        self._session = aioboto3.Session()

    @asynccontextmanager
    async def _get_client(self) -> AsyncGenerator[Any, None]:
        """Async context manager yielding an S3 client."""
        client_args = {
            'region_name': self.region_name or "us-east-1"
        }
        if self.access_key_id and self.secret_access_key:
            logger.debug("Using explicit AWS credentials from config for aioboto3")
            client_args['aws_access_key_id'] = self.access_key_id
            client_args['aws_secret_access_key'] = self.secret_access_key

        try:
            async with self._session.client("s3", **client_args) as s3:
                yield s3
        except NoCredentialsError as e:
            logger.error(f"Failed to initialize S3: AWS credentials not found. {e}")
            raise StorageError("AWS credentials not found or configured correctly.") from e

    async def save(self, data: bytes, key: str, content_type: str = "image/jpeg") -> str:
        """
        Upload an artifact to the configured bucket.

        Args:
            data: Encoded artifact bytes
            key: S3 object key
            content_type: MIME type stored with the object

        Returns:
            The S3 object key, used as the artifact reference

        Raises:
            StorageError: If the upload fails
        """
        try:
            async with self._get_client() as s3:
                await s3.put_object(
                    Bucket=self.bucket_name,
                    Key=key,
                    Body=data,
                    ContentType=content_type
                )
            logger.info("Successfully uploaded artifact to S3",
                        key=key, bucket=self.bucket_name, size_bytes=len(data))
            return key
        except StorageError:
            raise
        except ClientError as e:
            logger.error("Failed to upload artifact to S3 due to client error",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Failed to upload '{key}' to S3: {e}") from e
        except Exception as e:
            logger.error("Unexpected error uploading artifact to S3",
                         key=key, error=str(e), exc_info=True)
            raise StorageError(f"Unexpected error uploading '{key}': {e}") from e

    async def get_file(self, bucket: Optional[str], key: str) -> bytes:
        """
        Get file contents from S3 asynchronously.

        Args:
            bucket: S3 bucket name, the configured bucket when empty
            key: S3 object key

        Returns:
            File contents as bytes

        Raises:
            StorageError: If file cannot be retrieved (e.g., not found, access denied)
        """
        target_bucket = bucket if bucket else self.bucket_name
        if target_bucket != self.bucket_name:
            logger.warning(
                f"Accessing S3 bucket '{target_bucket}' different from configured bucket '{self.bucket_name}'")

        try:
            async with self._get_client() as s3:
                response = await s3.get_object(Bucket=target_bucket, Key=key)
                body = response['Body']
                return await body.read()
        except StorageError:
            raise
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code')
            if error_code == 'NoSuchKey':
                logger.warning(f"File not found in S3: {target_bucket}/{key}")
                raise StorageError(f"File not found: {key}") from e
            elif error_code == 'NoSuchBucket':
                logger.error(f"Attempted to get file from non-existent bucket: {target_bucket}")
                raise StorageError(f"Bucket not found: {target_bucket}") from e
            elif error_code == '403' or "Forbidden" in str(e) or "Access Denied" in str(e):
                logger.error(
                    f"Access denied when getting file: {target_bucket}/{key}. Check permissions. {e}")
                raise StorageError(f"Access denied for file: {key}") from e
            else:
                logger.error(f"Failed to get file from S3 due to client error: {e}", exc_info=True)
                raise StorageError(f"Failed to retrieve file '{key}' due to S3 error: {e}") from e
        except Exception as e:
            logger.error(
                f"Unexpected error getting file from S3: {target_bucket}/{key} - {e}", exc_info=True)
            raise StorageError(f"Unexpected error retrieving file: {key}") from e
