"""AWS S3 (and S3-compatible) storage provider implementation."""
from functools import partial
from typing import Any, NoReturn, Optional

import anyio
from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionError as BotoConnectionError,
    HTTPClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from core.logging_config import get_logger
from ..config import StorageConfig
from ..exceptions import (
    ConfigurationError,
    NotFoundError,
    PermanentBackendError,
    PermissionDeniedError,
    StorageError,
    TransientBackendError,
)
from ..models import ObjectRecord, UploadResult
from ..utils import calculate_etag, guess_content_type, join_url

logger = get_logger(__name__)

_NOT_FOUND_CODES = {"NoSuchKey", "404", "NotFound"}
_DENIED_CODES = {
    "AccessDenied", "403", "InvalidAccessKeyId",
    "SignatureDoesNotMatch", "AllAccessDisabled",
}
_CONFIG_CODES = {"NoSuchBucket", "InvalidBucketName", "PermanentRedirect"}
_TRANSIENT_CODES = {
    "RequestTimeout", "RequestTimeoutException", "SlowDown", "Throttling",
    "ThrottlingException", "ServiceUnavailable", "InternalError",
    "PriorRequestNotComplete", "RequestLimitExceeded", "503", "500",
}


def classify_error(e: Exception, operation: str) -> StorageError:
    """Map a boto3/botocore exception onto the storage error taxonomy."""
    if isinstance(e, StorageError):
        return e
    if isinstance(e, ClientError):
        error = e.response.get("Error", {})
        code = str(error.get("Code", ""))
        status = e.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 0)
        if code in _CONFIG_CODES:
            return ConfigurationError(f"Bucket misconfigured during {operation}: {code}")
        if code in _NOT_FOUND_CODES or status == 404:
            return NotFoundError(f"Object not found: {operation}")
        if code in _TRANSIENT_CODES or status >= 500 or status == 429:
            return TransientBackendError(f"Transient error during {operation}: {code or status}")
        if code in _DENIED_CODES or status == 403:
            return PermissionDeniedError(f"Access denied: {operation}")
        return PermanentBackendError(f"S3 error during {operation}: {code or status}")
    if isinstance(e, (BotoConnectionError, HTTPClientError)):
        return TransientBackendError(f"Network error during {operation}: {e}")
    if isinstance(e, (NoCredentialsError, PartialCredentialsError)):
        return ConfigurationError(f"Missing credentials for {operation}")
    if isinstance(e, BotoCoreError):
        return PermanentBackendError(f"S3 client error during {operation}: {e}")
    return StorageError(f"Unexpected error during {operation}: {e}")


class S3Provider:
    """AWS S3 storage provider.

    The boto3 client is synchronous; every call is pushed to a worker
    thread with ``anyio.to_thread.run_sync``.
    """

    name = "s3"

    def __init__(
        self,
        client: Any,  # boto3 S3 client
        config: StorageConfig
    ):
        """Initialize S3 provider.

        Args:
            client: Boto3 S3 client instance
            config: Storage configuration
        """
        self.client = client
        self.config = config
        self.bucket = config.bucket

    async def _call(self, operation: str, method: str, **kwargs) -> Any:
        try:
            return await anyio.to_thread.run_sync(
                partial(getattr(self.client, method), Bucket=self.bucket, **kwargs)
            )
        except Exception as e:
            self._handle_exception(e, operation)

    async def upload(
        self,
        file: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None
    ) -> UploadResult:
        """Upload file to S3."""
        content_type = content_type or guess_content_type(key)
        metadata = {str(k): str(v) for k, v in (metadata or {}).items()}
        extra_args = {"ContentType": content_type}
        if metadata:
            extra_args["Metadata"] = metadata
        if self.config.s3_sse:
            extra_args["ServerSideEncryption"] = self.config.s3_sse

        response = await self._call(
            f"upload {key}", "put_object", Key=key, Body=file, **extra_args
        )
        etag = (response or {}).get("ETag", "").strip('"') or calculate_etag(file)

        logger.info("Uploaded to S3", key=key, size=len(file))
        return UploadResult(
            key=key,
            url=self.public_url(key),
            size=len(file),
            content_type=content_type,
            etag=etag,
            metadata=metadata,
        )

    async def download(self, key: str) -> bytes:
        """Download file from S3."""
        response = await self._call(f"download {key}", "get_object", Key=key)
        body = response["Body"]
        try:
            data = await anyio.to_thread.run_sync(body.read)
        except Exception as e:
            self._handle_exception(e, f"download {key}")
        finally:
            await anyio.to_thread.run_sync(body.close)
        logger.debug("Downloaded from S3", key=key, size=len(data))
        return data

    async def delete(self, key: str) -> bool:
        """Delete file from S3.

        S3 reports success for absent keys, so a HEAD runs first to tell
        the two apart.
        """
        if not await self.exists(key):
            return False
        await self._call(f"delete {key}", "delete_object", Key=key)
        logger.info("Deleted from S3", key=key)
        return True

    async def exists(self, key: str) -> bool:
        """Check if file exists in S3."""
        try:
            await self._call(f"exists {key}", "head_object", Key=key)
            return True
        except NotFoundError:
            return False

    async def list_objects(
        self,
        prefix: str = "",
        limit: Optional[int] = None
    ) -> list[ObjectRecord]:
        """List objects in S3, following continuation tokens."""
        objects: list[ObjectRecord] = []
        token = None
        while True:
            kwargs: dict[str, Any] = {"Prefix": prefix}
            if limit is not None:
                kwargs["MaxKeys"] = min(1000, limit - len(objects))
            if token:
                kwargs["ContinuationToken"] = token
            response = await self._call(f"list objects {prefix}", "list_objects_v2", **kwargs)
            for obj in response.get("Contents", []):
                objects.append(ObjectRecord(
                    key=obj["Key"],
                    size=obj.get("Size", 0),
                    content_type=guess_content_type(obj["Key"]),
                    etag=obj.get("ETag", "").strip('"') or None,
                    last_modified=obj.get("LastModified"),
                ))
            token = response.get("NextContinuationToken")
            if not response.get("IsTruncated") or not token:
                break
            if limit is not None and len(objects) >= limit:
                break
        return objects

    async def get_metadata(self, key: str) -> ObjectRecord:
        """Get file metadata from S3."""
        response = await self._call(f"get metadata {key}", "head_object", Key=key)
        return ObjectRecord(
            key=key,
            size=response.get("ContentLength", 0),
            content_type=response.get("ContentType") or guess_content_type(key),
            etag=response.get("ETag", "").strip('"') or None,
            last_modified=response.get("LastModified"),
            metadata=response.get("Metadata", {}),
        )

    def public_url(self, key: str) -> str:
        """Objects are served through the application's file proxy."""
        return join_url(self.config.public_base_url, key)

    async def health_check(self) -> bool:
        """Check S3 connectivity."""
        try:
            await self._call("health check", "head_bucket")
            return True
        except StorageError as e:
            logger.error("S3 health check failed", error=str(e))
            return False

    def _handle_exception(self, e: Exception, operation: str) -> NoReturn:
        """Map S3 exceptions to storage exceptions."""
        mapped = classify_error(e, operation)
        if mapped is e:
            raise e
        raise mapped from e


async def build_s3_provider(config: StorageConfig) -> S3Provider:
    """Build S3 storage provider.

    No network call is made here; reachability is verified by the
    resilient wrapper on first use.

    Args:
        config: Storage configuration

    Returns:
        Configured S3 provider instance
    """
    if not config.bucket:
        raise ConfigurationError("S3 bucket name is required")

    import boto3
    from botocore.config import Config as BotoConfig

    # Retries are owned by the resilient wrapper; disable SDK retries
    boto_config = BotoConfig(
        region_name=config.region,
        signature_version="s3v4",
        retries={"max_attempts": 0, "mode": "standard"},
        connect_timeout=config.timeout,
        read_timeout=config.timeout,
    )

    client_args: dict[str, Any] = {
        "service_name": "s3",
        "config": boto_config,
    }
    if config.aws_access_key_id and config.aws_secret_access_key:
        client_args.update({
            "aws_access_key_id": config.aws_access_key_id,
            "aws_secret_access_key": config.aws_secret_access_key,
        })
    if config.endpoint:
        client_args["endpoint_url"] = config.endpoint
        client_args["use_ssl"] = config.enable_ssl

    client = boto3.client(**client_args)
    return S3Provider(client, config)
