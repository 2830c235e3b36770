"""Storage service entry point.

The application's composition root (``main.lifespan``) calls
``build_storage`` once and injects the result into every dependent
component; this package keeps no module-level client.
"""
from typing import Optional

from core.config import StorageSettings
from core.logging_config import get_logger
from .base import StorageProvider, is_hidden_key, is_marker_key
from .config import StorageConfig, StorageType
from .directory import PrefixDirectoryEmulator, VirtualDirectory
from .exceptions import (
    ConfigurationError,
    NotFoundError,
    PermanentBackendError,
    PermissionDeniedError,
    StorageError,
    TransientBackendError,
    ValidationError,
)
from .factory import available_providers, create_provider, register_provider
from .models import ObjectRecord, StorageStatus, UploadResult
from .resilient import ResilientStorage

logger = get_logger(__name__)


def get_storage_config(s: StorageSettings) -> StorageConfig:
    """Assemble StorageConfig from the application settings group.

    Args:
        s: ``settings.storage``

    Returns:
        Storage configuration instance
    """
    return StorageConfig(
        type=s.type or StorageType.LOCAL,
        bucket=s.bucket,
        region=s.region,
        endpoint=s.endpoint,
        public_base_url=s.public_base_url,
        aws_access_key_id=s.aws_access_key_id,
        aws_secret_access_key=s.aws_secret_access_key,
        s3_sse=s.s3_sse,
        enable_ssl=s.enable_ssl,
        local_base_path=s.local_base_path,
        fallback_enabled=s.fallback_enabled,
        fallback_local_path=s.fallback_local_path,
        max_retry_attempts=s.max_retry_attempts,
        retry_wait_initial=s.retry_wait_initial,
        retry_wait_max=s.retry_wait_max,
        timeout=s.timeout,
    )


async def build_storage(
    config: StorageConfig,
    timeout: Optional[float] = None,
) -> ResilientStorage:
    """Create the configured backend adapter and wrap it.

    Verification is not performed here; it happens on the first call
    (or an explicit ``initialize()``).

    Args:
        config: Storage configuration
        timeout: Overall deadline in seconds for each logical operation

    Returns:
        Resilient storage wrapper
    """
    provider = await create_provider(config)
    storage = ResilientStorage(provider, config, timeout=timeout)
    logger.info("Storage client built", provider=config.type, bucket=config.bucket)
    return storage


__all__ = [
    "ConfigurationError",
    "NotFoundError",
    "ObjectRecord",
    "PermanentBackendError",
    "PermissionDeniedError",
    "PrefixDirectoryEmulator",
    "ResilientStorage",
    "StorageConfig",
    "StorageError",
    "StorageProvider",
    "StorageStatus",
    "StorageType",
    "TransientBackendError",
    "UploadResult",
    "ValidationError",
    "VirtualDirectory",
    "available_providers",
    "build_storage",
    "create_provider",
    "get_storage_config",
    "is_hidden_key",
    "is_marker_key",
    "register_provider",
]
