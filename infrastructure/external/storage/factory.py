"""Backend adapter registry.

Built-in adapters are resolved lazily from ``_BUILTINS`` so that boto3 is
only imported when the S3 backend is actually selected.
"""
import importlib
from typing import Awaitable, Callable

from core.logging_config import get_logger
from .base import StorageProvider
from .config import StorageConfig, StorageType
from .exceptions import ConfigurationError

logger = get_logger(__name__)

ProviderBuilder = Callable[[StorageConfig], Awaitable[StorageProvider]]

_builders: dict[StorageType, ProviderBuilder] = {}

# storage type -> "module:function"
_BUILTINS = {
    StorageType.S3: "infrastructure.external.storage.providers.s3:build_s3_provider",
    StorageType.LOCAL: "infrastructure.external.storage.providers.local:build_local_provider",
    StorageType.MEMORY: "infrastructure.external.storage.providers.memory:build_memory_provider",
}


def register_provider(storage_type: StorageType, builder: ProviderBuilder) -> None:
    """Register (or replace) the builder used for ``storage_type``."""
    _builders[StorageType(storage_type)] = builder
    logger.debug("storage_provider_registered", provider=StorageType(storage_type).value)


def available_providers() -> list[str]:
    """Names of every backend that can be built, registered or built-in."""
    return sorted({t.value for t in _builders} | {t.value for t in _BUILTINS})


def _resolve_builder(storage_type: StorageType) -> ProviderBuilder:
    builder = _builders.get(storage_type)
    if builder is not None:
        return builder

    target = _BUILTINS.get(storage_type)
    if target is None:
        raise ConfigurationError(
            f"Unknown storage backend '{storage_type.value}', "
            f"expected one of {available_providers()}"
        )
    module_path, func_name = target.split(":")
    builder = getattr(importlib.import_module(module_path), func_name)
    register_provider(storage_type, builder)
    return builder


async def create_provider(config: StorageConfig) -> StorageProvider:
    """Build the backend adapter selected by ``config.type``.

    Raises:
        ConfigurationError: unknown backend, missing settings, or a builder
            that failed for any other reason.
    """
    storage_type = StorageType(config.type)
    builder = _resolve_builder(storage_type)

    try:
        provider = await builder(config)
    except ConfigurationError:
        raise
    except Exception as exc:
        logger.error("storage_provider_build_failed", provider=storage_type.value, error=str(exc))
        raise ConfigurationError(
            f"Could not build storage backend '{storage_type.value}': {exc}"
        ) from exc

    logger.info("storage_provider_created", provider=storage_type.value, bucket=config.bucket)
    return provider
