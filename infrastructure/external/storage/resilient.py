"""Resilient storage wrapper: lazy verification, retries and local fallback.

Every call goes through three steps:

1. ``initialize()`` runs once per process. It verifies the primary backend
   with a single ``list_objects(limit=1)``. When that fails the wrapper
   switches to a local-disk mirror and stays there for the rest of the
   process lifetime. No reconnection is attempted.
2. The operation is delegated to the active backend inside a tenacity
   retry loop that only retries ``TransientBackendError``.
3. An optional overall timeout bounds the whole retry sequence.

Callers never observe retry state or an "uninitialized" error.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import anyio

from core.logging_config import get_logger
from .base import StorageProvider
from .config import StorageConfig
from .exceptions import (
    ConfigurationError,
    NotFoundError,
    StorageError,
    TransientBackendError,
)
from .models import ObjectRecord, StorageStatus, UploadResult
from .providers.local import LocalProvider
from .utils import build_retrying

logger = get_logger(__name__)

T = TypeVar("T")

FallbackFactory = Callable[[], StorageProvider]


class ResilientStorage:
    """Wraps one backend adapter with verification, retry and fallback."""

    name = "resilient"

    def __init__(
        self,
        primary: StorageProvider,
        config: StorageConfig,
        fallback_factory: Optional[FallbackFactory] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self._primary = primary
        self._config = config
        self._fallback_factory = fallback_factory or (
            lambda: LocalProvider(config.fallback_config())
        )
        self._timeout = timeout
        self._active: StorageProvider = primary
        self._initialized = False
        self._fallback = False
        self._lock = asyncio.Lock()

    @property
    def backend(self) -> StorageProvider:
        """The adapter currently receiving calls."""
        return self._active

    @property
    def is_fallback(self) -> bool:
        return self._fallback

    def status(self) -> StorageStatus:
        return StorageStatus(
            initialized=self._initialized,
            fallback=self._fallback,
            backend=getattr(self._active, "name", type(self._active).__name__),
        )

    async def initialize(self) -> None:
        """Verify the primary backend once; switch to the local mirror on failure.

        Concurrent callers wait on the same lock, so exactly one
        verification call reaches the backend.

        Raises:
            ConfigurationError: Verification failed and fallback is disabled
        """
        if self._initialized:
            return
        async with self._lock:
            if self._initialized:
                return
            try:
                await self._primary.list_objects(limit=1)
            except StorageError as e:
                if not self._config.fallback_enabled:
                    logger.error(
                        "storage_verification_failed",
                        backend=getattr(self._primary, "name", None),
                        error=str(e),
                    )
                    raise ConfigurationError(f"Storage backend unreachable: {e}") from e
                self._active = self._fallback_factory()
                self._fallback = True
                logger.warning(
                    "storage_fallback_enabled",
                    backend=getattr(self._primary, "name", None),
                    fallback_path=self._config.fallback_local_path,
                    error=str(e),
                )
            else:
                logger.info("storage_verified", backend=getattr(self._primary, "name", None))
            self._initialized = True

    async def _run(self, operation: str, call: Callable[[StorageProvider], Awaitable[T]]) -> T:
        await self.initialize()
        backend = self._active
        retrying = build_retrying(
            max_attempts=self._config.max_retry_attempts,
            wait_initial=self._config.retry_wait_initial,
            wait_max=self._config.retry_wait_max,
        )
        try:
            with anyio.fail_after(self._timeout):
                async for attempt in retrying:
                    with attempt:
                        result = await call(backend)
        except TimeoutError as e:
            raise TransientBackendError(
                f"{operation} timed out after {self._timeout}s"
            ) from e
        return result

    async def upload(
        self,
        file: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        return await self._run(
            f"upload {key}",
            lambda b: b.upload(file, key, metadata=metadata, content_type=content_type),
        )

    async def download(self, key: str) -> bytes:
        return await self._run(f"download {key}", lambda b: b.download(key))

    async def delete(self, key: str) -> bool:
        """Idempotent delete. Returns whether an object was actually removed."""
        try:
            return await self._run(f"delete {key}", lambda b: b.delete(key))
        except NotFoundError:
            return False

    async def exists(self, key: str) -> bool:
        return await self._run(f"exists {key}", lambda b: b.exists(key))

    async def list_objects(
        self,
        prefix: str = "",
        limit: Optional[int] = None,
    ) -> list[ObjectRecord]:
        return await self._run(
            f"list {prefix}",
            lambda b: b.list_objects(prefix=prefix, limit=limit),
        )

    async def get_metadata(self, key: str) -> ObjectRecord:
        return await self._run(f"metadata {key}", lambda b: b.get_metadata(key))

    def public_url(self, key: str) -> str:
        return self._active.public_url(key)

    async def health_check(self) -> bool:
        try:
            await self.initialize()
        except ConfigurationError:
            return False
        return await self._active.health_check()
