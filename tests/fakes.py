"""Hand-written backends and processors for failure injection."""
from __future__ import annotations

from collections import Counter
from io import BytesIO
from typing import Optional, Type

import anyio
from PIL import Image

from domain.media import ImageDerivativeSpec, ProcessedImage, ValidationResult
from infrastructure.external.storage.config import StorageConfig
from infrastructure.external.storage.exceptions import StorageError, TransientBackendError
from infrastructure.external.storage.providers.memory import InMemoryProvider


def memory_config(**overrides) -> StorageConfig:
    values = {
        "type": "memory",
        "retry_wait_initial": 0,
        "retry_wait_max": 0,
        "max_retry_attempts": 4,
    }
    values.update(overrides)
    return StorageConfig(**values)


def make_image(
    width: int = 1200,
    height: int = 1200,
    fmt: str = "PNG",
    color: tuple = (200, 30, 30),
    mode: str = "RGB",
) -> bytes:
    out = BytesIO()
    Image.new(mode, (width, height), color).save(out, fmt)
    return out.getvalue()


class FlakyProvider(InMemoryProvider):
    """In-memory backend that fails on demand.

    ``failures`` counts down across data operations (upload, download,
    get_metadata); ``verification_error`` makes every ``list_objects``
    call fail until cleared.
    """

    name = "flaky"

    def __init__(
        self,
        failures: int = 0,
        error: Type[StorageError] = TransientBackendError,
        verification_error: Optional[Type[StorageError]] = None,
        delay: float = 0.0,
    ) -> None:
        super().__init__(memory_config())
        self.failures = failures
        self.error = error
        self.verification_error = verification_error
        self.delay = delay
        self.calls: Counter = Counter()

    def _maybe_fail(self, operation: str) -> None:
        self.calls[operation] += 1
        if self.failures > 0:
            self.failures -= 1
            raise self.error(f"injected {operation} failure")

    async def upload(self, file, key, metadata=None, content_type=None):
        self._maybe_fail("upload")
        return await super().upload(file, key, metadata=metadata, content_type=content_type)

    async def download(self, key):
        if self.delay:
            await anyio.sleep(self.delay)
        self._maybe_fail("download")
        return await super().download(key)

    async def get_metadata(self, key):
        self._maybe_fail("get_metadata")
        return await super().get_metadata(key)

    async def list_objects(self, prefix="", limit=None):
        self.calls["list_objects"] += 1
        if self.delay:
            await anyio.sleep(self.delay)
        if self.verification_error is not None:
            raise self.verification_error("backend unreachable")
        return await super().list_objects(prefix=prefix, limit=limit)


class FailingSpecProcessor:
    """Delegates to a real processor but fails for the named derivatives."""

    def __init__(self, inner, failing: set[str]):
        self.inner = inner
        self.failing = failing

    def validate(self, buffer: bytes, filename: str) -> ValidationResult:
        return self.inner.validate(buffer, filename)

    def process(self, buffer: bytes, spec: ImageDerivativeSpec) -> ProcessedImage:
        if spec.name in self.failing:
            raise OSError(f"encoder unavailable for {spec.name}")
        return self.inner.process(buffer, spec)
