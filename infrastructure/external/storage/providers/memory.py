"""In-memory storage provider.

Single-process only. Useful for local dev and tests.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from ..config import StorageConfig
from ..exceptions import NotFoundError
from ..models import ObjectRecord, UploadResult
from ..utils import calculate_etag, guess_content_type, join_url


@dataclass(slots=True)
class _Entry:
    data: bytes
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryProvider:
    name = "memory"

    def __init__(self, config: Optional[StorageConfig] = None) -> None:
        self.config = config or StorageConfig(type="memory")
        self._objects: dict[str, _Entry] = {}

    async def upload(
        self,
        file: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None,
    ) -> UploadResult:
        content_type = content_type or guess_content_type(key)
        meta = {str(k): str(v) for k, v in (metadata or {}).items()}
        self._objects[key] = _Entry(bytes(file), content_type, meta)
        return UploadResult(
            key=key,
            url=self.public_url(key),
            size=len(file),
            content_type=content_type,
            etag=calculate_etag(file),
            metadata=meta,
        )

    async def download(self, key: str) -> bytes:
        try:
            return self._objects[key].data
        except KeyError:
            raise NotFoundError(f"File not found: {key}") from None

    async def delete(self, key: str) -> bool:
        return self._objects.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return key in self._objects

    async def list_objects(
        self,
        prefix: str = "",
        limit: Optional[int] = None,
    ) -> list[ObjectRecord]:
        keys = sorted(k for k in self._objects if k.startswith(prefix))
        if limit is not None:
            keys = keys[:limit]
        return [self._record(k) for k in keys]

    async def get_metadata(self, key: str) -> ObjectRecord:
        if key not in self._objects:
            raise NotFoundError(f"File not found: {key}")
        return self._record(key)

    def public_url(self, key: str) -> str:
        return join_url(self.config.public_base_url, key)

    async def health_check(self) -> bool:
        return True

    def _record(self, key: str) -> ObjectRecord:
        entry = self._objects[key]
        return ObjectRecord(
            key=key,
            size=len(entry.data),
            content_type=entry.content_type,
            last_modified=entry.last_modified,
            etag=calculate_etag(entry.data),
            metadata=dict(entry.metadata),
        )


async def build_memory_provider(config: StorageConfig) -> InMemoryProvider:
    return InMemoryProvider(config)
