"""Application-owned storage port abstraction (hexagonal architecture).

Defines the minimal methods needed by application use cases so that
the application layer does not depend on infrastructure details.
Implementations raise domain exceptions (``ObjectNotFoundException``,
``StorageUnavailableException`` ...) rather than backend errors.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Protocol, runtime_checkable


@dataclass(slots=True)
class StoredObject:
    key: str
    size: int
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None


@dataclass(slots=True)
class StorageInfo:
    backend: str
    fallback: bool
    initialized: bool


@dataclass(slots=True)
class UploadOutcome:
    key: str
    url: str
    size: int
    content_type: str
    metadata: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class StoragePort(Protocol):
    def info(self) -> StorageInfo: ...

    async def initialize(self) -> None: ...

    async def upload(
        self,
        data: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None,
    ) -> UploadOutcome: ...

    async def download(self, key: str) -> bytes: ...

    async def delete(self, key: str) -> bool: ...

    async def exists(self, key: str) -> bool: ...

    async def list_objects(self, prefix: str = "", limit: Optional[int] = None) -> list[StoredObject]: ...

    async def get_metadata(self, key: str) -> StoredObject: ...

    def public_url(self, key: str) -> str: ...


@runtime_checkable
class DirectoryPort(Protocol):
    async def list_root_folders(self) -> list[str]: ...

    async def list_subfolders(self, directory: str) -> list[str]: ...

    async def list_files(self, directory: str) -> list[str]: ...

    async def ensure_directory_exists(self, path: str) -> None: ...

    async def ensure_root_directories(self) -> None: ...
