"""Infrastructure adapters that implement the application storage ports
by delegating to the resilient storage wrapper and the directory emulator,
translating models and errors.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Sequence

from application.ports.storage import (
    DirectoryPort,
    StorageInfo,
    StoragePort,
    StoredObject,
    UploadOutcome,
)
from domain.common.exceptions import (
    InvalidKeyException,
    ObjectNotFoundException,
    StorageBackendException,
    StorageUnavailableException,
)
from infrastructure.external.storage import (
    NotFoundError,
    ObjectRecord,
    PrefixDirectoryEmulator,
    ResilientStorage,
    StorageError,
    TransientBackendError,
    ValidationError,
)


@contextmanager
def translate_storage_errors(key: str = "") -> Iterator[None]:
    """Re-raise backend errors as domain exceptions."""
    try:
        yield
    except NotFoundError as e:
        raise ObjectNotFoundException(key) from e
    except ValidationError as e:
        raise InvalidKeyException(str(e), key or None) from e
    except TransientBackendError as e:
        raise StorageUnavailableException(str(e)) from e
    except StorageError as e:
        raise StorageBackendException(str(e)) from e


def _to_stored(record: ObjectRecord) -> StoredObject:
    return StoredObject(
        key=record.key,
        size=record.size,
        content_type=record.content_type,
        metadata=dict(record.metadata),
        last_modified=record.last_modified,
        etag=record.etag,
    )


class StorageProviderPortAdapter(StoragePort):
    def __init__(self, storage: ResilientStorage):
        self.storage = storage

    def info(self) -> StorageInfo:
        status = self.storage.status()
        return StorageInfo(
            backend=status.backend,
            fallback=status.fallback,
            initialized=status.initialized,
        )

    async def initialize(self) -> None:
        with translate_storage_errors():
            await self.storage.initialize()

    async def upload(
        self,
        data: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None,
    ) -> UploadOutcome:
        with translate_storage_errors(key):
            result = await self.storage.upload(data, key, metadata=metadata, content_type=content_type)
        return UploadOutcome(
            key=result.key,
            url=result.url,
            size=result.size,
            content_type=result.content_type,
            metadata=dict(result.metadata),
        )

    async def download(self, key: str) -> bytes:
        with translate_storage_errors(key):
            return await self.storage.download(key)

    async def delete(self, key: str) -> bool:
        with translate_storage_errors(key):
            return await self.storage.delete(key)

    async def exists(self, key: str) -> bool:
        with translate_storage_errors(key):
            return await self.storage.exists(key)

    async def list_objects(self, prefix: str = "", limit: Optional[int] = None) -> list[StoredObject]:
        with translate_storage_errors(prefix):
            records = await self.storage.list_objects(prefix=prefix, limit=limit)
        return [_to_stored(r) for r in records]

    async def get_metadata(self, key: str) -> StoredObject:
        with translate_storage_errors(key):
            return _to_stored(await self.storage.get_metadata(key))

    def public_url(self, key: str) -> str:
        return self.storage.public_url(key)


class DirectoryPortAdapter(DirectoryPort):
    def __init__(self, emulator: PrefixDirectoryEmulator, roots: Sequence[str]):
        self.emulator = emulator
        self.roots = list(roots)

    async def list_root_folders(self) -> list[str]:
        with translate_storage_errors():
            return await self.emulator.list_root_folders()

    async def list_subfolders(self, directory: str) -> list[str]:
        with translate_storage_errors(directory):
            return await self.emulator.list_subfolders(directory)

    async def list_files(self, directory: str) -> list[str]:
        with translate_storage_errors(directory):
            return await self.emulator.list_files(directory)

    async def ensure_directory_exists(self, path: str) -> None:
        with translate_storage_errors(path):
            await self.emulator.ensure_directory_exists(path)

    async def ensure_root_directories(self) -> None:
        with translate_storage_errors():
            await self.emulator.ensure_root_directories(self.roots)
