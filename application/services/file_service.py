"""Application layer orchestration for stored files (application/services)."""
from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from application.ports.storage import DirectoryPort, StoragePort, StoredObject, UploadOutcome
from application.utils.storage import (
    build_object_key,
    folder_path,
    generate_unique_filename,
    guess_content_type,
    sanitize_filename,
    validate_key,
    validate_object_key,
)
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    InvalidUploadException,
    ObjectNotFoundException,
)
from domain.common.result import Err, Ok, Result

logger = get_logger(__name__)

_DATA_URL = re.compile(r"^data:(?P<mime>[\w/+.-]+);base64,(?P<payload>.+)$", re.DOTALL)


@dataclass(slots=True)
class DeleteSummary:
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def _outcome_from(obj: StoredObject, url: str) -> UploadOutcome:
    return UploadOutcome(
        key=obj.key,
        url=url,
        size=obj.size,
        content_type=obj.content_type,
        metadata=dict(obj.metadata),
    )


class FileApplicationService:
    """Uploads, reads, deletes, moves and lists objects by key."""

    def __init__(self, storage: StoragePort, directories: DirectoryPort):
        self._storage = storage
        self._directories = directories

    # ------------------------------------------------------------------
    # Uploads
    # ------------------------------------------------------------------
    async def upload_file(
        self,
        directory: str,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> UploadOutcome:
        """Store ``data`` under ``directory`` with a fresh, traceable name."""
        key = build_object_key(directory, generate_unique_filename(filename))
        await self._directories.ensure_directory_exists(directory.strip("/"))
        result = await self._storage.upload(
            data,
            key,
            metadata={"original_name": sanitize_filename(filename), **(metadata or {})},
            content_type=content_type or guess_content_type(filename),
        )
        logger.info("File uploaded", key=key, size=result.size)
        return result

    async def upload_temp_file(
        self,
        data: bytes,
        filename: str,
        identifier: str = "pending",
        content_type: Optional[str] = None,
    ) -> UploadOutcome:
        """Stage an upload under ``public/temp/<identifier>/``."""
        return await self.upload_file(
            folder_path("public", "temp", identifier), data, filename, content_type
        )

    async def upload_product_image(
        self,
        data: bytes,
        filename: str,
        product_id: str,
        content_type: Optional[str] = None,
    ) -> UploadOutcome:
        return await self.upload_file(
            folder_path("public", "products", str(product_id)), data, filename, content_type
        )

    async def upload_base64(self, data_url: str, directory: str, filename: str) -> UploadOutcome:
        """Decode a ``data:<mime>;base64,<payload>`` string and store it."""
        match = _DATA_URL.match(data_url.strip())
        if not match:
            raise InvalidUploadException("Invalid base64 data URL", field="data")
        try:
            data = base64.b64decode(match.group("payload"), validate=True)
        except (binascii.Error, ValueError) as e:
            raise InvalidUploadException(f"Invalid base64 payload: {e}", field="data") from e
        return await self.upload_file(directory, data, filename, content_type=match.group("mime"))

    # ------------------------------------------------------------------
    # Reads and deletes
    # ------------------------------------------------------------------
    async def get_file(self, key: str) -> tuple[bytes, str]:
        """Return (bytes, content type)."""
        validate_key(key)
        data = await self._storage.download(key)
        meta = await self._storage.get_metadata(key)
        return data, meta.content_type

    async def get_metadata(self, key: str) -> StoredObject:
        return await self._storage.get_metadata(validate_key(key))

    async def file_exists(self, key: str) -> bool:
        return await self._storage.exists(validate_key(key))

    async def delete_file(self, key: str) -> bool:
        """Idempotent; returns whether an object was actually removed."""
        removed = await self._storage.delete(validate_key(key))
        logger.info("File deleted", key=key, removed=removed)
        return removed

    async def delete_files(self, keys: Sequence[str]) -> DeleteSummary:
        """Delete each key independently; one failure does not stop the rest."""
        outcomes: list[tuple[str, Result[bool, str]]] = []
        for key in keys:
            try:
                outcomes.append((key, Ok(await self.delete_file(key))))
            except BusinessException as e:
                logger.warning("File delete failed", key=key, error=e.message)
                outcomes.append((key, Err(e.message)))

        summary = DeleteSummary()
        for key, outcome in outcomes:
            match outcome:
                case Ok():
                    summary.deleted.append(key)
                case Err():
                    summary.failed.append(key)
        return summary

    # ------------------------------------------------------------------
    # Promotion
    # ------------------------------------------------------------------
    async def move_file(self, source_key: str, dest_key: str) -> UploadOutcome:
        """Copy ``source_key`` to ``dest_key`` then delete the source.

        Not atomic: a crash between the put and the delete leaves the
        object at both keys. Calling again is the repair: it overwrites
        the destination and retries the delete, and when the source is
        already gone but the destination exists it returns the
        destination as-is.
        """
        validate_key(source_key)
        validate_object_key(dest_key)
        if source_key == dest_key:
            return _outcome_from(await self._storage.get_metadata(dest_key), self._storage.public_url(dest_key))

        try:
            data = await self._storage.download(source_key)
            meta = await self._storage.get_metadata(source_key)
        except ObjectNotFoundException:
            if await self._storage.exists(dest_key):
                logger.info("Move already completed", source=source_key, dest=dest_key)
                dest = await self._storage.get_metadata(dest_key)
                return _outcome_from(dest, self._storage.public_url(dest_key))
            raise

        result = await self._storage.upload(
            data, dest_key, metadata=meta.metadata, content_type=meta.content_type
        )
        await self._storage.delete(source_key)
        logger.info("File moved", source=source_key, dest=dest_key, size=result.size)
        return result

    async def move_from_temp(
        self,
        source_key: str,
        entity_id: str,
        folder: str = "products",
    ) -> UploadOutcome:
        """Promote a staged object to ``public/<folder>/<entity_id>/<name>``."""
        name = validate_key(source_key).rsplit("/", 1)[-1]
        directory = folder_path("public", folder, str(entity_id))
        await self._directories.ensure_directory_exists(directory)
        return await self.move_file(source_key, build_object_key(directory, name))

    # ------------------------------------------------------------------
    # Directory views
    # ------------------------------------------------------------------
    async def list_root_folders(self) -> list[str]:
        return await self._directories.list_root_folders()

    async def list_subfolders(self, directory: str) -> list[str]:
        return await self._directories.list_subfolders(directory)

    async def list_files(self, directory: str) -> list[str]:
        return await self._directories.list_files(directory)

    async def ensure_directory(self, path: str) -> None:
        await self._directories.ensure_directory_exists(validate_key(path))

    async def ensure_root_directories(self) -> None:
        await self._directories.ensure_root_directories()
