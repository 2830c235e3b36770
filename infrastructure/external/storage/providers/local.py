"""Local file system storage provider implementation."""
import contextlib
import json
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os
import anyio

from core.logging_config import get_logger
from ..config import StorageConfig
from ..exceptions import NotFoundError, StorageError, ValidationError
from ..models import ObjectRecord, UploadResult
from ..utils import calculate_etag, guess_content_type, join_url, safe_join

logger = get_logger(__name__)

# Provider-owned tree under the base path; never addressable by a key.
# <base>/.storage/meta/<key> is a JSON sidecar with content type and metadata,
# <base>/.storage/tmp/ holds in-flight writes on the same file system.
INTERNAL_DIR = ".storage"


class LocalProvider:
    """Local file system storage provider.

    Keys map onto paths below ``base_path``. Sidecars and partial writes
    live under ``INTERNAL_DIR``, so every user key, whatever its name,
    maps to exactly one file and nothing else.
    """

    name = "local"

    def __init__(self, config: StorageConfig, base_path: Optional[str] = None):
        """Initialize local storage provider.

        Args:
            config: Storage configuration
            base_path: Overrides ``config.local_base_path``
        """
        self.config = config
        self.base_path = Path(base_path or config.local_base_path).resolve()
        self.meta_root = self.base_path / INTERNAL_DIR / "meta"
        self.tmp_root = self.base_path / INTERNAL_DIR / "tmp"
        self.base_path.mkdir(parents=True, exist_ok=True)

    async def upload(
        self,
        file: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None
    ) -> UploadResult:
        """Stage data and sidecar as temp files, then swap both into place.

        Nothing visible changes until the data file is replaced, so a put
        that fails before that point leaves the previous object intact.
        """
        file_path = self._object_path(key)
        meta_path = self._metadata_path(key)
        content_type = content_type or guess_content_type(key)
        metadata = {str(k): str(v) for k, v in (metadata or {}).items()}
        data_tmp = self._temp_path()
        meta_tmp = self._temp_path()
        try:
            await aiofiles.os.makedirs(self.tmp_root, exist_ok=True)
            async with aiofiles.open(data_tmp, "wb") as f:
                await f.write(file)
            async with aiofiles.open(meta_tmp, "w") as f:
                await f.write(json.dumps({"content_type": content_type, "metadata": metadata}))
            await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
            await aiofiles.os.makedirs(meta_path.parent, exist_ok=True)
            await aiofiles.os.replace(data_tmp, file_path)
            await aiofiles.os.replace(meta_tmp, meta_path)
        except OSError as e:
            await self._discard(data_tmp, meta_tmp)
            raise StorageError(f"Failed to upload {key}: {e}") from e

        logger.info("Uploaded to local storage", key=key, size=len(file))
        return UploadResult(
            key=key,
            url=self.public_url(key),
            size=len(file),
            content_type=content_type,
            etag=calculate_etag(file),
            metadata=metadata,
        )

    async def download(self, key: str) -> bytes:
        """Read file from local storage."""
        file_path = self._object_path(key)
        if not file_path.is_file():
            raise NotFoundError(f"File not found: {key}")
        try:
            async with aiofiles.open(file_path, "rb") as f:
                data = await f.read()
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {key}")
        except OSError as e:
            raise StorageError(f"Failed to download {key}: {e}") from e

        logger.debug("Downloaded from local storage", key=key, size=len(data))
        return data

    async def delete(self, key: str) -> bool:
        """Delete the object and then its sidecar."""
        file_path = self._object_path(key)
        meta_path = self._metadata_path(key)
        try:
            if not file_path.is_file():
                return False
            await aiofiles.os.remove(file_path)
            with contextlib.suppress(FileNotFoundError):
                await aiofiles.os.remove(meta_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

        logger.info("Deleted from local storage", key=key)
        return True

    async def exists(self, key: str) -> bool:
        """Check if file exists in local storage."""
        return self._object_path(key).is_file()

    async def list_objects(
        self,
        prefix: str = "",
        limit: Optional[int] = None
    ) -> list[ObjectRecord]:
        """List objects whose key starts with prefix, sorted by key."""
        clean_prefix = prefix.lstrip("/")
        try:
            paths = await anyio.to_thread.run_sync(self._scan, clean_prefix)
        except OSError as e:
            raise StorageError(f"Failed to list objects with prefix '{prefix}': {e}") from e

        objects: list[ObjectRecord] = []
        for key, path in paths:
            if limit is not None and len(objects) >= limit:
                break
            try:
                objects.append(await self._record(key, path))
            except FileNotFoundError:
                # Removed between scan and stat
                continue
        return objects

    async def get_metadata(self, key: str) -> ObjectRecord:
        """Get file metadata from local storage."""
        file_path = self._object_path(key)
        if not file_path.is_file():
            raise NotFoundError(f"File not found: {key}")
        try:
            return await self._record(key, file_path, with_etag=True)
        except FileNotFoundError:
            raise NotFoundError(f"File not found: {key}")

    def public_url(self, key: str) -> str:
        """Get public URL for file."""
        return join_url(self.config.public_base_url, key)

    async def health_check(self) -> bool:
        """Check local storage accessibility."""
        try:
            self.tmp_root.mkdir(parents=True, exist_ok=True)
            probe = self._temp_path()
            probe.touch()
            probe.unlink()
            return True
        except OSError as e:
            logger.error("Local storage health check failed", error=str(e))
            return False

    def _object_path(self, key: str) -> Path:
        """Resolve a key to its data file, refusing the provider's own tree."""
        path = safe_join(self.base_path, key)
        parts = path.relative_to(self.base_path).parts
        if not parts:
            raise ValidationError(f"Key names the storage root: {key}")
        if parts[0] == INTERNAL_DIR:
            raise ValidationError(f"Key uses reserved prefix '{INTERNAL_DIR}/': {key}")
        return path

    def _metadata_path(self, key: str) -> Path:
        # Mirrors the data file's relative path
        return safe_join(self.meta_root, key)

    def _temp_path(self) -> Path:
        return self.tmp_root / f"{uuid.uuid4().hex}.part"

    @staticmethod
    async def _discard(*paths: Path) -> None:
        for path in paths:
            with contextlib.suppress(FileNotFoundError):
                await aiofiles.os.remove(path)

    def _scan(self, clean_prefix: str) -> list[tuple[str, Path]]:
        """Walk the tree and return (key, path) pairs matching the prefix."""
        # Only walk the deepest directory the prefix fully names
        start = self.base_path
        if "/" in clean_prefix:
            start = safe_join(self.base_path, clean_prefix.rsplit("/", 1)[0])
        if not start.is_dir():
            return []

        found = []
        for path in start.rglob("*"):
            if not path.is_file():
                continue
            relative = path.relative_to(self.base_path)
            if relative.parts[0] == INTERNAL_DIR:
                continue
            key = relative.as_posix()
            if key.startswith(clean_prefix):
                found.append((key, path))
        found.sort(key=lambda item: item[0])
        return found

    async def _record(self, key: str, path: Path, with_etag: bool = False) -> ObjectRecord:
        stat = await aiofiles.os.stat(path)
        meta = await self._load_metadata(key)
        etag = None
        if with_etag:
            async with aiofiles.open(path, "rb") as f:
                etag = calculate_etag(await f.read())
        return ObjectRecord(
            key=key,
            size=stat.st_size,
            content_type=meta.get("content_type") or guess_content_type(key),
            last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            etag=etag,
            metadata=meta.get("metadata", {}),
        )

    async def _load_metadata(self, key: str) -> dict:
        """Load metadata from the sidecar; a missing sidecar means none."""
        meta_path = self._metadata_path(key)
        if not meta_path.exists():
            return {}
        try:
            async with aiofiles.open(meta_path, "r") as f:
                return json.loads(await f.read())
        except (OSError, ValueError):
            logger.warning("Unreadable metadata sidecar", path=str(meta_path))
            return {}


async def build_local_provider(config: StorageConfig) -> LocalProvider:
    """Build local storage provider.

    Args:
        config: Storage configuration

    Returns:
        Configured local provider instance
    """
    provider = LocalProvider(config)
    if not await provider.health_check():
        raise StorageError("Failed to access local storage")
    return provider
