"""Directory emulation over a flat key namespace.

A "directory" exists only while at least one key (a marker object
included) carries its prefix. Every call lists the matching keys and
derives the answer from them, so cost is O(n) in the number of keys
under the prefix; there is no secondary index.
"""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from core.logging_config import get_logger
from .base import MARKER_NAMES, StorageProvider, is_hidden_key

logger = get_logger(__name__)

MARKER_NAME = MARKER_NAMES[0]


class VirtualDirectory(Protocol):
    """Directory-like view over a storage backend."""

    async def list_root_folders(self) -> list[str]: ...

    async def list_subfolders(self, directory: str) -> list[str]: ...

    async def list_files(self, directory: str) -> list[str]: ...

    async def ensure_directory_exists(self, path: str) -> None: ...


def _normalize(directory: str) -> str:
    return directory.strip("/")


def root_folders(keys: Sequence[str]) -> list[str]:
    """First path segment of every key left after dropping markers.

    A key stored at the root (``readme.txt``) is its own first segment and
    is reported too; a root holding only a marker is not.
    """
    return sorted({key.split("/", 1)[0] for key in keys if not is_hidden_key(key)})


def subfolders(keys: Sequence[str], directory: str) -> list[str]:
    """Immediate child directory names of ``directory``.

    Marker keys count here: an otherwise empty directory holding only
    ``<dir>/.dir`` is still a subfolder of its parent.
    """
    prefix = f"{_normalize(directory)}/" if _normalize(directory) else ""
    found = set()
    for key in keys:
        if not key.startswith(prefix):
            continue
        remainder = key[len(prefix):]
        if "/" in remainder:
            found.add(remainder.split("/", 1)[0])
    return sorted(found)


def direct_files(keys: Sequence[str], directory: str) -> list[str]:
    """Names of objects directly inside ``directory``, markers excluded."""
    prefix = f"{_normalize(directory)}/" if _normalize(directory) else ""
    files = []
    for key in keys:
        if not key.startswith(prefix) or is_hidden_key(key):
            continue
        remainder = key[len(prefix):]
        if remainder and "/" not in remainder:
            files.append(remainder)
    return sorted(files)


class PrefixDirectoryEmulator:
    """``VirtualDirectory`` implemented by prefix scans of a backend."""

    def __init__(self, storage: StorageProvider, standard_folders: Optional[Sequence[str]] = None) -> None:
        self.storage = storage
        self.standard_folders = list(standard_folders or [])

    async def _keys(self, prefix: str = "") -> list[str]:
        return [obj.key for obj in await self.storage.list_objects(prefix=prefix)]

    async def list_root_folders(self) -> list[str]:
        return root_folders(await self._keys())

    async def list_subfolders(self, directory: str) -> list[str]:
        prefix = f"{_normalize(directory)}/" if _normalize(directory) else ""
        return subfolders(await self._keys(prefix), directory)

    async def list_files(self, directory: str) -> list[str]:
        prefix = f"{_normalize(directory)}/" if _normalize(directory) else ""
        return direct_files(await self._keys(prefix), directory)

    async def ensure_directory_exists(self, path: str) -> None:
        """Write ``<path>/.dir`` unless it is already there.

        Check-then-write: two concurrent callers may both write the marker,
        which is harmless since the content is identical.
        """
        path = _normalize(path)
        if not path:
            return
        marker = f"{path}/{MARKER_NAME}"
        if await self.storage.exists(marker):
            return
        await self.storage.upload(b"", marker, content_type="application/x-directory")
        logger.info("Created directory marker", path=path)

    async def ensure_root_directories(self, roots: Sequence[str]) -> None:
        """Create markers for each root and each standard folder under it."""
        for root in roots:
            await self.ensure_directory_exists(root)
            for folder in self.standard_folders:
                await self.ensure_directory_exists(f"{root}/{folder}")
