"""Storage provider protocol definitions."""
from typing import Protocol, Optional, runtime_checkable

from .models import ObjectRecord, UploadResult


# Final key segments reserved for directory markers. Only the first one is
# ever written; the rest are recognised when reading legacy trees.
MARKER_NAMES = (".dir", ".folder_marker", ".directory_marker", ".keep")


def is_marker_key(key: str) -> bool:
    """Whether the key names a directory marker object."""
    return key.rsplit("/", 1)[-1] in MARKER_NAMES


def is_hidden_key(key: str) -> bool:
    """Whether the key should never surface in file listings.

    Only directory markers are hidden; backend bookkeeping such as local
    sidecars is kept out of the key space by the backend itself.
    """
    return is_marker_key(key)


@runtime_checkable
class StorageProvider(Protocol):
    """Backend adapter protocol implemented once per concrete store."""

    name: str

    async def upload(
        self,
        file: bytes,
        key: str,
        metadata: Optional[dict] = None,
        content_type: Optional[str] = None
    ) -> UploadResult:
        """Store bytes under key, overwriting any existing object."""
        ...

    async def download(self, key: str) -> bytes:
        """Return the object's bytes. Raises NotFoundError."""
        ...

    async def delete(self, key: str) -> bool:
        """Delete the object. Returns False when it did not exist."""
        ...

    async def exists(self, key: str) -> bool:
        """Check if the object exists."""
        ...

    async def list_objects(
        self,
        prefix: str = "",
        limit: Optional[int] = None
    ) -> list[ObjectRecord]:
        """List objects whose key starts with prefix."""
        ...

    async def get_metadata(self, key: str) -> ObjectRecord:
        """Return the object's record. Raises NotFoundError."""
        ...

    def public_url(self, key: str) -> str:
        """Public URL for key."""
        ...

    async def health_check(self) -> bool:
        """Cheap liveness probe."""
        ...
