"""Storage data transfer objects."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class ObjectRecord(BaseModel):
    """Stored object description. Identity is the key."""
    key: str
    size: int
    content_type: str = "application/octet-stream"
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class UploadResult(BaseModel):
    """Upload operation result."""
    key: str
    url: str
    size: int
    content_type: str
    etag: Optional[str] = None
    metadata: dict[str, str] = Field(default_factory=dict)


class StorageStatus(BaseModel):
    """Snapshot of the resilient wrapper state."""
    initialized: bool
    fallback: bool
    backend: str
