"""Storage configuration models."""
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict


class StorageType(str, Enum):
    """Storage provider types."""
    S3 = "s3"
    LOCAL = "local"
    MEMORY = "memory"


class StorageConfig(BaseModel):
    """Storage configuration model."""
    model_config = ConfigDict(use_enum_values=True)

    # Common settings
    type: StorageType = StorageType.LOCAL
    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint: Optional[str] = None
    public_base_url: str = "/api/files"

    # S3 specific
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_sse: Optional[str] = None  # Server-side encryption
    enable_ssl: bool = True

    # Local specific
    local_base_path: str = "./storage"

    # Resilience
    fallback_enabled: bool = True
    fallback_local_path: str = "./local-storage"
    max_retry_attempts: int = 4  # 1 initial attempt + 3 retries
    retry_wait_initial: float = 0.2
    retry_wait_max: float = 2.0
    timeout: int = 30

    def fallback_config(self) -> "StorageConfig":
        """Config for the local mirror used after a failed verification."""
        return self.model_copy(
            update={
                "type": StorageType.LOCAL,
                "local_base_path": self.fallback_local_path,
            }
        )
