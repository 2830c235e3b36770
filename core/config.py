"""
配置文件 - 项目配置管理
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, field_validator
from typing import Optional


class StorageSettings(BaseModel):
    type: str = "local"  # local, s3, memory
    bucket: Optional[str] = None
    region: Optional[str] = None
    endpoint: Optional[str] = None
    public_base_url: str = "/api/files"
    # S3 specific
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    s3_sse: Optional[str] = None
    enable_ssl: bool = True
    # Local storage specific
    local_base_path: str = "./storage"
    # Fallback mirror used when the remote backend cannot be verified
    fallback_enabled: bool = True
    fallback_local_path: str = "./local-storage"
    # Retry / timeout
    max_retry_attempts: int = 4  # 1 initial attempt + 3 retries
    retry_wait_initial: float = 0.2
    retry_wait_max: float = 2.0
    timeout: int = 30
    # Directory emulation
    ensure_root_directories: bool = True


class ImageSettings(BaseModel):
    max_size_bytes: int = 5 * 1024 * 1024  # 5MB
    min_width: int = 200
    min_height: int = 200
    recommended_width: int = 1200
    recommended_height: int = 1200
    allowed_formats: list[str] = Field(
        default_factory=lambda: ["jpeg", "jpg", "png", "webp"]
    )
    # 质量分仅用于展示；配置后低于阈值会产生警告
    quality_warning_threshold: Optional[int] = None
    default_quality: int = 80
    derivative_concurrency: int = 1


class Settings(BaseSettings):
    """项目配置"""

    # 基础配置
    PROJECT_NAME: str = Field(default="Media Storage Service")
    VERSION: str = Field(default="1.0.0")
    DEBUG: bool = Field(default=True)
    ENVIRONMENT: str = Field(default="development")

    # 日志配置
    LOG_LEVEL: Optional[str] = Field(default=None)
    LOG_JSON: bool = Field(default=False)
    LOG_REQUEST_BODY_ENABLE_BY_DEFAULT: bool = Field(default=False)
    LOG_REQUEST_BODY_MAX_BYTES: int = Field(default=2048)

    # CORS配置
    CORS_ORIGINS: list = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
    )

    # 分组配置：存储与图片处理采用嵌套模型
    storage: StorageSettings = Field(default_factory=StorageSettings)
    image: ImageSettings = Field(default_factory=ImageSettings)

    # 上传大小上限（HTTP 层）
    MAX_UPLOAD_BYTES: int = Field(default=20 * 1024 * 1024)

    # pydantic-settings v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        """允许 JSON 字符串或逗号分隔字符串两种格式。"""
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("[") and s.endswith("]"):
                import json
                try:
                    arr = json.loads(s)
                    if isinstance(arr, list):
                        return arr
                except ValueError:
                    pass
            if "," in s:
                return [item.strip() for item in s.split(",") if item.strip()]
            return [s]
        return v


settings = Settings()
