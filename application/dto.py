"""
数据传输对象（DTO）- 应用层与表现层之间的数据传输
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer

from core.response import to_utc_z
from application.ports.storage import StorageInfo, StoredObject, UploadOutcome
from domain.media import FitMode, ImageFormat, MediaAsset, ValidationResult


class DTOBase(BaseModel):
    """Base DTO: unify datetime serialization to UTC-Z for all subclasses."""

    @model_serializer(mode="wrap")
    def _serialize_model(self, handler):  # type: ignore[override]
        data = handler(self)

        def convert(value):
            if isinstance(value, datetime):
                return to_utc_z(value)
            if isinstance(value, list):
                return [convert(v) for v in value]
            if isinstance(value, tuple):
                return tuple(convert(v) for v in value)
            if isinstance(value, dict):
                return {k: convert(v) for k, v in value.items()}
            return value

        return convert(data)


def _strip_key(value: str) -> str:
    return value.strip().strip("/") if isinstance(value, str) else value


class UploadResultDTO(DTOBase):
    """上传/移动结果"""

    key: str
    url: str
    size: int
    content_type: str
    metadata: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_outcome(cls, outcome: UploadOutcome) -> "UploadResultDTO":
        return cls.model_validate(outcome)


class FileMetadataDTO(DTOBase):
    """对象元数据"""

    key: str
    size: int
    content_type: str
    metadata: dict[str, str] = Field(default_factory=dict)
    last_modified: Optional[datetime] = None
    etag: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_object(cls, obj: StoredObject) -> "FileMetadataDTO":
        return cls.model_validate(obj)


class DeleteFilesRequestDTO(DTOBase):
    """批量删除请求"""

    keys: list[str] = Field(..., min_length=1, max_length=1000)

    @field_validator("keys")
    @classmethod
    def _normalize(cls, value: list[str]) -> list[str]:
        return [_strip_key(k) for k in value]


class DeleteFilesResultDTO(DTOBase):
    deleted: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)


class MoveFileRequestDTO(DTOBase):
    """移动（提升）请求：二选一，给出 dest_key 或 entity_id"""

    source_key: str
    dest_key: Optional[str] = None
    entity_id: Optional[str] = None
    folder: str = Field(default="products")

    @field_validator("source_key", "dest_key")
    @classmethod
    def _normalize(cls, value: Optional[str]) -> Optional[str]:
        return _strip_key(value) if value else value

    def ensure_target(self) -> None:
        if not self.dest_key and not self.entity_id:
            raise ValueError("dest_key 或 entity_id 必须提供一个")


class ImageDetailsDTO(DTOBase):
    format: Optional[str] = None
    size_bytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    quality_score: Optional[int] = None


class ValidationResultDTO(DTOBase):
    """图片校验结果"""

    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    details: ImageDetailsDTO = Field(default_factory=ImageDetailsDTO)

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationResultDTO":
        dims = result.details.dimensions
        return cls(
            valid=result.valid,
            errors=list(result.errors),
            warnings=list(result.warnings),
            details=ImageDetailsDTO(
                format=result.details.format,
                size_bytes=result.details.size_bytes,
                width=dims.width if dims else None,
                height=dims.height if dims else None,
                quality_score=result.details.quality_score,
            ),
        )


class ThumbnailRequestDTO(DTOBase):
    sizes: Optional[list[str]] = None


class DerivativeBatchDTO(DTOBase):
    """派生图批量结果：仅包含成功生成的尺寸"""

    source_key: str
    derivatives: dict[str, UploadResultDTO] = Field(default_factory=dict)


class OptimizeRequestDTO(DTOBase):
    quality: Optional[int] = Field(default=None, ge=1, le=100)
    format: ImageFormat = Field(default=ImageFormat.WEBP)

    @field_validator("format", mode="before")
    @classmethod
    def _parse_format(cls, value):
        return ImageFormat.parse(value) if isinstance(value, str) else value


class ResizeRequestDTO(OptimizeRequestDTO):
    width: Optional[int] = Field(default=None, gt=0)
    height: Optional[int] = Field(default=None, gt=0)
    fit: FitMode = Field(default=FitMode.COVER)


class MediaAssetDTO(DTOBase):
    """图片入库流水线结果"""

    key: str
    original_filename: str
    state: str
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    derivatives: dict[str, str] = Field(default_factory=dict)
    failed_derivatives: list[str] = Field(default_factory=list)
    updated_at: Optional[datetime] = None

    @classmethod
    def from_asset(cls, asset: MediaAsset) -> "MediaAssetDTO":
        return cls(
            key=asset.key,
            original_filename=asset.original_filename,
            state=asset.state.value,
            errors=asset.errors,
            warnings=asset.warnings,
            derivatives=asset.derivatives,
            failed_derivatives=asset.failed_derivatives,
            updated_at=asset.updated_at,
        )


class StorageStatusDTO(DTOBase):
    backend: str
    fallback: bool
    initialized: bool

    @classmethod
    def from_info(cls, info: StorageInfo) -> "StorageStatusDTO":
        return cls(backend=info.backend, fallback=info.fallback, initialized=info.initialized)
