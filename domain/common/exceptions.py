"""领域层业务异常定义，供领域与应用层使用。

核心（core）层仅负责全局映射与异常处理，尽量避免领域层反向依赖核心层。
"""
from __future__ import annotations

from typing import Optional
from shared.codes import BusinessCode


class BusinessException(Exception):
    """业务异常基类"""

    def __init__(
        self,
        code: int,
        message: str,
        error_type: str = "BusinessError",
        details: Optional[dict] = None,
        field: Optional[str] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error_type = error_type
        self.details = details
        self.field = field
        super().__init__(self.message)


class DomainValidationException(BusinessException):
    def __init__(
        self,
        message: str,
        *,
        field: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(
            code=BusinessCode.PARAM_VALIDATION_ERROR,
            message=message,
            error_type="DomainValidationError",
            details=details,
            field=field,
        )


class InvalidUploadException(BusinessException):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(
            code=BusinessCode.PARAM_ERROR,
            message=message,
            error_type="InvalidUpload",
            field=field,
        )


class IllegalStateTransitionException(BusinessException):
    def __init__(self, current: str, target: str):
        super().__init__(
            code=BusinessCode.BUSINESS_ERROR,
            message=f"Cannot transition asset from {current} to {target}",
            error_type="IllegalStateTransition",
            details={"from": current, "to": target},
        )


class ObjectNotFoundException(BusinessException):
    def __init__(self, key: str):
        super().__init__(
            code=BusinessCode.NOT_FOUND,
            message=f"Object not found: {key}",
            error_type="ObjectNotFound",
            details={"key": key},
        )


class InvalidKeyException(BusinessException):
    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(
            code=BusinessCode.INVALID_KEY,
            message=message,
            error_type="InvalidKey",
            details={"key": key} if key is not None else None,
            field="key",
        )


class StorageUnavailableException(BusinessException):
    """存储后端暂时不可用（重试耗尽后抛出）"""

    def __init__(self, message: str):
        super().__init__(
            code=BusinessCode.SERVICE_UNAVAILABLE,
            message=message,
            error_type="StorageUnavailable",
        )


class StorageBackendException(BusinessException):
    """存储后端永久性错误（鉴权、配置等）"""

    def __init__(self, message: str):
        super().__init__(
            code=BusinessCode.STORAGE_BACKEND_ERROR,
            message=message,
            error_type="StorageBackendError",
        )
