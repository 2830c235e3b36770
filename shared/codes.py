"""
Business codes carried in the ``code`` field of every JSON response.

Grouped by leading digit: 1xxxx caller input, 2xxxx domain state,
3xxxx permissions, 4xxxx system and storage backends.
"""
from enum import IntEnum


class BusinessCode(IntEnum):
    """业务状态码定义（单一来源）"""

    SUCCESS = 0

    # 请求参数 (1xxxx)
    PARAM_ERROR = 10000
    PARAM_MISSING = 10001
    PARAM_VALIDATION_ERROR = 10003
    INVALID_KEY = 10004  # 对象键格式非法或越出存储根目录

    # 业务状态 (2xxxx)
    BUSINESS_ERROR = 20000
    NOT_FOUND = 20006

    # 权限 (3xxxx)
    PERMISSION_ERROR = 30000
    FORBIDDEN = 30002

    # 系统与存储后端 (4xxxx)
    SYSTEM_ERROR = 40000
    SERVICE_UNAVAILABLE = 40003  # 重试耗尽或超时
    STORAGE_ERROR = 40004
    STORAGE_BACKEND_ERROR = 40005  # 鉴权、桶配置等不可重试错误


__all__ = ["BusinessCode"]
