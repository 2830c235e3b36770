"""
API依赖项 - 从应用状态中取出在 lifespan 中装配好的服务
"""
from fastapi import Request

from application.ports.storage import StoragePort
from application.services.file_service import FileApplicationService
from application.services.image_service import ImageApplicationService


def get_storage_port(request: Request) -> StoragePort:
    return request.app.state.storage_port


def get_file_service(request: Request) -> FileApplicationService:
    return request.app.state.file_service


def get_image_service(request: Request) -> ImageApplicationService:
    return request.app.state.image_service
