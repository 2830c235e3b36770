"""虚拟目录浏览路由。"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_file_service
from application.services.file_service import FileApplicationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/folders",
    tags=["目录"],
)


@router.get(
    "",
    summary="根目录列表",
    response_model=ApiResponse[list[str]],
)
async def list_root_folders(service: FileApplicationService = Depends(get_file_service)):
    return success_response(data=await service.list_root_folders(), message="OK")


@router.get(
    "/{path:path}/files",
    summary="目录下的文件（仅直接子项）",
    response_model=ApiResponse[list[str]],
)
async def list_files(path: str, service: FileApplicationService = Depends(get_file_service)):
    return success_response(data=await service.list_files(path), message="OK")


@router.get(
    "/{path:path}/subfolders",
    summary="子目录列表",
    response_model=ApiResponse[list[str]],
)
async def list_subfolders(path: str, service: FileApplicationService = Depends(get_file_service)):
    return success_response(data=await service.list_subfolders(path), message="OK")


@router.post(
    "/{path:path}",
    summary="创建目录标记",
    response_model=ApiResponse[dict],
)
async def ensure_directory(path: str, service: FileApplicationService = Depends(get_file_service)):
    await service.ensure_directory(path)
    return success_response(data={"path": path.strip("/")}, message="OK")
