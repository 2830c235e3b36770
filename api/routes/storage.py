"""存储/文件上传相关路由。"""
from __future__ import annotations

from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    UploadFile,
)
from pydantic import Field

from api.dependencies import get_file_service, get_storage_port
from application.dto import DTOBase, StorageStatusDTO, UploadResultDTO
from application.ports.storage import StoragePort
from application.services.file_service import FileApplicationService
from core.config import settings
from core.response import (
    Response as ApiResponse,
    success_response,
)

router = APIRouter(tags=["文件存储"])


class Base64UploadRequestDTO(DTOBase):
    data: str = Field(..., description="data:<mime>;base64,<payload>")
    directory: str
    filename: str


async def read_upload(file: UploadFile) -> bytes:
    """读取上传内容，超过 MAX_UPLOAD_BYTES 返回 413"""
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="文件超过上传大小上限")
    return data


@router.post(
    "/upload-base64",
    summary="上传 base64 数据",
    response_model=ApiResponse[UploadResultDTO],
)
async def upload_base64(
    payload: Base64UploadRequestDTO,
    service: FileApplicationService = Depends(get_file_service),
):
    result = await service.upload_base64(payload.data, payload.directory, payload.filename)
    return success_response(data=UploadResultDTO.from_outcome(result), message="文件上传成功")


@router.post(
    "/upload/{path:path}",
    summary="上传单个文件到指定目录",
    response_model=ApiResponse[UploadResultDTO],
)
async def upload_file(
    path: str,
    file: UploadFile = File(..., description="要上传的文件"),
    temp: bool = Query(False, description="上传到临时区 public/temp/<path>"),
    service: FileApplicationService = Depends(get_file_service),
):
    """文件名经过清洗并加上唯一前缀，目录标记按需创建。"""
    data = await read_upload(file)
    filename = file.filename or "upload.bin"
    content_type: Optional[str] = file.content_type
    if content_type == "application/octet-stream":
        content_type = None
    if temp:
        result = await service.upload_temp_file(data, filename, identifier=path, content_type=content_type)
    else:
        result = await service.upload_file(path, data, filename, content_type=content_type)
    return success_response(data=UploadResultDTO.from_outcome(result), message="文件上传成功")


@router.get(
    "/storage/status",
    summary="存储后端状态",
    response_model=ApiResponse[StorageStatusDTO],
)
async def storage_status(storage: StoragePort = Depends(get_storage_port)):
    return success_response(data=StorageStatusDTO.from_info(storage.info()), message="OK")
