"""文件读取、删除与移动相关路由。"""
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response as RawResponse

from api.dependencies import get_file_service
from api.utils.headers import build_content_disposition, cache_control_for
from application.dto import (
    DeleteFilesRequestDTO,
    DeleteFilesResultDTO,
    FileMetadataDTO,
    MoveFileRequestDTO,
    UploadResultDTO,
)
from application.services.file_service import FileApplicationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/files",
    tags=["文件管理"],
)

# 元数据使用独立前缀，/files/{path} 下的任意键都只表示文件内容
metadata_router = APIRouter(
    prefix="/files-metadata",
    tags=["文件管理"],
)


@router.post(
    "/move",
    summary="移动文件（临时区提升到正式目录）",
    response_model=ApiResponse[UploadResultDTO],
)
async def move_file(
    payload: MoveFileRequestDTO,
    service: FileApplicationService = Depends(get_file_service),
):
    try:
        payload.ensure_target()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if payload.dest_key:
        result = await service.move_file(payload.source_key, payload.dest_key)
    else:
        result = await service.move_from_temp(payload.source_key, payload.entity_id, folder=payload.folder)
    return success_response(data=UploadResultDTO.from_outcome(result), message="文件已移动")


@router.post(
    "/delete",
    summary="批量删除文件",
    response_model=ApiResponse[DeleteFilesResultDTO],
)
async def delete_files(
    payload: DeleteFilesRequestDTO,
    service: FileApplicationService = Depends(get_file_service),
):
    summary = await service.delete_files(payload.keys)
    return success_response(
        data=DeleteFilesResultDTO(deleted=summary.deleted, failed=summary.failed),
        message="OK",
    )


@metadata_router.get(
    "/{path:path}",
    summary="文件元数据",
    response_model=ApiResponse[FileMetadataDTO],
)
async def get_file_metadata(
    path: str,
    service: FileApplicationService = Depends(get_file_service),
):
    meta = await service.get_metadata(path)
    return success_response(data=FileMetadataDTO.from_object(meta), message="OK")


@router.get(
    "/{path:path}",
    summary="读取文件内容",
    response_class=RawResponse,
)
async def get_file(
    path: str,
    download: bool = Query(False, description="以附件形式下载"),
    service: FileApplicationService = Depends(get_file_service),
):
    data, content_type = await service.get_file(path)
    mode = "attachment" if download else "inline"
    return RawResponse(
        content=data,
        media_type=content_type,
        headers={
            "Content-Disposition": build_content_disposition(mode, path),
            "Cache-Control": cache_control_for(path),
        },
    )


@router.delete(
    "/{path:path}",
    summary="删除文件（幂等）",
    response_model=ApiResponse[dict],
)
async def delete_file(
    path: str,
    service: FileApplicationService = Depends(get_file_service),
):
    removed = await service.delete_file(path)
    return success_response(data={"key": path, "removed": removed}, message="OK")
