"""图片校验与派生图路由。"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, File, Form, UploadFile

from api.dependencies import get_image_service
from api.routes.storage import read_upload
from application.dto import (
    DerivativeBatchDTO,
    MediaAssetDTO,
    OptimizeRequestDTO,
    ResizeRequestDTO,
    ThumbnailRequestDTO,
    UploadResultDTO,
    ValidationResultDTO,
)
from application.services.image_service import ImageApplicationService
from core.response import Response as ApiResponse, success_response

router = APIRouter(
    prefix="/images",
    tags=["图片处理"],
)


@router.post(
    "/validate",
    summary="校验上传图片",
    response_model=ApiResponse[ValidationResultDTO],
)
async def validate_image(
    file: UploadFile = File(...),
    service: ImageApplicationService = Depends(get_image_service),
):
    """校验失败也返回 200，错误列表在结果中。"""
    data = await read_upload(file)
    result = await service.validate_image(data, file.filename or "upload")
    return success_response(data=ValidationResultDTO.from_result(result), message="OK")


@router.post(
    "/ingest",
    summary="上传、校验、提升并生成缩略图",
    response_model=ApiResponse[MediaAssetDTO],
)
async def ingest_image(
    file: UploadFile = File(...),
    entity_id: str = Form(...),
    folder: str = Form("products"),
    service: ImageApplicationService = Depends(get_image_service),
):
    data = await read_upload(file)
    asset = await service.ingest_image(data, file.filename or "upload", entity_id, folder=folder)
    return success_response(data=MediaAssetDTO.from_asset(asset), message="OK")


@router.post(
    "/{path:path}/validate",
    summary="校验已存储的图片",
    response_model=ApiResponse[ValidationResultDTO],
)
async def validate_stored_image(
    path: str,
    service: ImageApplicationService = Depends(get_image_service),
):
    result = await service.validate_stored_image(path)
    return success_response(data=ValidationResultDTO.from_result(result), message="OK")


@router.post(
    "/{path:path}/thumbnails",
    summary="生成缩略图",
    response_model=ApiResponse[DerivativeBatchDTO],
)
async def generate_thumbnails(
    path: str,
    payload: Optional[ThumbnailRequestDTO] = Body(default=None),
    service: ImageApplicationService = Depends(get_image_service),
):
    """部分尺寸失败时仍返回成功的那部分。"""
    sizes = payload.sizes if payload else None
    generated = await service.generate_thumbnails(path, sizes)
    return success_response(
        data=DerivativeBatchDTO(
            source_key=path,
            derivatives={name: UploadResultDTO.from_outcome(o) for name, o in generated.items()},
        ),
        message="OK",
    )


@router.post(
    "/{path:path}/optimize",
    summary="重新编码（不缩放）",
    response_model=ApiResponse[UploadResultDTO],
)
async def optimize_image(
    path: str,
    payload: Optional[OptimizeRequestDTO] = Body(default=None),
    service: ImageApplicationService = Depends(get_image_service),
):
    payload = payload or OptimizeRequestDTO()
    result = await service.optimize_image(path, quality=payload.quality, fmt=payload.format)
    return success_response(data=UploadResultDTO.from_outcome(result), message="OK")


@router.post(
    "/{path:path}/resize",
    summary="按指定尺寸生成派生图",
    response_model=ApiResponse[UploadResultDTO],
)
async def resize_image(
    path: str,
    payload: ResizeRequestDTO,
    service: ImageApplicationService = Depends(get_image_service),
):
    result = await service.resize_image(
        path,
        width=payload.width,
        height=payload.height,
        fit=payload.fit,
        fmt=payload.format,
        quality=payload.quality,
    )
    return success_response(data=UploadResultDTO.from_outcome(result), message="OK")
