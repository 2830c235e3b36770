"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import files as files_routes
from api.routes import folders as folders_routes
from api.routes import images as images_routes
from api.routes import storage as storage_routes
from application.dto import StorageStatusDTO
from application.services.file_service import FileApplicationService
from application.services.image_service import ImageApplicationService
from application.utils.storage import ROOT_DIRS, STORAGE_FOLDERS
from core.config import Settings, settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from domain.common.exceptions import BusinessException
from infrastructure.adapters.storage_port import DirectoryPortAdapter, StorageProviderPortAdapter
from infrastructure.external.storage import (
    PrefixDirectoryEmulator,
    build_storage,
    get_storage_config,
)
from infrastructure.imaging.pillow_processor import PillowImageProcessor


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


async def build_services(app: FastAPI, cfg: Settings) -> None:
    """组装存储、目录与图片服务并挂到 app.state（唯一的装配点）"""
    storage_config = get_storage_config(cfg.storage)
    storage = await build_storage(storage_config, timeout=cfg.storage.timeout)

    storage_port = StorageProviderPortAdapter(storage)
    # 验证失败时按配置回退到本地镜像；不允许回退时直接抛出
    await storage_port.initialize()

    emulator = PrefixDirectoryEmulator(storage, standard_folders=STORAGE_FOLDERS.values())
    directories = DirectoryPortAdapter(emulator, ROOT_DIRS)
    file_service = FileApplicationService(storage_port, directories)
    image_service = ImageApplicationService(
        storage_port,
        PillowImageProcessor(cfg.image),
        file_service,
        concurrency=cfg.image.derivative_concurrency,
    )

    app.state.storage = storage
    app.state.storage_port = storage_port
    app.state.file_service = file_service
    app.state.image_service = image_service

    info = storage_port.info()
    logger.info(
        "storage_initialized",
        provider=storage_config.type,
        backend=info.backend,
        fallback=info.fallback,
    )

    if cfg.storage.ensure_root_directories:
        try:
            await file_service.ensure_root_directories()
        except BusinessException as exc:
            # 目录标记只影响空目录的展示
            logger.warning("root_directories_failed", error=exc.message)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    await build_services(app, settings)
    yield
    logger.info("application_shutdown", message="Application shutdown")


def create_app(lifespan_handler=lifespan) -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan_handler,
        description="对象存储与图片派生服务",
    )

    # 添加中间件（注意顺序：从下往上执行）
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(files_routes.router, prefix="/api")
    app.include_router(files_routes.metadata_router, prefix="/api")
    app.include_router(folders_routes.router, prefix="/api")
    app.include_router(storage_routes.router, prefix="/api")
    app.include_router(images_routes.router, prefix="/api")

    @app.get("/", tags=["Root"])
    async def root():
        """API根路径"""
        return success_response(
            data={
                "name": settings.PROJECT_NAME,
                "version": settings.VERSION,
                "docs": "/docs",
                "redoc": "/redoc",
            },
        )

    @app.get("/health", tags=["Health"])
    async def health_check():
        """健康检查端点，附带存储后端状态（是否处于本地回退）"""
        storage_port = getattr(app.state, "storage_port", None)
        storage = StorageStatusDTO.from_info(storage_port.info()) if storage_port else None
        status = "healthy"
        if storage is None or not storage.initialized:
            status = "starting"
        elif storage.fallback:
            status = "degraded"
        return success_response(data={"status": status, "storage": storage})

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
