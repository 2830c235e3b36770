"""Application layer orchestration for image validation and derivatives."""
from __future__ import annotations

import json
from dataclasses import asdict, replace
from functools import partial
from typing import Optional, Sequence

import anyio

from application.ports.imaging import ImageProcessorPort
from application.ports.storage import StoragePort, UploadOutcome
from application.services.file_service import FileApplicationService
from application.utils.storage import (
    build_object_key,
    derivative_key,
    dimension_key,
    generate_unique_filename,
    optimized_key,
    validate_key,
)
from core.logging_config import get_logger
from domain.common.exceptions import (
    BusinessException,
    DomainValidationException,
    ObjectNotFoundException,
)
from domain.common.result import Err, Ok, Result
from domain.media import (
    DEFAULT_DERIVATIVE_FORMAT,
    THUMBNAIL_SIZES,
    FitMode,
    ImageDerivativeSpec,
    ImageFormat,
    MediaAsset,
    ValidationResult,
)

logger = get_logger(__name__)


def _spec_metadata(spec: ImageDerivativeSpec) -> str:
    data = asdict(spec)
    return json.dumps({k: getattr(v, "value", v) for k, v in data.items() if v is not None})


class ImageApplicationService:
    """Validates images and produces derivatives under deterministic keys."""

    def __init__(
        self,
        storage: StoragePort,
        processor: ImageProcessorPort,
        files: FileApplicationService,
        derivative_root: str = "public",
        concurrency: int = 1,
    ):
        self._storage = storage
        self._processor = processor
        self._files = files
        self._root = derivative_root
        self._concurrency = max(1, concurrency)

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------
    async def validate_image(self, buffer: bytes, filename: str) -> ValidationResult:
        return await anyio.to_thread.run_sync(partial(self._processor.validate, buffer, filename))

    async def validate_stored_image(self, key: str) -> ValidationResult:
        """Validate an object already in storage.

        A missing key raises ``ObjectNotFoundException``; any other storage
        failure is reported as an invalid result.
        """
        try:
            buffer = await self._storage.download(validate_key(key))
        except ObjectNotFoundException:
            raise
        except BusinessException as e:
            return ValidationResult(valid=False, errors=[f"Failed to read image: {e.message}"])
        return await self.validate_image(buffer, key)

    # ------------------------------------------------------------------
    # Derivatives
    # ------------------------------------------------------------------
    async def _derive(
        self,
        source_key: str,
        buffer: bytes,
        spec: ImageDerivativeSpec,
        key: str,
    ) -> Result[UploadOutcome, str]:
        try:
            processed = await anyio.to_thread.run_sync(partial(self._processor.process, buffer, spec))
            outcome = await self._storage.upload(
                processed.data,
                key,
                metadata={
                    "source": source_key,
                    "derivative": spec.name,
                    "width": str(processed.width),
                    "height": str(processed.height),
                },
                content_type=processed.content_type,
            )
        except Exception as e:
            logger.warning(
                "derivative_failed",
                source=source_key,
                derivative=spec.name,
                error=str(e),
                exc_info=True,
            )
            return Err(str(e))
        return Ok(outcome)

    async def _derive_all(
        self,
        source_key: str,
        specs: Sequence[ImageDerivativeSpec],
    ) -> dict[str, Result[UploadOutcome, str]]:
        buffer = await self._storage.download(validate_key(source_key))
        results: dict[str, Result[UploadOutcome, str]] = {}

        def key_for(spec: ImageDerivativeSpec) -> str:
            fmt = spec.format or DEFAULT_DERIVATIVE_FORMAT
            return derivative_key(source_key, spec.name, fmt, root=self._root)

        async def run(spec: ImageDerivativeSpec, limiter: anyio.CapacityLimiter) -> None:
            async with limiter:
                results[spec.name] = await self._derive(source_key, buffer, spec, key_for(spec))

        if self._concurrency == 1:
            for spec in specs:
                results[spec.name] = await self._derive(source_key, buffer, spec, key_for(spec))
        else:
            limiter = anyio.CapacityLimiter(self._concurrency)
            async with anyio.create_task_group() as tg:
                for spec in specs:
                    tg.start_soon(run, spec, limiter)

        return {spec.name: results[spec.name] for spec in specs}

    async def create_responsive_images(
        self,
        source_key: str,
        specs: Sequence[ImageDerivativeSpec],
    ) -> dict[str, UploadOutcome]:
        """Generate one derivative per spec.

        Returns only the specs that succeeded; a missing name means that
        size was not generated, not that the batch failed.
        """
        specs = [
            spec if spec.format else replace(spec, format=DEFAULT_DERIVATIVE_FORMAT)
            for spec in specs
        ]
        results = await self._derive_all(source_key, specs)
        generated: dict[str, UploadOutcome] = {}
        for name, outcome in results.items():
            match outcome:
                case Ok(value):
                    generated[name] = value
                case Err():
                    pass
        logger.info(
            "Derivatives generated",
            source=source_key,
            generated=len(generated),
            failed=len(results) - len(generated),
        )
        return generated

    async def generate_thumbnails(
        self,
        source_key: str,
        sizes: Optional[Sequence[str]] = None,
    ) -> dict[str, UploadOutcome]:
        """Derivatives for the named presets (all presets by default)."""
        names = list(sizes) if sizes else list(THUMBNAIL_SIZES)
        unknown = [n for n in names if n not in THUMBNAIL_SIZES]
        if unknown:
            raise DomainValidationException(
                f"Unknown thumbnail sizes: {', '.join(unknown)}", field="sizes"
            )
        return await self.create_responsive_images(source_key, [THUMBNAIL_SIZES[n] for n in names])

    async def optimize_image(
        self,
        source_key: str,
        quality: Optional[int] = None,
        fmt: ImageFormat = DEFAULT_DERIVATIVE_FORMAT,
    ) -> UploadOutcome:
        """Re-encode without resizing to ``<root>/optimized/<base>.<fmt>``."""
        spec = ImageDerivativeSpec("optimized", quality=quality, format=fmt)
        return await self._single(source_key, spec, optimized_key(source_key, fmt, root=self._root))

    async def resize_image(
        self,
        source_key: str,
        width: Optional[int] = None,
        height: Optional[int] = None,
        fit: FitMode = FitMode.COVER,
        fmt: ImageFormat = DEFAULT_DERIVATIVE_FORMAT,
        quality: Optional[int] = None,
    ) -> UploadOutcome:
        """One-off size under a dimension-encoded key, so repeats overwrite."""
        spec = ImageDerivativeSpec(
            "resized", width=width, height=height, fit=fit, format=fmt, quality=quality
        )
        key = dimension_key(source_key, width, height, fmt, root=self._root)
        return await self._single(source_key, spec, key)

    async def _single(self, source_key: str, spec: ImageDerivativeSpec, key: str) -> UploadOutcome:
        buffer = await self._storage.download(validate_key(source_key))
        processed = await anyio.to_thread.run_sync(partial(self._processor.process, buffer, spec))
        return await self._storage.upload(
            processed.data,
            key,
            metadata={"source": source_key, "derivative": spec.name},
            content_type=processed.content_type,
        )

    async def upload_processed_image(
        self,
        buffer: bytes,
        filename: str,
        directory: str,
        spec: ImageDerivativeSpec,
    ) -> UploadOutcome:
        """Transform an incoming buffer and store only the result."""
        processed = await anyio.to_thread.run_sync(partial(self._processor.process, buffer, spec))
        stem = filename.rsplit(".", 1)[0] if "." in filename else filename
        key = build_object_key(directory, generate_unique_filename(f"{stem}.{processed.format.value}"))
        return await self._storage.upload(
            processed.data,
            key,
            metadata={
                "processed": "true",
                "original_name": filename.rsplit("/", 1)[-1],
                "processing_options": _spec_metadata(spec),
            },
            content_type=processed.content_type,
        )

    # ------------------------------------------------------------------
    # Full pipeline
    # ------------------------------------------------------------------
    async def ingest_image(
        self,
        buffer: bytes,
        filename: str,
        entity_id: str,
        folder: str = "products",
        sizes: Optional[Sequence[str]] = None,
    ) -> MediaAsset:
        """Stage, validate, promote and derive one uploaded image.

        A rejected image is removed from the staging area and returned in
        the ``REJECTED`` state; nothing is raised for validation failures.
        """
        staged = await self._files.upload_temp_file(buffer, filename)
        asset = MediaAsset(key=staged.key, original_filename=filename)

        result = await self.validate_image(buffer, filename)
        asset.mark_validated(result.warnings)
        if not result.valid:
            asset.reject(result.errors)
            await self._files.delete_file(staged.key)
            logger.info("Image rejected", key=staged.key, errors=result.errors)
            return asset

        promoted = await self._files.move_from_temp(staged.key, entity_id, folder=folder)
        asset.promote(promoted.key)

        asset.start_derivatives()
        names = list(sizes) if sizes else list(THUMBNAIL_SIZES)
        generated = await self.generate_thumbnails(promoted.key, names)
        asset.finish_derivatives(
            {name: outcome.url for name, outcome in generated.items()},
            [name for name in names if name not in generated],
        )
        return asset
