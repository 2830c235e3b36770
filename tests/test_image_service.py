import json

import pytest

from application.services.image_service import ImageApplicationService
from domain.common.exceptions import (
    DomainValidationException,
    IllegalStateTransitionException,
    ObjectNotFoundException,
)
from domain.media import (
    THUMBNAIL_SIZES,
    AssetState,
    FitMode,
    ImageDerivativeSpec,
    ImageFormat,
    MediaAsset,
)

from fakes import FailingSpecProcessor, make_image


async def _stored_image(file_service, width=1200, height=1200) -> str:
    result = await file_service.upload_file(
        "public/products/5", make_image(width, height, "JPEG"), "shoe.jpg"
    )
    return result.key


@pytest.mark.asyncio
async def test_thumbnails_use_deterministic_keys(image_service, file_service):
    key = await _stored_image(file_service)
    base = key.rsplit("/", 1)[-1].rsplit(".", 1)[0]

    generated = await image_service.generate_thumbnails(key, ["small", "card"])

    assert set(generated) == {"small", "card"}
    assert generated["small"].key == f"public/thumbnails/{base}_small.webp"
    assert generated["small"].content_type == "image/webp"
    assert generated["card"].metadata["derivative"] == "card"
    assert generated["card"].metadata["source"] == key


@pytest.mark.asyncio
async def test_all_presets_by_default(image_service, file_service):
    key = await _stored_image(file_service)
    generated = await image_service.generate_thumbnails(key)
    assert set(generated) == set(THUMBNAIL_SIZES)


@pytest.mark.asyncio
async def test_unknown_thumbnail_size_is_rejected(image_service, file_service):
    key = await _stored_image(file_service)
    with pytest.raises(DomainValidationException):
        await image_service.generate_thumbnails(key, ["small", "gigantic"])


@pytest.mark.asyncio
@pytest.mark.parametrize("concurrency", [1, 3])
async def test_partial_batch_omits_failed_derivatives(
    storage_port, processor, file_service, concurrency
):
    service = ImageApplicationService(
        storage_port,
        FailingSpecProcessor(processor, {"medium"}),
        file_service,
        concurrency=concurrency,
    )
    key = await _stored_image(file_service)
    specs = [
        ImageDerivativeSpec("small", 150, 150),
        ImageDerivativeSpec("medium", 300, 300),
        ImageDerivativeSpec("wide", 600, 200, FitMode.CONTAIN, format=ImageFormat.PNG),
    ]

    generated = await service.create_responsive_images(key, specs)

    assert set(generated) == {"small", "wide"}
    assert generated["wide"].key.endswith("_wide.png")


@pytest.mark.asyncio
async def test_missing_source_raises_not_found(image_service):
    with pytest.raises(ObjectNotFoundException):
        await image_service.generate_thumbnails("public/products/5/missing.jpg")


@pytest.mark.asyncio
async def test_optimize_and_resize_keys(image_service, file_service):
    key = await _stored_image(file_service)
    base = key.rsplit("/", 1)[-1].rsplit(".", 1)[0]

    optimized = await image_service.optimize_image(key, quality=70)
    resized = await image_service.resize_image(key, width=640)
    again = await image_service.resize_image(key, width=640)

    assert optimized.key == f"public/optimized/{base}.webp"
    assert resized.key == f"public/optimized/{base}_640xauto.webp"
    assert again.key == resized.key
    assert resized.metadata["derivative"] == "resized"


@pytest.mark.asyncio
async def test_upload_processed_image_records_options(image_service, file_service):
    spec = ImageDerivativeSpec("hero", 400, 400, format=ImageFormat.WEBP)

    result = await image_service.upload_processed_image(
        make_image(800, 800), "hero.png", "public/categories", spec
    )

    assert result.key.startswith("public/categories/")
    assert result.key.endswith("-hero.webp")
    assert result.metadata["processed"] == "true"
    assert result.metadata["original_name"] == "hero.png"
    options = json.loads(result.metadata["processing_options"])
    assert options["width"] == 400
    assert options["format"] == "webp"


@pytest.mark.asyncio
async def test_validate_stored_image(image_service, file_service):
    key = await _stored_image(file_service, 100, 100)

    result = await image_service.validate_stored_image(key)

    assert result.valid is False
    with pytest.raises(ObjectNotFoundException):
        await image_service.validate_stored_image("public/none.jpg")


@pytest.mark.asyncio
async def test_ingest_promotes_and_derives(image_service, file_service):
    asset = await image_service.ingest_image(
        make_image(1200, 1200, "JPEG"), "boot.jpg", "77", sizes=["tiny", "small"]
    )

    assert asset.state is AssetState.DERIVATIVES_READY
    assert asset.key.startswith("public/products/77/")
    assert set(asset.derivatives) == {"tiny", "small"}
    assert asset.failed_derivatives == []
    assert await file_service.list_files("public/temp/pending") == []
    assert await file_service.file_exists(asset.key)


@pytest.mark.asyncio
async def test_ingest_rejects_invalid_image_and_cleans_up(image_service, file_service):
    asset = await image_service.ingest_image(make_image(100, 100), "tiny.png", "77")

    assert asset.state is AssetState.REJECTED
    assert asset.errors
    assert asset.is_terminal
    assert await file_service.list_files("public/temp/pending") == []
    assert await file_service.list_files("public/products/77") == []


def test_asset_state_machine_enforces_order():
    asset = MediaAsset(key="public/temp/pending/a.jpg", original_filename="a.jpg")

    with pytest.raises(IllegalStateTransitionException):
        asset.promote("public/products/1/a.jpg")

    asset.mark_validated(["small image"])
    asset.promote("public/products/1/a.jpg")
    with pytest.raises(IllegalStateTransitionException):
        asset.reject(["too late"])

    asset.start_derivatives()
    asset.finish_derivatives({"small": "/api/files/x"}, ["large"])
    assert asset.state is AssetState.DERIVATIVES_READY
    assert asset.key == "public/products/1/a.jpg"
    assert asset.warnings == ["small image"]
    assert asset.failed_derivatives == ["large"]
    assert asset.is_terminal
    assert asset.updated_at is not None
