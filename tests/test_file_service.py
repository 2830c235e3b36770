import base64

import pytest

from domain.common.exceptions import (
    InvalidKeyException,
    InvalidUploadException,
    ObjectNotFoundException,
    StorageUnavailableException,
)
from infrastructure.adapters.storage_port import StorageProviderPortAdapter
from infrastructure.external.storage import ResilientStorage

from fakes import FlakyProvider, memory_config


@pytest.mark.asyncio
async def test_upload_file_stores_under_directory_with_metadata(file_service):
    result = await file_service.upload_file(
        "public/products/42", b"jpeg-bytes", "My Shoe.jpg", metadata={"sku": "A1"}
    )

    assert result.key.startswith("public/products/42/")
    assert result.key.endswith("-My_Shoe.jpg")
    assert result.url == f"/api/files/{result.key}"
    assert result.content_type == "image/jpeg"
    assert result.metadata == {"original_name": "My_Shoe.jpg", "sku": "A1"}
    assert await file_service.list_subfolders("public/products") == ["42"]

    data, content_type = await file_service.get_file(result.key)
    assert data == b"jpeg-bytes"
    assert content_type == "image/jpeg"


@pytest.mark.asyncio
async def test_upload_temp_file_goes_to_staging_area(file_service):
    result = await file_service.upload_temp_file(b"x", "a.png")
    assert result.key.startswith("public/temp/pending/")


@pytest.mark.asyncio
async def test_upload_base64_decodes_data_url(file_service):
    payload = base64.b64encode(b"\x89PNG-ish").decode()
    result = await file_service.upload_base64(
        f"data:image/png;base64,{payload}", "public/categories", "icon.png"
    )

    data, content_type = await file_service.get_file(result.key)
    assert data == b"\x89PNG-ish"
    assert content_type == "image/png"

    with pytest.raises(InvalidUploadException):
        await file_service.upload_base64("not-a-data-url", "public/categories", "icon.png")
    with pytest.raises(InvalidUploadException):
        await file_service.upload_base64("data:image/png;base64,@@@", "public/categories", "icon.png")


@pytest.mark.asyncio
async def test_move_preserves_bytes_and_metadata(file_service):
    staged = await file_service.upload_temp_file(b"payload", "shoe.jpg")

    moved = await file_service.move_file(staged.key, "public/products/1/shoe.jpg")

    assert moved.key == "public/products/1/shoe.jpg"
    assert await file_service.file_exists(staged.key) is False
    data, content_type = await file_service.get_file(moved.key)
    assert data == b"payload"
    assert content_type == "image/jpeg"
    assert (await file_service.get_metadata(moved.key)).metadata["original_name"] == "shoe.jpg"


@pytest.mark.asyncio
async def test_move_rerun_after_completion_returns_destination(file_service):
    staged = await file_service.upload_temp_file(b"payload", "shoe.jpg")
    first = await file_service.move_file(staged.key, "public/products/1/shoe.jpg")

    again = await file_service.move_file(staged.key, "public/products/1/shoe.jpg")

    assert again.key == first.key
    assert again.size == len(b"payload")


@pytest.mark.asyncio
async def test_move_repairs_half_finished_move(file_service, memory_provider):
    staged = await file_service.upload_temp_file(b"payload", "shoe.jpg")
    # Crash after the put but before the delete: both keys exist
    await memory_provider.upload(b"payload", "public/products/1/shoe.jpg")

    await file_service.move_file(staged.key, "public/products/1/shoe.jpg")

    assert await file_service.file_exists(staged.key) is False
    assert await file_service.file_exists("public/products/1/shoe.jpg") is True


@pytest.mark.asyncio
async def test_move_missing_source_raises_not_found(file_service):
    with pytest.raises(ObjectNotFoundException):
        await file_service.move_file("public/temp/pending/none.jpg", "public/products/1/none.jpg")


@pytest.mark.asyncio
async def test_move_to_same_key_is_a_no_op(file_service):
    staged = await file_service.upload_temp_file(b"payload", "shoe.jpg")
    result = await file_service.move_file(staged.key, staged.key)
    assert result.key == staged.key
    assert await file_service.file_exists(staged.key) is True


@pytest.mark.asyncio
async def test_move_from_temp_promotes_into_entity_folder(file_service):
    staged = await file_service.upload_temp_file(b"payload", "shoe.jpg")
    name = staged.key.rsplit("/", 1)[-1]

    moved = await file_service.move_from_temp(staged.key, "99", folder="suppliers")

    assert moved.key == f"public/suppliers/99/{name}"
    assert await file_service.list_files("public/suppliers/99") == [name]


@pytest.mark.asyncio
async def test_delete_files_reports_each_key(file_service):
    a = await file_service.upload_file("public/x", b"a", "a.txt")

    summary = await file_service.delete_files([a.key, "public/x/missing.txt", "bad//key"])

    assert summary.deleted == [a.key, "public/x/missing.txt"]
    assert summary.failed == ["bad//key"]


@pytest.mark.asyncio
async def test_invalid_keys_raise_domain_error(file_service):
    with pytest.raises(InvalidKeyException):
        await file_service.get_file("/absolute/key")


@pytest.mark.asyncio
async def test_exhausted_retries_surface_as_unavailable():
    primary = FlakyProvider()
    port = StorageProviderPortAdapter(ResilientStorage(primary, memory_config()))
    await port.upload(b"x", "a/b.txt")
    primary.failures = 100

    with pytest.raises(StorageUnavailableException):
        await port.download("a/b.txt")
    assert port.info().backend == "flaky"


@pytest.mark.asyncio
async def test_move_refuses_directory_marker_destination(file_service):
    staged = await file_service.upload_temp_file(b"payload", "shoe.jpg")

    with pytest.raises(InvalidKeyException):
        await file_service.move_file(staged.key, "public/products/1/.dir")
    assert await file_service.file_exists(staged.key) is True


@pytest.mark.asyncio
async def test_names_ending_in_meta_are_listed(file_service):
    uploaded = await file_service.upload_file("public/docs", b"notes", "notes.meta")
    name = uploaded.key.rsplit("/", 1)[-1]

    assert name.endswith("-notes.meta")
    assert await file_service.list_files("public/docs") == [name]
