import pytest

from infrastructure.external.storage import PrefixDirectoryEmulator, is_marker_key
from infrastructure.external.storage.directory import direct_files, root_folders, subfolders


KEYS = ["a/b.jpg", "a/c/d.jpg", "a/.dir"]


def test_listing_helpers_on_flat_keys():
    assert direct_files(KEYS, "a") == ["b.jpg"]
    assert subfolders(KEYS, "a") == ["c"]
    assert root_folders(["a/b.jpg", "a/c/d.jpg", "x/y"]) == ["a", "x"]


def test_markers_are_dropped_before_taking_root_segments():
    keys = ["readme.txt", ".dir", "public/.dir", "public/products/a.jpg", "private/.dir"]
    assert root_folders(keys) == ["public", "readme.txt"]
    assert subfolders(["public/.dir", "public/products/.dir"], "public") == ["products"]
    assert direct_files(["public/.dir", "public/products/.dir"], "public") == []


def test_trailing_slash_in_directory_is_ignored():
    assert direct_files(KEYS, "a/") == ["b.jpg"]
    assert subfolders(KEYS, "/a/") == ["c"]


def test_marker_names_are_recognised():
    assert is_marker_key("a/.dir")
    assert is_marker_key("a/.folder_marker")
    assert not is_marker_key("a/dir")


@pytest.mark.asyncio
async def test_emulator_over_backend(memory_provider):
    for key in KEYS + ["x/y"]:
        await memory_provider.upload(b"", key)
    emulator = PrefixDirectoryEmulator(memory_provider)

    assert await emulator.list_files("a") == ["b.jpg"]
    assert await emulator.list_subfolders("a") == ["c"]
    assert await emulator.list_root_folders() == ["a", "x"]
    assert await emulator.list_files("missing") == []


@pytest.mark.asyncio
async def test_ensure_directory_makes_empty_folder_visible(memory_provider):
    emulator = PrefixDirectoryEmulator(memory_provider)

    await emulator.ensure_directory_exists("public/products/7/")
    await emulator.ensure_directory_exists("public/products/7")

    assert [r.key for r in await memory_provider.list_objects("public/")] == ["public/products/7/.dir"]
    assert await emulator.list_subfolders("public/products") == ["7"]
    assert await emulator.list_files("public/products/7") == []
    marker = await memory_provider.get_metadata("public/products/7/.dir")
    assert marker.size == 0
    assert marker.content_type == "application/x-directory"


@pytest.mark.asyncio
async def test_ensure_root_directories_creates_standard_folders(memory_provider):
    emulator = PrefixDirectoryEmulator(memory_provider, standard_folders=["products", "temp/pending"])

    await emulator.ensure_root_directories(["public", "private"])

    assert await memory_provider.exists("private/.dir")
    assert await emulator.list_subfolders("private") == ["products", "temp"]
    assert await emulator.list_subfolders("public") == ["products", "temp"]
    assert await emulator.list_subfolders("public/temp") == ["pending"]
