"""Pytest bootstrap configuration.

Environment variables are set before test collection so that
``core.config.settings`` picks them up at import time.
"""
import os

os.environ.setdefault("STORAGE__TYPE", "memory")
os.environ.setdefault("STORAGE__ENSURE_ROOT_DIRECTORIES", "false")
os.environ.setdefault("DEBUG", "true")

import pytest  # noqa: E402

from application.services.file_service import FileApplicationService  # noqa: E402
from application.services.image_service import ImageApplicationService  # noqa: E402
from application.utils.storage import ROOT_DIRS, STORAGE_FOLDERS  # noqa: E402
from infrastructure.adapters.storage_port import (  # noqa: E402
    DirectoryPortAdapter,
    StorageProviderPortAdapter,
)
from infrastructure.external.storage import PrefixDirectoryEmulator, ResilientStorage  # noqa: E402
from infrastructure.external.storage.providers.memory import InMemoryProvider  # noqa: E402
from infrastructure.imaging.pillow_processor import PillowImageProcessor  # noqa: E402

from fakes import memory_config  # noqa: E402


@pytest.fixture
def memory_provider():
    return InMemoryProvider(memory_config())


@pytest.fixture
def storage(memory_provider):
    return ResilientStorage(memory_provider, memory_config())


@pytest.fixture
def storage_port(storage):
    return StorageProviderPortAdapter(storage)


@pytest.fixture
def file_service(storage, storage_port):
    emulator = PrefixDirectoryEmulator(storage, standard_folders=STORAGE_FOLDERS.values())
    return FileApplicationService(storage_port, DirectoryPortAdapter(emulator, ROOT_DIRS))


@pytest.fixture
def processor():
    return PillowImageProcessor()


@pytest.fixture
def image_service(storage_port, processor, file_service):
    return ImageApplicationService(storage_port, processor, file_service)
