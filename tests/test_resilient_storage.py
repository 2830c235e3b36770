import anyio
import pytest

from infrastructure.external.storage import ResilientStorage
from infrastructure.external.storage.exceptions import (
    ConfigurationError,
    NotFoundError,
    PermissionDeniedError,
    TransientBackendError,
)
from infrastructure.external.storage.providers.local import LocalProvider
from infrastructure.external.storage.providers.memory import InMemoryProvider

from fakes import FlakyProvider, memory_config


@pytest.mark.asyncio
async def test_delete_is_idempotent(storage):
    await storage.upload(b"x", "public/a.txt")

    assert await storage.delete("public/a.txt") is True
    assert await storage.delete("public/a.txt") is False
    assert await storage.delete("public/never-existed.txt") is False
    assert await storage.exists("public/a.txt") is False


@pytest.mark.asyncio
async def test_transient_errors_are_retried_until_success():
    primary = FlakyProvider()
    storage = ResilientStorage(primary, memory_config())
    await storage.upload(b"data", "k/v.bin")

    primary.failures = 2
    assert await storage.download("k/v.bin") == b"data"
    assert primary.calls["download"] == 3


@pytest.mark.asyncio
async def test_retries_stop_after_attempt_budget():
    primary = FlakyProvider()
    storage = ResilientStorage(primary, memory_config(max_retry_attempts=4))
    await storage.upload(b"data", "k/v.bin")

    primary.failures = 100
    with pytest.raises(TransientBackendError):
        await storage.download("k/v.bin")
    assert primary.calls["download"] == 4


@pytest.mark.asyncio
async def test_non_transient_errors_fail_immediately():
    primary = FlakyProvider(failures=1, error=PermissionDeniedError)
    storage = ResilientStorage(primary, memory_config())

    with pytest.raises(PermissionDeniedError):
        await storage.upload(b"data", "k/v.bin")
    assert primary.calls["upload"] == 1


@pytest.mark.asyncio
async def test_not_found_is_not_retried():
    primary = FlakyProvider()
    storage = ResilientStorage(primary, memory_config())

    with pytest.raises(NotFoundError):
        await storage.download("missing/key.bin")
    assert primary.calls["download"] == 1


@pytest.mark.asyncio
async def test_failed_verification_switches_to_fallback(tmp_path):
    primary = FlakyProvider(verification_error=TransientBackendError)
    config = memory_config(fallback_local_path=str(tmp_path / "mirror"))
    storage = ResilientStorage(primary, config)

    result = await storage.upload(b"hello", "public/products/1/a.txt")

    status = storage.status()
    assert status.initialized is True
    assert status.fallback is True
    assert status.backend == "local"
    assert isinstance(storage.backend, LocalProvider)
    assert result.key == "public/products/1/a.txt"
    assert (tmp_path / "mirror" / "public" / "products" / "1" / "a.txt").read_bytes() == b"hello"

    assert await storage.download("public/products/1/a.txt") == b"hello"
    assert await storage.delete("public/products/1/a.txt") is True
    assert await storage.exists("public/products/1/a.txt") is False
    assert await storage.delete("public/products/1/a.txt") is False
    assert primary.calls["upload"] == 0
    assert primary.calls["download"] == 0
    primary.verification_error = None
    assert await primary.list_objects() == []


@pytest.mark.asyncio
async def test_fallback_is_sticky_after_primary_recovers():
    primary = FlakyProvider(verification_error=TransientBackendError)
    mirror = InMemoryProvider(memory_config())
    storage = ResilientStorage(primary, memory_config(), fallback_factory=lambda: mirror)

    await storage.upload(b"one", "a/1.txt")
    primary.verification_error = None
    await storage.upload(b"two", "a/2.txt")

    assert storage.is_fallback is True
    assert [r.key for r in await mirror.list_objects("a/")] == ["a/1.txt", "a/2.txt"]
    assert await primary.exists("a/2.txt") is False
    assert primary.calls["list_objects"] == 1


@pytest.mark.asyncio
async def test_concurrent_first_calls_verify_once():
    primary = FlakyProvider(delay=0.01)
    storage = ResilientStorage(primary, memory_config())

    async with anyio.create_task_group() as tg:
        for i in range(20):
            tg.start_soon(storage.upload, b"x", f"c/{i}.txt")

    assert primary.calls["list_objects"] == 1
    assert primary.calls["upload"] == 20
    assert storage.is_fallback is False


@pytest.mark.asyncio
async def test_fallback_disabled_raises_configuration_error():
    primary = FlakyProvider(verification_error=PermissionDeniedError)
    storage = ResilientStorage(primary, memory_config(fallback_enabled=False))

    with pytest.raises(ConfigurationError):
        await storage.upload(b"x", "a/b.txt")
    assert storage.status().initialized is False
    assert await storage.health_check() is False


@pytest.mark.asyncio
async def test_overall_timeout_bounds_the_operation():
    primary = FlakyProvider()
    storage = ResilientStorage(primary, memory_config(), timeout=0.05)
    await storage.initialize()
    primary.delay = 1.0

    with pytest.raises(TransientBackendError, match="timed out"):
        await storage.download("any/key.bin")


@pytest.mark.asyncio
@pytest.mark.parametrize("size", [0, 1, 5 * 1024 * 1024 - 1])
@pytest.mark.parametrize("backend", ["memory", "local"])
async def test_round_trip_preserves_bytes(tmp_path, size, backend):
    config = memory_config(local_base_path=str(tmp_path / "store"))
    provider = InMemoryProvider(config) if backend == "memory" else LocalProvider(config)
    storage = ResilientStorage(provider, config)
    data = bytes(i % 251 for i in range(size))

    result = await storage.upload(data, "public/blob.bin")

    assert result.size == size
    assert await storage.download("public/blob.bin") == data
    assert (await storage.get_metadata("public/blob.bin")).size == size
