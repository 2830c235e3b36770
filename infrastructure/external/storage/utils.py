"""Storage utility functions and retry support."""
import hashlib
import mimetypes
from pathlib import Path
from typing import Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.logging_config import get_logger
from .exceptions import TransientBackendError, ValidationError

logger = get_logger(__name__)

# Formats mimetypes does not know about on every platform
_EXTRA_TYPES = {
    ".webp": "image/webp",
    ".avif": "image/avif",
}


def guess_content_type(filename: str) -> str:
    """Guess content type from filename.

    Args:
        filename: File name or path

    Returns:
        MIME type string
    """
    suffix = Path(filename).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or "application/octet-stream"


def safe_join(base: Path, relative: str) -> Path:
    """Safely join paths preventing traversal attacks.

    Args:
        base: Resolved base path
        relative: Storage key to join

    Returns:
        Safe joined path

    Raises:
        ValidationError: If path would escape base
    """
    clean = relative.lstrip("/")
    if not clean:
        raise ValidationError("Empty key")

    full_path = (base / clean).resolve()
    try:
        full_path.relative_to(base)
    except ValueError:
        raise ValidationError(f"Path escapes base directory: {relative}")

    return full_path


def calculate_etag(data: bytes) -> str:
    """MD5 hex digest, matching what S3 returns for single-part uploads."""
    return hashlib.md5(data).hexdigest()


def join_url(base: str, key: str) -> str:
    """Append a key to a public base URL without doubling slashes."""
    return f"{base.rstrip('/')}/{key.lstrip('/')}"


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "storage_retry",
        attempt=retry_state.attempt_number,
        wait=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
        error=str(exc),
    )


def build_retrying(
    max_attempts: int = 4,
    wait_initial: float = 0.2,
    wait_max: float = 2.0,
    before_sleep: Optional[Callable[[RetryCallState], None]] = _log_retry,
) -> AsyncRetrying:
    """Retry controller for transient backend errors only.

    Backoff is exponential: wait_initial, then doubled per attempt, capped
    at wait_max. The final error is re-raised unchanged once the attempt
    budget is spent.

    Args:
        max_attempts: Total attempts including the first one
        wait_initial: First backoff delay in seconds
        wait_max: Maximum delay between attempts
        before_sleep: Hook invoked before each backoff sleep
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=wait_initial, max=wait_max),
        retry=retry_if_exception_type(TransientBackendError),
        before_sleep=before_sleep,
        reraise=True,
    )
