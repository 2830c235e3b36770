"""Storage service exceptions."""


class StorageError(Exception):
    """Base storage exception."""
    pass


class NotFoundError(StorageError):
    """Object not found in storage."""
    pass


class TransientBackendError(StorageError):
    """Retryable error (network, timeout, throttling, 5xx)."""
    pass


class PermanentBackendError(StorageError):
    """Non-retryable backend error (auth, missing bucket, bad request)."""
    pass


class PermissionDeniedError(PermanentBackendError):
    """Permission denied for storage operation."""
    pass


class ConfigurationError(PermanentBackendError):
    """Storage configuration error."""
    pass


class ValidationError(StorageError):
    """Invalid key or path."""
    pass
