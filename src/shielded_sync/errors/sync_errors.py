"""SyncError — base exception class for all shielded-sync errors."""

from __future__ import annotations


class SyncError(Exception):
    """Base error for all synchronization operations.

    Attributes:
        message: Human-readable error description.
        code: Machine-readable error code string.
    """

    def __init__(self, message: str, *, code: str = "sync-error") -> None:
        super().__init__(message)
        self.message = message
        self.code = code


class EncryptionError(SyncError):
    """Session-key material could not be used to derive a storage key."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="encryption-error")


class ProtocolError(SyncError):
    """A remote service answered with an unexpected shape."""

    def __init__(self, message: str, *, code: str = "protocol-error") -> None:
        super().__init__(message, code=code)


class IndexResolutionError(ProtocolError):
    """The index resolver returned a different number of indices than requested."""

    def __init__(self, requested: int, received: int) -> None:
        super().__init__(
            f"index resolution returned {received} indices for {requested} ciphertexts",
            code="index-resolution-error",
        )
        self.requested = requested
        self.received = received


class RetryExhaustedError(SyncError):
    """A bounded retry policy ran out of attempts."""

    def __init__(self, operation: str, attempts: int) -> None:
        super().__init__(
            f"{operation} failed after {attempts} attempts",
            code="retry-exhausted",
        )
        self.operation = operation
        self.attempts = attempts
