"""
Exception hierarchy for fieldsync.

Local checks, storage failures, transport failures and malformed warehouse
answers each get their own type so callers can decide what is retryable:

    FieldSyncError
    ├── ValidationError          record not fit for remote submission
    ├── StoreError               backing store unavailable, full or corrupt
    ├── NetworkError             timeout / connection failure (retryable)
    │   └── MediaError           media payload could not be read
    ├── RemoteError              warehouse answered with an error status
    ├── ProtocolError            warehouse answer could not be understood
    │   └── UnsupportedOperationError
    └── ConfigError              invalid configuration

A 409 duplicate answer is not an error: it is reported through
SyncOutcome.CONFLICT_RECOVERED.
"""

from typing import Any, Dict, Optional


class FieldSyncError(Exception):
    """Base exception for all fieldsync errors"""
    pass


class ValidationError(FieldSyncError):
    """Raised when a record fails remote validation.

    Attributes:
        errors: Nested error dict as returned by validate_remote()
    """

    def __init__(self, errors: Dict[str, Any], message: Optional[str] = None):
        super().__init__(message or f"Record failed remote validation: {errors}")
        self.errors = errors


class StoreError(FieldSyncError):
    """Raised when the backing store cannot be read or written"""
    pass


class NetworkError(FieldSyncError):
    """Raised on timeouts and connection failures"""
    pass


class MediaError(NetworkError):
    """Raised when a media payload cannot be loaded"""
    pass


class RemoteError(FieldSyncError):
    """Raised when the warehouse answers with an error status."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class ProtocolError(FieldSyncError):
    """Raised when a warehouse response is malformed"""
    pass


class UnsupportedOperationError(ProtocolError):
    """Raised for remote operations that are not implemented (update/read/delete)"""
    pass


class ConfigError(FieldSyncError):
    """Raised when configuration is invalid"""
    pass
