"""
Exception classes for WebDAV Uploader.

Provides a hierarchy of exceptions for the configuration, connection,
directory-creation, chunk-transfer and file-level failure scenarios.
"""

from typing import Any, Dict, Optional


class WebDAVUploaderError(Exception):
    """Base exception for all WebDAV Uploader errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class ConfigurationError(WebDAVUploaderError):
    """Raised for configuration-related errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ValidationError(WebDAVUploaderError):
    """Raised for input validation errors."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        details = {"field": field, "value": value}
        super().__init__(f"Validation error for {field}: {message}", details)
        self.field = field
        self.value = value


class WebDAVConnectionError(WebDAVUploaderError):
    """Raised when the WebDAV server cannot be reached."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        details = {"url": url} if url else {}
        super().__init__(message, details)
        self.url = url


class AuthenticationError(WebDAVUploaderError):
    """Raised when the server rejects the supplied credentials."""

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class NetworkError(WebDAVUploaderError):
    """Raised for transport or unexpected HTTP status errors."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        details = {"status_code": status_code} if status_code else {}
        super().__init__(message, details)
        self.status_code = status_code


class InsufficientStorageError(NetworkError):
    """Raised when the server reports 507 Insufficient Storage."""

    def __init__(self, message: str = "Insufficient storage space") -> None:
        super().__init__(message, 507)


class DirectoryCreationError(WebDAVUploaderError):
    """Raised when a remote collection cannot be created."""

    def __init__(
        self, remote_path: str, message: str, status_code: Optional[int] = None
    ) -> None:
        details = {"remote_path": remote_path}
        if status_code:
            details["status_code"] = status_code
        super().__init__(f"Cannot create {remote_path}: {message}", details)
        self.remote_path = remote_path
        self.status_code = status_code


class ChunkUploadError(WebDAVUploaderError):
    """Raised when a chunk exhausts its retry budget or is abandoned mid-retry."""

    def __init__(
        self, chunk_index: int, attempts: int, message: str, abandoned: bool = False
    ) -> None:
        details = {"chunk_index": chunk_index, "attempts": attempts}
        super().__init__(message, details)
        self.chunk_index = chunk_index
        self.attempts = attempts
        # Set when retries stopped because another chunk cancelled the job.
        self.abandoned = abandoned


class UploadError(WebDAVUploaderError):
    """Raised when a file upload fails as a whole."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        remote_path: Optional[str] = None,
        cleanup_error: Optional[BaseException] = None,
    ) -> None:
        details: Dict[str, Any] = {}
        if file_path:
            details["file_path"] = file_path
        if remote_path:
            details["remote_path"] = remote_path
        if cleanup_error is not None:
            details["cleanup_error"] = str(cleanup_error)
        super().__init__(message, details)
        self.file_path = file_path
        self.remote_path = remote_path
        self.cleanup_error = cleanup_error
