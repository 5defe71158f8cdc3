"""
WebDAV Uploader - Concurrent chunked uploads of files and directory trees to WebDAV.

This package provides:
- CLI tool for uploading a local file or directory
- Python SDK for programmatic access
- Byte-range chunked uploads with bounded concurrency and retries
- Cleanup of partially written remote files on failure
"""

__version__ = "1.0.0"

from .core.api import WebDAVUploaderAPI, upload
from .core.chunks import ChunkProducer, FileChunk, RangeReader, iter_file_chunks
from .core.client import WebDAVClient
from .core.coordinator import UploadCoordinator
from .core.exceptions import (
    AuthenticationError,
    ChunkUploadError,
    ConfigurationError,
    DirectoryCreationError,
    InsufficientStorageError,
    NetworkError,
    UploadError,
    ValidationError,
    WebDAVConnectionError,
    WebDAVUploaderError,
)
from .core.models import (
    EmptyFilePolicy,
    FileUploadResult,
    TreeUploadResult,
    UploadConfig,
    UploadState,
    WebDAVSettings,
)
from .core.uploader import ChunkUploaderPool, UploadJob
from .core.walker import TreeWalker

__all__ = [
    # Core classes
    "WebDAVUploaderAPI",
    "WebDAVClient",
    "UploadCoordinator",
    "ChunkUploaderPool",
    "ChunkProducer",
    "TreeWalker",
    "UploadJob",
    "FileChunk",
    "RangeReader",
    "iter_file_chunks",
    # Models
    "UploadConfig",
    "WebDAVSettings",
    "EmptyFilePolicy",
    "UploadState",
    "FileUploadResult",
    "TreeUploadResult",
    # Exceptions
    "WebDAVUploaderError",
    "ConfigurationError",
    "ValidationError",
    "WebDAVConnectionError",
    "AuthenticationError",
    "NetworkError",
    "InsufficientStorageError",
    "DirectoryCreationError",
    "ChunkUploadError",
    "UploadError",
    # Convenience functions
    "upload",
    # Metadata
    "__version__",
]
