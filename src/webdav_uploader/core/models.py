"""
Pydantic models for WebDAV Uploader.

These models validate connection settings and upload tuning, and describe the
outcome of chunk, file and tree uploads.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

MIB = 1024 * 1024
DEFAULT_CHUNK_SIZE = 32 * MIB
DEFAULT_WORKERS = 4
DEFAULT_MAX_ATTEMPTS = 10


class EmptyFilePolicy(str, Enum):
    """How zero-length files are handled."""

    CREATE = "create"
    SKIP = "skip"
    ERROR = "error"


class UploadState(str, Enum):
    """Lifecycle of a single file upload."""

    IDLE = "idle"
    UPLOADING = "uploading"
    SUCCESS = "success"
    CANCELLING = "cancelling"
    FAILED = "failed"


# Configuration Models
class WebDAVSettings(BaseModel):
    """Connection settings for a WebDAV endpoint."""

    url: str = Field(..., min_length=1, description="WebDAV endpoint URL")
    username: str = Field(..., min_length=1, description="WebDAV username")
    password: str = Field(..., min_length=1, description="WebDAV password")
    verify_ssl: bool = Field(
        False,
        description="Verify the server TLS certificate (off by default so "
        "self-signed servers are accepted)",
    )
    timeout: float = Field(60, gt=0, le=3600, description="Request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate endpoint scheme."""
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")


class UploadConfig(BaseModel):
    """Tuning for the chunked upload engine."""

    chunk_size: int = Field(
        DEFAULT_CHUNK_SIZE, ge=1, description="Maximum chunk size in bytes"
    )
    workers: int = Field(
        DEFAULT_WORKERS, ge=1, le=64, description="Concurrent chunk uploads per file"
    )
    queue_size: Optional[int] = Field(
        None, ge=1, description="Chunks buffered ahead of the workers (default: workers)"
    )
    max_attempts: int = Field(
        DEFAULT_MAX_ATTEMPTS, ge=1, description="Attempts per chunk before giving up"
    )
    backoff_base: float = Field(
        0.5, ge=0, description="First retry delay in seconds, doubled per attempt"
    )
    backoff_max: float = Field(30.0, ge=0, description="Upper bound on a retry delay")
    empty_files: EmptyFilePolicy = Field(
        EmptyFilePolicy.CREATE, description="Handling of zero-length files"
    )
    poll_interval: float = Field(
        0.1, gt=0, description="Seconds between cancellation checks while blocked"
    )

    @property
    def effective_queue_size(self) -> int:
        return self.queue_size or self.workers

    def backoff_for(self, attempt: int) -> float:
        """Delay before retrying after ``attempt`` failed attempts."""
        return min(self.backoff_max, self.backoff_base * 2 ** (attempt - 1))


# Result Models
class ChunkResult(BaseModel):
    """Outcome of one successfully uploaded chunk."""

    index: int = Field(..., ge=0)
    offset: int = Field(..., ge=0)
    length: int = Field(..., gt=0)
    attempts: int = Field(..., ge=1)
    elapsed: float = Field(..., ge=0, description="Seconds spent on the final attempt")

    @property
    def speed_mbps(self) -> float:
        return human_mb_per_s(self.length, self.elapsed)


class FileUploadResult(BaseModel):
    """Outcome of one file upload."""

    model_config = ConfigDict(use_enum_values=True)

    local_path: str
    remote_path: str
    size: int = Field(..., ge=0, description="File size in bytes")
    chunks: int = Field(0, ge=0, description="Number of chunks uploaded")
    upload_time: float = Field(0.0, ge=0, description="Wall time in seconds")
    skipped: bool = Field(False, description="True when nothing was sent")
    state: UploadState = UploadState.SUCCESS

    @property
    def speed_mbps(self) -> float:
        return human_mb_per_s(self.size, self.upload_time)


class TreeUploadResult(BaseModel):
    """Outcome of uploading a file or directory tree."""

    files: List[FileUploadResult] = Field(default_factory=list)
    directories: List[str] = Field(default_factory=list)
    excluded: List[str] = Field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(f.size for f in self.files)

    @property
    def total_time(self) -> float:
        return sum(f.upload_time for f in self.files)


def human_mb_per_s(num_bytes: int, seconds: float) -> float:
    """Return MB/s as float, avoiding divide-by-zero."""
    return (num_bytes / MIB) / seconds if seconds > 0 else 0.0
