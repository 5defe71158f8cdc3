"""Programmatic API for WebDAV uploads."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Pattern, Union

import pydantic

from .client import WebDAVClient
from .coordinator import UploadCoordinator
from .exceptions import ConfigurationError
from .models import FileUploadResult, TreeUploadResult, UploadConfig
from .uploader import ProgressCallback
from .walker import TreeWalker, compile_exclude

logger = logging.getLogger(__name__)


class WebDAVUploaderAPI:
    """High-level API for uploading files and directory trees."""

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        config: Optional[Union[UploadConfig, Dict[str, Any]]] = None,
        verify_ssl: bool = False,
        timeout: float = 60,
    ):
        """Initialize the WebDAV Uploader API.

        Args:
            url: WebDAV endpoint URL
            username: WebDAV username
            password: WebDAV password
            config: Chunk size, worker count and retry settings, as an
                ``UploadConfig`` or a dict of its fields
            verify_ssl: Verify the server TLS certificate
            timeout: Per-request timeout in seconds

        Raises:
            ConfigurationError: If the endpoint or upload settings are invalid
        """
        try:
            if isinstance(config, dict):
                config = UploadConfig.model_validate(config)
            self.config = config or UploadConfig()
            self.client = WebDAVClient(url, username, password, verify_ssl, timeout)
        except pydantic.ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    def connect(self) -> None:
        """Verify the server is reachable with these credentials."""
        self.client.connect()

    def mkdir(self, remote_path: str) -> bool:
        """Create a remote directory. Returns False if it already existed."""
        return self.client.mkdir(remote_path)

    def upload_file(
        self,
        local_path: Union[str, Path],
        remote_path: Optional[str] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> FileUploadResult:
        """Upload a single file.

        Args:
            local_path: Local file path
            remote_path: Remote file path (default: filename)
            progress_callback: Called with (bytes_uploaded, total_bytes, speed_mbps)

        Returns:
            The upload result
        """
        local_path = Path(local_path)
        if remote_path is None:
            remote_path = local_path.name

        coordinator = UploadCoordinator(self.client, self.config, progress_callback)
        return coordinator.upload(str(local_path), remote_path)

    def upload(
        self,
        local_path: Union[str, Path],
        remote_path: str,
        exclude: Optional[Union[str, Pattern]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> TreeUploadResult:
        """Upload a file or directory into ``remote_path``.

        Args:
            local_path: Local file or directory
            remote_path: Remote directory to upload into
            exclude: Regex matched against paths relative to ``local_path``
            progress_callback: Called with (bytes_uploaded, total_bytes, speed_mbps)
                for every chunk of every file

        Returns:
            Per-file results plus created and excluded paths
        """
        coordinator = UploadCoordinator(self.client, self.config, progress_callback)
        walker = TreeWalker(self.client, coordinator, compile_exclude(exclude))
        return walker.upload(local_path, remote_path)

    def close(self) -> None:
        self.client.close()


# Convenience functions for quick usage
def upload(
    local_path: Union[str, Path],
    remote_path: str,
    url: str,
    username: str,
    password: str,
    exclude: Optional[str] = None,
    config: Optional[UploadConfig] = None,
    verify_ssl: bool = False,
) -> TreeUploadResult:
    """Quick function to connect and upload a file or directory."""
    api = WebDAVUploaderAPI(url, username, password, config, verify_ssl)
    try:
        api.connect()
        return api.upload(local_path, remote_path, exclude)
    finally:
        api.close()
