"""WebDAV client for collection creation and byte-range writes."""

import logging
from typing import BinaryIO, Dict, Optional
from urllib.parse import quote

import requests

from .exceptions import (
    AuthenticationError,
    DirectoryCreationError,
    InsufficientStorageError,
    NetworkError,
    WebDAVConnectionError,
)
from .models import WebDAVSettings

logger = logging.getLogger(__name__)


class WebDAVClient:
    """Client for the subset of WebDAV the uploader needs.

    Each instance owns one ``requests.Session``. Uploader workers call
    :meth:`new` to get an independent client per attempt.
    """

    WRITE_OK = (200, 201, 204)
    REMOVE_OK = (200, 202, 204, 404)

    def __init__(
        self,
        url: str,
        username: str,
        password: str,
        verify_ssl: bool = False,
        timeout: float = 60,
    ):
        """Initialize the WebDAV client.

        Args:
            url: WebDAV endpoint, e.g. ``https://host/remote.php/webdav``
            username: WebDAV username
            password: WebDAV password
            verify_ssl: Verify the server certificate. Disabled by default so
                self-signed servers work; applies to this client's session only.
            timeout: Per-request timeout in seconds
        """
        self.settings = WebDAVSettings(
            url=url,
            username=username,
            password=password,
            verify_ssl=verify_ssl,
            timeout=timeout,
        )
        self.base_url = self.settings.url

        self.session = requests.Session()
        self.session.auth = (self.settings.username, self.settings.password)
        self.session.verify = self.settings.verify_ssl

    @classmethod
    def from_settings(cls, settings: WebDAVSettings) -> "WebDAVClient":
        return cls(
            url=settings.url,
            username=settings.username,
            password=settings.password,
            verify_ssl=settings.verify_ssl,
            timeout=settings.timeout,
        )

    def new(self) -> "WebDAVClient":
        """Return a fresh client with the same settings."""
        return self.from_settings(self.settings)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "WebDAVClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def url_for(self, path: str) -> str:
        """Build the absolute URL for a remote path."""
        path = path.replace("\\", "/").lstrip("/")
        if not path:
            return self.base_url + "/"
        return f"{self.base_url}/{quote(path)}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        """Send a request, translating transport failures."""
        url = self.url_for(path)
        kwargs.setdefault("timeout", self.settings.timeout)
        try:
            return self.session.request(method, url, **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise WebDAVConnectionError(f"{method} {path} failed: {e}", url) from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

    @staticmethod
    def _check_auth(response: requests.Response, action: str) -> None:
        if response.status_code in (401, 403):
            raise AuthenticationError(
                f"{action} rejected with HTTP {response.status_code}"
            )

    def connect(self) -> None:
        """Check that the endpoint is reachable and the credentials are accepted."""
        try:
            response = self._request("PROPFIND", "", headers={"Depth": "0"})
        except NetworkError as e:
            raise WebDAVConnectionError(str(e), self.base_url) from e

        self._check_auth(response, "Connection")
        if response.status_code not in (200, 207):
            raise WebDAVConnectionError(
                f"Unexpected response from WebDAV server: HTTP {response.status_code}",
                self.base_url,
            )
        logger.debug(f"Connected to {self.base_url}")

    def mkdir(self, path: str) -> bool:
        """Create a remote collection.

        Returns:
            True if the collection was created, False if it already existed
        """
        try:
            response = self._request("MKCOL", path)
        except NetworkError as e:
            raise DirectoryCreationError(path, str(e)) from e

        self._check_auth(response, f"MKCOL {path}")
        if response.status_code == 201:
            logger.info(f"Created remote directory {path}")
            return True
        if response.status_code == 405:
            # MKCOL on an existing resource
            logger.debug(f"Remote directory already exists: {path}")
            return False
        raise DirectoryCreationError(
            path, f"HTTP {response.status_code}", response.status_code
        )

    def write_stream(
        self,
        path: str,
        reader: BinaryIO,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        """PUT ``reader`` to ``path``.

        Pass a ``Content-Range`` header to write only that byte range of the
        remote resource.
        """
        response = self._request("PUT", path, data=reader, headers=headers or {})

        self._check_auth(response, f"PUT {path}")
        if response.status_code == 507:
            raise InsufficientStorageError(
                f"Server reported insufficient storage for {path}"
            )
        if response.status_code not in self.WRITE_OK:
            raise NetworkError(
                f"PUT {path} failed with HTTP {response.status_code}",
                response.status_code,
            )

    def remove(self, path: str) -> None:
        """Delete a remote resource. A missing resource is not an error."""
        response = self._request("DELETE", path)

        self._check_auth(response, f"DELETE {path}")
        if response.status_code not in self.REMOVE_OK:
            raise NetworkError(
                f"DELETE {path} failed with HTTP {response.status_code}",
                response.status_code,
            )
        logger.info(f"Removed remote resource {path}")
