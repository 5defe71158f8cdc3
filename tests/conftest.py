"""Pytest fixtures for WebDAV Uploader tests."""

import os
import re
import threading

import pytest

from webdav_uploader.core.exceptions import NetworkError
from webdav_uploader.core.models import UploadConfig

CONTENT_RANGE = re.compile(r"^bytes (\d+)-(\d+)/(\d+)$")


class FakeWebDAVServer:
    """In-memory WebDAV store that applies Content-Range writes."""

    def __init__(self):
        self.files = {}
        self.directories = set()
        self.mkdir_calls = []
        self.write_attempts = []
        self.writes = []
        self.removes = []
        self.clients_created = 0
        self.before_write = None
        self.remove_error = None
        self._lock = threading.Lock()

    def client(self):
        with self._lock:
            self.clients_created += 1
        return FakeWebDAVClient(self)

    def mkdir(self, path):
        with self._lock:
            self.mkdir_calls.append(path)
            if path in self.directories:
                return False
            self.directories.add(path)
            return True

    def write(self, path, reader, headers):
        content_range = (headers or {}).get("Content-Range")
        with self._lock:
            self.write_attempts.append((path, content_range))
        if self.before_write is not None:
            self.before_write(path, content_range)

        data = reader if isinstance(reader, bytes) else reader.read()
        with self._lock:
            if content_range is None:
                self.files[path] = bytearray(data)
            else:
                start, end, total = map(int, CONTENT_RANGE.match(content_range).groups())
                assert end - start + 1 == len(data)
                content = self.files.setdefault(path, bytearray())
                if len(content) < total:
                    content.extend(b"\0" * (total - len(content)))
                content[start:end + 1] = data
            self.writes.append((path, content_range))

    def remove(self, path):
        with self._lock:
            self.removes.append(path)
        if self.remove_error is not None:
            raise self.remove_error
        self.files.pop(path, None)

    def ranges_written(self, path):
        return sorted(r for p, r in self.writes if p == path)


class FakeWebDAVClient:
    """Stands in for ``WebDAVClient``, backed by a ``FakeWebDAVServer``."""

    def __init__(self, server):
        self.server = server
        self.closed = False

    def new(self):
        return self.server.client()

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def connect(self):
        pass

    def mkdir(self, path):
        return self.server.mkdir(path)

    def write_stream(self, path, reader, headers=None):
        self.server.write(path, reader, headers)

    def remove(self, path):
        self.server.remove(path)


@pytest.fixture
def server():
    return FakeWebDAVServer()


@pytest.fixture
def client(server):
    return server.client()


@pytest.fixture
def fast_config():
    """Small chunks and no retry delay."""
    return UploadConfig(
        chunk_size=1024,
        workers=3,
        max_attempts=3,
        backoff_base=0,
        poll_interval=0.01,
    )


@pytest.fixture
def make_file(tmp_path):
    """Write a file of random bytes under tmp_path."""

    def _make(relative, size):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(os.urandom(size))
        return path

    return _make


@pytest.fixture
def failing_write():
    """Build a ``before_write`` hook that always fails the chunk at ``offset``."""

    def _make(offset, error=None):
        def hook(path, content_range):
            if content_range and content_range.startswith(f"bytes {offset}-"):
                raise error or NetworkError("injected failure", 500)

        return hook

    return _make
