"""Tests for the chunk uploader pool."""

import io
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait

import pytest

from webdav_uploader.core.chunks import END_OF_CHUNKS, iter_file_chunks
from webdav_uploader.core.exceptions import (
    AuthenticationError,
    ChunkUploadError,
    InsufficientStorageError,
    NetworkError,
)
from webdav_uploader.core.models import UploadConfig, UploadState
from webdav_uploader.core.uploader import ChunkUploaderPool, UploadJob


def make_chunks(data, chunk_size):
    return list(iter_file_chunks(io.BytesIO(data), len(data), chunk_size))


class TestUploadJob:
    def test_starts_idle(self):
        job = UploadJob("a", "/a", 10)
        assert job.state == UploadState.IDLE
        assert not job.cancelled

    def test_cancel_is_idempotent_and_keeps_first_error(self):
        job = UploadJob("a", "/a", 10)
        first, second = RuntimeError("first"), RuntimeError("second")

        job.cancel(first, 3)
        job.cancel(second, 5)
        job.cancel()

        assert job.cancelled
        assert job.error is first
        assert job.failed_chunk == 3


class TestUploadChunk:
    """Test suite for ChunkUploaderPool.upload_chunk."""

    def test_sends_content_range(self, server, fast_config):
        data = b"abcdefghij"
        job = UploadJob("local", "/f", len(data))
        pool = ChunkUploaderPool(server.client, fast_config)

        result = pool.upload_chunk(job, make_chunks(data, 4)[1])

        assert server.writes == [("/f", "bytes 4-7/10")]
        assert result.index == 1
        assert result.attempts == 1
        assert job.bytes_uploaded == 4

    def test_retries_with_fresh_client(self, server, fast_config):
        data = b"x" * 10
        failures = []

        def flaky(path, content_range):
            if len(failures) < 2:
                failures.append(content_range)
                raise NetworkError("boom", 502)

        server.before_write = flaky
        job = UploadJob("local", "/f", len(data))
        pool = ChunkUploaderPool(server.client, fast_config)

        result = pool.upload_chunk(job, make_chunks(data, 10)[0])

        assert result.attempts == 3
        assert server.clients_created == 3
        assert bytes(server.files["/f"]) == data

    def test_exhausted_retries(self, server, fast_config, failing_write):
        server.before_write = failing_write(0)
        job = UploadJob("local", "/f", 10)
        pool = ChunkUploaderPool(server.client, fast_config)

        with pytest.raises(ChunkUploadError) as exc_info:
            pool.upload_chunk(job, make_chunks(b"x" * 10, 10)[0])

        assert exc_info.value.attempts == fast_config.max_attempts
        assert isinstance(exc_info.value.__cause__, NetworkError)
        assert len(server.write_attempts) == fast_config.max_attempts
        assert not exc_info.value.abandoned

    def test_abandoned_when_cancelled_during_retry(self, server):
        config = UploadConfig(max_attempts=5, backoff_base=5)
        job = UploadJob("local", "/f", 10)

        def cancel_then_fail(path, content_range):
            job.cancel(RuntimeError("other chunk failed"), 3)
            raise NetworkError("bad gateway", 502)

        server.before_write = cancel_then_fail
        pool = ChunkUploaderPool(server.client, config)

        started = time.monotonic()
        with pytest.raises(ChunkUploadError) as exc_info:
            pool.upload_chunk(job, make_chunks(b"x" * 10, 10)[0])

        assert time.monotonic() - started < 4
        assert exc_info.value.abandoned
        assert exc_info.value.attempts == 1
        assert len(server.write_attempts) == 1

    @pytest.mark.parametrize(
        "error", [AuthenticationError(), InsufficientStorageError()]
    )
    def test_fatal_errors_not_retried(self, server, fast_config, failing_write, error):
        server.before_write = failing_write(0, error)
        job = UploadJob("local", "/f", 10)
        pool = ChunkUploaderPool(server.client, fast_config)

        with pytest.raises(ChunkUploadError):
            pool.upload_chunk(job, make_chunks(b"x" * 10, 10)[0])

        assert len(server.write_attempts) == 1

    def test_progress_callback(self, server, fast_config):
        data = b"x" * 10
        calls = []
        job = UploadJob("local", "/f", len(data))
        pool = ChunkUploaderPool(
            server.client, fast_config, lambda done, total, speed: calls.append((done, total))
        )

        for chunk in make_chunks(data, 4):
            pool.upload_chunk(job, chunk)

        assert calls == [(4, 10), (8, 10), (10, 10)]

    def test_progress_callback_errors_are_not_fatal(self, server, fast_config):
        def broken(*args):
            raise RuntimeError("display gone")

        job = UploadJob("local", "/f", 4)
        pool = ChunkUploaderPool(server.client, fast_config, broken)

        result = pool.upload_chunk(job, make_chunks(b"abcd", 4)[0])
        assert result.length == 4


class TestWorkers:
    """Test suite for the worker loop."""

    def run_pool(self, pool, job, chunks, queue_size=0):
        chunk_queue = queue.Queue(maxsize=queue_size)
        for chunk in chunks:
            chunk_queue.put(chunk)
        for _ in range(pool.workers):
            chunk_queue.put(END_OF_CHUNKS)
        with ThreadPoolExecutor(max_workers=pool.workers) as executor:
            futures = pool.submit(executor, job, chunk_queue)
            wait(futures, timeout=10)
        for future in futures:
            future.result()
        return chunk_queue

    def test_drains_queue(self, server, fast_config):
        data = bytes(range(256)) * 20
        job = UploadJob("local", "/f", len(data))
        pool = ChunkUploaderPool(server.client, fast_config)

        self.run_pool(pool, job, make_chunks(data, 100))

        assert not job.cancelled
        assert bytes(server.files["/f"]) == data
        assert job.chunks_uploaded == 52

    def test_permanent_failure_cancels_job(self, server, failing_write):
        config = UploadConfig(
            chunk_size=10, workers=1, max_attempts=2, backoff_base=0, poll_interval=0.01
        )
        server.before_write = failing_write(10)
        data = b"x" * 50
        job = UploadJob("local", "/f", len(data))
        pool = ChunkUploaderPool(server.client, config)

        self.run_pool(pool, job, make_chunks(data, 10))

        assert job.cancelled
        assert job.failed_chunk == 1
        assert isinstance(job.error, ChunkUploadError)
        # single worker: nothing after the failed chunk is attempted
        attempted = {r for _, r in server.write_attempts}
        assert attempted == {"bytes 0-9/50", "bytes 10-19/50"}

    def test_cancelled_job_pulls_nothing(self, server, fast_config):
        data = b"x" * 30
        job = UploadJob("local", "/f", len(data))
        job.cancel()
        pool = ChunkUploaderPool(server.client, fast_config)

        remaining = self.run_pool(pool, job, make_chunks(data, 10))

        assert server.write_attempts == []
        assert remaining.qsize() == 3 + pool.workers

    def test_cancellation_cuts_retry_backoff_short(self, server, caplog):
        caplog.set_level(logging.DEBUG, logger="webdav_uploader")
        config = UploadConfig(
            chunk_size=10, workers=2, max_attempts=3, backoff_base=5, poll_interval=0.01
        )
        second_chunk_failed = threading.Event()

        def before_write(path, content_range):
            if content_range == "bytes 0-9/20":
                second_chunk_failed.wait(5)
                raise AuthenticationError()
            second_chunk_failed.set()
            raise NetworkError("bad gateway", 502)

        server.before_write = before_write
        data = b"x" * 20
        job = UploadJob("local", "/f", len(data))
        pool = ChunkUploaderPool(server.client, config)

        started = time.monotonic()
        self.run_pool(pool, job, make_chunks(data, 10))

        assert time.monotonic() - started < 4
        assert job.failed_chunk == 0
        assert [r for _, r in server.write_attempts].count("bytes 10-19/20") == 1

        errors = [r.getMessage() for r in caplog.records if r.levelno >= logging.ERROR]
        assert len(errors) == 1
        assert "Chunk 0 rejected" in errors[0]
        assert any(
            "Chunk 1" in r.getMessage() and "abandoned" in r.getMessage()
            for r in caplog.records
            if r.levelno == logging.DEBUG
        )
