"""Concurrent chunk uploads with bounded retries and cooperative cancellation."""

import logging
import queue
import threading
import time
from concurrent.futures import Executor, Future
from typing import Callable, List, Optional

from .chunks import END_OF_CHUNKS, FileChunk
from .client import WebDAVClient
from .exceptions import (
    AuthenticationError,
    ChunkUploadError,
    InsufficientStorageError,
    NetworkError,
    WebDAVConnectionError,
)
from .models import ChunkResult, UploadConfig, UploadState, human_mb_per_s

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, float], None]

# Never retried: the next attempt would fail the same way.
FATAL_ERRORS = (AuthenticationError, InsufficientStorageError)
RETRYABLE_ERRORS = (NetworkError, WebDAVConnectionError, OSError)


class UploadJob:
    """State shared by the producer and workers of one file upload."""

    def __init__(self, local_path: str, remote_path: str, size: int) -> None:
        self.local_path = local_path
        self.remote_path = remote_path
        self.size = size
        self.state = UploadState.IDLE
        self.start_time: Optional[float] = None

        self.error: Optional[BaseException] = None
        self.failed_chunk: Optional[int] = None
        self.bytes_uploaded = 0
        self.chunk_results: List[ChunkResult] = []

        self._cancelled = threading.Event()
        self._lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(
        self, error: Optional[BaseException] = None, chunk_index: Optional[int] = None
    ) -> None:
        """Flag the job as cancelled. Only the first error is kept."""
        with self._lock:
            if error is not None and self.error is None:
                self.error = error
                self.failed_chunk = chunk_index
            self._cancelled.set()

    def wait_cancelled(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on cancellation."""
        return self._cancelled.wait(timeout)

    def record_chunk(self, result: ChunkResult) -> int:
        """Add a finished chunk; returns total bytes uploaded so far."""
        with self._lock:
            self.chunk_results.append(result)
            self.bytes_uploaded += result.length
            return self.bytes_uploaded

    @property
    def chunks_uploaded(self) -> int:
        with self._lock:
            return len(self.chunk_results)

    def elapsed(self) -> float:
        if self.start_time is None:
            return 0.0
        return time.monotonic() - self.start_time


class ChunkUploaderPool:
    """A fixed number of workers draining one job's chunk queue."""

    def __init__(
        self,
        client_factory: Callable[[], WebDAVClient],
        config: Optional[UploadConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        """Initialize the pool.

        Args:
            client_factory: Returns a new client; called once per attempt
            config: Worker count, retry budget and backoff
            progress_callback: Called with (bytes_uploaded, total_bytes, speed_mbps)
                after every finished chunk
        """
        self.client_factory = client_factory
        self.config = config or UploadConfig()
        self.progress_callback = progress_callback

    @property
    def workers(self) -> int:
        return self.config.workers

    def submit(
        self, executor: Executor, job: UploadJob, chunk_queue: queue.Queue
    ) -> List[Future]:
        """Start ``workers`` worker loops on ``executor``."""
        return [
            executor.submit(self.worker, job, chunk_queue)
            for _ in range(self.workers)
        ]

    def worker(self, job: UploadJob, chunk_queue: queue.Queue) -> None:
        """Upload chunks until the queue is drained or the job is cancelled."""
        try:
            while not job.cancelled:
                try:
                    item = chunk_queue.get(timeout=self.config.poll_interval)
                except queue.Empty:
                    continue
                if item is END_OF_CHUNKS:
                    return
                if job.cancelled:
                    logger.debug(
                        f"{job.remote_path}: abandoning chunk {item.index} after cancellation"
                    )
                    return
                try:
                    self.upload_chunk(job, item)
                except ChunkUploadError as exc:
                    if exc.abandoned:
                        logger.debug(f"{job.remote_path}: {exc.message}")
                    else:
                        logger.error(f"{job.remote_path}: {exc.message}")
                        job.cancel(exc, item.index)
                    return
        except Exception as exc:
            job.cancel(exc)
            raise

    def upload_chunk(self, job: UploadJob, chunk: FileChunk) -> ChunkResult:
        """Upload one chunk with exponential-backoff retries."""
        headers = {"Content-Range": chunk.content_range}
        max_attempts = self.config.max_attempts
        last_exc: Optional[BaseException] = None
        attempt = 0

        for attempt in range(1, max_attempts + 1):
            logger.debug(
                f"{job.remote_path}: chunk {chunk.index} {chunk.content_range} (attempt {attempt})"
            )
            started = time.monotonic()
            try:
                chunk.reader.seek(0)
                with self.client_factory() as client:
                    client.write_stream(job.remote_path, chunk.reader, headers)
            except FATAL_ERRORS as exc:
                raise ChunkUploadError(
                    chunk.index, attempt, f"Chunk {chunk.index} rejected: {exc}"
                ) from exc
            except RETRYABLE_ERRORS as exc:
                last_exc = exc
                logger.warning(
                    f"{job.remote_path}: chunk {chunk.index} attempt {attempt} failed: {exc}"
                )
                if attempt == max_attempts:
                    break
                backoff = self.config.backoff_for(attempt)
                if backoff > 0 and not job.cancelled:
                    logger.info(
                        f"{job.remote_path}: chunk {chunk.index} retrying in {backoff:.1f}s..."
                    )
                    job.wait_cancelled(backoff)
                if job.cancelled:
                    raise ChunkUploadError(
                        chunk.index,
                        attempt,
                        f"Chunk {chunk.index} ({chunk.content_range}) abandoned after "
                        f"{attempt} attempts, upload cancelled",
                        abandoned=True,
                    ) from exc
                continue

            elapsed = time.monotonic() - started
            result = ChunkResult(
                index=chunk.index,
                offset=chunk.offset,
                length=chunk.length,
                attempts=attempt,
                elapsed=elapsed,
            )
            self._report(job, result)
            return result

        raise ChunkUploadError(
            chunk.index,
            attempt,
            f"Chunk {chunk.index} ({chunk.content_range}) failed after "
            f"{attempt} attempts: {last_exc}",
        ) from last_exc

    def _report(self, job: UploadJob, result: ChunkResult) -> None:
        bytes_uploaded = job.record_chunk(result)
        percent = 100.0 * bytes_uploaded / job.size if job.size else 100.0
        logger.info(
            f"{job.remote_path}: chunk {result.index} uploaded "
            f"({result.length} bytes, {result.speed_mbps:.2f} MB/s), progress: {percent:.1f}%"
        )

        if self.progress_callback:
            speed_mbps = human_mb_per_s(bytes_uploaded, job.elapsed())
            try:
                self.progress_callback(bytes_uploaded, job.size, speed_mbps)
            except Exception as e:
                logger.warning(f"Progress callback error: {e}")
