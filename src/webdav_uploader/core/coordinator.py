"""Upload one local file to one remote path, chunk by chunk."""

import logging
import os
import queue
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Optional

from .chunks import ChunkProducer, chunk_count
from .client import WebDAVClient
from .exceptions import UploadError, WebDAVUploaderError
from .models import EmptyFilePolicy, FileUploadResult, UploadConfig, UploadState
from .uploader import ChunkUploaderPool, ProgressCallback, UploadJob

logger = logging.getLogger(__name__)


class UploadCoordinator:
    """Runs the producer and uploader pool for a file and cleans up on failure."""

    def __init__(
        self,
        client: WebDAVClient,
        config: Optional[UploadConfig] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.client = client
        self.config = config or UploadConfig()
        self.progress_callback = progress_callback
        self.last_job: Optional[UploadJob] = None

    def upload(self, local_path: str, remote_path: str) -> FileUploadResult:
        """Upload ``local_path`` to ``remote_path``.

        Returns:
            The upload result

        Raises:
            UploadError: The file could not be read, or a chunk failed permanently
                (the partially written remote file has been removed)
        """
        local_path = str(local_path)
        try:
            f = open(local_path, "rb")
        except OSError as e:
            raise UploadError(
                f"Cannot read local file {local_path}: {e}", local_path, remote_path
            ) from e

        with f:
            size = os.fstat(f.fileno()).st_size
            job = UploadJob(local_path, remote_path, size)
            self.last_job = job

            if size == 0:
                return self._upload_empty(job)

            total_chunks = chunk_count(size, self.config.chunk_size)
            logger.info(
                f"Uploading {local_path} to {remote_path}: {size} bytes in "
                f"{total_chunks} chunks of up to {self.config.chunk_size} bytes"
            )
            self._run(job, f)

        if job.cancelled:
            self._fail(job)

        job.state = UploadState.SUCCESS
        elapsed = job.elapsed()
        result = FileUploadResult(
            local_path=local_path,
            remote_path=remote_path,
            size=size,
            chunks=job.chunks_uploaded,
            upload_time=elapsed,
        )
        duration = time.strftime("%Hh %Mm %Ss", time.gmtime(elapsed))
        logger.info(
            f"Uploaded {remote_path}: Upload Speed {result.speed_mbps:.2f} MB/s, Duration {duration}"
        )
        return result

    def _run(self, job: UploadJob, fileobj) -> None:
        """Run producer and workers until the queue drains or the job is cancelled."""
        pool = ChunkUploaderPool(self.client.new, self.config, self.progress_callback)
        producer = ChunkProducer(
            fileobj, job.size, self.config.chunk_size, self.config.poll_interval
        )
        chunk_queue: queue.Queue = queue.Queue(maxsize=self.config.effective_queue_size)

        def produce() -> int:
            try:
                return producer.produce(job, chunk_queue, pool.workers)
            except Exception as exc:
                job.cancel(exc)
                raise

        job.state = UploadState.UPLOADING
        job.start_time = time.monotonic()
        with ThreadPoolExecutor(
            max_workers=pool.workers + 1, thread_name_prefix="chunk-upload"
        ) as executor:
            futures = [executor.submit(produce)]
            futures.extend(pool.submit(executor, job, chunk_queue))
            wait(futures)

        for future in futures:
            exc = future.exception()
            if exc is not None and job.error is None:
                job.cancel(exc)

    def _fail(self, job: UploadJob) -> None:
        """Remove the partial remote file and raise the original error."""
        job.state = UploadState.CANCELLING
        logger.error(
            f"Upload of {job.local_path} cancelled"
            + (f" at chunk {job.failed_chunk}" if job.failed_chunk is not None else "")
            + f"; removing partial remote file {job.remote_path}"
        )

        cleanup_error: Optional[BaseException] = None
        try:
            self.client.remove(job.remote_path)
        except WebDAVUploaderError as e:
            cleanup_error = e
            logger.warning(f"Failed to remove partial upload {job.remote_path}: {e}")

        job.state = UploadState.FAILED
        raise UploadError(
            f"Upload of {job.local_path} failed: {job.error}",
            job.local_path,
            job.remote_path,
            cleanup_error,
        ) from job.error

    def _upload_empty(self, job: UploadJob) -> FileUploadResult:
        policy = self.config.empty_files
        if policy == EmptyFilePolicy.ERROR:
            job.state = UploadState.FAILED
            raise UploadError(
                f"Local file is empty: {job.local_path}", job.local_path, job.remote_path
            )

        if policy == EmptyFilePolicy.SKIP:
            logger.info(f"Skipping empty file {job.local_path}")
            job.state = UploadState.SUCCESS
            return FileUploadResult(
                local_path=job.local_path,
                remote_path=job.remote_path,
                size=0,
                skipped=True,
            )

        job.state = UploadState.UPLOADING
        job.start_time = time.monotonic()
        try:
            self.client.write_stream(job.remote_path, b"")
        except WebDAVUploaderError as e:
            job.state = UploadState.FAILED
            raise UploadError(
                f"Upload of {job.local_path} failed: {e}",
                job.local_path,
                job.remote_path,
            ) from e

        job.state = UploadState.SUCCESS
        logger.info(f"Created empty remote file {job.remote_path}")
        return FileUploadResult(
            local_path=job.local_path,
            remote_path=job.remote_path,
            size=0,
            upload_time=job.elapsed(),
        )
