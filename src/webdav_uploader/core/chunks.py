"""Split a local file into byte-range chunks and feed them to the upload queue."""

import io
import logging
import os
import queue
import threading
from dataclasses import dataclass, field
from typing import BinaryIO, Iterator, Optional

logger = logging.getLogger(__name__)

# Queued once per consumer after the last chunk.
END_OF_CHUNKS = object()


class RangeReader(io.RawIOBase):
    """Read-only view over ``[offset, offset + length)`` of an open file.

    Reads are positional (``os.pread``) so any number of readers can share one
    file handle without moving its cursor. File objects without a real file
    descriptor fall back to ``seek`` + ``read`` under a lock shared by all
    readers of that file.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        offset: int,
        length: int,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        super().__init__()
        self._file = fileobj
        self._offset = offset
        self._length = length
        self._position = 0
        self._lock = lock or threading.Lock()
        self._fd = self._positional_fd(fileobj)

    @staticmethod
    def _positional_fd(fileobj: BinaryIO) -> Optional[int]:
        if not hasattr(os, "pread"):
            return None
        try:
            return fileobj.fileno()
        except (AttributeError, OSError, io.UnsupportedOperation):
            return None

    def __len__(self) -> int:
        return self._length

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def tell(self) -> int:
        return self._position

    def seek(self, pos: int, whence: int = io.SEEK_SET) -> int:
        if whence == io.SEEK_SET:
            new_position = pos
        elif whence == io.SEEK_CUR:
            new_position = self._position + pos
        elif whence == io.SEEK_END:
            new_position = self._length + pos
        else:
            raise ValueError(f"Invalid whence: {whence}")
        if new_position < 0:
            raise ValueError(f"Negative seek position {new_position}")
        self._position = min(new_position, self._length)
        return self._position

    def _read_at(self, position: int, size: int) -> bytes:
        if self._fd is not None:
            return os.pread(self._fd, size, position)
        with self._lock:
            self._file.seek(position)
            return self._file.read(size)

    def readinto(self, buffer) -> int:
        remaining = self._length - self._position
        if remaining <= 0:
            return 0
        size = min(len(buffer), remaining)
        data = self._read_at(self._offset + self._position, size)
        if not data:
            raise OSError(
                f"Unexpected end of file at byte {self._offset + self._position}"
            )
        n = len(data)
        buffer[:n] = data
        self._position += n
        return n


@dataclass
class FileChunk:
    """One contiguous byte range of a file, uploaded as one request."""

    index: int
    offset: int
    length: int
    size: int
    reader: RangeReader = field(repr=False)

    @property
    def end(self) -> int:
        """Inclusive last byte of the chunk."""
        return self.offset + self.length - 1

    @property
    def content_range(self) -> str:
        return f"bytes {self.offset}-{self.end}/{self.size}"


def chunk_count(size: int, max_chunk_size: int) -> int:
    """Number of chunks a file of ``size`` bytes is split into."""
    return (size + max_chunk_size - 1) // max_chunk_size


def iter_file_chunks(
    fileobj: BinaryIO,
    size: int,
    max_chunk_size: int,
    lock: Optional[threading.Lock] = None,
) -> Iterator[FileChunk]:
    """Lazily yield chunks partitioning ``[0, size)`` in offset order.

    A zero-length file yields no chunks.
    """
    if max_chunk_size <= 0:
        raise ValueError(f"max_chunk_size must be positive, got {max_chunk_size}")
    if size < 0:
        raise ValueError(f"size must not be negative, got {size}")

    lock = lock or threading.Lock()
    for index in range(chunk_count(size, max_chunk_size)):
        offset = index * max_chunk_size
        length = min(max_chunk_size, size - offset)
        yield FileChunk(
            index=index,
            offset=offset,
            length=length,
            size=size,
            reader=RangeReader(fileobj, offset, length, lock),
        )


class ChunkProducer:
    """Feeds the chunks of one open file into a bounded queue."""

    def __init__(
        self,
        fileobj: BinaryIO,
        size: int,
        max_chunk_size: int,
        poll_interval: float = 0.1,
    ) -> None:
        self.fileobj = fileobj
        self.size = size
        self.max_chunk_size = max_chunk_size
        self.poll_interval = poll_interval
        self.produced = 0

    def _put(self, job, chunk_queue: queue.Queue, item) -> bool:
        """Blocking put that gives up once the job is cancelled."""
        while not job.cancelled:
            try:
                chunk_queue.put(item, timeout=self.poll_interval)
                return True
            except queue.Full:
                continue
        return False

    def produce(self, job, chunk_queue: queue.Queue, consumers: int) -> int:
        """Enqueue every chunk, then one end marker per consumer.

        Returns:
            Number of chunks enqueued
        """
        for chunk in iter_file_chunks(self.fileobj, self.size, self.max_chunk_size):
            if not self._put(job, chunk_queue, chunk):
                logger.debug(
                    f"{job.remote_path}: producer stopped at chunk {chunk.index} (cancelled)"
                )
                return self.produced
            self.produced += 1

        for _ in range(consumers):
            if not self._put(job, chunk_queue, END_OF_CHUNKS):
                break
        logger.debug(f"{job.remote_path}: produced {self.produced} chunks")
        return self.produced
