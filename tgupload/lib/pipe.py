"""
Bounded in-memory byte pipe between a producer thread and a consumer.

The writer blocks while the buffer is full, the reader blocks while it is
empty. Closing the write end with an exception makes the reader raise that
exception once the buffered bytes are drained; closing the read end makes
pending and future writes fail with BrokenPipeError.
"""

import threading
from typing import Optional


class BytePipe:
    """Thread-safe bounded byte buffer with explicit close semantics."""

    def __init__(self, capacity: int = 1024 * 1024) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1 byte")
        self.capacity = capacity
        self._buffer = bytearray()
        self._cond = threading.Condition()
        self._writer_closed = False
        self._writer_error: Optional[BaseException] = None
        self._reader_closed = False
        self.bytes_written = 0

    def write(self, data: bytes) -> int:
        """Write all of data, blocking while the buffer is full."""
        view = memoryview(data)
        with self._cond:
            while view:
                while len(self._buffer) >= self.capacity and not self._reader_closed:
                    self._cond.wait()
                if self._reader_closed:
                    raise BrokenPipeError("pipe reader closed")
                if self._writer_closed:
                    raise ValueError("write to closed pipe")
                room = self.capacity - len(self._buffer)
                self._buffer += view[:room]
                self.bytes_written += min(room, len(view))
                view = view[room:]
                self._cond.notify_all()
        return len(data)

    def read(self, size: int = 65536) -> bytes:
        """
        Read up to size bytes.

        Returns b"" at end of stream. Raises the writer's error, if it
        closed with one, after all buffered bytes were returned.
        """
        with self._cond:
            while not self._buffer and not self._writer_closed and not self._reader_closed:
                self._cond.wait()
            if self._buffer:
                chunk = bytes(self._buffer[:size])
                del self._buffer[:size]
                self._cond.notify_all()
                return chunk
            if self._writer_error is not None:
                raise self._writer_error
            return b""

    def close_writer(self, error: Optional[BaseException] = None) -> None:
        """Signal end of stream, optionally as a terminal error for the reader."""
        with self._cond:
            if not self._writer_closed:
                self._writer_closed = True
                self._writer_error = error
            self._cond.notify_all()

    def close_reader(self) -> None:
        """Stop consuming; unblocks a writer waiting for room."""
        with self._cond:
            self._reader_closed = True
            self._buffer.clear()
            self._cond.notify_all()

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._writer_closed or self._reader_closed
