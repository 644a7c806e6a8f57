"""Adapters between linked buffers and ordinary byte streams."""

from __future__ import annotations

import io
from typing import Any, Optional, Union

from .linkbuffer import BytesLike, LinkBuffer, LinkBufferError

MAX_READ_CYCLE = 16
"""Most reads from the stream made by one fill."""

READ_CHUNK = 4096
"""Bytes reserved for each read from the stream."""


class EndOfStreamError(EOFError):
    """Raised when the underlying stream ends before enough bytes arrived."""


class ZCReader:
    """Zero-copy reader that pulls data from a stream into a linked buffer.

    ``stream`` needs a ``readinto`` method (or ``read`` as a fallback);
    a return of 0 bytes means the stream has ended.
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._buf = LinkBuffer()

    def __len__(self) -> int:
        return len(self._buf)

    def next(self, n: int) -> memoryview:
        """Consume and return the next ``n`` bytes, reading more as needed."""
        self._wait_read(n)
        return self._buf.next(n)

    def peek(self, n: int) -> memoryview:
        """Return the next ``n`` bytes without consuming them."""
        self._wait_read(n)
        return self._buf.peek(n)

    def skip(self, n: int) -> None:
        """Discard the next ``n`` bytes."""
        self._wait_read(n)
        self._buf.skip(n)

    def release(self) -> None:
        """Give back the storage of bytes already read."""
        self._buf.release()

    def slice(self, n: int) -> LinkBuffer:
        """Move the next ``n`` bytes into a new read-only buffer."""
        self._wait_read(n)
        return self._buf.slice(n)

    def read_string(self, n: int) -> str:
        """Consume ``n`` bytes and return them decoded as UTF-8."""
        self._wait_read(n)
        return self._buf.read_string(n)

    def read_binary(self, n: int) -> bytes:
        """Consume ``n`` bytes and return a copy of them."""
        self._wait_read(n)
        return self._buf.read_binary(n)

    def read_byte(self) -> int:
        """Consume and return one byte."""
        self._wait_read(1)
        return self._buf.read_byte()

    def until(self, delim: Union[int, BytesLike]) -> memoryview:
        """Consume and return buffered bytes up to and including ``delim``."""
        return self._buf.until(delim)

    def _wait_read(self, n: int) -> None:
        while len(self._buf) < n:
            self._fill(n)

    def _read_into(self, view: memoryview) -> int:
        readinto = getattr(self._stream, "readinto", None)
        if readinto is not None:
            num = readinto(view)
            return 0 if num is None else num
        data = self._stream.read(len(view))
        if data is None:
            return 0
        view[: len(data)] = data
        return len(data)

    def _fill(self, n: int) -> None:
        """Read from the stream until ``n`` bytes are buffered, at most 16 times."""
        for _ in range(MAX_READ_CYCLE):
            if len(self._buf) >= n:
                return
            view = self._buf.malloc(READ_CHUNK)
            try:
                num = self._read_into(view)
            except BaseException:
                self._buf.malloc_ack(0)
                raise
            if num < 0:
                self._buf.malloc_ack(0)
                raise LinkBufferError(f"zcReader fill negative count[{num}]")
            if num == 0:
                self._buf.malloc_ack(0)
                raise EndOfStreamError("end of stream")
            self._buf.malloc_ack(num)
            self._buf.flush()


class ZCWriter:
    """Zero-copy writer that collects data in a linked buffer and sends it on flush.

    ``stream`` needs a ``write`` method returning the number of bytes taken.
    """

    def __init__(self, stream: Any) -> None:
        self._stream = stream
        self._buf = LinkBuffer()

    def malloc(self, n: int) -> memoryview:
        """Reserve ``n`` writable bytes."""
        return self._buf.malloc(n)

    def malloc_len(self) -> int:
        """Number of bytes reserved and not yet flushed."""
        return self._buf.malloc_len()

    def flush(self) -> None:
        """Commit reserved bytes and write what the stream accepts."""
        self._buf.flush()
        written = self._stream.write(self._buf.getvalue())
        if written is not None and written > 0:
            self._buf.skip(written)
            self._buf.release()

    def malloc_ack(self, n: int) -> None:
        """Keep the first ``n`` reserved bytes and discard the rest."""
        self._buf.malloc_ack(n)

    def append(self, writer: Optional[LinkBuffer]) -> None:
        """Take over the contents of another buffer."""
        self._buf.append(writer)

    def write_string(self, s: str) -> int:
        """Reserve and fill the UTF-8 encoding of ``s``."""
        return self._buf.write_string(s)

    def write_binary(self, b: BytesLike) -> int:
        """Reserve and fill the bytes ``b``."""
        return self._buf.write_binary(b)

    def write_direct(self, p: Optional[BytesLike], remain_cap: int) -> None:
        """Insert ``p`` into the reserved area, ``remain_cap`` bytes before its end."""
        self._buf.write_direct(p, remain_cap)

    def write_byte(self, b: Union[int, BytesLike]) -> None:
        """Reserve one byte and set it to ``b``."""
        self._buf.write_byte(b)


class IOReader(io.RawIOBase):
    """Raw binary stream reading from a buffer; an empty buffer reads as end of stream."""

    def __init__(self, reader: Any) -> None:
        super().__init__()
        self._reader = reader

    def readable(self) -> bool:
        return True

    def readinto(self, b: Any) -> int:
        """Move up to ``len(b)`` buffered bytes into ``b``."""
        dst = memoryview(b).cast("B")
        count = min(len(dst), len(self._reader))
        if count == 0:
            return 0
        src = self._reader.next(count)
        dst[:count] = src
        self._reader.release()
        return count


class IOWriter(io.RawIOBase):
    """Raw binary stream writing into a buffer and flushing it after every write."""

    def __init__(self, writer: Any) -> None:
        super().__init__()
        self._writer = writer

    def writable(self) -> bool:
        return True

    def write(self, b: Any) -> int:
        """Copy ``b`` into the buffer and flush it."""
        src = memoryview(b).cast("B")
        dst = self._writer.malloc(len(src))
        dst[: len(src)] = src
        self._writer.flush()
        return len(src)