"""A chain of byte buffers supporting zero-copy reads and writes."""

from __future__ import annotations

import threading
from typing import List, Optional, Union

from .node import DEFAULT_NODE_CAP, LinkBufferNode

BINARY_INPLACE_THRESHOLD = 4096
"""Writes longer than this are linked into the chain instead of copied."""

PAGESIZE = 8192
"""Largest tail node kept after a flush."""

BytesLike = Union[bytes, bytearray, memoryview]

_EMPTY = memoryview(b"")


class LinkBufferError(Exception):
    """Raised when a buffer operation cannot be carried out."""


def _as_byte(value: Union[int, BytesLike]) -> int:
    if isinstance(value, int):
        if not 0 <= value <= 255:
            raise ValueError(f"byte value out of range: {value}")
        return value
    if len(value) != 1:
        raise ValueError("expected a single byte")
    return value[0]


def _find(node: LinkBufferNode, c: int, start: int, end: int) -> int:
    """Index of ``c`` in ``node.data[start:end]`` relative to ``start``, or -1."""
    data = node.data
    if isinstance(data, (bytes, bytearray)):
        idx = data.find(c, start, end)
        return idx - start if idx >= 0 else -1
    return bytes(data[start:end]).find(c)


class LinkBuffer:
    """Readable and writable buffer made of linked nodes.

    Written bytes become readable only after :meth:`flush`.  Reads return
    views into the nodes where possible; consumed nodes are returned with
    :meth:`release`.
    """

    def __init__(self, size: int = 0, node_cap: int = DEFAULT_NODE_CAP) -> None:
        self._lock = threading.RLock()
        self._node_cap = node_cap
        self._length = 0
        self._malloc_size = 0
        node = self._new_node(size)
        self._head: Optional[LinkBufferNode] = node
        self._read: Optional[LinkBufferNode] = node
        self._flush: Optional[LinkBufferNode] = node
        self._write: Optional[LinkBufferNode] = node

    def __len__(self) -> int:
        return self._length

    def __bytes__(self) -> bytes:
        return self.getvalue()

    def __enter__(self) -> "LinkBuffer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def is_empty(self) -> bool:
        """True when no bytes are readable."""
        return self._length == 0

    # ------------------------------------------------------------ reading

    def next(self, n: int) -> memoryview:
        """Consume and return the next ``n`` readable bytes."""
        if n <= 0:
            return _EMPTY
        with self._lock:
            if self._length < n:
                raise LinkBufferError(f"link buffer next[{n}] not enough")
            self._length -= n
            if self._is_single_node(n):
                return self._read.next(n)
            return memoryview(self._gather(n, consume=True))

    def peek(self, n: int) -> memoryview:
        """Return the next ``n`` readable bytes without consuming them."""
        if n <= 0:
            return _EMPTY
        with self._lock:
            if self._length < n:
                raise LinkBufferError(f"link buffer peek[{n}] not enough")
            if self._is_single_node(n):
                return self._read.peek(n)
            return memoryview(self._gather(n, consume=False))

    def skip(self, n: int) -> None:
        """Discard the next ``n`` readable bytes."""
        if n <= 0:
            return
        with self._lock:
            if self._length < n:
                raise LinkBufferError(f"link buffer skip[{n}] not enough")
            self._length -= n
            ack = n
            while ack > 0:
                available = len(self._read)
                if available >= ack:
                    self._read.off += ack
                    break
                ack -= available
                self._read = self._read.next_node

    def release(self) -> None:
        """Give back every node that has been fully read."""
        with self._lock:
            while self._read is not self._flush and len(self._read) == 0:
                self._read = self._read.next_node
            while self._head is not self._read:
                node = self._head
                self._head = node.next_node
                node.release()

    def read_string(self, n: int) -> str:
        """Consume ``n`` bytes and return them decoded as UTF-8."""
        if n <= 0:
            return ""
        with self._lock:
            if self._length < n:
                raise LinkBufferError(f"link buffer read string[{n}] not enough")
            return self._read_binary(n).decode("utf-8", "surrogateescape")

    def read_binary(self, n: int) -> bytes:
        """Consume ``n`` bytes and return an independent copy of them."""
        if n <= 0:
            return b""
        with self._lock:
            if self._length < n:
                raise LinkBufferError(f"link buffer read binary[{n}] not enough")
            return self._read_binary(n)

    def read_byte(self) -> int:
        """Consume and return one byte."""
        with self._lock:
            if self._length < 1:
                raise LinkBufferError("link buffer read byte is empty")
            self._length -= 1
            while True:
                if len(self._read) >= 1:
                    return self._read.next(1)[0]
                self._read = self._read.next_node

    def until(self, delim: Union[int, BytesLike]) -> memoryview:
        """Consume and return the bytes up to and including ``delim``."""
        c = _as_byte(delim)
        with self._lock:
            n = self.index_byte(c, 0)
            if n < 0:
                raise LinkBufferError(f"link buffer read slice cannot find: '{c:b}'")
            return self.next(n + 1)

    def slice(self, n: int) -> "LinkBuffer":
        """Move ``n`` bytes into a new read-only buffer sharing this storage."""
        if n <= 0:
            return LinkBuffer(0, self._node_cap)
        with self._lock:
            if self._length < n:
                raise LinkBufferError(f"link buffer readv[{n}] not enough")
            self._length -= n
            part = LinkBuffer(0, self._node_cap)
            part._length = n

            if self._is_single_node(n):
                node = self._read.refer(n)
                part._head = part._read = node
                part._flush = part._write = None
                return part

            available = len(self._read)
            head = tail = self._read.refer(available)
            self._read = self._read.next_node
            ack = n - available
            while ack > 0:
                available = len(self._read)
                if available >= ack:
                    tail.next_node = self._read.refer(ack)
                    tail = tail.next_node
                    break
                if available > 0:
                    tail.next_node = self._read.refer(available)
                    tail = tail.next_node
                ack -= available
                self._read = self._read.next_node
            part._head = part._read = head
            part._flush = part._write = None
            self.release()
            return part

    # ------------------------------------------------------------ writing

    def malloc(self, n: int) -> memoryview:
        """Reserve ``n`` writable bytes; they become readable after :meth:`flush`."""
        if n <= 0:
            return _EMPTY
        with self._lock:
            self._require_writable()
            self._malloc_size += n
            self._growth(n)
            return self._write.malloc(n)

    def malloc_len(self) -> int:
        """Number of bytes reserved and not yet flushed."""
        return self._malloc_size

    def malloc_ack(self, n: int) -> None:
        """Keep the first ``n`` reserved bytes and discard the rest."""
        if n < 0:
            raise LinkBufferError(f"link buffer malloc ack[{n}] invalid")
        with self._lock:
            self._require_writable()
            self._malloc_size = n
            self._write = self._flush
            ack = n
            while ack > 0:
                available = self._write.malloc_end - self._write.length
                if available >= ack:
                    self._write.malloc_end = ack + self._write.length
                    break
                ack -= available
                if self._write.next_node is None:
                    raise LinkBufferError(f"link buffer malloc ack[{n}] invalid")
                self._write = self._write.next_node
            node = self._write.next_node
            while node is not None:
                node.off = node.malloc_end = node.length = 0
                node.refs = 1
                node = node.next_node

    def flush(self) -> None:
        """Make every reserved byte readable."""
        with self._lock:
            self._require_writable()
            self._malloc_size = 0
            # Keep a large tail node from being reused indefinitely.
            if self._write.capacity() > PAGESIZE:
                self._write.next_node = LinkBufferNode(0)
                self._write = self._write.next_node
            committed = 0
            stop = self._write.next_node
            node = self._flush
            while node is not stop:
                delta = node.malloc_end - node.length
                if delta > 0:
                    committed += delta
                    node.length = node.malloc_end
                node = node.next_node
            self._flush = self._write
            self._length += committed

    def append(self, writer: Optional["LinkBuffer"]) -> None:
        """Take over the contents of another buffer."""
        if writer is not None and not isinstance(writer, LinkBuffer):
            raise TypeError("unsupported writer which is not LinkBuffer")
        self.write_buffer(writer)

    def write_buffer(self, buf: Optional["LinkBuffer"]) -> None:
        """Link the nodes of ``buf`` after this buffer; ``buf`` is left closed.

        Nothing is flushed: readable bytes of ``buf`` stay readable and its
        reserved bytes are added to :meth:`malloc_len`.
        """
        if buf is None:
            return
        with self._lock:
            buf_len, buf_malloc = len(buf), buf.malloc_len()
            if buf_len + buf_malloc <= 0:
                return
            self._require_writable()
            self._write.next_node = buf._read
            self._write = buf._write

            while buf._head is not buf._read:
                node = buf._head
                buf._head = node.next_node
                node.release()
            node = buf._write.next_node
            while node is not None:
                following = node.next_node
                node.release()
                node = following
            buf._length = buf._malloc_size = 0
            buf._head = buf._read = buf._flush = buf._write = None

            self._write.next_node = None
            if buf_len > 0:
                self._length += buf_len
            self._malloc_size += buf_malloc

    def write_string(self, s: str) -> int:
        """Reserve and fill the UTF-8 encoding of ``s``; return its byte count."""
        if not s:
            return 0
        return self.write_binary(s.encode("utf-8", "surrogateescape"))

    def write_binary(self, p: BytesLike) -> int:
        """Reserve and fill ``p``; large inputs are linked without copying."""
        view = memoryview(p).cast("B")
        n = len(view)
        if n == 0:
            return 0
        with self._lock:
            self._require_writable()
            self._malloc_size += n
            if n > BINARY_INPLACE_THRESHOLD:
                node = LinkBufferNode(0)
                node.data = view
                node.malloc_end = n
                self._write.next_node = node
                self._write = node
                return n
            self._growth(n)
            start = self._write.malloc_end
            self._write.malloc_end += n
            self._write.data[start : start + n] = view
            return n

    def write_direct(self, p: Optional[BytesLike], remain_len: int) -> None:
        """Insert ``p`` into the reserved area, ``remain_len`` bytes before its end.

        Must not be mixed with :meth:`write_string` or :meth:`write_binary`.
        """
        if not p or remain_len < 0:
            return
        view = memoryview(p).cast("B")
        n = len(view)
        with self._lock:
            self._require_writable()
            origin = self._flush
            offset = self._malloc_size - remain_len
            pending = origin.malloc_end - origin.length
            while pending <= offset:
                offset -= pending
                origin = origin.next_node
                pending = origin.malloc_end - origin.length
            offset += origin.length

            data_node = LinkBufferNode(0)
            data_node.data = view
            data_node.malloc_end = n

            rest = LinkBufferNode(0)
            rest.data = origin.data
            rest.off = offset
            rest.length = offset
            rest.malloc_end = origin.malloc_end
            rest.readonly = False
            origin.malloc_end = offset
            origin.readonly = True

            data_node.next_node = rest
            rest.next_node = origin.next_node
            origin.next_node = data_node

            while self._write.next_node is not None:
                self._write = self._write.next_node
            self._malloc_size += n

    def write_byte(self, b: Union[int, BytesLike]) -> None:
        """Reserve one byte and set it to ``b``."""
        value = _as_byte(b)
        dst = self.malloc(1)
        dst[0] = value

    def close(self) -> None:
        """Release every node and leave the buffer empty."""
        with self._lock:
            self._length = 0
            self._malloc_size = 0
            node = self._head
            while node is not None:
                following = node.next_node
                node.release()
                node = following
            fresh = LinkBufferNode(0)
            self._head = self._read = self._flush = self._write = fresh

    # ------------------------------------------------------------ inspection

    def getvalue(self) -> bytes:
        """Return all readable bytes without consuming them."""
        with self._lock:
            node, flush = self._read, self._flush
            if node is None:
                return b""
            if node is flush:
                return bytes(node.data[node.off : node.length])
            parts = []
            while node is not flush and node is not None:
                if len(node) > 0:
                    parts.append(node.data[node.off : node.length])
                node = node.next_node
            if flush is not None:
                parts.append(flush.data[flush.off : flush.length])
            return b"".join(parts)

    def get_bytes(self, count: int) -> List[memoryview]:
        """Return views of up to ``count`` readable segments, without consuming them."""
        with self._lock:
            views: List[memoryview] = []
            node, flush = self._read, self._flush
            while node is not flush and node is not None and len(views) < count:
                if len(node) > 0:
                    views.append(memoryview(node.data)[node.off : node.length])
                node = node.next_node
            if len(views) < count and flush is not None:
                views.append(memoryview(flush.data)[flush.off : flush.length])
            return views

    def book(self, book_size: int, max_size: int) -> memoryview:
        """Reserve up to ``book_size`` bytes in the tail node, growing by ``max_size``."""
        with self._lock:
            self._require_writable()
            available = self._write.capacity() - self._write.malloc_end
            if available == 0:
                available = max_size
                self._write.next_node = self._new_node(max_size)
                self._write = self._write.next_node
            return self._write.malloc(min(available, book_size))

    def book_ack(self, n: int) -> int:
        """Commit the first ``n`` booked bytes; return the new readable length."""
        with self._lock:
            self._require_writable()
            self._write.malloc_end = n + self._write.length
            self._write.length = self._write.malloc_end
            self._flush = self._write
            self._length += n
            return self._length

    def index_byte(self, c: Union[int, BytesLike], skip: int) -> int:
        """Index of the first ``c`` after ``skip`` readable bytes, or -1."""
        value = _as_byte(c)
        with self._lock:
            size = self._length
            if skip >= size:
                return -1
            node = self._read
            unread = size
            while unread > 0:
                available = len(node)
                n = unread if available >= unread else available
                if skip >= n:
                    skip -= n
                    unread -= n
                    node = node.next_node
                    continue
                i = _find(node, value, node.off + skip, node.off + n)
                if i >= 0:
                    return (size - unread) + skip + i
                skip = 0
                unread -= n
                node = node.next_node
            return -1

    # ------------------------------------------------------------ internals

    def _new_node(self, size: int) -> LinkBufferNode:
        return LinkBufferNode(size, self._node_cap)

    def _require_writable(self) -> None:
        if self._write is None:
            raise LinkBufferError("link buffer is read-only")

    def _growth(self, n: int) -> None:
        while self._write.readonly or self._write.capacity() - self._write.malloc_end < n:
            if self._write.next_node is None:
                self._write.next_node = self._new_node(n)
                self._write = self._write.next_node
                return
            self._write = self._write.next_node

    def _is_single_node(self, n: int) -> bool:
        if n <= 0:
            return True
        available = len(self._read)
        while available == 0:
            self._read = self._read.next_node
            available = len(self._read)
        return available >= n

    def _gather(self, n: int, consume: bool) -> bytearray:
        out = bytearray(n)
        pos = 0
        ack = n
        node = self._read
        while ack > 0:
            available = len(node)
            if available >= ack:
                out[pos : pos + ack] = node.next(ack) if consume else node.peek(ack)
                break
            if available > 0:
                out[pos : pos + available] = (
                    node.next(available) if consume else node.peek(available)
                )
                pos += available
            ack -= available
            node = node.next_node
            if consume:
                self._read = node
        return out

    def _read_binary(self, n: int) -> bytes:
        self._length -= n
        if self._is_single_node(n):
            return bytes(self._read.next(n))
        return bytes(self._gather(n, consume=True))