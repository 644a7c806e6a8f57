"""Nodes of a linked chain of byte buffers with shared, reference-counted storage."""

from __future__ import annotations

from typing import Optional, Union

MALLOC_MAX = 8 * 1024 * 1024
DEFAULT_NODE_CAP = 4096

Storage = Union[bytearray, memoryview]


def round_capacity(n: int) -> int:
    """Return the capacity handed out for a request of ``n`` bytes.

    Requests up to ``MALLOC_MAX`` are rounded up to a power of two; larger
    requests are allocated exactly.
    """
    if n <= 0:
        return 0
    if n > MALLOC_MAX:
        return n
    return 1 << (n - 1).bit_length()


class LinkBufferNode:
    """One segment of a linked buffer.

    ``data`` is the backing storage (its length is the capacity), ``length``
    is the end of readable bytes, ``off`` the read offset and ``malloc_end``
    the end of allocated (not yet committed) bytes.
    """

    __slots__ = (
        "data",
        "length",
        "off",
        "malloc_end",
        "refs",
        "readonly",
        "origin",
        "next_node",
    )

    def __init__(self, size: int = 0, min_cap: int = DEFAULT_NODE_CAP) -> None:
        self.length = 0
        self.off = 0
        self.malloc_end = 0
        self.refs = 1
        self.origin: Optional[LinkBufferNode] = None
        self.next_node: Optional[LinkBufferNode] = None
        self.data: Storage
        if size <= 0:
            # Storage is supplied from outside; this node never owns a buffer.
            self.readonly = True
            self.data = memoryview(b"")
        else:
            self.readonly = False
            self.data = bytearray(round_capacity(max(size, min_cap)))

    def __len__(self) -> int:
        return self.length - self.off

    def __repr__(self) -> str:
        return (
            f"LinkBufferNode(off={self.off}, length={self.length}, "
            f"malloc_end={self.malloc_end}, capacity={self.capacity()}, "
            f"refs={self.refs}, readonly={self.readonly})"
        )

    def capacity(self) -> int:
        """Size of the backing storage."""
        return len(self.data)

    def is_empty(self) -> bool:
        """True when every readable byte has been consumed."""
        return self.off == self.length

    def next(self, n: int) -> memoryview:
        """Return a view of the next ``n`` readable bytes and consume them."""
        start = self.off
        self.off += n
        return memoryview(self.data)[start : self.off]

    def peek(self, n: int) -> memoryview:
        """Return a view of the next ``n`` readable bytes without consuming them."""
        return memoryview(self.data)[self.off : self.off + n]

    def malloc(self, n: int) -> memoryview:
        """Reserve ``n`` bytes after the current allocation end and return a view of them."""
        start = self.malloc_end
        self.malloc_end += n
        return memoryview(self.data)[start : self.malloc_end]

    def refer(self, n: int) -> "LinkBufferNode":
        """Consume ``n`` bytes into a new read-only node sharing this storage.

        The root node's reference count is raised, so its storage outlives
        this node until every referring node is released.
        """
        node = LinkBufferNode(0)
        node.data = self.next(n)
        node.length = len(node.data)
        root = self.origin if self.origin is not None else self
        node.origin = root
        root.refs += 1
        return node

    def release(self) -> None:
        """Drop one reference to this node (and its origin); clear it when unused."""
        if self.origin is not None:
            self.origin.release()
        self.refs -= 1
        if self.refs == 0:
            self.off = self.malloc_end = self.length = 0
            self.refs = 1
            self.origin = None
            self.next_node = None
            self.readonly = False
            self.data = memoryview(b"")

    def reset(self) -> None:
        """Empty the node for reuse, unless its storage is shared."""
        if self.origin is not None or self.refs != 1:
            return
        self.off = self.malloc_end = self.length = 0