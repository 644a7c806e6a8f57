"""Thin socket and vectored-I/O helpers working on raw file descriptors."""

from __future__ import annotations

import errno
import os
import socket
import struct
import sys
from contextlib import contextmanager
from typing import Iterator, List, Sequence

from .linkbuffer import BytesLike

SO_ZEROCOPY = 60
SO_ZEROBLOCKTIMEO = 69
MSG_ZEROCOPY = 0x4000000

BARRIER_CAP = 32
"""Number of chunks handed to a single vectored call by the pollers."""

_PLATFORM = sys.platform
_IS_LINUX = _PLATFORM.startswith("linux")
_IS_DARWIN = _PLATFORM == "darwin"
_IS_OPENBSD = _PLATFORM.startswith("openbsd")
_IS_DRAGONFLY = _PLATFORM.startswith("dragonfly")

# DragonFly BSD option values that the socket module does not expose.
_IP_PORTRANGE = 19
_IPV6_PORTRANGE = 14
_PORTRANGE_HIGH = 1

# Darwin keepalive options.
_DARWIN_TCP_KEEPINTVL = 0x101
_DARWIN_TCP_KEEPALIVE = 0x10


@contextmanager
def _borrow(fd: int) -> Iterator[socket.socket]:
    """Wrap ``fd`` in a socket object without taking ownership of it."""
    sock = socket.socket(fileno=fd)
    try:
        yield sock
    finally:
        sock.detach()


def _syscall_error(name: str, exc: OSError) -> OSError:
    return OSError(exc.errno, f"{name}: {exc.strerror}")


def _non_empty(chunks: Sequence[BytesLike]) -> List[BytesLike]:
    return [chunk for chunk in chunks if len(chunk) > 0]


def get_sys_fd_pairs() -> tuple[int, int]:
    """Create a connected pair of Unix stream sockets and return their descriptors."""
    first, second = socket.socketpair(socket.AF_UNIX, socket.SOCK_STREAM)
    return first.detach(), second.detach()


def set_tcp_no_delay(fd: int, enabled: bool) -> None:
    """Set or clear TCP_NODELAY on the socket ``fd``."""
    with _borrow(fd) as sock:
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, int(bool(enabled)))


def sys_socket(family: int, sotype: int, proto: int) -> int:
    """Open a non-blocking, close-on-exec socket and return its descriptor."""
    try:
        sock = socket.socket(family, sotype, proto)
    except OSError as exc:
        raise _syscall_error("socket", exc) from exc
    try:
        sock.setblocking(False)
    except OSError as exc:
        sock.close()
        raise _syscall_error("setnonblock", exc) from exc
    return sock.detach()


def writev(fd: int, chunks: Sequence[BytesLike]) -> int:
    """Write the non-empty ``chunks`` to ``fd`` in one call; return bytes written."""
    buffers = _non_empty(chunks)
    if not buffers:
        return 0
    return os.writev(fd, buffers)


def readv(fd: int, buffers: Sequence[BytesLike]) -> int:
    """Read from ``fd`` into the non-empty ``buffers``; 0 means end of stream."""
    targets = _non_empty(buffers)
    if not targets:
        return 0
    return os.readv(fd, targets)


def sendmsg(fd: int, chunks: Sequence[BytesLike], zerocopy: bool = False) -> int:
    """Send the non-empty ``chunks`` on the socket ``fd`` with one sendmsg call.

    ``zerocopy`` requests MSG_ZEROCOPY where the platform supports it.
    """
    buffers = _non_empty(chunks)
    if not buffers:
        return 0
    flags = MSG_ZEROCOPY if zerocopy and _IS_LINUX else 0
    with _borrow(fd) as sock:
        return sock.sendmsg(buffers, [], flags)


def set_keep_alive(fd: int, secs: int) -> None:
    """Enable TCP keepalive on ``fd`` with idle time and interval of ``secs``."""
    if _IS_OPENBSD:
        # No per-socket keepalive options are user-settable there.
        return
    with _borrow(fd) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
        if _IS_DARWIN:
            try:
                sock.setsockopt(socket.IPPROTO_TCP, _DARWIN_TCP_KEEPINTVL, secs)
            except OSError as exc:
                if exc.errno != errno.ENOPROTOOPT:
                    raise
            keepalive = getattr(socket, "TCP_KEEPALIVE", _DARWIN_TCP_KEEPALIVE)
            sock.setsockopt(socket.IPPROTO_TCP, keepalive, secs)
            return
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, secs)
        sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, secs)


def set_default_sockopts(fd: int, family: int, sotype: int, ipv6only: bool) -> None:
    """Apply the default options to a new socket and allow broadcast."""
    try:
        with _borrow(fd) as sock:
            if _IS_LINUX:
                if family == socket.AF_INET6 and sotype != socket.SOCK_RAW:
                    try:
                        sock.setsockopt(
                            socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, int(bool(ipv6only))
                        )
                    except OSError:
                        pass
            elif _IS_DRAGONFLY and sotype != socket.SOCK_RAW:
                try:
                    if family == socket.AF_INET:
                        sock.setsockopt(socket.IPPROTO_IP, _IP_PORTRANGE, _PORTRANGE_HIGH)
                    elif family == socket.AF_INET6:
                        sock.setsockopt(socket.IPPROTO_IPV6, _IPV6_PORTRANGE, _PORTRANGE_HIGH)
                except OSError:
                    pass
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
    except OSError as exc:
        raise _syscall_error("setsockopt", exc) from exc


def set_zero_copy(fd: int) -> None:
    """Enable SO_ZEROCOPY on ``fd``; unsupported outside Linux."""
    if not _IS_LINUX:
        raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))
    with _borrow(fd) as sock:
        sock.setsockopt(socket.SOL_SOCKET, SO_ZEROCOPY, 1)


def set_block_zero_copy_send(fd: int, sec: int, usec: int) -> None:
    """Set the blocking timeout of zero-copy sends on ``fd``; unsupported outside Linux."""
    if not _IS_LINUX:
        raise OSError(errno.EINVAL, os.strerror(errno.EINVAL))
    timeval = struct.pack("@ll", sec, usec)
    with _borrow(fd) as sock:
        sock.setsockopt(socket.SOL_SOCKET, SO_ZEROBLOCKTIMEO, timeval)