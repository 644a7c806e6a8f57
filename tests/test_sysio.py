import contextlib
import os
import socket

import pytest

from nocopyio.sysio import (
    get_sys_fd_pairs,
    readv,
    sendmsg,
    set_block_zero_copy_send,
    set_default_sockopts,
    set_keep_alive,
    set_tcp_no_delay,
    set_zero_copy,
    sys_socket,
    writev,
)

LINES = [b"", b"first line", b"second line", b"third line"]
JOINED = b"first linesecond linethird line"


@pytest.fixture
def pair():
    r, w = get_sys_fd_pairs()
    yield r, w
    for fd in (r, w):
        with contextlib.suppress(OSError):
            os.close(fd)


@pytest.fixture
def pipe_fd():
    r, w = os.pipe()
    yield r
    os.close(r)
    os.close(w)


def test_writev(pair):
    r, w = pair
    assert writev(w, LINES) == 31
    assert os.read(r, 50) == JOINED


def test_writev_only_empty_chunks(pair):
    _, w = pair
    assert writev(w, [b"", b""]) == 0


def test_readv(pair):
    r, w = pair
    written = sum(os.write(w, line) for line in LINES[1:])
    assert written == 31
    buffers = [bytearray(0), bytearray(10), bytearray(11), bytearray(10)]
    assert readv(r, buffers) == 31
    assert bytes(buffers[1]) == b"first line"
    assert bytes(buffers[2]) == b"second line"
    assert bytes(buffers[3]) == b"third line"


def test_readv_end_of_stream(pair):
    r, w = pair
    os.close(w)
    assert readv(r, [bytearray(8)]) == 0


def test_sendmsg(pair):
    r, w = pair
    assert sendmsg(w, LINES, False) == 31
    assert os.read(r, 50) == JOINED


def test_sendmsg_only_empty_chunks(pair):
    _, w = pair
    assert sendmsg(w, [b""], False) == 0


def test_fd_pair_is_bidirectional(pair):
    r, w = pair
    os.write(r, b"ping")
    assert os.read(w, 10) == b"ping"
    os.write(w, b"pong")
    assert os.read(r, 10) == b"pong"


def test_borrowed_fd_stays_open(pair):
    r, w = pair
    sendmsg(w, [b"a"], False)
    sendmsg(w, [b"b"], False)
    assert os.read(r, 10) == b"ab"


def test_set_tcp_no_delay():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        set_tcp_no_delay(sock.fileno(), True)
        assert sock.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) > 0
        set_tcp_no_delay(sock.fileno(), False)
        assert sock.getsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY) == 0


def test_set_tcp_no_delay_rejects_non_socket(pipe_fd):
    with pytest.raises(OSError):
        set_tcp_no_delay(pipe_fd, True)


def test_sys_socket_is_nonblocking_and_cloexec():
    fd = sys_socket(socket.AF_INET, socket.SOCK_STREAM, 0)
    try:
        assert os.get_blocking(fd) is False
        assert os.get_inheritable(fd) is False
    finally:
        os.close(fd)


def test_sys_socket_invalid_family():
    with pytest.raises(OSError, match="socket"):
        sys_socket(9999, socket.SOCK_STREAM, 0)


def test_set_keep_alive():
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        set_keep_alive(sock.fileno(), 30)
        assert sock.getsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE) > 0


def test_set_keep_alive_rejects_non_socket(pipe_fd):
    with pytest.raises(OSError):
        set_keep_alive(pipe_fd, 30)


def test_set_default_sockopts_allows_broadcast():
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        set_default_sockopts(sock.fileno(), socket.AF_INET, socket.SOCK_DGRAM, False)
        assert sock.getsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST) > 0


def test_set_default_sockopts_error_is_named(pipe_fd):
    with pytest.raises(OSError, match="setsockopt"):
        set_default_sockopts(pipe_fd, socket.AF_INET, socket.SOCK_STREAM, False)


def test_set_zero_copy_rejects_non_socket(pipe_fd):
    with pytest.raises(OSError):
        set_zero_copy(pipe_fd)


def test_set_block_zero_copy_send_rejects_non_socket(pipe_fd):
    with pytest.raises(OSError):
        set_block_zero_copy_send(pipe_fd, 1, 0)