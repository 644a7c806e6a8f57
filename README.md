# nocopyio

Building blocks for non-blocking network I/O in pure Python, with no
third-party dependencies.

## What is in it

- `nocopyio.linkbuffer.LinkBuffer`: a byte buffer made of linked
  `nocopyio.node.LinkBufferNode` segments.
  - Writers reserve space with `malloc`, `write_binary`, `write_string`,
    `write_byte` or `write_direct`. `flush` makes that space readable.
    `malloc_ack(n)` keeps only the first `n` reserved bytes, and `malloc_len`
    reports how many are still waiting.
  - Readers take data with `next`, `peek`, `skip`, `read_binary`,
    `read_string`, `read_byte`, `until` and `slice`. Where the bytes lie in a
    single node, `next` and `peek` return `memoryview`s into it.
  - `slice(n)` moves `n` bytes into a new, read-only `LinkBuffer` that shares
    its storage with the parent.
  - `release` returns the nodes that have been fully read.
  - `getvalue` (also `bytes(buf)`) and `get_bytes` let you inspect the
    readable bytes without consuming them.
  - `index_byte` finds a byte among them.
  - `write_buffer` and `append` take over the nodes of another buffer.
  - `close` empties the buffer. The buffer is also a context manager.
  - A failed operation raises `LinkBufferError`, for example when a read asks
    for more bytes than are readable.
- `nocopyio.readwriter`:
  - `ZCReader` wraps an object with `readinto` or `read`. It reads from it in
    4096-byte chunks until enough bytes are buffered. When the stream returns
    0 bytes first, it raises `EndOfStreamError`.
  - `ZCWriter` collects data in a buffer. On `flush` it writes it to an object
    with `write` and drops the bytes that were accepted.
  - `IOReader` and `IOWriter` present a buffer as an `io.RawIOBase` stream.
    `IOWriter.write` copies the bytes in and flushes them. `IOReader` reads an
    empty buffer as end of stream.
- `nocopyio.poll`: the abstract `Poll` interface (`wait`, `close`, `trigger`,
  `control`) and the `PollEvent` operations.
- `nocopyio.loadbalance`: `RandomLB` and `RoundRobinLB`, selected through
  `LoadBalance` and `new_loadbalance`.
- `nocopyio.manager.PollManager` creates pollers from a factory you supply. It
  runs each poller's `wait` in a daemon thread and picks among them with the
  chosen load balancing method. By default, `default_num_loops()` gives one
  poller per CPU when there are more than four CPUs, and one otherwise.
- `nocopyio.sysio`: helpers on raw file descriptors.
  - `get_sys_fd_pairs`, `sys_socket`, `writev`, `readv` and `sendmsg`.
  - `set_tcp_no_delay`, `set_keep_alive`, `set_default_sockopts`,
    `set_zero_copy` and `set_block_zero_copy_send`. The two zero-copy options
    raise `OSError` (EINVAL) outside Linux.

## What it does not do

There is no concrete event poller in the package: no epoll or kqueue loop.
There are also no connection, listener or dialer objects, and no server.
`PollManager` needs a `poll_factory` that returns your own `Poll`
implementation.

## Install

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Example

```python
from nocopyio.linkbuffer import LinkBuffer

buf = LinkBuffer()
buf.write_binary(b"hello\nworld")
buf.flush()

line = buf.until(ord("\n"))   # equal to b"hello\n"
rest = buf.read_string(len(buf))  # "world"
buf.release()
```

Wrapping a stream:

```python
import io
from nocopyio.readwriter import ZCReader

reader = ZCReader(io.BytesIO(b"payload"))
assert reader.next(3) == b"pay"
```