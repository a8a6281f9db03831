""" Line channels carry newline-terminated records from
one writer to one reader.

A channel object is one *end* of a pipe -- either the
write end or the read end.  Two implementations:

- PipeChannel wraps a buffered binary file over an OS pipe
  (Popen.stdin, Popen.stdout, sys.stdin.buffer, ...)
- MemoryChannel is an in-memory pipe between threads,
  created in pairs with `memory_pipe()`.

Lines are bytes.  `read_line` strips the terminator,
`write_line` adds one if it is missing.
"""

from typing import Optional, Sequence, Tuple, BinaryIO
import collections
import logging
import threading

from .errors import ChannelError, ChannelClosed

logger = logging.getLogger(__name__)

NL = b'\n'

class LineChannel:
    """ One end of a unidirectional line transport.
    """
    name: str = ''

    def write_line(self, line: bytes) -> None:
        raise NotImplementedError

    def read_line(self) -> Optional[bytes]:
        """ Block until a full line is available.
        Returns None once the writer has closed and
        no buffered data remains.
        """
        raise NotImplementedError

    def close(self) -> None:
        raise NotImplementedError

    @property
    def closed(self) -> bool:
        raise NotImplementedError

    def __iter__(self):
        while True:
            line = self.read_line()
            if line is None:
                return
            yield line

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name!r})"

def _strip(line: bytes) -> bytes:
    if line.endswith(NL):
        return line[:-1]
    return line

class PipeChannel(LineChannel):
    """ Channel over a buffered binary file object.

    The file's own buffering provides line-level reads
    and batched writes.  Closing the write end flushes
    the buffer, which the reader sees as end-of-stream.
    """
    def __init__(self, f: BinaryIO, name: str = '') -> None:
        self.f = f
        self.name = name or getattr(f, 'name', '')
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_line(self, line: bytes) -> None:
        if self._closed:
            raise ChannelClosed(f"{self.name}: write on closed channel")
        if not line.endswith(NL):
            line = line + NL
        try:
            self.f.write(line)
        except BrokenPipeError as e:
            raise ChannelClosed(f"{self.name}: reader has gone away") from e
        except (OSError, ValueError) as e:
            raise ChannelError(f"{self.name}: {e}") from e

    def read_line(self) -> Optional[bytes]:
        if self._closed:
            return None
        try:
            line = self.f.readline()
        except (OSError, ValueError) as e:
            raise ChannelError(f"{self.name}: {e}") from e
        if not line:
            return None
        return _strip(line)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # BufferedWriter.close flushes, then closes the fd even if
        # the flush failed.
        try:
            self.f.close()
        except BrokenPipeError as e:
            raise ChannelClosed(f"{self.name}: reader has gone away") from e
        except OSError as e:
            raise ChannelError(f"{self.name}: {e}") from e

class _LineBuffer:
    # State shared by the two ends of a memory pipe.
    def __init__(self, capacity: int) -> None:
        assert capacity > 0, "capacity must be positive"
        self.lines: collections.deque = collections.deque()
        self.capacity = capacity
        self.cond = threading.Condition()
        self.eof = False     # write end closed
        self.broken = False  # read end closed

class MemoryChannel(LineChannel):
    """ One end of an in-memory pipe.  Use `memory_pipe()`
    to create a connected (read_end, write_end) pair.

    The buffer holds at most `capacity` lines, so a writer
    blocks while the reader lags behind, like an OS pipe.
    """
    def __init__(self, buf: _LineBuffer, writable: bool,
                 name: str = '') -> None:
        self.buf = buf
        self.writable = writable
        self.name = name
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def write_line(self, line: bytes) -> None:
        if not self.writable:
            raise ChannelError(f"{self.name}: read end is not writable")
        if self._closed:
            raise ChannelClosed(f"{self.name}: write on closed channel")
        line = _strip(line)
        buf = self.buf
        with buf.cond:
            while len(buf.lines) >= buf.capacity and not buf.broken:
                buf.cond.wait()
            if buf.broken:
                raise ChannelClosed(f"{self.name}: reader has gone away")
            buf.lines.append(line)
            buf.cond.notify_all()

    def read_line(self) -> Optional[bytes]:
        if self.writable:
            raise ChannelError(f"{self.name}: write end is not readable")
        if self._closed:
            return None
        buf = self.buf
        with buf.cond:
            while not buf.lines and not buf.eof:
                buf.cond.wait()
            if not buf.lines:
                return None
            line = buf.lines.popleft()
            buf.cond.notify_all()
            return line

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        buf = self.buf
        with buf.cond:
            if self.writable:
                buf.eof = True
            else:
                buf.broken = True
                buf.lines.clear()
            buf.cond.notify_all()

def memory_pipe(capacity: int = 1024, name: str = ''
               ) -> Tuple[MemoryChannel, MemoryChannel]:
    """ Create a connected pair of MemoryChannel-s,
    (read_end, write_end) -- same order as os.pipe().
    """
    buf = _LineBuffer(capacity)
    return ( MemoryChannel(buf, False, name),
             MemoryChannel(buf, True, name) )

def close_all(channels: Sequence[LineChannel]) -> None:
    """ Close every channel, even if some fail to flush.
    """
    for ch in channels:
        try:
            ch.close()
        except ChannelClosed:
            logger.warning("%s: reader closed before all data was flushed.", ch.name)
        except ChannelError as e:
            logger.warning("Error closing %s: %s", ch.name, e)
